from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """App settings loaded from env/.env (pydantic v2 style)."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Competition window length in seconds.
    competition_duration_sec: int = 10
    # Countdown tick interval in seconds (one tick decrements the countdown by 1).
    tick_interval_sec: float = 1.0

    # Store regions: participant records live under the root, the competition
    # state under its own key.
    leaderboard_path: str = ""
    competition_path: str = "competition"

    storage_dir: str = "data"
    max_audit_file_size_mb: int = 50
    rate_limit_cleanup_interval_min: int = 5

    allowed_origins: str = "http://localhost:5173,http://localhost:3000"

    @property
    def duration_ms(self) -> int:
        return self.competition_duration_sec * 1000

    @property
    def duration_minutes(self) -> float:
        return self.competition_duration_sec / 60

    @property
    def duration_hours(self) -> float:
        return self.competition_duration_sec / 3600


settings = Settings()
