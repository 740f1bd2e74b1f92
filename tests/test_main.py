"""
Smoke tests for the real application wiring (lifespan + JSON store + routers).
"""
import asyncio

from fastapi.testclient import TestClient

from leaderboard.config import settings


def test_app_starts_idle_and_serves_view(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "storage_dir", str(tmp_path / "store"))
    from leaderboard.main import app

    with TestClient(app) as client:
        assert client.get("/health").json() == {"status": "ok", "storage": "json"}
        assert client.get("/api/health/ready").json()["status"] == "ready"
        view = client.get("/api/leaderboard").json()
    assert view["phase"] == "idle"
    assert view["durationSec"] == settings.competition_duration_sec


def test_app_resumes_concluded_run_from_disk(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "storage_dir", str(tmp_path / "store"))
    from leaderboard.scripts.seed import seed
    from leaderboard.storage import JsonTreeStore

    async def prepare():
        store = JsonTreeStore(tmp_path / "store")
        await seed(store)
        await store.write(settings.competition_path, {"active": False, "startTime": 1, "endTime": 2})

    asyncio.run(prepare())
    from leaderboard.main import app

    with TestClient(app) as client:
        view = client.get("/api/leaderboard").json()
    assert view["phase"] == "completed"
    assert [e["name"] for e in view["entries"]][:3] == ["Cara", "Ana", "Ema"]


def test_seed_is_idempotent(tmp_path):
    from leaderboard.scripts.seed import DEMO_PLAYERS, seed
    from leaderboard.storage import JsonTreeStore

    store = JsonTreeStore(tmp_path)
    assert asyncio.run(seed(store)) == len(DEMO_PLAYERS)
    assert asyncio.run(seed(store)) == 0


def test_duration_helpers():
    assert settings.duration_ms == settings.competition_duration_sec * 1000
    assert settings.duration_minutes == settings.competition_duration_sec / 60
    assert settings.duration_hours == settings.competition_duration_sec / 3600
