"""Competition state record and countdown helpers (pure, no I/O)."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .types import CompetitionStateDict, Phase


class CompetitionStateError(Exception):
    """Raised when a transition is requested from the wrong phase."""

    def __init__(self, action: str, phase: Phase) -> None:
        self.action = action
        self.phase = phase
        super().__init__(f"cannot {action} while {phase}")


def _coerce_ms(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class CompetitionState:
    active: bool = False
    start_time: Optional[int] = None
    end_time: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "CompetitionState":
        """Tolerant parse of the stored record; anything unusable maps to the reset state."""
        if not isinstance(data, Mapping):
            return cls()
        return cls(
            active=data.get("active") is True,
            start_time=_coerce_ms(data.get("startTime")),
            end_time=_coerce_ms(data.get("endTime")),
        )

    def to_dict(self) -> CompetitionStateDict:
        return {
            "active": self.active,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }

    @property
    def is_running(self) -> bool:
        return self.active and self.start_time is not None

    @property
    def is_concluded(self) -> bool:
        return not self.active and self.end_time is not None


def remaining_ticks(start_time_ms: int, now_ms: int, duration_sec: int) -> int:
    """Whole seconds left in a run started at `start_time_ms` (never negative)."""
    remaining_ms = duration_sec * 1000 - (now_ms - start_time_ms)
    if remaining_ms <= 0:
        return 0
    return math.ceil(remaining_ms / 1000)


def format_countdown(seconds: int | float | None) -> str:
    """Format seconds as HH:MM:SS (negative/None render as zero)."""
    total = max(0, int(seconds or 0))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
