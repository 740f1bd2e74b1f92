"""Score aggregation: raw participant records -> ordered Ranking.

Single source of truth for leaderboard ordering across API/WS:
- Only entries carrying a nested `user` object and a `TotalScore` are ranked.
- `TotalScore` is authoritative; sub-scores are displayed, never summed.
- Order is descending by total with a stable sort, so ties keep the
  enumeration order of the snapshot.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from .types import GameScoresDict, LeaderboardEntry

DEFAULT_NAME = "Unknown"
DEFAULT_EMAIL = "No email"

PODIUM = (
    ("gold", "#ffd700"),
    ("silver", "#c0c0c0"),
    ("bronze", "#cd7f32"),
)


@dataclass(frozen=True)
class GameScores:
    escape_room: int = 0
    pacman: int = 0
    pizzeria: int = 0
    tetris: int = 0

    def to_dict(self) -> GameScoresDict:
        return {
            "escapeRoom": self.escape_room,
            "pacman": self.pacman,
            "pizzeria": self.pizzeria,
            "tetris": self.tetris,
        }


@dataclass(frozen=True)
class ScoreRecord:
    id: str
    name: str = DEFAULT_NAME
    email: str = DEFAULT_EMAIL
    total_score: int = 0
    game_scores: GameScores = GameScores()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "totalScore": self.total_score,
            "gameScores": self.game_scores.to_dict(),
        }


def _coerce_score(value: Any) -> int:
    # Falsy (missing/None/0/"") -> 0; numeric strings are accepted.
    if not value or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0
    if isinstance(value, float):
        # inf/nan (JSON Infinity, "1e400") count as missing.
        return int(value) if math.isfinite(value) else 0
    return 0


def _coerce_text(value: Any, default: str) -> str:
    if not value:
        return default
    return value if isinstance(value, str) else str(value)


def _to_record(participant_id: str, data: Mapping[str, Any]) -> ScoreRecord:
    user = data["user"]
    return ScoreRecord(
        id=str(participant_id),
        name=_coerce_text(user.get("Name"), DEFAULT_NAME),
        email=_coerce_text(user.get("email"), DEFAULT_EMAIL),
        total_score=_coerce_score(data.get("TotalScore")),
        game_scores=GameScores(
            escape_room=_coerce_score(data.get("EscapeRoomScore")),
            pacman=_coerce_score(data.get("PacmanScore")),
            pizzeria=_coerce_score(data.get("PizzeriaScore")),
            tetris=_coerce_score(data.get("TetrisScore")),
        ),
    )


def is_rankable(data: Any) -> bool:
    """True when a raw entry has a nested user object and a defined total."""
    return (
        isinstance(data, Mapping)
        and isinstance(data.get("user"), Mapping)
        and data.get("TotalScore") is not None
    )


def aggregate_scores(raw: Mapping[str, Any] | None) -> list[ScoreRecord]:
    """Build the Ranking for a raw snapshot (pure; never raises on bad entries)."""
    if not raw or not isinstance(raw, Mapping):
        return []
    records = [
        _to_record(participant_id, data)
        for participant_id, data in raw.items()
        if is_rankable(data)
    ]
    # sorted() is stable: equal totals keep snapshot order.
    return sorted(records, key=lambda record: record.total_score, reverse=True)


def rank_entries(ranking: Sequence[ScoreRecord]) -> list[LeaderboardEntry]:
    """Number the Ranking (1-based) and tag the podium places."""
    entries: list[LeaderboardEntry] = []
    for idx, record in enumerate(ranking):
        medal, color = PODIUM[idx] if idx < len(PODIUM) else (None, None)
        entry = record.to_dict()
        entries.append(
            {
                "rank": idx + 1,
                "medal": medal,
                "color": color,
                **entry,
            }
        )
    return entries
