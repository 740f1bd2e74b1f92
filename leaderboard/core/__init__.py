from .competition import (
    CompetitionState,
    CompetitionStateError,
    format_countdown,
    remaining_ticks,
)
from .controller import CompetitionController
from .ranking import GameScores, ScoreRecord, aggregate_scores, rank_entries
from .types import Phase

__all__ = [
    "CompetitionController",
    "CompetitionState",
    "CompetitionStateError",
    "GameScores",
    "Phase",
    "ScoreRecord",
    "aggregate_scores",
    "format_countdown",
    "rank_entries",
    "remaining_ticks",
]
