"""Type definitions for raw store records and the published view."""
from __future__ import annotations

from typing import List, Literal, Optional, TypedDict

Phase = Literal["idle", "running", "completed"]


class RawUser(TypedDict, total=False):
    Name: str
    email: str


class RawParticipant(TypedDict, total=False):
    """
    One participant node as written by the games into the shared store.

    Only entries with both `user` and `TotalScore` are ranked.
    """
    user: RawUser
    TotalScore: int
    EscapeRoomScore: int
    PacmanScore: int
    PizzeriaScore: int
    TetrisScore: int


class CompetitionStateDict(TypedDict):
    active: bool
    startTime: Optional[int]  # epoch ms
    endTime: Optional[int]  # epoch ms


class GameScoresDict(TypedDict):
    escapeRoom: int
    pacman: int
    pizzeria: int
    tetris: int


class LeaderboardEntry(TypedDict):
    rank: int
    medal: Optional[str]  # 'gold' | 'silver' | 'bronze' for the podium
    color: Optional[str]
    id: str
    name: str
    email: str
    totalScore: int
    gameScores: GameScoresDict


class LeaderboardView(TypedDict):
    type: str
    phase: Phase
    loading: bool
    error: Optional[str]
    competition: CompetitionStateDict
    durationSec: int
    countdown: int
    countdownDisplay: str
    message: Optional[str]
    entries: List[LeaderboardEntry]
