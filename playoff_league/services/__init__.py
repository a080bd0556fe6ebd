"""
Service layer: round lifecycle, submissions, settlement, leaderboards.
Scoring math lives in fantasy_scoring / predictor_scoring; services orchestrate persistence.
"""
from .round_service import (
    RoundService,
    RoundNotFoundError,
    RoundAdvanceError,
    RoundLockedError,
    EntryLockedError,
)
from .roster_service import RosterService, SlotPreview
from .prediction_service import PredictionService, PredictionResult, GameNotFoundError
from .settlement_service import SettlementService, SettlementError, SettlementSummary
from .leaderboard_service import LeaderboardService

__all__ = [
    "RoundService",
    "RoundNotFoundError",
    "RoundAdvanceError",
    "RoundLockedError",
    "EntryLockedError",
    "RosterService",
    "SlotPreview",
    "PredictionService",
    "PredictionResult",
    "GameNotFoundError",
    "SettlementService",
    "SettlementError",
    "SettlementSummary",
    "LeaderboardService",
]
