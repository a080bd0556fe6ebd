"""
Persistence layer for league data.
No business logic and no scoring; only read/write interfaces.
"""
from .db import get_connection, init_db, set_db_path, transaction
from .repositories import (
    UserRepository,
    RoundRepository,
    GameRepository,
    PlayerRepository,
    RosterRepository,
    StatLineRepository,
    PredictorEntryRepository,
    RosterSpotScoreRepository,
    PredictorPointRepository,
)

__all__ = [
    "get_connection",
    "init_db",
    "set_db_path",
    "transaction",
    "UserRepository",
    "RoundRepository",
    "GameRepository",
    "PlayerRepository",
    "RosterRepository",
    "StatLineRepository",
    "PredictorEntryRepository",
    "RosterSpotScoreRepository",
    "PredictorPointRepository",
]
