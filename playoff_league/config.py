"""
Runtime configuration from the environment.
Values are read once at import; tests override by passing explicit arguments.
"""
from __future__ import annotations

import logging
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path

from playoff_league.models import PredictorLockMode

# Wild Card, Divisional, Conference Championship, Super Bowl
DEFAULT_ROUND_WEIGHTS = "1:1.0,2:1.4,3:1.8,4:2.5"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def parse_round_weights(spec: str) -> dict[int, Decimal]:
    """Parse "1:1.0,2:1.4" into {1: Decimal("1.0"), 2: Decimal("1.4")}."""
    weights: dict[int, Decimal] = {}
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        number, sep, weight = part.partition(":")
        if not sep:
            raise ValueError(f"Invalid round weight entry {part!r}; expected '<round_number>:<weight>'")
        try:
            round_number = int(number)
            value = Decimal(weight.strip())
        except (ValueError, InvalidOperation):
            raise ValueError(f"Invalid round weight entry {part!r}") from None
        if round_number < 1 or value <= 0:
            raise ValueError(f"Invalid round weight entry {part!r}; round and weight must be positive")
        weights[round_number] = value
    return weights


def _default_db_path() -> Path:
    return Path(__file__).resolve().parent.parent / "data" / "league.db"


DB_PATH = Path(os.environ.get("PLAYOFF_DB_PATH", "") or _default_db_path())
ROUND_WEIGHTS: dict[int, Decimal] = parse_round_weights(
    os.environ.get("PLAYOFF_ROUND_WEIGHTS", DEFAULT_ROUND_WEIGHTS)
)
PREDICTOR_LOCK_MODE = PredictorLockMode(
    os.environ.get("PLAYOFF_PREDICTOR_LOCK_MODE", PredictorLockMode.KICKOFF.value).strip().lower()
)
LOG_LEVEL = os.environ.get("PLAYOFF_LOG_LEVEL", "INFO").upper()


def configure_logging(level: str | None = None) -> None:
    """Attach a stream handler to the package logger (idempotent)."""
    logger = logging.getLogger("playoff_league")
    logger.setLevel(level or LOG_LEVEL)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
