"""Configuration management for Execution OS.

Loads settings from environment variables and .env file.
Scoring deltas live here too: how much a late task costs is policy, not logic.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from execos.models import GamificationOutcome

load_dotenv()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _default_deltas() -> dict[GamificationOutcome, int]:
    return {
        GamificationOutcome.ON_TIME: _env_int("EXECOS_DELTA_ON_TIME", 10),
        GamificationOutcome.LATE: _env_int("EXECOS_DELTA_LATE", 5),
        GamificationOutcome.POSTPONED: _env_int("EXECOS_DELTA_POSTPONED", -5),
        GamificationOutcome.NOT_CONFIRMED: _env_int("EXECOS_DELTA_NOT_CONFIRMED", -8),
    }


class ExecOSConfig(BaseModel):
    """Application configuration — all from env vars or defaults."""

    # Storage
    db_path: str = Field(
        default_factory=lambda: os.getenv(
            "EXECOS_DB_PATH",
            str(Path.home() / ".execos" / "execos.db"),
        )
    )

    # Deep work
    minimum_block_minutes: int = Field(
        default_factory=lambda: _env_int("EXECOS_MIN_BLOCK_MINUTES", 45)
    )

    # Front health
    traction_days: int = Field(
        default_factory=lambda: _env_int("EXECOS_TRACTION_DAYS", 14)
    )

    # Gamification
    gamification_deltas: dict[GamificationOutcome, int] = Field(
        default_factory=_default_deltas
    )

    def ensure_data_dir(self) -> Path:
        """Create the database directory if it doesn't exist."""
        p = Path(self.db_path).expanduser().parent
        p.mkdir(parents=True, exist_ok=True)
        return p


def load_config() -> ExecOSConfig:
    """Load configuration from environment."""
    return ExecOSConfig()
