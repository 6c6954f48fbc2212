"""
Reputation package.

Tracks invalid-data reports per (city, country) and blocks pairs that
accumulate enough of them.
"""

from services.airquality.reputation.store import (
    BLOCK_THRESHOLD,
    FlagResult,
    ReputationEntry,
    ReputationStore,
    UnflagResult,
)

__all__ = ["BLOCK_THRESHOLD", "FlagResult", "ReputationEntry", "ReputationStore", "UnflagResult"]
