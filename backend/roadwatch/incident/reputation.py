"""
Reputation Ledger

Running reporter reputation fed by the raw signed deltas the incident
store emits (+3 submit, +2 confirm, -1 deny). The total never drops
below zero.
"""

import threading
from typing import Optional


class ReputationLedger:
    """Clamp-at-zero reputation total"""

    def __init__(self, initial_score: int = 0):
        self._score = max(0, int(initial_score))
        self._lock = threading.Lock()
        self.total_deltas = 0

    @property
    def score(self) -> int:
        return self._score

    def apply(self, delta: int) -> int:
        """Apply a signed delta and return the new score"""
        with self._lock:
            self._score = max(0, self._score + int(delta))
            self.total_deltas += 1
            return self._score

    def reset(self):
        with self._lock:
            self._score = 0
            self.total_deltas = 0


# ============================================
# Global Instance Management
# ============================================

_reputation_ledger: Optional[ReputationLedger] = None


def init_reputation_ledger(initial_score: int = 0) -> ReputationLedger:
    """Initialize global reputation ledger"""
    global _reputation_ledger
    _reputation_ledger = ReputationLedger(initial_score)
    return _reputation_ledger


def get_reputation_ledger() -> Optional[ReputationLedger]:
    """Get global reputation ledger"""
    return _reputation_ledger


def set_reputation_ledger(ledger: Optional[ReputationLedger]):
    """Set global reputation ledger"""
    global _reputation_ledger
    _reputation_ledger = ledger
