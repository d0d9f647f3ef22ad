"""
Ledger - append-only balance log for credits and audio stars.

Public API:
    Models:
        LedgerAccount - Per-user lock row for one balance kind
        CreditTransaction / AudioStarTransaction - Signed entries
        LedgerKind - Enum of balance kinds
        EntryType - Enum of entry types

    Service:
        ledger - Singleton instance of LedgerService
        LedgerService - balance / reserve / grant / refund_once

    Types:
        Balances - Both balances of a user
        LedgerTag - Reason/source pair and the fixed tags used by callers

    Exceptions:
        LedgerError - Base exception for ledger operations
        InsufficientBalance - Reservation larger than the balance

Usage:
    from payments.ledger import ledger, STORY_RESERVE, InsufficientBalance

    try:
        ledger.reserve(user, 30, story=story, tag=STORY_RESERVE)
    except InsufficientBalance as e:
        print(f"Need {e.required}, have {e.available}")
"""

from .exceptions import InsufficientBalance, LedgerError
from .models import (
    AudioStarTransaction,
    CreditTransaction,
    EntryType,
    LedgerAccount,
    LedgerKind,
)
from .services import LedgerService, ledger
from .types import (
    AUDIO_FAILED,
    AUDIO_QUEUE_FAILED,
    AUDIO_RESERVE,
    QUEUE_FAILED,
    STORY_FAILED,
    STORY_RESERVE,
    Balances,
    LedgerTag,
)

__all__ = [
    # Models
    "LedgerAccount",
    "CreditTransaction",
    "AudioStarTransaction",
    "LedgerKind",
    "EntryType",
    # Service
    "ledger",
    "LedgerService",
    # Types
    "Balances",
    "LedgerTag",
    "STORY_RESERVE",
    "QUEUE_FAILED",
    "STORY_FAILED",
    "AUDIO_RESERVE",
    "AUDIO_QUEUE_FAILED",
    "AUDIO_FAILED",
    # Exceptions
    "LedgerError",
    "InsufficientBalance",
]
