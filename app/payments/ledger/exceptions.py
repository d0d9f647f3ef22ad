"""
Ledger-specific exceptions.

Exception Hierarchy:
    LedgerError (base)
    └── InsufficientBalance - Reservation larger than the current balance

Usage:
    from payments.ledger.exceptions import InsufficientBalance

    try:
        ledger.reserve(user, 30, story=story, reason="story_reserve", source="story_create")
    except InsufficientBalance as e:
        print(f"Need {e.required}, have {e.available}")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from typing import Any


class LedgerError(BaseApplicationError):
    """Base exception for all ledger operations."""

    default_error_code: str = "LEDGER_ERROR"


class InsufficientBalance(LedgerError):
    """
    Raised by reserve() when the balance cannot cover the amount.

    Nothing has been written when this is raised.

    Attributes:
        kind: LedgerKind value ("credits" or "audio_stars")
        required: Amount that was requested
        available: Balance at the time of the check
    """

    default_error_code: str = "INSUFFICIENT_BALANCE"
    http_status = 402

    def __init__(
        self,
        kind: str,
        required: int,
        available: int,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.kind = kind
        self.required = required
        self.available = available

        full_details = {
            "kind": str(kind),
            "required": required,
            "available": available,
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=f"Insufficient {kind} balance: required {required}, available {available}",
            error_code=error_code,
            details=full_details,
        )
