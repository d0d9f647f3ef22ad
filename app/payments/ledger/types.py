"""
Data types for ledger operations.

Types:
    Balances: Both balances of a user, as returned by the balance endpoint
    LedgerTag: (reason, source) pair stamped on reserve and refund entries

refund_once() deduplicates on (user, story, reason, source), so every caller
must use the same pair for the same kind of refund. A story can be narrated
more than once, so audio reserves and refunds are scoped to their job with
for_job().
"""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class Balances:
    credits: int
    audio_stars: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class LedgerTag:
    """
    Reason/source pair for a ledger entry.

    Example:
        ledger.reserve(user, cost, story=story, tag=STORY_RESERVE)
    """

    reason: str
    source: str

    def for_job(self, job_id: str) -> LedgerTag:
        """Same reason, with the source narrowed to one job."""
        return LedgerTag(self.reason, f"{self.source}:{job_id}")


STORY_RESERVE = LedgerTag("story_reserve", "story_create")
QUEUE_FAILED = LedgerTag("queue_failed", "story_create")
STORY_FAILED = LedgerTag("story_failed", "worker")
AUDIO_RESERVE = LedgerTag("audio_reserve", "audio_create")
AUDIO_QUEUE_FAILED = LedgerTag("queue_failed", "audio_create")
AUDIO_FAILED = LedgerTag("audio_failed", "audio_worker")
