from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class OutcomeStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ItemOutcome:
    status: OutcomeStatus
    reason: str | None = None
    index: int | None = None

    @classmethod
    def applied(cls, index: int | None = None) -> "ItemOutcome":
        return cls(OutcomeStatus.APPLIED, index=index)

    @classmethod
    def skipped(cls, reason: str, index: int | None = None) -> "ItemOutcome":
        return cls(OutcomeStatus.SKIPPED, reason=reason, index=index)

    @classmethod
    def failed(cls, reason: str, index: int | None = None) -> "ItemOutcome":
        return cls(OutcomeStatus.FAILED, reason=reason, index=index)

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.APPLIED

