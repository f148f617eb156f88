"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any storage or gateway-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

# Deadline classification statuses.
PAST = "past"
IMMINENT = "imminent"
FUTURE = "future"

# Dispatch outcome statuses.
SENT = "sent"
SKIPPED = "skipped"
FAILED = "failed"

# Skip reasons recorded by the orchestrator.
SKIP_COMPLETED = "completed"
SKIP_NO_DEADLINE = "no-deadline"
SKIP_NOT_IMMINENT = "not-imminent"
SKIP_PAST = "past"
SKIP_NO_PHONE = "no-phone"
SKIP_CANCELLED = "cancelled"


@dataclass(frozen=True)
class ReminderCandidate:
    """Read-only projection of a note joined with its owner's phone number."""

    note_id: str
    title: str
    deadline: Optional[datetime]
    phone_number: Optional[str]
    is_completed: bool = False


@dataclass(frozen=True)
class DeadlineClassification:
    """Result of comparing a deadline with a reference instant."""

    status: str
    delta_hours: int


@dataclass(frozen=True)
class DispatchReceipt:
    """Opaque success payload returned by the gateway."""

    target: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GatewayAccepted:
    payload: dict[str, Any]


@dataclass(frozen=True)
class GatewayRejected:
    reason: str
    payload: dict[str, Any]


@dataclass(frozen=True)
class GatewayMalformed:
    detail: str


GatewayReply = Union[GatewayAccepted, GatewayRejected, GatewayMalformed]


@dataclass(frozen=True)
class DispatchOutcome:
    """Per-candidate result of a sweep."""

    note_id: str
    status: str
    reason: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    phone_number: Optional[str] = None
    hours_delta: Optional[int] = None

    @classmethod
    def sent(cls, note_id: str, phone_number: str, hours_delta: int) -> "DispatchOutcome":
        return cls(note_id=note_id, status=SENT, phone_number=phone_number, hours_delta=hours_delta)

    @classmethod
    def skipped(cls, note_id: str, reason: str, hours_delta: Optional[int] = None) -> "DispatchOutcome":
        return cls(note_id=note_id, status=SKIPPED, reason=reason, hours_delta=hours_delta)

    @classmethod
    def failed(cls, note_id: str, error: Exception) -> "DispatchOutcome":
        return cls(
            note_id=note_id,
            status=FAILED,
            error=str(error),
            error_type=type(error).__name__,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly dict, omitting empty fields."""

        data: dict[str, Any] = {"noteId": self.note_id, "status": self.status}
        if self.reason is not None:
            data["reason"] = self.reason
        if self.error is not None:
            data["error"] = self.error
            data["errorType"] = self.error_type
        if self.phone_number is not None:
            data["phoneNumber"] = self.phone_number
        if self.hours_delta is not None:
            data["hoursDiff"] = self.hours_delta
        return data


@dataclass(frozen=True)
class SweepResult:
    """Structured response returned to trigger callers."""

    processed: int
    outcomes: list[DispatchOutcome]

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }
