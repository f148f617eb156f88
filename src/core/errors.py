"""Error taxonomy for reminder evaluation and dispatch."""

from __future__ import annotations

from typing import Optional


class ReminderError(Exception):
    """Base class for all reminder errors."""


class InvalidPhoneError(ReminderError, ValueError):
    """Raised when a phone number has no digits left after stripping."""


class GatewayError(ReminderError):
    """Base class for messaging gateway failures."""


class GatewayAuthError(GatewayError):
    """The gateway token is missing. Fatal for the whole sweep."""


class GatewayRequestError(GatewayError):
    """Transport failure, timeout, non-success status or malformed payload."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GatewayRejectedError(GatewayError):
    """The gateway answered but reported status=false."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Gateway rejected message: {reason}")
        self.reason = reason


class CandidateFetchError(ReminderError):
    """The persistence layer could not provide candidates."""


class CandidateNotFoundError(CandidateFetchError):
    """A single-note check referenced an unknown note or owner."""
