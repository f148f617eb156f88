"""Ports (interfaces) used by the reminder core.

Ports define the minimal contracts for the persistence and messaging adapters
so that the core can be reused with different backends.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from core.models import GatewayReply, ReminderCandidate


class CandidateSourcePort(Protocol):
    """Read operations required from the notes persistence layer.

    Implementations raise CandidateFetchError when the backend fails.
    """

    def fetch_candidates(self, window_start: datetime, window_end: datetime) -> list[ReminderCandidate]:
        ...

    def get_candidate(self, note_id: str, user_id: str) -> Optional[ReminderCandidate]:
        ...


class GatewayPort(Protocol):
    """Messaging gateway transport.

    Transport problems raise GatewayRequestError; anything the gateway answers
    is decoded into a typed GatewayReply.
    """

    async def send(self, target: str, message: str, country_code: str) -> GatewayReply:
        ...
