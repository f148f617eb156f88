from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Optional

import pytest

from core.errors import CandidateFetchError, CandidateNotFoundError
from core.models import ReminderCandidate
from core.orchestrator import ReminderOrchestrator
from core.triggers import ReminderTriggers
from fakes import FakeGateway


class FakeSource:
    def __init__(self, candidates: list[ReminderCandidate], error: Optional[Exception] = None) -> None:
        self._candidates = candidates
        self._error = error
        self.windows: list[tuple[datetime, datetime]] = []

    def fetch_candidates(self, window_start: datetime, window_end: datetime) -> list[ReminderCandidate]:
        if self._error is not None:
            raise self._error
        self.windows.append((window_start, window_end))
        return [c for c in self._candidates if c.deadline and window_start <= c.deadline <= window_end]

    def get_candidate(self, note_id: str, user_id: str) -> Optional[ReminderCandidate]:
        if user_id != "owner":
            return None
        return next((c for c in self._candidates if c.note_id == note_id), None)


def _candidate(note_id: str, deadline: datetime) -> ReminderCandidate:
    return ReminderCandidate(
        note_id=note_id,
        title=f"Note {note_id}",
        deadline=deadline,
        phone_number="081234567890",
    )


def test_scheduled_sweep_uses_next_24_hours(now: datetime, dispatcher, gateway: FakeGateway) -> None:
    source = FakeSource([_candidate("A", now + timedelta(hours=3)), _candidate("B", now + timedelta(hours=30))])
    triggers = ReminderTriggers(source, ReminderOrchestrator(dispatcher))

    result = asyncio.run(triggers.scheduled_sweep(now=now))

    assert source.windows == [(now, now + timedelta(hours=24))]
    assert result.to_dict() == {
        "processed": 1,
        "outcomes": [{"noteId": "A", "status": "sent", "phoneNumber": "6281234567890", "hoursDiff": 3}],
    }
    assert len(gateway.calls) == 1


def test_scheduled_sweep_with_explicit_window(now: datetime, dispatcher) -> None:
    source = FakeSource([])
    triggers = ReminderTriggers(source, ReminderOrchestrator(dispatcher))
    start = now - timedelta(hours=1)
    end = now + timedelta(hours=2)

    asyncio.run(triggers.scheduled_sweep(now=now, window_start=start, window_end=end))

    assert source.windows == [(start, end)]


def test_fetch_failure_propagates(now: datetime, dispatcher) -> None:
    source = FakeSource([], error=CandidateFetchError("database unavailable"))
    triggers = ReminderTriggers(source, ReminderOrchestrator(dispatcher))

    with pytest.raises(CandidateFetchError):
        asyncio.run(triggers.scheduled_sweep(now=now))


def test_check_note_routes_single_candidate(now: datetime, dispatcher, gateway: FakeGateway) -> None:
    source = FakeSource([_candidate("A", now + timedelta(hours=30))])
    triggers = ReminderTriggers(source, ReminderOrchestrator(dispatcher))

    far = asyncio.run(triggers.check_note("A", "owner", now=now))
    assert far.outcomes[0].reason == "not-imminent"

    # The caller's fresh deadline wins over the stored one.
    soon = asyncio.run(triggers.check_note("A", "owner", deadline=now + timedelta(hours=1), now=now))
    assert soon.processed == 1
    assert soon.outcomes[0].status == "sent"
    assert len(gateway.calls) == 1


def test_check_note_unknown_note(now: datetime, dispatcher) -> None:
    triggers = ReminderTriggers(FakeSource([]), ReminderOrchestrator(dispatcher))
    with pytest.raises(CandidateNotFoundError):
        asyncio.run(triggers.check_note("missing", "owner", now=now))
