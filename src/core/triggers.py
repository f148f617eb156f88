"""Sweep trigger entry points.

Both the periodic sweep and the single-note check after a mutation are thin
adapters that pick candidates and hand them to the same orchestrator.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from core.deadline import as_utc, utc_now
from core.errors import CandidateNotFoundError
from core.models import SweepResult
from core.orchestrator import ReminderOrchestrator
from core.ports import CandidateSourcePort

LOGGER = logging.getLogger(__name__)


class ReminderTriggers:
    """Entry points invoked by a scheduler, the CLI, or note mutations."""

    def __init__(
        self,
        source: CandidateSourcePort,
        orchestrator: ReminderOrchestrator,
        window_hours: int = 24,
    ) -> None:
        self._source = source
        self._orchestrator = orchestrator
        self._window = timedelta(hours=window_hours)

    async def scheduled_sweep(
        self,
        now: Optional[datetime] = None,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> SweepResult:
        """Sweep every open note due in the window, by default [now, now + 24h].

        CandidateFetchError from the source propagates: with no candidates
        there is nothing to report per note.
        """

        reference = as_utc(now) if now is not None else utc_now()
        start = as_utc(window_start) if window_start is not None else reference
        end = as_utc(window_end) if window_end is not None else start + self._window

        candidates = self._source.fetch_candidates(start, end)
        LOGGER.info("Found %s notes with deadlines between %s and %s", len(candidates), start, end)
        return await self._orchestrator.run_sweep(candidates, now=reference)

    async def check_note(
        self,
        note_id: str,
        user_id: str,
        deadline: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> SweepResult:
        """Check a single note right after it was created or updated.

        A deadline supplied by the caller takes precedence over the stored one.
        """

        candidate = self._source.get_candidate(note_id, user_id)
        if candidate is None:
            raise CandidateNotFoundError(f"Note {note_id} not found for user {user_id}")
        if deadline is not None:
            candidate = replace(candidate, deadline=as_utc(deadline))
        LOGGER.info("Auto-checking deadline for note %s", note_id)
        return await self._orchestrator.run_sweep([candidate], now=now)
