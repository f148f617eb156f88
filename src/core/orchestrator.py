"""Core reminder sweep.

This module is integration-agnostic. It only relies on the dispatcher, which
in turn relies on the gateway port, so every trigger path (scheduled sweep,
single-note check) shares the same skip and dispatch rules.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Iterable, Optional

from core.config import SweepConfig
from core.deadline import as_utc, classify, utc_now
from core.dispatcher import ReminderDispatcher
from core.errors import GatewayAuthError, ReminderError
from core.formatting import format_reminder
from core.models import (
    FUTURE,
    PAST,
    SENT,
    SKIP_CANCELLED,
    SKIP_COMPLETED,
    SKIP_NO_DEADLINE,
    SKIP_NO_PHONE,
    SKIP_NOT_IMMINENT,
    SKIP_PAST,
    DeadlineClassification,
    DispatchOutcome,
    ReminderCandidate,
    SweepResult,
)
from core.phone import normalize_phone, to_dispatch_form

LOGGER = logging.getLogger(__name__)


def screen_candidate(
    candidate: ReminderCandidate, now: datetime
) -> tuple[Optional[DeadlineClassification], Optional[DispatchOutcome]]:
    """Apply the skip rules in order.

    Returns the classification plus a skip outcome, or no outcome when the
    candidate should be dispatched.
    """

    if candidate.is_completed:
        return None, DispatchOutcome.skipped(candidate.note_id, SKIP_COMPLETED)
    if candidate.deadline is None:
        return None, DispatchOutcome.skipped(candidate.note_id, SKIP_NO_DEADLINE)

    classification = classify(candidate.deadline, now)
    if classification.status == FUTURE:
        return classification, DispatchOutcome.skipped(
            candidate.note_id, SKIP_NOT_IMMINENT, classification.delta_hours
        )
    if classification.status == PAST:
        return classification, DispatchOutcome.skipped(
            candidate.note_id, SKIP_PAST, classification.delta_hours
        )

    if not (candidate.phone_number or "").strip():
        return classification, DispatchOutcome.skipped(candidate.note_id, SKIP_NO_PHONE)
    return classification, None


class ReminderOrchestrator:
    """Evaluates candidates and dispatches reminders for imminent deadlines."""

    def __init__(self, dispatcher: ReminderDispatcher, config: Optional[SweepConfig] = None) -> None:
        self._dispatcher = dispatcher
        self._config = config or SweepConfig()

    async def _deliver(
        self,
        candidate: ReminderCandidate,
        classification: DeadlineClassification,
        now: datetime,
    ) -> DispatchOutcome:
        try:
            message = format_reminder(candidate.title, candidate.deadline, now)
            phone = to_dispatch_form(normalize_phone(candidate.phone_number), self._dispatcher.country_code)
            await self._dispatcher.dispatch(phone, message)
        except GatewayAuthError:
            raise
        except ReminderError as exc:
            LOGGER.warning("Reminder for note %s failed: %s", candidate.note_id, exc)
            return DispatchOutcome.failed(candidate.note_id, exc)
        except Exception as exc:
            LOGGER.exception("Unexpected error while sending reminder for note %s", candidate.note_id)
            return DispatchOutcome.failed(candidate.note_id, exc)

        LOGGER.info(
            "Reminder sent for note %s (%s hours left)", candidate.note_id, classification.delta_hours
        )
        return DispatchOutcome.sent(candidate.note_id, phone, classification.delta_hours)

    async def run_sweep(
        self,
        candidates: Iterable[ReminderCandidate],
        now: Optional[datetime] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SweepResult:
        """Process one batch of candidates and return one outcome per candidate.

        Outcomes keep the input order even when dispatches run concurrently.
        Once cancel_event is set no new dispatch starts; the remaining
        candidates are recorded as skipped("cancelled").
        """

        reference = as_utc(now) if now is not None else utc_now()
        batch = list(candidates)
        outcomes: list[Optional[DispatchOutcome]] = [None] * len(batch)
        pending: list[tuple[int, ReminderCandidate, DeadlineClassification]] = []

        for index, candidate in enumerate(batch):
            classification, skip = screen_candidate(candidate, reference)
            if skip is not None:
                LOGGER.debug("Skipping note %s (%s)", candidate.note_id, skip.reason)
                outcomes[index] = skip
            else:
                pending.append((index, candidate, classification))

        # A missing token fails the whole sweep before any message goes out.
        if pending:
            self._dispatcher.ensure_configured()

        semaphore = asyncio.Semaphore(max(1, self._config.max_concurrency))

        async def _run_one(index: int, candidate: ReminderCandidate, classification: DeadlineClassification) -> None:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    outcomes[index] = DispatchOutcome.skipped(candidate.note_id, SKIP_CANCELLED)
                    return
                # Shielded so a cancelled sweep never abandons a send halfway.
                outcomes[index] = await asyncio.shield(self._deliver(candidate, classification, reference))

        await asyncio.gather(*(_run_one(*item) for item in pending))

        result = SweepResult(processed=len(batch), outcomes=[outcome for outcome in outcomes if outcome])
        LOGGER.info(
            "Sweep complete: processed=%s, sent=%s",
            result.processed,
            sum(1 for outcome in result.outcomes if outcome.status == SENT),
        )
        return result
