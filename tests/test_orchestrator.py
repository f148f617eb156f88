from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Optional

import pytest

from core.config import GatewayConfig, SweepConfig
from core.dispatcher import ReminderDispatcher
from core.errors import GatewayAuthError, GatewayRequestError
from core.models import GatewayAccepted, GatewayRejected, ReminderCandidate
from core.orchestrator import ReminderOrchestrator
from fakes import FakeGateway


def _candidate(
    note_id: str,
    deadline: Optional[datetime],
    phone: Optional[str] = "081234567890",
    completed: bool = False,
) -> ReminderCandidate:
    return ReminderCandidate(
        note_id=note_id,
        title=f"Note {note_id}",
        deadline=deadline,
        phone_number=phone,
        is_completed=completed,
    )


def test_mixed_batch_sends_only_imminent_open_notes(now: datetime, dispatcher, gateway: FakeGateway) -> None:
    candidates = [
        _candidate("A", now + timedelta(hours=2), phone="081200000001"),
        _candidate("B", now - timedelta(hours=1), phone="081300000002"),
        _candidate("C", now + timedelta(hours=2), phone="081400000003", completed=True),
    ]

    result = asyncio.run(ReminderOrchestrator(dispatcher).run_sweep(candidates, now=now))

    assert result.processed == 3
    assert [(o.note_id, o.status, o.reason) for o in result.outcomes] == [
        ("A", "sent", None),
        ("B", "skipped", "past"),
        ("C", "skipped", "completed"),
    ]
    assert result.outcomes[0].phone_number == "6281200000001"
    assert result.outcomes[0].hours_delta == 2
    assert len(gateway.calls) == 1
    target, message, country_code = gateway.calls[0]
    assert target == "81200000001"
    assert country_code == "62"
    assert "Note A" in message


def test_completed_note_never_reaches_gateway(now: datetime, dispatcher, gateway: FakeGateway) -> None:
    candidates = [_candidate("A", now + timedelta(hours=1), completed=True)]
    result = asyncio.run(ReminderOrchestrator(dispatcher).run_sweep(candidates, now=now))
    assert result.outcomes[0].reason == "completed"
    assert gateway.calls == []


@pytest.mark.parametrize("phone", [None, "", "   "])
def test_missing_phone_is_skipped(now: datetime, dispatcher, gateway: FakeGateway, phone) -> None:
    candidates = [_candidate("A", now + timedelta(hours=1), phone=phone)]
    result = asyncio.run(ReminderOrchestrator(dispatcher).run_sweep(candidates, now=now))
    assert result.outcomes[0].status == "skipped"
    assert result.outcomes[0].reason == "no-phone"
    assert gateway.calls == []


def test_missing_and_far_deadlines_are_skipped(now: datetime, dispatcher, gateway: FakeGateway) -> None:
    candidates = [
        _candidate("A", None),
        _candidate("B", now + timedelta(hours=24, minutes=1)),
    ]
    result = asyncio.run(ReminderOrchestrator(dispatcher).run_sweep(candidates, now=now))
    assert [o.reason for o in result.outcomes] == ["no-deadline", "not-imminent"]
    assert result.outcomes[1].hours_delta == 25
    assert gateway.calls == []


def test_rejection_is_recorded_and_sweep_continues(now: datetime) -> None:
    gateway = FakeGateway(
        replies=[
            GatewayRejected(reason="quota exceeded", payload={"status": False, "reason": "quota exceeded"}),
            GatewayAccepted(payload={"status": True}),
        ]
    )
    dispatcher = ReminderDispatcher(GatewayConfig(token="secret-token"), gateway)
    candidates = [
        _candidate("A", now + timedelta(hours=3)),
        _candidate("B", now + timedelta(hours=4)),
    ]

    result = asyncio.run(ReminderOrchestrator(dispatcher).run_sweep(candidates, now=now))

    failed, sent = result.outcomes
    assert failed.status == "failed"
    assert "quota exceeded" in failed.error
    assert failed.error_type == "GatewayRejectedError"
    assert sent.status == "sent"
    assert len(gateway.calls) == 2


def test_transport_error_and_invalid_phone_are_per_candidate(now: datetime) -> None:
    gateway = FakeGateway(replies=[GatewayRequestError("Gateway request failed: timed out")])
    dispatcher = ReminderDispatcher(GatewayConfig(token="secret-token"), gateway)
    candidates = [
        _candidate("A", now + timedelta(hours=3)),
        _candidate("B", now + timedelta(hours=3), phone="n/a"),
        _candidate("C", now + timedelta(hours=3)),
    ]

    result = asyncio.run(ReminderOrchestrator(dispatcher).run_sweep(candidates, now=now))

    assert [o.status for o in result.outcomes] == ["failed", "failed", "sent"]
    assert result.outcomes[0].error_type == "GatewayRequestError"
    assert result.outcomes[1].error_type == "InvalidPhoneError"
    assert len(gateway.calls) == 2


def test_missing_token_aborts_before_any_send(now: datetime, gateway: FakeGateway) -> None:
    dispatcher = ReminderDispatcher(GatewayConfig(token=None), gateway)
    candidates = [_candidate("A", now + timedelta(hours=1))]

    with pytest.raises(GatewayAuthError):
        asyncio.run(ReminderOrchestrator(dispatcher).run_sweep(candidates, now=now))
    assert gateway.calls == []


def test_missing_token_is_fine_when_nothing_to_send(now: datetime, gateway: FakeGateway) -> None:
    dispatcher = ReminderDispatcher(GatewayConfig(token=None), gateway)
    candidates = [_candidate("A", now + timedelta(days=3))]
    result = asyncio.run(ReminderOrchestrator(dispatcher).run_sweep(candidates, now=now))
    assert result.outcomes[0].reason == "not-imminent"


class SlowGateway(FakeGateway):
    async def send(self, target: str, message: str, country_code: str):
        # Earlier candidates take longer so completion order is reversed.
        await asyncio.sleep(0.01 * (4 - int(target[-1])))
        return await super().send(target, message, country_code)


def test_concurrent_dispatch_keeps_input_order(now: datetime) -> None:
    gateway = SlowGateway()
    dispatcher = ReminderDispatcher(GatewayConfig(token="secret-token"), gateway)
    candidates = [_candidate(str(i), now + timedelta(hours=i + 1), phone=f"08120000000{i}") for i in range(4)]

    orchestrator = ReminderOrchestrator(dispatcher, SweepConfig(max_concurrency=4))
    result = asyncio.run(orchestrator.run_sweep(candidates, now=now))

    assert [o.note_id for o in result.outcomes] == ["0", "1", "2", "3"]
    assert [o.phone_number for o in result.outcomes] == [f"628120000000{i}" for i in range(4)]
    assert all(o.status == "sent" for o in result.outcomes)


def test_cancel_event_stops_new_dispatches(now: datetime) -> None:
    cancel_event = asyncio.Event()

    class CancellingGateway(FakeGateway):
        async def send(self, target: str, message: str, country_code: str):
            reply = await super().send(target, message, country_code)
            cancel_event.set()
            return reply

    gateway = CancellingGateway()
    dispatcher = ReminderDispatcher(GatewayConfig(token="secret-token"), gateway)
    candidates = [_candidate(str(i), now + timedelta(hours=1)) for i in range(3)]

    result = asyncio.run(ReminderOrchestrator(dispatcher).run_sweep(candidates, now=now, cancel_event=cancel_event))

    assert [(o.status, o.reason) for o in result.outcomes] == [
        ("sent", None),
        ("skipped", "cancelled"),
        ("skipped", "cancelled"),
    ]
    assert len(gateway.calls) == 1


def test_cancelled_sweep_lets_inflight_send_finish(now: datetime) -> None:
    finished: list[str] = []

    class BlockingGateway(FakeGateway):
        async def send(self, target: str, message: str, country_code: str):
            await asyncio.sleep(0.05)
            finished.append(target)
            return await super().send(target, message, country_code)

    gateway = BlockingGateway()
    dispatcher = ReminderDispatcher(GatewayConfig(token="secret-token"), gateway)
    candidates = [_candidate(str(i), now + timedelta(hours=1), phone=f"08120000000{i}") for i in range(3)]
    orchestrator = ReminderOrchestrator(dispatcher)

    async def _scenario() -> None:
        task = asyncio.create_task(orchestrator.run_sweep(candidates, now=now))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.1)

    asyncio.run(_scenario())

    assert finished == ["81200000000"]


def test_non_ascii_phone_fails_without_reaching_gateway(now: datetime, dispatcher, gateway: FakeGateway) -> None:
    candidates = [_candidate("A", now + timedelta(hours=1), phone="٠٨١٢٣")]
    result = asyncio.run(ReminderOrchestrator(dispatcher).run_sweep(candidates, now=now))
    assert result.outcomes[0].status == "failed"
    assert result.outcomes[0].error_type == "InvalidPhoneError"
    assert gateway.calls == []
