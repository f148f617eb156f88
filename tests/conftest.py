from __future__ import annotations

from datetime import datetime, timezone

import pytest

from core.config import GatewayConfig
from core.dispatcher import ReminderDispatcher
from fakes import FakeGateway

NOW = datetime(2026, 10, 19, 7, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def dispatcher(gateway: FakeGateway) -> ReminderDispatcher:
    return ReminderDispatcher(GatewayConfig(token="secret-token"), gateway)
