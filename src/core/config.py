"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DEFAULT_GATEWAY_URL = "https://api.fonnte.com/send"


@dataclass(frozen=True)
class GatewayConfig:
    """Messaging gateway settings passed explicitly to the dispatcher."""

    token: Optional[str]
    base_url: str = DEFAULT_GATEWAY_URL
    country_code: str = "62"
    timeout_seconds: float = 10.0


@dataclass(frozen=True)
class SweepConfig:
    """Reminder sweep settings for the orchestrator and triggers."""

    window_hours: int = 24
    max_concurrency: int = 1
