"""Gateway client factory for noteping.

The dispatcher receives its configuration explicitly; this module is the only
place that reads the gateway token from the process environment.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

import settings
from adapters.fonnte_gateway import FonnteGateway
from core.config import GatewayConfig
from core.dispatcher import ReminderDispatcher


def build_gateway_config() -> GatewayConfig:
    """Create the gateway config from settings and environment variables.

    We read FONNTE_TOKEN via python-dotenv to keep secrets out of the repo.
    A missing token is not fatal here: it only matters once a sweep actually
    has something to send, where it surfaces as GatewayAuthError.
    """

    load_dotenv()

    token = os.getenv("FONNTE_TOKEN")
    if not token:
        logging.getLogger(__name__).warning("FONNTE_TOKEN is not set; reminders cannot be sent")

    return GatewayConfig(
        token=token,
        base_url=settings.GATEWAY_URL,
        country_code=settings.COUNTRY_CODE,
        timeout_seconds=settings.GATEWAY_TIMEOUT_SECONDS,
    )


def build_dispatcher() -> ReminderDispatcher:
    config = build_gateway_config()
    logging.getLogger(__name__).info("Initializing gateway client for %s", config.base_url)
    return ReminderDispatcher(config, FonnteGateway(config))
