"""Reminder dispatch through the messaging gateway (core domain)."""

from __future__ import annotations

import logging

from core.config import GatewayConfig
from core.errors import GatewayAuthError, GatewayRejectedError, GatewayRequestError
from core.models import DispatchReceipt, GatewayAccepted, GatewayRejected
from core.ports import GatewayPort

LOGGER = logging.getLogger(__name__)


class ReminderDispatcher:
    """Sends one reminder and turns the gateway reply into a receipt or error.

    There is no retry here; a failed dispatch is reported to the caller.
    """

    def __init__(self, config: GatewayConfig, gateway: GatewayPort) -> None:
        self._config = config
        self._gateway = gateway

    @property
    def country_code(self) -> str:
        return self._config.country_code

    def ensure_configured(self) -> None:
        if not self._config.token:
            raise GatewayAuthError("Gateway token not configured")

    def _bare_target(self, phone_for_gateway: str) -> str:
        # The gateway takes the local number plus a separate countryCode field.
        code = self._config.country_code
        if phone_for_gateway.startswith(code):
            return phone_for_gateway[len(code):]
        return phone_for_gateway

    async def dispatch(self, phone_for_gateway: str, message: str) -> DispatchReceipt:
        """Send a message to a dispatch-form number ("62" + local digits)."""

        self.ensure_configured()
        target = self._bare_target(phone_for_gateway)
        LOGGER.info("Sending reminder to %s", phone_for_gateway)
        reply = await self._gateway.send(target, message, self._config.country_code)

        if isinstance(reply, GatewayAccepted):
            return DispatchReceipt(target=phone_for_gateway, payload=reply.payload)
        if isinstance(reply, GatewayRejected):
            raise GatewayRejectedError(reply.reason)
        raise GatewayRequestError(f"Malformed gateway response: {reply.detail}")
