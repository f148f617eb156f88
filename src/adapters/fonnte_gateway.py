"""Fonnte WhatsApp gateway adapter.

Implements the core GatewayPort over the Fonnte HTTP API and decodes its
loosely-typed JSON answer into a typed reply at this boundary.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.parse
import urllib.request

from core.config import GatewayConfig
from core.errors import GatewayRequestError
from core.models import GatewayAccepted, GatewayMalformed, GatewayRejected, GatewayReply

LOGGER = logging.getLogger(__name__)


def decode_reply(body: str) -> GatewayReply:
    """Turn a raw response body into accepted, rejected or malformed."""

    try:
        payload = json.loads(body)
    except ValueError:
        return GatewayMalformed(detail=f"not JSON: {body[:200]!r}")
    if not isinstance(payload, dict):
        return GatewayMalformed(detail=f"unexpected payload type {type(payload).__name__}")

    status = payload.get("status")
    if status is True:
        return GatewayAccepted(payload=payload)
    if status is False:
        reason = payload.get("reason") or "Failed to send WhatsApp"
        return GatewayRejected(reason=str(reason), payload=payload)
    return GatewayMalformed(detail="missing boolean status field")


class FonnteGateway:
    """Gateway adapter that posts messages to the Fonnte send endpoint."""

    def __init__(self, config: GatewayConfig) -> None:
        self._config = config

    def _post(self, target: str, message: str, country_code: str) -> str:
        data = urllib.parse.urlencode(
            {"target": target, "message": message, "countryCode": country_code}
        ).encode("utf-8")
        request = urllib.request.Request(self._config.base_url, data=data, method="POST")
        request.add_header("Authorization", self._config.token or "")
        request.add_header("Content-Type", "application/x-www-form-urlencoded")
        try:
            with urllib.request.urlopen(request, timeout=self._config.timeout_seconds) as response:
                status = response.status
                body = response.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise GatewayRequestError(f"Gateway error {e.code}: {body}", status_code=e.code) from e
        except (urllib.error.URLError, OSError) as e:
            # Covers socket timeouts, so a hung gateway ends up here as well.
            raise GatewayRequestError(f"Gateway request failed: {e}") from e

        if not 200 <= status < 300:
            raise GatewayRequestError(f"Gateway error {status}: {body}", status_code=status)
        return body

    async def send(self, target: str, message: str, country_code: str) -> GatewayReply:
        """Send one message and return the decoded gateway reply."""

        # urllib blocks, so the call runs in a worker thread to keep concurrent
        # sweeps responsive.
        body = await asyncio.to_thread(self._post, target, message, country_code)
        reply = decode_reply(body)
        LOGGER.debug("Gateway reply for %s: %s", target, reply)
        return reply
