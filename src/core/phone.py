"""Phone number normalization for the messaging gateway (core domain)."""

from __future__ import annotations

import re

from core.errors import InvalidPhoneError

DEFAULT_COUNTRY_CODE = "62"

_NON_DIAL = re.compile(r"[^0-9+]")

# Order matters: the first matching prefix wins, so "0..." never reaches the
# country-code checks.
_PREFIX_REWRITES = ("0", "+62", "62")


def strip_phone(raw: str) -> str:
    """Keep ASCII digits plus a single leading '+'."""

    cleaned = _NON_DIAL.sub("", raw)
    if cleaned.startswith("+"):
        return "+" + cleaned[1:].replace("+", "")
    return cleaned.replace("+", "")


def normalize_phone(raw: str) -> str:
    """Return the bare local form expected by the gateway.

    Exactly one prefix rewrite is applied:
    - leading "0" is dropped
    - leading "+62" is dropped
    - leading "62" is dropped
    - anything else is left as is (already bare, e.g. "8123456789")
    """

    stripped = strip_phone(raw or "")
    if not stripped.lstrip("+"):
        raise InvalidPhoneError(f"Phone number has no digits: {raw!r}")

    for prefix in _PREFIX_REWRITES:
        if stripped.startswith(prefix):
            return stripped[len(prefix):]
    # A leading "+" with some other country code is not ours to rewrite.
    return stripped.lstrip("+")


def to_dispatch_form(normalized: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    return f"{country_code}{normalized}"
