"""Reminder message formatting.

Keeping formatting in one place prevents drift between trigger paths and
keeps WhatsApp messages consistent regardless of how a sweep was started.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Union
from zoneinfo import ZoneInfo

from core.deadline import as_utc, hours_until, parse_deadline

LOGGER = logging.getLogger(__name__)

JAKARTA = ZoneInfo("Asia/Jakarta")

HEADING = "🚨 *Reminder Notes*"
CLOSING = "Jangan lupa selesaikan tugasmu ya! 💪"

_WEEKDAYS_ID = ("Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu", "Minggu")
_MONTHS_ID = (
    "Januari",
    "Februari",
    "Maret",
    "April",
    "Mei",
    "Juni",
    "Juli",
    "Agustus",
    "September",
    "Oktober",
    "November",
    "Desember",
)


def format_deadline_id(deadline: datetime) -> str:
    """Render a deadline in Indonesian, Jakarta civil time.

    Example: "Senin, 19 Oktober 2026 pukul 14.30 WIB".
    """

    local = as_utc(deadline).astimezone(JAKARTA)
    weekday = _WEEKDAYS_ID[local.weekday()]
    month = _MONTHS_ID[local.month - 1]
    return f"{weekday}, {local.day} {month} {local.year} pukul {local:%H.%M} WIB"


def describe_delta(delta_hours: int) -> str:
    """Describe remaining or overdue time in Indonesian."""

    if delta_hours > 0:
        if delta_hours > 24:
            return f"{delta_hours // 24} hari lagi"
        return f"{delta_hours} jam lagi"

    overdue = -delta_hours
    if overdue == 0:
        return "Terlambat kurang dari 1 jam"
    if overdue >= 24:
        return f"Terlambat {overdue // 24} hari"
    return f"Terlambat {overdue} jam"


def _fallback_message(title: str, raw_deadline: str) -> str:
    lines = [
        HEADING,
        "",
        f"📝 *{title}*",
        f"⏰ Deadline: {raw_deadline}",
        "",
        "⚠️ Deadline tinggal kurang dari 24 jam lagi!",
    ]
    return "\n".join(lines)


def format_reminder(
    title: str,
    deadline: Union[datetime, str],
    reference_now: Optional[datetime] = None,
) -> str:
    """Return the WhatsApp reminder body for one note.

    A string deadline that cannot be parsed degrades to a message embedding the
    raw value instead of failing the dispatch.
    """

    if isinstance(deadline, str):
        try:
            deadline_at = parse_deadline(deadline)
        except ValueError:
            LOGGER.warning("Unparseable deadline %r, using fallback message", deadline)
            return _fallback_message(title, deadline)
    else:
        deadline_at = deadline

    delta = hours_until(deadline_at, reference_now)
    if delta > 0:
        urgency = f"⚠️ Deadline tinggal {describe_delta(delta)}!"
    else:
        urgency = f"⚠️ {describe_delta(delta)}!"

    lines = [
        HEADING,
        "",
        f"📝 *{title}*",
        f"⏰ Deadline: {format_deadline_id(deadline_at)}",
        "",
        urgency,
        "",
        CLOSING,
    ]
    return "\n".join(lines)
