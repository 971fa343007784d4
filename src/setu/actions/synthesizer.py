"""
Target expression, completion offset and action document.

Everything here is a pure function of its inputs except
:func:`local_utc_offset_ms`, which reads the process's local timezone at
the moment of the call.

The completion offset
---------------------
BigFix reads ``EndDateTimeLocalOffset`` as a delta relative to the
submitting console's local clock and then applies ``UseUTCTime``.  To end
a window *N* milliseconds from now the document therefore carries
``N - local_utc_offset``::

    window {hours: 2}, local offset +05:30   ->  PT2H - PT5H30M  ->  -PT3H30M
    window {hours: 2}, local offset -04:00   ->  PT2H + PT4H     ->  PT6H

Examples:
    >>> ms_to_duration(90_061_000)
    'P1DT1H1M1S'
    >>> ms_to_duration(-3_600_000)
    '-PT1H'
    >>> compute_completion_offset({"hours": 2}, utc_offset_ms=0)
    'PT2H'
"""

from __future__ import annotations

import math
import re
import time
from collections.abc import Mapping
from typing import Any

from setu.actions.models import GroupKind, PatchWindow, TargetGroup
from setu.core.errors import ValidationError

MS_PER_SECOND = 1_000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR

ACTION_SITE = "ActionSite"

_DURATION = re.compile(
    r"^(?P<sign>-)?P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)

_XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


def xml_escape(value: Any) -> str:
    """Escape the five reserved markup characters.  ``None`` becomes ``""``."""
    text = "" if value is None else str(value)
    for char, entity in _XML_ESCAPES:
        text = text.replace(char, entity)
    return text


# -- target expression ---------------------------------------------------


def site_token(site: str) -> str:
    """Relevance site reference for an automatic group's owning site."""
    if site == ACTION_SITE:
        return 'site "actionsite"'
    return f'site "CustomSite_{site}"'


def build_target_expression(group: TargetGroup) -> str:
    """Membership predicate selecting the computers of *group*."""
    if group.kind is GroupKind.AUTOMATIC:
        predicate = f"member of group {group.id} of {site_token(group.site)}"
    elif group.kind is GroupKind.MANUAL:
        predicate = f'member of manual group "{group.name}" of client'
    else:
        predicate = f'member of server based group "{group.name}" of client'
    return f"exists true whose ( if true then ( {predicate} ) else false)"


# -- completion offset ---------------------------------------------------


def window_to_ms(window: Any) -> float:
    """Normalize a scheduling window to milliseconds.

    Accepts a :class:`PatchWindow`, a ``{days, hours, minutes}`` mapping,
    or a legacy bare number (or numeric string) of hours.  Anything else,
    and any non-positive legacy number, is ``0``.
    """
    if isinstance(window, Mapping):
        window = PatchWindow.from_mapping(dict(window))
    if isinstance(window, PatchWindow):
        return window.days * MS_PER_DAY + window.hours * MS_PER_HOUR + window.minutes * MS_PER_MINUTE
    if window is None or isinstance(window, bool):
        return 0
    try:
        hours = float(window)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(hours) or hours <= 0:
        return 0
    return hours * MS_PER_HOUR


def local_utc_offset_ms(now: float | None = None) -> int:
    """Local timezone's current offset from UTC, east positive, in ms."""
    local = time.localtime(now)
    return int(local.tm_gmtoff or 0) * MS_PER_SECOND


def ms_to_duration(ms: float) -> str:
    """Encode *ms* as an ``xs:duration`` string.

    Sub-second remainders are truncated; zero components are omitted; a
    zero total is ``PT0S``.
    """
    if not math.isfinite(ms) or ms == 0:
        return "PT0S"
    negative = ms < 0
    total_seconds = int(abs(ms) // MS_PER_SECOND)
    days, rem = divmod(total_seconds, 86_400)
    hours, rem = divmod(rem, 3_600)
    minutes, seconds = divmod(rem, 60)

    out = f"{days}D" if days else ""
    time_parts = "".join(
        f"{value}{unit}" for value, unit in ((hours, "H"), (minutes, "M"), (seconds, "S")) if value
    )
    if time_parts:
        out += f"T{time_parts}"
    elif not days:
        out = "T0S"
    return f"{'-' if negative else ''}P{out}"


def parse_duration(text: str) -> int:
    """Decode a duration produced by :func:`ms_to_duration` back to ms."""
    match = _DURATION.match(text.strip())
    if not match or text.strip() in ("P", "-P", "PT", "-PT"):
        raise ValueError(f"Not a duration: {text!r}")
    parts = match.groupdict()
    ms = (
        int(parts["days"] or 0) * MS_PER_DAY
        + int(parts["hours"] or 0) * MS_PER_HOUR
        + int(parts["minutes"] or 0) * MS_PER_MINUTE
        + int(parts["seconds"] or 0) * MS_PER_SECOND
    )
    return -ms if parts["sign"] else ms


def compute_completion_offset(window: Any, *, utc_offset_ms: int | None = None) -> str:
    """Encode the timezone-corrected completion offset for *window*.

    Raises:
        ValidationError: If the window is not positive.
    """
    window_ms = window_to_ms(window)
    if window_ms <= 0:
        raise ValidationError(
            "Patch window duration must be greater than zero. Please set a valid duration."
        )
    tz_ms = local_utc_offset_ms() if utc_offset_ms is None else utc_offset_ms
    return ms_to_duration(window_ms - tz_ms)


# -- action document -----------------------------------------------------


def action_title(baseline_name: str, stage: str) -> str:
    return f"BPS_{baseline_name}_{stage}"


def build_action_document(
    *,
    site: str,
    fixlet_id: str,
    target_expression: str,
    offset: str,
    title: str,
) -> str:
    """Render the ``SourcedFixletAction`` document submitted to BigFix."""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<BES xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" xsi:noNamespaceSchemaLocation="BES.xsd">'
        "<SourcedFixletAction>"
        "<SourceFixlet>"
        f"<Sitename>{xml_escape(site)}</Sitename>"
        f"<FixletID>{xml_escape(fixlet_id)}</FixletID>"
        "<Action>Action1</Action>"
        "</SourceFixlet>"
        "<Target>"
        f"<CustomRelevance>{xml_escape(target_expression)}</CustomRelevance>"
        "</Target>"
        "<Settings>"
        "<HasEndTime>true</HasEndTime>"
        f"<EndDateTimeLocalOffset>{xml_escape(offset)}</EndDateTimeLocalOffset>"
        "<UseUTCTime>true</UseUTCTime>"
        "</Settings>"
        f"<Title>{xml_escape(title)}</Title>"
        "</SourcedFixletAction>"
        "</BES>"
    )


__all__ = [
    "ACTION_SITE",
    "xml_escape",
    "site_token",
    "build_target_expression",
    "window_to_ms",
    "local_utc_offset_ms",
    "ms_to_duration",
    "parse_duration",
    "compute_completion_offset",
    "action_title",
    "build_action_document",
]
