"""Template environment and custom filters."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jinja2

_MICROSECOND = timedelta(microseconds=1)
_MINUTE_US = 60 * 1_000_000
_HOUR_US = 60 * _MINUTE_US
_DAY_US = 24 * _HOUR_US


def _truncated(micros, unit):
    quotient = abs(micros) // unit
    return quotient if micros >= 0 else -quotient


def timedelta_filter(value, now=None):
    """Render the age of an RFC 3339 timestamp as ``Nd``, ``Nh`` or ``Nm``."""
    if not isinstance(value, str):
        raise ValueError(f"timedelta filter expects a string, got {value!r}")
    try:
        moment = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"invalid RFC 3339 timestamp {value!r}") from exc
    if moment.tzinfo is None:
        raise ValueError(f"timestamp {value!r} has no UTC offset")
    now = datetime.now(timezone.utc) if now is None else now
    micros = (now - moment) // _MICROSECOND

    days = _truncated(micros, _DAY_US)
    if days > 0:
        return f"{days}d"
    hours = _truncated(micros, _HOUR_US)
    if hours > 0:
        return f"{hours}h"
    return f"{_truncated(micros, _MINUTE_US)}m"


def create_environment(template_dir="templates"):
    """Create the template environment with the ``timedelta`` filter registered."""
    environment = jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(template_dir)),
        autoescape=jinja2.select_autoescape(["html", "htm", "xml"]),
        undefined=jinja2.StrictUndefined,
    )
    environment.filters["timedelta"] = timedelta_filter
    return environment