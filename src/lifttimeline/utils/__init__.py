"""Shared utilities for lifttimeline."""

from .timezone import (
    JST,
    ensure_utc,
    local_date,
    local_datetime,
    local_day_bounds,
    parse_date_str,
    to_local,
    utc_now,
)

__all__ = [
    "JST",
    "ensure_utc",
    "local_date",
    "local_datetime",
    "local_day_bounds",
    "parse_date_str",
    "to_local",
    "utc_now",
]
