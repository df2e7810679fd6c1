"""Timezone helpers.

Instants are stored as naive UTC values and handled in memory as aware UTC
datetimes. Conversion happens only at the persistence boundary.
"""

from datetime import date, datetime, time

import pytz

from booking_engine.core.errors import InvalidRequest


def utcnow() -> datetime:
    return datetime.now(pytz.utc)


def storage_now() -> datetime:
    return to_storage(utcnow())


def get_timezone(name: str) -> pytz.BaseTzInfo:
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError as exc:
        raise InvalidRequest('Invalid timezone.', timezone=name) from exc


def is_valid_timezone(name: str | None) -> bool:
    if not name:
        return False
    return name in pytz.all_timezones_set


def as_utc(value: datetime) -> datetime:
    """Aware UTC view of ``value``; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


def to_storage(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return as_utc(value).replace(tzinfo=None)


def from_storage(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return pytz.utc.localize(value) if value.tzinfo is None else value.astimezone(pytz.utc)


def localize(local_date: date, local_time: time, timezone_name: str) -> datetime:
    """Wall-clock ``local_date local_time`` in ``timezone_name`` as an aware datetime."""
    tz = get_timezone(timezone_name)
    return tz.localize(datetime.combine(local_date, local_time))


def local_to_utc(value: datetime, timezone_name: str) -> datetime:
    """Interpret ``value`` in ``timezone_name`` when naive, then convert to UTC."""
    if value.tzinfo is not None:
        return value.astimezone(pytz.utc)
    return get_timezone(timezone_name).localize(value).astimezone(pytz.utc)


def utc_to_local(value: datetime, timezone_name: str) -> datetime:
    tz = get_timezone(timezone_name)
    return as_utc(value).astimezone(tz)
