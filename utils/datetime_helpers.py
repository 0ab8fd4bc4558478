"""UTC date/time helpers and the injectable clock for the reservation engine."""

from datetime import date, datetime, timezone

from flask import current_app

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'
DATE_FORMAT = '%Y-%m-%d'


def get_now() -> datetime:
    """
    Get the current instant as an aware UTC datetime.

    Uses the CLOCK callable from the app config when one is set, so tests can
    pin "now" to a fixed instant.
    """
    clock = current_app.config.get('CLOCK')
    now = clock() if clock else datetime.now(timezone.utc)
    return to_utc(now)


def get_today() -> date:
    """Get today's date in UTC."""
    return get_now().date()


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC, truncated to whole seconds (naive input is read as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0)


def parse_timestamp(value) -> datetime:
    """
    Parse an ISO 8601 timestamp (or datetime) into an aware UTC datetime.

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    if isinstance(value, datetime):
        return to_utc(value)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f'Invalid timestamp: {value!r}')
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return to_utc(datetime.fromisoformat(text))


def format_timestamp(value: datetime) -> str:
    """Format a datetime in the canonical storage form (UTC, seconds)."""
    return to_utc(value).strftime(TIMESTAMP_FORMAT)


def load_timestamp(value: str) -> datetime:
    """Read a stored timestamp back into an aware UTC datetime."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def parse_date(value) -> date:
    """
    Parse a YYYY-MM-DD string (or date) into a date.

    Raises:
        ValueError: If the value is not a valid date
    """
    if isinstance(value, datetime):
        return to_utc(value).date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value, DATE_FORMAT).date()


def format_date(value: date) -> str:
    """Format a date in the canonical storage form."""
    return value.strftime(DATE_FORMAT)


def isoformat(value: str) -> str:
    """Render a stored timestamp as ISO 8601 with an explicit UTC offset."""
    if not value:
        return value
    return load_timestamp(value).isoformat()
