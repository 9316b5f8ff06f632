from datetime import datetime, timezone
from dateutil import parser as date_parser


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return date_parser.parse(str(value))
    except (ValueError, OverflowError):
        return None


def format_date_only(value: datetime) -> str:
    """Date in the YYYY-MM-DD form the platform expects for coupon start/expiry."""
    return value.astimezone(timezone.utc).date().isoformat()
