"""Parsing and formatting of rental instants.

Every instant the engine handles is anchored to a fixed UTC+7 offset (WIB).
The offset is passed explicitly to each helper so that date math never
depends on the host's configured zone.
"""
import re
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

from motor_rental.core.exceptions import InvalidDateFormatException

LOCAL_UTC_OFFSET = timedelta(hours=7)
LOCAL_TZ = timezone(LOCAL_UTC_OFFSET, "WIB")

DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DATE_MINUTE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}$")
ISO_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})?$"
)


def to_local(value: datetime, tz: tzinfo = LOCAL_TZ) -> datetime:
    """Naive values are local wall-clock time; aware values are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def now_local(tz: tzinfo = LOCAL_TZ) -> datetime:
    return datetime.now(timezone.utc).astimezone(tz)


def format_local(value: Optional[datetime], tz: tzinfo = LOCAL_TZ) -> Optional[str]:
    if value is None:
        return None
    return to_local(value, tz).strftime("%Y-%m-%dT%H:%M")


def parse_local_datetime(
    value: str, field_name: str = "date", tz: tzinfo = LOCAL_TZ
) -> datetime:
    """
    Accepts exactly three shapes:

    - ``YYYY-MM-DD``: local midnight
    - ``YYYY-MM-DDTHH:mm``: local wall-clock time
    - ``YYYY-MM-DDTHH:mm:ss[.fff][Z|+HH:MM]``: parsed as-is, then expressed
      in the local zone (a missing offset means local wall-clock time)
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidDateFormatException(f"{field_name} must not be empty")

    text = value.strip()
    try:
        if DATE_ONLY_RE.match(text):
            parsed = datetime.strptime(text, "%Y-%m-%d")
        elif DATE_MINUTE_RE.match(text):
            parsed = datetime.strptime(text, "%Y-%m-%dT%H:%M")
        elif ISO_RE.match(text):
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            parsed = datetime.fromisoformat(text)
        else:
            raise InvalidDateFormatException(
                f"{field_name} must be YYYY-MM-DD or YYYY-MM-DDTHH:mm, got {value!r}"
            )
    except ValueError:
        raise InvalidDateFormatException(
            f"{field_name} is not a valid date: {value!r}"
        ) from None

    return to_local(parsed, tz)
