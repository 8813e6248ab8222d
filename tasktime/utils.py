import math
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable

from tasktime.domain.errors import InvalidDurationError

Clock = Callable[[], datetime]

_CLOCK_PATTERN = re.compile(r"^(\d+):(\d+)(?::(\d+))?$")
_DECIMAL_PATTERN = re.compile(r"^(\d*)(?:[.,](\d+))?$")


def utc_now() -> datetime:
    """Current wall-clock instant (timezone-aware, UTC)"""
    return datetime.now(timezone.utc)


def get_resource_path(relative_path: str) -> Path:
    """Absolute path of a file shipped inside the tasktime package (e.g. "resources/templates")"""
    return Path(__file__).parent.absolute() / relative_path


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3, -2.5 -> -3)"""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def format_duration(seconds: int) -> str:
    """Format seconds as HH:MM:SS"""
    hours, remainder = divmod(max(int(seconds), 0), 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def parse_duration(text: str) -> int:
    """
    Parse a user-entered duration into whole seconds.

    Accepted forms:
        "HH:MM:SS"  e.g. "01:30:00"
        "HH:MM"     e.g. "1:30"
        decimal hours with '.' or ',' e.g. "1.5", "1,5", "90"

    Raises:
        InvalidDurationError: on non-numeric or negative components, or
            minutes/seconds above 59.
    """
    if text is None:
        raise InvalidDurationError("Duration is empty")
    raw = str(text).strip()
    if not raw:
        raise InvalidDurationError("Duration is empty")

    if ":" in raw:
        match = _CLOCK_PATTERN.match(raw)
        if not match:
            raise InvalidDurationError(f"Invalid duration: {raw!r}")
        hours = int(match.group(1))
        minutes = int(match.group(2))
        seconds = int(match.group(3) or 0)
        if minutes > 59 or seconds > 59:
            raise InvalidDurationError(f"Minutes and seconds must be 0-59: {raw!r}")
        return hours * 3600 + minutes * 60 + seconds

    match = _DECIMAL_PATTERN.match(raw)
    if not match or not (match.group(1) or match.group(2)):
        raise InvalidDurationError(f"Invalid duration: {raw!r}")
    hours = float(f"{match.group(1) or '0'}.{match.group(2) or '0'}")
    return round_half_away(hours * 3600)


def new_id(existing: Iterable[str], now: datetime, prefix: str = "") -> str:
    """
    Generate a time-derived id (milliseconds since epoch) unique among `existing`.

    Collisions within the same millisecond are resolved by counting forward.
    """
    taken = set(existing)
    stamp = int(now.timestamp() * 1000)
    candidate = f"{prefix}{stamp}"
    while candidate in taken:
        stamp += 1
        candidate = f"{prefix}{stamp}"
    return candidate
