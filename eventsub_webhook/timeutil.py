"""RFC3339 timestamp parsing"""

import re
from datetime import datetime

# Twitch sends nanosecond precision; datetime only keeps microseconds
_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


def normalize_timestamp(timestamp: str) -> str:
    """Trim sub-microsecond digits and spell out the UTC offset."""
    value = _FRACTION_RE.sub(r".\1", timestamp.strip())
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    return value


def parse_timestamp(timestamp: str) -> datetime | None:
    """Parse an RFC3339 timestamp. Returns None if it is not timezone-aware."""
    if not timestamp:
        return None
    try:
        parsed = datetime.fromisoformat(normalize_timestamp(timestamp))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed
