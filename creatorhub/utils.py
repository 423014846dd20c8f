"""
Utility functions for the messaging service.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)

# Fixed-width format so that lexical order of stored strings equals time order
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def pair_key(user_a: str, user_b: str) -> str:
    """
    Build the canonical key for an unordered pair of users.

    pair_key("b", "a") == pair_key("a", "b") == "a:b"
    """
    low, high = sorted((user_a, user_b))
    return f"{low}:{high}"


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime as an ISO-8601 UTC string with microseconds."""
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a timestamp produced by format_timestamp."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def utc_timestamp() -> str:
    """Current server time as a stored timestamp string."""
    return format_timestamp(datetime.now(timezone.utc))


def next_timestamp(latest: Optional[str], now: Optional[str] = None) -> str:
    """
    Return a creation timestamp strictly after `latest`.

    Args:
        latest: Latest timestamp already used by the same sender (or None)
        now: Current timestamp, defaults to server time

    Returns:
        `now` if it is after `latest`, otherwise `latest` plus one microsecond
    """
    now = now or utc_timestamp()
    if latest is None or now > latest:
        return now
    bumped = format_timestamp(parse_timestamp(latest) + timedelta(microseconds=1))
    logger.debug(f"Clock has not advanced past {latest}, using {bumped}")
    return bumped
