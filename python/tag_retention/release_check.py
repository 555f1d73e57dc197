"""
CI gate for release tags.

A release tag embeds its build date; the check fails when that date is more
than ``allowed_delta_days`` away from the date of the commit being tagged,
which catches tags typed with the wrong date.
"""

import re
from datetime import datetime
from typing import Optional, Pattern

from tag_retention.error_utils import create_release_tag_error
from tag_retention.logging_utils import get_logger
from tag_retention.tag_dates import TagDateError, as_utc, parse_tag_date

logger = get_logger(__name__)

DEFAULT_ALLOWED_DELTA_DAYS = 5
HOURS_IN_DAY = 24

_RFC3339 = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[Tt](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?(?P<offset>[Zz]|[+-]\d{2}:\d{2})$"
)


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC 3339 timestamp such as 2022-03-21T00:00:00Z.

    Raises:
        ValueError: If the value is not a valid RFC 3339 timestamp
    """
    match = _RFC3339.match(value.strip()) if value else None
    if match is None:
        raise ValueError(f"{value!r} is not an RFC 3339 timestamp")

    offset = match.group("offset")
    if offset in ("Z", "z"):
        offset = "+00:00"
    # fromisoformat only accepts 3 or 6 fractional digits on older interpreters
    fraction = (match.group("fraction") or "0")[:6].ljust(6, "0")

    return datetime.fromisoformat(f"{match.group('date')}T{match.group('time')}.{fraction}{offset}")


def check_release_tag(
    tag: str,
    release_pattern: Pattern[str],
    commit_timestamp: str,
    allowed_delta_days: float = DEFAULT_ALLOWED_DELTA_DAYS,
    now: Optional[datetime] = None,
) -> None:
    """Check that a release tag's date is close to its commit date.

    Args:
        tag: Release tag, e.g. "release-20220325"
        release_pattern: Pattern whose single group captures the YYYYMMDD date
        commit_timestamp: RFC 3339 commit timestamp (CI_COMMIT_TIMESTAMP)
        allowed_delta_days: Maximum distance between the two dates
        now: Reference time for the future-date check

    Raises:
        ValidationError: If the tag is malformed, dated in the future, the
            timestamp is malformed or the dates are too far apart
    """
    try:
        release_tag = parse_tag_date(release_pattern, tag, as_utc(now))
    except TagDateError as e:
        raise create_release_tag_error(tag, e.reason, {"pattern": release_pattern.pattern}) from e

    try:
        commit_date = parse_rfc3339(commit_timestamp)
    except ValueError as e:
        raise create_release_tag_error(tag, f"can not parse commit date: {e}",
                                       {"commit_timestamp": commit_timestamp}) from e

    diff_hours = (commit_date - release_tag.date).total_seconds() / 3600
    diff_days = abs(diff_hours / HOURS_IN_DAY)
    logger.debug(f"{tag}: commit {commit_timestamp} is {diff_days:.2f} days from tag date")

    if diff_days > allowed_delta_days:
        raise create_release_tag_error(
            tag,
            f"difference between commit date and release bigger than {allowed_delta_days} days",
            {"commit_timestamp": commit_timestamp, "difference_days": round(diff_days, 2)},
        )
