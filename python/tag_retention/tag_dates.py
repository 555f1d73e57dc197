"""
Extraction of the build date embedded in tag names.

Release and snapshot tags carry their date as eight digits (YYYYMMDD) in the
single capture group of a configured pattern, e.g. ``^release-(\\d{8}).*$``.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Pattern, Union

from tag_retention.error_utils import create_pattern_error

DATE_FORMAT = "%Y%m%d"
_EIGHT_DIGITS = re.compile(r"[0-9]{8}")


class TagDateError(ValueError):
    """Tag does not carry a usable date. Callers decide whether this is fatal."""

    def __init__(self, tag: str, reason: str):
        self.tag = tag
        self.reason = reason
        super().__init__(f"tag {tag}: {reason}")


@dataclass(frozen=True)
class DatedTag:
    name: str
    date: datetime


def as_utc(moment: Optional[datetime] = None) -> datetime:
    """Return moment as an aware UTC datetime, defaulting to the current time.

    Naive datetimes are taken to be UTC.
    """
    if moment is None:
        return datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def compile_date_pattern(pattern: Union[str, Pattern[str]], field: str = "date_pattern") -> Pattern[str]:
    """Compile a date pattern and check it exposes exactly one capture group.

    Raises:
        ConfigurationError: If the pattern is empty, invalid or has the wrong group count
    """
    if not pattern:
        raise create_pattern_error(field, pattern, "pattern is empty")
    if isinstance(pattern, str):
        try:
            compiled = re.compile(pattern)
        except (re.error, TypeError) as e:
            raise create_pattern_error(field, pattern, f"failed to compile: {e}") from e
    else:
        compiled = pattern

    if compiled.groups != 1:
        raise create_pattern_error(
            field, compiled.pattern, f"pattern must have exactly one capture group, found {compiled.groups}"
        )
    return compiled


def parse_tag_date(pattern: Pattern[str], tag: str, now: Optional[datetime] = None) -> DatedTag:
    """Parse the date embedded in a tag name.

    Args:
        pattern: Compiled pattern whose first group captures YYYYMMDD
        tag: Tag name
        now: Reference time for the future check (default: current UTC time)

    Returns:
        DatedTag with the date at UTC midnight

    Raises:
        TagDateError: If the tag doesn't match, the date is malformed or in the future
    """
    match = pattern.search(tag)
    if match is None:
        raise TagDateError(tag, f"doesn't match {pattern.pattern}")

    value = match.group(1)
    if value is None or not _EIGHT_DIGITS.fullmatch(value):
        raise TagDateError(tag, f"captured value {value!r} is not an 8-digit date")

    try:
        tag_date = datetime.strptime(value, DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError as e:
        raise TagDateError(tag, f"can not parse date {value}: {e}") from e

    if tag_date > as_utc(now):
        raise TagDateError(tag, "tag date can not be in future")

    return DatedTag(name=tag, date=tag_date)
