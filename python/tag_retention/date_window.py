"""
Date window retention for release and snapshot tags.

Given all tags of a project, decide which date-encoded tags must be kept:

- every tag dated less than ``not_delete_days`` before the newest tag date;
- if that leaves fewer than ``min_keep_count`` distinct dates, the tags of the
  ``min_keep_count`` newest dates instead (all arch variants included).

Tags without a valid date are skipped and never end up in either set.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Pattern, Sequence, Set, Tuple, Union

from tag_retention.arch import DEFAULT_ARCH_SUFFIXES, canonical_tags
from tag_retention.error_utils import create_config_error
from tag_retention.logging_utils import get_logger
from tag_retention.tag_dates import DatedTag, TagDateError, as_utc, compile_date_pattern, parse_tag_date

logger = get_logger(__name__)

SECONDS_IN_DAY = 24 * 60 * 60
DEFAULT_NOT_DELETE_DAYS = 10.0
DEFAULT_MIN_KEEP_COUNT = 3


@dataclass(frozen=True)
class RetentionWindowConfig:
    """Validated settings for one date window (release or snapshot tags)"""

    date_pattern: Pattern[str]
    not_delete_days: float = DEFAULT_NOT_DELETE_DAYS
    min_keep_count: int = DEFAULT_MIN_KEEP_COUNT
    arch_suffixes: Tuple[str, ...] = DEFAULT_ARCH_SUFFIXES

    @classmethod
    def build(
        cls,
        date_pattern: Union[str, Pattern[str]],
        not_delete_days: float = DEFAULT_NOT_DELETE_DAYS,
        min_keep_count: int = DEFAULT_MIN_KEEP_COUNT,
        arch_suffixes: Sequence[str] = DEFAULT_ARCH_SUFFIXES,
        field: str = "date_pattern",
    ) -> "RetentionWindowConfig":
        """Compile and validate window settings.

        Raises:
            ConfigurationError: On a bad pattern, negative days or negative count
        """
        compiled = compile_date_pattern(date_pattern, field)

        if isinstance(not_delete_days, bool) or not isinstance(not_delete_days, (int, float)) or not_delete_days < 0:
            raise create_config_error("not_delete_days", not_delete_days, "must be a non-negative number")
        if isinstance(min_keep_count, bool) or not isinstance(min_keep_count, int) or min_keep_count < 0:
            raise create_config_error("min_keep_count", min_keep_count, "must be a non-negative integer")

        return cls(
            date_pattern=compiled,
            not_delete_days=float(not_delete_days),
            min_keep_count=min_keep_count,
            arch_suffixes=tuple(arch_suffixes),
        )


def collect_candidates(tags: Iterable[str], pattern: Pattern[str], now: Optional[datetime] = None) -> List[DatedTag]:
    """Parse every tag date, skipping tags without a valid one.

    Returns candidates ordered by date descending, then name descending.
    """
    return _partition(tags, pattern, now)[0]


def _partition(tags: Iterable[str], pattern: Pattern[str], now: Optional[datetime]) -> Tuple[List[DatedTag], Set[str]]:
    now = as_utc(now)
    candidates: List[DatedTag] = []
    undated: Set[str] = set()
    for tag in sorted(set(tags)):
        try:
            candidates.append(parse_tag_date(pattern, tag, now))
        except TagDateError as e:
            if pattern.search(tag) is None:
                logger.debug(f"not a dated tag: {e}")
            else:
                logger.warning(f"skipping {e}")
                undated.add(tag)
    candidates.sort(key=lambda c: (c.date, c.name), reverse=True)
    return candidates, undated


def _days_between(newer: datetime, older: datetime) -> float:
    return (newer - older).total_seconds() / SECONDS_IN_DAY


def _newest_dates(candidates: List[DatedTag], min_keep_count: int) -> Set[str]:
    kept: Set[str] = set()
    admitted = set()
    for candidate in candidates:
        if candidate.date not in admitted:
            if len(admitted) >= min_keep_count:
                break
            admitted.add(candidate.date)
        kept.add(candidate.name)
    return kept


def compute_keep_set(tags: Iterable[str], config: RetentionWindowConfig, now: Optional[datetime] = None) -> Set[str]:
    """Return the tags that must NOT be deleted under a date window.

    Args:
        tags: Tag names of one project or repository
        config: Window settings
        now: Reference time for the future-date check (default: current UTC time)

    Returns:
        Subset of tags protected from deletion
    """
    return _keep_from_candidates(collect_candidates(tags, config.date_pattern, now), config)


def _keep_from_candidates(candidates: List[DatedTag], config: RetentionWindowConfig) -> Set[str]:
    if not candidates:
        return set()

    max_date = candidates[0].date

    kept: List[DatedTag] = []
    for candidate in candidates:
        date_diff_days = _days_between(max_date, candidate.date)
        logger.debug(f"{candidate.name}, datediff={date_diff_days:f}")
        if date_diff_days < config.not_delete_days:
            kept.append(candidate)

    kept_dates = {candidate.date for candidate in kept}
    if len(kept_dates) < config.min_keep_count:
        logger.debug(
            f"window of {config.not_delete_days} days keeps {len(kept_dates)} dates "
            f"({len(canonical_tags((c.name for c in kept), config.arch_suffixes))} images), "
            f"keeping the newest {config.min_keep_count} dates instead"
        )
        return _newest_dates(candidates, config.min_keep_count)

    return {candidate.name for candidate in kept}


def deletable_tags(tags: Iterable[str], config: RetentionWindowConfig, now: Optional[datetime] = None) -> List[str]:
    """Return dated tags outside the keep set, sorted by name."""
    candidates = collect_candidates(tags, config.date_pattern, now)
    keep = _keep_from_candidates(candidates, config)
    return sorted(candidate.name for candidate in candidates if candidate.name not in keep)


def protected_tags(tags: Iterable[str], config: RetentionWindowConfig, now: Optional[datetime] = None) -> Set[str]:
    """Return the keep set plus pattern-matching tags whose date is unusable.

    A tag named like a dated tag but with a malformed or future date can't be
    placed in the window, so it is never offered for deletion.
    """
    candidates, undated = _partition(tags, config.date_pattern, now)
    return _keep_from_candidates(candidates, config) | undated
