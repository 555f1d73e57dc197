"""
Keep-last-N retention for object-store folders.

Folder names embed a group and a numeric build id, for example
``builds/web-1042/``. The configured pattern exposes them as the named groups
``group`` and ``id``; within each group only the ``keep_count`` highest ids
survive.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from tag_retention.error_utils import create_config_error, create_item_error, create_pattern_error
from tag_retention.logging_utils import get_logger

logger = get_logger(__name__)

GROUP_NAME = "group"
ID_NAME = "id"
DEFAULT_GROUP_KEEP_COUNT = 10

_DIGITS = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class BucketItem:
    name: str
    group: str
    id: int

    def __str__(self) -> str:
        return f"{self.name} ({self.group}-{self.id})"


class GroupRetention:
    """Keeps the newest items of every group by numeric id"""

    def __init__(self, pattern: str, keep_count: int = DEFAULT_GROUP_KEEP_COUNT):
        """Compile and validate the group pattern

        Args:
            pattern: Regular expression with (?P<group>...) and (?P<id>...)
            keep_count: Number of items to keep per group

        Raises:
            ConfigurationError: If the pattern is empty, invalid or lacks a named group
        """
        if not pattern:
            raise create_pattern_error("bucket.pattern", pattern, "pattern is empty")
        try:
            self.pattern = re.compile(pattern)
        except re.error as e:
            raise create_pattern_error("bucket.pattern", pattern, f"failed to compile: {e}") from e

        missing = [name for name in (GROUP_NAME, ID_NAME) if name not in self.pattern.groupindex]
        if missing:
            raise create_pattern_error(
                "bucket.pattern", pattern, f"pattern must contain named groups 'group' and 'id', missing {missing}"
            )

        if isinstance(keep_count, bool) or not isinstance(keep_count, int) or keep_count < 0:
            raise create_config_error("bucket.keep_count", keep_count, "must be a non-negative integer")
        self.keep_count = keep_count

    def _group_of(self, name: str) -> Optional[str]:
        match = self.pattern.search(name)
        if match is None:
            return None
        return match.group(GROUP_NAME)

    def groups(self, names: Iterable[str]) -> Dict[str, int]:
        """Count matching items per group. Items that don't match are ignored."""
        counts: Dict[str, int] = {}
        for name in names:
            group = self._group_of(name)
            if group is None:
                continue
            counts[group] = counts.get(group, 0) + 1
        return counts

    def group_items(self, names: Iterable[str], group: str) -> List[BucketItem]:
        """Return the items of one group with their parsed ids, in input order.

        Raises:
            ValidationError: If an item's id is not a non-negative integer
        """
        items: List[BucketItem] = []
        for name in names:
            match = self.pattern.search(name)
            if match is None or match.group(GROUP_NAME) != group:
                continue

            id_value = match.group(ID_NAME)
            if id_value is None or not _DIGITS.fullmatch(id_value):
                raise create_item_error(
                    name, f"id {id_value!r} is not a non-negative integer",
                    {"group": group, "pattern": self.pattern.pattern},
                )
            items.append(BucketItem(name=name, group=group, id=int(id_value)))
        return items

    def prune_group(self, names: Iterable[str], group: str) -> List[BucketItem]:
        """Return the items of a group that fall outside the newest keep_count.

        Items with equal ids keep their input order.
        """
        items = self.group_items(names, group)
        if len(items) <= self.keep_count:
            return []

        items = sorted(items, key=lambda item: item.id, reverse=True)

        for item in items[:self.keep_count]:
            logger.info(f"keeping {item}")

        return items[self.keep_count:]

    def prune(self, names: Iterable[str]) -> Dict[str, List[BucketItem]]:
        """Return deletable items for every group, groups in sorted order."""
        names = list(names)
        return {group: self.prune_group(names, group) for group in sorted(self.groups(names))}
