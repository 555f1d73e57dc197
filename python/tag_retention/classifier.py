"""
Tag classification.

Every tag gets exactly one Disposition. The disposition is computed by an
ordered list of rules; each rule either returns a disposition or None, and
the last rule that returns one wins. The order is:

1. default Unknown
2. branch liveness (BranchStale / BranchNotStaled / BranchNotFound)
3. release tags (ReleaseTagCanNotDelete / ReleaseTag); a release tag whose
   date is malformed or in the future is never ReleaseTag
4. system tags (SystemTag), which always wins
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import AbstractSet, Callable, Dict, Iterable, Mapping, Optional, Pattern, Sequence, Tuple

from tag_retention.arch import DEFAULT_ARCH_SUFFIXES, normalize_tag
from tag_retention.branches import BranchInfo
from tag_retention.date_window import RetentionWindowConfig, protected_tags


class Disposition(Enum):
    UNKNOWN = "Unknown"
    RELEASE_TAG = "ReleaseTag"
    RELEASE_TAG_CAN_NOT_DELETE = "ReleaseTagCanNotDelete"
    SYSTEM_TAG = "SystemTag"
    BRANCH_STALE = "BranchStale"
    BRANCH_NOT_STALED = "BranchNotStaled"
    BRANCH_NOT_FOUND = "BranchNotFound"
    SNAPSHOT_STALED = "SnapshotStaled"
    SNAPSHOT_TAG_CAN_NOT_DELETE = "SnapshotTagCanNotDelete"

    def __str__(self) -> str:
        return self.value


DELETABLE_DISPOSITIONS = frozenset({
    Disposition.RELEASE_TAG,
    Disposition.BRANCH_NOT_FOUND,
    Disposition.BRANCH_STALE,
})

SNAPSHOT_DELETABLE_DISPOSITIONS = frozenset({Disposition.SNAPSHOT_STALED})


def is_deletable(disposition: Disposition) -> bool:
    return disposition in DELETABLE_DISPOSITIONS or disposition in SNAPSHOT_DELETABLE_DISPOSITIONS


@dataclass(frozen=True)
class TagContext:
    """Everything a rule may look at for one tag"""

    tag: str
    canonical: str
    branch_map: Mapping[str, BranchInfo]
    release_pattern: Pattern[str]
    system_pattern: Pattern[str]
    release_keep_set: AbstractSet[str]


Rule = Callable[[TagContext], Optional[Disposition]]


def default_rule(context: TagContext) -> Optional[Disposition]:
    return Disposition.UNKNOWN


def branch_rule(context: TagContext) -> Optional[Disposition]:
    branch = context.branch_map.get(context.canonical)
    if branch is None:
        return Disposition.BRANCH_NOT_FOUND
    if branch.stale:
        return Disposition.BRANCH_STALE
    return Disposition.BRANCH_NOT_STALED


def release_rule(context: TagContext) -> Optional[Disposition]:
    if context.release_pattern.search(context.tag) is None:
        return None
    if context.tag in context.release_keep_set:
        return Disposition.RELEASE_TAG_CAN_NOT_DELETE
    return Disposition.RELEASE_TAG


def system_rule(context: TagContext) -> Optional[Disposition]:
    if context.system_pattern.search(context.canonical) is None:
        return None
    return Disposition.SYSTEM_TAG


CLASSIFICATION_RULES: Tuple[Rule, ...] = (default_rule, branch_rule, release_rule, system_rule)


def apply_rules(context: TagContext, rules: Sequence[Rule] = CLASSIFICATION_RULES) -> Disposition:
    """Run rules in order; the last one that returns a disposition wins."""
    disposition = Disposition.UNKNOWN
    for rule in rules:
        result = rule(context)
        if result is not None:
            disposition = result
    return disposition


def classify(
    tag: str,
    branch_map: Mapping[str, BranchInfo],
    release_pattern: Pattern[str],
    system_pattern: Pattern[str],
    release_keep_set: AbstractSet[str],
    arch_suffixes: Sequence[str] = DEFAULT_ARCH_SUFFIXES,
) -> Disposition:
    """Return the disposition of a single tag."""
    context = TagContext(
        tag=tag,
        canonical=normalize_tag(tag, arch_suffixes),
        branch_map=branch_map,
        release_pattern=release_pattern,
        system_pattern=system_pattern,
        release_keep_set=release_keep_set,
    )
    return apply_rules(context)


class TagClassifier:
    """Classifies all tags of a project against its branches and release window"""

    def __init__(self, release: RetentionWindowConfig, system_pattern: Pattern[str]):
        self.release = release
        self.system_pattern = system_pattern

    @classmethod
    def from_config(cls, config) -> "TagClassifier":
        """Build from a RetentionConfig"""
        return cls(config.release, config.system_pattern)

    def classify_tags(
        self,
        tags: Iterable[str],
        branch_map: Mapping[str, BranchInfo],
        now: Optional[datetime] = None,
    ) -> Dict[str, Disposition]:
        """Return {tag: disposition} for all tags, ordered by tag name."""
        tags = sorted(set(tags))
        release_keep_set = protected_tags(tags, self.release, now)
        return {
            tag: classify(
                tag,
                branch_map,
                self.release.date_pattern,
                self.system_pattern,
                release_keep_set,
                self.release.arch_suffixes,
            )
            for tag in tags
        }


def classify_snapshots(
    tags: Iterable[str],
    snapshot: RetentionWindowConfig,
    now: Optional[datetime] = None,
) -> Dict[str, Disposition]:
    """Classify snapshot tags. Tags not matching the snapshot pattern are left out.

    Snapshot tags with a malformed or future date are kept.
    """
    tags = sorted(set(tags))
    keep = protected_tags(tags, snapshot, now)
    result: Dict[str, Disposition] = {}
    for tag in tags:
        if snapshot.date_pattern.search(tag) is None:
            continue
        if tag in keep:
            result[tag] = Disposition.SNAPSHOT_TAG_CAN_NOT_DELETE
        else:
            result[tag] = Disposition.SNAPSHOT_STALED
    return result
