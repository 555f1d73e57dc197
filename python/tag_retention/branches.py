"""
Branch liveness and GitLab naming rules.

Docker tags built from a branch are named after the branch's GitLab slug,
so a tag is matched to its branch by slugifying branch names. The commit
dates themselves come from the VCS collaborator; this module only turns them
into a lookup keyed by slug.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Optional, Tuple

from tag_retention.error_utils import create_item_error
from tag_retention.logging_utils import get_logger
from tag_retention.tag_dates import as_utc

logger = get_logger(__name__)

MAX_SLUG_LENGTH = 63
HOURS_IN_DAY = 24
DEFAULT_STALE_BRANCH_DAYS = 30
# group/project/image
MIN_REGISTRY_PATH_SEGMENTS = 3

_NOT_SLUG_CHARS = re.compile(r"[^a-z0-9]")


@dataclass(frozen=True)
class BranchInfo:
    slug: str
    stale: bool
    staled_days: int
    original_name: str


def gitlab_slugify(text: str) -> str:
    """Return the CI_COMMIT_REF_SLUG GitLab computes for a ref name.

    Lowercased, anything outside [a-z0-9] replaced with "-", no leading or
    trailing "-", at most 63 characters.
    """
    result = _NOT_SLUG_CHARS.sub("-", text.lower())
    result = result.strip("-")
    return result[:MAX_SLUG_LENGTH]


def gitlab_project_path(registry_path: str) -> str:
    """Convert a docker registry path to its GitLab project path.

    "group/project/image" -> "group/project"

    Raises:
        ValidationError: If the path has fewer than three segments
    """
    segments = registry_path.split("/")
    if len(segments) < MIN_REGISTRY_PATH_SEGMENTS:
        raise create_item_error(registry_path, "path must contain group/project/image")
    return "/".join(segments[:-1])


def build_branch_map(
    branches: Iterable[Tuple[str, datetime]],
    stale_branch_days: int = DEFAULT_STALE_BRANCH_DAYS,
    now: Optional[datetime] = None,
) -> Dict[str, BranchInfo]:
    """Build the slug -> BranchInfo lookup used by the tag classifier.

    Args:
        branches: (branch name, last commit time) pairs
        stale_branch_days: A branch is stale when its last commit is older than this
        now: Reference time (default: current UTC time)
    """
    now = as_utc(now)
    result: Dict[str, BranchInfo] = {}
    for name, committed in branches:
        hours_since_commit = (now - as_utc(committed)).total_seconds() / 3600
        slug = gitlab_slugify(name)
        result[slug] = BranchInfo(
            slug=slug,
            stale=hours_since_commit > HOURS_IN_DAY * stale_branch_days,
            staled_days=int(hours_since_commit // HOURS_IN_DAY),
            original_name=name,
        )
    logger.debug(f"branches {sorted(result)}")
    return result
