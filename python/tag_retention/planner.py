"""
Delete plans built from collaborator snapshots.

The network side (registry, GitLab, object store) lists repositories, tags,
branches and folders; the functions here turn those listings into the list
of tags or folders to delete. Nothing in this module deletes anything.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Pattern, Sequence

from tag_retention.arch import normalize_tag
from tag_retention.branches import BranchInfo, gitlab_project_path
from tag_retention.classifier import Disposition, TagClassifier, classify_snapshots, is_deletable
from tag_retention.config_manager import RetentionConfig
from tag_retention.error_utils import ValidationError
from tag_retention.group_retention import BucketItem, GroupRetention
from tag_retention.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DeleteTagInput:
    repository: str
    tag: str
    disposition: Disposition

    def __str__(self) -> str:
        return f"{self.repository}:{self.tag} reason={self.disposition}"


def group_repositories_by_project(
    repositories: Iterable[str],
    ignore_pattern: Optional[Pattern[str]] = None,
) -> Dict[str, List[str]]:
    """Map GitLab project path -> docker repositories built from it.

    Repositories whose path can't be mapped are logged and skipped, as are
    projects matching ignore_pattern.
    """
    projects: Dict[str, List[str]] = {}
    for repository in repositories:
        try:
            project = gitlab_project_path(repository)
        except ValidationError as e:
            logger.warning(e.message)
            continue

        if ignore_pattern is not None and ignore_pattern.search(project):
            logger.debug(f"ignoring {project}")
            continue

        projects.setdefault(project, []).append(repository)
    return projects


def plan_stale_tags(
    repository_tags: Mapping[str, Sequence[str]],
    branch_map: Mapping[str, BranchInfo],
    config: RetentionConfig,
    now: Optional[datetime] = None,
) -> List[DeleteTagInput]:
    """Plan deletions for the docker repositories of one GitLab project.

    Tags of all repositories are classified together, so a release tag pushed
    to several images of a project is kept or deleted everywhere.

    Args:
        repository_tags: {docker repository: tags} for one project
        branch_map: Branches of the project, keyed by slug
        config: Engine configuration
        now: Reference time
    """
    classifier = TagClassifier.from_config(config)
    all_tags = {tag for tags in repository_tags.values() for tag in tags}
    dispositions = classifier.classify_tags(all_tags, branch_map, now)

    plan: List[DeleteTagInput] = []
    for repository in sorted(repository_tags):
        for tag in sorted(set(repository_tags[repository])):
            disposition = dispositions[tag]
            if is_deletable(disposition):
                plan.append(DeleteTagInput(repository, tag, disposition))
            elif disposition is Disposition.UNKNOWN:
                logger.warning(f"{repository}:{tag},{disposition}")
            else:
                if disposition is Disposition.BRANCH_NOT_STALED:
                    branch = branch_map[normalize_tag(tag, config.release.arch_suffixes)]
                    logger.debug(
                        f"{repository} branch {branch.original_name} ({branch.slug}) "
                        f"has last commit {branch.staled_days} days ago"
                    )
                logger.info(f"{repository}:{tag},{disposition}")
    return plan


def plan_snapshot_tags(
    repository_tags: Mapping[str, Sequence[str]],
    config: RetentionConfig,
    now: Optional[datetime] = None,
) -> List[DeleteTagInput]:
    """Plan deletions of old snapshot tags in snapshot repositories."""
    plan: List[DeleteTagInput] = []
    for repository in sorted(repository_tags):
        if config.snapshot_repository_pattern.search(repository) is None:
            continue
        dispositions = classify_snapshots(repository_tags[repository], config.snapshot, now)
        for tag, disposition in dispositions.items():
            if is_deletable(disposition):
                plan.append(DeleteTagInput(repository, tag, disposition))
            else:
                logger.info(f"{repository}:{tag},{disposition}")
    return plan


def plan_bucket_purge(folders: Iterable[str], retention: GroupRetention) -> List[BucketItem]:
    """Return folders to delete across all groups.

    A group with a malformed id is logged and skipped; other groups are
    still planned.
    """
    folders = list(folders)
    plan: List[BucketItem] = []
    for group in sorted(retention.groups(folders)):
        try:
            plan.extend(retention.prune_group(folders, group))
        except ValidationError as e:
            logger.error(f"skipping group {group}: {e.message}")
    return plan
