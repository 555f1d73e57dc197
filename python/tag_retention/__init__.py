"""
Retention decisions for container registry tags and object-store folders.

This package decides what may be deleted; it never talks to a registry:
- Date window retention for release and snapshot tags
- Branch-based classification of docker tags
- Keep-last-N retention for bucket folders
- CI check of release tag dates
"""

from tag_retention.arch import canonical_tags, normalize_tag
from tag_retention.classifier import Disposition, TagClassifier, classify, classify_snapshots
from tag_retention.date_window import RetentionWindowConfig, compute_keep_set, deletable_tags
from tag_retention.group_retention import BucketItem, GroupRetention
from tag_retention.release_check import check_release_tag

__all__ = [
    "BucketItem",
    "Disposition",
    "GroupRetention",
    "RetentionWindowConfig",
    "TagClassifier",
    "canonical_tags",
    "check_release_tag",
    "classify",
    "classify_snapshots",
    "compute_keep_set",
    "deletable_tags",
    "normalize_tag",
]
