#!/usr/bin/env python3
"""
Configuration Manager for the registry tag retention engine

This module loads configuration from config.yaml and environment variables
and turns it into one immutable RetentionConfig value that is passed to the
engine. Patterns are compiled and validated once, when that value is built.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Pattern

import yaml

from tag_retention.arch import DEFAULT_ARCH_SUFFIXES, parse_arch_suffixes
from tag_retention.branches import DEFAULT_STALE_BRANCH_DAYS
from tag_retention.date_window import DEFAULT_MIN_KEEP_COUNT, DEFAULT_NOT_DELETE_DAYS, RetentionWindowConfig
from tag_retention.error_utils import ConfigurationError, create_pattern_error
from tag_retention.group_retention import DEFAULT_GROUP_KEEP_COUNT, GroupRetention
from tag_retention.release_check import DEFAULT_ALLOWED_DELTA_DAYS


class ConfigValidationError(ConfigurationError):
    """Raised when configuration validation fails"""


@dataclass(frozen=True)
class RetentionConfig:
    """Everything the engine needs for one run, compiled and validated"""

    release: RetentionWindowConfig
    snapshot: RetentionWindowConfig
    system_pattern: Pattern[str]
    ignore_repository_pattern: Pattern[str]
    snapshot_repository_pattern: Pattern[str]
    snapshots_enabled: bool = False
    stale_branch_days: int = DEFAULT_STALE_BRANCH_DAYS
    release_delta_days: float = DEFAULT_ALLOWED_DELTA_DAYS
    bucket: Optional[GroupRetention] = None


def compile_pattern(field: str, pattern: str) -> Pattern[str]:
    """Compile a plain (no capture requirements) pattern

    Raises:
        ConfigurationError: If the pattern is empty or does not compile
    """
    if not pattern:
        raise create_pattern_error(field, pattern, "pattern is empty")
    try:
        return re.compile(pattern)
    except (re.error, TypeError) as e:
        raise create_pattern_error(field, pattern, f"failed to compile: {e}") from e


class ConfigManager:
    """Manages configuration for the registry tag retention engine"""

    def __init__(self, config_file: str = None, validate: bool = True):
        """Initialize ConfigManager

        Args:
            config_file: Path to configuration YAML file (defaults to config.yaml or CONFIG_FILE env var)
            validate: If True, validate configuration on initialization
        """
        if config_file is None:
            config_file = os.environ.get("CONFIG_FILE", "config.yaml")
        self.config_file = config_file
        self.config = self._load_config()

        if validate:
            self.validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file with defaults"""
        default_config = {
            "release": {
                "tag_pattern": r"^release-(\d{8}).*$",
                "not_delete_days": DEFAULT_NOT_DELETE_DAYS,
                "min_tags": DEFAULT_MIN_KEEP_COUNT,
            },
            "snapshot": {
                "enabled": False,
                "repository_pattern": r"^devops/docker/mysql-.+$",
                "tag_pattern": r"^(\d{8})-snap$",
                "not_delete_days": DEFAULT_NOT_DELETE_DAYS,
                "min_tags": DEFAULT_MIN_KEEP_COUNT,
            },
            "system": {"tag_pattern": r"^(main|master)$"},
            "repositories": {"ignore_pattern": r"^devops/docker$"},
            "tags": {"arch": list(DEFAULT_ARCH_SUFFIXES)},
            "branches": {"stale_days": DEFAULT_STALE_BRANCH_DAYS},
            "ci": {"release_delta_days": DEFAULT_ALLOWED_DELTA_DAYS},
            "bucket": {"pattern": "", "keep_count": DEFAULT_GROUP_KEEP_COUNT},
        }

        if not os.path.exists(self.config_file):
            logging.warning(f"Config file {self.config_file} not found, using defaults")
            return default_config

        try:
            with open(self.config_file, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Error parsing config file {self.config_file}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigValidationError(f"Config file {self.config_file} must contain a mapping")

        for section, value in user_config.items():
            if section in default_config and value is not None and not isinstance(value, dict):
                raise ConfigValidationError(
                    f"{section} must be a mapping, got: {value} (type: {type(value).__name__})"
                )
        return self._merge_config(default_config, user_config)

    def _merge_config(self, default: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge user config with defaults"""
        result = default.copy()
        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and value is None:
                # an empty section in YAML ("release:") keeps the defaults
                continue
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _number(self, section: str, key: str, default: Any, kind: type) -> Any:
        value = self.config.get(section, {}).get(key, default)
        try:
            if isinstance(value, bool):
                raise TypeError(value)
            if kind is int and isinstance(value, float) and not value.is_integer():
                raise ValueError(value)
            return kind(value)
        except (ValueError, TypeError):
            raise ConfigValidationError(
                f"{section}.{key} must be {'an integer' if kind is int else 'a number'}, "
                f"got: {value} (type: {type(value).__name__})"
            )

    # Release tags
    def get_release_tag_pattern(self) -> str:
        """Get release tag pattern from environment or config"""
        return os.environ.get("RELEASE_TAG") or self.config["release"]["tag_pattern"]

    def get_release_not_delete_days(self) -> float:
        return self._number("release", "not_delete_days", DEFAULT_NOT_DELETE_DAYS, float)

    def get_release_min_tags(self) -> int:
        return self._number("release", "min_tags", DEFAULT_MIN_KEEP_COUNT, int)

    # Snapshot tags
    def is_snapshot_enabled(self) -> bool:
        return bool(self.config.get("snapshot", {}).get("enabled", False))

    def get_snapshot_repository_pattern(self) -> str:
        """Get snapshot repository pattern from environment or config"""
        return os.environ.get("SNAPSHOT_REPOSITORY") or self.config["snapshot"]["repository_pattern"]

    def get_snapshot_tag_pattern(self) -> str:
        """Get snapshot tag pattern from environment or config"""
        return os.environ.get("SNAPSHOT_TAG") or self.config["snapshot"]["tag_pattern"]

    def get_snapshot_not_delete_days(self) -> float:
        return self._number("snapshot", "not_delete_days", DEFAULT_NOT_DELETE_DAYS, float)

    def get_snapshot_min_tags(self) -> int:
        return self._number("snapshot", "min_tags", DEFAULT_MIN_KEEP_COUNT, int)

    # Tag naming
    def get_system_tag_pattern(self) -> str:
        """Get system tag pattern from environment or config"""
        return os.environ.get("SYSTEM_TAG") or self.config["system"]["tag_pattern"]

    def get_ignore_repository_pattern(self) -> str:
        """Get pattern of GitLab projects to skip, from environment or config"""
        return os.environ.get("IGNORE_TAGS") or self.config["repositories"]["ignore_pattern"]

    def get_arch_suffixes(self) -> List[str]:
        """Get arch suffixes from TAG_ARCH ("amd64,arm64") or config"""
        env_value = os.environ.get("TAG_ARCH")
        if env_value:
            return parse_arch_suffixes(env_value)
        value = self.config.get("tags", {}).get("arch", list(DEFAULT_ARCH_SUFFIXES))
        if isinstance(value, str):
            return parse_arch_suffixes(value)
        if not isinstance(value, list):
            raise ConfigValidationError(f"tags.arch must be a list or comma separated string, got: {value}")
        return [str(arch) for arch in value]

    # Branches and CI
    def get_stale_branch_days(self) -> int:
        return self._number("branches", "stale_days", DEFAULT_STALE_BRANCH_DAYS, int)

    def get_release_delta_days(self) -> float:
        return self._number("ci", "release_delta_days", DEFAULT_ALLOWED_DELTA_DAYS, float)

    # Bucket pruning
    def get_bucket_pattern(self) -> str:
        """Get bucket folder pattern from CLEANER_PATTERN or config. Empty means disabled."""
        return os.environ.get("CLEANER_PATTERN") or self.config.get("bucket", {}).get("pattern", "")

    def get_bucket_keep_count(self) -> int:
        return self._number("bucket", "keep_count", DEFAULT_GROUP_KEEP_COUNT, int)

    def validate_config(self) -> None:
        """Validate configuration values

        Raises:
            ConfigValidationError: If configuration is invalid
        """
        errors = []
        warnings = []

        try:
            self.get_retention_config()
        except ConfigurationError as e:
            reason = e.details.get("reason")
            errors.append(f"{e.message}: {reason}" if reason else e.message)

        try:
            stale_days = self.get_stale_branch_days()
            if stale_days < 1:
                errors.append(f"branches.stale_days must be a positive integer, got: {stale_days}")

            delta_days = self.get_release_delta_days()
            if delta_days < 0:
                errors.append(f"ci.release_delta_days must be non-negative, got: {delta_days}")

            if self.get_release_min_tags() == 0:
                warnings.append("release.min_tags is 0, all release tags outside the window may be deleted")
        except ConfigValidationError as e:
            errors.append(e.message)

        for warning in warnings:
            logging.warning(f"Configuration warning: {warning}")

        if errors:
            error_msg = "Configuration validation failed:\n  " + "\n  ".join(dict.fromkeys(errors))
            logging.error(error_msg)
            raise ConfigValidationError(error_msg)

    def get_retention_config(self) -> RetentionConfig:
        """Build the immutable engine configuration

        Raises:
            ConfigurationError: If a pattern or value is invalid
        """
        arch_suffixes = self.get_arch_suffixes()
        release = RetentionWindowConfig.build(
            self.get_release_tag_pattern(),
            self.get_release_not_delete_days(),
            self.get_release_min_tags(),
            arch_suffixes,
            field="release.tag_pattern",
        )
        snapshot = RetentionWindowConfig.build(
            self.get_snapshot_tag_pattern(),
            self.get_snapshot_not_delete_days(),
            self.get_snapshot_min_tags(),
            arch_suffixes,
            field="snapshot.tag_pattern",
        )

        bucket_pattern = self.get_bucket_pattern()
        bucket = GroupRetention(bucket_pattern, self.get_bucket_keep_count()) if bucket_pattern else None

        return RetentionConfig(
            release=release,
            snapshot=snapshot,
            system_pattern=compile_pattern("system.tag_pattern", self.get_system_tag_pattern()),
            ignore_repository_pattern=compile_pattern(
                "repositories.ignore_pattern", self.get_ignore_repository_pattern()
            ),
            snapshot_repository_pattern=compile_pattern(
                "snapshot.repository_pattern", self.get_snapshot_repository_pattern()
            ),
            snapshots_enabled=self.is_snapshot_enabled(),
            stale_branch_days=self.get_stale_branch_days(),
            release_delta_days=self.get_release_delta_days(),
            bucket=bucket,
        )

    def print_config(self):
        """Print current configuration"""
        print("Current Configuration:")
        print(f"  Release Tag Pattern: {self.get_release_tag_pattern()}")
        print(f"  Release Window: {self.get_release_not_delete_days()} days, keep at least {self.get_release_min_tags()}")
        print(f"  System Tag Pattern: {self.get_system_tag_pattern()}")
        print(f"  Ignored Repositories: {self.get_ignore_repository_pattern()}")
        print(f"  Arch Suffixes: {', '.join(self.get_arch_suffixes())}")
        print(f"  Stale Branch Days: {self.get_stale_branch_days()}")
        print(f"  Release Delta Days: {self.get_release_delta_days()}")
        if self.is_snapshot_enabled():
            print(f"  Snapshot Repositories: {self.get_snapshot_repository_pattern()}")
            print(f"  Snapshot Tag Pattern: {self.get_snapshot_tag_pattern()}")
        else:
            print("  Snapshots: disabled")
        print(f"  Bucket Pattern: {self.get_bucket_pattern() or 'Not configured'}")
