#!/usr/bin/env python3
"""
Command line entry point for the registry tag retention engine.

Subcommands:
  check-release-tag  CI gate: is the release tag dated close to its commit?
  plan               Dry-run delete plan for a YAML inventory of tags and branches
  prune-bucket       Dry-run list of bucket folders outside the keep-last-N window
  config             Print the effective configuration
"""

import argparse
import logging
import os
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import yaml
from tabulate import tabulate

from tag_retention.branches import build_branch_map
from tag_retention.config_manager import ConfigManager, RetentionConfig
from tag_retention.error_utils import ActionableError
from tag_retention.group_retention import GroupRetention
from tag_retention.logging_utils import get_logger, log_exception, setup_logging
from tag_retention.planner import (
    DeleteTagInput,
    group_repositories_by_project,
    plan_bucket_purge,
    plan_snapshot_tags,
    plan_stale_tags,
)
from tag_retention.release_check import check_release_tag, parse_rfc3339
from tag_retention.tag_dates import as_utc

logger = get_logger("tag_retention.main")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Decide which registry tags and bucket folders can be deleted")
    parser.add_argument("--config", help="Path to config.yaml (default: CONFIG_FILE or config.yaml)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check-release-tag", help="Check a release tag against its commit date")
    check.add_argument("--tag", default=os.environ.get("CI_COMMIT_REF_NAME"), help="Tag to check (default: CI_COMMIT_REF_NAME)")
    check.add_argument("--commit-date", default=os.environ.get("CI_COMMIT_TIMESTAMP"),
                       help="RFC 3339 commit timestamp (default: CI_COMMIT_TIMESTAMP)")
    check.add_argument("--delta-days", type=float, help="Allowed days between tag date and commit date")

    plan = subparsers.add_parser("plan", help="Print tags that would be deleted")
    plan.add_argument("--inventory", required=True, help="YAML file with repositories and branches")

    prune = subparsers.add_parser("prune-bucket", help="Print bucket folders that would be deleted")
    prune.add_argument("--listing", required=True, help="File with one folder per line ('-' for stdin)")
    prune.add_argument("--pattern", help="Folder pattern with (?P<group>) and (?P<id>) (default: config)")
    prune.add_argument("--keep", type=int, help="Folders to keep per group (default: config)")

    subparsers.add_parser("config", help="Print the effective configuration")

    return parser.parse_args(argv)


def load_inventory(path: str) -> Dict[str, Any]:
    """Read the plan inventory.

    Format:
        repositories:
          group/project/image: [tag, ...]
        branches:
          group/project:
            branch-name: 2022-03-01T10:00:00Z
    """
    with open(path, "r") as f:
        inventory = yaml.safe_load(f) or {}
    if not isinstance(inventory, dict) or not isinstance(inventory.get("repositories", {}), dict):
        raise ValueError(f"{path}: expected a mapping with a 'repositories' mapping")
    return inventory


def _commit_time(value: Any) -> datetime:
    # PyYAML already turns unquoted timestamps into datetime objects
    if isinstance(value, datetime):
        return as_utc(value)
    return parse_rfc3339(str(value))


def build_plan(inventory: Dict[str, Any], config: RetentionConfig) -> List[DeleteTagInput]:
    repositories: Dict[str, List[str]] = {
        repository: [str(tag) for tag in (tags or [])]
        for repository, tags in inventory.get("repositories", {}).items()
    }
    branches = inventory.get("branches") or {}

    plan: List[DeleteTagInput] = []
    projects = group_repositories_by_project(repositories, config.ignore_repository_pattern)
    for project in sorted(projects):
        project_branches = branches.get(project) or {}
        branch_map = build_branch_map(
            ((str(name), _commit_time(committed)) for name, committed in project_branches.items()),
            config.stale_branch_days,
        )
        repository_tags = {repository: repositories[repository] for repository in projects[project]}
        plan.extend(plan_stale_tags(repository_tags, branch_map, config))

    if config.snapshots_enabled:
        plan.extend(plan_snapshot_tags(repositories, config))
    return plan


def run_check_release_tag(args: argparse.Namespace, config: RetentionConfig) -> int:
    if not args.tag or not args.commit_date:
        logger.error("Both --tag and --commit-date (or CI_COMMIT_REF_NAME and CI_COMMIT_TIMESTAMP) are required")
        return 1

    delta_days = args.delta_days if args.delta_days is not None else config.release_delta_days
    try:
        check_release_tag(args.tag, config.release.date_pattern, args.commit_date, delta_days)
    except ActionableError as e:
        print(f"Tag {args.tag} is not valid:\n{e}")
        return 1

    print(f"Tag {args.tag} is valid")
    return 0


def run_plan(args: argparse.Namespace, config: RetentionConfig) -> int:
    plan = build_plan(load_inventory(args.inventory), config)
    rows = [[item.repository, item.tag, str(item.disposition)] for item in plan]
    if rows:
        print(tabulate(rows, headers=["Repository", "Tag", "Reason"], tablefmt="grid"))
    logger.info(f"DRY RUN: {len(plan)} tags would be deleted")
    return 0


def run_prune_bucket(args: argparse.Namespace, manager: ConfigManager) -> int:
    pattern = args.pattern or manager.get_bucket_pattern()
    keep = args.keep if args.keep is not None else manager.get_bucket_keep_count()
    if not pattern:
        logger.error("No bucket pattern: pass --pattern or set bucket.pattern / CLEANER_PATTERN")
        return 1
    retention = GroupRetention(pattern, keep)

    if args.listing == "-":
        lines = sys.stdin.read().splitlines()
    else:
        with open(args.listing, "r") as f:
            lines = f.read().splitlines()
    folders = [line.strip() for line in lines if line.strip()]

    plan = plan_bucket_purge(folders, retention)
    rows = [[item.group, item.id, item.name] for item in plan]
    if rows:
        print(tabulate(rows, headers=["Group", "ID", "Folder"], tablefmt="grid"))
    logger.info(f"DRY RUN: {len(plan)} of {len(folders)} folders would be deleted")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.debug else logging.INFO)

    try:
        manager = ConfigManager(config_file=args.config)
        if args.command == "config":
            manager.print_config()
            return 0

        config = manager.get_retention_config()
        if args.command == "check-release-tag":
            return run_check_release_tag(args, config)
        if args.command == "plan":
            return run_plan(args, config)
        return run_prune_bucket(args, manager)
    except ActionableError as e:
        logger.error(str(e))
        return 1
    except (OSError, ValueError, yaml.YAMLError) as e:
        log_exception(logger, f"{args.command} failed", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
