"""
Pytest configuration file.

Sets up the Python path so test files can import from the python/ directory,
and provides a fixed reference time plus a default engine configuration.
"""
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add python directory to path for all tests
_python_dir = Path(__file__).parent.parent / 'python'
_python_dir_abs = str(_python_dir.absolute())
if _python_dir_abs not in sys.path:
    sys.path.insert(0, _python_dir_abs)

CONFIG_ENV_VARS = (
    "CONFIG_FILE",
    "RELEASE_TAG",
    "SYSTEM_TAG",
    "SNAPSHOT_TAG",
    "SNAPSHOT_REPOSITORY",
    "IGNORE_TAGS",
    "TAG_ARCH",
    "CLEANER_PATTERN",
    "CI_COMMIT_REF_NAME",
    "CI_COMMIT_TIMESTAMP",
)


@pytest.fixture
def now():
    """Fixed reference time, later than every dated tag used in the tests"""
    return datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove environment overrides so defaults from config_manager apply"""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def retention_config(clean_env):
    """Default RetentionConfig with snapshots enabled"""
    from tag_retention.config_manager import ConfigManager

    manager = ConfigManager(config_file="/nonexistent/config.yaml", validate=False)
    manager.config["snapshot"]["enabled"] = True
    return manager.get_retention_config()
