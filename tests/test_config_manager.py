"""Unit tests for tag_retention/config_manager.py"""

import os
import tempfile
from unittest.mock import patch

import pytest
import yaml

from tag_retention.config_manager import ConfigManager, ConfigValidationError, RetentionConfig
from tag_retention.error_utils import ConfigurationError
from tag_retention.group_retention import GroupRetention


@pytest.fixture(autouse=True)
def no_env_overrides(clean_env):
    """Run every test without environment overrides"""
    yield


def write_config(config):
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(config, f)
        return f.name


class TestConfigManagerInitialization:
    """Tests for ConfigManager initialization"""

    def test_loads_default_config_when_file_not_found(self):
        """Test that defaults are used when config file doesn't exist"""
        cm = ConfigManager(config_file="/nonexistent/config.yaml", validate=False)

        assert cm.get_release_tag_pattern() == r"^release-(\d{8}).*$"
        assert cm.get_system_tag_pattern() == r"^(main|master)$"
        assert cm.get_arch_suffixes() == ["amd64", "arm64"]

    def test_loads_config_from_yaml_file(self):
        """Test loading configuration from a YAML file"""
        temp_path = write_config({
            "release": {"tag_pattern": r"^v(\d{8})$", "not_delete_days": 14, "min_tags": 5},
            "system": {"tag_pattern": "^trunk$"},
        })

        try:
            cm = ConfigManager(config_file=temp_path)
            assert cm.get_release_tag_pattern() == r"^v(\d{8})$"
            assert cm.get_release_not_delete_days() == 14.0
            assert cm.get_release_min_tags() == 5
            assert cm.get_system_tag_pattern() == "^trunk$"
        finally:
            os.unlink(temp_path)

    def test_merges_user_config_with_defaults(self):
        """Test that user config is merged with defaults"""
        temp_path = write_config({"snapshot": {"enabled": True}})

        try:
            cm = ConfigManager(config_file=temp_path, validate=False)
            assert cm.is_snapshot_enabled() is True
            assert cm.get_snapshot_tag_pattern() == r"^(\d{8})-snap$"
            assert cm.get_snapshot_min_tags() == 3
        finally:
            os.unlink(temp_path)

    def test_config_file_from_environment(self):
        temp_path = write_config({"branches": {"stale_days": 7}})

        try:
            with patch.dict(os.environ, {"CONFIG_FILE": temp_path}):
                cm = ConfigManager(validate=False)
            assert cm.get_stale_branch_days() == 7
        finally:
            os.unlink(temp_path)

    def test_malformed_yaml_raises(self):
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("release: [unclosed\n")
            temp_path = f.name

        try:
            with pytest.raises(ConfigValidationError, match="Error parsing config file"):
                ConfigManager(config_file=temp_path, validate=False)
        finally:
            os.unlink(temp_path)

    def test_environment_variables_override_config(self):
        """Test that environment variables take precedence"""
        with patch.dict(
            os.environ,
            {
                "RELEASE_TAG": r"^rel-(\d{8})$",
                "SYSTEM_TAG": "^develop$",
                "SNAPSHOT_TAG": r"^snap-(\d{8})$",
                "SNAPSHOT_REPOSITORY": "^db/.+$",
                "IGNORE_TAGS": "^infra/.+$",
                "TAG_ARCH": "amd64,s390x",
                "CLEANER_PATTERN": r"(?P<group>web)-(?P<id>\d+)",
            },
        ):
            cm = ConfigManager(config_file="/nonexistent/config.yaml", validate=False)
            assert cm.get_release_tag_pattern() == r"^rel-(\d{8})$"
            assert cm.get_system_tag_pattern() == "^develop$"
            assert cm.get_snapshot_tag_pattern() == r"^snap-(\d{8})$"
            assert cm.get_snapshot_repository_pattern() == "^db/.+$"
            assert cm.get_ignore_repository_pattern() == "^infra/.+$"
            assert cm.get_arch_suffixes() == ["amd64", "s390x"]
            assert cm.get_bucket_pattern() == r"(?P<group>web)-(?P<id>\d+)"


class TestConfigManagerGetters:
    """Tests for ConfigManager getter methods"""

    @pytest.fixture
    def config_manager(self):
        """Create a ConfigManager with default config"""
        return ConfigManager(config_file="/nonexistent/config.yaml", validate=False)

    def test_numeric_defaults(self, config_manager):
        assert config_manager.get_release_not_delete_days() == 10.0
        assert config_manager.get_release_min_tags() == 3
        assert config_manager.get_stale_branch_days() == 30
        assert config_manager.get_release_delta_days() == 5.0
        assert config_manager.get_bucket_keep_count() == 10

    def test_numeric_strings_are_coerced(self, config_manager):
        config_manager.config["release"]["min_tags"] = "4"
        assert config_manager.get_release_min_tags() == 4
        assert isinstance(config_manager.get_release_min_tags(), int)

    def test_invalid_number_raises(self, config_manager):
        config_manager.config["release"]["not_delete_days"] = "ten"
        with pytest.raises(ConfigValidationError, match="release.not_delete_days must be a number"):
            config_manager.get_release_not_delete_days()

    def test_arch_as_string(self, config_manager):
        config_manager.config["tags"]["arch"] = "arm64, ppc64le"
        assert config_manager.get_arch_suffixes() == ["arm64", "ppc64le"]

    def test_arch_invalid_type(self, config_manager):
        config_manager.config["tags"]["arch"] = 64
        with pytest.raises(ConfigValidationError):
            config_manager.get_arch_suffixes()

    def test_bucket_disabled_by_default(self, config_manager):
        assert config_manager.get_bucket_pattern() == ""


class TestRetentionConfig:
    """Tests for building the immutable engine configuration"""

    def test_default_retention_config(self):
        config = ConfigManager(config_file="/nonexistent/config.yaml", validate=False).get_retention_config()

        assert isinstance(config, RetentionConfig)
        assert config.release.date_pattern.pattern == r"^release-(\d{8}).*$"
        assert config.release.not_delete_days == 10.0
        assert config.release.min_keep_count == 3
        assert config.release.arch_suffixes == ("amd64", "arm64")
        assert config.snapshot.date_pattern.pattern == r"^(\d{8})-snap$"
        assert config.system_pattern.search("master")
        assert config.ignore_repository_pattern.search("devops/docker")
        assert config.snapshot_repository_pattern.search("devops/docker/mysql-main")
        assert config.snapshots_enabled is False
        assert config.stale_branch_days == 30
        assert config.release_delta_days == 5.0
        assert config.bucket is None

    def test_bucket_retention(self):
        temp_path = write_config({"bucket": {"pattern": r"^(?P<group>\w+)-(?P<id>\d+)/$", "keep_count": 4}})

        try:
            config = ConfigManager(config_file=temp_path).get_retention_config()
            assert isinstance(config.bucket, GroupRetention)
            assert config.bucket.keep_count == 4
        finally:
            os.unlink(temp_path)

    def test_retention_config_is_immutable(self):
        config = ConfigManager(config_file="/nonexistent/config.yaml", validate=False).get_retention_config()
        with pytest.raises(AttributeError):
            config.stale_branch_days = 1

    def test_release_pattern_without_group(self):
        cm = ConfigManager(config_file="/nonexistent/config.yaml", validate=False)
        cm.config["release"]["tag_pattern"] = r"^release-\d{8}$"

        with pytest.raises(ConfigurationError) as exc_info:
            cm.get_retention_config()
        assert exc_info.value.details["field"] == "release.tag_pattern"


class TestConfigValidation:
    """Tests for validate_config"""

    def test_valid_defaults(self):
        ConfigManager(config_file="/nonexistent/config.yaml", validate=False).validate_config()

    def test_invalid_pattern_fails_validation(self):
        temp_path = write_config({"system": {"tag_pattern": "(main"}})

        try:
            with pytest.raises(ConfigValidationError, match="system.tag_pattern"):
                ConfigManager(config_file=temp_path)
        finally:
            os.unlink(temp_path)

    def test_bucket_pattern_missing_named_groups(self):
        with patch.dict(os.environ, {"CLEANER_PATTERN": r"(\w+)-(\d+)"}):
            with pytest.raises(ConfigValidationError, match="bucket.pattern"):
                ConfigManager(config_file="/nonexistent/config.yaml")

    def test_negative_values(self):
        temp_path = write_config({"branches": {"stale_days": 0}, "ci": {"release_delta_days": -1}})

        try:
            with pytest.raises(ConfigValidationError) as exc_info:
                ConfigManager(config_file=temp_path)
            assert "branches.stale_days" in str(exc_info.value)
            assert "ci.release_delta_days" in str(exc_info.value)
        finally:
            os.unlink(temp_path)

    def test_negative_window_days(self):
        temp_path = write_config({"snapshot": {"not_delete_days": -5}})

        try:
            with pytest.raises(ConfigValidationError, match="not_delete_days"):
                ConfigManager(config_file=temp_path)
        finally:
            os.unlink(temp_path)


class TestConfigValueTypes:
    """Tests for malformed values in config.yaml"""

    def test_fractional_count_is_rejected(self):
        temp_path = write_config({"release": {"min_tags": 2.5}})

        try:
            with pytest.raises(ConfigValidationError, match="release.min_tags must be an integer"):
                ConfigManager(config_file=temp_path)
        finally:
            os.unlink(temp_path)

    def test_whole_float_count_is_accepted(self):
        temp_path = write_config({"release": {"min_tags": 4.0}})

        try:
            assert ConfigManager(config_file=temp_path).get_release_min_tags() == 4
        finally:
            os.unlink(temp_path)

    def test_boolean_count_is_rejected(self):
        cm = ConfigManager(config_file="/nonexistent/config.yaml", validate=False)
        cm.config["bucket"]["keep_count"] = True

        with pytest.raises(ConfigValidationError, match="bucket.keep_count"):
            cm.get_bucket_keep_count()

    def test_empty_section_keeps_defaults(self):
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("release:\nsystem:\n  tag_pattern: '^trunk$'\n")
            temp_path = f.name

        try:
            cm = ConfigManager(config_file=temp_path)
            assert cm.get_release_tag_pattern() == r"^release-(\d{8}).*$"
            assert cm.get_release_min_tags() == 3
            assert cm.get_system_tag_pattern() == "^trunk$"
        finally:
            os.unlink(temp_path)

    def test_section_that_is_not_a_mapping(self):
        temp_path = write_config({"release": "release-*"})

        try:
            with pytest.raises(ConfigValidationError, match="release must be a mapping"):
                ConfigManager(config_file=temp_path)
        finally:
            os.unlink(temp_path)

    def test_null_pattern_is_a_config_error(self):
        temp_path = write_config({"release": {"tag_pattern": None}})

        try:
            with pytest.raises(ConfigValidationError, match="release.tag_pattern"):
                ConfigManager(config_file=temp_path)
        finally:
            os.unlink(temp_path)
