"""
Tests for core.config module.
"""

import json
import pytest


class TestSettings:
    """Tests for Settings class."""

    def test_values_loaded_from_env(self):
        """Test that settings are loaded from environment."""
        from commit_publisher.core.config import Settings

        settings = Settings()
        assert settings.connection_timeout == 5000
        assert settings.webhook_secret == "test_secret"

    def test_server_url_trailing_slash_stripped(self):
        """Test that the server URL is normalized."""
        from commit_publisher.core.config import Settings

        settings = Settings()
        assert settings.server_url == "https://ci.example.com"

    def test_default_values(self, monkeypatch):
        """Test that default values are set correctly."""
        monkeypatch.delenv("CONNECTION_TIMEOUT")

        from commit_publisher.core.config import Settings, DEFAULT_CONNECTION_TIMEOUT
        settings = Settings()

        assert settings.connection_timeout == DEFAULT_CONNECTION_TIMEOUT == 10000
        assert settings.dispatcher_workers == 4
        assert settings.dispatcher_queue_size == 1000
        assert settings.problems_max_builds == 1000
        assert settings.webhook_port == 8081
        assert settings.gerrit_use_verified_option is False

    def test_tfs_domains_parsed(self, monkeypatch):
        """Test comma-separated hosted TFS domains parsing."""
        monkeypatch.setenv("TFS_HOSTED_DOMAINS", "visualstudio.com, tfs.corp.local ,")

        from commit_publisher.core.config import Settings
        settings = Settings()

        assert settings.tfs_domains == ["visualstudio.com", "tfs.corp.local"]

    def test_non_positive_timeout_rejected(self, monkeypatch):
        """Test that a zero timeout fails validation."""
        monkeypatch.setenv("CONNECTION_TIMEOUT", "0")

        from pydantic import ValidationError
        from commit_publisher.core.config import Settings

        with pytest.raises(ValidationError):
            Settings()

    def test_non_positive_problems_cap_rejected(self, monkeypatch):
        """Test that the problems store cap must be positive."""
        monkeypatch.setenv("PROBLEMS_MAX_BUILDS", "-1")

        from pydantic import ValidationError
        from commit_publisher.core.config import Settings

        with pytest.raises(ValidationError):
            Settings()


class TestFeatureConfig:
    """Tests for FeatureConfig model."""

    def test_blank_vcs_root_normalized(self):
        """Test that an empty VCS root id means all roots."""
        from commit_publisher.core.config import FeatureConfig

        feature = FeatureConfig(
            feature_id="f1", build_type_id="bt", publisher_id="githubStatusPublisher", vcs_root_id="  "
        )
        assert feature.vcs_root_id is None
        assert feature.params == {}

    def test_blank_publisher_rejected(self):
        """Test that publisher id is mandatory."""
        from pydantic import ValidationError
        from commit_publisher.core.config import FeatureConfig

        with pytest.raises(ValidationError):
            FeatureConfig(feature_id="f1", build_type_id="bt", publisher_id=" ")


class TestLoadFeatures:
    """Tests for load_features function."""

    def test_no_path_returns_empty(self):
        """Test that no file means no features."""
        from commit_publisher.core.config import load_features

        assert load_features(None) == []

    def test_load_list(self, tmp_path):
        """Test loading a plain list of features."""
        from commit_publisher.core.config import load_features

        path = tmp_path / "features.json"
        path.write_text(json.dumps([
            {"feature_id": "f1", "build_type_id": "bt", "publisher_id": "gitlabStatusPublisher",
             "params": {"gitlab_access_token": "t"}},
        ]))

        features = load_features(str(path))

        assert len(features) == 1
        assert features[0].params["gitlab_access_token"] == "t"

    def test_load_wrapped_object(self, tmp_path):
        """Test loading features from a {"features": [...]} object."""
        from commit_publisher.core.config import load_features

        path = tmp_path / "features.json"
        path.write_text(json.dumps({"features": [
            {"feature_id": "f1", "build_type_id": "bt", "publisher_id": "tfs"},
            {"feature_id": "f2", "build_type_id": "bt", "publisher_id": "tfs", "vcs_root_id": "root"},
        ]}))

        features = load_features(str(path))

        assert [f.feature_id for f in features] == ["f1", "f2"]
        assert features[1].vcs_root_id == "root"

    def test_invalid_json_raises(self, tmp_path):
        """Test that malformed JSON raises ConfigurationError."""
        from commit_publisher.core.config import load_features
        from commit_publisher.core.exceptions import ConfigurationError

        path = tmp_path / "features.json"
        path.write_text("{not json")

        with pytest.raises(ConfigurationError):
            load_features(str(path))

    def test_invalid_feature_raises(self, tmp_path):
        """Test that a feature without publisher raises ConfigurationError."""
        from commit_publisher.core.config import load_features
        from commit_publisher.core.exceptions import ConfigurationError

        path = tmp_path / "features.json"
        path.write_text(json.dumps([{"feature_id": "f1", "build_type_id": "bt"}]))

        with pytest.raises(ConfigurationError):
            load_features(str(path))

    def test_missing_file_raises(self, tmp_path):
        """Test that a missing file raises ConfigurationError."""
        from commit_publisher.core.config import load_features
        from commit_publisher.core.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError):
            load_features(str(tmp_path / "missing.json"))
