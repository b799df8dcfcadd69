"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import pytest
from unittest.mock import MagicMock

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


# ============================================================================
# Environment Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def mock_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("SERVER_URL", "https://ci.example.com/")
    monkeypatch.setenv("CONNECTION_TIMEOUT", "5000")
    monkeypatch.setenv("WEBHOOK_SECRET", "test_secret")
    monkeypatch.delenv("FEATURES_FILE", raising=False)


@pytest.fixture
def test_settings():
    """Settings built from the test environment."""
    from commit_publisher.core.config import Settings
    return Settings()


# ============================================================================
# Model Fixtures
# ============================================================================

@pytest.fixture
def git_root():
    """A git VCS root pointing at GitHub."""
    from commit_publisher.models.build import VcsRoot
    return VcsRoot(
        id="Project_Repo",
        name="Project Repo",
        vcs_name="jetbrains.git",
        properties={"url": "https://github.com/owner/repo.git"},
    )


@pytest.fixture
def make_build(git_root):
    """Factory of builds with a single revision on git_root."""
    from commit_publisher.models.build import Build, BuildRevision, BuildStatus

    def factory(root=None, revision="abc123", **kwargs):
        fields = {
            "id": 42,
            "build_type_id": "Project_Build",
            "build_type_name": "Build",
            "full_name": "Project / Build",
            "number": "17",
            "status": BuildStatus.SUCCESS,
            "status_text": "Tests passed: 12",
        }
        fields.update(kwargs)
        build = Build(**fields)
        build.revisions = [BuildRevision(root or git_root, revision, "refs/heads/feature")]
        return build

    return factory


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def problems():
    """An empty build problems store."""
    from commit_publisher.state.problems import BuildProblemsStore
    return BuildProblemsStore()


@pytest.fixture
def mock_dispatcher():
    """Dispatcher double recording submitted items."""
    dispatcher = MagicMock()
    dispatcher.submit = MagicMock(return_value=MagicMock())
    return dispatcher


@pytest.fixture
def make_feature():
    """Factory of build features."""
    from commit_publisher.core.config import FeatureConfig

    def factory(publisher_id, params=None, **kwargs):
        return FeatureConfig(
            feature_id=kwargs.pop("feature_id", "BUILD_EXT_1"),
            build_type_id=kwargs.pop("build_type_id", "Project_Build"),
            publisher_id=publisher_id,
            params=params or {},
            **kwargs,
        )

    return factory


@pytest.fixture
def make_publisher(make_feature, mock_dispatcher, problems, test_settings):
    """Factory of CommitStatusPublisher instances using the mock dispatcher."""
    from commit_publisher.services.publishers import CommitStatusPublisher, get_descriptor

    def factory(publisher_id, params=None, **kwargs):
        feature = make_feature(publisher_id, params, **kwargs)
        return CommitStatusPublisher(
            get_descriptor(publisher_id), feature, mock_dispatcher, problems, test_settings
        )

    return factory


