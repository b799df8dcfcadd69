"""
Tests for the generic publisher and the provider descriptors.
"""

import json
import pytest
from unittest.mock import AsyncMock, MagicMock


def submitted(dispatcher):
    return dispatcher.submit.call_args.args[0]


def hg_root(url):
    from commit_publisher.models.build import VcsRoot
    return VcsRoot("Hg_Root", "Hg Root", "mercurial", {"repositoryPath": url})


def git_root_for(url):
    from commit_publisher.models.build import VcsRoot
    return VcsRoot("Git_Root", "Git Root", "jetbrains.git", {"url": url})


class TestRegistry:
    """Tests for descriptor lookup and publisher creation."""

    def test_all_providers_registered(self):
        """Test that every provider is available by id."""
        from commit_publisher.services.publishers import DESCRIPTORS

        assert set(DESCRIPTORS) == {
            "githubStatusPublisher", "gitlabStatusPublisher", "bitbucketCloudPublisher",
            "atlassianStashPublisher", "gerritStatusPublisher", "tfs", "upsourcePublisher",
            "deveoStatusPublisher", "giteaStatusPublisher", "spaceStatusPublisher",
        }

    def test_unknown_publisher(self):
        """Test that unknown ids raise ConfigurationError."""
        from commit_publisher.core.exceptions import ConfigurationError
        from commit_publisher.services.publishers import get_descriptor

        with pytest.raises(ConfigurationError, match="Unknown publisher"):
            get_descriptor("swarmPublisher")

    def test_create_validates(self, make_feature, mock_dispatcher, problems, test_settings):
        """Test that missing mandatory parameters are reported."""
        from commit_publisher.core.exceptions import ConfigurationError
        from commit_publisher.services.publishers import create_publisher

        feature = make_feature("bitbucketCloudPublisher", {"bitbucket_username": "u"})

        with pytest.raises(ConfigurationError, match="bitbucket_password"):
            create_publisher(feature, mock_dispatcher, problems, test_settings)


class TestCommitStatusPublisher:
    """Tests for provider independent behaviour."""

    def test_unsupported_event_not_submitted(self, make_publisher, make_build, mock_dispatcher):
        """Test that events outside the provider's set are ignored."""
        publisher = make_publisher("githubStatusPublisher", {"github_access_token": "t"})
        build = make_build()

        assert publisher.build_commented(build, build.revisions[0], "bob", "hi") is False
        mock_dispatcher.submit.assert_not_called()

    def test_kind_without_state_not_submitted(self, make_publisher, make_build, mock_dispatcher):
        """Test that statuses the provider has no token for are skipped."""
        publisher = make_publisher("upsourcePublisher", {
            "upsource_server_url": "https://upsource.example.com",
            "upsource_project_id": "proj",
        })
        build = make_build()

        assert publisher.build_queued(build, build.revisions[0]) is False
        mock_dispatcher.submit.assert_not_called()

    def test_unparseable_repository_raises(self, make_publisher, make_build, mock_dispatcher):
        """Test that an unknown repository URL raises RepositoryParseError."""
        from commit_publisher.core.exceptions import RepositoryParseError

        publisher = make_publisher("githubStatusPublisher", {"github_access_token": "t"})
        build = make_build(root=git_root_for("not a url"))

        with pytest.raises(RepositoryParseError) as exc_info:
            publisher.build_finished(build, build.revisions[0])

        assert exc_info.value.vcs_root_name == "Git Root"
        mock_dispatcher.submit.assert_not_called()

    def test_target_url(self, make_publisher, make_build):
        """Test build links for queued, running and linked builds."""
        publisher = make_publisher("githubStatusPublisher", {"github_access_token": "t"})

        assert publisher.target_url(make_build()) == "https://ci.example.com/viewLog.html?buildId=42"
        assert publisher.target_url(make_build(queued=True)) == "https://ci.example.com/viewQueued.html?itemId=42"
        assert publisher.target_url(make_build(web_url="https://x/b/1")) == "https://x/b/1"

    def test_timeout_from_feature(self, make_publisher):
        """Test per-feature timeout and fallback to the global one."""
        params = {"github_access_token": "t"}

        assert make_publisher("githubStatusPublisher", {**params, "connection_timeout": "2500"}).timeout_ms == 2500
        assert make_publisher("githubStatusPublisher", {**params, "connection_timeout": "abc"}).timeout_ms == 5000
        assert make_publisher("githubStatusPublisher", params).timeout_ms == 5000

    def test_failure_reported_as_problem(self, make_publisher, make_build, mock_dispatcher, problems):
        """Test that the failure callback records a build problem."""
        from commit_publisher.core.exceptions import RemoteRejectionError

        publisher = make_publisher("githubStatusPublisher", {"github_access_token": "t"})
        build = make_build()
        publisher.build_finished(build, build.revisions[0])

        on_failure = mock_dispatcher.submit.call_args.kwargs["on_failure"]
        on_failure(RemoteRejectionError(404, "Not Found", "Not Found"))

        stored = problems.get(42)
        assert len(stored) == 1
        assert stored[0].problem_id == "commitStatusPublisher.BUILD_EXT_1"
        assert "githubStatusPublisher(https://api.github.com)" in stored[0].description
        assert "response code: 404" in stored[0].description

    @pytest.mark.asyncio
    async def test_connection_test_uses_dispatcher(self, make_publisher, git_root, mock_dispatcher):
        """Test that connection tests are delivered synchronously."""
        from commit_publisher.models.request import DeliveryResult

        mock_dispatcher.test_connection = AsyncMock(return_value=DeliveryResult.ok(200))
        publisher = make_publisher("githubStatusPublisher", {"github_access_token": "t"})

        result = await publisher.test_connection(git_root)

        assert result.success is True
        request = mock_dispatcher.test_connection.call_args.args[0]
        assert request.method == "GET"
        assert request.url == "https://api.github.com/repos/owner/repo"

    @pytest.mark.asyncio
    async def test_connection_test_not_supported(self, make_publisher, git_root):
        """Test that providers without a check raise PublisherError."""
        from commit_publisher.core.exceptions import PublisherError

        publisher = make_publisher("deveoStatusPublisher", {
            "deveo_api_hostname": "https://app.deveo.com",
            "deveo_plugin_key": "p",
            "deveo_company_key": "c",
        })

        with pytest.raises(PublisherError, match="not supported"):
            await publisher.test_connection(git_root)


class TestGitHub:
    """Tests for the GitHub provider."""

    def test_finished_build(self, make_publisher, make_build, mock_dispatcher):
        """Test status request of a finished build."""
        from commit_publisher.models.request import HeaderAuth

        publisher = make_publisher("githubStatusPublisher", {"github_access_token": "secret"})
        build = make_build()

        assert publisher.build_finished(build, build.revisions[0]) is True

        request = submitted(mock_dispatcher)
        assert request.url == "https://api.github.com/repos/owner/repo/statuses/abc123"
        assert request.credentials == HeaderAuth("Authorization", "Bearer secret")
        assert json.loads(request.payload) == {
            "state": "success",
            "target_url": "https://ci.example.com/viewLog.html?buildId=42",
            "description": "Tests passed: 12",
            "context": "Project / Build",
        }

    def test_enterprise_password_auth(self, make_publisher, make_build, mock_dispatcher):
        """Test GitHub Enterprise with username and password."""
        from commit_publisher.models.request import BasicAuth

        publisher = make_publisher("githubStatusPublisher", {
            "github_host": "https://ghe.example.com/api/v3/",
            "github_authentication_type": "password",
            "github_username": "ci",
            "github_password": "pw",
            "github_context": "ci/teamcity",
        })
        build = make_build(root=git_root_for("git@ghe.example.com:team/app.git"))
        publisher.build_started(build, build.revisions[0])

        request = submitted(mock_dispatcher)
        assert request.url == "https://ghe.example.com/api/v3/repos/team/app/statuses/abc123"
        assert request.credentials == BasicAuth("ci", "pw")
        payload = json.loads(request.payload)
        assert payload["state"] == "pending"
        assert payload["context"] == "ci/teamcity"

    def test_long_description_truncated(self, make_publisher, make_build, mock_dispatcher):
        """Test that descriptions are cut to the GitHub limit."""
        publisher = make_publisher("githubStatusPublisher", {"github_access_token": "t"})
        build = make_build(status_text="x" * 300)
        publisher.build_finished(build, build.revisions[0])

        description = json.loads(submitted(mock_dispatcher).payload)["description"]
        assert description == "x" * 138 + "…"

    @pytest.mark.parametrize("params,message", [
        ({}, "Personal Access Token"),
        ({"github_authentication_type": "password", "github_username": "u"}, "password"),
        ({"github_authentication_type": "oauth"}, "Unsupported authentication type"),
    ])
    def test_validation(self, make_publisher, params, message):
        """Test GitHub credential validation."""
        from commit_publisher.core.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError, match=message):
            make_publisher("githubStatusPublisher", params).validate()


class TestGitLab:
    """Tests for the GitLab provider."""

    def test_guessed_api_url(self, make_publisher, make_build, mock_dispatcher):
        """Test that the API URL is guessed from the repository URL."""
        from commit_publisher.models.request import HeaderAuth

        publisher = make_publisher("gitlabStatusPublisher", {"gitlab_access_token": "tkn"})
        build = make_build(root=git_root_for("https://gitlab.example.com/group/my.repo.git"))
        publisher.build_started(build, build.revisions[0])

        request = submitted(mock_dispatcher)
        assert request.url == "https://gitlab.example.com/api/v4/projects/group%2Fmy%2Erepo/statuses/abc123"
        assert request.credentials == HeaderAuth("PRIVATE-TOKEN", "tkn")
        assert json.loads(request.payload) == {
            "state": "running",
            "name": "Project / Build",
            "target_url": "https://ci.example.com/viewLog.html?buildId=42",
            "description": "TeamCity build started",
            "ref": "feature",
        }
        assert request.tolerated_errors

    def test_nested_groups_with_path_prefix(self, make_publisher, make_build, mock_dispatcher):
        """Test GitLab under a path with nested groups."""
        publisher = make_publisher("gitlabStatusPublisher", {
            "gitlab_access_token": "tkn",
            "gitlab_api_url": "https://host.example.com/gitlab/api/v4",
        })
        build = make_build(root=git_root_for("https://host.example.com/gitlab/group/sub/repo.git"))
        publisher.build_finished(build, build.revisions[0])

        request = submitted(mock_dispatcher)
        assert request.url == (
            "https://host.example.com/gitlab/api/v4/projects/group%2Fsub%2Frepo/statuses/abc123"
        )

    def test_interrupted_is_canceled(self, make_publisher, make_build, mock_dispatcher):
        """Test interrupted build state."""
        publisher = make_publisher("gitlabStatusPublisher", {"gitlab_access_token": "tkn"})
        build = make_build(root=git_root_for("https://gitlab.com/group/repo.git"))
        publisher.build_interrupted(build, build.revisions[0])

        assert json.loads(submitted(mock_dispatcher).payload)["state"] == "canceled"

    def test_ref_name(self):
        """Test branch to ref conversion."""
        from commit_publisher.services.publishers.gitlab import ref_name

        assert ref_name("refs/heads/main") == "main"
        assert ref_name("refs/tags/v1") == "v1"
        assert ref_name("main") == "main"
        assert ref_name(None) is None

    def test_path_prefix(self):
        """Test path prefix extraction from API URLs."""
        from commit_publisher.services.publishers.gitlab import path_prefix

        assert path_prefix("https://host/gitlab/api/v4") == "/gitlab"
        assert path_prefix("https://gitlab.com/api/v4") == ""
        assert path_prefix("https://gitlab.com") is None


class TestBitbucket:
    """Tests for Bitbucket Cloud and Bitbucket Server providers."""

    def test_cloud_request(self, make_publisher, make_build, mock_dispatcher):
        """Test Bitbucket Cloud build status request."""
        from commit_publisher.models.request import BasicAuth

        publisher = make_publisher("bitbucketCloudPublisher", {
            "bitbucket_username": "u", "bitbucket_password": "p",
        })
        build = make_build(root=git_root_for("git@bitbucket.org:Owner/Repo.git"))
        publisher.build_removed_from_queue(build, build.revisions[0], "alice", None)

        request = submitted(mock_dispatcher)
        assert request.url == "https://api.bitbucket.org/2.0/repositories/owner/repo/commit/abc123/statuses/build"
        assert request.credentials == BasicAuth("u", "p")
        payload = json.loads(request.payload)
        assert payload["key"] == "Project_Build"
        assert payload["state"] == "STOPPED"
        assert payload["description"] == "TeamCity build was removed from queue by alice"

    def test_cloud_mercurial(self, make_publisher, make_build, mock_dispatcher):
        """Test Bitbucket Cloud mercurial repository."""
        publisher = make_publisher("bitbucketCloudPublisher", {
            "bitbucket_username": "u", "bitbucket_password": "p",
        })
        build = make_build(root=hg_root("ssh://hg@bitbucket.org/Owner/Repo"))
        publisher.build_finished(build, build.revisions[0])

        assert "/repositories/owner/repo/" in submitted(mock_dispatcher).url

    def test_cloud_custom_api_url(self, make_publisher, make_build, mock_dispatcher):
        """Test that bitbucket_api_url replaces the public API root."""
        publisher = make_publisher("bitbucketCloudPublisher", {
            "bitbucket_username": "u", "bitbucket_password": "p",
            "bitbucket_api_url": "http://localhost:8080",
        })
        build = make_build(root=git_root_for("git@bitbucket.org:Owner/Repo.git"))
        publisher.build_finished(build, build.revisions[0])

        assert submitted(mock_dispatcher).url == (
            "http://localhost:8080/2.0/repositories/owner/repo/commit/abc123/statuses/build"
        )
        assert publisher.destination == "http://localhost:8080/"

    @pytest.mark.asyncio
    async def test_cloud_connection_custom_api_url(self, make_publisher, mock_dispatcher):
        """Test that connection tests use the configured API root."""
        from commit_publisher.models.request import DeliveryResult

        mock_dispatcher.test_connection = AsyncMock(return_value=DeliveryResult.ok(200))
        publisher = make_publisher("bitbucketCloudPublisher", {
            "bitbucket_username": "u", "bitbucket_password": "p",
            "bitbucket_api_url": "https://bitbucket.example.com/api/",
        })

        await publisher.test_connection(git_root_for("git@bitbucket.org:Owner/Repo.git"))

        request = mock_dispatcher.test_connection.call_args.args[0]
        assert request.url == "https://bitbucket.example.com/api/2.0/repositories/owner/repo"

    def test_server_request(self, make_publisher, make_build, mock_dispatcher):
        """Test Bitbucket Server build status request."""
        publisher = make_publisher("atlassianStashPublisher", {
            "stash_username": "u", "stash_password": "p",
            "stash_base_url": "https://stash.example.com/",
        })
        build = make_build(root=git_root_for("ssh://git@stash.example.com:7999/proj/repo.git"))
        publisher.build_interrupted(build, build.revisions[0])

        request = submitted(mock_dispatcher)
        assert request.url == "https://stash.example.com/rest/build-status/1.0/commits/abc123"
        assert json.loads(request.payload)["state"] == "FAILED"

    def test_server_guessed_url(self, make_publisher, make_build, mock_dispatcher):
        """Test Bitbucket Server URL guessed from the repository URL."""
        publisher = make_publisher("atlassianStashPublisher", {"stash_username": "u", "stash_password": "p"})
        build = make_build(root=git_root_for("https://stash.example.com:8443/scm/proj/repo.git"))
        publisher.build_started(build, build.revisions[0])

        assert submitted(mock_dispatcher).url == (
            "https://stash.example.com:8443/rest/build-status/1.0/commits/abc123"
        )


class TestUpsource:
    """Tests for the Upsource provider."""

    PARAMS = {
        "upsource_server_url": "https://upsource.example.com/",
        "upsource_project_id": "proj",
        "upsource_username": "ci",
        "upsource_password": "pw",
    }

    def test_request(self, make_publisher, make_build, mock_dispatcher):
        """Test Upsource build status request."""
        publisher = make_publisher("upsourcePublisher", self.PARAMS)
        build = make_build()
        publisher.build_started(build, build.revisions[0])

        request = submitted(mock_dispatcher)
        assert request.url == "https://upsource.example.com/~buildStatus"
        payload = json.loads(request.payload)
        assert payload["project"] == "proj"
        assert payload["state"] == "in_progress"
        assert payload["name"] == "Project / Build #17"
        assert payload["revision"] == "abc123"

    def test_svn_revision_normalized(self):
        """Test that Subversion revisions are reduced to the number."""
        from commit_publisher.models.build import BuildRevision, VcsRoot
        from commit_publisher.services.publishers.upsource import normalize_revision

        root = VcsRoot("svn", "svn", "svn", {"url": "https://svn.example.com/o/r"})

        assert normalize_revision(BuildRevision(root, "trunk|1234_20240101")) == "1234"
        assert normalize_revision(BuildRevision(root, "1234")) == "1234"


class TestTfs:
    """Tests for the Azure DevOps provider."""

    def test_request(self, make_publisher, make_build, mock_dispatcher):
        """Test Azure DevOps commit status request."""
        from commit_publisher.models.request import BasicAuth

        publisher = make_publisher("tfs", {"tfs_access_token": "pat"})
        build = make_build(root=git_root_for("https://dev.azure.com/org/Project/_git/Repository"))
        publisher.build_started(build, build.revisions[0])

        request = submitted(mock_dispatcher)
        assert request.url == (
            "https://dev.azure.com/org/Project/_apis/git/repositories/Repository"
            "/commits/abc123/statuses?api-version=2.1"
        )
        assert request.credentials == BasicAuth("", "pat")
        assert json.loads(request.payload) == {
            "state": "Pending",
            "description": "The build Project / Build 17 is pending",
            "targetUrl": "https://ci.example.com/viewLog.html?buildId=42",
            "context": {"name": "Project_Build", "genre": "TeamCity"},
        }

    def test_finished_description(self, make_publisher, make_build, mock_dispatcher):
        """Test description of a finished build."""
        publisher = make_publisher("tfs", {"tfs_access_token": "pat"})
        build = make_build(root=git_root_for("https://dev.azure.com/org/Project/_git/Repository"))
        publisher.build_finished(build, build.revisions[0])

        assert json.loads(submitted(mock_dispatcher).payload)["description"] == (
            "The build Project / Build 17 has succeeded"
        )

    def test_mercurial_root_rejected(self, make_publisher, make_build):
        """Test that only git roots are supported."""
        from commit_publisher.core.exceptions import RepositoryParseError

        publisher = make_publisher("tfs", {"tfs_access_token": "pat"})
        build = make_build(root=hg_root("https://dev.azure.com/org/Project/_git/Repository"))

        with pytest.raises(RepositoryParseError):
            publisher.build_finished(build, build.revisions[0])


class TestDeveo:
    """Tests for the Deveo provider."""

    def test_request(self, make_publisher, make_build, mock_dispatcher):
        """Test Deveo build event request."""
        from commit_publisher.models.build import BuildStatus

        publisher = make_publisher("deveoStatusPublisher", {
            "deveo_api_hostname": "https://app.deveo.com",
            "deveo_plugin_key": "p",
            "deveo_company_key": "c",
            "deveo_account_key": "a",
        })
        build = make_build(
            root=git_root_for("https://app.deveo.com/example/projects/proj/repositories/git/repo"),
            status=BuildStatus.FAILURE,
        )
        publisher.build_finished(build, build.revisions[0])

        request = submitted(mock_dispatcher)
        assert request.url == "https://app.deveo.com/api/events"
        assert request.headers["Accept"] == "application/vnd.deveo.v1"
        assert request.credentials.value == "deveo plugin_key='p',company_key='c',account_key='a'"
        assert json.loads(request.payload) == {
            "target": "build",
            "operation": "failed",
            "project": "proj",
            "repository": "repo",
            "name": "Project / Build",
            "commits": ["abc123"],
            "resources": ["https://ci.example.com/viewLog.html?buildId=42"],
        }

    def test_started_not_published(self, make_publisher, make_build, mock_dispatcher):
        """Test that Deveo only receives finished builds."""
        publisher = make_publisher("deveoStatusPublisher", {
            "deveo_api_hostname": "https://app.deveo.com", "deveo_plugin_key": "p", "deveo_company_key": "c",
        })
        build = make_build()

        assert publisher.build_started(build, build.revisions[0]) is False


class TestGitea:
    """Tests for the Gitea provider."""

    def test_request(self, make_publisher, make_build, mock_dispatcher):
        """Test Gitea commit status request."""
        from commit_publisher.models.request import HeaderAuth

        publisher = make_publisher("giteaStatusPublisher", {
            "gitea_api_url": "https://gitea.example.com/api/v1/",
            "gitea_access_token": "tkn",
        })
        build = make_build(root=git_root_for("https://gitea.example.com/owner/repo.git"))
        publisher.build_failure_detected(build, build.revisions[0])

        request = submitted(mock_dispatcher)
        assert request.url == "https://gitea.example.com/api/v1/repos/owner/repo/statuses/abc123"
        assert request.credentials == HeaderAuth("Authorization", "token tkn")
        assert json.loads(request.payload)["state"] == "failure"


class TestSpace:
    """Tests for the JetBrains Space provider."""

    PARAMS = {
        "space_server_url": "https://acme.jetbrains.space/",
        "space_token": "tkn",
        "space_project_key": "PRJ",
    }

    def test_finished_build(self, make_publisher, make_build, mock_dispatcher):
        """Test Space commit status request of a finished build."""
        from commit_publisher.models.request import HeaderAuth

        publisher = make_publisher("spaceStatusPublisher", self.PARAMS)
        build = make_build(root=git_root_for("https://git.jetbrains.space/acme/prj/backend.git"))

        assert publisher.build_finished(build, build.revisions[0]) is True

        request = submitted(mock_dispatcher)
        assert request.method == "POST"
        assert request.url == (
            "https://acme.jetbrains.space/api/http/projects/key:PRJ/repositories/backend"
            "/revisions/abc123/commit-statuses"
        )
        assert request.credentials == HeaderAuth("Authorization", "Bearer tkn")
        assert request.headers["Accept"] == "text/plain"
        payload = json.loads(request.payload)
        assert payload["executionStatus"] == "SUCCEEDED"
        assert payload["taskName"] == "Project / Build"
        assert payload["taskId"] == "Project_Build"
        assert payload["taskBuildId"] == "42"
        assert payload["externalServiceName"] == "TeamCity"
        assert payload["changes"] == ["abc123"]
        assert payload["url"] == "https://ci.example.com/viewLog.html?buildId=42"

    @pytest.mark.parametrize("call,state", [
        ("build_queued", "SCHEDULED"),
        ("build_started", "RUNNING"),
        ("build_interrupted", "TERMINATED"),
        ("build_failure_detected", "FAILING"),
    ])
    def test_lifecycle_states(self, make_publisher, make_build, mock_dispatcher, call, state):
        """Test Space execution status per lifecycle event."""
        publisher = make_publisher("spaceStatusPublisher", self.PARAMS)
        build = make_build(root=git_root_for("https://git.jetbrains.space/acme/prj/backend.git"))

        assert getattr(publisher, call)(build, build.revisions[0]) is True

        assert json.loads(submitted(mock_dispatcher).payload)["executionStatus"] == state

    def test_project_key_from_url(self, make_publisher, make_build, mock_dispatcher):
        """Test that the repository owner is used without a project key."""
        params = {k: v for k, v in self.PARAMS.items() if k != "space_project_key"}
        publisher = make_publisher("spaceStatusPublisher", {**params, "space_display_name": "CI"})
        build = make_build(root=git_root_for("https://git.jetbrains.space/acme/prj/backend.git"))
        publisher.build_finished(build, build.revisions[0])

        request = submitted(mock_dispatcher)
        assert "/projects/key:prj/repositories/backend/" in request.url
        assert json.loads(request.payload)["externalServiceName"] == "CI"

    def test_short_url_needs_project_key(self, test_settings):
        """Test URLs without an owner segment resolve only with a project key."""
        from commit_publisher.services.publishers.space import resolve_repository

        root = git_root_for("https://git.example.com/backend.git")

        assert resolve_repository(root, {}, test_settings) is None
        repo = resolve_repository(root, {"space_project_key": "PRJ"}, test_settings)
        assert (repo.owner, repo.name) == ("PRJ", "backend")

    def test_commented_not_published(self, make_publisher, make_build, mock_dispatcher):
        """Test that comments are not sent to Space."""
        publisher = make_publisher("spaceStatusPublisher", self.PARAMS)
        build = make_build(root=git_root_for("https://git.jetbrains.space/acme/prj/backend.git"))

        assert publisher.build_commented(build, build.revisions[0], "bob", "hi") is False

    @pytest.mark.parametrize("params,message", [
        ({"space_server_url": "https://acme.jetbrains.space"}, "space_token"),
        ({"space_token": "t"}, "space_server_url"),
        ({"space_server_url": "acme.jetbrains.space", "space_token": "t"}, "must start with http"),
    ])
    def test_validation(self, make_publisher, params, message):
        """Test Space parameter validation."""
        from commit_publisher.core.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError, match=message):
            make_publisher("spaceStatusPublisher", params).validate()

    @pytest.mark.asyncio
    async def test_connection(self, make_publisher, mock_dispatcher):
        """Test that the connection check calls the check-service endpoint."""
        from commit_publisher.models.request import DeliveryResult, HeaderAuth

        mock_dispatcher.test_connection = AsyncMock(return_value=DeliveryResult.ok(200))
        publisher = make_publisher("spaceStatusPublisher", self.PARAMS)

        await publisher.test_connection(git_root_for("https://git.jetbrains.space/acme/prj/backend.git"))

        request = mock_dispatcher.test_connection.call_args.args[0]
        assert request.method == "POST"
        assert request.url == (
            "https://acme.jetbrains.space/api/http/projects/key:PRJ/commit-statuses/check-service"
        )
        assert request.payload is None
        assert request.credentials == HeaderAuth("Authorization", "Bearer tkn")


class TestDelivery:
    """Tests running publishers through a real dispatcher."""

    @staticmethod
    def make_real_publisher(handler, make_feature, problems, test_settings, params=None):
        import httpx
        from commit_publisher.services.dispatcher import AsyncHttpDispatcher
        from commit_publisher.services.publishers import CommitStatusPublisher, get_descriptor

        dispatcher = AsyncHttpDispatcher(httpx.AsyncClient(transport=httpx.MockTransport(handler)), workers=1)
        feature = make_feature("githubStatusPublisher", params or {"github_access_token": "t"})
        publisher = CommitStatusPublisher(
            get_descriptor("githubStatusPublisher"), feature, dispatcher, problems, test_settings
        )
        return publisher, dispatcher

    @pytest.mark.asyncio
    async def test_validation_failure_becomes_problem(self, make_feature, make_build, problems, test_settings):
        """Test that a 422 response is recorded as a build problem with the remote message."""
        import httpx
        from commit_publisher.models.events import Event, StatusEvent

        def handler(request):
            return httpx.Response(422, json={
                "message": "Validation Failed",
                "errors": [{"resource": "Status", "code": "custom", "message": "context is too long"}],
            })

        publisher, dispatcher = self.make_real_publisher(handler, make_feature, problems, test_settings)
        build = make_build()
        await dispatcher.start()
        try:
            result = await publisher.publish(StatusEvent(Event.FINISHED), build, build.revisions[0])
        finally:
            await dispatcher.stop()

        assert result.success is False
        assert result.status_code == 422
        stored = problems.get(42)
        assert len(stored) == 1
        assert "Validation Failed" in stored[0].description
        assert "response code: 422" in stored[0].description

    @pytest.mark.asyncio
    async def test_timeout_becomes_problem(self, make_feature, make_build, problems, test_settings):
        """Test that a remote timeout does not block the caller and is recorded as a problem."""
        import httpx

        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        publisher, dispatcher = self.make_real_publisher(
            handler, make_feature, problems, test_settings,
            params={"github_access_token": "t", "connection_timeout": "250"},
        )
        build = make_build()
        await dispatcher.start()
        try:
            assert publisher.build_finished(build, build.revisions[0]) is True
            await dispatcher.join()
        finally:
            await dispatcher.stop()

        stored = problems.get(42)
        assert len(stored) == 1
        assert "Timed out after 250 ms" in stored[0].description

    @pytest.mark.asyncio
    async def test_publish_returns_before_delivery(self, make_feature, make_build, problems, test_settings):
        """Test that publish hands the request off without waiting for the remote service."""
        import httpx
        from commit_publisher.core.exceptions import PublishTimeoutError
        from commit_publisher.models.events import Event, StatusEvent

        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        publisher, dispatcher = self.make_real_publisher(handler, make_feature, problems, test_settings)
        build = make_build()
        await dispatcher.start()
        try:
            future = publisher.publish(StatusEvent(Event.FINISHED), build, build.revisions[0])

            assert not future.done()
            assert problems.get(42) == []

            result = await future
        finally:
            await dispatcher.stop()

        assert isinstance(result.error, PublishTimeoutError)
        assert "Timed out" in problems.get(42)[0].description
