"""
GitLab commit statuses.

The API URL is taken from the feature or guessed from the VCS root URL.
When GitLab is installed under a path (``https://host/gitlab/api/v4``)
that path is stripped from repository URLs before computing the
namespace, so nested groups keep all their segments.
"""

import re
from urllib.parse import urlsplit

from commit_publisher.models.events import Event, StatusKind
from commit_publisher.models.request import HeaderAuth, PendingRequest
from commit_publisher.services.envelopes import parse_message
from commit_publisher.services.payload import build_payload
from commit_publisher.services.publishers.base import ConnectionContext, ProviderDescriptor, PublishContext
from commit_publisher.services.repository import guess_api_url, parse_repository

GITLAB_PUBLISHER_ID = "gitlabStatusPublisher"
API_PATH = "/api/v4"
URL_WITH_API_SUFFIX = re.compile(r"(.*)/api/v.")
REF_PREFIXES = ("refs/heads/", "refs/tags/")

# Status transitions GitLab rejects although the status is already right
TOLERATED_ERRORS = (
    "Cannot transition status via :enqueue from :pending",
    "Cannot transition status via :enqueue from :running",
    "Cannot transition status via :run from :running",
)

STATES = {
    StatusKind.QUEUED: "pending",
    StatusKind.STARTED: "running",
    StatusKind.SUCCESS: "success",
    StatusKind.FAILURE: "failed",
    StatusKind.ERROR: "failed",
    StatusKind.INTERRUPTED: "canceled",
    StatusKind.REMOVED_FROM_QUEUE: "canceled",
}

EVENTS = frozenset({
    Event.QUEUED,
    Event.REMOVED_FROM_QUEUE,
    Event.STARTED,
    Event.FINISHED,
    Event.MARKED_AS_SUCCESSFUL,
    Event.INTERRUPTED,
    Event.FAILURE_DETECTED,
})


def path_prefix(api_url: str) -> str | None:
    """Server path GitLab is installed under, from an API URL."""
    if not URL_WITH_API_SUFFIX.fullmatch(api_url):
        return None
    path = urlsplit(api_url).path
    return path[:-len(API_PATH)]


def resolve_api_url(params: dict[str, str], vcs_url: str | None = None) -> str | None:
    configured = (params.get("gitlab_api_url") or "").strip()
    if configured:
        return configured.rstrip("/")
    host = guess_api_url(vcs_url)
    return host + API_PATH if host else None


def projects_url(api_url: str, owner: str, repo: str) -> str:
    owner_part = owner.replace(".", "%2E").replace("/", "%2F")
    return f"{api_url}/projects/{owner_part}%2F{repo.replace('.', '%2E')}"


def resolve_repository(root, params, settings):
    api_url = resolve_api_url(params, root.url)
    if api_url is None:
        return None
    return parse_repository(root.vcs_name, root.url, path_prefix=path_prefix(api_url))


def ref_name(branch: str | None) -> str | None:
    if not branch:
        return None
    for prefix in REF_PREFIXES:
        if branch.startswith(prefix):
            return branch[len(prefix):]
    return branch


def _credentials(params: dict[str, str]) -> HeaderAuth:
    return HeaderAuth("PRIVATE-TOKEN", params.get("gitlab_access_token", ""))


def build_request(ctx: PublishContext) -> PendingRequest:
    repo = ctx.repository
    api_url = resolve_api_url(ctx.params, ctx.revision.root.url)
    return PendingRequest(
        method="POST",
        url=f"{projects_url(api_url, repo.owner, repo.name)}/statuses/{ctx.revision.revision}",
        publisher_id=GITLAB_PUBLISHER_ID,
        build_description=ctx.build_description,
        payload=build_payload({
            "state": ctx.state,
            "name": ctx.build.full_name,
            "target_url": ctx.target_url,
            "description": ctx.message,
            "ref": ref_name(ctx.revision.branch or ctx.build.branch),
        }),
        credentials=_credentials(ctx.params),
        timeout_ms=ctx.timeout_ms,
        error_parser=parse_message,
        tolerated_errors=TOLERATED_ERRORS,
    )


def test_connection(ctx: ConnectionContext) -> PendingRequest:
    repo = ctx.repository
    api_url = resolve_api_url(ctx.params, ctx.root.url)
    return PendingRequest(
        method="GET",
        url=projects_url(api_url, repo.owner, repo.name),
        publisher_id=GITLAB_PUBLISHER_ID,
        build_description=f"connection test for {ctx.root.name}",
        credentials=_credentials(ctx.params),
        timeout_ms=ctx.timeout_ms,
        error_parser=parse_message,
    )


def destination(params: dict[str, str]) -> str:
    return resolve_api_url(params) or "GitLab"


DESCRIPTOR = ProviderDescriptor(
    publisher_id=GITLAB_PUBLISHER_ID,
    name="GitLab",
    states=STATES,
    events=EVENTS,
    build_request=build_request,
    required_params=("gitlab_access_token",),
    resolve_repository=resolve_repository,
    test_connection=test_connection,
    destination=destination,
)
