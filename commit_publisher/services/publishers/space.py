"""
JetBrains Space commit statuses.

Statuses are posted to the project's commit-statuses endpoint with a
bearer token. The Space project key comes from the feature parameters or,
when missing, from the owner part of the repository URL.
"""

import time

from commit_publisher.models.events import Event, StatusKind
from commit_publisher.models.repository import Repository
from commit_publisher.models.request import HeaderAuth, PendingRequest
from commit_publisher.services.envelopes import parse_message
from commit_publisher.services.payload import build_payload
from commit_publisher.services.publishers.base import (
    ConnectionContext,
    ProviderDescriptor,
    PublishContext,
    is_blank,
)
from commit_publisher.services.repository import GitRepositoryParser

SPACE_PUBLISHER_ID = "spaceStatusPublisher"
DEFAULT_DISPLAY_NAME = "TeamCity"
FAILING = "FAILING"

STATES = {
    StatusKind.QUEUED: "SCHEDULED",
    StatusKind.STARTED: "RUNNING",
    StatusKind.SUCCESS: "SUCCEEDED",
    StatusKind.FAILURE: "FAILED",
    StatusKind.ERROR: "FAILED",
    StatusKind.INTERRUPTED: "TERMINATED",
    StatusKind.REMOVED_FROM_QUEUE: "TERMINATED",
}

EVENTS = frozenset({
    Event.QUEUED,
    Event.REMOVED_FROM_QUEUE,
    Event.STARTED,
    Event.FINISHED,
    Event.INTERRUPTED,
    Event.FAILURE_DETECTED,
    Event.MARKED_AS_SUCCESSFUL,
})

_parser = GitRepositoryParser()


def server_url(params: dict[str, str]) -> str:
    return params.get("space_server_url", "").strip().rstrip("/")


def api_root(params: dict[str, str], project_key: str) -> str:
    return f"{server_url(params)}/api/http/projects/key:{project_key}"


def resolve_repository(root, params, settings):
    url = root.url
    if root.vcs_name != "jetbrains.git" or not url:
        return None
    project_key = (params.get("space_project_key") or "").strip()
    repo = _parser.parse(url)
    if repo is not None:
        if project_key:
            return Repository(owner=project_key, name=repo.name, url=url)
        return repo

    # Space clone URLs such as https://git.jetbrains.space/org/PRJ/repo.git
    path = url.rstrip("/")
    if path.lower().endswith(".git"):
        path = path[:-4]
    if "/" not in path or not project_key:
        return None
    return Repository(owner=project_key, name=path.rsplit("/", 1)[1], url=url)


def _credentials(params: dict[str, str]) -> HeaderAuth:
    return HeaderAuth("Authorization", f"Bearer {params.get('space_token', '').strip()}")


def validate(params: dict[str, str]) -> list[str]:
    url = server_url(params)
    if url and not url.startswith(("http://", "https://")):
        return [f"Space server URL '{url}' must start with http:// or https://"]
    return []


def build_request(ctx: PublishContext) -> PendingRequest:
    repo = ctx.repository
    state = FAILING if ctx.event.event is Event.FAILURE_DETECTED else ctx.state
    display_name = ctx.params.get("space_display_name")
    return PendingRequest(
        method="POST",
        url=(
            f"{api_root(ctx.params, repo.owner)}/repositories/{repo.name}"
            f"/revisions/{ctx.revision.revision}/commit-statuses"
        ),
        publisher_id=SPACE_PUBLISHER_ID,
        build_description=ctx.build_description,
        payload=build_payload({
            "changes": [ctx.revision.revision],
            "executionStatus": state,
            "description": ctx.message,
            "timestamp": int(time.time() * 1000),
            "taskName": ctx.build.full_name,
            "url": ctx.target_url,
            "taskId": ctx.build.build_type_id,
            "externalServiceName": DEFAULT_DISPLAY_NAME if is_blank(display_name) else display_name.strip(),
            "taskBuildId": str(ctx.build.id),
        }),
        credentials=_credentials(ctx.params),
        headers={"Accept": "text/plain"},
        timeout_ms=ctx.timeout_ms,
        error_parser=parse_message,
    )


def test_connection(ctx: ConnectionContext) -> PendingRequest:
    return PendingRequest(
        method="POST",
        url=f"{api_root(ctx.params, ctx.repository.owner)}/commit-statuses/check-service",
        publisher_id=SPACE_PUBLISHER_ID,
        build_description=f"connection test for {ctx.root.name}",
        credentials=_credentials(ctx.params),
        headers={"Accept": "text/plain"},
        timeout_ms=ctx.timeout_ms,
        error_parser=parse_message,
    )


DESCRIPTOR = ProviderDescriptor(
    publisher_id=SPACE_PUBLISHER_ID,
    name="JetBrains Space",
    states=STATES,
    events=EVENTS,
    build_request=build_request,
    required_params=("space_server_url", "space_token"),
    resolve_repository=resolve_repository,
    validate=validate,
    test_connection=test_connection,
    destination=server_url,
)
