"""
Gitea commit statuses.
"""

from commit_publisher.models.events import Event, StatusKind
from commit_publisher.models.request import HeaderAuth, PendingRequest
from commit_publisher.services.envelopes import parse_message_with_errors
from commit_publisher.services.payload import build_payload
from commit_publisher.services.publishers.base import ConnectionContext, ProviderDescriptor, PublishContext
from commit_publisher.services.repository import GitRepositoryParser

GITEA_PUBLISHER_ID = "giteaStatusPublisher"
MAX_DESCRIPTION_LENGTH = 140

STATES = {
    StatusKind.QUEUED: "pending",
    StatusKind.STARTED: "pending",
    StatusKind.SUCCESS: "success",
    StatusKind.FAILURE: "failure",
    StatusKind.ERROR: "error",
    StatusKind.INTERRUPTED: "failure",
    StatusKind.REMOVED_FROM_QUEUE: "failure",
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

_parser = GitRepositoryParser()


def api_url(params: dict[str, str]) -> str:
    return params.get("gitea_api_url", "").strip().rstrip("/")


def resolve_repository(root, params, settings):
    if root.vcs_name != "jetbrains.git" or not root.url:
        return None
    return _parser.parse(root.url)


def _headers(params: dict[str, str]) -> HeaderAuth:
    return HeaderAuth("Authorization", f"token {params.get('gitea_access_token', '')}")


def build_request(ctx: PublishContext) -> PendingRequest:
    repo = ctx.repository
    return PendingRequest(
        method="POST",
        url=f"{api_url(ctx.params)}/repos/{repo.owner}/{repo.name}/statuses/{ctx.revision.revision}",
        publisher_id=GITEA_PUBLISHER_ID,
        build_description=ctx.build_description,
        payload=build_payload({
            "state": ctx.state,
            "context": ctx.build.full_name,
            "description": ctx.message,
            "target_url": ctx.target_url,
        }),
        credentials=_headers(ctx.params),
        timeout_ms=ctx.timeout_ms,
        error_parser=parse_message_with_errors,
    )


def test_connection(ctx: ConnectionContext) -> PendingRequest:
    repo = ctx.repository
    return PendingRequest(
        method="GET",
        url=f"{api_url(ctx.params)}/repos/{repo.owner}/{repo.name}",
        publisher_id=GITEA_PUBLISHER_ID,
        build_description=f"connection test for {ctx.root.name}",
        credentials=_headers(ctx.params),
        timeout_ms=ctx.timeout_ms,
        error_parser=parse_message_with_errors,
    )


DESCRIPTOR = ProviderDescriptor(
    publisher_id=GITEA_PUBLISHER_ID,
    name="Gitea",
    states=STATES,
    events=EVENTS,
    build_request=build_request,
    required_params=("gitea_api_url", "gitea_access_token"),
    resolve_repository=resolve_repository,
    test_connection=test_connection,
    destination=api_url,
    max_description_length=MAX_DESCRIPTION_LENGTH,
)
