"""
TFS / Azure DevOps git commit statuses.
"""

from commit_publisher.models.build import VcsKind
from commit_publisher.models.events import Event, StatusKind
from commit_publisher.models.request import BasicAuth, PendingRequest
from commit_publisher.services.envelopes import parse_message
from commit_publisher.services.payload import build_payload
from commit_publisher.services.publishers.base import ConnectionContext, ProviderDescriptor, PublishContext
from commit_publisher.services.repository import parse_tfs_repository

TFS_PUBLISHER_ID = "tfs"
STATUS_API_VERSION = "2.1"
COMMITS_API_VERSION = "1.0"

STATES = {
    StatusKind.QUEUED: "Pending",
    StatusKind.STARTED: "Pending",
    StatusKind.SUCCESS: "Succeeded",
    StatusKind.FAILURE: "Failed",
    StatusKind.ERROR: "Error",
    StatusKind.INTERRUPTED: "Failed",
}

EVENTS = frozenset({
    Event.QUEUED,
    Event.STARTED,
    Event.FINISHED,
    Event.INTERRUPTED,
    Event.MARKED_AS_SUCCESSFUL,
})

PENDING_KINDS = frozenset({StatusKind.QUEUED, StatusKind.STARTED})


def resolve_repository(root, params, settings):
    if root.kind is not VcsKind.GIT:
        return None
    return parse_tfs_repository(root.url, params.get("tfs_server_url"), settings.tfs_domains)


def _credentials(params: dict[str, str]) -> BasicAuth:
    # Personal access tokens go as the password of an empty user
    return BasicAuth("", params.get("tfs_access_token", ""))


def repository_url(info) -> str:
    return f"{info.server}/{info.project}/_apis/git/repositories/{info.repository}"


def description(ctx: PublishContext) -> str:
    verb = "is" if ctx.kind in PENDING_KINDS else "has"
    number = ctx.build.number or ""
    return f"The build {ctx.build.full_name} {number} {verb} {ctx.state.lower()}"


def build_request(ctx: PublishContext) -> PendingRequest:
    return PendingRequest(
        method="POST",
        url=(
            f"{repository_url(ctx.repository)}/commits/{ctx.revision.revision}"
            f"/statuses?api-version={STATUS_API_VERSION}"
        ),
        publisher_id=TFS_PUBLISHER_ID,
        build_description=ctx.build_description,
        payload=build_payload({
            "state": ctx.state,
            "description": description(ctx),
            "targetUrl": ctx.target_url,
            "context": {"name": ctx.build.build_type_id, "genre": "TeamCity"},
        }),
        credentials=_credentials(ctx.params),
        timeout_ms=ctx.timeout_ms,
        error_parser=parse_message,
    )


def test_connection(ctx: ConnectionContext) -> PendingRequest:
    return PendingRequest(
        method="GET",
        url=f"{repository_url(ctx.repository)}/commits?api-version={COMMITS_API_VERSION}&$top=1",
        publisher_id=TFS_PUBLISHER_ID,
        build_description=f"connection test for {ctx.root.name}",
        credentials=_credentials(ctx.params),
        timeout_ms=ctx.timeout_ms,
        error_parser=parse_message,
    )


DESCRIPTOR = ProviderDescriptor(
    publisher_id=TFS_PUBLISHER_ID,
    name="Azure DevOps",
    states=STATES,
    events=EVENTS,
    build_request=build_request,
    required_params=("tfs_access_token",),
    resolve_repository=resolve_repository,
    test_connection=test_connection,
    destination=lambda params: params.get("tfs_server_url") or "Azure DevOps",
)
