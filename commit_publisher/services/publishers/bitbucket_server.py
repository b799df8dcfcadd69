"""
Bitbucket Server (formerly Atlassian Stash) build statuses.
"""

from commit_publisher.models.events import StatusKind
from commit_publisher.models.request import BasicAuth, PendingRequest
from commit_publisher.services.envelopes import parse_errors_list
from commit_publisher.services.payload import build_payload
from commit_publisher.services.publishers.base import ConnectionContext, ProviderDescriptor, PublishContext
from commit_publisher.services.repository import guess_api_url, parse_repository

STASH_PUBLISHER_ID = "atlassianStashPublisher"

STATES = {
    StatusKind.QUEUED: "INPROGRESS",
    StatusKind.STARTED: "INPROGRESS",
    StatusKind.SUCCESS: "SUCCESSFUL",
    StatusKind.FAILURE: "FAILED",
    StatusKind.ERROR: "FAILED",
    StatusKind.INTERRUPTED: "FAILED",
    StatusKind.REMOVED_FROM_QUEUE: "FAILED",
}


def base_url(params: dict[str, str], vcs_url: str | None = None) -> str | None:
    configured = (params.get("stash_base_url") or "").strip()
    if configured:
        return configured.rstrip("/")
    return guess_api_url(vcs_url)


def resolve_repository(root, params, settings):
    if base_url(params, root.url) is None:
        return None
    return parse_repository(root.vcs_name, root.url)


def _credentials(params: dict[str, str]) -> BasicAuth:
    return BasicAuth(params.get("stash_username", ""), params.get("stash_password", ""))


def build_request(ctx: PublishContext) -> PendingRequest:
    return PendingRequest(
        method="POST",
        url=f"{base_url(ctx.params, ctx.revision.root.url)}/rest/build-status/1.0/commits/{ctx.revision.revision}",
        publisher_id=STASH_PUBLISHER_ID,
        build_description=ctx.build_description,
        payload=build_payload({
            "state": ctx.state,
            "key": ctx.build.build_type_id,
            "name": ctx.build.full_name,
            "url": ctx.target_url,
            "description": ctx.message,
        }),
        credentials=_credentials(ctx.params),
        timeout_ms=ctx.timeout_ms,
        error_parser=parse_errors_list,
    )


def test_connection(ctx: ConnectionContext) -> PendingRequest:
    repo = ctx.repository
    return PendingRequest(
        method="GET",
        url=f"{base_url(ctx.params, ctx.root.url)}/rest/api/1.0/projects/{repo.owner}/repos/{repo.name}",
        publisher_id=STASH_PUBLISHER_ID,
        build_description=f"connection test for {ctx.root.name}",
        credentials=_credentials(ctx.params),
        timeout_ms=ctx.timeout_ms,
        error_parser=parse_errors_list,
    )


DESCRIPTOR = ProviderDescriptor(
    publisher_id=STASH_PUBLISHER_ID,
    name="Bitbucket Server",
    states=STATES,
    build_request=build_request,
    required_params=("stash_username", "stash_password"),
    resolve_repository=resolve_repository,
    test_connection=test_connection,
    destination=lambda params: base_url(params) or "Bitbucket Server",
)
