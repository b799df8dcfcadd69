"""
Bitbucket Cloud build statuses.
"""

from commit_publisher.models.events import StatusKind
from commit_publisher.models.request import BasicAuth, PendingRequest
from commit_publisher.services.envelopes import parse_error_object
from commit_publisher.services.payload import build_payload
from commit_publisher.services.publishers.base import ConnectionContext, ProviderDescriptor, PublishContext
from commit_publisher.services.repository import parse_bitbucket_cloud_repository

BITBUCKET_CLOUD_PUBLISHER_ID = "bitbucketCloudPublisher"
DEFAULT_API_URL = "https://api.bitbucket.org/"

STATES = {
    StatusKind.QUEUED: "INPROGRESS",
    StatusKind.STARTED: "INPROGRESS",
    StatusKind.SUCCESS: "SUCCESSFUL",
    StatusKind.FAILURE: "FAILED",
    StatusKind.ERROR: "FAILED",
    StatusKind.INTERRUPTED: "STOPPED",
    StatusKind.REMOVED_FROM_QUEUE: "STOPPED",
}


def resolve_repository(root, params, settings):
    return parse_bitbucket_cloud_repository(root)


def api_url(params: dict[str, str]) -> str:
    """API root, overridable with the bitbucket_api_url parameter."""
    url = (params.get("bitbucket_api_url") or "").strip()
    if not url:
        return DEFAULT_API_URL
    return url if url.endswith("/") else url + "/"


def _credentials(params: dict[str, str]) -> BasicAuth:
    return BasicAuth(params.get("bitbucket_username", ""), params.get("bitbucket_password", ""))


def build_request(ctx: PublishContext) -> PendingRequest:
    repo = ctx.repository
    return PendingRequest(
        method="POST",
        url=(
            f"{api_url(ctx.params)}2.0/repositories/{repo.owner}/{repo.name}"
            f"/commit/{ctx.revision.revision}/statuses/build"
        ),
        publisher_id=BITBUCKET_CLOUD_PUBLISHER_ID,
        build_description=ctx.build_description,
        payload=build_payload({
            "key": ctx.build.build_type_id,
            "state": ctx.state,
            "name": ctx.build.full_name,
            "description": ctx.message,
            "url": ctx.target_url,
        }),
        credentials=_credentials(ctx.params),
        timeout_ms=ctx.timeout_ms,
        error_parser=parse_error_object,
    )


def test_connection(ctx: ConnectionContext) -> PendingRequest:
    repo = ctx.repository
    return PendingRequest(
        method="GET",
        url=f"{api_url(ctx.params)}2.0/repositories/{repo.owner}/{repo.name}",
        publisher_id=BITBUCKET_CLOUD_PUBLISHER_ID,
        build_description=f"connection test for {ctx.root.name}",
        credentials=_credentials(ctx.params),
        timeout_ms=ctx.timeout_ms,
        error_parser=parse_error_object,
    )


DESCRIPTOR = ProviderDescriptor(
    publisher_id=BITBUCKET_CLOUD_PUBLISHER_ID,
    name="Bitbucket Cloud",
    states=STATES,
    build_request=build_request,
    required_params=("bitbucket_username", "bitbucket_password"),
    resolve_repository=resolve_repository,
    test_connection=test_connection,
    destination=api_url,
)
