"""
Deveo build events.
"""

from commit_publisher.models.events import Event, StatusKind
from commit_publisher.models.request import HeaderAuth, PendingRequest
from commit_publisher.services.envelopes import parse_error_object
from commit_publisher.services.payload import build_payload
from commit_publisher.services.publishers.base import ProviderDescriptor, PublishContext
from commit_publisher.services.repository import parse_deveo_repository

DEVEO_PUBLISHER_ID = "deveoStatusPublisher"

STATES = {
    StatusKind.SUCCESS: "completed",
    StatusKind.FAILURE: "failed",
    StatusKind.ERROR: "failed",
    StatusKind.INTERRUPTED: "failed",
}

EVENTS = frozenset({
    Event.FINISHED,
    Event.MARKED_AS_SUCCESSFUL,
    Event.INTERRUPTED,
})


def events_url(params: dict[str, str]) -> str:
    host = params.get("deveo_api_hostname", "").strip()
    if not host.endswith("/"):
        host += "/"
    return host + "api/events"


def authorization(params: dict[str, str]) -> HeaderAuth:
    return HeaderAuth(
        "Authorization",
        f"deveo plugin_key='{params.get('deveo_plugin_key', '')}',"
        f"company_key='{params.get('deveo_company_key', '')}',"
        f"account_key='{params.get('deveo_account_key', '')}'",
    )


def resolve_repository(root, params, settings):
    return parse_deveo_repository(root)


def build_request(ctx: PublishContext) -> PendingRequest:
    repo = ctx.repository
    return PendingRequest(
        method="POST",
        url=events_url(ctx.params),
        publisher_id=DEVEO_PUBLISHER_ID,
        build_description=ctx.build_description,
        payload=build_payload({
            "target": "build",
            "operation": ctx.state,
            "project": repo.owner,
            "repository": repo.name,
            "name": ctx.build.full_name,
            "commits": [ctx.revision.revision],
            "resources": [ctx.target_url],
        }),
        credentials=authorization(ctx.params),
        headers={"Accept": "application/vnd.deveo.v1"},
        timeout_ms=ctx.timeout_ms,
        error_parser=parse_error_object,
    )


DESCRIPTOR = ProviderDescriptor(
    publisher_id=DEVEO_PUBLISHER_ID,
    name="Deveo",
    states=STATES,
    events=EVENTS,
    build_request=build_request,
    required_params=("deveo_api_hostname", "deveo_plugin_key", "deveo_company_key"),
    resolve_repository=resolve_repository,
    destination=events_url,
)
