"""
JetBrains Upsource build statuses.
"""

import re

from commit_publisher.models.build import BuildRevision, VcsKind
from commit_publisher.models.events import Event, StatusKind
from commit_publisher.models.request import BasicAuth, PendingRequest
from commit_publisher.services.payload import build_payload
from commit_publisher.services.publishers.base import (
    ConnectionContext,
    ProviderDescriptor,
    PublishContext,
    is_blank,
)

UPSOURCE_PUBLISHER_ID = "upsourcePublisher"
ENDPOINT_BUILD_STATUS = "~buildStatus"
ENDPOINT_TEST_CONNECTION = "~buildStatusTestConnection"

# Subversion revisions may carry a branch and a timestamp: "trunk|1234_20240101"
SVN_REVISION_PATTERN = re.compile(r"([^|]+\|)?([0-9]+)(_.+)?")

STATES = {
    StatusKind.STARTED: "in_progress",
    StatusKind.SUCCESS: "success",
    StatusKind.FAILURE: "failed",
    StatusKind.ERROR: "failed",
    StatusKind.INTERRUPTED: "failed",
}

EVENTS = frozenset({
    Event.STARTED,
    Event.FINISHED,
    Event.MARKED_AS_SUCCESSFUL,
    Event.INTERRUPTED,
    Event.FAILURE_DETECTED,
})


def server_url(params: dict[str, str]) -> str:
    return params.get("upsource_server_url", "").strip().rstrip("/")


def normalize_revision(revision: BuildRevision) -> str:
    """Plain revision number for Subversion roots, the revision otherwise."""
    if revision.root.kind is VcsKind.SUBVERSION:
        m = SVN_REVISION_PATTERN.fullmatch(revision.revision)
        if m:
            return m.group(2)
    return revision.revision


def _credentials(params: dict[str, str]) -> BasicAuth | None:
    username, password = params.get("upsource_username"), params.get("upsource_password")
    if is_blank(username) or password is None:
        return None
    return BasicAuth(username, password)


def build_request(ctx: PublishContext) -> PendingRequest:
    build = ctx.build
    return PendingRequest(
        method="POST",
        url=f"{server_url(ctx.params)}/{ENDPOINT_BUILD_STATUS}",
        publisher_id=UPSOURCE_PUBLISHER_ID,
        build_description=ctx.build_description,
        payload=build_payload({
            "project": ctx.params.get("upsource_project_id"),
            "key": build.build_type_id,
            "state": ctx.state,
            "name": build.display_name,
            "url": ctx.target_url,
            "description": ctx.message,
            "revision": normalize_revision(ctx.revision),
        }),
        credentials=_credentials(ctx.params),
        timeout_ms=ctx.timeout_ms,
    )


def test_connection(ctx: ConnectionContext) -> PendingRequest:
    return PendingRequest(
        method="POST",
        url=f"{server_url(ctx.params)}/{ENDPOINT_TEST_CONNECTION}",
        publisher_id=UPSOURCE_PUBLISHER_ID,
        build_description=f"connection test for {ctx.root.name}",
        payload=build_payload({"project": ctx.params.get("upsource_project_id")}),
        credentials=_credentials(ctx.params),
        timeout_ms=ctx.timeout_ms,
    )


DESCRIPTOR = ProviderDescriptor(
    publisher_id=UPSOURCE_PUBLISHER_ID,
    name="Upsource",
    states=STATES,
    events=EVENTS,
    build_request=build_request,
    required_params=("upsource_server_url", "upsource_project_id"),
    test_connection=test_connection,
    destination=server_url,
)
