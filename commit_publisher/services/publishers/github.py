"""
GitHub commit statuses (github.com and GitHub Enterprise).
"""

from commit_publisher.models.events import Event, StatusKind
from commit_publisher.models.request import BasicAuth, HeaderAuth, PendingRequest
from commit_publisher.services.envelopes import parse_message_with_errors
from commit_publisher.services.payload import build_payload
from commit_publisher.services.publishers.base import (
    ConnectionContext,
    ProviderDescriptor,
    PublishContext,
    is_blank,
)
from commit_publisher.services.repository import parse_repository

GITHUB_PUBLISHER_ID = "githubStatusPublisher"
DEFAULT_API_URL = "https://api.github.com"
MAX_DESCRIPTION_LENGTH = 140

AUTH_TOKEN = "token"
AUTH_PASSWORD = "password"

STATES = {
    StatusKind.QUEUED: "pending",
    StatusKind.STARTED: "pending",
    StatusKind.SUCCESS: "success",
    StatusKind.FAILURE: "failure",
    StatusKind.ERROR: "error",
    StatusKind.INTERRUPTED: "error",
    StatusKind.REMOVED_FROM_QUEUE: "failure",
}

EVENTS = frozenset({
    Event.QUEUED,
    Event.REMOVED_FROM_QUEUE,
    Event.STARTED,
    Event.FINISHED,
    Event.INTERRUPTED,
    Event.MARKED_AS_SUCCESSFUL,
    Event.FAILURE_DETECTED,
})


def api_url(params: dict[str, str]) -> str:
    return (params.get("github_host") or DEFAULT_API_URL).strip().rstrip("/")


def credentials(params: dict[str, str]) -> BasicAuth | HeaderAuth:
    if params.get("github_authentication_type", AUTH_TOKEN) == AUTH_PASSWORD:
        return BasicAuth(params.get("github_username", ""), params.get("github_password", ""))
    return HeaderAuth("Authorization", f"Bearer {params.get('github_access_token', '')}")


def validate(params: dict[str, str]) -> list[str]:
    auth_type = params.get("github_authentication_type", AUTH_TOKEN)
    if auth_type == AUTH_TOKEN:
        if is_blank(params.get("github_access_token")):
            return ["GitHub Personal Access Token must be specified"]
    elif auth_type == AUTH_PASSWORD:
        errors = []
        if is_blank(params.get("github_username")):
            errors.append("GitHub username must be specified")
        if is_blank(params.get("github_password")):
            errors.append("GitHub password must be specified")
        return errors
    else:
        return [f"Unsupported authentication type '{auth_type}'"]
    return []


def resolve_repository(root, params, settings):
    return parse_repository(root.vcs_name, root.url)


def context_name(ctx: PublishContext) -> str:
    custom = ctx.params.get("github_context")
    return custom.strip() if custom and custom.strip() else ctx.build.full_name


def build_request(ctx: PublishContext) -> PendingRequest:
    repo = ctx.repository
    return PendingRequest(
        method="POST",
        url=f"{api_url(ctx.params)}/repos/{repo.owner}/{repo.name}/statuses/{ctx.revision.revision}",
        publisher_id=GITHUB_PUBLISHER_ID,
        build_description=ctx.build_description,
        payload=build_payload({
            "state": ctx.state,
            "target_url": ctx.target_url,
            "description": ctx.message,
            "context": context_name(ctx),
        }),
        credentials=credentials(ctx.params),
        headers={"Accept": "application/vnd.github.v3+json"},
        timeout_ms=ctx.timeout_ms,
        error_parser=parse_message_with_errors,
    )


def test_connection(ctx: ConnectionContext) -> PendingRequest:
    repo = ctx.repository
    return PendingRequest(
        method="GET",
        url=f"{api_url(ctx.params)}/repos/{repo.owner}/{repo.name}",
        publisher_id=GITHUB_PUBLISHER_ID,
        build_description=f"connection test for {ctx.root.name}",
        credentials=credentials(ctx.params),
        headers={"Accept": "application/vnd.github.v3+json"},
        timeout_ms=ctx.timeout_ms,
        error_parser=parse_message_with_errors,
    )


DESCRIPTOR = ProviderDescriptor(
    publisher_id=GITHUB_PUBLISHER_ID,
    name="GitHub",
    states=STATES,
    events=EVENTS,
    build_request=build_request,
    resolve_repository=resolve_repository,
    validate=validate,
    test_connection=test_connection,
    destination=api_url,
    max_description_length=MAX_DESCRIPTION_LENGTH,
)
