"""
Gerrit review votes over SSH.

Only finished builds of non-default branches are reported: the branch is
the change ref the build was triggered for.
"""

from commit_publisher.models.events import Event, StatusKind
from commit_publisher.models.request import PendingCommand
from commit_publisher.services.gerrit import GerritClient, GerritConnection
from commit_publisher.services.publishers.base import ConnectionContext, ProviderDescriptor, PublishContext

GERRIT_PUBLISHER_ID = "gerritStatusPublisher"

# Vote kinds; the actual votes come from the feature parameters
STATES = {
    StatusKind.SUCCESS: "success",
    StatusKind.FAILURE: "failure",
    StatusKind.ERROR: "failure",
}


def connection(params: dict[str, str], settings) -> GerritConnection:
    key = params.get("gerrit_ssh_key") or settings.gerrit_ssh_key
    return GerritConnection(
        server=params.get("gerrit_server", "").strip(),
        project=params.get("gerrit_project", "").strip(),
        username=params.get("gerrit_username", "").strip(),
        key_path=key or None,
    )


def client(settings) -> GerritClient:
    return GerritClient(use_verified_option=settings.gerrit_use_verified_option)


def validate(params: dict[str, str]) -> list[str]:
    server = params.get("gerrit_server", "")
    if ":" in server:
        port = server.split(":", 1)[1]
        if not port.isdigit():
            return [f"Invalid port '{port}' in Gerrit server"]
    return []


def review_message(ctx: PublishContext) -> str:
    build = ctx.build
    return f"{build.full_name} #{build.number or ''}: {build.status_text} {ctx.target_url}"


def build_request(ctx: PublishContext) -> PendingCommand:
    vote_key = "gerrit_success_vote" if ctx.state == "success" else "gerrit_failure_vote"
    conn = connection(ctx.params, ctx.settings)
    gerrit = client(ctx.settings)

    async def run() -> None:
        await gerrit.review(
            conn,
            ctx.params.get("gerrit_label"),
            ctx.params[vote_key],
            review_message(ctx),
            ctx.revision.revision,
        )

    return PendingCommand(
        run=run,
        publisher_id=GERRIT_PUBLISHER_ID,
        build_description=ctx.build_description,
        destination=conn.destination,
        timeout_ms=ctx.timeout_ms,
    )


def test_connection(ctx: ConnectionContext) -> PendingCommand:
    conn = connection(ctx.params, ctx.settings)
    gerrit = client(ctx.settings)

    async def run() -> None:
        await gerrit.test_connection(conn)

    return PendingCommand(
        run=run,
        publisher_id=GERRIT_PUBLISHER_ID,
        build_description=f"connection test for {ctx.root.name}",
        destination=conn.destination,
        timeout_ms=ctx.timeout_ms,
    )


DESCRIPTOR = ProviderDescriptor(
    publisher_id=GERRIT_PUBLISHER_ID,
    name="Gerrit",
    states=STATES,
    events=frozenset({Event.FINISHED}),
    build_request=build_request,
    required_params=(
        "gerrit_server",
        "gerrit_project",
        "gerrit_username",
        "gerrit_success_vote",
        "gerrit_failure_vote",
    ),
    validate=validate,
    test_connection=test_connection,
    destination=lambda params: params.get("gerrit_server", "Gerrit"),
    publish_default_branch=False,
)
