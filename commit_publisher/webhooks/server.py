"""
Webhook server setup.
"""

from aiohttp import web

from commit_publisher.core.logging import get_logger
from commit_publisher.handlers.listener import PublisherListener
from commit_publisher.state.problems import BuildProblemsStore
from commit_publisher.webhooks.build_events import (
    LISTENER_KEY,
    PROBLEMS_KEY,
    handle_build_event,
    handle_build_problems,
    handle_test_connection,
)

logger = get_logger(__name__)


def create_webhook_app(listener: PublisherListener, problems: BuildProblemsStore) -> web.Application:
    """Create the aiohttp application with all routes."""
    app = web.Application()
    app[LISTENER_KEY] = listener
    app[PROBLEMS_KEY] = problems
    app.router.add_post("/webhook/build-event", handle_build_event)
    app.router.add_post("/features/{feature_id}/test-connection", handle_test_connection)
    app.router.add_get("/builds/{build_id}/problems", handle_build_problems)
    return app


async def start_webhook_server(app: web.Application, host: str = "0.0.0.0", port: int = 8081) -> web.AppRunner:
    """
    Start the webhook server.

    Args:
        app: Application created by create_webhook_app
        host: Host to bind to
        port: Port to bind to

    Returns:
        Runner to clean up on shutdown
    """
    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"Webhook server started on {host}:{port}")
    return runner
