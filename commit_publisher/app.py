"""
Application factory and main entry point.
"""

import asyncio
import sys

from commit_publisher.core.config import load_features, settings
from commit_publisher.core.exceptions import ConfigurationError
from commit_publisher.core.logging import get_logger, setup_logging
from commit_publisher.handlers.listener import PublisherListener
from commit_publisher.services.dispatcher import AsyncHttpDispatcher
from commit_publisher.state.problems import build_problems
from commit_publisher.webhooks.server import create_webhook_app, start_webhook_server

# Initialize logging
setup_logging(settings.log_level.upper())
logger = get_logger(__name__)


def create_app(dispatcher: AsyncHttpDispatcher) -> PublisherListener:
    """Create the listener for the configured build features."""
    try:
        features = load_features(settings.features_file)
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)

    if not features:
        logger.warning("No build features configured, statuses will not be published")

    return PublisherListener(features, dispatcher, build_problems, settings)


async def main() -> None:
    """Main application entry point."""
    logger.info("Starting commit status publisher...")

    dispatcher = AsyncHttpDispatcher(
        workers=settings.dispatcher_workers,
        queue_size=settings.dispatcher_queue_size,
    )
    listener = create_app(dispatcher)

    await dispatcher.start()
    runner = await start_webhook_server(
        create_webhook_app(listener, build_problems),
        settings.webhook_host,
        settings.webhook_port,
    )

    logger.info("Publisher is running.")

    # Keep running until cancelled
    stop_signal = asyncio.Event()
    try:
        await stop_signal.wait()
    except asyncio.CancelledError:
        pass
    finally:
        # Graceful shutdown
        await runner.cleanup()
        await dispatcher.stop(drain=True)
