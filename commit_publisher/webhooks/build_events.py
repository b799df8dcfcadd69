"""
HTTP endpoints receiving build lifecycle events from the CI server.
"""

import hashlib
import hmac
import json

from aiohttp import web

from commit_publisher.core.config import settings
from commit_publisher.core.exceptions import PublisherError
from commit_publisher.core.logging import get_logger
from commit_publisher.handlers.listener import PublisherListener
from commit_publisher.models.build import Build, VcsRoot
from commit_publisher.models.events import Event
from commit_publisher.state.problems import BuildProblemsStore

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Signature-256"

LISTENER_KEY = web.AppKey("listener", PublisherListener)
PROBLEMS_KEY = web.AppKey("problems", BuildProblemsStore)


def verify_signature(body: bytes, signature: str | None, secret: str | None) -> bool:
    """Check an ``sha256=<hex>`` HMAC of the body; always true without a secret."""
    if not secret:
        return True
    if not signature:
        return False
    expected = "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature, expected)


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def handle_build_event(request: web.Request) -> web.Response:
    """Handle a build lifecycle event."""
    body = await request.read()
    if not verify_signature(body, request.headers.get(SIGNATURE_HEADER), settings.webhook_secret):
        return _error(401, "Invalid signature")

    try:
        payload = json.loads(body)
    except ValueError:
        return _error(400, "Malformed JSON")
    if not isinstance(payload, dict):
        return _error(400, "Event must be a JSON object")

    try:
        event = Event(payload.get("event"))
    except ValueError:
        return _error(400, f"Unknown event '{payload.get('event')}'")

    try:
        build = Build.from_dict(payload["build"])
    except (KeyError, TypeError, ValueError) as e:
        return _error(400, f"Invalid build: {e}")

    listener = request.app[LISTENER_KEY]
    attempted = listener.handle(
        event,
        build,
        user=payload.get("user"),
        comment=payload.get("comment"),
        in_progress=bool(payload.get("inProgress", False)),
    )
    logger.info(f"{event.value} for {build.describe()}: {attempted} publish attempts")
    return web.json_response({"attempted": attempted})


async def handle_test_connection(request: web.Request) -> web.Response:
    """Run the connection test of a build feature."""
    feature_id = request.match_info["feature_id"]
    body = await request.read()

    root = None
    if body.strip():
        try:
            payload = json.loads(body)
            if isinstance(payload, dict) and payload.get("vcsRoot"):
                root = VcsRoot.from_dict(payload["vcsRoot"])
        except (KeyError, TypeError, ValueError) as e:
            return _error(400, f"Invalid request: {e}")

    listener = request.app[LISTENER_KEY]
    try:
        result = await listener.test_connection(feature_id, root)
    except PublisherError as e:
        logger.info(f"Connection test of feature {feature_id} failed: {e}")
        return _error(400, str(e))
    return web.json_response({"status": "ok", "statusCode": result.status_code})


async def handle_build_problems(request: web.Request) -> web.Response:
    """List publishing problems recorded for a build."""
    try:
        build_id = int(request.match_info["build_id"])
    except ValueError:
        return _error(400, "Build id must be a number")
    problems = request.app[PROBLEMS_KEY].get(build_id)
    return web.json_response({"buildId": build_id, "problems": [p.to_dict() for p in problems]})
