"""
Asynchronous delivery of commit statuses.

Requests are queued and sent by a fixed pool of worker tasks, so build
event handling never waits for a remote service. Every submission gets a
future resolving to a DeliveryResult; failures are reported through the
submitter's callback and never raised at the submitter.
"""

import asyncio
from typing import Callable

import httpx

from commit_publisher.core.exceptions import (
    PublisherError,
    PublishTimeoutError,
    QueueOverflowError,
    RemoteRejectionError,
    TransportError,
)
from commit_publisher.core.logging import get_logger, log_request
from commit_publisher.models.request import (
    BasicAuth,
    DeliveryResult,
    HeaderAuth,
    PendingCommand,
    PendingRequest,
)

logger = get_logger(__name__)

FailureCallback = Callable[[PublisherError], None]
DeliveryItem = PendingRequest | PendingCommand


class AsyncHttpDispatcher:
    """Bounded queue of pending deliveries served by worker tasks."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        workers: int = 4,
        queue_size: int = 1000,
    ):
        if workers <= 0:
            raise ValueError("workers must be positive")
        self._client = client
        self._owns_client = client is None
        self._workers_count = workers
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._workers: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        """Number of queued deliveries not yet picked up by a worker."""
        return self._queue.qsize()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True)
            self._owns_client = True
        return self._client

    async def start(self) -> None:
        """Spawn the worker tasks."""
        if self.running:
            return
        self._ensure_client()
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"publisher-worker-{i}")
            for i in range(self._workers_count)
        ]
        logger.info(f"Dispatcher started with {self._workers_count} workers")

    async def join(self) -> None:
        """Wait until every queued delivery has been processed."""
        await self._queue.join()

    async def stop(self, drain: bool = True) -> None:
        """
        Stop the workers.

        Args:
            drain: Process queued deliveries before stopping; otherwise
                they resolve as failed
        """
        if drain and self.running:
            if self.pending:
                logger.info(f"Draining {self.pending} queued deliveries")
            await self._queue.join()
        elif self.pending:
            logger.warning(f"Dropping {self.pending} queued deliveries")

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

        while not self._queue.empty():
            item, future, on_failure = self._queue.get_nowait()
            self._fail(item, future, on_failure, TransportError("Dispatcher stopped before delivery"))
            self._queue.task_done()

        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("Dispatcher stopped")

    def submit(self, item: DeliveryItem, on_failure: FailureCallback | None = None) -> asyncio.Future:
        """
        Queue a delivery without waiting for it.

        Args:
            item: Request or command to deliver
            on_failure: Called with the error when delivery fails

        Returns:
            Future resolving to the DeliveryResult
        """
        future = asyncio.get_running_loop().create_future()
        try:
            self._queue.put_nowait((item, future, on_failure))
        except asyncio.QueueFull:
            self._fail(item, future, on_failure, QueueOverflowError(
                f"Delivery queue is full ({self._queue.maxsize} pending requests), status was not published"
            ))
        return future

    async def test_connection(self, item: DeliveryItem) -> DeliveryResult:
        """
        Deliver immediately and raise on failure.

        Raises:
            PublishTimeoutError: If the remote service did not respond in time
            TransportError: If the connection failed
            RemoteRejectionError: If the remote service returned an error
        """
        return await self._deliver(item)

    async def _worker(self, index: int) -> None:
        while True:
            item, future, on_failure = await self._queue.get()
            try:
                result = await self._deliver(item)
            except PublisherError as e:
                self._fail(item, future, on_failure, e)
            except Exception as e:
                logger.exception(f"Worker {index}: unexpected error delivering to {item.destination}")
                self._fail(item, future, on_failure, TransportError(str(e) or type(e).__name__))
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._queue.task_done()

    def _fail(self, item: DeliveryItem, future: asyncio.Future, on_failure: FailureCallback | None,
              error: PublisherError) -> None:
        logger.warning(
            f"Failed to publish status for {item.build_description} "
            f"via {item.publisher_id} to {item.destination}: {error}"
        )
        if on_failure is not None:
            try:
                on_failure(error)
            except Exception:
                logger.exception("Failure callback raised")
        if not future.done():
            status_code = error.status_code if isinstance(error, RemoteRejectionError) else None
            future.set_result(DeliveryResult.failed(error, status_code))

    async def _deliver(self, item: DeliveryItem) -> DeliveryResult:
        if isinstance(item, PendingCommand):
            return await self._run_command(item)
        return await self._send(item)

    async def _run_command(self, command: PendingCommand) -> DeliveryResult:
        timeout = command.timeout_ms / 1000
        try:
            await asyncio.wait_for(command.run(), timeout)
        except asyncio.TimeoutError as e:
            raise PublishTimeoutError(
                f"Command to {command.destination} timed out after {command.timeout_ms} ms"
            ) from e
        except OSError as e:
            raise TransportError(f"Command to {command.destination} failed: {e}") from e
        return DeliveryResult.ok()

    async def _send(self, request: PendingRequest) -> DeliveryResult:
        client = self._ensure_client()
        headers = {"Accept": "application/json", **request.headers}
        auth = None
        if isinstance(request.credentials, BasicAuth):
            auth = httpx.BasicAuth(request.credentials.username, request.credentials.password)
        elif isinstance(request.credentials, HeaderAuth):
            headers[request.credentials.header] = request.credentials.value
        if request.payload is not None:
            headers.setdefault("Content-Type", f"{request.content_type}; charset=utf-8")

        log_request(logger, request.publisher_id, request.method, request.url, request.payload)

        try:
            response = await client.request(
                request.method,
                request.url,
                content=request.payload.encode("utf-8") if request.payload is not None else None,
                headers=headers,
                auth=auth,
                timeout=httpx.Timeout(request.timeout_ms / 1000),
                follow_redirects=True,
            )
        except httpx.TimeoutException as e:
            raise PublishTimeoutError(
                f"Timed out after {request.timeout_ms} ms calling {request.url}"
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"Failed to call {request.url}: {e}") from e

        if response.is_success:
            return DeliveryResult.ok(response.status_code)

        body = response.text
        detail = request.error_parser(body) if request.error_parser else None
        if any(fragment in (detail or body) for fragment in request.tolerated_errors):
            logger.debug(f"Ignoring tolerated error from {request.url}: {detail or body}")
            return DeliveryResult.ok(response.status_code)

        raise RemoteRejectionError(response.status_code, response.reason_phrase, detail)
