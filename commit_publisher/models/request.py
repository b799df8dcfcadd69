"""
Queued work items for the delivery dispatcher and their results.
"""

from dataclasses import dataclass, field
from typing import Awaitable, Callable

JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class BasicAuth:
    """HTTP Basic credentials."""

    username: str
    password: str


@dataclass(frozen=True)
class HeaderAuth:
    """Credentials sent verbatim in a single header, e.g. a token."""

    header: str
    value: str


Credentials = BasicAuth | HeaderAuth

# Extracts a human readable message from an error response body
ErrorParser = Callable[[str], str | None]


@dataclass(frozen=True)
class PendingRequest:
    """An HTTP call waiting to be sent to a provider."""

    method: str
    url: str
    publisher_id: str
    build_description: str
    payload: str | None = None
    content_type: str = JSON_CONTENT_TYPE
    credentials: Credentials | None = None
    headers: dict[str, str] = field(default_factory=dict, hash=False)
    timeout_ms: int = 10000
    error_parser: ErrorParser | None = field(default=None, compare=False)
    # Error fragments that are reported as success
    tolerated_errors: tuple[str, ...] = ()

    @property
    def destination(self) -> str:
        return self.url


@dataclass(frozen=True)
class PendingCommand:
    """A non-HTTP delivery, such as a Gerrit SSH command."""

    run: Callable[[], Awaitable[None]] = field(compare=False)
    publisher_id: str = ""
    build_description: str = ""
    destination: str = ""
    timeout_ms: int = 10000


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a single delivery attempt."""

    success: bool
    status_code: int | None = None
    error: Exception | None = None

    @classmethod
    def ok(cls, status_code: int | None = None) -> "DeliveryResult":
        return cls(success=True, status_code=status_code)

    @classmethod
    def failed(cls, error: Exception, status_code: int | None = None) -> "DeliveryResult":
        return cls(success=False, status_code=status_code, error=error)
