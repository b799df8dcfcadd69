"""
Custom application exceptions.
"""


class PublisherError(Exception):
    """Base exception for commit status publishing errors."""
    pass


class ConfigurationError(PublisherError):
    """Build feature is missing a mandatory parameter or has an invalid one."""
    pass


class RepositoryParseError(PublisherError):
    """Repository could not be determined from a VCS root URL."""

    def __init__(self, vcs_root_name: str, message: str | None = None):
        self.vcs_root_name = vcs_root_name
        super().__init__(message or f"Cannot determine repository for VCS root '{vcs_root_name}'")


class TransportError(PublisherError):
    """Network call failed before a response was received."""
    pass


class PublishTimeoutError(TransportError):
    """Remote service did not respond within the configured timeout."""
    pass


class RemoteRejectionError(PublisherError):
    """Remote service answered with a non-2xx status."""

    def __init__(self, status_code: int, reason: str, detail: str | None = None):
        self.status_code = status_code
        self.reason = reason
        self.detail = detail
        prefix = f"{detail}, " if detail else ""
        super().__init__(f"{prefix}response code: {status_code}, reason: {reason}")


class QueueOverflowError(PublisherError):
    """Delivery queue is full, the request was not accepted."""
    pass
