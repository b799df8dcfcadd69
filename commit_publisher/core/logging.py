"""
Centralized logging configuration.
"""

import logging
import sys

# Third-party loggers that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: int | str = logging.INFO) -> None:
    """Configure application-wide logging."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=level,
        stream=sys.stdout,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


def log_request(logger: logging.Logger, publisher_id: str, method: str, url: str, payload: str | None) -> None:
    """Log an outgoing publisher request at DEBUG level."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    entity = payload if payload is not None else "<none>"
    logger.debug(
        f"Calling {publisher_id} with:\n"
        f"  requestURL: {url}\n"
        f"  requestMethod: {method}\n"
        f"  requestEntity: {entity}"
    )
