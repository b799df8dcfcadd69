"""
Application configuration using pydantic-settings.
All environment variables are validated and typed.
"""

import json
import os

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from commit_publisher.core.exceptions import ConfigurationError

DEFAULT_CONNECTION_TIMEOUT = 10000


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Root URL of the CI server, used for build links
    server_url: str = "http://localhost:8111"

    # Connect + read timeout for every publish attempt, milliseconds
    connection_timeout: int = DEFAULT_CONNECTION_TIMEOUT

    # Background delivery pool
    dispatcher_workers: int = 4
    dispatcher_queue_size: int = 1000

    # Builds whose publishing problems are kept in memory
    problems_max_builds: int = 1000

    # Webhook receiving build lifecycle events
    webhook_host: str = "0.0.0.0"
    webhook_port: int = 8081
    webhook_secret: str | None = None

    # JSON file with configured build features
    features_file: str | None = None

    log_level: str = "INFO"

    # Hosted TFS / Azure DevOps domains (comma separated)
    tfs_hosted_domains: str = "visualstudio.com,dev.azure.com"

    # Gerrit
    gerrit_ssh_key: str | None = None
    gerrit_use_verified_option: bool = False

    @property
    def tfs_domains(self) -> list[str]:
        """Parse comma-separated hosted TFS domains."""
        return [d.strip() for d in self.tfs_hosted_domains.split(",") if d.strip()]

    @field_validator("server_url", mode="before")
    @classmethod
    def _strip_server_url(cls, value: str) -> str:
        return str(value).strip().rstrip("/")

    @field_validator("connection_timeout", "dispatcher_workers", "dispatcher_queue_size", "problems_max_builds")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    model_config = {
        "env_file": os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), ".env"),
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


class FeatureConfig(BaseModel):
    """A commit status publisher build feature attached to a build type."""

    feature_id: str
    build_type_id: str
    publisher_id: str
    vcs_root_id: str | None = None
    params: dict[str, str] = Field(default_factory=dict)

    @field_validator("feature_id", "build_type_id", "publisher_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("must not be empty")
        return cleaned

    @field_validator("vcs_root_id", mode="before")
    @classmethod
    def _normalize_root(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = str(value).strip()
        return cleaned or None


def load_features(path: str | None) -> list[FeatureConfig]:
    """
    Load build features from a JSON file.

    The file holds either a list of features or an object with a
    "features" list.

    Raises:
        ConfigurationError: If the file cannot be read or is invalid
    """
    if not path:
        return []
    try:
        with open(path, encoding="utf-8") as fh:
            raw = json.load(fh)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Cannot read features file {path}: {e}") from e

    if isinstance(raw, dict):
        raw = raw.get("features", [])
    if not isinstance(raw, list):
        raise ConfigurationError(f"Features file {path} must contain a list of features")

    try:
        return [FeatureConfig.model_validate(item) for item in raw]
    except ValidationError as e:
        raise ConfigurationError(f"Invalid feature in {path}: {e}") from e


# Singleton settings instance
settings = Settings()
