"""
Generic commit status publisher.

A provider is described by a ProviderDescriptor: its state tokens,
repository parser and request builder. CommitStatusPublisher turns build
lifecycle callbacks into requests using the descriptor and hands them to
the dispatcher.
"""

import asyncio
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable

from commit_publisher.core.config import FeatureConfig, Settings
from commit_publisher.core.config import settings as default_settings
from commit_publisher.core.exceptions import ConfigurationError, PublisherError, RepositoryParseError
from commit_publisher.core.logging import get_logger
from commit_publisher.models.build import Build, BuildRevision, VcsRoot
from commit_publisher.models.events import Event, StatusEvent, StatusKind
from commit_publisher.models.request import DeliveryResult, PendingCommand, PendingRequest
from commit_publisher.services.dispatcher import AsyncHttpDispatcher
from commit_publisher.services.payload import truncate
from commit_publisher.state.problems import BuildProblemsStore, build_problems

logger = get_logger(__name__)

DeliveryItem = PendingRequest | PendingCommand

ALL_EVENTS = frozenset(Event)


@dataclass
class PublishContext:
    """Everything a request builder needs to build one status update."""

    feature: FeatureConfig
    settings: Settings
    build: Build
    revision: BuildRevision
    event: StatusEvent
    kind: StatusKind
    state: str
    message: str
    target_url: str
    timeout_ms: int
    repository: Any = None

    @property
    def params(self) -> dict[str, str]:
        return self.feature.params

    @property
    def build_description(self) -> str:
        return self.build.describe()


@dataclass
class ConnectionContext:
    """Input of a provider connection test."""

    feature: FeatureConfig
    settings: Settings
    root: VcsRoot
    timeout_ms: int
    repository: Any = None

    @property
    def params(self) -> dict[str, str]:
        return self.feature.params


@dataclass(frozen=True)
class ProviderDescriptor:
    """Table-driven description of a status provider."""

    publisher_id: str
    name: str
    # StatusKind -> provider state token; kinds missing here are not published
    states: dict[StatusKind, str]
    build_request: Callable[[PublishContext], DeliveryItem]
    events: frozenset[Event] = ALL_EVENTS
    required_params: tuple[str, ...] = ()
    # (root, params, settings) -> repository or None
    resolve_repository: Callable[[VcsRoot, dict[str, str], Settings], Any] | None = None
    # params -> list of configuration errors
    validate: Callable[[dict[str, str]], list[str]] | None = None
    test_connection: Callable[[ConnectionContext], DeliveryItem] | None = None
    destination: Callable[[dict[str, str]], str] | None = None
    max_description_length: int | None = None
    publish_default_branch: bool = True

    def state_for(self, kind: StatusKind) -> str | None:
        return self.states.get(kind)


def is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


class CommitStatusPublisher:
    """Publishes build statuses of one build feature to one provider."""

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        feature: FeatureConfig,
        dispatcher: AsyncHttpDispatcher,
        problems: BuildProblemsStore = build_problems,
        settings: Settings = default_settings,
    ):
        self.descriptor = descriptor
        self.feature = feature
        self._dispatcher = dispatcher
        self._problems = problems
        self._settings = settings

    def __repr__(self) -> str:
        return f"<CommitStatusPublisher {self.publisher_id} feature={self.feature_id}>"

    @property
    def publisher_id(self) -> str:
        return self.descriptor.publisher_id

    @property
    def feature_id(self) -> str:
        return self.feature.feature_id

    @property
    def params(self) -> dict[str, str]:
        return self.feature.params

    @property
    def destination(self) -> str:
        """Where statuses go, used in problem descriptions."""
        if self.descriptor.destination is not None:
            return self.descriptor.destination(self.params)
        return self.descriptor.name

    @property
    def timeout_ms(self) -> int:
        """Per-feature connection timeout, falling back to the global one."""
        raw = self.params.get("connection_timeout")
        if raw is not None and raw.strip():
            try:
                value = int(raw)
                if value > 0:
                    return value
            except ValueError:
                pass
            logger.warning(
                f"Feature {self.feature_id}: invalid connection_timeout '{raw}', "
                f"using {self._settings.connection_timeout} ms"
            )
        return self._settings.connection_timeout

    def validate(self) -> None:
        """
        Check mandatory and provider specific parameters.

        Raises:
            ConfigurationError: If the feature is misconfigured
        """
        errors = [
            f"Parameter '{name}' must be specified"
            for name in self.descriptor.required_params
            if is_blank(self.params.get(name))
        ]
        if self.descriptor.validate is not None:
            errors.extend(self.descriptor.validate(self.params))
        if errors:
            raise ConfigurationError(
                f"{self.descriptor.name} publisher in feature {self.feature_id}: " + "; ".join(errors)
            )

    def is_event_supported(self, event: Event) -> bool:
        return event in self.descriptor.events

    def target_url(self, build: Build) -> str:
        """Link to the build results page."""
        if build.web_url:
            return build.web_url
        if build.queued:
            return f"{self._settings.server_url}/viewQueued.html?itemId={build.id}"
        return f"{self._settings.server_url}/viewLog.html?buildId={build.id}"

    def resolve_repository(self, root: VcsRoot) -> Any:
        """
        Resolve the repository of a VCS root.

        Raises:
            RepositoryParseError: If the root URL cannot be parsed
        """
        if self.descriptor.resolve_repository is None:
            return None
        repository = self.descriptor.resolve_repository(root, self.params, self._settings)
        if repository is None:
            raise RepositoryParseError(
                root.name,
                f"Cannot parse repository URL from VCS root '{root.name}' ({root.url})",
            )
        return repository

    def publish(self, event: StatusEvent, build: Build, revision: BuildRevision) -> asyncio.Future | None:
        """
        Publish the status for an event.

        Returns:
            Future resolving to the DeliveryResult, or None when the event
            is not published by this provider

        Raises:
            RepositoryParseError: If the repository cannot be determined
            PublisherError: If the request cannot be built
        """
        if not self.is_event_supported(event.event):
            return None
        if not self.descriptor.publish_default_branch and (build.branch is None or build.is_default_branch):
            logger.debug(f"{self.publisher_id}: skipping default branch of {build.describe()}")
            return None

        kind = event.status_kind(build.status)
        state = self.descriptor.state_for(kind)
        if state is None:
            logger.debug(f"{self.publisher_id}: status {kind.value} is not published")
            return None

        repository = self.resolve_repository(revision.root)
        message = event.message(build)
        if self.descriptor.max_description_length:
            message = truncate(message, self.descriptor.max_description_length)

        context = PublishContext(
            feature=self.feature,
            settings=self._settings,
            build=build,
            revision=revision,
            event=event,
            kind=kind,
            state=state,
            message=message,
            target_url=self.target_url(build),
            timeout_ms=self.timeout_ms,
            repository=repository,
        )
        item = self.descriptor.build_request(context)
        return self._dispatcher.submit(item, on_failure=partial(self._report_failure, build))

    def _report_failure(self, build: Build, error: PublisherError) -> None:
        self._problems.report(build.id, self.publisher_id, self.feature_id, self.destination, error)

    async def test_connection(self, root: VcsRoot) -> DeliveryResult:
        """
        Check that statuses can be published for a VCS root.

        Raises:
            PublisherError: If the check fails or is not supported
        """
        self.validate()
        if self.descriptor.test_connection is None:
            raise PublisherError(f"Test connection is not supported by {self.descriptor.name} publisher")
        context = ConnectionContext(
            feature=self.feature,
            settings=self._settings,
            root=root,
            timeout_ms=self.timeout_ms,
            repository=self.resolve_repository(root),
        )
        return await self._dispatcher.test_connection(self.descriptor.test_connection(context))

    def _fire(self, event: StatusEvent, build: Build, revision: BuildRevision) -> bool:
        return self.publish(event, build, revision) is not None

    def build_queued(self, build: Build, revision: BuildRevision, comment: str | None = None) -> bool:
        return self._fire(StatusEvent(Event.QUEUED, comment=comment), build, revision)

    def build_removed_from_queue(self, build: Build, revision: BuildRevision,
                                 user: str | None = None, comment: str | None = None) -> bool:
        return self._fire(StatusEvent(Event.REMOVED_FROM_QUEUE, user=user, comment=comment), build, revision)

    def build_started(self, build: Build, revision: BuildRevision) -> bool:
        return self._fire(StatusEvent(Event.STARTED, in_progress=True), build, revision)

    def build_finished(self, build: Build, revision: BuildRevision) -> bool:
        return self._fire(StatusEvent(Event.FINISHED), build, revision)

    def build_interrupted(self, build: Build, revision: BuildRevision) -> bool:
        return self._fire(StatusEvent(Event.INTERRUPTED), build, revision)

    def build_failure_detected(self, build: Build, revision: BuildRevision) -> bool:
        return self._fire(StatusEvent(Event.FAILURE_DETECTED, in_progress=True), build, revision)

    def build_marked_as_successful(self, build: Build, revision: BuildRevision, in_progress: bool = False) -> bool:
        return self._fire(StatusEvent(Event.MARKED_AS_SUCCESSFUL, in_progress=in_progress), build, revision)

    def build_commented(self, build: Build, revision: BuildRevision, user: str | None,
                        comment: str | None, in_progress: bool = False) -> bool:
        event = StatusEvent(Event.COMMENTED, user=user, comment=comment, in_progress=in_progress)
        return self._fire(event, build, revision)
