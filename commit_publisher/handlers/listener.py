"""
Build lifecycle listener.

Maps events reported by the CI server to the publishers configured for
the build type. Publishing failures never propagate to the caller: they
are recorded as build problems.
"""

from commit_publisher.core.config import FeatureConfig, Settings
from commit_publisher.core.config import settings as default_settings
from commit_publisher.core.exceptions import ConfigurationError, PublisherError
from commit_publisher.core.logging import get_logger
from commit_publisher.models.build import Build, BuildRevision, VcsRoot
from commit_publisher.models.events import Event
from commit_publisher.models.request import DeliveryResult
from commit_publisher.services.dispatcher import AsyncHttpDispatcher
from commit_publisher.services.publishers import CommitStatusPublisher, create_publisher
from commit_publisher.state.problems import BuildProblemsStore, build_problems

logger = get_logger(__name__)


class PublisherListener:
    """Dispatches build events to the publishers of each build feature."""

    def __init__(
        self,
        features: list[FeatureConfig],
        dispatcher: AsyncHttpDispatcher,
        problems: BuildProblemsStore = build_problems,
        settings: Settings = default_settings,
    ):
        self._problems = problems
        self._publishers: dict[str, CommitStatusPublisher] = {}
        self.disabled: dict[str, str] = {}

        for feature in features:
            try:
                self._publishers[feature.feature_id] = create_publisher(feature, dispatcher, problems, settings)
            except ConfigurationError as e:
                logger.error(f"Feature {feature.feature_id} disabled: {e}")
                self.disabled[feature.feature_id] = str(e)

        logger.info(f"Loaded {len(self._publishers)} publishers, {len(self.disabled)} disabled")

    def get_publisher(self, feature_id: str) -> CommitStatusPublisher | None:
        return self._publishers.get(feature_id)

    def publishers_for(self, build_type_id: str) -> list[CommitStatusPublisher]:
        return [p for p in self._publishers.values() if p.feature.build_type_id == build_type_id]

    @staticmethod
    def revisions_for(publisher: CommitStatusPublisher, build: Build) -> list[BuildRevision]:
        """Revisions a publisher reports on: those of its VCS root, or all."""
        root_id = publisher.feature.vcs_root_id
        if root_id is None:
            return list(build.revisions)
        return [r for r in build.revisions if r.root.id == root_id]

    def handle(
        self,
        event: Event,
        build: Build,
        user: str | None = None,
        comment: str | None = None,
        in_progress: bool = False,
    ) -> int:
        """
        Publish an event for every matching publisher and revision.

        Returns:
            Number of publish attempts
        """
        if build.personal:
            logger.debug(f"Skipping personal {build.describe()}")
            return 0

        attempted = 0
        for publisher in self.publishers_for(build.build_type_id):
            revisions = self.revisions_for(publisher, build)
            if not revisions:
                logger.debug(f"No revisions to publish for {publisher!r} in {build.describe()}")
                continue
            for revision in revisions:
                try:
                    if self._invoke(publisher, event, build, revision, user, comment, in_progress):
                        attempted += 1
                except PublisherError as e:
                    self._problems.report(build.id, publisher.publisher_id, publisher.feature_id,
                                          publisher.destination, e)
        return attempted

    @staticmethod
    def _invoke(publisher: CommitStatusPublisher, event: Event, build: Build, revision: BuildRevision,
                user: str | None, comment: str | None, in_progress: bool) -> bool:
        if event is Event.QUEUED:
            return publisher.build_queued(build, revision, comment)
        if event is Event.REMOVED_FROM_QUEUE:
            return publisher.build_removed_from_queue(build, revision, user, comment)
        if event is Event.STARTED:
            return publisher.build_started(build, revision)
        if event is Event.FINISHED:
            return publisher.build_finished(build, revision)
        if event is Event.INTERRUPTED:
            return publisher.build_interrupted(build, revision)
        if event is Event.FAILURE_DETECTED:
            return publisher.build_failure_detected(build, revision)
        if event is Event.MARKED_AS_SUCCESSFUL:
            return publisher.build_marked_as_successful(build, revision, in_progress)
        if event is Event.COMMENTED:
            return publisher.build_commented(build, revision, user, comment, in_progress)
        return False

    async def test_connection(self, feature_id: str, root: VcsRoot | None) -> DeliveryResult:
        """
        Run the connection test of a feature.

        Raises:
            PublisherError: If the feature is unknown or the test fails
        """
        if feature_id in self.disabled:
            raise ConfigurationError(self.disabled[feature_id])
        publisher = self.get_publisher(feature_id)
        if publisher is None:
            raise ConfigurationError(f"Unknown feature '{feature_id}'")
        if root is None:
            raise PublisherError("VCS root is required to test the connection")
        return await publisher.test_connection(root)
