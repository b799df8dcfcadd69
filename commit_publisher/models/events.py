"""
Build lifecycle events and the provider-neutral status they map to.
"""

from dataclasses import dataclass
from enum import Enum

from commit_publisher.models.build import Build, BuildStatus


class Event(str, Enum):
    """Build lifecycle event reported by the CI server."""

    QUEUED = "buildQueued"
    REMOVED_FROM_QUEUE = "buildRemovedFromQueue"
    STARTED = "buildStarted"
    FINISHED = "buildFinished"
    INTERRUPTED = "buildInterrupted"
    FAILURE_DETECTED = "buildFailureDetected"
    MARKED_AS_SUCCESSFUL = "buildMarkedAsSuccessful"
    COMMENTED = "buildCommented"


class StatusKind(str, Enum):
    """Provider-neutral status, translated to a state token per provider."""

    QUEUED = "queued"
    STARTED = "started"
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"
    INTERRUPTED = "interrupted"
    REMOVED_FROM_QUEUE = "removed_from_queue"


class DefaultMessages:
    BUILD_QUEUED = "TeamCity build was queued"
    BUILD_REMOVED_FROM_QUEUE = "TeamCity build was removed from queue"
    BUILD_STARTED = "TeamCity build started"
    BUILD_FINISHED = "TeamCity build finished"
    BUILD_FAILED = "TeamCity build failed"
    BUILD_MARKED_SUCCESSFUL = "TeamCity build was marked as successful"


@dataclass(frozen=True)
class StatusEvent:
    """A lifecycle event with its optional comment and commenting user."""

    event: Event
    description: str | None = None
    user: str | None = None
    comment: str | None = None
    in_progress: bool = False

    def status_kind(self, status: BuildStatus) -> StatusKind:
        """Map the event and the build's recorded status to a StatusKind."""
        if self.event is Event.QUEUED:
            return StatusKind.QUEUED
        if self.event is Event.REMOVED_FROM_QUEUE:
            return StatusKind.REMOVED_FROM_QUEUE
        if self.event is Event.STARTED:
            return StatusKind.STARTED
        if self.event is Event.INTERRUPTED:
            return StatusKind.INTERRUPTED
        if self.event is Event.FAILURE_DETECTED:
            return StatusKind.FAILURE
        if self.event is Event.MARKED_AS_SUCCESSFUL:
            return StatusKind.STARTED if self.in_progress else StatusKind.SUCCESS
        if self.event is Event.COMMENTED and status.is_successful:
            return StatusKind.STARTED if self.in_progress else StatusKind.SUCCESS
        if status.is_successful:
            return StatusKind.SUCCESS
        if status is BuildStatus.ERROR:
            return StatusKind.ERROR
        return StatusKind.FAILURE

    def message(self, build: Build) -> str:
        """Human readable status message for this event."""
        if self.description:
            return self.description
        if self.event is Event.QUEUED:
            return self.comment or DefaultMessages.BUILD_QUEUED
        if self.event is Event.REMOVED_FROM_QUEUE:
            text = DefaultMessages.BUILD_REMOVED_FROM_QUEUE
            if self.user:
                text += f" by {self.user}"
            if self.comment and self.comment.strip():
                text += f" with '{self.comment.strip()}'"
            return text
        if self.event is Event.STARTED:
            return DefaultMessages.BUILD_STARTED
        if self.event is Event.MARKED_AS_SUCCESSFUL:
            return DefaultMessages.BUILD_MARKED_SUCCESSFUL
        text = build.status_text
        if not text:
            text = DefaultMessages.BUILD_FINISHED if build.status.is_successful else DefaultMessages.BUILD_FAILED
        if self.event is Event.COMMENTED and self.user and self.comment is not None:
            text += f' with a comment by {self.user}: "{self.comment}"'
        return text
