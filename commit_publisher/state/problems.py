"""
In-memory storage for build problems reported by publishers.
"""

import threading
from collections import OrderedDict

from commit_publisher.core.config import settings
from commit_publisher.core.logging import get_logger
from commit_publisher.models.problem import BuildProblem

logger = get_logger(__name__)

DEFAULT_ERROR_MESSAGE = "Commit Status Publisher error"
DEFAULT_MAX_BUILDS = 1000


def format_problem(publisher_id: str, destination: str, error: Exception | str,
                   error_message: str = DEFAULT_ERROR_MESSAGE) -> str:
    """Render the description shown for a publishing problem."""
    text = f"{error_message}. Publisher: {publisher_id}({destination})."
    detail = str(error)
    if detail:
        text += f" {detail}"
    return text


class BuildProblemsStore:
    """
    Storage for publishing problems keyed by build id.

    At most ``max_builds`` builds are kept. Recording a problem for a new
    build beyond that evicts the build that was updated longest ago.
    """

    def __init__(self, max_builds: int = DEFAULT_MAX_BUILDS):
        if max_builds <= 0:
            raise ValueError("max_builds must be positive")
        self._max_builds = max_builds
        self._problems: OrderedDict[int, list[BuildProblem]] = OrderedDict()
        self._lock = threading.Lock()

    def add(self, build_id: int, problem: BuildProblem) -> None:
        """Attach a problem to a build, replacing one with the same id."""
        with self._lock:
            problems = self._problems.setdefault(build_id, [])
            problems[:] = [p for p in problems if p.problem_id != problem.problem_id]
            problems.append(problem)
            self._problems.move_to_end(build_id)
            while len(self._problems) > self._max_builds:
                evicted, _ = self._problems.popitem(last=False)
                logger.debug(f"Dropped problems of build id={evicted}, store is full")

    def get(self, build_id: int) -> list[BuildProblem]:
        """Get problems of a build without removing them."""
        with self._lock:
            return list(self._problems.get(build_id, []))

    def report(self, build_id: int, publisher_id: str, feature_id: str,
               destination: str, error: Exception | str) -> BuildProblem:
        """Format, log and record a publishing failure."""
        description = format_problem(publisher_id, destination, error)
        logger.warning(f"Build id={build_id}: {description}")
        problem = BuildProblem(
            problem_id=f"commitStatusPublisher.{feature_id}",
            publisher_id=publisher_id,
            description=description,
        )
        self.add(build_id, problem)
        return problem


# Singleton instance
build_problems = BuildProblemsStore(settings.problems_max_builds)
