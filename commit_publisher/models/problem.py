"""
Build problems recorded when publishing fails.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class BuildProblem:
    """A failure attached to a build so users can see why no status appeared."""

    problem_id: str
    publisher_id: str
    description: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc), compare=False)

    def to_dict(self) -> dict:
        return {
            "problemId": self.problem_id,
            "publisherId": self.publisher_id,
            "description": self.description,
            "createdAt": self.created_at.isoformat(),
        }
