"""
Data model for builds, VCS roots and revisions reported by the CI server.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class VcsKind(str, Enum):
    """VCS support plugin a root belongs to."""

    GIT = "jetbrains.git"
    MERCURIAL = "mercurial"
    SUBVERSION = "svn"


class BuildStatus(str, Enum):
    """Recorded build status."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    ERROR = "ERROR"
    UNKNOWN = "UNKNOWN"

    @property
    def is_successful(self) -> bool:
        return self is BuildStatus.SUCCESS

    @classmethod
    def parse(cls, value: str | None) -> "BuildStatus":
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.upper())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class VcsRoot:
    """A configured VCS root instance."""

    id: str
    name: str
    vcs_name: str
    properties: dict[str, str] = field(default_factory=dict, hash=False)

    @property
    def kind(self) -> VcsKind | None:
        try:
            return VcsKind(self.vcs_name)
        except ValueError:
            return None

    @property
    def url(self) -> str | None:
        """Repository URL as stored in the root properties."""
        if self.kind is VcsKind.MERCURIAL:
            return self.properties.get("repositoryPath")
        return self.properties.get("url")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VcsRoot":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            vcs_name=str(data.get("vcsName", VcsKind.GIT.value)),
            properties={str(k): str(v) for k, v in (data.get("properties") or {}).items()},
        )


@dataclass(frozen=True)
class BuildRevision:
    """Revision of a VCS root a build was started on."""

    root: VcsRoot
    revision: str
    branch: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BuildRevision":
        return cls(
            root=VcsRoot.from_dict(data["vcsRoot"]),
            revision=str(data["revision"]),
            branch=data.get("branch"),
        )


@dataclass
class Build:
    """A queued, running or finished build."""

    id: int
    build_type_id: str
    build_type_name: str
    full_name: str
    status: BuildStatus = BuildStatus.UNKNOWN
    status_text: str = ""
    number: str | None = None
    branch: str | None = None
    is_default_branch: bool = True
    personal: bool = False
    queued: bool = False
    web_url: str | None = None
    revisions: list[BuildRevision] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        """Build name with number, e.g. "Project / Build #12"."""
        if self.number:
            return f"{self.full_name} #{self.number}"
        return self.full_name

    def describe(self) -> str:
        kind = "Queued build" if self.queued else "Build"
        return f'{kind} id={self.id}, buildTypeId={self.build_type_id}, "{self.display_name}"'

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Build":
        """Create a build from the webhook JSON representation."""
        build_type_name = str(data.get("buildTypeName") or data["buildTypeId"])
        return cls(
            id=int(data["id"]),
            build_type_id=str(data["buildTypeId"]),
            build_type_name=build_type_name,
            full_name=str(data.get("fullName") or build_type_name),
            status=BuildStatus.parse(data.get("status")),
            status_text=str(data.get("statusText") or ""),
            number=data.get("number"),
            branch=data.get("branch"),
            is_default_branch=bool(data.get("defaultBranch", True)),
            personal=bool(data.get("personal", False)),
            queued=bool(data.get("queued", False)),
            web_url=data.get("webUrl"),
            revisions=[BuildRevision.from_dict(r) for r in data.get("revisions", [])],
        )
