"""
Git remote URL parsing.

Understands protocol URLs (https://, ssh://, git://) and scp-like
``user@host:owner/repo`` remotes.
"""

import re

from commit_publisher.core.logging import get_logger
from commit_publisher.models.repository import Repository

logger = get_logger(__name__)

GIT_URL_PATTERN = re.compile(r"([a-zA-Z]+)://(?:[^:@/]+@)?[^:/]+(?::[0-9]+)?[:/]([^:]+)/([^/]+)/?")
PROTOCOL_PREFIX_PATTERN = re.compile(r"[a-zA-Z]+://.+")
GIT_SCP_PATTERN = re.compile(r"(?:[^:@/]+@)?[^:/]+:/?([^:]+)/([^/]+)/?")


def _strip_prefix(path: str, prefix: str) -> str:
    """Remove ``prefix`` from ``path`` ignoring leading and trailing slashes."""
    s = path if path.startswith("/") else "/" + path
    p = prefix if prefix.startswith("/") else "/" + prefix
    if not p.endswith("/"):
        p += "/"
    if s.startswith(p):
        return s[len(p):]
    return path


class GitRepositoryParser:
    """Parser of git remote URLs into owner and repository name."""

    def __init__(self, lowercase: bool = False):
        self._lowercase = lowercase

    def parse(self, url: str, path_prefix: str | None = None) -> Repository | None:
        """
        Parse a git remote URL.

        Args:
            url: Remote URL as configured in the VCS root
            path_prefix: Server path prefix (e.g. GitLab installed under
                /gitlab); when given the owner keeps all path segments
                after it, so nested groups survive

        Returns:
            Repository, or None when the URL is not recognized
        """
        m = GIT_URL_PATTERN.fullmatch(url)
        if m:
            return self._build(url, m.group(2), m.group(3), path_prefix)
        if not PROTOCOL_PREFIX_PATTERN.fullmatch(url):
            m = GIT_SCP_PATTERN.fullmatch(url)
            if m:
                return self._build(url, m.group(1), m.group(2), path_prefix)
        logger.warning(f"Cannot parse git repository url {url}")
        return None

    def _build(self, url: str, path: str, repo: str, path_prefix: str | None) -> Repository:
        if path_prefix is not None:
            owner = _strip_prefix(path, path_prefix)
        else:
            owner = path.rsplit("/", 1)[-1]
        if repo.endswith(".git"):
            repo = repo[:-4]
        if self._lowercase:
            owner, repo = owner.lower(), repo.lower()
        return Repository(owner=owner, name=repo, url=url)
