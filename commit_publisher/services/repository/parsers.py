"""
Repository URL parsing for every supported VCS and hosting service.

All parsers return None for URLs they do not understand and log the
offending URL; none of them raise.
"""

import re
from urllib.parse import urlsplit

from commit_publisher.core.logging import get_logger
from commit_publisher.models.build import VcsKind, VcsRoot
from commit_publisher.models.repository import Repository
from commit_publisher.services.repository.git import (
    GIT_SCP_PATTERN,
    PROTOCOL_PREFIX_PATTERN,
    GitRepositoryParser,
)

logger = get_logger(__name__)

BITBUCKET_HG_SSH_PATTERN = re.compile(r"ssh://hg@bitbucket\.org/([^/]+)/(.+)")
DEVEO_URL_PATTERN = re.compile(r".+/projects/([^/]+)/repositories/(?:mercurial|git|subversion)/(.+?)/?$")
SCP_HOST_PATTERN = re.compile(r"(?:[^:@/]+@)?([^:/]+):")

_git_parser = GitRepositoryParser()
_git_lowercase_parser = GitRepositoryParser(lowercase=True)


def parse_path_repository(url: str, lowercase: bool = False) -> Repository | None:
    """
    Parse a URL whose path starts with ``owner/repo``.

    Used for mercurial and subversion roots, where the repository
    part may contain further slashes.
    """
    try:
        path = urlsplit(url).path
    except ValueError:
        logger.warning(f"Cannot parse repository url {url}")
        return None

    path = path[1:] if path.startswith("/") else path
    idx = path.find("/")
    if idx <= 0:
        logger.warning(f"Cannot parse repository url {url}")
        return None

    owner, repo = path[:idx], path[idx + 1:].rstrip("/")
    if not repo:
        logger.warning(f"Cannot parse repository url {url}, repository name is empty")
        return None
    if lowercase:
        owner, repo = owner.lower(), repo.lower()
    return Repository(owner=owner, name=repo, url=url)


def parse_repository(
    kind: VcsKind | str | None,
    url: str | None,
    *,
    lowercase: bool = False,
    path_prefix: str | None = None,
) -> Repository | None:
    """
    Parse a repository URL using the grammar of the given VCS kind.

    Args:
        kind: VCS of the root the URL comes from
        url: Repository URL
        lowercase: Lower-case owner and repository name
        path_prefix: Path prefix stripped from git URLs to compute the owner

    Returns:
        Repository, or None when the URL is empty or not recognized
    """
    if not url or not url.strip():
        return None
    url = url.strip()
    try:
        kind = VcsKind(kind)
    except ValueError:
        logger.warning(f"Unsupported VCS '{kind}' for repository url {url}")
        return None

    if kind is VcsKind.GIT:
        parser = _git_lowercase_parser if lowercase else _git_parser
        return parser.parse(url, path_prefix)
    return parse_path_repository(url, lowercase=lowercase)


def parse_bitbucket_cloud_repository(root: VcsRoot) -> Repository | None:
    """
    Parse a Bitbucket Cloud repository.

    Owner and name are lower-cased as Bitbucket Cloud slugs are.
    """
    url = root.url
    if root.kind is VcsKind.GIT:
        return _git_lowercase_parser.parse(url) if url else None
    if root.kind is not VcsKind.MERCURIAL or not url:
        return None

    if url.startswith("ssh"):
        m = BITBUCKET_HG_SSH_PATTERN.fullmatch(url)
        if not m:
            logger.warning(f"Cannot parse mercurial repository url {url}")
            return None
        return Repository(owner=m.group(1).lower(), name=m.group(2).lower(), url=url)
    return parse_path_repository(url)


def parse_deveo_repository(root: VcsRoot) -> Repository | None:
    """Parse a Deveo ``.../projects/{owner}/repositories/{vcs}/{repo}`` URL."""
    url = root.url
    if root.kind is None or not url:
        return None
    m = DEVEO_URL_PATTERN.fullmatch(url)
    if not m:
        logger.warning(f"Cannot parse {root.vcs_name} repository url {url}")
        return None
    return Repository(owner=m.group(1), name=m.group(2), url=url)


def guess_api_url(vcs_url: str | None) -> str | None:
    """
    Guess the web root of a hosting service from a repository URL.

    HTTP(S) URLs keep their scheme and port, SSH and scp-like remotes
    map to ``https://host``.
    """
    if not vcs_url or not vcs_url.strip():
        return None
    vcs_url = vcs_url.strip()

    if PROTOCOL_PREFIX_PATTERN.fullmatch(vcs_url):
        try:
            parts = urlsplit(vcs_url)
            host, port = parts.hostname, parts.port
        except ValueError:
            logger.warning(f"Cannot guess server URL from {vcs_url}")
            return None
        if not host:
            return None
        if parts.scheme in ("http", "https"):
            return f"{parts.scheme}://{host}:{port}" if port else f"{parts.scheme}://{host}"
        return f"https://{host}"

    if GIT_SCP_PATTERN.fullmatch(vcs_url):
        m = SCP_HOST_PATTERN.match(vcs_url)
        if m:
            return f"https://{m.group(1)}"
    logger.warning(f"Cannot guess server URL from {vcs_url}")
    return None
