"""
TFS / Azure DevOps repository URL parsing.
"""

import re
from dataclasses import dataclass

from commit_publisher.core.logging import get_logger

logger = get_logger(__name__)

# (protocol) (username) (hostname[:port]) (path)
TFS_URL_PATTERN = re.compile(r"(?:(https?|ssh)://)?(?:([^@]+)@)?([^/:]+(?::\d+)?)(?::v?\d+)?(/.+)?")

# (collection and project path) /_git/ (repository)
TFS_GIT_PROJECT_PATH_PATTERN = re.compile(r"(/.+)?/_(?:git|ssh)/([^/]+)")

# /(organization)/(project)/(repository)
TFS_DEVOPS_PATH_PATTERN = re.compile(r"/([^/]+)/([^/]+)/([^/]+)")

DEFAULT_HOSTED_DOMAINS = ("visualstudio.com", "dev.azure.com")


@dataclass(frozen=True)
class TfsRepository:
    """Location of a git repository on a TFS server or Azure DevOps."""

    server: str
    repository: str
    project_name: str | None = None

    @property
    def project(self) -> str:
        """Project name, the repository name when the URL has no project."""
        return self.project_name or self.repository

    def __str__(self) -> str:
        parts = [self.server]
        if self.project_name:
            parts.append(self.project_name)
        parts.append(f"_git/{self.repository}")
        return "/".join(parts)


def _is_hosted(server: str, hosted_domains) -> bool:
    return any(server.endswith(domain) for domain in hosted_domains)


def parse_tfs_repository(
    repository_url: str | None,
    server_url: str | None = None,
    hosted_domains: tuple[str, ...] | list[str] = DEFAULT_HOSTED_DOMAINS,
) -> TfsRepository | None:
    """
    Parse a TFS or Azure DevOps git URL.

    Args:
        repository_url: Fetch URL of the VCS root
        server_url: Configured server URL, required to resolve on-premise
            SSH remotes
        hosted_domains: Domains of hosted services where a single path
            segment before /_git/ is a project, not a collection

    Returns:
        TfsRepository, or None when the URL is not recognized
    """
    if not repository_url or not repository_url.strip():
        return None

    m = TFS_URL_PATTERN.search(repository_url.strip())
    if not m:
        logger.warning(f"Cannot parse TFS repository url {repository_url}")
        return None

    schema, username = m.group(1), m.group(2)
    hostname = m.group(3).lower()
    url_path = m.group(4) or ""
    is_dev_azure = hostname.endswith("dev.azure.com")

    if not schema or schema.lower() == "ssh":
        if is_dev_azure:
            pm = TFS_DEVOPS_PATH_PATTERN.search(url_path)
            if not pm:
                logger.warning(f"Cannot parse Azure DevOps repository url {repository_url}")
                return None
            return TfsRepository(f"https://dev.azure.com/{pm.group(1)}", pm.group(3), pm.group(2))
        if hostname.endswith(".visualstudio.com:22"):
            if not username:
                logger.warning(f"Cannot determine account from url {repository_url}")
                return None
            server = f"https://{username}.visualstudio.com"
        elif hostname.endswith("vs-ssh.visualstudio.com"):
            pm = TFS_DEVOPS_PATH_PATTERN.search(url_path)
            if not pm:
                logger.warning(f"Cannot parse Visual Studio repository url {repository_url}")
                return None
            return TfsRepository(f"https://{pm.group(1)}.visualstudio.com", pm.group(3), pm.group(2))
        elif server_url and server_url.strip():
            sm = TFS_URL_PATTERN.search(server_url.strip())
            if not sm:
                logger.warning(f"Cannot parse TFS server url {server_url}")
                return None
            server = f"{sm.group(1)}://{sm.group(3)}"
        else:
            logger.warning(f"Cannot determine TFS server for SSH url {repository_url}, set the server URL")
            return None
    else:
        server = f"{schema}://{hostname}"

    pm = TFS_GIT_PROJECT_PATH_PATTERN.search(url_path)
    if not pm:
        logger.warning(f"Cannot find /_git/ segment in TFS repository url {repository_url}")
        return None

    path = pm.group(1) or ""
    repository = pm.group(2)
    last_slash = path.rfind("/")
    project = None

    if is_dev_azure and last_slash == 0:
        project = repository
    elif last_slash >= 0:
        last_segment = path[last_slash + 1:]
        if last_segment.lower() != "defaultcollection":
            collection = path[:last_slash]
            if (collection and collection != "/tfs") or _is_hosted(server, hosted_domains):
                project = last_segment
                path = collection

    return TfsRepository(server + path, repository, project)
