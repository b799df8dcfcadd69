"""
Gerrit client running ``gerrit`` commands over SSH.

The system ``ssh`` binary is started with an argument list and the remote
command is quoted with ``shlex.join``, so no text ever goes through a
local shell.
"""

import asyncio
import json
import shlex
from dataclasses import dataclass

from commit_publisher.core.exceptions import PublisherError, TransportError
from commit_publisher.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_GERRIT_PORT = 29418
VERIFIED_OPTION_LABEL = "$verified-option"


@dataclass(frozen=True)
class GerritConnection:
    """SSH connection details of a Gerrit server."""

    server: str
    project: str
    username: str
    key_path: str | None = None

    @property
    def host(self) -> str:
        return self.server.split(":", 1)[0]

    @property
    def port(self) -> int:
        if ":" in self.server:
            return int(self.server.split(":", 1)[1])
        return DEFAULT_GERRIT_PORT

    @property
    def destination(self) -> str:
        return f"{self.username}@{self.host}:{self.port}"


class GerritClient:
    """Client for Gerrit review and project listing commands."""

    def __init__(self, ssh_binary: str = "ssh", use_verified_option: bool = False):
        self._ssh = ssh_binary
        self._use_verified_option = use_verified_option

    def review_args(self, project: str, label: str | None, vote: str, message: str, revision: str) -> list[str]:
        """Build the ``gerrit review`` command as an argument list."""
        args = ["gerrit", "review", "--project", project]
        if self._use_verified_option or label == VERIFIED_OPTION_LABEL:
            args += ["--verified", vote]
        elif not label:
            args += ["--label", f"Verified={vote}"]
        else:
            args += ["--label", f"{label}={vote}"]
        args += ["-m", message, revision]
        return args

    def ssh_args(self, connection: GerritConnection, remote_args: list[str]) -> list[str]:
        """Build the local ``ssh`` invocation for a remote command."""
        args = [
            self._ssh,
            "-p", str(connection.port),
            "-o", "BatchMode=yes",
            "-o", "StrictHostKeyChecking=no",
            "-o", "LogLevel=ERROR",
        ]
        if connection.key_path:
            args += ["-i", connection.key_path]
        args += [f"{connection.username}@{connection.host}", shlex.join(remote_args)]
        return args

    async def run_command(self, connection: GerritConnection, remote_args: list[str]) -> str:
        """
        Run a Gerrit command and return its stdout.

        Raises:
            TransportError: If ssh cannot be started or exits with a non-zero code
        """
        args = self.ssh_args(connection, remote_args)
        logger.debug(f"Run command '{shlex.join(remote_args)}' on {connection.destination}")
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TransportError(f"Cannot start ssh: {e}") from e

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        out = stdout.decode("utf-8", errors="replace").strip()
        err = stderr.decode("utf-8", errors="replace").strip()
        logger.info(f"Command '{remote_args[0]} {remote_args[1]}' finished, exitCode: {process.returncode}")
        if process.returncode != 0:
            raise TransportError(err or f"ssh exited with code {process.returncode}")
        if err:
            # ssh diagnostics such as host key notices
            logger.debug(f"Command stderr on {connection.destination}: {err}")
        return out

    async def review(self, connection: GerritConnection, label: str | None, vote: str,
                     message: str, revision: str) -> None:
        """Vote on a patch set."""
        await self.run_command(
            connection,
            self.review_args(connection.project, label, vote, message, revision),
        )

    async def test_connection(self, connection: GerritConnection) -> None:
        """
        Check that the project is visible to the configured user.

        Raises:
            PublisherError: If the project is not accessible
        """
        output = await self.run_command(connection, ["gerrit", "ls-projects", "--format", "JSON"])
        try:
            projects = json.loads(output) if output else None
        except ValueError as e:
            raise PublisherError(f"Unexpected response from Gerrit: {output[:200]}") from e
        if not isinstance(projects, dict) or connection.project not in projects:
            raise PublisherError(f"Inaccessible Gerrit project {connection.project}")
