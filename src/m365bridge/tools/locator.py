"""Resolve files shipped inside the wrapped tool's global npm package."""

import asyncio
import logging
import os
import re
from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable

from .cli import terminate_process

logger = logging.getLogger(__name__)

# Default timeout for registry queries
DEFAULT_REGISTRY_TIMEOUT = 30  # seconds


def join_package_path(root: Path, package_id: str, relative_path: str) -> Path:
    """Join a registry root, a package id and a forward-slash relative path.

    Scoped package ids (``@scope/name``) and relative paths are split on
    "/" so the result uses the host separator.
    """
    relative = PurePosixPath(relative_path.replace("\\", "/"))
    return root.joinpath(*PurePosixPath(package_id).parts, *relative.parts)


def is_listed(listing: str, package_id: str) -> bool:
    """Check an `npm list` output for an entry of exactly this package."""
    pattern = re.compile(rf"(?:^|\s){re.escape(package_id)}(?:@|\s|$)", re.MULTILINE)
    return pattern.search(listing) is not None


@runtime_checkable
class MetadataSource(Protocol):
    """Protocol for locating files of an installed package.

    Implementations never raise for a missing package; they return None
    so discovery can degrade gracefully.
    """

    async def locate(self, package_id: str, relative_path: str) -> Path | None:
        """Return the absolute path of a file inside a package, or None."""
        ...


class StaticLocator:
    """Locate package files under a fixed directory.

    Used when the package root is configured explicitly, and as a
    test double that never touches the host package manager.
    """

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        """Directory the package is expected under."""
        return self._root

    async def locate(self, package_id: str, relative_path: str) -> Path | None:
        package_dir = join_package_path(self._root, package_id, "")
        if not package_dir.is_dir():
            logger.info("Package %s not found under %s", package_id, self._root)
            return None
        return join_package_path(self._root, package_id, relative_path)


class NpmGlobalLocator:
    """Locate package files through the global npm registry.

    Runs two queries in sequence: ``npm list -g --depth=0`` to check the
    package is installed, then ``npm root -g`` to find where.
    """

    def __init__(
        self,
        npm_command: str = "npm",
        timeout: float = DEFAULT_REGISTRY_TIMEOUT,
    ) -> None:
        """Initialize the locator.

        Args:
            npm_command: npm executable to query
            timeout: Timeout in seconds for each registry query
        """
        self._npm_command = npm_command
        self._timeout = timeout

    async def locate(self, package_id: str, relative_path: str) -> Path | None:
        listing = await self._query(f"{self._npm_command} list -g --depth=0")
        if listing is None:
            return None

        if not is_listed(listing, package_id):
            logger.info("Package %s not found in global packages", package_id)
            return None

        npm_root = await self._query(f"{self._npm_command} root -g")
        if not npm_root:
            return None

        return join_package_path(Path(npm_root.strip()), package_id, relative_path)

    async def _query(self, command: str) -> str | None:
        """Run a registry query through the shell, returning stdout or None."""
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=os.name == "posix",
            )
        except OSError as e:
            logger.error("Error running '%s': %s", command, e)
            return None

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(), timeout=self._timeout
            )
        except TimeoutError:
            await terminate_process(process)
            logger.error("'%s' timed out after %ss", command, self._timeout)
            return None

        if process.returncode != 0:
            stderr = stderr_bytes.decode("utf-8", errors="replace").strip()
            logger.error("'%s' exited with code %s: %s", command, process.returncode, stderr)
            return None

        return stdout_bytes.decode("utf-8", errors="replace")
