"""Tests for locating files inside the installed CLI package."""

from pathlib import Path

import pytest

from m365bridge.tools.locator import (
    MetadataSource,
    NpmGlobalLocator,
    StaticLocator,
    is_listed,
    join_package_path,
)

from .conftest import PACKAGE_ID, posix_only, write_executable


def _fake_npm(tmp_path: Path, listing: str, root: Path, exit_code: int = 0) -> Path:
    """Fake npm answering "list -g" and "root -g"."""
    return write_executable(
        tmp_path / "fake-npm",
        "#!/bin/sh\n"
        'if [ "$1" = "list" ]; then\n'
        f"  printf '%s\\n' '{listing}'\n"
        f"  exit {exit_code}\n"
        "fi\n"
        'if [ "$1" = "root" ]; then\n'
        f"  printf '%s\\n' '{root}'\n"
        "fi\n",
    )


class TestJoinPackagePath:
    """Test path joining for scoped packages."""

    def test_scoped_package(self, tmp_path: Path):
        """Scoped ids and forward-slash paths become nested directories."""
        path = join_package_path(tmp_path, PACKAGE_ID, "docs/docs/cmd/spo/list/list-get.mdx")

        package_dir = tmp_path / "@pnp" / "cli-microsoft365"
        assert path == package_dir / "docs" / "docs" / "cmd" / "spo" / "list" / "list-get.mdx"

    def test_backslash_relative_path(self, tmp_path: Path):
        """Backslash separators are normalized."""
        path = join_package_path(tmp_path, "pkg", "docs\\file.md")
        assert path == tmp_path / "pkg" / "docs" / "file.md"


class TestIsListed:
    """Test matching packages in npm list output."""

    @pytest.mark.parametrize(
        "listing",
        [
            f"/usr/lib\n`-- {PACKAGE_ID}@10.0.0",
            f"/usr/lib\n├── typescript@5.4.0\n└── {PACKAGE_ID}@10.0.0",
            PACKAGE_ID,
        ],
    )
    def test_listed(self, listing: str):
        """The exact package is found with or without a version."""
        assert is_listed(listing, PACKAGE_ID)

    @pytest.mark.parametrize(
        "listing",
        [
            f"/usr/lib\n`-- {PACKAGE_ID}-mcp-server@1.0.0",
            "/usr/lib\n`-- @other/cli-microsoft365@1.0.0",
            "/usr/lib\n`-- (empty)",
        ],
    )
    def test_not_listed(self, listing: str):
        """Packages whose name only contains the id don't count."""
        assert not is_listed(listing, PACKAGE_ID)


class TestStaticLocator:
    """Test the fixed-root locator."""

    def test_implements_protocol(self, tmp_path: Path):
        """StaticLocator satisfies the MetadataSource protocol."""
        assert isinstance(StaticLocator(tmp_path), MetadataSource)

    @pytest.mark.asyncio
    async def test_locate_existing_package(self, package_root: Path):
        """Files resolve under the package directory."""
        locator = StaticLocator(package_root)
        path = await locator.locate(PACKAGE_ID, "allCommandsFull.json")

        assert path is not None
        assert path.exists()
        assert path.name == "allCommandsFull.json"

    @pytest.mark.asyncio
    async def test_locate_missing_package(self, tmp_path: Path):
        """A missing package resolves to None rather than raising."""
        locator = StaticLocator(tmp_path)
        assert await locator.locate(PACKAGE_ID, "allCommandsFull.json") is None

    @pytest.mark.asyncio
    async def test_locate_missing_file_still_returns_path(self, package_root: Path):
        """Existence of the file itself is left to the caller."""
        locator = StaticLocator(package_root)
        path = await locator.locate(PACKAGE_ID, "docs/docs/cmd/nope.mdx")

        assert path is not None
        assert not path.exists()


@posix_only
class TestNpmGlobalLocator:
    """Test the npm registry locator against a fake npm."""

    @pytest.mark.asyncio
    async def test_locate_installed_package(self, tmp_path: Path):
        """Listing then root queries resolve the file path."""
        npm = _fake_npm(tmp_path, f"`-- {PACKAGE_ID}@10.0.0", tmp_path / "global")
        locator = NpmGlobalLocator(npm_command=str(npm))

        path = await locator.locate(PACKAGE_ID, "allCommandsFull.json")

        assert path == tmp_path / "global" / "@pnp" / "cli-microsoft365" / "allCommandsFull.json"

    @pytest.mark.asyncio
    async def test_package_not_installed(self, tmp_path: Path):
        """A listing without the package resolves to None."""
        npm = _fake_npm(tmp_path, "`-- typescript@5.4.0", tmp_path / "global")
        locator = NpmGlobalLocator(npm_command=str(npm))

        assert await locator.locate(PACKAGE_ID, "allCommandsFull.json") is None

    @pytest.mark.asyncio
    async def test_similarly_named_package_ignored(self, tmp_path: Path):
        """A package whose name extends the id isn't mistaken for it."""
        npm = _fake_npm(tmp_path, f"`-- {PACKAGE_ID}-mcp-server@1.0.0", tmp_path / "global")
        locator = NpmGlobalLocator(npm_command=str(npm))

        assert await locator.locate(PACKAGE_ID, "allCommandsFull.json") is None

    @pytest.mark.asyncio
    async def test_listing_failure(self, tmp_path: Path):
        """A failing listing query resolves to None."""
        npm = _fake_npm(tmp_path, f"`-- {PACKAGE_ID}@10.0.0", tmp_path / "global", exit_code=1)
        locator = NpmGlobalLocator(npm_command=str(npm))

        assert await locator.locate(PACKAGE_ID, "allCommandsFull.json") is None

    @pytest.mark.asyncio
    async def test_npm_not_installed(self, tmp_path: Path):
        """A missing npm executable resolves to None."""
        locator = NpmGlobalLocator(npm_command=str(tmp_path / "no-such-npm"))

        assert await locator.locate(PACKAGE_ID, "allCommandsFull.json") is None

    @pytest.mark.asyncio
    async def test_query_timeout(self, tmp_path: Path):
        """A hanging registry query resolves to None."""
        npm = write_executable(tmp_path / "slow-npm", "#!/bin/sh\nexec sleep 5\n")
        locator = NpmGlobalLocator(npm_command=str(npm), timeout=0.2)

        assert await locator.locate(PACKAGE_ID, "allCommandsFull.json") is None
