"""Shared pytest fixtures: a fake installed package and fake executables."""

import json
import os
import stat
from pathlib import Path

import pytest

from m365bridge.config import BridgeConfig, SearchConfig, ToolConfig
from m365bridge.tools.catalog import CommandCatalog
from m365bridge.tools.cli import CommandRunner
from m365bridge.tools.locator import StaticLocator

PACKAGE_ID = "@pnp/cli-microsoft365"

SAMPLE_COMMANDS = [
    {
        "name": "spo list add",
        "description": "Creates list in the specified SharePoint Online site",
        "help": "spo/list/list-add.mdx",
        "options": [
            {"name": "title", "required": True, "type": "string"},
            {"name": "webUrl", "required": True, "type": "string"},
        ],
    },
    {
        "name": "spo list get",
        "description": "Gets information about the specific SharePoint list",
        "help": "spo/list/list-get.mdx",
        "options": [
            {"name": "webUrl", "required": True, "type": "string"},
            {"name": "title", "required": False, "type": "string"},
            {"name": "withPermissions", "required": False, "type": "boolean"},
        ],
    },
    {
        "name": "spo list list",
        "description": "Lists all available lists in the specified SharePoint Online site",
        "help": "spo/list/list-list.mdx",
        "options": [{"name": "webUrl", "required": True, "type": "string"}],
    },
    {
        "name": "teams channel add",
        "description": "Adds a channel to the specified Microsoft Teams team",
        "help": "teams/channel/channel-add.mdx",
        "options": [],
    },
]

LIST_GET_DOCS = """# spo list get

Gets information about the specific list

## Usage

```sh
m365 spo list get [options]
```
"""

posix_only = pytest.mark.skipif(os.name != "posix", reason="uses POSIX shell scripts")


def write_executable(path: Path, content: str) -> Path:
    """Write a shell script and make it executable."""
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def write_package(root: Path, commands: list | dict | str = SAMPLE_COMMANDS) -> Path:
    """Create an installed-package tree under root and return the package dir."""
    package_dir = root.joinpath(*PACKAGE_ID.split("/"))
    package_dir.mkdir(parents=True, exist_ok=True)
    content = commands if isinstance(commands, str) else json.dumps(commands)
    (package_dir / "allCommandsFull.json").write_text(content)

    docs_dir = package_dir / "docs" / "docs" / "cmd" / "spo" / "list"
    docs_dir.mkdir(parents=True, exist_ok=True)
    (docs_dir / "list-get.mdx").write_text(LIST_GET_DOCS)
    return package_dir


@pytest.fixture
def package_root(tmp_path: Path) -> Path:
    """Directory holding a fake global install of the CLI package."""
    root = tmp_path / "node_modules"
    write_package(root)
    return root


@pytest.fixture
def locator(package_root: Path) -> StaticLocator:
    """Locator resolving files in the fake package."""
    return StaticLocator(package_root)


@pytest.fixture
def catalog(locator: StaticLocator) -> CommandCatalog:
    """Catalog over the sample commands."""
    return CommandCatalog(locator)


@pytest.fixture
def missing_catalog(tmp_path: Path) -> CommandCatalog:
    """Catalog whose package is not installed."""
    return CommandCatalog(StaticLocator(tmp_path / "empty"))


@pytest.fixture
def fake_m365(tmp_path: Path) -> Path:
    """Fake CLI printing its arguments as a JSON document."""
    return write_executable(
        tmp_path / "fake-m365",
        '#!/bin/sh\nprintf \'{ "args": "%s" }\\n\' "$*"\n',
    )


@pytest.fixture
def runner(fake_m365: Path) -> CommandRunner:
    """Runner using the fake CLI as its tool token."""
    return CommandRunner(command=str(fake_m365), timeout=10)


@pytest.fixture
def bridge_config(package_root: Path, fake_m365: Path) -> BridgeConfig:
    """Configuration pointing at the fake package and fake CLI."""
    return BridgeConfig(
        tool=ToolConfig(command=str(fake_m365), package_root=str(package_root)),
        search=SearchConfig(),
    )


@pytest.fixture
def config_file(tmp_path: Path, package_root: Path, fake_m365: Path) -> Path:
    """TOML config file pointing at the fake package and fake CLI."""
    path = tmp_path / "config.toml"
    path.write_text(
        f'[tool]\ncommand = "{fake_m365}"\npackage_root = "{package_root}"\n\n'
        "[execution]\ntimeout = 10\n"
    )
    return path
