"""Command catalog built from the wrapped tool's metadata file."""

import asyncio
import json
import logging
import re
from pathlib import Path, PurePosixPath
from typing import Any

from m365bridge.config import ToolConfig

from .base import CatalogSnapshot, CatalogUnavailableError, CommandDescriptor, CommandOption
from .locator import MetadataSource

logger = logging.getLogger(__name__)

_LONG_OPTION = re.compile(r"--([A-Za-z0-9][\w-]*)")


def error_payload(error: Exception | str) -> list[dict[str, str | None]]:
    """Single-element payload reported by discovery operations on failure."""
    return [{"error": f"Failed to retrieve commands: {error}"}]


def _parse_option_name(raw: str) -> str:
    """Extract an option name from "webUrl", "--webUrl" or "-u, --webUrl <webUrl>"."""
    match = _LONG_OPTION.search(raw)
    if match:
        return match.group(1)
    token = raw.strip().split()[0] if raw.strip() else ""
    return token.strip(",").lstrip("-")


def _parse_options(command_name: str, raw_options: Any) -> tuple[CommandOption, ...]:
    """Map raw option entries, keeping the first of any duplicate names."""
    if not isinstance(raw_options, list):
        return ()

    options: list[CommandOption] = []
    seen: set[str] = set()
    for raw in raw_options:
        if isinstance(raw, str):
            name, required, option_type = _parse_option_name(raw), False, None
        elif isinstance(raw, dict):
            name = _parse_option_name(str(raw.get("name") or raw.get("option") or ""))
            required = bool(raw.get("required", False))
            option_type = raw.get("type")
            option_type = str(option_type) if option_type is not None else None
        else:
            continue

        if not name:
            continue
        if name in seen:
            logger.warning("Duplicate option '%s' for command '%s' ignored", name, command_name)
            continue
        seen.add(name)
        options.append(CommandOption(name=name, required=required, type=option_type))

    return tuple(options)


def parse_commands(raw_entries: Any, name_prefix: str = "m365") -> tuple[CommandDescriptor, ...]:
    """Map the raw metadata entries to command descriptors.

    Names are rendered with the prefix in front ("m365 spo list get").
    Entries without a usable name, and repeats of a name already seen,
    are skipped.

    Args:
        raw_entries: Parsed JSON content of the metadata file
        name_prefix: Leading words every command name is rendered with

    Returns:
        Descriptors in the order they appear in the metadata

    Raises:
        ValueError: If the metadata is not a list of entries
    """
    if not isinstance(raw_entries, list):
        raise ValueError(f"expected a list of commands, got {type(raw_entries).__name__}")

    prefix_words = name_prefix.split()
    commands: list[CommandDescriptor] = []
    seen: set[str] = set()
    for index, entry in enumerate(raw_entries):
        if not isinstance(entry, dict):
            logger.warning("Skipping metadata entry %d: not an object", index)
            continue

        words = str(entry.get("name") or "").split()
        if not words:
            logger.warning("Skipping metadata entry %d: missing name", index)
            continue

        if words[: len(prefix_words)] != prefix_words:
            words = [*prefix_words, *words]
        name = " ".join(words)
        if name in seen:
            logger.warning("Skipping metadata entry %d: duplicate command '%s'", index, name)
            continue
        seen.add(name)

        docs = entry.get("help") or entry.get("docs")
        commands.append(
            CommandDescriptor(
                name=name,
                description=str(entry.get("description") or ""),
                docs_path=str(docs) if docs else None,
                options=_parse_options(name, entry.get("options")),
            )
        )

    return tuple(commands)


def _is_safe_relative(docs_path: str) -> bool:
    """Check a docs path stays inside the docs directory."""
    path = PurePosixPath(docs_path.replace("\\", "/"))
    if path.is_absolute() or ".." in path.parts:
        return False
    # Windows drive letters ("C:...")
    return not re.match(r"^[A-Za-z]:", docs_path)


class CommandCatalog:
    """Catalog of the wrapped tool's commands.

    Every call re-reads the metadata file and produces a new immutable
    snapshot; nothing is cached between calls.

    Example:
        catalog = CommandCatalog(NpmGlobalLocator())
        commands = await catalog.list_all()
        docs = await catalog.get_docs("m365 spo list get", "spo/list/list-get.mdx")
    """

    def __init__(self, locator: MetadataSource, config: ToolConfig | None = None) -> None:
        """Initialize the catalog.

        Args:
            locator: Source used to find files in the installed package
            config: Tool configuration (package id, file names, command token)
        """
        self._locator = locator
        self._config = config or ToolConfig()

    @property
    def config(self) -> ToolConfig:
        """Tool configuration used for lookups."""
        return self._config

    async def snapshot(self) -> CatalogSnapshot:
        """Read and parse the metadata file into a new snapshot.

        Returns:
            CatalogSnapshot with every command in metadata order

        Raises:
            CatalogUnavailableError: If the file can't be located, read or parsed
        """
        package = self._config.package
        file_path = await self._locator.locate(package, self._config.metadata_file)
        if file_path is None:
            raise CatalogUnavailableError(
                f"{package} npm package not found or {self._config.metadata_file} file not found",
                tool_name=self._config.command,
            )

        try:
            content = await asyncio.to_thread(file_path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise CatalogUnavailableError(
                f"Could not read {file_path}: {e}", tool_name=self._config.command
            ) from e

        try:
            commands = parse_commands(json.loads(content), self._config.name_prefix)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            raise CatalogUnavailableError(
                f"Could not parse {file_path}: {e}", tool_name=self._config.command
            ) from e

        logger.debug("Loaded %d commands from %s", len(commands), file_path)
        return CatalogSnapshot(commands=commands, source=file_path)

    async def list_all(self) -> list[dict[str, str | None]]:
        """Get every command as agent-facing payloads.

        Returns:
            List of {name, description, docs} dicts in metadata order, or a
            single {error} dict if the catalog is unavailable
        """
        try:
            snapshot = await self.snapshot()
        except CatalogUnavailableError as e:
            logger.error("An error occurred: %s", e)
            return error_payload(e)
        return snapshot.to_payload()

    async def get_docs(self, command_name: str, docs_path: str) -> str:
        """Get the documentation text of a command.

        Args:
            command_name: Command the docs belong to (used in messages)
            docs_path: Documentation path relative to the docs directory

        Returns:
            Raw document text, or a failure message naming the command
        """
        try:
            return await self._read_docs(command_name, docs_path)
        except (CatalogUnavailableError, OSError, UnicodeDecodeError) as e:
            logger.error("An error occurred: %s", e)
            return f"Failed to retrieve documentation for command {command_name}: {e}"

    async def _read_docs(self, command_name: str, docs_path: str) -> str:
        if not docs_path or not _is_safe_relative(docs_path):
            raise CatalogUnavailableError(
                f"Invalid documentation path '{docs_path}'", tool_name=self._config.command
            )

        relative = "/".join([*self._config.docs_parts, docs_path.replace("\\", "/")])
        file_path = await self._locator.locate(self._config.package, relative)
        if file_path is None:
            raise CatalogUnavailableError(
                f"{self._config.package} npm package not found "
                "or command documentation file not found",
                tool_name=self._config.command,
            )

        if not await asyncio.to_thread(Path(file_path).is_file):
            raise CatalogUnavailableError(
                f"Documentation file for command {command_name} not found at {file_path}",
                tool_name=self._config.command,
            )

        return await asyncio.to_thread(Path(file_path).read_text, encoding="utf-8")
