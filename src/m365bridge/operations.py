"""Agent-facing operations over the m365 catalog and runner.

These are the four operations an agent transport exposes. The plain
methods return Python values; the ``*_content`` variants return the
text blocks a transport sends back, including usage tips.
"""

import json
import logging
from typing import Any

from m365bridge.config import BridgeConfig
from m365bridge.tools.catalog import CommandCatalog
from m365bridge.tools.cli import CommandRunner, ExecutionRequest, create_command_runner
from m365bridge.tools.locator import MetadataSource, NpmGlobalLocator, StaticLocator
from m365bridge.tools.search import clamp_limit, search_commands

logger = logging.getLogger(__name__)

# Operation names as registered with an agent transport
GET_COMMANDS = "m365_get_commands"
SEARCH_COMMANDS = "m365_search_commands"
GET_COMMAND_DOCS = "m365_get_command_docs"
RUN_COMMAND = "m365_run_command"

DOCS_TIP = (
    f"TIP: Before executing any of the command run the '{GET_COMMAND_DOCS}' tool "
    "to retrieve more context about it"
)
OUTPUT_TIP = (
    "TIP: avoid setting the '--output' option when running commands. The optimal output "
    f"format is automatically selected in '{RUN_COMMAND}' tool based on the command type."
)


def create_locator(config: BridgeConfig) -> MetadataSource:
    """Pick the package locator for a configuration.

    A configured package root is used directly; otherwise the global
    npm registry is queried.
    """
    if config.tool.package_root:
        return StaticLocator(config.tool.package_root)
    return NpmGlobalLocator(
        npm_command=config.tool.npm_command,
        timeout=config.tool.registry_timeout,
    )


def is_error_payload(payload: list[dict[str, Any]]) -> bool:
    """Check whether a discovery result is the single-element error payload."""
    return len(payload) == 1 and "error" in payload[0]


class BridgeOperations:
    """The discovery and execution operations offered to an agent.

    Example:
        ops = BridgeOperations.from_config(load_default_config())
        matches = await ops.search_commands("teams channel", limit=5)
        output = await ops.run_command({"name": "spo list list", "args": {"webUrl": url}})
    """

    def __init__(
        self,
        catalog: CommandCatalog,
        runner: CommandRunner,
        config: BridgeConfig | None = None,
    ) -> None:
        self._catalog = catalog
        self._runner = runner
        self._config = config or BridgeConfig()

    @classmethod
    def from_config(cls, config: BridgeConfig | None = None) -> "BridgeOperations":
        """Build the operations with collaborators described by a configuration."""
        config = config or BridgeConfig()
        catalog = CommandCatalog(create_locator(config), config.tool)
        return cls(catalog, create_command_runner(config), config)

    @property
    def catalog(self) -> CommandCatalog:
        """Catalog used for discovery."""
        return self._catalog

    @property
    def runner(self) -> CommandRunner:
        """Runner used for execution."""
        return self._runner

    async def list_all_commands(self) -> list[dict[str, str | None]]:
        """Every command as {name, description, docs}, or [{error}]."""
        return await self._catalog.list_all()

    async def search_commands(
        self, query: str, limit: int | None = None
    ) -> list[dict[str, str | None]]:
        """Ranked commands matching a query, or [{error}].

        The limit defaults to 10 and is clamped to [1, 50].
        """
        return await search_commands(self._catalog, query, limit, self._config.search)

    async def get_command_docs(self, command_name: str, docs: str) -> str:
        """Documentation text of a command, or a failure message naming it."""
        return await self._catalog.get_docs(command_name, docs)

    async def run_command(self, command: ExecutionRequest, timeout: float | None = None) -> str:
        """Run a command and return its normalized output.

        Raises:
            ToolError: Subclass describing why the command failed
        """
        result = await self._runner.run(command, timeout=timeout)
        return result.stdout

    async def list_all_commands_content(self) -> list[str]:
        """Text blocks for the list-all operation."""
        commands = await self.list_all_commands()
        return [DOCS_TIP, OUTPUT_TIP, json.dumps(commands)]

    async def search_commands_content(self, query: str, limit: int | None = None) -> list[str]:
        """Text blocks for the search operation."""
        commands = await self.search_commands(query, limit)
        if is_error_payload(commands):
            return [json.dumps(commands)]

        logger.debug(
            "Search for %r returned %d of at most %d",
            query,
            len(commands),
            clamp_limit(limit, self._config.search),
        )
        return [
            f'Found {len(commands)} command(s) matching "{query}"',
            DOCS_TIP,
            OUTPUT_TIP,
            json.dumps(commands),
        ]

    async def get_command_docs_content(self, command_name: str, docs: str) -> list[str]:
        """Text blocks for the docs operation."""
        return [OUTPUT_TIP, await self.get_command_docs(command_name, docs)]

    async def run_command_content(
        self, command: ExecutionRequest, timeout: float | None = None
    ) -> list[str]:
        """Text blocks for the run operation."""
        return [await self.run_command(command, timeout)]
