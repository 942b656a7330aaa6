"""Catalog, search and execution for the CLI for Microsoft 365.

This module wraps the `m365` CLI so an agent can discover and run its
commands. It includes:

- Base types and errors (CommandDescriptor, CommandResult, ToolError)
- Package file lookup (NpmGlobalLocator, StaticLocator)
- Command catalog built from the CLI's metadata (CommandCatalog)
- Weighted fuzzy search (CommandIndex, search_commands)
- Output format selection (infer_output_policy)
- Subprocess execution (CommandRunner, create_command_runner)

Example:
    from m365bridge.tools import (
        CommandCatalog,
        NpmGlobalLocator,
        create_command_runner,
        search_commands,
    )

    catalog = CommandCatalog(NpmGlobalLocator())
    matches = await search_commands(catalog, "sharepoint list", limit=5)

    runner = create_command_runner()
    result = await runner.run("m365 spo list list --webUrl https://contoso.sharepoint.com")
"""

from .base import (
    CatalogSnapshot,
    CatalogUnavailableError,
    CommandDescriptor,
    CommandOption,
    CommandResult,
    OutputEncoding,
    SearchMatch,
    ToolError,
    ToolExecutionError,
    ToolInputError,
    ToolNotFoundError,
    ToolSpawnError,
    ToolTimeoutError,
)
from .catalog import CommandCatalog, error_payload, parse_commands
from .cli import CommandRunner, ExecutionRequest, create_command_runner
from .locator import MetadataSource, NpmGlobalLocator, StaticLocator
from .output import OutputPolicy, infer_output_policy, minimize_json
from .schemas import COMMAND_SCHEMAS, StructuredRequest
from .search import CommandIndex, clamp_limit, search_commands

__all__ = [
    # Base types
    "CommandDescriptor",
    "CommandOption",
    "CatalogSnapshot",
    "CommandResult",
    "OutputEncoding",
    "SearchMatch",
    # Exceptions
    "ToolError",
    "ToolNotFoundError",
    "CatalogUnavailableError",
    "ToolExecutionError",
    "ToolSpawnError",
    "ToolTimeoutError",
    "ToolInputError",
    # Package lookup
    "MetadataSource",
    "NpmGlobalLocator",
    "StaticLocator",
    # Catalog and search
    "CommandCatalog",
    "parse_commands",
    "error_payload",
    "CommandIndex",
    "clamp_limit",
    "search_commands",
    # Execution
    "CommandRunner",
    "ExecutionRequest",
    "create_command_runner",
    "StructuredRequest",
    "COMMAND_SCHEMAS",
    "OutputPolicy",
    "infer_output_policy",
    "minimize_json",
]
