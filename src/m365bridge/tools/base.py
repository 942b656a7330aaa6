"""Base types and errors shared by the catalog, search and execution layers."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class OutputEncoding(str, Enum):
    """How the wrapped tool's output is treated for post-processing."""

    JSON = "json"  # Structured, minimized before returning
    CSV = "csv"  # Compact tabular records for list commands
    RAW = "raw"  # Caller picked a format, returned as-is


@dataclass(frozen=True)
class CommandOption:
    """A single option accepted by a command.

    Attributes:
        name: Option name without leading dashes (e.g., "webUrl")
        required: Whether the command refuses to run without it
        type: Option type as declared by the metadata ("string", "boolean", ...)
    """

    name: str
    required: bool = False
    type: str | None = None


@dataclass(frozen=True)
class CommandDescriptor:
    """One invocable command of the wrapped tool.

    Attributes:
        name: Full command name, prefixed with the tool token (e.g., "m365 spo list get")
        description: Free-text description
        docs_path: Documentation fragment relative to the docs root
        options: Options in the order the metadata declares them
    """

    name: str
    description: str = ""
    docs_path: str | None = None
    options: tuple[CommandOption, ...] = ()

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Command name cannot be empty")

    def get_option(self, name: str) -> CommandOption | None:
        """Get an option by name, ignoring leading dashes."""
        name = name.lstrip("-")
        for option in self.options:
            if option.name == name:
                return option
        return None

    @property
    def required_options(self) -> list[str]:
        """Names of the options the command requires."""
        return [option.name for option in self.options if option.required]

    def to_payload(self) -> dict[str, str | None]:
        """Render the agent-facing representation."""
        return {
            "name": self.name,
            "description": self.description,
            "docs": self.docs_path,
        }


@dataclass(frozen=True)
class CatalogSnapshot:
    """Immutable set of commands read from one pass over the metadata file.

    Attributes:
        commands: Descriptors in the order the metadata lists them
        source: Path of the metadata file the snapshot was read from
    """

    commands: tuple[CommandDescriptor, ...]
    source: Path | None = None

    def __len__(self) -> int:
        return len(self.commands)

    def get(self, name: str) -> CommandDescriptor | None:
        """Look up a command by its full name (whitespace-insensitive)."""
        wanted = " ".join(name.split())
        for command in self.commands:
            if command.name == wanted:
                return command
        return None

    def to_payload(self) -> list[dict[str, str | None]]:
        """Render every command for an agent."""
        return [command.to_payload() for command in self.commands]


@dataclass
class CommandResult:
    """Result from running a command on the wrapped tool.

    Attributes:
        stdout: Normalized standard output (trimmed, minimized for JSON)
        stderr: Standard error output
        exit_code: Process exit code (0 = success)
        command: The full command line that was executed
        encoding: Output encoding policy applied to stdout
        duration_ms: How long the command took in milliseconds
    """

    stdout: str
    stderr: str
    exit_code: int
    command: str
    encoding: OutputEncoding = OutputEncoding.RAW
    duration_ms: float | None = None

    @property
    def success(self) -> bool:
        """Whether the command succeeded (exit code 0)."""
        return self.exit_code == 0


class ToolError(Exception):
    """Base exception for tool-related errors."""

    def __init__(self, message: str, tool_name: str | None = None) -> None:
        self.tool_name = tool_name
        super().__init__(message)


class ToolNotFoundError(ToolError):
    """Raised when the wrapped tool or one of its files cannot be found."""

    pass


class CatalogUnavailableError(ToolNotFoundError):
    """Raised when the command metadata cannot be located, read or parsed."""

    pass


class ToolExecutionError(ToolError):
    """Raised when a command exits with a non-zero status."""

    def __init__(
        self,
        message: str,
        tool_name: str | None = None,
        exit_code: int | None = None,
        stderr: str | None = None,
    ) -> None:
        super().__init__(message, tool_name)
        self.exit_code = exit_code
        self.stderr = stderr


class ToolSpawnError(ToolError):
    """Raised when the command process could not be started at all."""

    pass


class ToolTimeoutError(ToolError):
    """Raised when a command times out."""

    def __init__(
        self, message: str, tool_name: str | None = None, timeout_seconds: float = 0
    ) -> None:
        super().__init__(message, tool_name)
        self.timeout_seconds = timeout_seconds


class ToolInputError(ToolError):
    """Raised when a structured request is rejected before execution."""

    def __init__(
        self,
        message: str,
        tool_name: str | None = None,
        violations: list[str] | None = None,
    ) -> None:
        super().__init__(message, tool_name)
        self.violations = violations or []


@dataclass
class SearchMatch:
    """A ranked search hit.

    Attributes:
        command: The matching descriptor
        score: Match distance (0 = perfect, lower is better)
        matched_fields: Fields that fell within the fuzziness threshold
    """

    command: CommandDescriptor
    score: float
    matched_fields: list[str] = field(default_factory=list)
