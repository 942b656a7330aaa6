"""Execution adapter for running wrapped-tool commands as subprocesses."""

import asyncio
import logging
import os
import re
import signal
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from m365bridge.config import BridgeConfig

from .base import (
    CommandResult,
    ToolExecutionError,
    ToolInputError,
    ToolSpawnError,
    ToolTimeoutError,
)
from .output import OutputPolicy, infer_output_policy, normalize_output
from .schemas import OptionValue, StructuredRequest, get_command_schema

logger = logging.getLogger(__name__)

# Default timeout for tool commands
DEFAULT_TIMEOUT = 120  # seconds

# A raw command line, or a command name with option values
ExecutionRequest = str | StructuredRequest | Mapping[str, Any]

_SHELL_SPECIAL = re.compile(r'(["\\$`])')

# Exit codes POSIX shells use for "not found" and "not executable"
SHELL_CANNOT_START = (126, 127)


def quote_value(value: OptionValue) -> str:
    """Render an option value as a double-quoted shell word."""
    if isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)
    escaped = _SHELL_SPECIAL.sub(r"\\\1", text)
    return f'"{escaped}"'


def format_violations(error: ValidationError) -> list[str]:
    """Turn pydantic errors into readable "location: message" lines."""
    violations = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"])
        violations.append(f"{location}: {err['msg']}" if location else err["msg"])
    return violations


async def terminate_process(process: asyncio.subprocess.Process) -> None:
    """Kill a process and everything in its process group, then reap it.

    Processes must have been started with start_new_session=True on POSIX
    for the group kill to reach their children.
    """
    if process.returncode is None:
        try:
            if os.name == "posix":
                os.killpg(process.pid, signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


class CommandRunner:
    """Runs wrapped-tool commands through the host shell.

    Picks the output format, enforces a timeout and normalizes stdout.
    Each call spawns its own process; nothing is shared between calls.

    Example:
        runner = CommandRunner()
        result = await runner.run("m365 spo site get --url https://contoso.sharepoint.com")
        result = await runner.run(
            StructuredRequest(name="spo list get", args={"title": "Docs", "webUrl": url})
        )
    """

    def __init__(
        self,
        command: str = "m365",
        name: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        working_dir: Path | str | None = None,
        env: dict[str, str] | None = None,
        name_prefix: str = "m365",
    ) -> None:
        """Initialize the runner.

        Args:
            command: Executable of the wrapped tool (e.g., "m365" or "npx m365")
            name: Display name used in errors (defaults to the command)
            timeout: Default command timeout in seconds
            working_dir: Directory to run commands from
            env: Additional environment variables for commands
            name_prefix: Leading words of catalog command names, replaced by
                the executable when a structured request is rendered
        """
        self._command = command
        self._name_prefix = name_prefix
        self._name = name or command
        self._timeout = timeout
        self._working_dir = Path(working_dir) if working_dir else None
        self._env = env

    @property
    def name(self) -> str:
        """Display name for the wrapped tool."""
        return self._name

    @property
    def command(self) -> str:
        """Executable token of the wrapped tool."""
        return self._command

    @property
    def name_prefix(self) -> str:
        """Leading words of catalog command names."""
        return self._name_prefix

    @property
    def timeout(self) -> float:
        """Default command timeout in seconds."""
        return self._timeout

    @property
    def working_dir(self) -> Path | None:
        """Working directory for command execution."""
        return self._working_dir

    def parse_request(self, request: StructuredRequest | Mapping[str, Any]) -> StructuredRequest:
        """Validate a structured request, including its command's argument schema.

        Raises:
            ToolInputError: Listing every violation found
        """
        if not isinstance(request, StructuredRequest):
            try:
                request = StructuredRequest.model_validate(dict(request))
            except ValidationError as e:
                violations = format_violations(e)
                raise ToolInputError(
                    "Invalid command request:\n" + "\n".join(f"- {v}" for v in violations),
                    tool_name=self._name,
                    violations=violations,
                ) from None

        schema = get_command_schema(request.command_name, self._name_prefix)
        if schema is not None:
            try:
                schema.model_validate(request.set_args)
            except ValidationError as e:
                violations = format_violations(e)
                raise ToolInputError(
                    f"Invalid arguments for '{request.command_name}':\n"
                    + "\n".join(f"- {v}" for v in violations),
                    tool_name=self._name,
                    violations=violations,
                ) from None

        return request

    def build_command_line(self, request: ExecutionRequest) -> str:
        """Render a request as a shell command line.

        Raw strings pass through unchanged apart from trimming. Structured
        requests become "<tool> <name> --<option> "<value>" ..." with
        unset options left out.

        Raises:
            ToolInputError: If the request is empty or malformed
        """
        if isinstance(request, str):
            command_line = request.strip()
            if not command_line:
                raise ToolInputError(
                    "Command cannot be empty",
                    tool_name=self._name,
                    violations=["command: cannot be empty"],
                )
            return command_line

        structured = self.parse_request(request)
        words = structured.command_name.split()
        for leading in (self._command.split(), self._name_prefix.split()):
            if words[: len(leading)] == leading:
                words = words[len(leading) :]
                break

        parts = [self._command, *words]
        for option, value in structured.set_args.items():
            parts.append(f"--{option} {quote_value(value)}")
        return " ".join(parts)

    async def run(self, request: ExecutionRequest, timeout: float | None = None) -> CommandResult:
        """Run a request, selecting the output format automatically.

        Args:
            request: Raw command line or structured request
            timeout: Timeout in seconds (default: the runner's timeout)

        Returns:
            CommandResult with normalized stdout

        Raises:
            ToolInputError: If the request is malformed
            ToolExecutionError: If the command exits non-zero
            ToolTimeoutError: If the command times out
            ToolSpawnError: If the command can't be started
        """
        command_line = self.build_command_line(request)
        policy = infer_output_policy(command_line)
        return await self.execute(policy.apply(command_line), policy, timeout)

    async def execute(
        self,
        command_line: str,
        policy: OutputPolicy | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Execute a command line as-is and normalize its output.

        Args:
            command_line: Full command line passed to the host shell
            policy: Output post-processing (default: none)
            timeout: Timeout in seconds (default: the runner's timeout)

        Returns:
            CommandResult with trimmed (and, for JSON, minimized) stdout

        Raises:
            ToolExecutionError: If the command exits non-zero
            ToolTimeoutError: If the command times out
            ToolSpawnError: If the command can't be started
        """
        policy = policy or OutputPolicy.passthrough()
        timeout = self._timeout if timeout is None else timeout
        logger.debug("Running: %s", command_line)

        start_time = time.perf_counter()

        try:
            process = await asyncio.create_subprocess_shell(
                command_line,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._working_dir,
                env=self._get_env() if self._env else None,
                # Own process group, so a timeout can kill the whole pipeline
                start_new_session=os.name == "posix",
            )
        except OSError as e:
            raise ToolSpawnError(
                f"Command could not be started: {e}",
                tool_name=self._name,
            ) from e

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout,
            )
        except TimeoutError:
            await terminate_process(process)
            logger.warning("Command timed out after %ss: %s", timeout, command_line)
            raise ToolTimeoutError(
                f"Command timed out after {timeout}s: {command_line}",
                tool_name=self._name,
                timeout_seconds=timeout,
            ) from None

        duration_ms = (time.perf_counter() - start_time) * 1000

        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        exit_code = process.returncode or 0

        if exit_code in SHELL_CANNOT_START:
            logger.info("Command could not be started (exit code %s): %s", exit_code, command_line)
            detail = stderr.strip() or f"exit code {exit_code}"
            raise ToolSpawnError(
                f"Command could not be started: {detail}",
                tool_name=self._name,
            )

        if exit_code != 0:
            logger.info("Command exited with code %s: %s", exit_code, command_line)
            raise ToolExecutionError(
                stderr.strip() or f"Command failed with exit code {exit_code}",
                tool_name=self._name,
                exit_code=exit_code,
                stderr=stderr,
            )

        return CommandResult(
            stdout=normalize_output(stdout, policy),
            stderr=stderr,
            exit_code=exit_code,
            command=command_line,
            encoding=policy.encoding,
            duration_ms=duration_ms,
        )

    def _get_env(self) -> dict[str, str]:
        """Get environment variables for subprocess.

        Merges custom env vars with current environment.
        """
        env = os.environ.copy()
        if self._env:
            env.update(self._env)
        return env


def create_command_runner(config: BridgeConfig | None = None) -> CommandRunner:
    """Factory function to create a runner from configuration.

    Args:
        config: Bridge configuration (defaults when omitted)

    Returns:
        Configured CommandRunner instance
    """
    config = config or BridgeConfig()
    return CommandRunner(
        command=config.tool.command,
        timeout=config.execution.timeout,
        working_dir=config.execution.working_dir,
        env=config.execution.env or None,
        name_prefix=config.tool.name_prefix,
    )
