"""Output format selection and normalization for wrapped-tool commands.

List commands tend to return large result sets, so they default to CSV
which is far more compact than JSON for rows of records. Everything
else defaults to JSON, which is minimized before being returned.
"""

import json
import re
from dataclasses import dataclass

from .base import OutputEncoding

OUTPUT_FLAG = "--output"

# "--output json", "--output=json", "-o json"; never "--output-file x"
_OUTPUT_FLAG_PATTERN = re.compile(
    r"""(?:^|\s)(?:--output|-o)(?:=|\s+)(?P<value>"[^"]*"|'[^']*'|[^\s"'-][^\s"']*)"""
)
# Flag present without a usable value ("--output" at the end, "--output --debug")
_BARE_OUTPUT_FLAG_PATTERN = re.compile(r"(?:^|\s)(?:--output|-o)(?=\s|=|$)")


@dataclass(frozen=True)
class OutputPolicy:
    """Decision on how a command's output is requested and post-processed.

    Attributes:
        encoding: How stdout is treated after the command succeeds
        inject: Format to append as an output flag, None to leave the command alone
    """

    encoding: OutputEncoding
    inject: str | None = None

    @classmethod
    def passthrough(cls) -> "OutputPolicy":
        """Policy that neither rewrites the command nor touches its output."""
        return cls(encoding=OutputEncoding.RAW)

    @property
    def minimize_json(self) -> bool:
        """Whether JSON output should be re-serialized without whitespace."""
        return self.encoding == OutputEncoding.JSON

    def apply(self, command_line: str) -> str:
        """Append the output flag to a command line if the policy asks for one."""
        if self.inject is None:
            return command_line
        return f"{command_line} {OUTPUT_FLAG} {self.inject}"


def find_output_format(command_line: str) -> str | None:
    """Return the explicit output format of a command line, if any.

    Returns:
        The lowercase format value ("json", "csv", ...), "" for a flag
        without a value, or None when no output flag is present
    """
    match = _OUTPUT_FLAG_PATTERN.search(command_line)
    if match:
        return match.group("value").strip("\"'").lower()
    if _BARE_OUTPUT_FLAG_PATTERN.search(command_line):
        return ""
    return None


def is_list_command(command_line: str) -> bool:
    """Check whether the command part (before any flag) ends with "list"."""
    words: list[str] = []
    for token in command_line.split():
        if token.startswith("-"):
            break
        words.append(token)
    return bool(words) and words[-1].lower() == "list"


def infer_output_policy(command_line: str) -> OutputPolicy:
    """Decide the output format for a command line.

    - An explicit JSON flag keeps the command unchanged and minimizes output
    - Any other explicit flag keeps the command and output unchanged
    - Otherwise list commands get CSV and everything else gets JSON

    Args:
        command_line: Command line as it will be passed to the shell

    Returns:
        OutputPolicy describing the rewrite and post-processing
    """
    explicit = find_output_format(command_line)
    if explicit is not None:
        if explicit == OutputEncoding.JSON.value:
            return OutputPolicy(encoding=OutputEncoding.JSON)
        return OutputPolicy.passthrough()

    if is_list_command(command_line):
        return OutputPolicy(encoding=OutputEncoding.CSV, inject=OutputEncoding.CSV.value)
    return OutputPolicy(encoding=OutputEncoding.JSON, inject=OutputEncoding.JSON.value)


def minimize_json(text: str) -> str:
    """Re-serialize JSON text without insignificant whitespace.

    Text that doesn't parse as JSON is returned unchanged.
    """
    try:
        data = json.loads(text)
    except ValueError:
        return text
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def normalize_output(stdout: str, policy: OutputPolicy) -> str:
    """Trim command output and minimize it when the policy selected JSON."""
    text = stdout.strip()
    if policy.minimize_json and text:
        return minimize_json(text)
    return text
