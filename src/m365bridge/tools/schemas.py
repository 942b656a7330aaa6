"""Typed argument schemas for commands run through structured requests.

Commands listed in COMMAND_SCHEMAS have their arguments validated before
a command line is built. Commands without a schema only get the
structural checks in StructuredRequest.
"""

import re
from typing import Annotated

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
)

# Closed set of scalar values an option can take; None means "unset"
OptionValue = str | int | float | bool | None

_OPTION_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")
_NAME_WORD_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9-]*$")

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class StructuredRequest(BaseModel):
    """A command name plus option values to render into a command line."""

    model_config = ConfigDict(frozen=True)

    command_name: NonEmptyStr = Field(
        validation_alias=AliasChoices("name", "commandName", "command_name")
    )
    args: dict[str, OptionValue] = Field(default_factory=dict)

    @field_validator("command_name")
    @classmethod
    def validate_command_name(cls, v: str) -> str:
        """Ensure the name is plain words, so it is safe to pass to a shell."""
        words = v.split()
        invalid = [word for word in words if not _NAME_WORD_PATTERN.match(word)]
        if invalid:
            raise ValueError(f"Invalid command name word(s): {', '.join(invalid)}")
        return " ".join(words)

    @field_validator("args")
    @classmethod
    def validate_option_names(cls, v: dict[str, OptionValue]) -> dict[str, OptionValue]:
        """Ensure option names are plain identifiers without leading dashes."""
        invalid = [name for name in v if not _OPTION_NAME_PATTERN.match(name)]
        if invalid:
            raise ValueError(f"Invalid option name(s): {', '.join(sorted(invalid))}")
        return v

    @property
    def set_args(self) -> dict[str, str | int | float | bool]:
        """Options with a value, in the order they were given."""
        return {name: value for name, value in self.args.items() if value is not None}


class CommandArgs(BaseModel):
    """Base for per-command argument schemas."""

    model_config = ConfigDict(extra="allow")


class ListAddArgs(CommandArgs):
    title: NonEmptyStr = Field(description="Title of the list to add.")
    webUrl: NonEmptyStr = Field(description="URL of the site where the list should be added.")


class ListGetArgs(CommandArgs):
    title: NonEmptyStr = Field(description="Title of the list.")
    webUrl: NonEmptyStr = Field(description="URL of the site where the list is located.")
    withPermissions: bool = Field(
        default=False,
        description="Set if you want to return associated roles and permissions of the list.",
    )


class ListListArgs(CommandArgs):
    webUrl: NonEmptyStr = Field(
        description="URL of the site where the lists to retrieve are located."
    )


class ListRemoveArgs(CommandArgs):
    title: NonEmptyStr = Field(description="Title of the list to remove.")
    webUrl: NonEmptyStr = Field(
        description="URL of the site where the list to remove is located."
    )


# Keyed by command name without the tool token
COMMAND_SCHEMAS: dict[str, type[CommandArgs]] = {
    "spo list add": ListAddArgs,
    "spo list get": ListGetArgs,
    "spo list list": ListListArgs,
    "spo list remove": ListRemoveArgs,
}


def get_command_schema(command_name: str, name_prefix: str = "m365") -> type[CommandArgs] | None:
    """Find the argument schema for a command, with or without the name prefix."""
    words = command_name.split()
    prefix_words = name_prefix.split()
    if words[: len(prefix_words)] == prefix_words:
        words = words[len(prefix_words) :]
    return COMMAND_SCHEMAS.get(" ".join(words))
