"""Configuration models and loading for m365bridge."""

import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_CONFIG_FILENAME = "config.toml"


class ToolConfig(BaseModel):
    """Where the wrapped tool lives and how it is invoked."""

    command: str = "m365"  # Executable invoked through the shell
    name_prefix: str = "m365"  # Leading words of every catalog command name
    package: str = "@pnp/cli-microsoft365"  # Global npm package shipping the metadata
    metadata_file: str = "allCommandsFull.json"
    docs_dir: str = "docs/docs/cmd"
    package_root: str | None = None
    """Directory containing the installed package (e.g. the output of `npm root -g`).

    When set, the npm registry is not queried and files are resolved
    under this directory instead.
    """
    npm_command: str = "npm"
    registry_timeout: float = Field(default=30, gt=0)  # Seconds per npm query

    @field_validator("command", "name_prefix", "package", "metadata_file")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Ensure required strings are not blank."""
        if not v.strip():
            raise ValueError("Value cannot be empty")
        return v.strip()

    @property
    def docs_parts(self) -> tuple[str, ...]:
        """Docs directory split into path components."""
        return tuple(part for part in self.docs_dir.replace("\\", "/").split("/") if part)


class ExecutionConfig(BaseModel):
    """How commands are executed."""

    timeout: float = Field(default=120, gt=0)  # Seconds
    working_dir: str | None = None
    env: dict[str, str] = Field(default_factory=dict)  # Extra environment variables


class SearchConfig(BaseModel):
    """Fuzzy search tuning."""

    default_limit: int = Field(default=10, ge=1)
    max_limit: int = Field(default=50, ge=1)
    threshold: float = Field(default=0.4, ge=0.0, le=1.0)  # Allowed divergence per field
    min_match_length: int = Field(default=2, ge=1)
    name_weight: float = Field(default=0.7, gt=0.0)
    description_weight: float = Field(default=0.3, gt=0.0)

    @model_validator(mode="after")
    def validate_limits(self) -> "SearchConfig":
        """Ensure the default limit fits under the maximum."""
        if self.default_limit > self.max_limit:
            raise ValueError(
                f"default_limit ({self.default_limit}) cannot exceed max_limit ({self.max_limit})"
            )
        return self


class BridgeConfig(BaseModel):
    """Complete configuration for m365bridge."""

    tool: ToolConfig = Field(default_factory=ToolConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)


def load_config(path: Path) -> BridgeConfig:
    """Load and validate a TOML configuration file.

    Args:
        path: Path to the TOML config file

    Returns:
        Validated BridgeConfig

    Raises:
        FileNotFoundError: If config file doesn't exist
        tomllib.TOMLDecodeError: If TOML is malformed
        pydantic.ValidationError: If config doesn't match schema
    """
    with open(path, "rb") as f:
        data = tomllib.load(f)
    return BridgeConfig.model_validate(data)


def get_default_config_dir() -> Path:
    """Get the default configuration directory (~/.config/m365bridge)."""
    return Path.home() / ".config" / "m365bridge"


def get_default_config_path() -> Path:
    """Get the path of the default configuration file."""
    return get_default_config_dir() / DEFAULT_CONFIG_FILENAME


def load_default_config() -> BridgeConfig:
    """Load the user's configuration, falling back to defaults.

    Returns:
        BridgeConfig from ~/.config/m365bridge/config.toml if it exists,
        otherwise a BridgeConfig with all defaults
    """
    path = get_default_config_path()
    if not path.exists():
        return BridgeConfig()
    return load_config(path)
