"""Project and registry configuration (regkit.yaml)."""

import logging
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, ValidationError, model_validator

from .errors import ConfigError
from .manifest import AddPolicy, OutputType, RemoteDependency, Role, WireModel

CONFIG_FILE = "regkit.yaml"

logger = logging.getLogger(__name__)


class RegistryItemFile(WireModel):
    """A file or folder declared by an item.

    Folders may list their own ``files``; when they don't, every entry of the
    folder is collected.
    """

    path: str
    type: str | None = None
    role: Role | None = None
    target: str | None = None
    dependency_resolution: Literal["auto", "manual"] | None = None
    registry_dependencies: list[str] | None = None
    dependencies: list[RemoteDependency] | None = None
    dev_dependencies: list[RemoteDependency] | None = None
    files: list["RegistryItemFile"] | None = None

    @model_validator(mode="before")
    @classmethod
    def _parse_string_form(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"path": value}
        return value


class RegistryItem(WireModel):
    name: str
    type: str
    title: str | None = None
    description: str | None = None
    files: list[RegistryItemFile] = Field(default_factory=list)
    registry_dependencies: list[str] | None = None
    dependencies: list[RemoteDependency] | None = None
    dev_dependencies: list[RemoteDependency] | None = None
    add: AddPolicy = "when-added"
    strict: bool = True
    dependency_resolution: Literal["auto", "manual"] = "auto"
    env_vars: dict[str, str] | None = None


class ConfigFileDeclaration(WireModel):
    name: str
    path: str
    expected_path: str
    optional: bool = False
    dependencies: list[RemoteDependency] | None = None
    dev_dependencies: list[RemoteDependency] | None = None


class OutputConfig(WireModel):
    type: OutputType = "repository"
    dir: str = "public/r"


class RegistryConfig(WireModel):
    name: str
    version: str | None = None
    description: str | None = None
    items: list[RegistryItem] = Field(default_factory=list)
    exclude_deps: list[str] = Field(default_factory=list)
    default_paths: dict[str, str] | None = None
    plugins: dict[str, list[str]] | None = None
    config_files: list[ConfigFileDeclaration] | None = None
    rules: dict[str, str | list[Any]] = Field(default_factory=dict)
    outputs: list[OutputConfig] = Field(default_factory=lambda: [OutputConfig()])


class ProjectConfig(WireModel):
    registries: list[str] = Field(default_factory=list)
    paths: dict[str, str] = Field(default_factory=dict)
    registry: RegistryConfig | None = None


def parse_config(content: str, source: str = CONFIG_FILE) -> ProjectConfig:
    """Parse and validate regkit.yaml content."""
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"{source} is not valid YAML: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{source} must contain a mapping")

    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"{source} is invalid: {e}") from e


def load_config_optional(cwd: Path) -> ProjectConfig | None:
    """Load regkit.yaml from ``cwd`` if it exists."""
    config_path = cwd / CONFIG_FILE
    if not config_path.exists():
        logger.debug("No %s found in %s", CONFIG_FILE, cwd)
        return None
    return parse_config(config_path.read_text(), str(config_path))


def load_config(cwd: Path) -> ProjectConfig:
    """Load regkit.yaml from ``cwd``.

    Raises:
        ConfigError: If the file is missing or invalid
    """
    config = load_config_optional(cwd)
    if config is None:
        raise ConfigError(
            f"Could not find {CONFIG_FILE} in {cwd}",
            f"Create a {CONFIG_FILE} at the root of your project.",
        )
    return config


def save_config(config: ProjectConfig, cwd: Path) -> Path:
    """Write ``config`` to regkit.yaml in ``cwd``, leaving out default values."""
    config_path = cwd / CONFIG_FILE
    data = config.model_dump(by_alias=True, exclude_none=True, exclude_defaults=True)
    config_path.write_text(yaml.safe_dump(data, sort_keys=False))
    logger.debug("Wrote %s", config_path)
    return config_path
