"""Registry manifest (registry.json) wire models."""

import json
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from .errors import InvalidJSONError

MANIFEST_FILE = "registry.json"

Role = Literal["file", "example", "doc", "test"]
AddPolicy = Literal["on-init", "optionally-on-init", "when-needed", "when-added"]
OutputType = Literal["repository", "distributed"]

OPTIONAL_ROLES = ("example", "doc", "test")

# "python:requests@2.31.0"; npm and PyPI names never contain ":"
ECOSYSTEM_PREFIX = re.compile(r"^([a-z]+):(.+)$")


class WireModel(BaseModel):
    """Base for models serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class RemoteDependency(WireModel):
    """A dependency fetched from a package ecosystem (npm, PyPI, ...)."""

    ecosystem: str = "js"
    name: str
    version: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _parse_string_form(cls, value: Any) -> Any:
        # "[ecosystem:]name@version" shorthand; a leading "@" belongs to the scope
        if isinstance(value, str):
            parsed: dict[str, Any] = {}
            match = ECOSYSTEM_PREFIX.match(value)
            if match:
                parsed["ecosystem"], value = match.groups()
            at = value.rfind("@")
            if at > 0:
                return {**parsed, "name": value[:at], "version": value[at + 1 :] or None}
            return {**parsed, "name": value}
        return value

    @property
    def key(self) -> tuple[str, str]:
        return (self.ecosystem, self.name)

    def __str__(self) -> str:
        return f"{self.name}@{self.version}" if self.version else self.name


class UnresolvedImport(WireModel):
    """An import that must be rewritten once the consumer's layout is known.

    ``meta`` is opaque to everything except the resolver named in ``resolver``.
    """

    specifier: str = Field(alias="import")
    item: str
    resolver: str = "javascript"
    meta: dict[str, Any] = Field(default_factory=dict)


class ManifestFile(WireModel):
    path: str
    type: str | None = None
    role: Role = "file"
    target: str | None = None
    source: str | None = None
    content: str | None = None
    registry_dependencies: list[str] = Field(default_factory=list)
    dependencies: list[RemoteDependency] = Field(default_factory=list)
    dev_dependencies: list[RemoteDependency] = Field(default_factory=list)
    imports: list[UnresolvedImport] = Field(default_factory=list, alias="_imports_")


class ManifestItem(WireModel):
    name: str
    title: str | None = None
    type: str
    description: str | None = None
    add: AddPolicy = "when-added"
    registry_dependencies: list[str] = Field(default_factory=list)
    dependencies: list[RemoteDependency] = Field(default_factory=list)
    dev_dependencies: list[RemoteDependency] = Field(default_factory=list)
    env_vars: dict[str, str] | None = None
    files: list[ManifestFile] = Field(default_factory=list)


class ManifestConfigFile(WireModel):
    """A project config file (tsconfig, tailwind config, ...) an item expects."""

    name: str
    path: str
    expected_path: str
    optional: bool = False
    content: str | None = None
    dependencies: list[RemoteDependency] = Field(default_factory=list)
    dev_dependencies: list[RemoteDependency] = Field(default_factory=list)


class Manifest(WireModel):
    name: str
    version: str | None = None
    description: str | None = None
    type: OutputType = "repository"
    items: list[ManifestItem] = Field(default_factory=list)
    default_paths: dict[str, str] | None = None
    plugins: dict[str, list[str]] | None = None
    config_files: list[ManifestConfigFile] | None = None

    def get_item(self, name: str) -> ManifestItem | None:
        for item in self.items:
            if item.name == name:
                return item
        return None


def parse_manifest(content: str | bytes, source: str = MANIFEST_FILE) -> Manifest:
    """Parse manifest JSON.

    Args:
        content: Raw registry.json content
        source: Where the content came from, used in error messages

    Returns:
        Validated Manifest

    Raises:
        InvalidJSONError: If the content is not JSON or not a manifest
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise InvalidJSONError(f"{source} is not valid JSON: {e}") from e

    try:
        return Manifest.model_validate(data)
    except ValidationError as e:
        raise InvalidJSONError(f"{source} is not a valid registry manifest: {e}") from e


def dump_manifest(manifest: Manifest) -> str:
    return json.dumps(manifest.to_dict(), indent=2) + "\n"
