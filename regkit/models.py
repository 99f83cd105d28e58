"""Core data models for building a registry."""

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .manifest import RemoteDependency, UnresolvedImport


@dataclass
class Reference:
    """A literal module reference found in a source file."""

    specifier: str
    kind: str  # relative, alias, external


@dataclass
class UnresolvedFile:
    """A file claimed by an item, before its content is read."""

    absolute_path: Path
    path: str  # relative to the item, posix separators
    type: str
    role: str
    item: str
    dependency_resolution: str = "auto"  # auto, manual
    target: str | None = None
    registry_dependencies: list[str] = field(default_factory=list)
    dependencies: list[RemoteDependency] = field(default_factory=list)
    dev_dependencies: list[RemoteDependency] = field(default_factory=list)


@dataclass
class ResolvedFile:
    """A file with its content and the dependencies found in it."""

    file: UnresolvedFile
    content: str
    local_dependencies: list["LocalDependency"] = field(default_factory=list)
    dependencies: list[RemoteDependency] = field(default_factory=list)
    dev_dependencies: list[RemoteDependency] = field(default_factory=list)
    registry_dependencies: list[str] = field(default_factory=list)
    imports: list[UnresolvedImport] = field(default_factory=list)

    @property
    def absolute_path(self) -> Path:
        return self.file.absolute_path

    @property
    def item(self) -> str:
        return self.file.item

    @property
    def role(self) -> str:
        return self.file.role


@dataclass
class LocalDependency:
    """A reference from one file to another file in the registry."""

    file_path: Path  # absolute path of the referenced file
    specifier: str
    kind: str  # relative, alias
    resolver: str
    create_template: Callable[[ResolvedFile], dict[str, Any]]


@dataclass
class ResolvedItem:
    """An item with its files resolved and dependencies folded in."""

    name: str
    type: str
    add: str
    files: list[ResolvedFile]
    title: str | None = None
    description: str | None = None
    env_vars: dict[str, str] | None = None
    registry_dependencies: list[str] = field(default_factory=list)
    dependencies: list[RemoteDependency] = field(default_factory=list)
    dev_dependencies: list[RemoteDependency] = field(default_factory=list)


@dataclass
class ItemPath:
    """Where an item is installed in the consumer's project."""

    path: str  # relative to cwd
    alias: str | None = None
