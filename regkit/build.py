"""Building a registry manifest from its config."""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .collect import collect_item_files
from .config import RegistryConfig, RegistryItemFile
from .errors import (
    DuplicateItemNameError,
    IllegalItemNameError,
    InvalidRegistryDependencyError,
    NoFilesError,
    NoListedItemsError,
    RuleViolationError,
    SelfReferenceError,
)
from .lang_base import LanguageResolver
from .languages import DEFAULT_LANGUAGES
from .manifest import (
    OPTIONAL_ROLES,
    Manifest,
    ManifestConfigFile,
    ManifestFile,
    ManifestItem,
)
from .models import ResolvedFile, ResolvedItem
from .resolve_deps import DependencyResolver, resolve_items
from .rules import RuleReport, prune_unused, run_rules

logger = logging.getLogger(__name__)

# Names that would collide with files written next to item manifests
RESERVED_NAMES = frozenset({"registry", "regkit", "index"})
_WHITESPACE = re.compile(r"\s")


@dataclass
class BuildResult:
    manifest: Manifest
    items: list[ResolvedItem]
    warnings: list[str] = field(default_factory=list)
    report: RuleReport = field(default_factory=RuleReport)


def _file_registry_dependencies(files: list[RegistryItemFile]) -> list[str]:
    names = []
    for file in files:
        names.extend(file.registry_dependencies or [])
        names.extend(_file_registry_dependencies(file.files or []))
    return names


def validate_registry(config: RegistryConfig) -> None:
    """Structural checks that must pass before any file is read.

    Raises:
        BuildError: The first problem found
    """
    if not any(item.add != "when-needed" for item in config.items):
        raise NoListedItemsError(config.name)

    names: set[str] = set()
    for item in config.items:
        if not item.name or item.name in RESERVED_NAMES or _WHITESPACE.search(item.name):
            raise IllegalItemNameError(item.name, config.name)
        if item.name in names:
            raise DuplicateItemNameError(item.name, config.name)
        names.add(item.name)

    for item in config.items:
        if not item.files:
            raise NoFilesError(item.name, config.name)

        dependencies = [
            *(item.registry_dependencies or []),
            *_file_registry_dependencies(item.files),
        ]
        for dependency in dependencies:
            if dependency == item.name:
                raise SelfReferenceError(item.name, config.name)
            if dependency not in names:
                raise InvalidRegistryDependencyError(dependency, item.name, config.name)


def _manifest_file(resolved: ResolvedFile, cwd: Path) -> ManifestFile:
    file = resolved.file
    # dependencies of optional files stay with the file, the rest live on the item
    keep = file.role in OPTIONAL_ROLES
    return ManifestFile(
        path=file.path,
        type=file.type,
        role=file.role,
        target=file.target,
        source=Path(os.path.relpath(file.absolute_path, cwd)).as_posix(),
        content=resolved.content,
        registry_dependencies=resolved.registry_dependencies if keep else [],
        dependencies=resolved.dependencies if keep else [],
        dev_dependencies=resolved.dev_dependencies if keep else [],
        imports=resolved.imports,
    )


def to_manifest(config: RegistryConfig, items: list[ResolvedItem], cwd: Path) -> Manifest:
    """Serialize resolved items into a manifest holding both sources and contents."""
    config_files = None
    if config.config_files is not None:
        config_files = [
            ManifestConfigFile(
                name=file.name,
                path=file.path,
                expected_path=file.expected_path,
                optional=file.optional,
                content=_read_optional(cwd / file.path),
                dependencies=file.dependencies or [],
                dev_dependencies=file.dev_dependencies or [],
            )
            for file in config.config_files
        ]

    return Manifest(
        name=config.name,
        version=config.version,
        description=config.description,
        default_paths=config.default_paths,
        plugins=config.plugins,
        config_files=config_files,
        items=[
            ManifestItem(
                name=item.name,
                title=item.title,
                type=item.type,
                description=item.description,
                add=item.add,
                registry_dependencies=item.registry_dependencies,
                dependencies=item.dependencies,
                dev_dependencies=item.dev_dependencies,
                env_vars=item.env_vars,
                files=[_manifest_file(file, cwd) for file in item.files],
            )
            for item in items
        ],
    )


def _read_optional(path: Path) -> str | None:
    return path.read_text(encoding="utf-8") if path.is_file() else None


def build_registry(
    config: RegistryConfig,
    cwd: Path,
    *,
    languages: list[LanguageResolver] | None = None,
    prune: bool = True,
    rule_config: dict[str, str | list[Any]] | None = None,
) -> BuildResult:
    """Validate, collect, resolve and check a registry.

    Args:
        config: Registry section of regkit.yaml
        cwd: Registry root that item paths are relative to
        languages: Language resolvers, defaults to every built-in one
        prune: Drop unused items from the manifest
        rule_config: Rule levels, defaults to the config's ``rules``

    Returns:
        BuildResult with the manifest and every warning raised on the way

    Raises:
        BuildError: On invalid structure, unresolvable imports or rule errors
    """
    validate_registry(config)

    files = collect_item_files(config.items, cwd, config.name)
    resolver = DependencyResolver(
        cwd=cwd,
        registry_name=config.name,
        items={item.name: item for item in config.items},
        exclude_deps=set(config.exclude_deps),
        languages=languages or DEFAULT_LANGUAGES,
    )
    items = resolve_items(config.items, files, resolver)

    report = run_rules(
        items, config, cwd, config.rules if rule_config is None else rule_config
    )
    for warning in report.warnings:
        logger.warning(warning)
    if report.errors:
        raise RuleViolationError(report.errors, config.name)

    if prune:
        items = prune_unused(items, config, cwd)

    logger.info("Built %s with %d items", config.name, len(items))
    return BuildResult(
        manifest=to_manifest(config, items, cwd),
        items=items,
        warnings=[*resolver.warnings, *report.warnings],
        report=report,
    )
