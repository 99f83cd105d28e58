"""Resolving the dependencies of collected files and folding them into items."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .config import RegistryItem
from .errors import ImportedFileNotResolvedError, InvalidDependencyError
from .lang_base import LanguageResolver
from .languages import DEFAULT_LANGUAGES, find_language
from .manifest import OPTIONAL_ROLES, RemoteDependency, UnresolvedImport
from .models import LocalDependency, ResolvedFile, ResolvedItem, UnresolvedFile
from .modules import PathsMatcher, search_for_module
from .pins import VersionPinner

logger = logging.getLogger(__name__)


def merge_dependencies(
    target: list[RemoteDependency], new: Iterable[RemoteDependency]
) -> None:
    """Add ``new`` to ``target`` keeping one entry per (ecosystem, name).

    A versioned entry replaces an unversioned one.
    """
    index = {dep.key: i for i, dep in enumerate(target)}
    for dep in new:
        i = index.get(dep.key)
        if i is None:
            index[dep.key] = len(target)
            target.append(dep)
        elif target[i].version is None and dep.version:
            target[i] = dep


@dataclass
class DependencyResolver:
    """Finds local and remote dependencies of registry files.

    Args:
        cwd: Registry root
        registry_name: Name used in errors and warnings
        items: Item declarations by name
        exclude_deps: Package names never recorded as dependencies
        languages: Language resolvers to consult
    """

    cwd: Path
    registry_name: str
    items: dict[str, RegistryItem]
    exclude_deps: set[str] = field(default_factory=set)
    languages: list[LanguageResolver] = field(default_factory=lambda: DEFAULT_LANGUAGES)
    warnings: list[str] = field(default_factory=list)
    pinner: VersionPinner = field(default_factory=VersionPinner)
    _matchers: dict[tuple[str, Path], PathsMatcher | None] = field(
        default_factory=dict, init=False, repr=False
    )

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def _is_strict(self, file: UnresolvedFile) -> bool:
        item = self.items.get(file.item)
        return item.strict if item is not None else True

    def _matcher(self, language: LanguageResolver, directory: Path) -> PathsMatcher | None:
        key = (language.name, directory)
        if key not in self._matchers:
            self._matchers[key] = language.load_alias_matcher(directory)
        return self._matchers[key]

    def _search(self, language: LanguageResolver, module_path: Path) -> Path | None:
        return search_for_module(
            module_path,
            extensions=language.module_extensions,
            index_files=language.index_files,
            compiled_equivalents=language.compiled_equivalents,
            any_extension=language.any_extension,
        )

    def _unresolved(self, specifier: str, file: UnresolvedFile) -> None:
        if self._is_strict(file):
            raise ImportedFileNotResolvedError(
                specifier, file.absolute_path, file.item, self.registry_name
            )
        self.warn(
            f"Skipped `{specifier}` imported by {file.absolute_path}: "
            "the file could not be found."
        )

    def resolve_file(self, file: UnresolvedFile) -> ResolvedFile:
        """Read ``file`` and find its dependencies when resolution is automatic."""
        resolved = ResolvedFile(
            file=file,
            content=file.absolute_path.read_text(encoding="utf-8"),
            registry_dependencies=list(file.registry_dependencies),
            dependencies=list(file.dependencies),
            dev_dependencies=list(file.dev_dependencies),
        )
        if file.dependency_resolution != "auto":
            return resolved

        language = find_language(file.absolute_path.name, self.languages)
        if language is None:
            self.warn(
                f"No language can resolve dependencies of {file.absolute_path}; "
                "they must be listed manually."
            )
            return resolved

        self._resolve_references(resolved, language)
        return resolved

    def _resolve_references(
        self, resolved: ResolvedFile, language: LanguageResolver
    ) -> None:
        file = resolved.file
        references = language.extract_references(
            resolved.content, str(file.absolute_path), self.warn
        )
        remote: list[RemoteDependency] = []

        for reference in references:
            if reference.kind == "relative":
                found = self._search(
                    language, language.reference_path(reference.specifier, file.absolute_path)
                )
                if found is None:
                    self._unresolved(reference.specifier, file)
                    continue
                resolved.local_dependencies.append(
                    LocalDependency(
                        file_path=found,
                        specifier=reference.specifier,
                        kind="relative",
                        resolver=language.name,
                        create_template=language.create_template(),
                    )
                )
                continue

            matcher = self._matcher(language, file.absolute_path.parent)
            found = None
            if matcher is not None:
                for candidate in matcher(reference.specifier):
                    found = self._search(language, candidate)
                    if found is not None:
                        break
            if found is not None:
                resolved.local_dependencies.append(
                    LocalDependency(
                        file_path=found,
                        specifier=reference.specifier,
                        kind="alias",
                        resolver=language.name,
                        create_template=language.create_template(),
                    )
                )
                continue

            name = language.package_name(reference.specifier)
            if name is None or not language.is_valid_package_name(name):
                if self._is_strict(file):
                    raise InvalidDependencyError(
                        reference.specifier, file.absolute_path, file.item, self.registry_name
                    )
                self.warn(
                    f"Skipped `{reference.specifier}` imported by {file.absolute_path}: "
                    "not a valid package name or path alias."
                )
                continue

            if name in self.exclude_deps:
                continue
            remote.append(RemoteDependency(ecosystem=language.ecosystem, name=name))

        for dependency in remote:
            pinned, dev = self.pinner.pin(dependency, file.absolute_path)
            merge_dependencies(
                resolved.dev_dependencies if dev else resolved.dependencies, [pinned]
            )

    def link_local_dependencies(self, resolved_files: dict[Path, ResolvedFile]) -> None:
        """Turn local dependencies into registry dependencies and import templates.

        A relative reference within the same item needs nothing. An aliased
        reference within the same item only needs its import rewritten. A
        reference to another item's file makes that item a registry dependency.
        """
        for resolved in resolved_files.values():
            file = resolved.file
            for dependency in resolved.local_dependencies:
                owner = resolved_files.get(dependency.file_path)
                if owner is None:
                    self._unresolved(dependency.specifier, file)
                    continue

                if owner.item == file.item and dependency.kind == "relative":
                    continue

                if owner.item != file.item and owner.item not in resolved.registry_dependencies:
                    resolved.registry_dependencies.append(owner.item)

                template = UnresolvedImport(
                    specifier=dependency.specifier,
                    item=owner.item,
                    resolver=dependency.resolver,
                    meta=dependency.create_template(owner),
                )
                if template not in resolved.imports:
                    resolved.imports.append(template)


def fold_item(item: RegistryItem, files: list[ResolvedFile]) -> ResolvedItem:
    """Attach the dependencies of an item's files to the item.

    Dependencies of example, doc and test files stay on the file so that
    adding the item never requires them. Folding an already folded item
    changes nothing.
    """
    registry_dependencies = list(item.registry_dependencies or [])
    dependencies: list[RemoteDependency] = []
    dev_dependencies: list[RemoteDependency] = []
    merge_dependencies(dependencies, item.dependencies or [])
    merge_dependencies(dev_dependencies, item.dev_dependencies or [])

    for file in files:
        if file.role in OPTIONAL_ROLES:
            continue
        for name in file.registry_dependencies:
            if name != item.name and name not in registry_dependencies:
                registry_dependencies.append(name)
        merge_dependencies(dependencies, file.dependencies)
        merge_dependencies(dev_dependencies, file.dev_dependencies)

    return ResolvedItem(
        name=item.name,
        type=item.type,
        add=item.add,
        files=files,
        title=item.title,
        description=item.description,
        env_vars=item.env_vars,
        registry_dependencies=registry_dependencies,
        dependencies=dependencies,
        dev_dependencies=dev_dependencies,
    )


def resolve_items(
    items: list[RegistryItem], files: list[UnresolvedFile], resolver: DependencyResolver
) -> list[ResolvedItem]:
    """Resolve every collected file and fold the results into their items."""
    resolved_files = {file.absolute_path: resolver.resolve_file(file) for file in files}
    resolver.link_local_dependencies(resolved_files)

    by_item: dict[str, list[ResolvedFile]] = {item.name: [] for item in items}
    for resolved in resolved_files.values():
        by_item[resolved.item].append(resolved)

    return [fold_item(item, by_item[item.name]) for item in items]
