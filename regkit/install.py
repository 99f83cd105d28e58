"""Placing fetched items into a consumer's project."""

import logging
import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from .diff import Confirm, FileDiff
from .errors import NoPathProvidedError
from .graph import ResolvedWantedItem
from .lang_base import LanguageResolver, TransformOptions
from .languages import DEFAULT_LANGUAGES, language_by_name
from .manifest import ManifestFile, RemoteDependency
from .models import ItemPath
from .modules import PathsMatcher, load_paths_matcher
from .pins import should_install
from .providers import ResolvedRegistry, client_scope, fetch_item, gather_or_cancel
from .resolve_deps import merge_dependencies

logger = logging.getLogger(__name__)

# (item type, suggested path or None) -> path typed by the user
PromptPath = Callable[[str, str | None], str]


async def fetch_items(
    items: Iterable[ResolvedWantedItem],
    include_roles: Iterable[str] = (),
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = 30.0,
) -> list[ResolvedWantedItem]:
    """Fetch the content of every item concurrently, keeping their order.

    Raises:
        RegistryFileFetchError: If any file can't be fetched
    """
    items = list(items)
    include_roles = tuple(include_roles)
    async with client_scope(client, timeout) as http:
        fetched = await gather_or_cancel(
            *(
                fetch_item(wanted.registry, wanted.item, http, include_roles)
                for wanted in items
            )
        )
    return [
        ResolvedWantedItem(registry=wanted.registry, item=item)
        for wanted, item in zip(items, fetched)
    ]


def to_item_path(value: str, cwd: Path, matcher: PathsMatcher | None) -> ItemPath:
    """Interpret a configured path, which is either a directory or a path alias.

    A value is only an alias when the matcher maps it somewhere else, so a
    ``baseUrl`` of ``.`` leaves ``src/utils`` a plain directory.
    """
    path = Path(os.path.normpath(value)).as_posix()
    if matcher is not None and not value.startswith((".", "/")):
        for candidate in matcher(value):
            relative = Path(os.path.relpath(candidate, cwd)).as_posix()
            if relative != path:
                return ItemPath(path=relative, alias=value.rstrip("/"))
            break
    return ItemPath(path=path)


@dataclass
class FileOperation:
    action: str  # create, update, unchanged
    path: Path
    content: str
    item: str
    old_content: str | None = None

    def diff(self, cwd: Path) -> FileDiff:
        label = Path(os.path.relpath(self.path, cwd)).as_posix()
        return FileDiff(
            old_content=self.old_content or "",
            new_content=self.content,
            from_label=f"{label} (local)",
            to_label=f"{label} ({self.item})",
        )


@dataclass
class InstallPlan:
    operations: list[FileOperation] = field(default_factory=list)
    dependencies: list[RemoteDependency] = field(default_factory=list)
    dev_dependencies: list[RemoteDependency] = field(default_factory=list)
    env_vars: dict[str, str] = field(default_factory=dict)


@dataclass
class InstallResult:
    written: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    unchanged: list[Path] = field(default_factory=list)


class Installer:
    """Works out where fetched items go and what their files become.

    Args:
        cwd: Consumer project root
        paths: Configured item paths by ``<type>/<name>``, type or ``*``
        languages: Resolvers used to rewrite imports
        prompt_path: Asks for a path when none is configured, None when
            running non-interactively
    """

    def __init__(
        self,
        cwd: Path,
        paths: dict[str, str] | None = None,
        languages: list[LanguageResolver] | None = None,
        prompt_path: PromptPath | None = None,
    ):
        self.cwd = cwd
        self.paths = dict(paths or {})
        self.languages = languages or DEFAULT_LANGUAGES
        self.prompt_path = prompt_path
        self.matcher = load_paths_matcher(cwd)
        self._item_paths: dict[str, ItemPath] = {}

    def configured_path(self, name: str, item_type: str) -> str | None:
        return (
            self.paths.get(f"{item_type}/{name}")
            or self.paths.get(item_type)
            or self.paths.get("*")
        )

    def item_path(
        self, name: str, item_type: str, default_paths: dict[str, str] | None = None
    ) -> ItemPath:
        """Directory an item is installed to.

        Raises:
            NoPathProvidedError: If nothing is configured and there is nobody to ask
        """
        value = self.configured_path(name, item_type)
        if value is None:
            suggestion = (default_paths or {}).get(item_type)
            if self.prompt_path is not None:
                value = self.prompt_path(item_type, suggestion or f"./src/{item_type}")
            elif suggestion is not None:
                value = suggestion
            else:
                raise NoPathProvidedError(name, item_type)
            # later items of the same type go to the same place
            self.paths[item_type] = value

        return to_item_path(value, self.cwd, self.matcher)

    def target_path(self, item_path: ItemPath, file: ManifestFile) -> Path:
        if file.target:
            return self.cwd / file.target
        return self.cwd / item_path.path / file.path

    def transform(self, file: ManifestFile, target: Path, content: str) -> str:
        """Rewrite the imports recorded on ``file`` for the consumer's layout."""
        by_resolver: dict[str, list] = {}
        for imp in file.imports:
            by_resolver.setdefault(imp.resolver, []).append(imp)

        for resolver_name, imports in by_resolver.items():
            language = language_by_name(resolver_name, self.languages)
            if language is None:
                logger.warning(
                    "No %s resolver to rewrite imports of %s", resolver_name, target
                )
                continue
            options = TransformOptions(
                cwd=self.cwd, target_path=target, get_item_path=self._item_paths.get
            )
            for transform in language.transform_imports(imports, options):
                content = transform.apply(content)
        return content

    def plan(
        self, items: list[ResolvedWantedItem], include_roles: Iterable[str] = ()
    ) -> InstallPlan:
        """Compare what each fetched file would become with what is on disk.

        Args:
            items: Items with their file contents fetched
            include_roles: Optional file roles to install as well

        Returns:
            One operation per file plus the dependencies and env vars needed
        """
        roles = {"file", *include_roles}
        for wanted in items:
            self._item_paths[wanted.name] = self.item_path(
                wanted.name, wanted.item.type, wanted.registry.manifest.default_paths
            )

        plan = InstallPlan()
        for wanted in items:
            item = wanted.item
            item_path = self._item_paths[item.name]
            merge_dependencies(plan.dependencies, item.dependencies)
            merge_dependencies(plan.dev_dependencies, item.dev_dependencies)
            plan.env_vars.update(item.env_vars or {})

            for file in item.files:
                if file.role not in roles:
                    continue
                if file.role != "file":
                    merge_dependencies(plan.dependencies, file.dependencies)
                    merge_dependencies(plan.dev_dependencies, file.dev_dependencies)

                target = self.target_path(item_path, file)
                content = self.transform(file, target, file.content or "")
                plan.operations.append(_operation(target, content, item.name))

        plan.dependencies = should_install(plan.dependencies, self.cwd)
        plan.dev_dependencies = should_install(plan.dev_dependencies, self.cwd)
        return plan


def find_installed(
    registries: Iterable[ResolvedRegistry], installer: Installer
) -> list[ResolvedWantedItem]:
    """Registry items with at least one file already in the project.

    Items are looked for under their configured path, or the registry's
    default path for their type. Nobody is asked for a path.
    """
    found: dict[str, ResolvedWantedItem] = {}
    for registry in registries:
        default_paths = registry.manifest.default_paths or {}
        for item in registry.manifest.items:
            if item.name in found:
                continue
            value = installer.configured_path(item.name, item.type) or default_paths.get(
                item.type
            )
            if value is None:
                continue
            item_path = to_item_path(value, installer.cwd, installer.matcher)
            if any(
                installer.target_path(item_path, file).exists()
                for file in item.files
                if file.role == "file"
            ):
                found[item.name] = ResolvedWantedItem(registry=registry, item=item)

    logger.debug("Found %d installed items", len(found))
    return list(found.values())


def _operation(target: Path, content: str, item: str) -> FileOperation:
    if not target.exists():
        return FileOperation("create", target, content, item)
    old_content = target.read_text(encoding="utf-8")
    action = "unchanged" if old_content == content else "update"
    return FileOperation(action, target, content, item, old_content=old_content)


def apply_plan(
    plan: InstallPlan,
    cwd: Path,
    *,
    confirm: Confirm | None = None,
    overwrite: bool = False,
) -> InstallResult:
    """Write the plan's files one at a time.

    Changed files are only written when ``overwrite`` is set or ``confirm``
    accepts their diff.
    """
    result = InstallResult()
    for operation in plan.operations:
        if operation.action == "unchanged":
            result.unchanged.append(operation.path)
            continue

        if operation.action == "update" and not overwrite:
            if confirm is None or not confirm(operation.diff(cwd)):
                logger.info("Skipped %s", operation.path)
                result.skipped.append(operation.path)
                continue

        operation.path.parent.mkdir(parents=True, exist_ok=True)
        operation.path.write_text(operation.content, encoding="utf-8")
        logger.info("Wrote %s", operation.path)
        result.written.append(operation.path)

    return result
