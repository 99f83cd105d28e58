"""Collecting the files claimed by registry items."""

import logging
import os
import posixpath
from dataclasses import dataclass, replace
from pathlib import Path

from .config import RegistryItem, RegistryItemFile
from .errors import DuplicateFileReferenceError, ItemFileNotFoundError
from .models import UnresolvedFile

logger = logging.getLogger(__name__)

# Never collected from a directory listing
IGNORED_ENTRIES = frozenset({"__pycache__", "node_modules", ".DS_Store", ".git"})


@dataclass(frozen=True)
class _FolderContext:
    """Values a folder passes down to everything collected under it."""

    item: RegistryItem
    registry_name: str
    type: str
    role: str
    dependency_resolution: str
    target: str | None
    path: str  # item-relative path of the folder
    directory: Path


def _make_file(
    declaration: RegistryItemFile,
    absolute_path: Path,
    path: str,
    *,
    item: RegistryItem,
    file_type: str,
    role: str,
    dependency_resolution: str,
    target: str | None,
) -> UnresolvedFile:
    return UnresolvedFile(
        absolute_path=absolute_path,
        path=path,
        type=file_type,
        role=role,
        item=item.name,
        dependency_resolution=dependency_resolution,
        target=target,
        registry_dependencies=list(declaration.registry_dependencies or []),
        dependencies=list(declaration.dependencies or []),
        dev_dependencies=list(declaration.dev_dependencies or []),
    )


def _folder_entries(declaration: RegistryItemFile, directory: Path) -> list[RegistryItemFile]:
    # explicit files win over the directory listing
    if declaration.files is not None:
        return declaration.files
    return [
        RegistryItemFile(path=name)
        for name in sorted(os.listdir(directory))
        if name not in IGNORED_ENTRIES
    ]


def _collect_folder(
    entries: list[RegistryItemFile], context: _FolderContext
) -> list[UnresolvedFile]:
    files: list[UnresolvedFile] = []

    for entry in entries:
        absolute_path = Path(os.path.normpath(context.directory / entry.path))
        if not absolute_path.exists():
            raise ItemFileNotFoundError(
                absolute_path, context.item.name, context.registry_name
            )

        entry_path = Path(entry.path).as_posix()
        path = posixpath.join(context.path, entry_path)
        file_type = entry.type or context.type
        role = entry.role or context.role
        mode = entry.dependency_resolution or context.dependency_resolution
        target = entry.target or (
            posixpath.join(context.target, entry_path) if context.target else None
        )

        if absolute_path.is_file():
            files.append(
                _make_file(
                    entry,
                    absolute_path,
                    path,
                    item=context.item,
                    file_type=file_type,
                    role=role,
                    dependency_resolution=mode,
                    target=target,
                )
            )
            continue

        files.extend(
            _collect_folder(
                _folder_entries(entry, absolute_path),
                replace(
                    context,
                    type=file_type,
                    role=role,
                    dependency_resolution=mode,
                    target=target,
                    path=path,
                    directory=absolute_path,
                ),
            )
        )

    return files


def collect_item_files(
    items: list[RegistryItem], cwd: Path, registry_name: str
) -> list[UnresolvedFile]:
    """Flatten the files and folders declared by ``items``.

    Files directly under an item are addressed by their name; files found in
    a folder keep their path below the folder's name.

    Args:
        items: Item declarations in config order
        cwd: Registry root the declared paths are relative to
        registry_name: Name used in error messages

    Returns:
        Every file claimed by an item, in declaration order

    Raises:
        ItemFileNotFoundError: A declared path does not exist
        DuplicateFileReferenceError: Two declarations claim the same file
    """
    files: list[UnresolvedFile] = []

    for item in items:
        for declaration in item.files:
            absolute_path = Path(os.path.normpath(cwd / declaration.path))
            if not absolute_path.exists():
                raise ItemFileNotFoundError(absolute_path, item.name, registry_name)

            file_type = declaration.type or item.type
            role = declaration.role or "file"
            mode = declaration.dependency_resolution or item.dependency_resolution

            if absolute_path.is_file():
                files.append(
                    _make_file(
                        declaration,
                        absolute_path,
                        absolute_path.name,
                        item=item,
                        file_type=file_type,
                        role=role,
                        dependency_resolution=mode,
                        target=declaration.target,
                    )
                )
                continue

            context = _FolderContext(
                item=item,
                registry_name=registry_name,
                type=file_type,
                role=role,
                dependency_resolution=mode,
                target=declaration.target,
                path=absolute_path.name,
                directory=absolute_path,
            )
            files.extend(
                _collect_folder(_folder_entries(declaration, absolute_path), context)
            )

    owners: dict[Path, str] = {}
    for file in files:
        owner = owners.get(file.absolute_path)
        if owner is not None:
            raise DuplicateFileReferenceError(
                file.absolute_path, owner, file.item, registry_name
            )
        owners[file.absolute_path] = file.item

    logger.debug("Collected %d files from %d items", len(files), len(items))
    return files
