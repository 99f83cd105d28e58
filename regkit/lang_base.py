"""Contract every language resolver implements."""

import os
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .manifest import UnresolvedImport
from .models import ItemPath, Reference, ResolvedFile
from .modules import PathsMatcher

Warn = Callable[[str], None]


@dataclass
class ImportTransform:
    """A literal substitution applied to installed file content."""

    pattern: re.Pattern[str]  # groups `pre` and `post` surround the literal
    replacement: str

    def apply(self, content: str) -> str:
        return self.pattern.sub(
            lambda m: f"{m.group('pre')}{self.replacement}{m.group('post')}", content
        )


@dataclass
class TransformOptions:
    cwd: Path
    target_path: Path  # absolute path the importing file is written to
    get_item_path: Callable[[str], ItemPath | None]


class LanguageResolver(ABC):
    """Finds references in source files of one language and rewrites them.

    The resolver only extracts and classifies references. Deciding whether a
    reference is a local file, a path alias or a package is left to the
    build's dependency resolver, which uses the hooks below.
    """

    name: str
    ecosystem: str
    module_extensions: tuple[str, ...] = ()
    index_files: tuple[str, ...] = ()
    compiled_equivalents: dict[str, tuple[str, ...]] = {}
    any_extension = True

    @abstractmethod
    def can_handle(self, file_name: str) -> bool:
        """Whether this resolver understands ``file_name``."""

    @abstractmethod
    def extract_references(
        self, content: str, file_name: str, warn: Warn
    ) -> list[Reference]:
        """Return literal references found in ``content``.

        Builtin modules are never returned. Dynamic references that aren't
        literals are reported through ``warn`` and skipped.
        """

    @abstractmethod
    def package_name(self, specifier: str) -> str | None:
        """Package a bare specifier belongs to, or None if it can't be one."""

    @abstractmethod
    def is_valid_package_name(self, name: str) -> bool:
        """Whether ``name`` is a valid package name in this ecosystem."""

    @abstractmethod
    def transform_imports(
        self, imports: list[UnresolvedImport], options: TransformOptions
    ) -> list[ImportTransform]:
        """Compute replacements for imports once item locations are known."""

    def load_alias_matcher(self, cwd: Path) -> PathsMatcher | None:
        """Matcher for project path aliases, None when the project has none."""
        return None

    def reference_path(self, specifier: str, file_path: Path) -> Path:
        """Absolute path a relative reference in ``file_path`` points at."""
        return Path(os.path.normpath(file_path.parent / specifier))

    def create_template(self) -> Callable[[ResolvedFile], dict[str, Any]]:
        """Builder for the import template recorded on the consuming file."""

        def template(resolved: ResolvedFile) -> dict[str, Any]:
            return {"filePathRelativeToItem": resolved.file.path}

        return template
