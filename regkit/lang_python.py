"""Python import resolution."""

import ast
import os
import re
import sys
from pathlib import Path

from .lang_base import ImportTransform, LanguageResolver, TransformOptions, Warn
from .manifest import UnresolvedImport
from .models import Reference
from .modules import PathsMatcher
from .packages import is_valid_python_name, python_distribution_name
from .pins import find_nearest

_MODULE_NAME = re.compile(r"^[A-Za-z_]\w*(\.[A-Za-z_]\w*)*$")
_DOTS_AND_NAME = re.compile(r"^(\.+)([A-Za-z_]\w*)$")
PROJECT_MARKERS = ("pyproject.toml", "setup.py", "setup.cfg")


def is_builtin(module: str) -> bool:
    top = module.split(".")[0]
    return top in sys.stdlib_module_names or top == "__future__"


def _package_dir(file_path: Path, level: int) -> Path:
    base = file_path.parent
    for _ in range(level - 1):
        base = base.parent
    return base


def _is_import_module_call(node: ast.Call) -> bool:
    func = node.func
    if isinstance(func, ast.Name):
        return func.id in ("import_module", "__import__")
    return (
        isinstance(func, ast.Attribute)
        and func.attr == "import_module"
        and isinstance(func.value, ast.Name)
        and func.value.id == "importlib"
    )


def _dotted_module(file_path: str) -> str:
    """``pkg/mod.py`` -> ``pkg.mod``; ``pkg/__init__.py`` -> ``pkg``."""
    parts = file_path.removesuffix(".py").split("/")
    if parts[-1] == "__init__" and len(parts) > 1:
        parts = parts[:-1]
    return ".".join(parts)


def _relative_module(destination: Path, from_dir: Path) -> str:
    relative = Path(os.path.relpath(destination, from_dir)).as_posix()
    if relative == ".":
        return "."
    parts = relative.split("/")
    ups = 0
    while ups < len(parts) and parts[ups] == "..":
        ups += 1
    return "." * (ups + 1) + ".".join(parts[ups:])


class PythonResolver(LanguageResolver):
    """Resolves ``import``/``from ... import`` statements and literal
    ``importlib.import_module`` calls."""

    name = "python"
    ecosystem = "python"
    module_extensions = (".py",)
    index_files = ("__init__.py",)
    compiled_equivalents: dict[str, tuple[str, ...]] = {}
    any_extension = False

    def can_handle(self, file_name: str) -> bool:
        return file_name.endswith(".py")

    def extract_references(
        self, content: str, file_name: str, warn: Warn
    ) -> list[Reference]:
        try:
            tree = ast.parse(content, filename=file_name)
        except SyntaxError as e:
            warn(f"Could not parse {file_name}: {e.msg} (line {e.lineno})")
            return []

        found: list[tuple[int, int, str]] = []

        def add(node: ast.AST, specifier: str) -> None:
            found.append((node.lineno, node.col_offset, specifier))

        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    add(node, alias.name)
            elif isinstance(node, ast.ImportFrom):
                dots = "." * node.level
                if node.module:
                    add(node, dots + node.module)
                    continue
                # from . import name: name may be a submodule or an attribute
                package = _package_dir(Path(file_name), node.level)
                for alias in node.names:
                    if (package / f"{alias.name}.py").is_file() or (
                        package / alias.name
                    ).is_dir():
                        add(node, dots + alias.name)
                    else:
                        add(node, dots)
            elif isinstance(node, ast.Call) and _is_import_module_call(node):
                arg = node.args[0] if node.args else None
                if isinstance(arg, ast.Constant) and isinstance(arg.value, str):
                    add(node, arg.value)
                else:
                    warn(
                        f"Skipped dynamic import in {file_name}:{node.lineno}. "
                        "Only string literal imports can be resolved."
                    )

        references = []
        seen: set[str] = set()
        for _, _, specifier in sorted(found):
            if specifier in seen:
                continue
            seen.add(specifier)
            if specifier.startswith("."):
                references.append(Reference(specifier=specifier, kind="relative"))
            elif not is_builtin(specifier):
                references.append(Reference(specifier=specifier, kind="external"))
        return references

    def reference_path(self, specifier: str, file_path: Path) -> Path:
        rest = specifier.lstrip(".")
        base = _package_dir(file_path, len(specifier) - len(rest))
        return base.joinpath(*rest.split(".")) if rest else base

    def load_alias_matcher(self, cwd: Path) -> PathsMatcher | None:
        # top-level packages live at the project root or under src/
        marker = find_nearest(cwd, PROJECT_MARKERS)
        project = marker.parent if marker is not None else cwd
        roots = [root for root in (project, project / "src") if root.is_dir()]

        def matcher(specifier: str) -> list[Path]:
            if not _MODULE_NAME.match(specifier):
                return []
            parts = specifier.split(".")
            return [
                root.joinpath(*parts)
                for root in roots
                if (root / parts[0]).is_dir() or (root / f"{parts[0]}.py").is_file()
            ]

        return matcher

    def package_name(self, specifier: str) -> str | None:
        if not _MODULE_NAME.match(specifier):
            return None
        return python_distribution_name(specifier)

    def is_valid_package_name(self, name: str) -> bool:
        return is_valid_python_name(name)

    def transform_imports(
        self, imports: list[UnresolvedImport], options: TransformOptions
    ) -> list[ImportTransform]:
        transforms = []
        target_dir = options.target_path.parent

        for imp in imports:
            item_path = options.get_item_path(imp.item)
            if item_path is None:
                continue
            file_path = imp.meta.get("filePathRelativeToItem")
            if not file_path:
                continue

            package = (item_path.alias or "").replace("/", ".")
            if _MODULE_NAME.match(package):
                replacement = f"{package}.{_dotted_module(file_path)}"
            else:
                destination = options.cwd / item_path.path / file_path
                if destination.name == "__init__.py":
                    destination = destination.parent
                else:
                    destination = destination.with_suffix("")
                replacement = _relative_module(destination, target_dir)

            literal = re.escape(imp.specifier)
            transforms.append(
                ImportTransform(
                    pattern=re.compile(
                        rf"(?P<pre>\bfrom\s+){literal}(?P<post>\s+import\b)"
                    ),
                    replacement=replacement,
                )
            )

            if not replacement.startswith("."):
                transforms.append(
                    ImportTransform(
                        pattern=re.compile(
                            rf"(?P<pre>\bimport\s+){literal}(?P<post>(?![\w.]))"
                        ),
                        replacement=replacement,
                    )
                )

            bare = _DOTS_AND_NAME.match(imp.specifier)
            if bare is not None:
                dots, name = bare.groups()
                parent = replacement[: -len(name)] if replacement.endswith(name) else "."
                if parent.strip("."):
                    parent = parent.rstrip(".")
                transforms.append(
                    ImportTransform(
                        pattern=re.compile(
                            rf"(?P<pre>\bfrom\s+){re.escape(dots)}"
                            rf"(?P<post>\s+import\s+(?={name}\b))"
                        ),
                        replacement=parent,
                    )
                )

        return transforms
