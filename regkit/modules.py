"""Locating referenced modules on disk and resolving project path aliases."""

import json
import logging
import os
import re
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger(__name__)

PathsMatcher = Callable[[str], list[Path]]

JS_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mts", ".mjs", ".cts", ".cjs")
JS_INDEX_FILES = tuple(f"index{ext}" for ext in JS_EXTENSIONS)
# A reference to the compiled file should find the source it's built from
JS_COMPILED_EQUIVALENTS = {
    ".js": (".ts", ".tsx"),
    ".jsx": (".tsx",),
    ".mjs": (".mts",),
    ".cjs": (".cts",),
}

TSCONFIG_FILES = ("tsconfig.json", "jsconfig.json")


def search_for_module(
    module_path: Path,
    extensions: tuple[str, ...] = JS_EXTENSIONS,
    index_files: tuple[str, ...] = JS_INDEX_FILES,
    compiled_equivalents: dict[str, tuple[str, ...]] | None = None,
    any_extension: bool = True,
) -> Path | None:
    """Find the file a module path refers to.

    Tries, in order: the exact path (a directory resolves to its index
    file), the source file for a compiled extension, the path with each of
    ``extensions`` appended, then any file in the parent directory with the
    same stem when ``any_extension`` is set.

    Args:
        module_path: Absolute path as written in the reference
        extensions: Extensions to try for extensionless references
        index_files: Files that make a directory importable
        compiled_equivalents: Compiled extension mapped to source extensions
        any_extension: Fall back to any file sharing the stem

    Returns:
        Absolute path of the file, or None
    """
    if compiled_equivalents is None:
        compiled_equivalents = JS_COMPILED_EQUIVALENTS

    if module_path.exists():
        if module_path.is_file():
            return module_path
        for index in index_files:
            candidate = module_path / index
            if candidate.is_file():
                return candidate
        return None

    containing = module_path.parent
    if not containing.is_dir():
        return None

    for source_ext in compiled_equivalents.get(module_path.suffix, ()):
        candidate = module_path.with_suffix(source_ext)
        if candidate.is_file():
            return candidate

    for ext in extensions:
        candidate = containing / f"{module_path.name}{ext}"
        if candidate.is_file():
            return candidate

    if not any_extension:
        return None

    for entry in sorted(containing.iterdir()):
        if entry.is_file() and entry.stem == module_path.name:
            return entry

    return None


def strip_json_comments(content: str) -> str:
    """Remove // and /* */ comments and trailing commas from JSONC."""
    out: list[str] = []
    i = 0
    in_string = False
    while i < len(content):
        char = content[i]
        if in_string:
            out.append(char)
            if char == "\\" and i + 1 < len(content):
                out.append(content[i + 1])
                i += 1
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
            out.append(char)
        elif content.startswith("//", i):
            end = content.find("\n", i)
            i = len(content) if end == -1 else end
            continue
        elif content.startswith("/*", i):
            end = content.find("*/", i + 2)
            i = len(content) if end == -1 else end + 2
            continue
        else:
            out.append(char)
        i += 1
    return re.sub(r",(\s*[}\]])", r"\1", "".join(out))


def _read_tsconfig(path: Path) -> dict | None:
    try:
        return json.loads(strip_json_comments(path.read_text()))
    except (OSError, ValueError) as e:
        logger.warning("Could not read %s: %s", path, e)
        return None


def _find_tsconfig(start: Path) -> Path | None:
    directory = start if start.is_dir() else start.parent
    for candidate in (directory, *directory.parents):
        for filename in TSCONFIG_FILES:
            path = candidate / filename
            if path.is_file():
                return path
    return None


def create_paths_matcher(config: dict, config_dir: Path) -> PathsMatcher | None:
    """Build a matcher from ``compilerOptions.paths`` and ``baseUrl``.

    Args:
        config: Parsed tsconfig/jsconfig
        config_dir: Directory holding the config

    Returns:
        Callable returning candidate absolute paths for a specifier, or None
        when the config defines no aliases
    """
    options = config.get("compilerOptions") or {}
    base_url = options.get("baseUrl")
    paths: dict[str, list[str]] = options.get("paths") or {}
    if base_url is None and not paths:
        return None

    root = (config_dir / base_url) if base_url is not None else config_dir

    def matcher(specifier: str) -> list[Path]:
        if specifier.startswith("."):
            return []

        if specifier in paths:
            return [Path(os.path.normpath(root / target)) for target in paths[specifier]]

        best: tuple[str, str] | None = None
        for pattern in paths:
            if pattern.count("*") != 1:
                continue
            prefix, suffix = pattern.split("*")
            if (
                specifier.startswith(prefix)
                and specifier.endswith(suffix)
                and len(specifier) >= len(prefix) + len(suffix)
                and (best is None or len(prefix) > len(best[0]))
            ):
                best = (prefix, pattern)

        if best is not None:
            prefix, pattern = best
            suffix = pattern[len(prefix) + 1 :]
            star = specifier[len(prefix) : len(specifier) - len(suffix)]
            return [
                Path(os.path.normpath(root / target.replace("*", star)))
                for target in paths[pattern]
            ]

        if base_url is not None:
            return [Path(os.path.normpath(root / specifier))]
        return []

    return matcher


def load_paths_matcher(start: Path) -> PathsMatcher | None:
    """Load the path alias matcher for the project containing ``start``.

    Follows ``references`` so aliases of referenced configs apply too. A
    config that can't be parsed is logged and ignored.
    """
    config_path = _find_tsconfig(start)
    if config_path is None:
        return None
    return _load_matcher(config_path, set())


def _load_matcher(config_path: Path, seen: set[Path]) -> PathsMatcher | None:
    if config_path in seen:
        return None
    seen.add(config_path)

    config = _read_tsconfig(config_path)
    if config is None:
        return None

    matchers = []
    own = create_paths_matcher(config, config_path.parent)
    if own is not None:
        matchers.append(own)

    for reference in config.get("references") or []:
        ref_path = config_path.parent / reference.get("path", "")
        if ref_path.is_dir():
            ref_path = ref_path / "tsconfig.json"
        if not ref_path.is_file():
            continue
        ref_matcher = _load_matcher(ref_path, seen)
        if ref_matcher is not None:
            matchers.append(ref_matcher)

    if not matchers:
        return None
    if len(matchers) == 1:
        return matchers[0]
    return lambda specifier: [path for m in matchers for path in m(specifier)]
