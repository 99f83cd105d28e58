"""JavaScript and TypeScript import resolution."""

import os
import posixpath
import re
from pathlib import Path, PurePosixPath

from .lang_base import ImportTransform, LanguageResolver, TransformOptions, Warn
from .manifest import UnresolvedImport
from .models import Reference
from .modules import (
    JS_COMPILED_EQUIVALENTS,
    JS_EXTENSIONS,
    JS_INDEX_FILES,
    PathsMatcher,
    load_paths_matcher,
)
from .packages import is_valid_npm_name, parse_package_name

NODE_BUILTINS = frozenset(
    {
        "assert", "assert/strict", "async_hooks", "buffer", "child_process",
        "cluster", "console", "constants", "crypto", "dgram", "diagnostics_channel",
        "dns", "dns/promises", "domain", "events", "fs", "fs/promises", "http",
        "http2", "https", "inspector", "module", "net", "os", "path", "path/posix",
        "path/win32", "perf_hooks", "process", "punycode", "querystring",
        "readline", "readline/promises", "repl", "stream", "stream/consumers",
        "stream/promises", "stream/web", "string_decoder", "sys", "timers",
        "timers/promises", "tls", "trace_events", "tty", "url", "util",
        "util/types", "v8", "vm", "wasi", "worker_threads", "zlib",
    }
)  # fmt: skip

_IMPORT = re.compile(
    r"(?<![.\w$])import\s*(?:type\s+)?(?:[\w*{}\s,$]+?\bfrom\s*)?(['\"])([^'\"\n]+)\1"
)
_EXPORT_FROM = re.compile(
    r"(?<![.\w$])export\s*(?:type\s+)?(?:\*(?:\s*as\s+[\w$]+)?|\{[^}]*\})\s*from\s*"
    r"(['\"])([^'\"\n]+)\1"
)
_REQUIRE = re.compile(r"(?<![.\w$])require\s*\(\s*(['\"])([^'\"\n]+)\1\s*\)")
_DYNAMIC_IMPORT = re.compile(r"(?<![.\w$])import\s*\(")
_LITERAL_ARGUMENT = re.compile(r"\s*(?:(['\"])([^'\"\n]+)\1|`([^`$]*)`)\s*[,)]")


def strip_comments(code: str) -> str:
    """Blank out comments while keeping string literals and offsets."""
    out: list[str] = []
    i = 0
    quote: str | None = None
    while i < len(code):
        char = code[i]
        if quote is not None:
            out.append(char)
            if char == "\\" and i + 1 < len(code):
                out.append(code[i + 1])
                i += 1
            elif char == quote:
                quote = None
        elif char in "'\"`":
            quote = char
            out.append(char)
        elif code.startswith("//", i):
            end = code.find("\n", i)
            end = len(code) if end == -1 else end
            out.append(" " * (end - i))
            i = end
            continue
        elif code.startswith("/*", i):
            end = code.find("*/", i + 2)
            end = len(code) if end == -1 else end + 2
            out.append(re.sub(r"[^\n]", " ", code[i:end]))
            i = end
            continue
        else:
            out.append(char)
        i += 1
    return "".join(out)


def is_builtin(specifier: str) -> bool:
    return specifier.startswith("node:") or specifier in NODE_BUILTINS


def create_import_pattern(literal: str) -> re.Pattern[str]:
    return re.compile(r"(?P<pre>['\"])" + re.escape(literal) + r"(?P<post>(?P=pre))")


def import_path(specifier: str, file_path: str) -> str:
    """Item relative path to import ``file_path`` by, in the style of ``specifier``.

    Imports naming the file exactly keep its name. Otherwise a module
    extension (``./add.js`` for ``add.ts``) is kept and anything else, such as
    the ``.utils`` of ``./date.utils``, is part of the extensionless name.
    """
    file_name = PurePosixPath(file_path).name
    specified = PurePosixPath(specifier)
    if specified.name == file_name:
        return file_path

    stem = file_path.removesuffix(PurePosixPath(file_path).suffix)
    if specified.suffix in JS_EXTENSIONS and specified.stem == PurePosixPath(stem).name:
        return stem + specified.suffix
    return stem


class JavaScriptResolver(LanguageResolver):
    """Resolves ES module imports, re-exports and CommonJS requires."""

    name = "javascript"
    ecosystem = "js"
    module_extensions = JS_EXTENSIONS
    index_files = JS_INDEX_FILES
    compiled_equivalents = JS_COMPILED_EQUIVALENTS

    def can_handle(self, file_name: str) -> bool:
        return PurePosixPath(file_name).suffix in JS_EXTENSIONS

    def get_imports(self, content: str, file_name: str, warn: Warn) -> list[str]:
        """Collect literal module specifiers in source order."""
        code = strip_comments(content)
        found: list[tuple[int, str]] = []

        for pattern in (_IMPORT, _EXPORT_FROM, _REQUIRE):
            for match in pattern.finditer(code):
                found.append((match.start(), match.group(2)))

        for match in _DYNAMIC_IMPORT.finditer(code):
            literal = _LITERAL_ARGUMENT.match(code, match.end())
            if literal is None:
                line = code.count("\n", 0, match.start()) + 1
                warn(
                    f"Skipped dynamic import in {file_name}:{line}. "
                    "Only string literal imports can be resolved."
                )
                continue
            found.append((match.start(), literal.group(2) or literal.group(3)))

        seen: set[str] = set()
        specifiers = []
        for _, specifier in sorted(found):
            if specifier not in seen:
                seen.add(specifier)
                specifiers.append(specifier)
        return specifiers

    def extract_references(
        self, content: str, file_name: str, warn: Warn
    ) -> list[Reference]:
        references = []
        for specifier in self.get_imports(content, file_name, warn):
            if is_builtin(specifier):
                continue
            if specifier.startswith("."):
                kind = "relative"
            elif self.package_name(specifier) is not None:
                kind = "external"
            else:
                kind = "alias"
            references.append(Reference(specifier=specifier, kind=kind))
        return references

    def load_alias_matcher(self, cwd: Path) -> PathsMatcher | None:
        return load_paths_matcher(cwd)

    def package_name(self, specifier: str) -> str | None:
        parsed = parse_package_name(specifier)
        if parsed is None or not is_valid_npm_name(parsed.name):
            return None
        return parsed.name

    def is_valid_package_name(self, name: str) -> bool:
        return is_valid_npm_name(name)

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

            module_path = import_path(imp.specifier, file_path)

            if item_path.alias is None:
                destination = options.cwd / item_path.path / module_path
                relative = Path(os.path.relpath(destination, target_dir)).as_posix()
                replacement = relative if relative.startswith(".") else f"./{relative}"
            else:
                replacement = posixpath.join(item_path.alias, module_path)

            transforms.append(
                ImportTransform(
                    pattern=create_import_pattern(imp.specifier),
                    replacement=replacement,
                )
            )

        return transforms
