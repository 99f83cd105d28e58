"""Tests for language resolvers and module lookup."""

import json

import pytest

from regkit.lang_base import TransformOptions
from regkit.lang_javascript import JavaScriptResolver, import_path, strip_comments
from regkit.lang_python import PythonResolver
from regkit.languages import find_language, language_by_name
from regkit.manifest import UnresolvedImport
from regkit.models import ItemPath
from regkit.modules import (
    create_paths_matcher,
    load_paths_matcher,
    search_for_module,
    strip_json_comments,
)


def references(resolver, content, file_name="src/a.ts"):
    warnings = []
    found = resolver.extract_references(content, file_name, warnings.append)
    return [(ref.specifier, ref.kind) for ref in found], warnings


def apply_all(transforms, content):
    for transform in transforms:
        content = transform.apply(content)
    return content


class TestJavaScriptResolver:
    """Test JavaScript and TypeScript import handling."""

    def setup_method(self):
        """Setup test fixtures."""
        self.resolver = JavaScriptResolver()

    def test_can_handle(self):
        """Should claim script files only."""
        assert self.resolver.can_handle("src/button.tsx")
        assert self.resolver.can_handle("index.mjs")
        assert not self.resolver.can_handle("README.md")

    def test_extract_references(self):
        """Should classify imports, re-exports and requires in source order."""
        content = """// import nope from 'commented';
import fs from 'node:fs';
import path from 'path';
import { a } from './a';
import type { Props } from './types';
export * from './b';
export { c } from "../c";
import { utils } from '$lib/utils';
const merge = require('lodash/merge');
const e = await import('./e');
/* import g from 'g'; */
"""

        found, warnings = references(self.resolver, content)

        assert found == [
            ("./a", "relative"),
            ("./types", "relative"),
            ("./b", "relative"),
            ("../c", "relative"),
            ("$lib/utils", "alias"),
            ("lodash/merge", "external"),
            ("./e", "relative"),
        ]
        assert warnings == []

    def test_scoped_package(self):
        """Should treat scoped package imports as external."""
        found, _ = references(self.resolver, "import { z } from '@scope/pkg/sub';")

        assert found == [("@scope/pkg/sub", "external")]
        assert self.resolver.package_name("@scope/pkg/sub") == "@scope/pkg"

    def test_dynamic_import_warns(self):
        """Should warn about dynamic imports that aren't literals."""
        content = "const mod = await import(name);\nconst other = await import(`./x`);"

        found, warnings = references(self.resolver, content)

        assert found == [("./x", "relative")]
        assert len(warnings) == 1
        assert "src/a.ts:1" in warnings[0]

    def test_duplicate_imports(self):
        """Should report each specifier once."""
        content = "import { a } from './a';\nimport { b } from './a';"

        assert self.resolver.get_imports(content, "a.ts", print) == ["./a"]

    def test_strip_comments_keeps_strings(self):
        """Should leave comment markers inside strings alone."""
        code = "const url = 'http://example.com'; // trailing"

        assert strip_comments(code).rstrip() == "const url = 'http://example.com';"

    def test_transform_relative(self, tmp_path):
        """Should point the import at where the item was installed."""
        imports = [
            UnresolvedImport(
                specifier="../math/add",
                item="math",
                meta={"filePathRelativeToItem": "add.ts"},
            )
        ]
        options = TransformOptions(
            cwd=tmp_path,
            target_path=tmp_path / "src/io/print.ts",
            get_item_path=lambda item: ItemPath("src/lib/math"),
        )

        transforms = self.resolver.transform_imports(imports, options)

        assert (
            apply_all(transforms, "import { add } from '../math/add';")
            == "import { add } from '../lib/math/add';"
        )

    def test_transform_keeps_extension_style(self, tmp_path):
        """Should keep a .js extension written in the original import."""
        imports = [
            UnresolvedImport(
                specifier="../math/add.js",
                item="math",
                meta={"filePathRelativeToItem": "add.ts"},
            )
        ]
        options = TransformOptions(
            cwd=tmp_path,
            target_path=tmp_path / "src/print.ts",
            get_item_path=lambda item: ItemPath("src"),
        )

        transforms = self.resolver.transform_imports(imports, options)

        assert apply_all(transforms, 'import "../math/add.js";') == 'import "./add.js";'

    @pytest.mark.parametrize(
        ("specifier", "file_path", "expected"),
        [
            ("../math/add", "add.ts", "add"),
            ("../math/add.js", "add.ts", "add.js"),
            ("../math/add.ts", "lib/add.ts", "lib/add.ts"),
            ("../math/date.utils", "date.utils.ts", "date.utils"),
            ("../math/date.utils.js", "date.utils.ts", "date.utils.js"),
            ("./button.svelte", "button.svelte", "button.svelte"),
        ],
    )
    def test_import_path(self, specifier, file_path, expected):
        """Should keep the import's extension style without eating dotted names."""
        assert import_path(specifier, file_path) == expected

    def test_transform_dotted_name(self, tmp_path):
        """Should not treat the last part of a dotted file name as an extension."""
        imports = [
            UnresolvedImport(
                specifier="../math/date.utils",
                item="math",
                meta={"filePathRelativeToItem": "date.utils.ts"},
            )
        ]
        options = TransformOptions(
            cwd=tmp_path,
            target_path=tmp_path / "src/io/print.ts",
            get_item_path=lambda item: ItemPath("src/lib/math"),
        )

        transforms = self.resolver.transform_imports(imports, options)

        assert (
            apply_all(transforms, "import { d } from '../math/date.utils';")
            == "import { d } from '../lib/math/date.utils';"
        )

    def test_transform_alias(self, tmp_path):
        """Should use the alias the item was installed under."""
        imports = [
            UnresolvedImport(
                specifier="$lib/math/add",
                item="math",
                meta={"filePathRelativeToItem": "add.ts"},
            )
        ]
        options = TransformOptions(
            cwd=tmp_path,
            target_path=tmp_path / "src/io/print.ts",
            get_item_path=lambda item: ItemPath("src/utils/math", alias="@/utils/math"),
        )

        transforms = self.resolver.transform_imports(imports, options)

        assert (
            apply_all(transforms, "import { add } from '$lib/math/add';")
            == "import { add } from '@/utils/math/add';"
        )

    def test_transform_unknown_item(self, tmp_path):
        """Should skip imports of items that aren't being installed."""
        imports = [
            UnresolvedImport(
                specifier="../x", item="x", meta={"filePathRelativeToItem": "x.ts"}
            )
        ]
        options = TransformOptions(
            cwd=tmp_path,
            target_path=tmp_path / "a.ts",
            get_item_path=lambda item: None,
        )

        assert self.resolver.transform_imports(imports, options) == []


class TestPythonResolver:
    """Test Python import handling."""

    def setup_method(self):
        """Setup test fixtures."""
        self.resolver = PythonResolver()

    def test_extract_references(self):
        """Should find imports and literal import_module calls."""
        content = """import os
import importlib
import httpx
from .utils import helper
from yaml import safe_load

console = importlib.import_module("rich.console")
plugin = importlib.import_module(name)
"""

        found, warnings = references(self.resolver, content, "pkg/mod.py")

        assert found == [
            ("httpx", "external"),
            (".utils", "relative"),
            ("yaml", "external"),
            ("rich.console", "external"),
        ]
        assert len(warnings) == 1
        assert "pkg/mod.py:8" in warnings[0]

    def test_from_dot_import(self, make_tree, tmp_path):
        """Should tell submodules from attributes in ``from . import``."""
        make_tree({"pkg/helpers.py": "", "pkg/__init__.py": ""})

        found, _ = references(
            self.resolver,
            "from . import helpers, VERSION\n",
            str(tmp_path / "pkg/mod.py"),
        )

        assert sorted(found) == [(".", "relative"), (".helpers", "relative")]

    def test_syntax_error(self):
        """Should warn and return nothing for unparsable files."""
        found, warnings = references(self.resolver, "def broken(:\n", "pkg/bad.py")

        assert found == []
        assert "pkg/bad.py" in warnings[0]

    def test_package_name(self):
        """Should map imports to their distributions."""
        assert self.resolver.package_name("yaml") == "PyYAML"
        assert self.resolver.package_name("httpx._client") == "httpx"
        assert self.resolver.package_name("not-a-module") is None

    def test_reference_path(self, tmp_path):
        """Should resolve dotted relative imports against the package."""
        file_path = tmp_path / "pkg/sub/mod.py"

        assert self.resolver.reference_path(".helpers", file_path) == (
            tmp_path / "pkg/sub/helpers"
        )
        assert self.resolver.reference_path("..core.models", file_path) == (
            tmp_path / "pkg/core/models"
        )
        assert self.resolver.reference_path(".", file_path) == tmp_path / "pkg/sub"

    def test_alias_matcher(self, make_tree, tmp_path):
        """Should resolve first-party packages under the project root or src."""
        make_tree({"pyproject.toml": "", "src/app/__init__.py": ""})

        matcher = self.resolver.load_alias_matcher(tmp_path)

        assert matcher("app.core") == [tmp_path / "src/app/core"]
        assert matcher("requests") == []

    def test_transform_relative(self, tmp_path):
        """Should compute a relative import to the installed module."""
        imports = [
            UnresolvedImport(
                specifier=".add",
                item="math",
                resolver="python",
                meta={"filePathRelativeToItem": "add.py"},
            )
        ]
        options = TransformOptions(
            cwd=tmp_path,
            target_path=tmp_path / "app/io/format.py",
            get_item_path=lambda item: ItemPath("app/math"),
        )

        transforms = self.resolver.transform_imports(imports, options)

        assert (
            apply_all(transforms, "from .add import add\n")
            == "from ..math.add import add\n"
        )

    def test_transform_alias(self, tmp_path):
        """Should use an absolute import when the item has an importable alias."""
        imports = [
            UnresolvedImport(
                specifier=".add",
                item="math",
                resolver="python",
                meta={"filePathRelativeToItem": "add.py"},
            )
        ]
        options = TransformOptions(
            cwd=tmp_path,
            target_path=tmp_path / "src/app/io/format.py",
            get_item_path=lambda item: ItemPath("src/app/math", alias="app/math"),
        )

        transforms = self.resolver.transform_imports(imports, options)

        assert (
            apply_all(transforms, "from .add import add\n")
            == "from app.math.add import add\n"
        )


class TestLanguages:
    """Test resolver lookup."""

    def test_find_language(self):
        """Should pick the resolver by file name."""
        assert find_language("a.ts").name == "javascript"
        assert find_language("a.py").name == "python"
        assert find_language("a.css") is None

    def test_language_by_name(self):
        """Should look resolvers up by name."""
        assert isinstance(language_by_name("python"), PythonResolver)
        assert language_by_name("cobol") is None


class TestModules:
    """Test finding modules on disk and path aliases."""

    def test_search_for_module(self, make_tree, tmp_path):
        """Should try extensions, index files and compiled equivalents."""
        make_tree(
            {
                "src/a.ts": "",
                "src/b.ts": "",
                "src/dir/index.ts": "",
                "src/style.css": "",
            }
        )
        src = tmp_path / "src"

        assert search_for_module(src / "a") == src / "a.ts"
        assert search_for_module(src / "b.js") == src / "b.ts"
        assert search_for_module(src / "dir") == src / "dir/index.ts"
        assert search_for_module(src / "style") == src / "style.css"
        assert search_for_module(src / "missing") is None
        assert search_for_module(tmp_path / "nope/a") is None

    def test_search_without_any_extension(self, make_tree, tmp_path):
        """Should not fall back to other extensions when disabled."""
        make_tree({"pkg/data.json": ""})

        assert (
            search_for_module(
                tmp_path / "pkg/data",
                extensions=(".py",),
                index_files=("__init__.py",),
                any_extension=False,
            )
            is None
        )

    def test_strip_json_comments(self):
        """Should remove comments and trailing commas but keep strings."""
        content = """{
  // compiler settings
  "a": "http://example.com", /* inline */
  "b": [1, 2,],
}"""

        assert json.loads(strip_json_comments(content)) == {
            "a": "http://example.com",
            "b": [1, 2],
        }

    def test_paths_matcher(self, tmp_path):
        """Should prefer the longest matching alias pattern."""
        config = {
            "compilerOptions": {
                "paths": {"$lib/*": ["./src/lib/*"], "@/*": ["./src/*"], "~": ["./src"]}
            }
        }

        matcher = create_paths_matcher(config, tmp_path)

        assert matcher("$lib/utils") == [tmp_path / "src/lib/utils"]
        assert matcher("@/components/button") == [tmp_path / "src/components/button"]
        assert matcher("~") == [tmp_path / "src"]
        assert matcher("./local") == []
        assert matcher("lodash") == []

    def test_base_url(self, tmp_path):
        """Should resolve bare specifiers against baseUrl."""
        matcher = create_paths_matcher({"compilerOptions": {"baseUrl": "src"}}, tmp_path)

        assert matcher("utils/math") == [tmp_path / "src/utils/math"]

    def test_no_aliases(self, tmp_path):
        """Should return None when the config defines no aliases."""
        assert create_paths_matcher({"compilerOptions": {}}, tmp_path) is None

    def test_load_follows_references(self, make_tree, tmp_path):
        """Should apply aliases declared in referenced configs."""
        make_tree(
            {
                "tsconfig.json": json.dumps({"references": [{"path": "./tsconfig.app.json"}]}),
                "tsconfig.app.json": """{
  // app config
  "compilerOptions": {"paths": {"@/*": ["./src/*"]}},
}""",
                "src/main.ts": "",
            }
        )

        matcher = load_paths_matcher(tmp_path / "src/main.ts")

        assert matcher("@/main") == [tmp_path / "src/main"]

    def test_unreadable_config(self, make_tree, tmp_path):
        """Should ignore a config that isn't JSON."""
        make_tree({"tsconfig.json": "{ not json"})

        assert load_paths_matcher(tmp_path) is None
