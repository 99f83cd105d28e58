"""Tests for building registries and writing their outputs."""

import json

import pytest

from regkit.build import build_registry, validate_registry
from regkit.config import OutputConfig, RegistryConfig
from regkit.errors import (
    DuplicateItemNameError,
    IllegalItemNameError,
    InvalidRegistryDependencyError,
    NoFilesError,
    NoListedItemsError,
    RuleViolationError,
    SelfReferenceError,
)
from regkit.manifest import parse_manifest
from regkit.outputs import write_outputs


def registry(items, **fields):
    return RegistryConfig.model_validate({"name": "std", "items": items, **fields})


class TestValidateRegistry:
    """Test structural validation."""

    def test_no_listed_items(self):
        """Should fail when every item is only added when needed."""
        config = registry(
            [{"name": "a", "type": "lib", "add": "when-needed", "files": ["a.ts"]}]
        )

        with pytest.raises(NoListedItemsError):
            validate_registry(config)

    def test_duplicate_names(self):
        """Should fail on two items with the same name."""
        config = registry(
            [
                {"name": "a", "type": "lib", "files": ["a.ts"]},
                {"name": "a", "type": "lib", "files": ["b.ts"]},
            ]
        )

        with pytest.raises(DuplicateItemNameError):
            validate_registry(config)

    @pytest.mark.parametrize("name", ["my item", "registry", "index", ""])
    def test_illegal_names(self, name):
        """Should reject whitespace and reserved names."""
        config = registry([{"name": name, "type": "lib", "files": ["a.ts"]}])

        with pytest.raises(IllegalItemNameError):
            validate_registry(config)

    def test_no_files(self):
        """Should fail on an item without files."""
        config = registry([{"name": "a", "type": "lib", "files": []}])

        with pytest.raises(NoFilesError):
            validate_registry(config)

    def test_self_reference(self):
        """Should fail when an item depends on itself."""
        config = registry(
            [{"name": "a", "type": "lib", "registryDependencies": ["a"], "files": ["a.ts"]}]
        )

        with pytest.raises(SelfReferenceError):
            validate_registry(config)

    def test_self_reference_through_file(self):
        """Should fail when one of an item's files depends on the item."""
        config = registry(
            [
                {
                    "name": "a",
                    "type": "lib",
                    "files": [{"path": "a.ts", "registryDependencies": ["a"]}],
                }
            ]
        )

        with pytest.raises(SelfReferenceError):
            validate_registry(config)

    def test_unknown_registry_dependency(self):
        """Should fail when a declared dependency is not an item."""
        config = registry(
            [{"name": "a", "type": "lib", "registryDependencies": ["b"], "files": ["a.ts"]}]
        )

        with pytest.raises(InvalidRegistryDependencyError):
            validate_registry(config)


class TestBuildRegistry:
    """Test building a manifest from files on disk."""

    def test_build_manifest(self, js_registry):
        """Should build a manifest with folded dependencies and file templates."""
        root, config = js_registry

        result = build_registry(config, root)

        manifest = result.manifest
        assert [item.name for item in manifest.items] == ["math", "stdout"]
        stdout = manifest.get_item("stdout")
        assert stdout.registry_dependencies == ["math"]
        assert [str(dep) for dep in stdout.dependencies] == ["chalk@^5.3.0"]

        print_file, test_file = stdout.files
        assert print_file.source == "src/stdout/print.ts"
        assert print_file.dependencies == []
        assert print_file.imports[0].item == "math"
        assert test_file.role == "test"
        assert [str(dep) for dep in test_file.dev_dependencies] == ["vitest@^1.6.0"]

    def test_serialized_keys(self, js_registry):
        """Should serialize camelCase keys and import templates."""
        root, config = js_registry

        data = build_registry(config, root).manifest.to_dict()

        stdout = data["items"][1]
        assert stdout["registryDependencies"] == ["math"]
        assert stdout["files"][0]["_imports_"] == [
            {
                "import": "../math/add",
                "item": "math",
                "resolver": "javascript",
                "meta": {"filePathRelativeToItem": "add.ts"},
            }
        ]

    def test_rule_errors_abort(self, make_tree, tmp_path):
        """Should raise with every rule error."""
        make_tree({"a.ts": "", "b.ts": ""})
        config = registry(
            [
                {"name": "a", "type": "lib", "registryDependencies": ["b"], "files": ["a.ts"]},
                {"name": "b", "type": "lib", "registryDependencies": ["a"], "files": ["b.ts"]},
            ]
        )

        with pytest.raises(RuleViolationError) as exc_info:
            build_registry(config, tmp_path)

        assert len(exc_info.value.errors) == 2

    def test_rule_config_from_registry(self, make_tree, tmp_path):
        """Should honour rule levels set in the config."""
        make_tree({"a.ts": "", "b.ts": ""})
        config = registry(
            [
                {"name": "a", "type": "lib", "registryDependencies": ["b"], "files": ["a.ts"]},
                {"name": "b", "type": "lib", "registryDependencies": ["a"], "files": ["b.ts"]},
            ],
            rules={"no-circular-dependency": "off"},
        )

        result = build_registry(config, tmp_path)

        assert [item.name for item in result.items] == ["a", "b"]

    def test_prune_unused(self, make_tree, tmp_path):
        """Should drop unused items unless pruning is disabled."""
        make_tree({"a.ts": "", "helper.ts": ""})
        config = registry(
            [
                {"name": "a", "type": "lib", "files": ["a.ts"]},
                {"name": "helper", "type": "lib", "add": "when-needed", "files": ["helper.ts"]},
            ]
        )

        assert [item.name for item in build_registry(config, tmp_path).items] == ["a"]
        assert [
            item.name for item in build_registry(config, tmp_path, prune=False).items
        ] == ["a", "helper"]


class TestOutputs:
    """Test writing built manifests."""

    def test_repository_output(self, js_registry):
        """Should write registry.json without file contents."""
        root, config = js_registry
        manifest = build_registry(config, root).manifest

        written = write_outputs(manifest, [OutputConfig(type="repository")], root)

        assert written == [root / "registry.json"]
        parsed = parse_manifest((root / "registry.json").read_text())
        assert parsed.type == "repository"
        assert all(file.content is None for item in parsed.items for file in item.files)
        assert parsed.get_item("stdout").files[0].source == "src/stdout/print.ts"

    def test_distributed_output(self, js_registry):
        """Should write an index plus one file per item with contents."""
        root, config = js_registry
        manifest = build_registry(config, root).manifest

        write_outputs(manifest, [OutputConfig(type="distributed", dir="public/r")], root)

        out = root / "public/r"
        assert sorted(path.name for path in out.iterdir()) == [
            "math.json",
            "registry.json",
            "stdout.json",
        ]
        index = parse_manifest((out / "registry.json").read_text())
        assert index.type == "distributed"
        math = json.loads((out / "math.json").read_text())
        assert math["files"][0]["content"].startswith("export function add")
        assert "source" not in math["files"][0]

    def test_distributed_output_cleans_previous_build(self, js_registry):
        """Should remove item files of items that no longer exist."""
        root, config = js_registry
        stale = root / "public/r/old.json"
        stale.parent.mkdir(parents=True)
        stale.write_text("{}")

        write_outputs(
            build_registry(config, root).manifest,
            [OutputConfig(type="distributed")],
            root,
        )

        assert not stale.exists()
