"""Tests for CLI functionality."""

import json

from typer.testing import CliRunner

from regkit.config import load_config
from regkit_apps.cli.main import app

REGISTRY_CONFIG = """
registry:
  name: std
  items:
    - name: math
      type: utils
      files: [src/math/add.ts]
    - name: stdout
      type: utils
      files: [src/stdout/print.ts]
"""

REGISTRY_FILES = {
    "package.json": json.dumps({"dependencies": {"chalk": "^5.3.0"}}),
    "src/math/add.ts": "export function add(a: number, b: number) {\n\treturn a + b;\n}\n",
    "src/stdout/print.ts": (
        "import chalk from 'chalk';\n"
        "import { add } from '../math/add';\n\n"
        "export function print(a: number, b: number) {\n"
        "\tconsole.log(chalk.green(add(a, b)));\n"
        "}\n"
    ),
}


class TestCLI:
    """Test CLI command interface."""

    def setup_method(self):
        """Setup test fixtures."""
        self.runner = CliRunner()

    def build(self, make_tree, root):
        make_tree({**REGISTRY_FILES, "regkit.yaml": REGISTRY_CONFIG}, root)
        return self.runner.invoke(app, ["build", "--cwd", str(root)])

    def test_cli_help_command(self):
        """Should display help when called with --help."""
        result = self.runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "build" in result.output
        assert "add" in result.output

    def test_build(self, make_tree, tmp_path):
        """Should write registry.json for the registry in --cwd."""
        root = tmp_path / "registry"

        result = self.build(make_tree, root)

        assert result.exit_code == 0
        manifest = json.loads((root / "registry.json").read_text())
        assert [item["name"] for item in manifest["items"]] == ["math", "stdout"]
        assert "Wrote registry.json" in result.output

    def test_build_without_config(self, tmp_path):
        """Should exit with an error when regkit.yaml is missing."""
        result = self.runner.invoke(app, ["build", "--cwd", str(tmp_path)])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_build_without_registry_section(self, make_tree, tmp_path):
        """Should exit with an error when there is no registry to build."""
        make_tree({"regkit.yaml": "registries: [github/ieedan/std]\n"})

        result = self.runner.invoke(app, ["build", "--cwd", str(tmp_path)])

        assert result.exit_code == 1
        assert "registry" in result.output

    def test_build_rule_errors(self, make_tree, tmp_path):
        """Should exit with an error when the build fails validation."""
        make_tree(
            {
                "a.ts": "",
                "regkit.yaml": (
                    "registry:\n  name: std\n  items:\n"
                    "    - {name: a, type: lib, files: [a.ts], registryDependencies: [a]}\n"
                ),
            }
        )

        result = self.runner.invoke(app, ["build", "--cwd", str(tmp_path)])

        assert result.exit_code == 1
        assert not (tmp_path / "registry.json").exists()

    def test_add(self, make_tree, tmp_path):
        """Should add an item and its dependencies from a local registry."""
        root = tmp_path / "registry"
        assert self.build(make_tree, root).exit_code == 0
        project = tmp_path / "project"
        make_tree({"regkit.yaml": "paths:\n  utils: src/utils\n"}, project)

        result = self.runner.invoke(
            app,
            ["add", "stdout", "--registry", f"fs://{root}", "--yes", "--cwd", str(project)],
        )

        assert result.exit_code == 0
        assert (project / "src/utils/add.ts").exists()
        printed = (project / "src/utils/print.ts").read_text()
        assert "from './add'" in printed
        assert "chalk@^5.3.0" in result.output

    def test_add_skips_changed_files(self, make_tree, tmp_path):
        """Should leave locally changed files alone when not prompting."""
        root = tmp_path / "registry"
        assert self.build(make_tree, root).exit_code == 0
        project = tmp_path / "project"
        make_tree(
            {
                "regkit.yaml": "paths:\n  utils: src/utils\n",
                "src/utils/add.ts": "// mine\n",
            },
            project,
        )

        result = self.runner.invoke(
            app, ["add", f"fs://{root}/math", "--yes", "--cwd", str(project)]
        )

        assert result.exit_code == 0
        assert (project / "src/utils/add.ts").read_text() == "// mine\n"
        assert "Skipped" in result.output

    def test_add_without_registry(self, tmp_path):
        """Should exit with an error when an item has no registry."""
        result = self.runner.invoke(app, ["add", "math", "--yes", "--cwd", str(tmp_path)])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_add_unknown_role(self, tmp_path):
        """Should reject roles that can't be added."""
        result = self.runner.invoke(
            app, ["add", "math", "--with", "styles", "--cwd", str(tmp_path)]
        )

        assert result.exit_code == 1
        assert "Unknown role" in result.output

    def test_add_with_example(self, make_tree, tmp_path):
        """Should add items that only the requested example files need."""
        root = tmp_path / "registry"
        make_tree(
            {
                "src/ui/button.ts": "export const button = 1;\n",
                "src/ui/button.example.ts": "import { help } from '../utils/helper';\n",
                "src/utils/helper.ts": "export const help = 1;\n",
                "regkit.yaml": (
                    "registry:\n  name: std\n  items:\n"
                    "    - name: button\n      type: ui\n      files:\n"
                    "        - src/ui/button.ts\n"
                    "        - {path: src/ui/button.example.ts, role: example}\n"
                    "    - {name: helper, type: utils, add: when-needed,"
                    " files: [src/utils/helper.ts]}\n"
                ),
            },
            root,
        )
        assert self.runner.invoke(app, ["build", "--cwd", str(root)]).exit_code == 0
        project = tmp_path / "project"
        make_tree({"regkit.yaml": "paths:\n  ui: src/ui\n  utils: src/utils\n"}, project)

        result = self.runner.invoke(
            app,
            ["add", f"fs://{root}/button", "--with", "example", "--yes", "--cwd", str(project)],
        )

        assert result.exit_code == 0
        assert (project / "src/ui/button.example.ts").exists()
        assert (project / "src/utils/helper.ts").exists()

    def test_update(self, make_tree, tmp_path):
        """Should overwrite installed items that changed locally when asked to."""
        root = tmp_path / "registry"
        assert self.build(make_tree, root).exit_code == 0
        project = tmp_path / "project"
        make_tree(
            {
                "regkit.yaml": f"registries: ['fs://{root}']\npaths:\n  utils: src/utils\n",
                "src/utils/add.ts": "// mine\n",
            },
            project,
        )

        result = self.runner.invoke(
            app, ["update", "--yes", "--overwrite", "--cwd", str(project)]
        )

        assert result.exit_code == 0
        assert "return a + b" in (project / "src/utils/add.ts").read_text()
        assert not (project / "src/utils/print.ts").exists()

    def test_update_skips_changed_files(self, make_tree, tmp_path):
        """Should keep local changes when not prompting or overwriting."""
        root = tmp_path / "registry"
        assert self.build(make_tree, root).exit_code == 0
        project = tmp_path / "project"
        make_tree(
            {
                "regkit.yaml": "paths:\n  utils: src/utils\n",
                "src/utils/add.ts": "// mine\n",
            },
            project,
        )

        result = self.runner.invoke(
            app,
            ["update", "--registry", f"fs://{root}", "--yes", "--cwd", str(project)],
        )

        assert result.exit_code == 0
        assert (project / "src/utils/add.ts").read_text() == "// mine\n"
        assert "Skipped" in result.output

    def test_update_nothing_installed(self, make_tree, tmp_path):
        """Should report when no item of the registries is installed."""
        root = tmp_path / "registry"
        assert self.build(make_tree, root).exit_code == 0
        project = tmp_path / "project"
        make_tree({"regkit.yaml": "paths:\n  utils: src/utils\n"}, project)

        result = self.runner.invoke(
            app,
            ["update", "--registry", f"fs://{root}", "--yes", "--cwd", str(project)],
        )

        assert result.exit_code == 0
        assert "No installed items" in result.output

    def test_update_without_registries(self, tmp_path):
        """Should exit with an error when there is nothing to update from."""
        result = self.runner.invoke(app, ["update", "--yes", "--cwd", str(tmp_path)])

        assert result.exit_code == 1
        assert "No registries" in result.output

    def test_init(self, make_tree, tmp_path):
        """Should write regkit.yaml and add the registry's on-init items."""
        root = tmp_path / "registry"
        make_tree(
            {
                "src/setup.ts": "export const setup = true;\n",
                "src/theme.ts": "export const theme = 'dark';\n",
                "regkit.yaml": (
                    "registry:\n  name: std\n  defaultPaths:\n    lib: src/lib\n  items:\n"
                    "    - {name: setup, type: lib, add: on-init, files: [src/setup.ts]}\n"
                    "    - {name: theme, type: lib, add: optionally-on-init,"
                    " files: [src/theme.ts]}\n"
                ),
            },
            root,
        )
        assert self.runner.invoke(app, ["build", "--cwd", str(root)]).exit_code == 0
        project = tmp_path / "project"
        project.mkdir()

        result = self.runner.invoke(
            app, ["init", "--registry", f"fs://{root}", "--yes", "--cwd", str(project)]
        )

        assert result.exit_code == 0
        assert (project / "src/lib/setup.ts").exists()
        assert not (project / "src/lib/theme.ts").exists()
        config = load_config(project)
        assert config.registries == [f"fs://{root}"]
        assert config.paths == {"lib": "src/lib"}

    def test_init_without_registries(self, tmp_path):
        """Should write an empty regkit.yaml when no registry is given."""
        result = self.runner.invoke(app, ["init", "--yes", "--cwd", str(tmp_path)])

        assert result.exit_code == 0
        assert (tmp_path / "regkit.yaml").exists()
        assert load_config(tmp_path).registries == []
