"""Pytest configuration and fixtures."""

import json

import pytest

from regkit.config import RegistryConfig


def write_tree(root, files):
    """Write ``{relative path: content}`` under ``root``."""
    for path, content in files.items():
        target = root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    return root


@pytest.fixture
def make_tree(tmp_path):
    """Create files below tmp_path (or a given root)."""

    def make(files, root=None):
        return write_tree(root or tmp_path, files)

    return make


@pytest.fixture
def sample_package_json():
    """Sample package.json content for testing."""
    return json.dumps(
        {
            "name": "test-registry",
            "dependencies": {"chalk": "^5.3.0"},
            "devDependencies": {"vitest": "^1.6.0"},
        }
    )


@pytest.fixture
def js_registry(tmp_path, sample_package_json):
    """A registry where `stdout` imports a file of `math`."""
    root = tmp_path / "registry"
    write_tree(
        root,
        {
            "package.json": sample_package_json,
            "src/math/add.ts": "export function add(a: number, b: number) {\n"
            "\treturn a + b;\n}\n",
            "src/stdout/print.ts": "import { add } from '../math/add';\n"
            "import chalk from 'chalk';\n\n"
            "export const print = (a: number, b: number) => "
            "console.log(chalk.green(add(a, b)));\n",
            "src/stdout/print.test.ts": "import { it } from 'vitest';\n"
            "import { print } from './print';\n\n"
            "it('prints', () => print(1, 2));\n",
        },
    )
    config = RegistryConfig.model_validate(
        {
            "name": "std",
            "items": [
                {"name": "math", "type": "utils", "files": ["src/math/add.ts"]},
                {
                    "name": "stdout",
                    "type": "utils",
                    "files": [
                        "src/stdout/print.ts",
                        {"path": "src/stdout/print.test.ts", "role": "test"},
                    ],
                },
            ],
        }
    )
    return root, config
