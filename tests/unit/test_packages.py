"""Tests for package name parsing and validation."""

import pytest

from regkit.packages import (
    PackageName,
    is_valid_npm_name,
    is_valid_python_name,
    parse_package_name,
    python_distribution_name,
)


class TestParsePackageName:
    """Test splitting npm specifiers."""

    def test_unscoped(self):
        """Should split name and subpath."""
        assert parse_package_name("lodash/merge") == PackageName(
            name="lodash", path="/merge"
        )

    def test_scoped_with_version(self):
        """Should keep the scope as part of the name."""
        assert parse_package_name("@scope/pkg@1.0.0/sub") == PackageName(
            name="@scope/pkg", version="1.0.0", path="/sub"
        )

    def test_bare_scope(self):
        """Should reject a scope without a package."""
        assert parse_package_name("@scope") is None


class TestNpmNames:
    """Test npm name validation."""

    @pytest.mark.parametrize("name", ["chalk", "@scope/pkg", "lodash.merge", "a-b_c"])
    def test_valid(self, name):
        """Should accept publishable names."""
        assert is_valid_npm_name(name)

    @pytest.mark.parametrize(
        "name", ["", "Chalk", ".hidden", "_private", "node_modules", "$lib", "a" * 215]
    )
    def test_invalid(self, name):
        """Should reject names npm won't publish."""
        assert not is_valid_npm_name(name)


class TestPythonNames:
    """Test python distribution names."""

    def test_distribution_name(self):
        """Should map import names to distributions."""
        assert python_distribution_name("yaml") == "PyYAML"
        assert python_distribution_name("google.protobuf.message") == "protobuf"
        assert python_distribution_name("httpx._client") == "httpx"

    def test_valid_name(self):
        """Should accept bare distribution names only."""
        assert is_valid_python_name("httpx")
        assert is_valid_python_name("typing_extensions")
        assert not is_valid_python_name("httpx>=0.25")
        assert not is_valid_python_name("not valid")
