"""Version lookup in the nearest project dependency manifest.

Remote dependencies found while building are pinned to the version the
registry project itself declares (package.json, requirements.txt or
pyproject.toml). The same manifests tell the installer which dependencies a
consumer already has.
"""

import json
import logging
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path

from packaging.requirements import InvalidRequirement, Requirement
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.utils import canonicalize_name
from packaging.version import InvalidVersion, Version

from .manifest import RemoteDependency

logger = logging.getLogger(__name__)

PACKAGE_JSON = "package.json"
PYTHON_MANIFESTS = ("pyproject.toml", "requirements.txt")


def find_nearest(start: Path, filenames: tuple[str, ...]) -> Path | None:
    """Walk up from ``start`` until one of ``filenames`` exists."""
    directory = start if start.is_dir() else start.parent
    for candidate in (directory, *directory.parents):
        for filename in filenames:
            path = candidate / filename
            if path.is_file():
                return path
    return None


class RequirementsParser:
    """Parser for the registry entries of a requirements.txt file."""

    def __init__(self):
        self.skip_patterns = [
            r"^\s*#",  # Comment lines
            r"^-e\s+",  # Editable installs
            r"^(git|hg|svn|bzr)\+",  # VCS URLs
            r"^(https?|file)://",  # Direct URLs
            r"^\./",  # Local paths
            r"^-[rcf]\s+",  # Includes, constraints and find links
            r"^--",  # Other pip options
        ]

    def _should_skip_line(self, line: str) -> bool:
        stripped = line.strip()
        if not stripped:
            return True

        return any(re.match(pattern, stripped) for pattern in self.skip_patterns)

    def parse(self, content: str) -> dict[str, str | None]:
        """Parse requirements.txt content.

        Args:
            content: The requirements.txt file content

        Returns:
            Canonical package name mapped to its specifier (None when unpinned)
        """
        declared: dict[str, str | None] = {}

        for line in content.splitlines():
            if self._should_skip_line(line):
                continue

            requirement = _parse_requirement(line.split("#")[0].strip())
            if requirement is not None:
                declared[canonicalize_name(requirement.name)] = (
                    str(requirement.specifier) or None
                )

        return declared


def _parse_requirement(line: str) -> Requirement | None:
    try:
        return Requirement(line)
    except InvalidRequirement:
        # Malformed lines are not ours to report
        return None


@dataclass
class DeclaredDependency:
    version: str | None
    dev: bool = False


Declared = dict[str, DeclaredDependency]


def _declare(declared: Declared, lines: list[str], dev: bool) -> None:
    for line in lines:
        requirement = _parse_requirement(line)
        if requirement is not None:
            declared[canonicalize_name(requirement.name)] = DeclaredDependency(
                str(requirement.specifier) or None, dev
            )


def parse_pyproject(content: str) -> Declared:
    """Collect [project] dependencies; optional dependencies count as dev."""
    project = tomllib.loads(content).get("project", {})
    declared: Declared = {}
    for extra in project.get("optional-dependencies", {}).values():
        _declare(declared, extra, dev=True)
    _declare(declared, project.get("dependencies", []), dev=False)
    return declared


def parse_package_json(content: str) -> Declared:
    data = json.loads(content)
    declared: Declared = {}
    for key, dev in (("devDependencies", True), ("dependencies", False)):
        for name, version in (data.get(key) or {}).items():
            declared[name] = DeclaredDependency(version, dev)
    return declared


def load_declared(start: Path, ecosystem: str) -> Declared:
    """Dependencies declared by the manifest nearest to ``start``.

    Returns an empty mapping when there is no manifest or it can't be read.
    """
    if ecosystem == "js":
        path = find_nearest(start, (PACKAGE_JSON,))
    elif ecosystem == "python":
        path = find_nearest(start, PYTHON_MANIFESTS)
    else:
        return {}

    if path is None:
        return {}

    try:
        content = path.read_text()
        if path.name == PACKAGE_JSON:
            return parse_package_json(content)
        if path.name == "pyproject.toml":
            return parse_pyproject(content)
        return {
            name: DeclaredDependency(version)
            for name, version in RequirementsParser().parse(content).items()
        }
    except (OSError, ValueError) as e:
        # json and toml decode errors are ValueErrors
        logger.warning("Could not read %s: %s", path, e)
        return {}


class VersionPinner:
    """Pins remote dependencies using the nearest dependency manifest.

    Manifests are read once per directory.
    """

    def __init__(self):
        self._cache: dict[tuple[Path, str], Declared] = {}

    def declared(self, start: Path, ecosystem: str) -> Declared:
        directory = start if start.is_dir() else start.parent
        key = (directory, ecosystem)
        if key not in self._cache:
            self._cache[key] = load_declared(directory, ecosystem)
        return self._cache[key]

    def pin(
        self, dependency: RemoteDependency, start: Path
    ) -> tuple[RemoteDependency, bool]:
        """Fill in the version of ``dependency`` when the project declares it.

        Returns:
            The dependency and whether the project declares it as a dev
            dependency
        """
        declared = self.declared(start, dependency.ecosystem).get(
            _lookup_name(dependency)
        )
        if declared is None:
            return dependency, False
        if dependency.version or declared.version is None:
            return dependency, declared.dev
        return dependency.model_copy(update={"version": declared.version}), declared.dev


def _lookup_name(dependency: RemoteDependency) -> str:
    if dependency.ecosystem == "python":
        return canonicalize_name(dependency.name)
    return dependency.name


def _python_satisfied(wanted: str | None, declared: str | None) -> bool:
    """Whether a declared python requirement already covers ``wanted``."""
    if not wanted or not declared:
        return True
    try:
        if wanted.startswith("=="):
            return Version(wanted[2:]) in SpecifierSet(declared)
        # Two ranges; only identical ones are known to agree
        return SpecifierSet(wanted) == SpecifierSet(declared)
    except (InvalidVersion, InvalidSpecifier):
        return False


def should_install(
    dependencies: list[RemoteDependency], cwd: Path
) -> list[RemoteDependency]:
    """Filter out dependencies the consumer already declares.

    Args:
        dependencies: Dependencies required by installed items
        cwd: Consumer project root

    Returns:
        Dependencies still missing from the consumer's manifests
    """
    pinner = VersionPinner()
    missing: list[RemoteDependency] = []

    for dependency in dependencies:
        declared = pinner.declared(cwd, dependency.ecosystem).get(
            _lookup_name(dependency)
        )
        if declared is not None and (
            dependency.ecosystem != "python"
            or _python_satisfied(dependency.version, declared.version)
        ):
            continue
        missing.append(dependency)

    return missing
