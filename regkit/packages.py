"""Package name parsing and validation for the supported ecosystems."""

import re
from dataclasses import dataclass

from packaging.requirements import InvalidRequirement, Requirement

_SCOPED_SPECIFIER = re.compile(r"^(@[^/]+/[^@/]+)(?:@([^/]+))?(/.*)?$")
_UNSCOPED_SPECIFIER = re.compile(r"^([^@/]+)(?:@([^/]+))?(/.*)?$")
_SCOPED_NAME = re.compile(r"^(?:@([^/]+?)/)?([^/]+?)$")
# characters encodeURIComponent leaves alone
_URL_SAFE = re.compile(r"^[A-Za-z0-9\-_.!~*'()]+$")
_NPM_BLOCKLIST = {"node_modules", "favicon.ico"}
_NPM_MAX_LENGTH = 214

# import names whose distribution is published under a different name
PYTHON_DISTRIBUTION_NAMES = {
    "yaml": "PyYAML",
    "bs4": "beautifulsoup4",
    "PIL": "Pillow",
    "cv2": "opencv-python",
    "sklearn": "scikit-learn",
    "dateutil": "python-dateutil",
    "dotenv": "python-dotenv",
    "jwt": "PyJWT",
    "attr": "attrs",
    "google.protobuf": "protobuf",
}


@dataclass
class PackageName:
    """A bare specifier split into its parts, e.g. ``@scope/pkg@1.0/sub``."""

    name: str
    version: str | None = None
    path: str | None = None


def parse_package_name(specifier: str) -> PackageName | None:
    """Split an npm style specifier into name, version and subpath.

    Args:
        specifier: Import specifier such as ``lodash/merge`` or ``@scope/pkg``

    Returns:
        PackageName, or None when the specifier cannot be a package
    """
    pattern = _SCOPED_SPECIFIER if specifier.startswith("@") else _UNSCOPED_SPECIFIER
    match = pattern.match(specifier)
    if not match:
        return None
    name, version, path = match.groups()
    return PackageName(name=name, version=version, path=path)


def is_valid_npm_name(name: str) -> bool:
    """Check that ``name`` could be published as a new npm package."""
    if not name or len(name) > _NPM_MAX_LENGTH:
        return False
    if name != name.strip() or name.startswith((".", "_")):
        return False
    if name.lower() in _NPM_BLOCKLIST or name != name.lower():
        return False
    if re.search(r"[~'!()*]", name.split("/")[-1]):
        return False

    if _URL_SAFE.match(name):
        return True

    match = _SCOPED_NAME.match(name)
    if not match or match.group(1) is None:
        return False
    scope, package = match.groups()
    return bool(_URL_SAFE.match(scope) and _URL_SAFE.match(package))


def python_distribution_name(module: str) -> str:
    """Map an imported module to the distribution that provides it."""
    for import_name, distribution in PYTHON_DISTRIBUTION_NAMES.items():
        if module == import_name or module.startswith(f"{import_name}."):
            return distribution
    return module.split(".")[0]


def is_valid_python_name(name: str) -> bool:
    try:
        req = Requirement(name)
    except InvalidRequirement:
        return False
    return req.name == name
