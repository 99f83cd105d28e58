"""Error types raised by RegKit.

Every failure the library reports is a ``RegkitError``. Library code raises;
the CLI catches ``RegkitError`` at the command boundary and prints it.
"""

from pathlib import Path


class RegkitError(Exception):
    """Base error for RegKit."""

    code: str = "UNKNOWN"

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}\n{self.suggestion}"
        return self.message


class ConfigError(RegkitError):
    """Config file missing or invalid."""

    code = "CONFIG_ERROR"


class InvalidJSONError(RegkitError):
    code = "INVALID_JSON"


# Build errors


class BuildError(RegkitError):
    """An error raised while building a registry."""

    code = "BUILD_ERROR"

    def __init__(
        self, message: str, registry_name: str, suggestion: str | None = None
    ) -> None:
        super().__init__(message, suggestion)
        self.registry_name = registry_name


class NoListedItemsError(BuildError):
    code = "NO_LISTED_ITEMS"

    def __init__(self, registry_name: str) -> None:
        super().__init__(
            f"No items were listed in the registry {registry_name}.",
            registry_name,
            "Set `add: when-added` on at least one item so consumers can add it.",
        )


class DuplicateItemNameError(BuildError):
    code = "DUPLICATE_ITEM_NAME"

    def __init__(self, name: str, registry_name: str) -> None:
        super().__init__(
            f"Duplicate item name `{name}` in registry {registry_name}.",
            registry_name,
            "Item names must be unique within a registry.",
        )
        self.name = name


class SelfReferenceError(BuildError):
    code = "SELF_REFERENCE"

    def __init__(self, name: str, registry_name: str) -> None:
        super().__init__(
            f"Item `{name}` lists itself as a registry dependency.",
            registry_name,
            "Remove the item from its own registryDependencies.",
        )
        self.name = name


class NoFilesError(BuildError):
    code = "NO_FILES"

    def __init__(self, name: str, registry_name: str) -> None:
        super().__init__(
            f"Item `{name}` has no files.", registry_name, "Add at least one file."
        )
        self.name = name


class IllegalItemNameError(BuildError):
    code = "ILLEGAL_ITEM_NAME"

    def __init__(self, name: str, registry_name: str) -> None:
        super().__init__(
            f"Item name `{name}` is not allowed.",
            registry_name,
            "Item names cannot contain whitespace or use a reserved name.",
        )
        self.name = name


class InvalidRegistryDependencyError(BuildError):
    code = "INVALID_REGISTRY_DEPENDENCY"

    def __init__(self, dependency: str, item: str, registry_name: str) -> None:
        super().__init__(
            f"Item `{item}` depends on `{dependency}` which is not an item in "
            f"registry {registry_name}.",
            registry_name,
            f"Add an item named `{dependency}` or remove the dependency.",
        )
        self.dependency = dependency
        self.item = item


class ItemFileNotFoundError(BuildError):
    code = "FILE_NOT_FOUND"

    def __init__(self, path: Path, item: str, registry_name: str) -> None:
        super().__init__(
            f"File `{path}` listed by item `{item}` does not exist.",
            registry_name,
            "Check the file path in your config.",
        )
        self.path = path
        self.item = item


class DuplicateFileReferenceError(BuildError):
    code = "DUPLICATE_FILE_REFERENCE"

    def __init__(
        self, path: Path, item: str, duplicate_item: str, registry_name: str
    ) -> None:
        super().__init__(
            f"File `{path}` is referenced by both `{item}` and `{duplicate_item}`.",
            registry_name,
            "A file can only belong to one item.",
        )
        self.path = path
        self.item = item
        self.duplicate_item = duplicate_item


class ImportedFileNotResolvedError(BuildError):
    code = "IMPORTED_FILE_NOT_RESOLVED"

    def __init__(
        self, specifier: str, file_path: Path, item: str, registry_name: str
    ) -> None:
        super().__init__(
            f"Could not resolve `{specifier}` imported by `{file_path}` "
            f"(item `{item}`).",
            registry_name,
            "Add the imported file to an item, or set `strict: false` on the item "
            "to skip unresolved imports.",
        )
        self.specifier = specifier
        self.file_path = file_path
        self.item = item


class InvalidDependencyError(BuildError):
    code = "INVALID_DEPENDENCY"

    def __init__(
        self, specifier: str, file_path: Path, item: str, registry_name: str
    ) -> None:
        super().__init__(
            f"`{specifier}` imported by `{file_path}` is not a valid package name "
            "or path alias.",
            registry_name,
            "Set `strict: false` on the item to skip invalid imports.",
        )
        self.specifier = specifier
        self.file_path = file_path
        self.item = item


class RuleViolationError(BuildError):
    code = "RULE_VIOLATION"

    def __init__(self, errors: list[str], registry_name: str) -> None:
        super().__init__(
            f"{len(errors)} rule error(s) in registry {registry_name}:\n"
            + "\n".join(f"  - {error}" for error in errors),
            registry_name,
        )
        self.errors = errors


# Provider errors


class ProviderFetchError(RegkitError):
    """A provider failed to fetch a resource from a registry."""

    code = "PROVIDER_FETCH"

    def __init__(
        self, message: str, registry_url: str, resource_path: str | None = None
    ) -> None:
        where = f"{registry_url}/{resource_path}" if resource_path else registry_url
        super().__init__(f"Error fetching {where}: {message}")
        self.reason = message
        self.registry_url = registry_url
        self.resource_path = resource_path


class ManifestFetchError(ProviderFetchError):
    code = "MANIFEST_FETCH"


class RegistryFileFetchError(ProviderFetchError):
    code = "REGISTRY_FILE_FETCH"


class InvalidRegistryError(RegkitError):
    code = "INVALID_REGISTRY"

    def __init__(self, registry: str) -> None:
        super().__init__(
            f"`{registry}` is not a registry any provider understands.",
            "Use a github/, gitlab/, fs:// or http(s):// registry url.",
        )
        self.registry = registry


# Install errors


class RegistryNotProvidedError(RegkitError):
    code = "REGISTRY_NOT_PROVIDED"

    def __init__(self, item: str) -> None:
        super().__init__(
            f"No registry was provided for `{item}`.",
            "Pass a fully qualified item or configure `registries`.",
        )
        self.item = item


class RegistryItemNotFoundError(RegkitError):
    code = "ITEM_NOT_FOUND"

    def __init__(self, item: str, registry: str | None = None) -> None:
        where = f" in {registry}" if registry else " in any configured registry"
        super().__init__(f"Item `{item}` was not found{where}.")
        self.item = item
        self.registry = registry


class MultipleRegistriesError(RegkitError):
    code = "MULTIPLE_REGISTRIES"

    def __init__(self, item: str, registries: list[str]) -> None:
        super().__init__(
            f"Item `{item}` exists in multiple registries: {', '.join(registries)}.",
            f"Qualify the item, e.g. `{registries[0]}/{item}`.",
        )
        self.item = item
        self.registries = registries


class NoPathProvidedError(RegkitError):
    code = "NO_PATH_PROVIDED"

    def __init__(self, item: str, item_type: str) -> None:
        super().__init__(
            f"No install path was configured for `{item}` (type `{item_type}`).",
            f"Add `{item_type}` to `paths` in regkit.yaml.",
        )
        self.item = item
        self.item_type = item_type
