"""Turning what the user asked for into the full set of items to install."""

import logging
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .errors import (
    MultipleRegistriesError,
    RegistryItemNotFoundError,
    RegistryNotProvidedError,
)
from .manifest import OPTIONAL_ROLES, ManifestItem
from .provider_base import Provider
from .providers import ResolvedRegistry

logger = logging.getLogger(__name__)

# (item name, registry urls) -> chosen registry url
SelectRegistry = Callable[[str, list[str]], str]
# (item name, registry url) -> whether to add it
ConfirmItem = Callable[[str, str], bool]


@dataclass
class WantedItem:
    name: str
    registry_url: str | None = None


@dataclass
class ResolvedWantedItem:
    registry: ResolvedRegistry
    item: ManifestItem

    @property
    def name(self) -> str:
        return self.item.name


def parse_wanted_items(
    specs: list[str], providers: Iterable[Provider], registries: list[str]
) -> tuple[list[WantedItem], list[str]]:
    """Split item specifiers into wanted items and the registries they need.

    ``github/ieedan/std/math`` names the item ``math`` in ``github/ieedan/std``.
    A bare ``math`` is looked up in every configured registry.

    Args:
        specs: Qualified and unqualified item specifiers
        providers: Providers deciding whether a specifier is qualified
        registries: Configured registry urls

    Returns:
        Wanted items and the registry urls to resolve, qualified ones first

    Raises:
        RegistryNotProvidedError: If an unqualified item has no registry to come from
    """
    providers = list(providers)
    wanted = []
    for spec in specs:
        if any(provider.matches(spec) for provider in providers):
            registry_url, _, name = spec.rpartition("/")
            wanted.append(WantedItem(name=name, registry_url=registry_url))
        else:
            wanted.append(WantedItem(name=spec))

    unqualified = [item for item in wanted if item.registry_url is None]
    if unqualified and not registries:
        raise RegistryNotProvidedError(unqualified[0].name)

    needed = [item.registry_url for item in wanted if item.registry_url is not None]
    if unqualified:
        needed.extend(registries)
    return wanted, list(dict.fromkeys(needed))


def resolve_wanted_items(
    wanted: list[WantedItem],
    registries: dict[str, ResolvedRegistry],
    select_registry: SelectRegistry | None = None,
) -> list[ResolvedWantedItem]:
    """Bind each wanted item to the registry it comes from.

    Raises:
        RegistryItemNotFoundError: If no registry has the item
        MultipleRegistriesError: If several do and there is no ``select_registry``
    """
    resolved = []
    for wanted_item in wanted:
        if wanted_item.registry_url is not None:
            registry = registries[wanted_item.registry_url]
            item = registry.manifest.get_item(wanted_item.name)
            if item is None:
                raise RegistryItemNotFoundError(wanted_item.name, registry.url)
            resolved.append(ResolvedWantedItem(registry=registry, item=item))
            continue

        matches = {}
        for url, registry in registries.items():
            item = registry.manifest.get_item(wanted_item.name)
            if item is not None:
                matches[url] = ResolvedWantedItem(registry=registry, item=item)

        if not matches:
            raise RegistryItemNotFoundError(wanted_item.name)
        if len(matches) > 1:
            if select_registry is None:
                raise MultipleRegistriesError(wanted_item.name, list(matches))
            url = select_registry(wanted_item.name, list(matches))
            resolved.append(matches[url])
        else:
            resolved.append(next(iter(matches.values())))

    return resolved


def _dependencies_of(item: ManifestItem, include_roles: Iterable[str]) -> list[str]:
    names = list(item.registry_dependencies)
    for file in item.files:
        if file.role in OPTIONAL_ROLES and file.role in include_roles:
            names.extend(file.registry_dependencies)
    return names


def resolve_tree(
    wanted: list[ResolvedWantedItem], include_roles: Iterable[str] = ()
) -> dict[str, ResolvedWantedItem]:
    """Breadth first closure over registry dependencies.

    Dependencies are looked up in the registry of the item depending on
    them. Items already visited are not visited again, so cycles terminate.

    Args:
        wanted: Items the user asked for
        include_roles: Optional file roles whose dependencies are also followed

    Returns:
        Every needed item by name, in discovery order

    Raises:
        RegistryItemNotFoundError: If a dependency is missing from its registry
    """
    include_roles = tuple(include_roles)
    resolved: dict[str, ResolvedWantedItem] = {}
    queue = deque(wanted)

    while queue:
        current = queue.popleft()
        if current.name in resolved:
            continue
        resolved[current.name] = current

        for name in _dependencies_of(current.item, include_roles):
            if name in resolved:
                continue
            item = current.registry.manifest.get_item(name)
            if item is None:
                raise RegistryItemNotFoundError(name, current.registry.url)
            queue.append(ResolvedWantedItem(registry=current.registry, item=item))

    logger.debug("Resolved %d items from %d wanted", len(resolved), len(wanted))
    return resolved


def select_init_items(
    registries: dict[str, ResolvedRegistry], confirm_optional: ConfirmItem | None = None
) -> list[ResolvedWantedItem]:
    """Items the registries add when a project is initialized.

    ``on-init`` items are always selected. ``optionally-on-init`` items are
    selected when ``confirm_optional`` accepts them, and never without it.
    The first registry offering a name wins.
    """
    selected: dict[str, ResolvedWantedItem] = {}
    for url, registry in registries.items():
        for item in registry.manifest.items:
            if item.name in selected:
                continue
            if item.add == "on-init" or (
                item.add == "optionally-on-init"
                and confirm_optional is not None
                and confirm_optional(item.name, url)
            ):
                selected[item.name] = ResolvedWantedItem(registry=registry, item=item)
    return list(selected.values())
