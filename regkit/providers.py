"""Selecting providers and fetching from several registries at once."""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

import httpx
from pydantic import ValidationError

from .credentials import CredentialStore, EnvCredentialStore
from .errors import (
    InvalidJSONError,
    InvalidRegistryError,
    ProviderFetchError,
    RegistryFileFetchError,
)
from .manifest import Manifest, ManifestItem
from .provider_base import Provider, RegistryState
from .provider_fs import FsProvider
from .provider_github import GitHubProvider
from .provider_gitlab import GitLabProvider
from .provider_http import HttpProvider

logger = logging.getLogger(__name__)


def default_providers(cwd: Path | None = None) -> list[Provider]:
    # http matches any url so it goes last
    return [GitHubProvider(), GitLabProvider(), FsProvider(cwd), HttpProvider()]


@dataclass
class ResolvedRegistry:
    url: str  # as requested, used as the registry's key
    provider: Provider
    state: RegistryState
    manifest: Manifest


def select_provider(url: str, providers: Iterable[Provider]) -> Provider:
    """First provider matching ``url``.

    Raises:
        InvalidRegistryError: If no provider matches
    """
    for provider in providers:
        if provider.matches(url):
            return provider
    raise InvalidRegistryError(url)


@asynccontextmanager
async def client_scope(
    client: httpx.AsyncClient | None, timeout: float = 30.0
) -> AsyncIterator[httpx.AsyncClient]:
    """Use ``client`` as is, or open one for the duration of the block."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as owned:
        yield owned


async def gather_or_cancel(*coroutines):
    """Like ``asyncio.gather`` but the first failure cancels the rest."""
    tasks = [asyncio.ensure_future(coroutine) for coroutine in coroutines]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def resolve_registry(
    url: str,
    provider: Provider,
    client: httpx.AsyncClient,
    credentials: CredentialStore,
) -> ResolvedRegistry:
    token = credentials.get(provider.token_key(url))
    state = await provider.resolve_state(url, token, client)
    manifest = await provider.fetch_manifest(state, client)
    logger.info("Resolved %s (%d items)", url, len(manifest.items))
    return ResolvedRegistry(url=url, provider=provider, state=state, manifest=manifest)


async def resolve_registries(
    urls: list[str],
    providers: list[Provider],
    *,
    credentials: CredentialStore | None = None,
    client: httpx.AsyncClient | None = None,
    timeout: float = 30.0,
) -> dict[str, ResolvedRegistry]:
    """Fetch the manifest of every registry concurrently.

    Args:
        urls: Registry urls, duplicates are fetched once
        providers: Providers to choose from, in priority order
        credentials: Token source, defaults to the environment
        client: Shared http client, one is opened when omitted
        timeout: Request timeout in seconds for an opened client

    Returns:
        Resolved registries keyed by url, in request order

    Raises:
        InvalidRegistryError: If no provider matches a url
        ManifestFetchError: If a manifest can't be fetched
        InvalidJSONError: If a manifest is invalid
    """
    unique = list(dict.fromkeys(urls))
    if not unique:
        return {}

    selected = [(url, select_provider(url, providers)) for url in unique]
    credentials = credentials if credentials is not None else EnvCredentialStore()

    async with client_scope(client, timeout) as http:
        resolved = await gather_or_cancel(
            *(
                resolve_registry(url, provider, http, credentials)
                for url, provider in selected
            )
        )
    return {registry.url: registry for registry in resolved}


async def fetch_item(
    registry: ResolvedRegistry,
    item: ManifestItem,
    client: httpx.AsyncClient,
    include_roles: Iterable[str] = (),
) -> ManifestItem:
    """Return a copy of ``item`` whose wanted files carry their content.

    Repository registries serve each file raw from its ``source``.
    Distributed registries serve ``<item>.json`` with every content inlined.

    Raises:
        RegistryFileFetchError: If a file can't be fetched
    """
    roles = {"file", *include_roles}

    if registry.manifest.type == "distributed":
        path = f"{item.name}.json"
        try:
            raw = await registry.provider.fetch_raw(registry.state, path, client)
        except ProviderFetchError as e:
            raise RegistryFileFetchError(e.reason, registry.url, path) from e
        try:
            fetched = ManifestItem.model_validate_json(raw)
        except ValidationError as e:
            raise InvalidJSONError(f"{registry.url}/{path} is not a valid item: {e}") from e
        fetched.files = [file for file in fetched.files if file.role in roles]
        return fetched

    fetched = item.model_copy(deep=True)
    fetched.files = [file for file in fetched.files if file.role in roles]

    async def fetch_file(path: str) -> str:
        try:
            raw = await registry.provider.fetch_raw(registry.state, path, client)
        except ProviderFetchError as e:
            raise RegistryFileFetchError(e.reason, registry.url, path) from e
        return raw.decode("utf-8")

    contents = await gather_or_cancel(
        *(fetch_file(file.source or file.path) for file in fetched.files)
    )
    for file, content in zip(fetched.files, contents):
        file.content = content
    return fetched
