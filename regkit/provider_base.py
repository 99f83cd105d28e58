"""Contract every registry provider implements."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import httpx

from .errors import ManifestFetchError, ProviderFetchError
from .manifest import MANIFEST_FILE, Manifest, parse_manifest

logger = logging.getLogger(__name__)


@dataclass
class ParsedUrl:
    """A registry url split into the parts a provider needs."""

    url: str  # normalized, without the ref when none was given
    ref: str | None = None
    extra: dict[str, str] = field(default_factory=dict)


@dataclass
class RegistryState:
    """Everything needed to fetch from one registry without asking again."""

    provider: str
    url: str
    ref: str | None = None
    ref_kind: str | None = None  # branch, tag
    token: str | None = None
    extra: dict[str, str] = field(default_factory=dict)


class Provider(ABC):
    """Fetches raw files from one kind of registry host."""

    name: str

    @abstractmethod
    def matches(self, url: str) -> bool:
        """Whether this provider understands ``url``."""

    @abstractmethod
    def parse(self, url: str) -> ParsedUrl:
        """Split ``url`` without touching the network."""

    @abstractmethod
    async def resolve_state(
        self, url: str, token: str | None, client: httpx.AsyncClient
    ) -> RegistryState:
        """Look up whatever ``url`` leaves implicit, such as the default branch."""

    @abstractmethod
    async def fetch_raw(
        self, state: RegistryState, path: str, client: httpx.AsyncClient
    ) -> bytes:
        """Fetch the file at ``path`` relative to the registry root.

        Raises:
            ProviderFetchError: On any network or host failure
        """

    def token_key(self, url: str) -> str:
        """Key tokens for ``url`` are stored under."""
        return self.name

    async def fetch_manifest(
        self, state: RegistryState, client: httpx.AsyncClient
    ) -> Manifest:
        """Fetch and parse the registry's manifest.

        Raises:
            ManifestFetchError: If the manifest can't be fetched
            InvalidJSONError: If it isn't a valid manifest
        """
        try:
            content = await self.fetch_raw(state, MANIFEST_FILE, client)
        except ProviderFetchError as e:
            raise ManifestFetchError(e.reason, state.url, MANIFEST_FILE) from e
        return parse_manifest(content, f"{state.url}/{MANIFEST_FILE}")

    async def _get(
        self,
        client: httpx.AsyncClient,
        url: str,
        *,
        state: RegistryState,
        path: str,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """GET ``url`` and turn every failure into a ProviderFetchError."""
        logger.debug("GET %s", url)
        try:
            response = await client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            raise ProviderFetchError("request timed out", state.url, path) from e
        except httpx.HTTPError as e:
            raise ProviderFetchError(f"network error: {e}", state.url, path) from e

        if response.is_success:
            return response
        raise ProviderFetchError(_error_message(response), state.url, path)


def _error_message(response: httpx.Response) -> str:
    message = f"{response.status_code} {response.reason_phrase}"
    if "json" not in response.headers.get("content-type", ""):
        return message
    try:
        detail = response.json().get("message")
    except (ValueError, AttributeError):
        return message
    return f"{message} - {detail}" if detail else message


def bearer(token: str | None) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"} if token else {}
