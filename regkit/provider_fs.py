"""Registries in a local directory, mostly for testing registries before publishing."""

from pathlib import Path

import httpx

from .errors import ProviderFetchError
from .provider_base import ParsedUrl, Provider, RegistryState


class FsProvider(Provider):
    """Reads ``fs://<dir>``; relative directories are taken from ``cwd``."""

    name = "fs"
    PREFIX = "fs://"

    def __init__(self, cwd: Path | None = None):
        self.cwd = cwd

    def matches(self, url: str) -> bool:
        return url.startswith(self.PREFIX)

    def parse(self, url: str) -> ParsedUrl:
        directory = Path(url[len(self.PREFIX) :])
        if not directory.is_absolute():
            directory = (self.cwd or Path.cwd()) / directory
        return ParsedUrl(url=url, extra={"directory": str(directory)})

    async def resolve_state(
        self, url: str, token: str | None, client: httpx.AsyncClient
    ) -> RegistryState:
        parsed = self.parse(url)
        return RegistryState(provider=self.name, url=parsed.url, extra=parsed.extra)

    async def fetch_raw(
        self, state: RegistryState, path: str, client: httpx.AsyncClient
    ) -> bytes:
        try:
            return (Path(state.extra["directory"]) / path).read_bytes()
        except OSError as e:
            raise ProviderFetchError(e.strerror or str(e), state.url, path) from e
