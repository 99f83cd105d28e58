"""Registries served from any http(s) base url."""

import httpx

from .provider_base import ParsedUrl, Provider, RegistryState, bearer


class HttpProvider(Provider):
    """Fetches ``<base url>/<path>``.

    Matches every http(s) url, so it must come after the host specific
    providers.
    """

    name = "http"

    def matches(self, url: str) -> bool:
        return url.startswith(("http://", "https://"))

    def parse(self, url: str) -> ParsedUrl:
        base = url if url.endswith("/") else f"{url}/"
        return ParsedUrl(url=url.rstrip("/"), extra={"base_url": base})

    def token_key(self, url: str) -> str:
        # tokens are per registry since any host can serve one
        return self.parse(url).url

    async def resolve_state(
        self, url: str, token: str | None, client: httpx.AsyncClient
    ) -> RegistryState:
        parsed = self.parse(url)
        return RegistryState(
            provider=self.name, url=parsed.url, token=token, extra=parsed.extra
        )

    async def fetch_raw(
        self, state: RegistryState, path: str, client: httpx.AsyncClient
    ) -> bytes:
        url = str(httpx.URL(state.extra["base_url"]).join(path))
        response = await self._get(
            client, url, state=state, path=path, headers=bearer(state.token)
        )
        return response.content
