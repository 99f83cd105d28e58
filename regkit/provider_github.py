"""Registries hosted in GitHub repositories."""

import logging

import httpx

from .errors import InvalidRegistryError
from .provider_base import ParsedUrl, Provider, RegistryState, bearer

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"


class GitHubProvider(Provider):
    """Fetches through the GitHub contents API.

    Accepts ``github/<owner>/<repo>``, ``github:<owner>/<repo>`` and
    ``https://github.com/<owner>/<repo>``, each optionally followed by
    ``/tree/<ref>`` and a directory the registry lives in.
    """

    name = "github"
    PREFIXES = ("github/", "github:", "https://github.com/")

    def __init__(self, api_url: str = "https://api.github.com"):
        self.api_url = api_url.rstrip("/")

    def matches(self, url: str) -> bool:
        return url.startswith(self.PREFIXES)

    def parse(self, url: str) -> ParsedUrl:
        rest = url
        for prefix in self.PREFIXES:
            if url.startswith(prefix):
                rest = url[len(prefix) :]
                break

        parts = [part for part in rest.split("/") if part]
        if len(parts) < 2:
            raise InvalidRegistryError(url)
        owner, repo = parts[0], parts[1]

        ref = None
        directory = ""
        if len(parts) > 3 and parts[2] == "tree":
            ref = parts[3]
            directory = "/".join(parts[4:])

        normalized = f"github/{owner}/{repo}"
        if ref is not None:
            normalized += f"/tree/{ref}"
            if directory:
                normalized += f"/{directory}"

        return ParsedUrl(
            url=normalized,
            ref=ref,
            extra={"owner": owner, "repo": repo, "directory": directory},
        )

    def _headers(self, token: str | None) -> dict[str, str]:
        return {"Accept": "application/vnd.github+json", **bearer(token)}

    async def resolve_state(
        self, url: str, token: str | None, client: httpx.AsyncClient
    ) -> RegistryState:
        parsed = self.parse(url)
        repo_url = f"{self.api_url}/repos/{parsed.extra['owner']}/{parsed.extra['repo']}"

        if parsed.ref is None:
            ref = await self._default_branch(client, repo_url, token)
            ref_kind = "branch"
        else:
            ref = parsed.ref
            ref_kind = await self._ref_kind(client, repo_url, ref, token)

        return RegistryState(
            provider=self.name,
            url=parsed.url,
            ref=ref,
            ref_kind=ref_kind,
            token=token,
            extra=parsed.extra,
        )

    async def _default_branch(
        self, client: httpx.AsyncClient, repo_url: str, token: str | None
    ) -> str:
        try:
            response = await client.get(repo_url, headers=self._headers(token))
            if response.is_success:
                return response.json().get("default_branch") or DEFAULT_BRANCH
            logger.debug("No default branch for %s (%s)", repo_url, response.status_code)
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("No default branch for %s: %s", repo_url, e)
        return DEFAULT_BRANCH

    async def _ref_kind(
        self, client: httpx.AsyncClient, repo_url: str, ref: str, token: str | None
    ) -> str:
        try:
            response = await client.get(
                f"{repo_url}/git/ref/tags/{ref}", headers=self._headers(token)
            )
        except httpx.HTTPError as e:
            logger.debug("Could not check whether %s is a tag: %s", ref, e)
            return "branch"
        return "tag" if response.is_success else "branch"

    async def fetch_raw(
        self, state: RegistryState, path: str, client: httpx.AsyncClient
    ) -> bytes:
        directory = state.extra.get("directory")
        full_path = f"{directory}/{path}" if directory else path
        url = (
            f"{self.api_url}/repos/{state.extra['owner']}/{state.extra['repo']}"
            f"/contents/{full_path}?ref={state.ref}"
        )
        headers = {"Accept": "application/vnd.github.raw+json", **bearer(state.token)}
        response = await self._get(client, url, state=state, path=path, headers=headers)
        return response.content
