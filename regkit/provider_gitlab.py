"""Registries hosted in GitLab projects."""

import logging
from urllib.parse import quote

import httpx

from .errors import InvalidRegistryError
from .provider_base import ParsedUrl, Provider, RegistryState

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"


class GitLabProvider(Provider):
    """Fetches through the GitLab repository files API.

    Accepts ``gitlab/<group>/.../<project>`` and the ``gitlab:`` and
    ``https://gitlab.com/`` spellings, each optionally followed by
    ``/-/tree/<ref>`` and a directory the registry lives in.
    """

    name = "gitlab"
    PREFIXES = ("gitlab/", "gitlab:", "https://gitlab.com/")

    def __init__(self, base_url: str = "https://gitlab.com"):
        self.api_url = f"{base_url.rstrip('/')}/api/v4"

    def matches(self, url: str) -> bool:
        return url.startswith(self.PREFIXES)

    def parse(self, url: str) -> ParsedUrl:
        rest = url
        for prefix in self.PREFIXES:
            if url.startswith(prefix):
                rest = url[len(prefix) :]
                break

        parts = [part for part in rest.split("/") if part]
        ref = None
        directory = ""
        for i in range(len(parts) - 2):
            if parts[i] == "-" and parts[i + 1] == "tree":
                ref = parts[i + 2]
                directory = "/".join(parts[i + 3 :])
                parts = parts[:i]
                break

        if len(parts) < 2:
            raise InvalidRegistryError(url)
        project = "/".join(parts)

        normalized = f"gitlab/{project}"
        if ref is not None:
            normalized += f"/-/tree/{ref}"
            if directory:
                normalized += f"/{directory}"

        return ParsedUrl(
            url=normalized,
            ref=ref,
            extra={"project": project, "directory": directory},
        )

    def _headers(self, token: str | None) -> dict[str, str]:
        return {"PRIVATE-TOKEN": token} if token else {}

    def _project_url(self, project: str) -> str:
        return f"{self.api_url}/projects/{quote(project, safe='')}"

    async def resolve_state(
        self, url: str, token: str | None, client: httpx.AsyncClient
    ) -> RegistryState:
        parsed = self.parse(url)
        project_url = self._project_url(parsed.extra["project"])

        if parsed.ref is None:
            ref = await self._default_branch(client, project_url, token)
            ref_kind = "branch"
        else:
            ref = parsed.ref
            ref_kind = await self._ref_kind(client, project_url, ref, token)

        return RegistryState(
            provider=self.name,
            url=parsed.url,
            ref=ref,
            ref_kind=ref_kind,
            token=token,
            extra=parsed.extra,
        )

    async def _default_branch(
        self, client: httpx.AsyncClient, project_url: str, token: str | None
    ) -> str:
        try:
            response = await client.get(project_url, headers=self._headers(token))
            if response.is_success:
                return response.json().get("default_branch") or DEFAULT_BRANCH
            logger.debug(
                "No default branch for %s (%s)", project_url, response.status_code
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("No default branch for %s: %s", project_url, e)
        return DEFAULT_BRANCH

    async def _ref_kind(
        self, client: httpx.AsyncClient, project_url: str, ref: str, token: str | None
    ) -> str:
        try:
            response = await client.get(
                f"{project_url}/repository/tags/{quote(ref, safe='')}",
                headers=self._headers(token),
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
            f"{self._project_url(state.extra['project'])}/repository/files/"
            f"{quote(full_path, safe='')}/raw?ref={quote(state.ref or DEFAULT_BRANCH, safe='')}"
        )
        response = await self._get(
            client, url, state=state, path=path, headers=self._headers(state.token)
        )
        return response.content
