"""Where providers get their access tokens from."""

import os
from typing import Protocol


class CredentialStore(Protocol):
    """Tokens keyed by provider name or registry url."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, token: str) -> None: ...


class MemoryCredentialStore:
    def __init__(self, tokens: dict[str, str] | None = None):
        self._tokens = dict(tokens or {})

    def get(self, key: str) -> str | None:
        return self._tokens.get(key)

    def set(self, key: str, token: str) -> None:
        self._tokens[key] = token


class EnvCredentialStore:
    """Reads ``REGKIT_<KEY>_TOKEN`` and the usual host variables.

    Args:
        environ: Environment to read, defaults to ``os.environ``
        fallbacks: Variable consulted per key when the prefixed one is unset
    """

    FALLBACKS = {"github": "GITHUB_TOKEN", "gitlab": "GITLAB_TOKEN"}

    def __init__(
        self,
        environ: dict[str, str] | None = None,
        fallbacks: dict[str, str] | None = None,
    ):
        self._environ = os.environ if environ is None else environ
        self._fallbacks = self.FALLBACKS if fallbacks is None else fallbacks
        self._overrides: dict[str, str] = {}

    @staticmethod
    def variable(key: str) -> str:
        name = "".join(c if c.isalnum() else "_" for c in key.upper())
        return f"REGKIT_{name}_TOKEN"

    def get(self, key: str) -> str | None:
        if key in self._overrides:
            return self._overrides[key]
        token = self._environ.get(self.variable(key))
        if token:
            return token
        fallback = self._fallbacks.get(key)
        if fallback is None:
            return None
        return self._environ.get(fallback) or None

    def set(self, key: str, token: str) -> None:
        self._overrides[key] = token
