"""Explicit configuration for the GitHub API and its credentials."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
REQUEST_TIMEOUT = 30


@dataclass(frozen=True)
class Settings:
    """Credentials and endpoint used to talk to GitHub.

    ``token`` is a static bearer token. When it is missing, ``app_id`` plus
    either ``private_key`` (inline PEM) or ``private_key_path`` are used to mint
    an installation token instead.
    """

    token: str | None = None
    app_id: str | None = None
    private_key: str | None = None
    private_key_path: str | None = None
    api_url: str = GITHUB_API_URL
    timeout: float | None = REQUEST_TIMEOUT

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if env is None else env

        def read(name: str) -> str | None:
            return env.get(name) or None

        return cls(
            token=read("GITHUB_TOKEN") or read("GH_TOKEN"),
            app_id=read("GH_APP_ID"),
            private_key=read("GH_APP_PRIVATE_KEY"),
            private_key_path=read("GH_APP_PRIVATE_KEY_PATH"),
            api_url=read("GITHUB_API_URL") or GITHUB_API_URL,
        )

    def with_token(self, token: str) -> Settings:
        return dataclasses.replace(self, token=token)

    @property
    def has_app_credentials(self) -> bool:
        return bool(self.app_id and (self.private_key or self.private_key_path))
