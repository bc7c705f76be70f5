"""Authenticated access to the GitHub REST API."""

from __future__ import annotations

import logging

import requests

from . import __version__
from .auth import CredentialProvider
from .config import GITHUB_API_VERSION, Settings
from .errors import is_json_response, raise_for_response

USER_AGENT = f"github-merge-lock/{__version__}"

logger = logging.getLogger(__name__)


class GitHubClient:
    """Sends requests to GitHub with a resolved bearer token."""

    def __init__(
        self,
        settings: Settings,
        session: requests.Session | None = None,
        credentials: CredentialProvider | None = None,
    ) -> None:
        self.settings = settings
        self.base_url = settings.api_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
                "User-Agent": USER_AGENT,
            }
        )
        self.credentials = credentials or CredentialProvider(settings, self.session)

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: dict | None = None,
        owner: str | None = None,
        repo: str | None = None,
    ):
        """Issue one API call and return the decoded body.

        ``owner`` and ``repo`` scope the call: they are needed to mint an App
        token and they turn a 404 into :class:`RepositoryNotFoundError`.
        """
        token = self.credentials.ensure_token(owner, repo)
        logger.debug("%s %s", method, path)
        response = self.session.request(
            method,
            f"{self.base_url}{path}",
            params=params,
            json=json,
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.settings.timeout,
        )
        raise_for_response(response, owner, repo)
        if not response.content:
            return None
        if is_json_response(response):
            return response.json()
        return response.text

    def get(self, path: str, **kwargs):
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs):
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs):
        return self.request("PUT", path, **kwargs)
