"""Error taxonomy and GitHub error-response classification."""

from __future__ import annotations

import json
import logging

import requests

logger = logging.getLogger(__name__)


class MergeLockError(RuntimeError):
    """Base class for every failure raised by github-merge-lock."""


class ConfigurationError(MergeLockError):
    """Raised when required input or credentials are missing."""


class AuthError(MergeLockError):
    """Raised when the GitHub App token exchange fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RepositoryNotFoundError(MergeLockError):
    """Raised when a repository-scoped call answers 404."""

    status_code = 404

    def __init__(self, owner: str, repo: str) -> None:
        super().__init__(
            f'Repository "{owner}/{repo}" not found. '
            "Check the owner and repo names, and ensure you have access."
        )
        self.owner = owner
        self.repo = repo


class GitHubAPIError(MergeLockError):
    """Raised when the GitHub API returns an error response."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(format_error_message(status_code, detail))
        self.status_code = status_code
        self.detail = detail


def format_error_message(status_code: int, detail: str) -> str:
    return f"GitHub API Error ({status_code}): {detail}"


def is_json_response(response: requests.Response) -> bool:
    return "application/json" in (response.headers.get("content-type") or "")


def stringify(value: object) -> str:
    """Serialize ``value`` as compact JSON, or ``str()`` it if that fails."""
    try:
        return json.dumps(value, separators=(",", ":"))
    except (TypeError, ValueError):
        return str(value)


def format_error_detail(response: requests.Response) -> str:
    """Build the human-readable part of an error message from a response body.

    Plain-text bodies are returned verbatim. JSON bodies contribute their
    ``message`` (or the whole payload when there is none), followed by the
    ``errors`` list and the ``documentation_url`` when GitHub sends them.
    """
    if not is_json_response(response):
        return response.text
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if not isinstance(payload, dict):
        return stringify(payload)

    message = payload.get("message")
    message = stringify(payload) if message is None else str(message)
    if payload.get("errors") is not None:
        message += f" (errors: {stringify(payload['errors'])})"
    if payload.get("documentation_url"):
        message += f" (docs: {payload['documentation_url']})"
    return message


def raise_for_response(
    response: requests.Response,
    owner: str | None = None,
    repo: str | None = None,
) -> None:
    """Raise the typed error matching a non-2xx ``response``; no-op otherwise."""
    if 200 <= response.status_code < 300:
        return
    if response.status_code == 404 and owner and repo:
        logger.debug("GitHub answered 404 for repository '%s/%s'", owner, repo)
        raise RepositoryNotFoundError(owner, repo)
    detail = format_error_detail(response)
    logger.debug("GitHub API error %s: %s", response.status_code, detail)
    raise GitHubAPIError(response.status_code, detail)
