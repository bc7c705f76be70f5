"""Bearer-token resolution, including the GitHub App installation-token exchange."""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

import jwt
import requests
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from jwt.algorithms import Algorithm

from .config import GITHUB_API_VERSION, Settings
from .errors import (
    AuthError,
    ConfigurationError,
    format_error_detail,
    format_error_message,
)

logger = logging.getLogger(__name__)

JWT_ISSUED_AT_SKEW = 60
JWT_LIFETIME = 600

MISSING_CREDENTIALS_MESSAGE = (
    "GitHub token not found. Set GITHUB_TOKEN/GH_TOKEN, "
    "or GH_APP_ID and GH_APP_PRIVATE_KEY(_PATH)."
)


class Signer(Protocol):
    def sign(self, data: bytes) -> bytes: ...


class RSASigner:
    """RSA-SHA256 (PKCS#1 v1.5) signer backed by a PEM private key."""

    def __init__(self, pem: str) -> None:
        try:
            key = serialization.load_pem_private_key(pem.encode("utf-8"), password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise ConfigurationError(
                "GitHub App private key could not be loaded."
            ) from exc
        if not isinstance(key, rsa.RSAPrivateKey):
            raise ConfigurationError("GitHub App private key must be an RSA key.")
        self._key = key

    def sign(self, data: bytes) -> bytes:
        return self._key.sign(data, padding.PKCS1v15(), hashes.SHA256())


class SignerAlgorithm(Algorithm):
    """JWS algorithm that hands signing to a :class:`Signer`.

    The "key" passed to :meth:`jwt.PyJWS.encode` is the signer itself.
    """

    def prepare_key(self, key: Signer) -> Signer:
        return key

    def sign(self, msg: bytes, key: Signer) -> bytes:
        return key.sign(msg)

    def verify(self, msg: bytes, key: Signer, sig: bytes) -> bool:
        raise NotImplementedError("GitHub App assertions are only ever signed here")

    @staticmethod
    def to_jwk(key_obj, as_dict: bool = False):
        raise NotImplementedError

    @staticmethod
    def from_jwk(jwk):
        raise NotImplementedError


def build_app_jwt(app_id: str, signer: Signer, now: float | None = None) -> str:
    """Return an RS256 JWT asserting ``app_id`` as issuer.

    The token is backdated by a minute to absorb clock drift and expires ten
    minutes after ``now``.
    """
    issued = int(time.time() if now is None else now)
    payload = {
        "iat": issued - JWT_ISSUED_AT_SKEW,
        "exp": issued + JWT_LIFETIME,
        "iss": app_id,
    }
    jws = jwt.PyJWS(algorithms=[])
    jws.register_algorithm("RS256", SignerAlgorithm())
    return jws.encode(
        json.dumps(payload, separators=(",", ":")).encode("utf-8"),
        signer,
        algorithm="RS256",
        headers={"typ": "JWT"},
    )


def load_private_key(settings: Settings) -> str:
    """Return the PEM text from inline settings or from the key file."""
    if settings.private_key:
        return settings.private_key.replace("\\n", "\n")
    if not settings.private_key_path:
        raise ConfigurationError("GH_APP_PRIVATE_KEY_PATH is not set.")
    try:
        return Path(settings.private_key_path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(
            f"Failed to read GitHub App private key from '{settings.private_key_path}': {exc}"
        ) from exc


class CredentialProvider:
    """Resolves and memoizes the bearer token used for API calls.

    A static token from the settings is returned as-is. Otherwise the GitHub
    App credentials are exchanged for an installation access token, which is
    kept for the lifetime of this provider.
    """

    def __init__(
        self,
        settings: Settings,
        session: requests.Session | None = None,
        *,
        signer: Signer | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self._signer = signer
        self._clock = clock
        self._token: str | None = None
        self._lock = threading.Lock()

    @property
    def token(self) -> str | None:
        return self._token or self.settings.token

    def ensure_token(self, owner: str | None = None, repo: str | None = None) -> str:
        if self.settings.token:
            return self.settings.token
        with self._lock:
            if self._token:
                return self._token
            if not self.settings.has_app_credentials:
                raise ConfigurationError(MISSING_CREDENTIALS_MESSAGE)
            if not owner or not repo:
                raise ConfigurationError(
                    "owner and repo are required when authenticating as a GitHub App."
                )
            self._token = self._mint_installation_token(owner, repo)
            return self._token

    def _mint_installation_token(self, owner: str, repo: str) -> str:
        signer = self._signer or RSASigner(load_private_key(self.settings))
        assertion = build_app_jwt(self.settings.app_id, signer, now=self._clock())
        base_url = self.settings.api_url.rstrip("/")

        logger.debug("Looking up GitHub App installation for '%s/%s'", owner, repo)
        installation = self._request(
            "GET",
            f"{base_url}/repos/{quote(owner, safe='')}/{quote(repo, safe='')}/installation",
            assertion,
        )
        installation_id = (installation or {}).get("id")
        if not installation_id:
            raise AuthError(
                "Installation ID not found. "
                f"Check that the GitHub App is installed on '{owner}/{repo}'."
            )

        logger.debug("Minting access token for installation id=%s", installation_id)
        response = self._request(
            "POST",
            f"{base_url}/app/installations/{installation_id}/access_tokens",
            assertion,
        )
        token = (response or {}).get("token")
        if not token:
            raise AuthError("Failed to obtain an installation access token.")

        logger.info(
            "Obtained installation access token for '%s/%s' (installation id=%s)",
            owner,
            repo,
            installation_id,
        )
        return token

    def _request(self, method: str, url: str, assertion: str) -> dict | None:
        response = self.session.request(
            method,
            url,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {assertion}",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
            timeout=self.settings.timeout,
        )
        if not 200 <= response.status_code < 300:
            raise AuthError(
                format_error_message(response.status_code, format_error_detail(response)),
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None
