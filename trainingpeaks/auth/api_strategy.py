"""
API Authentication Strategy
===========================
Direct token-endpoint authentication (OAuth2 password / refresh grants).

One request exchanges the credentials for a token, a second one resolves
the user identity.  ``requests`` is blocking, so every call runs in the
loop's default executor.

Security:
    - Credentials and tokens are never logged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import requests

from ..config import AuthenticationConfig, SDKConfig
from ..errors import (
    NETWORK_TIMEOUT,
    AuthenticationError,
    InvalidCredentialsError,
    NetworkError,
    ValidationError,
)
from .base_strategy import BaseAuthStrategy
from .models import AuthToken, Credentials, Session, User, create_auth_token

logger = logging.getLogger(__name__)

TOKEN_PATH = "/oauth/token"
USER_PATH = "/users/v3/user"

_UNAUTHORIZED_STATUSES = (401, 403)


class ApiAuthStrategy(BaseAuthStrategy):
    """Authenticates against the documented token endpoint."""

    supports_refresh = True

    def __init__(
        self,
        sdk_config: Optional[SDKConfig] = None,
        http_session: Optional[requests.Session] = None,
    ):
        self.sdk_config = sdk_config or SDKConfig()
        self._http = http_session

    @property
    def name(self) -> str:
        return "api"

    @property
    def http(self) -> requests.Session:
        if self._http is None:
            self._http = requests.Session()
        return self._http

    def can_handle(self, config: AuthenticationConfig) -> bool:
        return config.web_auth is None

    # ── Public API ────────────────────────────────────────────────

    async def authenticate(
        self, credentials: Credentials, config: AuthenticationConfig
    ) -> Session:
        logger.info("[AUTH] API login: requesting token")
        payload = await self._request(
            config,
            "POST",
            TOKEN_PATH,
            json={
                "grant_type": "password",
                "username": credentials.username,
                "password": credentials.password,
                "client_id": self.sdk_config.requests.client_id,
                "client_secret": self.sdk_config.requests.client_secret,
            },
        )
        token = self._token_from_payload(payload, fallback_refresh=None)

        logger.info("[AUTH] API login: resolving user identity")
        user_payload = await self._request(
            config,
            "GET",
            USER_PATH,
            headers={"Authorization": token.authorization_header},
        )
        user = self._user_from_payload(user_payload, credentials.username)

        logger.info(f"[AUTH] API login succeeded for user id {user.id}")
        return Session(token=token, user=user)

    async def refresh_token(
        self, refresh_token: str, config: AuthenticationConfig
    ) -> AuthToken:
        if not refresh_token:
            raise ValidationError("Refresh token must be non-empty", field="refresh_token")

        logger.info("[AUTH] API refresh: requesting new token")
        payload = await self._request(
            config,
            "POST",
            TOKEN_PATH,
            json={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.sdk_config.requests.client_id,
                "client_secret": self.sdk_config.requests.client_secret,
            },
        )
        return self._token_from_payload(payload, fallback_refresh=refresh_token)

    # ── Internal ──────────────────────────────────────────────────

    async def _request(
        self,
        config: AuthenticationConfig,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        url = config.base_url.rstrip("/") + path
        merged_headers = {**self.sdk_config.requests.default_headers, **config.headers}
        if headers:
            merged_headers.update(headers)
        timeout_s = config.timeout_ms / 1000

        def _sync_request() -> requests.Response:
            return self.http.request(
                method, url, json=json, headers=merged_headers, timeout=timeout_s
            )

        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(None, _sync_request)
        except requests.Timeout as exc:
            raise NetworkError(
                f"Request timed out after {config.timeout_ms}ms",
                code=NETWORK_TIMEOUT,
                context={"url": url},
                original_error=exc,
            ) from exc
        except requests.RequestException as exc:
            raise NetworkError(
                f"Request failed: {exc}",
                context={"url": url},
                original_error=exc,
            ) from exc

        if config.debug:
            logger.debug(f"[AUTH] {method} {url} → HTTP {response.status_code}")

        body = self._parse_body(response)

        if response.status_code in _UNAUTHORIZED_STATUSES or (
            response.status_code == 400 and body.get("error") == "invalid_grant"
        ):
            raise InvalidCredentialsError(
                self._error_message(body, "Invalid credentials"),
                context={"status": response.status_code},
            )
        if response.status_code >= 400:
            raise AuthenticationError(
                f"API authentication failed: {self._error_message(body, response.reason or 'HTTP error')}",
                context={"status": response.status_code, "url": url},
            )
        return body

    @staticmethod
    def _parse_body(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _error_message(body: Dict[str, Any], default: str) -> str:
        for key in ("message", "error_description", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
        return default

    def _token_from_payload(
        self, payload: Dict[str, Any], fallback_refresh: Optional[str]
    ) -> AuthToken:
        access_token = payload.get("access_token")
        if not access_token:
            raise AuthenticationError("No access token received from API")

        # The platform does not report expiry reliably — compute it locally.
        return create_auth_token(
            access_token=access_token,
            expires_in=self.sdk_config.tokens.default_expiration_delta,
            token_type=payload.get("token_type") or "Bearer",
            refresh_token=payload.get("refresh_token") or fallback_refresh,
        )

    @staticmethod
    def _user_from_payload(payload: Dict[str, Any], username: str) -> User:
        user_data = payload.get("user")
        if not isinstance(user_data, dict) or user_data.get("userId") in (None, ""):
            raise AuthenticationError("No user information received from API")

        first = user_data.get("firstName") or ""
        last = user_data.get("lastName") or ""
        name = f"{first} {last}".strip() or user_data.get("username") or username
        try:
            return User(
                id=str(user_data["userId"]),
                name=name,
                username=user_data.get("username") or username,
                avatar=user_data.get("avatar") or None,
                preferences=user_data.get("preferences") or None,
            )
        except ValidationError as exc:
            raise AuthenticationError(
                f"Invalid user information received from API: {exc.message}",
                original_error=exc,
            ) from exc
