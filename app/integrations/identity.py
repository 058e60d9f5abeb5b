from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from typing import Any
from urllib.parse import urlencode

import httpx

from app.config import settings
from app.core.exceptions import AuthenticationError, IntegrationError
from app.schemas.auth import AuthSession, OAuthRedirect, UserOut

logger = logging.getLogger(__name__)


def _provider_message(response: httpx.Response) -> str:
    """Pull the human-readable error text out of an auth error response."""
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        for key in ("msg", "error_description", "message", "error"):
            value = data.get(key)
            if value:
                return str(value)
    return f"HTTP {response.status_code}"


def _code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


class IdentityProvider:
    """Client for the hosted auth service (password grant, OAuth with PKCE)."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.supabase_base_url).rstrip("/") + "/auth/v1"
        self.api_key = api_key if api_key is not None else settings.supabase_anon_key.get_secret_value()
        self.timeout = timeout or settings.http_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        payload = {"email": email.strip(), "password": password}
        return await self._token_request("password", payload)

    def build_oauth_redirect(self, provider: str, redirect_to: str) -> OAuthRedirect:
        """Build the authorize URL for a browser redirect and the PKCE verifier to keep."""
        verifier = secrets.token_urlsafe(48)
        params = {
            "provider": provider,
            "redirect_to": redirect_to,
            "code_challenge": _code_challenge(verifier),
            "code_challenge_method": "s256",
        }
        return OAuthRedirect(
            url=f"{self.base_url}/authorize?{urlencode(params)}",
            code_verifier=verifier,
        )

    async def exchange_code_for_session(self, auth_code: str, code_verifier: str) -> AuthSession:
        payload = {"auth_code": auth_code, "code_verifier": code_verifier}
        return await self._token_request("pkce", payload)

    async def get_user(self, access_token: str) -> UserOut:
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.base_url}/user",
                    headers=self._headers(access_token),
                )
        except httpx.HTTPError as exc:
            raise IntegrationError(str(exc)) from exc
        if response.status_code != 200:
            raise AuthenticationError(_provider_message(response))
        return self._user_from_payload(self._json(response))

    async def sign_out(self, access_token: str) -> None:
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.base_url}/logout",
                    headers=self._headers(access_token),
                )
        except httpx.HTTPError as exc:
            raise IntegrationError(str(exc)) from exc
        if response.status_code >= 400:
            raise AuthenticationError(_provider_message(response))

    async def _token_request(self, grant_type: str, payload: dict[str, Any]) -> AuthSession:
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.base_url}/token",
                    params={"grant_type": grant_type},
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.HTTPError as exc:
            raise IntegrationError(str(exc)) from exc

        if response.status_code != 200:
            message = _provider_message(response)
            logger.info("Auth %s grant rejected: %s", grant_type, message)
            raise AuthenticationError(message)

        data = self._json(response)
        if not data.get("access_token"):
            raise AuthenticationError("Auth response missing access_token")
        user = data.get("user")
        return AuthSession(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            token_type=data.get("token_type") or "bearer",
            expires_in=data.get("expires_in"),
            user=self._user_from_payload(user) if isinstance(user, dict) else None,
        )

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise IntegrationError(f"Invalid auth response: {exc}") from exc
        if not isinstance(data, dict):
            raise IntegrationError("Invalid auth response: expected a JSON object")
        return data

    @staticmethod
    def _user_from_payload(data: dict[str, Any]) -> UserOut:
        return UserOut(id=str(data.get("id", "")), email=data.get("email"), role=data.get("role"))


def get_identity_provider() -> IdentityProvider:
    return IdentityProvider()
