from __future__ import annotations
from typing import Any, Optional
import httpx
from pydantic import ValidationError

from .models import TokenPair


class RefreshError(Exception):
    """A token exchange finished without a usable access token."""


class TokenResponseError(RefreshError):
    """The auth API answered 2xx but without the expected tokens."""


class AuthClient:
    """Unauthenticated calls to the auth endpoints. Never goes through the refresh interceptor."""

    def __init__(self, base_url: str, timeout_sec: float = 8.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout_sec
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def login(self, username: str, password: str) -> TokenPair:
        async with self._client() as client:
            r = await client.post(f"{self.base_url}/login", json={"username": username, "password": password})
        r.raise_for_status()
        try:
            return TokenPair.model_validate(r.json())
        except (ValueError, ValidationError) as e:
            raise TokenResponseError(f"login response has no token pair: {e}") from e

    async def register(self, username: str, password: str) -> Any:
        async with self._client() as client:
            r = await client.post(f"{self.base_url}/register", json={"username": username, "password": password})
        r.raise_for_status()
        try:
            return r.json()
        except ValueError:
            return r.text

    async def refresh(self, refresh_token: str) -> str:
        async with self._client() as client:
            r = await client.post(f"{self.base_url}/refresh", json={"refreshToken": refresh_token})
        r.raise_for_status()
        try:
            data = r.json()
        except ValueError as e:
            raise TokenResponseError("refresh response is not JSON") from e
        token = data.get("accessToken") if isinstance(data, dict) else None
        if not token:
            raise TokenResponseError("refresh response has no accessToken")
        return token
