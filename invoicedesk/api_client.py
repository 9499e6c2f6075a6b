from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import httpx

from .auth_client import RefreshError
from .session import AuthSession, StaleRefreshError
from .token_store import ACCESS_TOKEN, REFRESH_TOKEN

logger = logging.getLogger(__name__)

AUTH_FAILURE_STATUSES = (401, 403)


@dataclass
class PendingRequest:
    method: str
    path: str
    params: Optional[Dict[str, Any]] = None
    json: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    # set once the request has gone through a refresh; a second 401/403 is final
    retried: bool = False


class ApiClient:
    """Authenticated access to the invoice API with one-shot token renewal.

    Every call gets its own PendingRequest. On 401/403 the refresh token is
    exchanged for a new access token and the request is sent once more;
    whatever that resend produces goes back to the caller as-is. If the
    refresh token is missing or the exchange fails, the session is logged
    out and ``on_forced_logout`` is called with the login path.
    """

    def __init__(
        self,
        base_url: str,
        session: AuthSession,
        timeout_sec: float = 8.0,
        login_path: str = "/login",
        on_forced_logout: Optional[Callable[[str], None]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.session = session
        self.timeout = timeout_sec
        self.login_path = login_path
        self.on_forced_logout = on_forced_logout
        self.transport = transport

    async def request(self, method: str, path: str, params: Optional[dict] = None, json: Any = None) -> httpx.Response:
        return await self.dispatch(PendingRequest(method=method, path=path, params=params, json=json))

    async def get(self, path: str, params: Optional[dict] = None) -> httpx.Response:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> httpx.Response:
        return await self.request("POST", path, json=json)

    async def dispatch(self, req: PendingRequest) -> httpx.Response:
        try:
            return await self._send(req)
        except httpx.HTTPStatusError as e:
            if e.response.status_code not in AUTH_FAILURE_STATUSES or req.retried:
                raise
            return await self._refresh_and_resend(req, e)

    def _attach_token(self, req: PendingRequest) -> None:
        token = self.session.store.get(ACCESS_TOKEN)
        if token:
            req.headers["Authorization"] = f"Bearer {token}"

    async def _send(self, req: PendingRequest) -> httpx.Response:
        self._attach_token(req)
        url = f"{self.base_url}{req.path}"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            r = await client.request(req.method, url, headers=req.headers, params=req.params, json=req.json)
        r.raise_for_status()
        return r

    async def _refresh_and_resend(self, req: PendingRequest, error: httpx.HTTPStatusError) -> httpx.Response:
        req.retried = True

        refresh_token = self.session.store.get(REFRESH_TOKEN)
        if not refresh_token:
            logger.warning("%s %s rejected with %s and no refresh token is stored", req.method, req.path, error.response.status_code)
            self._force_logout()
            raise error

        try:
            access_token = await self.session.exchange(refresh_token)
        except StaleRefreshError as refresh_error:
            logger.warning("Token refresh for %s %s discarded: %s", req.method, req.path, refresh_error)
            # a login that happened during the refresh stays intact
            if not self.session.is_logged_in:
                self._force_logout()
            raise
        except (httpx.HTTPError, RefreshError) as refresh_error:
            logger.warning("Token refresh failed for %s %s: %s", req.method, req.path, refresh_error)
            self._force_logout()
            raise

        req.headers["Authorization"] = f"Bearer {access_token}"
        return await self.dispatch(req)

    def _force_logout(self) -> None:
        self.session.logout()
        if self.on_forced_logout is not None:
            self.on_forced_logout(self.login_path)
