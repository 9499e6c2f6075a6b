from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

import httpx

from .auth_client import AuthClient, RefreshError
from .models import Credentials, SessionStatus, SessionView
from .token_store import ACCESS_TOKEN, REFRESH_TOKEN, TokenStore

logger = logging.getLogger(__name__)

Listener = Callable[[SessionView], None]


class StaleRefreshError(RefreshError):
    """The session was logged out or replaced while the refresh was in flight."""


def _consume_result(fut: asyncio.Future) -> None:
    # every waiter may have been cancelled; nobody else would read the error
    if not fut.cancelled():
        fut.exception()


class AuthSession:
    """Tab-wide authentication state backed by a TokenStore.

    Built once at startup and handed to the API client, the page handlers
    and the web routes. Every mutation writes the store first and then the
    in-memory Credentials, with no await in between, so other coroutines
    never see one token set without the other.
    """

    def __init__(self, store: TokenStore, auth_client: AuthClient, coalesce_refresh: bool = False):
        self.store = store
        self.auth = auth_client
        self.coalesce_refresh = coalesce_refresh
        self.credentials = Credentials()
        self._initialized = False
        self._listeners: List[Listener] = []
        self._inflight: Optional[asyncio.Future] = None

    # state

    @property
    def access_token(self) -> Optional[str]:
        return self.credentials.access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self.credentials.refresh_token

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def is_logged_in(self) -> bool:
        return bool(self.credentials.access_token)

    @property
    def status(self) -> SessionStatus:
        if not self._initialized:
            return SessionStatus.UNINITIALIZED
        return SessionStatus.LOGGED_IN if self.is_logged_in else SessionStatus.LOGGED_OUT

    def snapshot(self) -> SessionView:
        return SessionView(
            access_token=self.credentials.access_token,
            refresh_token=self.credentials.refresh_token,
            is_logged_in=self.is_logged_in,
            initialized=self._initialized,
            status=self.status,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        view = self.snapshot()
        for listener in list(self._listeners):
            listener(view)

    # transitions

    def load(self) -> SessionView:
        self.credentials = Credentials(
            access_token=self.store.get(ACCESS_TOKEN) or None,
            refresh_token=self.store.get(REFRESH_TOKEN) or None,
        )
        self._initialized = True
        logger.debug("session loaded, status=%s", self.status.value)
        self._notify()
        return self.snapshot()

    def login(self, access_token: str, refresh_token: str) -> None:
        self.store.set(ACCESS_TOKEN, access_token)
        self.store.set(REFRESH_TOKEN, refresh_token)
        self.credentials = Credentials(access_token=access_token, refresh_token=refresh_token)
        self._initialized = True
        self._notify()

    def logout(self) -> None:
        self.store.remove(ACCESS_TOKEN)
        self.store.remove(REFRESH_TOKEN)
        self.credentials = Credentials()
        self._initialized = True
        self._notify()

    def set_access_token(self, access_token: str) -> None:
        self.store.set(ACCESS_TOKEN, access_token)
        self.credentials = self.credentials.model_copy(update={"access_token": access_token})
        self._notify()

    # refresh

    async def exchange(self, refresh_token: str) -> str:
        """Trade a refresh token for a new access token and persist it.

        Raises whatever the refresh call raised, or StaleRefreshError when
        the stored refresh token changed meanwhile; session state is left
        alone on failure so the caller decides whether that means logout.
        """
        if not self.coalesce_refresh:
            return await self._exchange(refresh_token)
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._exchange(refresh_token))
            self._inflight.add_done_callback(_consume_result)
        # a cancelled waiter must not cancel the refresh other waiters share
        return await asyncio.shield(self._inflight)

    async def _exchange(self, refresh_token: str) -> str:
        try:
            token = await self.auth.refresh(refresh_token)
        finally:
            self._inflight = None
        if self.store.get(REFRESH_TOKEN) != refresh_token:
            raise StaleRefreshError("session changed while the access token was being refreshed")
        self.set_access_token(token)
        return token

    async def refresh_access_token(self) -> Optional[str]:
        """Returns the new access token, or None once the session is logged out."""
        refresh_token = self.credentials.refresh_token
        if not refresh_token:
            self.logout()
            return None
        try:
            return await self.exchange(refresh_token)
        except StaleRefreshError:
            # a logout or a new login won the race; keep whatever it left
            return self.access_token
        except (httpx.HTTPError, RefreshError) as e:
            logger.error("Token refresh failed: %s", e)
            self.logout()
            return None
