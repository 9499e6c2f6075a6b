from __future__ import annotations

import logging
import time
from typing import Any, Callable, List, Optional

import httpx

from .auth_client import AuthClient, RefreshError, TokenResponseError
from .invoice_client import InvoiceClient
from .models import Invoice, LoginForm, NewInvoice, PageResult, SignupForm
from .session import AuthSession

logger = logging.getLogger(__name__)

DASHBOARD_PATH = "/dashboard"

# malformed bodies and refresh responses count as failed requests
REQUEST_ERRORS = (httpx.HTTPError, RefreshError, ValueError)


def _server_message(error: Optional[Exception]) -> Optional[str]:
    if not isinstance(error, httpx.HTTPStatusError):
        return None
    try:
        data = error.response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        msg = data.get("message")
        if isinstance(msg, str) and msg:
            return msg
    return None


class InvoiceQuery:
    """Cached invoice list with a stale time, dropped on logout."""

    def __init__(self, stale_sec: float = 300, clock: Callable[[], float] = time.monotonic):
        self.stale_sec = stale_sec
        self.clock = clock
        self.invoices: Optional[List[Invoice]] = None
        self.fetched_at: Optional[float] = None

    def fresh(self) -> bool:
        if self.invoices is None or self.fetched_at is None:
            return False
        return self.clock() - self.fetched_at < self.stale_sec

    def store(self, invoices: List[Invoice]) -> None:
        self.invoices = invoices
        self.fetched_at = self.clock()

    def invalidate(self) -> None:
        self.fetched_at = None

    def clear(self) -> None:
        self.invoices = None
        self.fetched_at = None


class FrontendService:
    """Page handlers: login, signup, dashboard, new invoice, logout."""

    def __init__(
        self,
        session: AuthSession,
        auth_client: AuthClient,
        invoice_client: InvoiceClient,
        login_path: str = "/login",
        stale_sec: float = 300,
        fetch_retries: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session
        self.auth = auth_client
        self.invoices = invoice_client
        self.login_path = login_path
        self.fetch_retries = max(0, fetch_retries)
        self.query = InvoiceQuery(stale_sec, clock)
        self.pending_redirect: Optional[str] = None

    def navigate(self, path: str) -> None:
        logger.info("Redirecting to %s", path)
        self.pending_redirect = path

    def _take_redirect(self) -> Optional[str]:
        path, self.pending_redirect = self.pending_redirect, None
        return path

    def _guard(self, page: str) -> Optional[PageResult]:
        if not self.session.initialized:
            return PageResult(page=page, loading=True)
        if not self.session.is_logged_in:
            return PageResult(page=page, redirect=self.login_path)
        return None

    def _after_failure(self, page: str) -> Optional[PageResult]:
        redirect = self._take_redirect()
        if redirect or not self.session.is_logged_in:
            return PageResult(page=page, redirect=redirect or self.login_path)
        return None

    # AUTH

    async def login(self, form: LoginForm) -> PageResult:
        try:
            pair = await self.auth.login(form.username, form.password)
        except (httpx.HTTPError, TokenResponseError) as e:
            logger.info("Login failed for %s: %s", form.username, e)
            return PageResult(page="login", error=_server_message(e) or "Login failed!")
        self.session.login(pair.access_token, pair.refresh_token)
        self.pending_redirect = None
        logger.info("Login successful")
        return PageResult(page="login", redirect=DASHBOARD_PATH)

    async def signup(self, form: SignupForm) -> PageResult:
        try:
            await self.auth.register(form.username, form.password)
        except httpx.HTTPError as e:
            logger.info("Signup failed for %s: %s", form.username, e)
            return PageResult(page="signup", error=_server_message(e) or "Submission failed!")
        return PageResult(page="signup", redirect=self.login_path)

    def logout(self) -> PageResult:
        self.query.clear()
        self.session.logout()
        return PageResult(page="logout", redirect=self.login_path)

    # INVOICES

    async def dashboard(self, refetch: bool = False) -> PageResult:
        blocked = self._guard("dashboard")
        if blocked:
            return blocked

        if not refetch and self.query.fresh():
            return self._dashboard_page(self.query.invoices or [], from_cache=True)

        last_error: Optional[Exception] = None
        for attempt in range(self.fetch_retries + 1):
            try:
                invoices = await self.invoices.list_invoices()
            except REQUEST_ERRORS as e:
                last_error = e
                redirected = self._after_failure("dashboard")
                if redirected:
                    return redirected
                logger.warning("Fetching invoices failed (attempt %d): %s", attempt + 1, e)
                continue
            self.query.store(invoices)
            return self._dashboard_page(invoices, from_cache=False)

        page = self._dashboard_page(self.query.invoices or [], from_cache=False)
        page.error = _server_message(last_error) or "Failed to fetch invoices"
        return page

    def _dashboard_page(self, invoices: List[Invoice], from_cache: bool) -> PageResult:
        return PageResult(
            page="dashboard",
            data={
                "invoices": [inv.model_dump(by_alias=True, mode="json") for inv in invoices],
                "count": len(invoices),
                "from_cache": from_cache,
            },
        )

    async def create_invoice(self, form: NewInvoice) -> PageResult:
        blocked = self._guard("invoices/new")
        if blocked:
            return blocked
        try:
            created: Any = await self.invoices.create_invoice(form)
        except REQUEST_ERRORS as e:
            redirected = self._after_failure("invoices/new")
            if redirected:
                return redirected
            logger.warning("Creating invoice failed: %s", e)
            return PageResult(page="invoices/new", error=_server_message(e) or "Failed to create invoice")
        self.query.invalidate()
        return PageResult(page="invoices/new", redirect=DASHBOARD_PATH, data={"invoice": created})
