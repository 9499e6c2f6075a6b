import json

import pytest

from invoicedesk.auth_client import TokenResponseError
from invoicedesk.models import Credentials, SessionStatus
from invoicedesk.session import AuthSession
from invoicedesk.token_store import ACCESS_TOKEN, REFRESH_TOKEN, MemoryTokenStore
from tests.conftest import LOGIN_URL, REFRESH_URL


def test_new_session_is_uninitialized(store, auth):
    s = AuthSession(store, auth)

    view = s.snapshot()
    assert view.status == SessionStatus.UNINITIALIZED
    assert not view.initialized
    assert not view.is_logged_in


def test_load_with_stored_access_token_logs_in(auth):
    store = MemoryTokenStore({ACCESS_TOKEN: "A1", REFRESH_TOKEN: "R1"})
    s = AuthSession(store, auth)

    view = s.load()

    assert view.status == SessionStatus.LOGGED_IN
    assert view.initialized
    assert view.access_token == "A1"
    assert view.refresh_token == "R1"


def test_load_without_access_token_is_logged_out(auth):
    store = MemoryTokenStore({REFRESH_TOKEN: "R1"})
    s = AuthSession(store, auth)

    view = s.load()

    assert view.status == SessionStatus.LOGGED_OUT
    assert view.initialized
    assert not view.is_logged_in


def test_login_then_snapshot_round_trip(session, store):
    session.login("a", "r")

    view = session.snapshot()
    assert (view.access_token, view.refresh_token, view.is_logged_in) == ("a", "r", True)
    assert store.get(ACCESS_TOKEN) == "a"
    assert store.get(REFRESH_TOKEN) == "r"


def test_credentials_change_together(session):
    session.login("a", "r")
    assert session.credentials == Credentials(access_token="a", refresh_token="r")

    session.set_access_token("b")
    assert session.credentials == Credentials(access_token="b", refresh_token="r")
    assert session.snapshot().access_token == "b"

    session.logout()
    assert session.credentials == Credentials()


def test_logout_clears_store_and_memory(session, store):
    session.login("a", "r")

    session.logout()

    assert store.get(ACCESS_TOKEN) is None
    assert store.get(REFRESH_TOKEN) is None
    assert session.status == SessionStatus.LOGGED_OUT
    assert session.access_token is None and session.refresh_token is None


def test_listeners_see_both_tokens_at_once(session):
    seen = []
    unsubscribe = session.subscribe(lambda view: seen.append((view.access_token, view.refresh_token)))

    session.login("a", "r")
    session.logout()
    unsubscribe()
    session.login("b", "s")

    assert seen == [("a", "r"), (None, None)]


@pytest.mark.asyncio
async def test_refresh_access_token_replaces_only_access_token(httpx_mock, session, store):
    session.login("A1", "R1")
    httpx_mock.add_response(method="POST", url=REFRESH_URL, json={"accessToken": "A2"})

    token = await session.refresh_access_token()

    assert token == "A2"
    assert json.loads(httpx_mock.get_request().content) == {"refreshToken": "R1"}
    assert session.status == SessionStatus.LOGGED_IN
    assert store.get(ACCESS_TOKEN) == "A2"
    assert store.get(REFRESH_TOKEN) == "R1"


@pytest.mark.asyncio
async def test_refresh_failure_forces_logout(httpx_mock, session, store):
    session.login("A1", "R1")
    httpx_mock.add_response(method="POST", url=REFRESH_URL, status_code=401, json={"message": "expired"})

    token = await session.refresh_access_token()

    assert token is None
    assert session.status == SessionStatus.LOGGED_OUT
    assert store.get(ACCESS_TOKEN) is None
    assert store.get(REFRESH_TOKEN) is None


@pytest.mark.asyncio
async def test_refresh_with_malformed_response_forces_logout(httpx_mock, session):
    session.login("A1", "R1")
    httpx_mock.add_response(method="POST", url=REFRESH_URL, json={"token": "nope"})

    assert await session.refresh_access_token() is None
    assert not session.is_logged_in


@pytest.mark.asyncio
async def test_refresh_without_refresh_token_skips_network(httpx_mock, session):
    assert await session.refresh_access_token() is None

    assert not httpx_mock.get_requests()
    assert session.status == SessionStatus.LOGGED_OUT


@pytest.mark.asyncio
async def test_exchange_raises_and_keeps_state(httpx_mock, session):
    session.login("A1", "R1")
    httpx_mock.add_response(method="POST", url=REFRESH_URL, json={})

    with pytest.raises(TokenResponseError):
        await session.exchange("R1")

    assert session.access_token == "A1"


@pytest.mark.asyncio
async def test_login_flow_sends_credentials_and_returns_pair(httpx_mock, auth):
    httpx_mock.add_response(method="POST", url=LOGIN_URL, json={"accessToken": "A1", "refreshToken": "R1"})

    pair = await auth.login("bob", "x")

    assert (pair.access_token, pair.refresh_token) == ("A1", "R1")
    assert json.loads(httpx_mock.get_request().content) == {"username": "bob", "password": "x"}
