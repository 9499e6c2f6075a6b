import pytest

from invoicedesk.api_client import ApiClient
from invoicedesk.auth_client import AuthClient
from invoicedesk.session import AuthSession
from invoicedesk.token_store import MemoryTokenStore

BASE_URL = "http://api.test"
INVOICES_URL = f"{BASE_URL}/invoices"
REFRESH_URL = f"{BASE_URL}/refresh"
LOGIN_URL = f"{BASE_URL}/login"
REGISTER_URL = f"{BASE_URL}/register"

INVOICE = {
    "id": 1,
    "invoiceNumber": "INV-001",
    "customer": "Acme",
    "amount": 120.5,
    "date": "2024-01-10",
    "dueDate": "2024-02-10",
    "status": "Unpaid",
    "description": "Consulting",
    "items": [{"item": "Hours", "quantity": 3, "price": 40.1666}],
}


@pytest.fixture
def store():
    return MemoryTokenStore()


@pytest.fixture
def auth():
    return AuthClient(BASE_URL)


@pytest.fixture
def session(store, auth):
    s = AuthSession(store, auth)
    s.load()
    return s


@pytest.fixture
def redirects():
    return []


@pytest.fixture
def api(session, redirects):
    return ApiClient(BASE_URL, session, on_forced_logout=redirects.append)
