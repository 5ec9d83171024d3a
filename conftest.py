# Shared fixtures; this file also puts the project root on sys.path for the shared and storefront packages
import logging
from typing import Any, Dict, Optional, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient

from shared.api_client import BaseApiClient
from storefront.api import AuthSession, CheckoutApi
from storefront.cart_repository import CartLine, CartStore, InMemoryCartStorage
from storefront.checkout import SetAgreedToTerms, SetBillingField
from storefront.checkout_flow import CheckoutFlow
from storefront.main import Settings, create_app

STORE_API_URL = "http://store.test/api/"
PUBLIC_KEY = "pk_test_123"

BILLING = {
    "full_name": "Thandi Mokoena",
    "address_line1": "12 Long Street",
    "city": "Cape Town",
    "postal_code": "8001",
}


class FakeRedis:
    """Just enough of redis.Redis for the cart storage."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.expiry: Dict[str, Optional[int]] = {}

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self.data[key] = value
        self.expiry[key] = ex
        return True

    def delete(self, key: str) -> int:
        self.expiry.pop(key, None)
        return 1 if self.data.pop(key, None) is not None else 0

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass


class StubStoreApi:
    """
    Canned store API behind httpx.MockTransport.

    Routes are registered relative to the API root, e.g. stub.add("POST", "orders/checkout", json={...}).
    Unregistered routes answer 404 with a JSON message.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.requests = []

    def add(
        self,
        method: str,
        path: str,
        status_code: int = 200,
        json: Any = None,
        content: Optional[bytes] = None,
        error: Optional[type] = None,
    ) -> None:
        self.routes[(method, f"/api/{path}")] = {
            "status_code": status_code,
            "json": json,
            "content": content,
            "error": error,
        }

    def calls(self, method: str, path: str):
        return [r for r in self.requests if r.method == method and r.url.path == f"/api/{path}"]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "Not found"})
        if route["error"] is not None:
            raise route["error"]("connection refused", request=request)
        if route["content"] is not None:
            return httpx.Response(route["status_code"], content=route["content"])
        if route["json"] is None:
            return httpx.Response(route["status_code"])
        return httpx.Response(route["status_code"], json=route["json"])


@pytest.fixture(autouse=True)
def restore_root_logging():
    """setup_logging() installs a stdout handler on the root logger; undo it after each test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if getattr(handler, "_storefront_json", False):
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def store_api() -> StubStoreApi:
    return StubStoreApi()


@pytest.fixture
def session() -> AuthSession:
    return AuthSession()


@pytest.fixture
def api_client(store_api, session):
    client = BaseApiClient(STORE_API_URL, token_provider=session.get_token, transport=httpx.MockTransport(store_api))
    yield client
    client.close()


@pytest.fixture
def cart() -> CartStore:
    return CartStore(InMemoryCartStorage())


@pytest.fixture
def sofa() -> CartLine:
    return CartLine(product_id=12, name="Oslo 3 Seater", unit_price=50.0, image="/img/oslo.jpg", quantity=2)


@pytest.fixture
def flow(cart, api_client, session) -> CheckoutFlow:
    navigated = []
    checkout_flow = CheckoutFlow(
        cart,
        CheckoutApi(api_client),
        public_key=PUBLIC_KEY,
        session=session,
        on_navigate=navigated.append,
    )
    checkout_flow.navigated = navigated
    return checkout_flow


@pytest.fixture
def ready_flow(flow, cart, sofa) -> CheckoutFlow:
    """Flow with a filled cart, billing address and accepted terms: submit() will call the API."""
    cart.add_item(sofa)
    for field, value in BILLING.items():
        flow.dispatch(SetBillingField(field=field, value=value))
    flow.dispatch(SetAgreedToTerms(value=True))
    return flow


@pytest.fixture
def app_client(store_api):
    settings = Settings(
        store_api_url=STORE_API_URL,
        paystack_public_key=PUBLIC_KEY,
        cart_backend="memory",
        log_level="INFO",
    )
    app = create_app(settings, storage=InMemoryCartStorage(), transport=httpx.MockTransport(store_api))
    with TestClient(app) as client:
        yield client
