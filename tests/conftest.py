"""
Pytest fixtures for the storefront sync tests

The remote API is replaced by ``FakeStorefrontAPI``, an in-memory server
plugged into httpx through ``httpx.MockTransport``. Time is driven by
``FakeClock`` so cache TTL and throttle windows are deterministic.
"""
import json
from typing import Dict, List, Optional

import httpx
import pytest

from storefront.connectors.storefront_api import StorefrontAPIConnector
from storefront.core.config import Settings
from storefront.services.cache_controller import CacheController
from storefront.storage.local_storage import MemoryStorage, PersistenceAdapter
from storefront.sync.channel import StorageEventChannel


API_URL = "http://testserver/api"
ADMIN_SECRET = "test-secret"
PREFIX = "kottravai_"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStorefrontAPI:
    """In-memory stand-in for the storefront REST API"""

    def __init__(self):
        self.products: List[Dict] = []
        self.orders: List[Dict] = []
        self.wishlists: Dict[str, List[str]] = {}
        self.tokens: Dict[str, str] = {}
        self.requests: List[httpx.Request] = []
        self.network_down = False
        self.fail_status: Dict[tuple, int] = {}
        self.fail_toggle_ids = set()
        self.omit_reviews_on_update = True
        self._next_id = 100

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: str, path: str) -> int:
        return sum(
            1 for r in self.requests
            if r.method == method and r.url.path == f"/api{path}"
        )

    def add_user(self, token: str, email: str) -> None:
        self.tokens[token] = email
        self.wishlists.setdefault(token, [])

    def _new_id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    def _bearer(self, request: httpx.Request) -> Optional[str]:
        header = request.headers.get("authorization", "")
        if header.startswith("Bearer "):
            token = header[len("Bearer "):]
            return token if token in self.tokens else None
        return None

    def _is_admin(self, request: httpx.Request) -> bool:
        return request.headers.get("x-admin-secret") == ADMIN_SECRET

    def _wishlist_products(self, token: str) -> List[Dict]:
        by_id = {str(p["id"]): p for p in self.products}
        return [by_id.get(pid, {"id": pid, "name": f"Product {pid}"}) for pid in self.wishlists[token]]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.network_down:
            raise httpx.ConnectError("connection refused", request=request)

        path = request.url.path[len("/api"):]
        method = request.method
        body = json.loads(request.content) if request.content else None

        status = self.fail_status.get((method, path))
        if status:
            return httpx.Response(status, json={"error": "forced failure"})

        parts = [p for p in path.split("/") if p]
        resource = parts[0] if parts else ""
        ident = parts[1] if len(parts) > 1 else None

        if resource == "products":
            if method == "GET" and ident is None:
                return httpx.Response(200, json=self.products)
            if method == "GET":
                for product in self.products:
                    if product.get("slug") == ident:
                        detailed = dict(product)
                        detailed.setdefault("description", "Full description")
                        return httpx.Response(200, json=detailed)
                return httpx.Response(404, json={"error": "Product not found"})
            if method == "POST":
                created = dict(body, id=self._new_id())
                self.products.append(created)
                return httpx.Response(201, json=created)
            if method == "PUT":
                updated = dict(body, id=ident)
                self.products = [updated if str(p["id"]) == ident else p for p in self.products]
                response = dict(updated)
                if self.omit_reviews_on_update:
                    response.pop("reviews", None)
                return httpx.Response(200, json=response)
            if method == "DELETE":
                self.products = [p for p in self.products if str(p["id"]) != ident]
                return httpx.Response(204)

        if resource == "reviews" and method == "POST":
            review = dict(body, id=self._new_id())
            return httpx.Response(201, json=review)

        if resource == "orders":
            if method == "GET":
                if self._is_admin(request):
                    return httpx.Response(200, json=self.orders)
                token = self._bearer(request)
                if token is None:
                    return httpx.Response(401, json={"error": "Unauthorized"})
                email = self.tokens[token]
                return httpx.Response(
                    200, json=[o for o in self.orders if o.get("customerEmail") == email]
                )
            if method == "POST":
                created = dict(body, id=self._new_id(), status="Pending",
                               date="2025-11-03T09:00:00Z")
                created["customerEmail"] = created.pop("customer_email", None)
                created["customerName"] = created.pop("customer_name", None)
                self.orders.insert(0, created)
                return httpx.Response(201, json=created)
            if not self._is_admin(request):
                return httpx.Response(403, json={"error": "Forbidden"})
            if method == "PUT":
                for order in self.orders:
                    if str(order["id"]) == ident:
                        order.update(body)
                        return httpx.Response(200, json=order)
                return httpx.Response(404, json={"error": "Order not found"})
            if method == "DELETE":
                self.orders = [o for o in self.orders if str(o["id"]) != ident]
                return httpx.Response(204)

        if resource == "wishlist":
            token = self._bearer(request)
            if token is None:
                return httpx.Response(401, json={"error": "Unauthorized"})
            if method == "GET":
                return httpx.Response(200, json=self._wishlist_products(token))
            if method == "POST" and ident == "toggle":
                product_id = str(body["productId"])
                if product_id in self.fail_toggle_ids:
                    return httpx.Response(500, json={"error": "toggle failed"})
                ids = self.wishlists[token]
                if product_id in ids:
                    ids.remove(product_id)
                    return httpx.Response(200, json={"added": False})
                ids.append(product_id)
                return httpx.Response(200, json={"added": True})

        return httpx.Response(404, json={"error": "Not found"})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def api():
    return FakeStorefrontAPI()


@pytest.fixture
def connector(api):
    return StorefrontAPIConnector(API_URL, admin_secret=ADMIN_SECRET, transport=api.transport)


@pytest.fixture
def channel():
    return StorageEventChannel()


@pytest.fixture
def shared_storage():
    """Backing storage shared by every tab in a test"""
    return MemoryStorage()


@pytest.fixture
def local(shared_storage, channel):
    return PersistenceAdapter(shared_storage, prefix=PREFIX, channel=channel, source="tab-a")


@pytest.fixture
def session_local():
    return PersistenceAdapter(MemoryStorage(), prefix=PREFIX)


@pytest.fixture
def cache(local, session_local, clock):
    return CacheController(local, session_local, clock=clock)


@pytest.fixture
def settings():
    return Settings(
        STOREFRONT_API_URL=API_URL,
        ADMIN_SECRET=ADMIN_SECRET,
        FETCH_THROTTLE_SECONDS=30.0,
        PRODUCT_CACHE_TTL_SECONDS=300.0,
        ORDER_POLL_INTERVAL_SECONDS=60.0,
        LOG_LEVEL="DEBUG",
    )
