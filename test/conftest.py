"""
Shared fixtures for the unit/API tests: an in-memory order store and a recorder for published events.
The live scenario script (test_normal_flow.py) does not use these.
"""
import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from storefront import lifecycle
from storefront.db import get_store
from storefront.errors import NotFoundError
from storefront.main import app
from storefront.models import Order
from storefront.order_state import OrderStatus, PaymentMethod, PaymentStatus


class InMemoryOrderStore:
    def __init__(self):
        self.orders: dict[uuid.UUID, Order] = {}
        self.writes = 0
        self.written_columns: list[list[str]] = []

    async def create(self, order: Order) -> Order:
        now = datetime.now(timezone.utc)
        stored = order.model_copy(update={"created_at": now, "updated_at": now})
        self.orders[stored.id] = stored
        self.writes += 1
        return stored

    async def get(self, order_id: uuid.UUID) -> Order:
        try:
            return self.orders[order_id]
        except KeyError:
            raise NotFoundError("Order not found")

    async def find(self, user_id=None, status=None, payment_status=None) -> list[Order]:
        found = [
            o for o in self.orders.values()
            if (user_id is None or o.user == user_id)
            and (status is None or o.status == status)
            and (payment_status is None or o.payment_status == payment_status)
        ]
        return list(reversed(found))

    async def _write(self, order_id: uuid.UUID, **columns) -> Order:
        if order_id not in self.orders:
            raise NotFoundError("Order not found")
        columns["updated_at"] = datetime.now(timezone.utc)
        stored = self.orders[order_id].model_copy(update=columns)
        self.orders[order_id] = stored
        self.writes += 1
        self.written_columns.append(sorted(columns))
        return stored

    async def save_status(self, order_id, status, payment_status=None) -> Order:
        columns = {"status": status}
        if payment_status is not None:
            columns["payment_status"] = payment_status
        return await self._write(order_id, **columns)

    async def save_payment_status(self, order_id, payment_status) -> Order:
        return await self._write(order_id, payment_status=payment_status)


@pytest.fixture
def store():
    return InMemoryOrderStore()


@pytest.fixture
def published(monkeypatch):
    events: list[dict] = []

    async def record(event: dict) -> None:
        events.append(event)

    monkeypatch.setattr(lifecycle, "push_event", record)
    return events


@pytest.fixture
def client(store, published):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def order_factory():
    def make(**overrides) -> Order:
        fields = {
            "id": uuid.uuid4(),
            "user": "user-1",
            "name": "Oversized Tee",
            "price": 25000.0,
            "images": ["https://cdn.example.com/tee.jpg"],
            "category": "tops",
            "total_price": 27500.0,
            "status": OrderStatus.PENDING,
            "delivery_address": {"street": "12 Admiralty Way", "city": "Lekki", "state": "Lagos"},
            "payment_method": PaymentMethod.DELIVERY,
            "payment_status": PaymentStatus.PENDING,
        }
        fields.update(overrides)
        return Order(**fields)

    return make


@pytest.fixture
def seed(store, order_factory):
    """Put an order straight into the store (bypassing the API) and return it."""
    def put(**overrides) -> Order:
        order = order_factory(**overrides)
        store.orders[order.id] = order
        return order

    return put
