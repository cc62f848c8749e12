from decimal import Decimal
from uuid import uuid4

import pytest

from bookstore.db.session import make_engine
from bookstore.domain import Book, Order, OrderStatus, utcnow
from bookstore.services.books import BookService
from bookstore.services.orders import OrderService
from bookstore.store import MemoryStore, SqlStore


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------
def _sql_store(tmp_path) -> SqlStore:
    store = SqlStore(make_engine(f"sqlite:///{tmp_path / 'bookstore.db'}"))
    store.create_schema()
    return store


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    """Every test using this fixture runs against both store variants."""
    s = MemoryStore() if request.param == "memory" else _sql_store(tmp_path)
    yield s
    s.close()


@pytest.fixture()
def memory_store():
    return MemoryStore()


@pytest.fixture()
def orders(store):
    return OrderService(store)


@pytest.fixture()
def books(store):
    return BookService(store)


# ---------------------------------------------------------------------------
# Entity factories
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_book(store):
    def _make(name="Dune", price="12.50", inventory=10, archived=False) -> Book:
        now = utcnow()
        return store.create_book(Book(
            id=uuid4(), name=name, price=Decimal(price), inventory=inventory,
            created_at=now, updated_at=now, archived=archived,
        ))
    return _make


@pytest.fixture()
def make_order(store):
    def _make(status=OrderStatus.ACCEPTING_ITEMS) -> Order:
        now = utcnow()
        return store.create_order(Order(
            order_id=uuid4(), purchaser_id=uuid4(), status=status,
            created_at=now, updated_at=now,
        ))
    return _make
