"""In-process store.

Rows live in plain dicts guarded by one mutex. A transaction takes a lock per
book or order row the first time it touches the row and keeps it until it
ends, which serializes transactions that share an order or a book while
leaving disjoint ones free to run in parallel. A row lock is dropped once no
transaction holds or waits on it. Order lines are guarded by
their order's lock. Writes are buffered in the transaction and applied to the
tables in one step on commit.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from uuid import UUID

import structlog

from bookstore.domain import Book, BookQuery, Order, OrderItem, OrderStatus, SortDirection, utcnow
from bookstore.errors import (
    BookNotAtOrder,
    BookNotFound,
    DeadlineExceeded,
    InfrastructureError,
    OrderNotAcceptingItems,
    OrderNotFound,
)
from bookstore.store.base import Store, Transaction, remaining

logger = structlog.get_logger(__name__)

BOOKS = "books"
ORDERS = "orders"
ITEMS = "items"

_DELETED = object()


class MemoryStore(Store):
    def __init__(self):
        self._mutex = threading.Lock()
        # (table, key) -> [lock, number of transactions holding or waiting on it]
        self._row_locks: dict[tuple, list] = {}
        self._tables: dict[str, dict] = {BOOKS: {}, ORDERS: {}, ITEMS: {}}

    def begin(self, deadline: float | None = None) -> "MemoryTransaction":
        return MemoryTransaction(self, deadline)

    def checkout_lock(self, table: str, key) -> threading.Lock:
        with self._mutex:
            entry = self._row_locks.setdefault((table, key), [threading.Lock(), 0])
            entry[1] += 1
            return entry[0]

    def checkin_lock(self, table: str, key) -> None:
        with self._mutex:
            entry = self._row_locks[(table, key)]
            entry[1] -= 1
            if entry[1] == 0:
                del self._row_locks[(table, key)]

    def read(self, table: str, key):
        with self._mutex:
            return self._tables[table].get(key)

    def scan(self, table: str) -> list[tuple]:
        with self._mutex:
            return list(self._tables[table].items())

    def apply(self, writes: dict) -> None:
        with self._mutex:
            for (table, key), value in writes.items():
                if value is _DELETED:
                    self._tables[table].pop(key, None)
                else:
                    self._tables[table][key] = value


class MemoryTransaction(Transaction):
    def __init__(self, store: MemoryStore, deadline: float | None = None):
        super().__init__(deadline)
        self._store = store
        self._held: dict[tuple, threading.Lock] = {}
        self._writes: dict[tuple, object] = {}

    def _lock(self, table: str, key) -> None:
        if (table, key) in self._held:
            return
        lock = self._store.checkout_lock(table, key)
        timeout = remaining(self.deadline)
        acquired = lock.acquire() if timeout is None else lock.acquire(timeout=timeout)
        if not acquired:
            self._store.checkin_lock(table, key)
            logger.warning("Row lock wait exceeded deadline", table=table, key=str(key))
            raise DeadlineExceeded()
        self._held[(table, key)] = lock

    def _read(self, table: str, key):
        if (table, key) in self._writes:
            value = self._writes[(table, key)]
            return None if value is _DELETED else value
        return self._store.read(table, key)

    def _write(self, table: str, key, value) -> None:
        self._writes[(table, key)] = value

    def _rows(self, table: str) -> dict:
        rows = dict(self._store.scan(table))
        for (t, key), value in self._writes.items():
            if t != table:
                continue
            if value is _DELETED:
                rows.pop(key, None)
            else:
                rows[key] = value
        return rows

    def _commit(self) -> None:
        self._store.apply(self._writes)

    def _rollback(self) -> None:
        self._writes.clear()

    def _release(self) -> None:
        while self._held:
            (table, key), lock = self._held.popitem()
            lock.release()
            self._store.checkin_lock(table, key)

    # books

    def _create_book(self, book: Book) -> Book:
        self._lock(BOOKS, book.id)
        if self._read(BOOKS, book.id) is not None:
            raise InfrastructureError(f"duplicate book id {book.id}")
        self._write(BOOKS, book.id, replace(book))
        return replace(book)

    def _get_book(self, book_id: UUID) -> Book:
        self._lock(BOOKS, book_id)
        book = self._read(BOOKS, book_id)
        if book is None:
            raise BookNotFound()
        return replace(book)

    def _update_book(self, book: Book) -> Book:
        self._lock(BOOKS, book.id)
        stored = self._read(BOOKS, book.id)
        if stored is None:
            raise BookNotFound()
        updated = replace(book, created_at=stored.created_at)
        self._write(BOOKS, book.id, updated)
        return replace(updated)

    def _matching(self, query: BookQuery) -> list[Book]:
        name = query.name.lower()
        books = [
            b for b in self._rows(BOOKS).values()
            if name in b.name.lower()
            and query.min_price <= b.price <= query.max_price
            and (query.archived or not b.archived)
        ]
        return books

    def _list_books(self, query: BookQuery) -> list[Book]:
        books = sorted(self._matching(query), key=lambda b: str(b.id))
        books.sort(key=lambda b: getattr(b, query.sort_by.value),
                   reverse=query.sort_direction == SortDirection.DESC)
        return [replace(b) for b in books[query.offset:query.offset + query.page_size]]

    def _count_books(self, query: BookQuery) -> int:
        return len(self._matching(query))

    # orders

    def _create_order(self, order: Order) -> Order:
        self._lock(ORDERS, order.order_id)
        if self._read(ORDERS, order.order_id) is not None:
            raise InfrastructureError(f"duplicate order id {order.order_id}")
        self._write(ORDERS, order.order_id, replace(order, items=[]))
        return replace(order, items=[])

    def _order_row(self, order_id: UUID) -> Order:
        self._lock(ORDERS, order_id)
        order = self._read(ORDERS, order_id)
        if order is None:
            raise OrderNotFound()
        return order

    def _get_order(self, order_id: UUID) -> Order:
        order = self._order_row(order_id)
        items = [replace(item) for (oid, _), item in self._rows(ITEMS).items() if oid == order_id]
        return replace(order, items=items)

    def _touch_order(self, order_id: UUID) -> None:
        order = self._order_row(order_id)
        if not order.accepting_items:
            raise OrderNotAcceptingItems()
        self._write(ORDERS, order_id, replace(order, updated_at=utcnow()))

    def _set_order_status(self, order_id: UUID, status: OrderStatus) -> Order:
        order = self._order_row(order_id)
        self._write(ORDERS, order_id, replace(order, status=status, updated_at=utcnow()))
        return self._get_order(order_id)

    # order lines

    def _get_order_item(self, order_id: UUID, book_id: UUID) -> OrderItem:
        self._lock(ORDERS, order_id)
        item = self._read(ITEMS, (order_id, book_id))
        if item is None:
            raise BookNotAtOrder()
        return replace(item)

    def _upsert_order_item(self, order_id: UUID, item: OrderItem) -> OrderItem:
        self._order_row(order_id)
        key = (order_id, item.book_id)
        existing = self._read(ITEMS, key)
        now = utcnow()
        if existing is None:
            stored = replace(item, order_id=order_id, created_at=now, updated_at=now)
        else:
            stored = replace(existing, book_units=item.book_units,
                             unit_price_at_order=item.unit_price_at_order, updated_at=now)
        self._write(ITEMS, key, stored)
        return replace(stored)

    def _delete_order_item(self, order_id: UUID, book_id: UUID) -> None:
        self._order_row(order_id)
        key = (order_id, book_id)
        if self._read(ITEMS, key) is not None:
            self._write(ITEMS, key, _DELETED)
