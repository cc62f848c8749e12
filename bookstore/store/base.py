"""Storage contract for books, orders and order lines.

A ``Store`` hands out ``Transaction`` handles. A handle is a context manager:
every read and write goes through it, ``commit()`` makes the writes visible
to later transactions, and leaving the ``with`` block any other way rolls the
writes back. A handle cannot be used again once it has been committed or
rolled back.

Deadlines are absolute ``time.monotonic()`` values. They are checked before
every operation and before commit; an expired deadline raises
``DeadlineExceeded`` and the transaction is rolled back on exit.
"""

from __future__ import annotations

import abc
import time
from uuid import UUID

from bookstore.domain import Book, BookQuery, Order, OrderItem, OrderStatus
from bookstore.errors import DeadlineExceeded, TransactionClosed


def remaining(deadline: float | None) -> float | None:
    """Seconds left before ``deadline``, never negative. ``None`` means no deadline."""
    if deadline is None:
        return None
    return max(0.0, deadline - time.monotonic())


def deadline_after(seconds: float | None) -> float | None:
    if seconds is None:
        return None
    return time.monotonic() + seconds


class Transaction(abc.ABC):
    def __init__(self, deadline: float | None = None):
        self.deadline = deadline
        self._closed = False

    def __enter__(self) -> "Transaction":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if not self._closed:
            self.rollback()
        return False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check(self) -> None:
        if self._closed:
            raise TransactionClosed("transaction already committed or rolled back")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise DeadlineExceeded()

    def commit(self) -> None:
        self._check()
        self._closed = True
        try:
            self._commit()
        except BaseException:
            self._rollback()
            raise
        finally:
            self._release()

    def rollback(self) -> None:
        if self._closed:
            raise TransactionClosed("transaction already committed or rolled back")
        self._closed = True
        try:
            self._rollback()
        finally:
            self._release()

    # books

    def create_book(self, book: Book) -> Book:
        self._check()
        return self._create_book(book)

    def get_book(self, book_id: UUID) -> Book:
        """Raises ``BookNotFound``. Locks the book row until the transaction ends."""
        self._check()
        return self._get_book(book_id)

    def update_book(self, book: Book) -> Book:
        """Overwrites every mutable field of the stored book; ``created_at`` is kept."""
        self._check()
        return self._update_book(book)

    def list_books(self, query: BookQuery) -> list[Book]:
        self._check()
        return self._list_books(query)

    def count_books(self, query: BookQuery) -> int:
        self._check()
        return self._count_books(query)

    # orders

    def create_order(self, order: Order) -> Order:
        self._check()
        return self._create_order(order)

    def get_order(self, order_id: UUID) -> Order:
        """Raises ``OrderNotFound``. Items come back in insertion order."""
        self._check()
        return self._get_order(order_id)

    def touch_order(self, order_id: UUID) -> None:
        """Locks the order, refreshes ``updated_at`` and asserts it still accepts items.

        Raises ``OrderNotFound`` or ``OrderNotAcceptingItems``.
        """
        self._check()
        self._touch_order(order_id)

    def set_order_status(self, order_id: UUID, status: OrderStatus) -> Order:
        self._check()
        return self._set_order_status(order_id, status)

    # order lines

    def get_order_item(self, order_id: UUID, book_id: UUID) -> OrderItem:
        """Raises ``BookNotAtOrder`` when the book has no line in the order."""
        self._check()
        return self._get_order_item(order_id, book_id)

    def upsert_order_item(self, order_id: UUID, item: OrderItem) -> OrderItem:
        """Inserts the line or overwrites units, price and ``updated_at``.

        ``created_at`` of an existing line is preserved. Raises ``OrderNotFound``.
        """
        self._check()
        return self._upsert_order_item(order_id, item)

    def delete_order_item(self, order_id: UUID, book_id: UUID) -> None:
        """Removes the line if present. Raises ``OrderNotFound``."""
        self._check()
        self._delete_order_item(order_id, book_id)

    @abc.abstractmethod
    def _commit(self) -> None: ...

    @abc.abstractmethod
    def _rollback(self) -> None: ...

    @abc.abstractmethod
    def _release(self) -> None: ...

    @abc.abstractmethod
    def _create_book(self, book: Book) -> Book: ...

    @abc.abstractmethod
    def _get_book(self, book_id: UUID) -> Book: ...

    @abc.abstractmethod
    def _update_book(self, book: Book) -> Book: ...

    @abc.abstractmethod
    def _list_books(self, query: BookQuery) -> list[Book]: ...

    @abc.abstractmethod
    def _count_books(self, query: BookQuery) -> int: ...

    @abc.abstractmethod
    def _create_order(self, order: Order) -> Order: ...

    @abc.abstractmethod
    def _get_order(self, order_id: UUID) -> Order: ...

    @abc.abstractmethod
    def _touch_order(self, order_id: UUID) -> None: ...

    @abc.abstractmethod
    def _set_order_status(self, order_id: UUID, status: OrderStatus) -> Order: ...

    @abc.abstractmethod
    def _get_order_item(self, order_id: UUID, book_id: UUID) -> OrderItem: ...

    @abc.abstractmethod
    def _upsert_order_item(self, order_id: UUID, item: OrderItem) -> OrderItem: ...

    @abc.abstractmethod
    def _delete_order_item(self, order_id: UUID, book_id: UUID) -> None: ...


class Store(abc.ABC):
    """Keyed storage with a transaction boundary.

    The one-shot methods run a single operation in its own transaction and
    commit it when it writes.
    """

    @abc.abstractmethod
    def begin(self, deadline: float | None = None) -> Transaction: ...

    def close(self) -> None:
        pass

    def get_book(self, book_id: UUID, deadline: float | None = None) -> Book:
        with self.begin(deadline) as tx:
            return tx.get_book(book_id)

    def create_book(self, book: Book, deadline: float | None = None) -> Book:
        with self.begin(deadline) as tx:
            created = tx.create_book(book)
            tx.commit()
        return created

    def update_book(self, book: Book, deadline: float | None = None) -> Book:
        with self.begin(deadline) as tx:
            updated = tx.update_book(book)
            tx.commit()
        return updated

    def create_order(self, order: Order, deadline: float | None = None) -> Order:
        with self.begin(deadline) as tx:
            created = tx.create_order(order)
            tx.commit()
        return created

    def get_order(self, order_id: UUID, deadline: float | None = None) -> Order:
        with self.begin(deadline) as tx:
            return tx.get_order(order_id)

    def touch_order(self, order_id: UUID, deadline: float | None = None) -> None:
        with self.begin(deadline) as tx:
            tx.touch_order(order_id)
            tx.commit()

    def get_order_item(self, order_id: UUID, book_id: UUID, deadline: float | None = None) -> OrderItem:
        with self.begin(deadline) as tx:
            return tx.get_order_item(order_id, book_id)

    def upsert_order_item(self, order_id: UUID, item: OrderItem, deadline: float | None = None) -> OrderItem:
        with self.begin(deadline) as tx:
            stored = tx.upsert_order_item(order_id, item)
            tx.commit()
        return stored

    def delete_order_item(self, order_id: UUID, book_id: UUID, deadline: float | None = None) -> None:
        with self.begin(deadline) as tx:
            tx.delete_order_item(order_id, book_id)
            tx.commit()
