"""SQLAlchemy-backed store.

Each transaction owns one ``Session``. Order and book rows are read with
``SELECT ... FOR UPDATE`` so conflicting transactions wait for each other on
PostgreSQL; on SQLite the engine opens every transaction with
``BEGIN IMMEDIATE`` (see ``bookstore.db.session.make_engine``), which
serializes writers for the whole database.
"""

from __future__ import annotations

import math
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from uuid import UUID

import structlog
from sqlalchemy import func, or_, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from bookstore.db import models
from bookstore.db.session import Base, make_session_factory
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

QUERY_CANCELED = "57014"


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _book(row: models.Book) -> Book:
    return Book(
        id=row.id,
        name=row.name,
        price=row.price,
        inventory=row.inventory,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        archived=row.archived,
    )


def _item(row: models.OrderItem) -> OrderItem:
    return OrderItem(
        order_id=row.order_id,
        book_id=row.book_id,
        book_name=row.book_name,
        book_units=row.book_units,
        unit_price_at_order=row.unit_price_at_order,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _order(row: models.Order, items: list[OrderItem]) -> Order:
    return Order(
        order_id=row.order_id,
        purchaser_id=row.purchaser_id,
        status=OrderStatus(row.status),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        items=items,
    )


class SqlStore(Store):
    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = make_session_factory(engine)

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    def close(self) -> None:
        self.engine.dispose()

    def begin(self, deadline: float | None = None) -> "SqlTransaction":
        session = self._session_factory()
        try:
            session.begin()
            left = remaining(deadline)
            if left is not None and self.engine.dialect.name == "postgresql":
                # SET does not take bind parameters
                session.execute(text(f"SET LOCAL statement_timeout = {max(1, math.ceil(left * 1000))}"))
        except SQLAlchemyError as exc:
            session.close()
            raise InfrastructureError(str(getattr(exc, "orig", None) or exc)) from exc
        return SqlTransaction(session, deadline)


class SqlTransaction(Transaction):
    def __init__(self, session: Session, deadline: float | None = None):
        super().__init__(deadline)
        self._session = session

    @contextmanager
    def _errors(self):
        try:
            yield
        except OperationalError as exc:
            expired = self.deadline is not None and time.monotonic() >= self.deadline
            if expired or getattr(exc.orig, "sqlstate", None) == QUERY_CANCELED:
                raise DeadlineExceeded() from exc
            logger.error("Store operation failed", error=str(exc.orig))
            raise InfrastructureError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            logger.error("Store operation failed", error=str(exc))
            raise InfrastructureError(str(getattr(exc, "orig", None) or exc)) from exc

    def _commit(self) -> None:
        with self._errors():
            self._session.commit()

    def _rollback(self) -> None:
        # a failing rollback must not mask the error that triggered it
        try:
            self._session.rollback()
        except SQLAlchemyError as exc:
            logger.error("Rollback failed", error=str(exc))

    def _release(self) -> None:
        self._session.close()

    # books

    def _book_row(self, book_id: UUID) -> models.Book:
        row = self._session.get(models.Book, book_id, with_for_update=True)
        if row is None:
            raise BookNotFound()
        return row

    def _create_book(self, book: Book) -> Book:
        with self._errors():
            row = models.Book(
                id=book.id, name=book.name, price=book.price, inventory=book.inventory,
                created_at=book.created_at, updated_at=book.updated_at, archived=book.archived,
            )
            self._session.add(row)
            self._session.flush()
            return _book(row)

    def _get_book(self, book_id: UUID) -> Book:
        with self._errors():
            return _book(self._book_row(book_id))

    def _update_book(self, book: Book) -> Book:
        with self._errors():
            row = self._book_row(book.id)
            row.name = book.name
            row.price = book.price
            row.inventory = book.inventory
            row.archived = book.archived
            row.updated_at = book.updated_at
            self._session.flush()
            return _book(row)

    @staticmethod
    def _book_filters(query: BookQuery) -> list:
        return [
            models.Book.name.ilike(f"%{query.name}%"),
            models.Book.price.between(query.min_price, query.max_price),
            or_(models.Book.archived == query.archived, models.Book.archived.is_(False)),
        ]

    def _list_books(self, query: BookQuery) -> list[Book]:
        column = getattr(models.Book, query.sort_by.value)
        ordering = column.desc() if query.sort_direction == SortDirection.DESC else column.asc()
        stmt = (
            select(models.Book)
            .where(*self._book_filters(query))
            .order_by(ordering, models.Book.id)
            .offset(query.offset)
            .limit(query.page_size)
        )
        with self._errors():
            return [_book(row) for row in self._session.execute(stmt).scalars().all()]

    def _count_books(self, query: BookQuery) -> int:
        stmt = select(func.count()).select_from(models.Book).where(*self._book_filters(query))
        with self._errors():
            return self._session.execute(stmt).scalar_one()

    # orders

    def _order_row(self, order_id: UUID, lock: bool = False) -> models.Order:
        row = self._session.get(models.Order, order_id, with_for_update=lock)
        if row is None:
            raise OrderNotFound()
        return row

    def _items(self, order_id: UUID) -> list[OrderItem]:
        stmt = (
            select(models.OrderItem)
            .where(models.OrderItem.order_id == order_id)
            .order_by(models.OrderItem.created_at, models.OrderItem.book_id)
        )
        return [_item(row) for row in self._session.execute(stmt).scalars().all()]

    def _create_order(self, order: Order) -> Order:
        with self._errors():
            row = models.Order(
                order_id=order.order_id, purchaser_id=order.purchaser_id, status=order.status,
                created_at=order.created_at, updated_at=order.updated_at,
            )
            self._session.add(row)
            self._session.flush()
            return _order(row, [])

    def _get_order(self, order_id: UUID) -> Order:
        with self._errors():
            row = self._order_row(order_id)
            return _order(row, self._items(order_id))

    def _touch_order(self, order_id: UUID) -> None:
        with self._errors():
            row = self._order_row(order_id, lock=True)
            if row.status != OrderStatus.ACCEPTING_ITEMS:
                raise OrderNotAcceptingItems()
            row.updated_at = utcnow()
            self._session.flush()

    def _set_order_status(self, order_id: UUID, status: OrderStatus) -> Order:
        with self._errors():
            row = self._order_row(order_id, lock=True)
            row.status = status
            row.updated_at = utcnow()
            self._session.flush()
            return _order(row, self._items(order_id))

    # order lines

    def _get_order_item(self, order_id: UUID, book_id: UUID) -> OrderItem:
        with self._errors():
            row = self._session.get(models.OrderItem, (order_id, book_id))
            if row is None:
                raise BookNotAtOrder()
            return _item(row)

    def _upsert_order_item(self, order_id: UUID, item: OrderItem) -> OrderItem:
        with self._errors():
            self._order_row(order_id)
            row = self._session.get(models.OrderItem, (order_id, item.book_id))
            now = utcnow()
            if row is None:
                row = models.OrderItem(
                    order_id=order_id, book_id=item.book_id, book_name=item.book_name,
                    book_units=item.book_units, unit_price_at_order=item.unit_price_at_order,
                    created_at=now, updated_at=now,
                )
                self._session.add(row)
            else:
                row.book_units = item.book_units
                row.unit_price_at_order = item.unit_price_at_order
                row.updated_at = now
            self._session.flush()
            return _item(row)

    def _delete_order_item(self, order_id: UUID, book_id: UUID) -> None:
        with self._errors():
            self._order_row(order_id)
            row = self._session.get(models.OrderItem, (order_id, book_id))
            if row is not None:
                self._session.delete(row)
                self._session.flush()
