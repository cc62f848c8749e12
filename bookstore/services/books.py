from __future__ import annotations

import math
from dataclasses import replace
from decimal import Decimal
from uuid import UUID, uuid4

import httpx
import structlog

from bookstore.domain import PRICE_MAX, Book, BookPage, BookQuery, utcnow
from bookstore.errors import BookEntryBlankFields, NotificationFailed, QueryPageOutOfRange
from bookstore.services.notifications import Ntfy
from bookstore.store import Store

logger = structlog.get_logger(__name__)


def _validate_entry(name: str, price: Decimal) -> None:
    if not name or not name.strip():
        raise BookEntryBlankFields()
    if not price.is_finite() or price < 0 or price > PRICE_MAX or price.as_tuple().exponent < -2:
        raise BookEntryBlankFields()


class BookService:
    """Book CRUD. Inventory is set once at creation; afterwards only the
    order workflow changes it."""

    def __init__(self, store: Store, notifier: Ntfy | None = None):
        self._store = store
        self._notifier = notifier

    def create_book(self, name: str, price: Decimal, inventory: int, deadline: float | None = None) -> Book:
        _validate_entry(name, price)
        if inventory < 0:
            raise BookEntryBlankFields()
        now = utcnow()
        book = Book(id=uuid4(), name=name, price=price, inventory=inventory,
                    created_at=now, updated_at=now, archived=False)
        created = self._store.create_book(book, deadline)
        logger.info("Book created", book_id=str(created.id), name=created.name, inventory=created.inventory)
        return created

    def get_book(self, book_id: UUID, deadline: float | None = None) -> Book:
        return self._store.get_book(book_id, deadline)

    def update_book(self, book_id: UUID, name: str, price: Decimal, deadline: float | None = None) -> Book:
        _validate_entry(name, price)
        with self._store.begin(deadline) as tx:
            book = tx.get_book(book_id)
            updated = tx.update_book(replace(book, name=name, price=price, updated_at=utcnow()))
            tx.commit()
        logger.info("Book updated", book_id=str(book_id))
        return updated

    def archive_book(self, book_id: UUID, deadline: float | None = None) -> Book:
        with self._store.begin(deadline) as tx:
            book = tx.get_book(book_id)
            archived = tx.update_book(replace(book, archived=True, updated_at=utcnow()))
            tx.commit()
        logger.info("Book archived", book_id=str(book_id))
        return archived

    def list_books(self, query: BookQuery, deadline: float | None = None) -> BookPage:
        with self._store.begin(deadline) as tx:
            items_total = tx.count_books(query)
            if items_total == 0:
                return BookPage(page_current=0, page_total=0, page_size=0, items_total=0, results=[])
            page_total = math.ceil(items_total / query.page_size)
            if query.page > page_total:
                raise QueryPageOutOfRange()
            results = tx.list_books(query)
        return BookPage(
            page_current=query.page,
            page_total=page_total,
            page_size=query.page_size,
            items_total=items_total,
            results=results,
        )

    def notify_created(self, book: Book) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.book_created(book.name, book.inventory)
        except (httpx.HTTPError, NotificationFailed) as exc:
            logger.warning("Book notification failed", book_id=str(book.id), error=str(exc))
