from __future__ import annotations

from dataclasses import replace
from uuid import UUID, uuid4

import structlog

from bookstore.domain import Order, OrderItem, OrderStatus, utcnow
from bookstore.errors import (
    BookIsArchived,
    BookNotAtOrder,
    BookstoreError,
    InsufficientInventory,
    UpdateOrderEntryBlankFields,
)
from bookstore.store import Store

logger = structlog.get_logger(__name__)


class OrderService:
    def __init__(self, store: Store):
        self._store = store

    def create_order(self, purchaser_id: UUID, deadline: float | None = None) -> Order:
        now = utcnow()
        order = Order(
            order_id=uuid4(),
            purchaser_id=purchaser_id,
            status=OrderStatus.ACCEPTING_ITEMS,
            created_at=now,
            updated_at=now,
        )
        created = self._store.create_order(order, deadline)
        logger.info("Order created", order_id=str(created.order_id), purchaser_id=str(purchaser_id))
        return created

    def get_order(self, order_id: UUID, deadline: float | None = None) -> Order:
        return self._store.get_order(order_id, deadline)

    def submit_order(self, order_id: UUID, deadline: float | None = None) -> Order:
        """Closes the order to further line changes."""
        with self._store.begin(deadline) as tx:
            tx.touch_order(order_id)
            order = tx.set_order_status(order_id, OrderStatus.SUBMITTED)
            tx.commit()
        logger.info("Order submitted", order_id=str(order_id), total_price=str(order.total_price))
        return order

    def apply_unit_delta(self, order_id: UUID, book_id: UUID, delta: int,
                         deadline: float | None = None) -> OrderItem:
        """Adds (delta > 0) or removes (delta < 0) units of a book on an order.

        The order line and the book's inventory change together in a single
        transaction, or not at all. Returns the line as it stands afterwards;
        a line emptied by the change is deleted and comes back with zero units.
        """
        if delta == 0:
            raise UpdateOrderEntryBlankFields()

        log = logger.bind(order_id=str(order_id), book_id=str(book_id), delta=delta)
        try:
            with self._store.begin(deadline) as tx:
                tx.touch_order(order_id)

                book = tx.get_book(book_id)
                if book.archived:
                    raise BookIsArchived()

                try:
                    existing = tx.get_order_item(order_id, book_id)
                except BookNotAtOrder:
                    existing = None
                current_units = existing.book_units if existing else 0

                new_units = current_units + delta
                if new_units < 0:
                    raise BookNotAtOrder()

                new_inventory = book.inventory - delta
                if new_inventory < 0:
                    raise InsufficientInventory()

                now = utcnow()
                if new_units == 0:
                    tx.delete_order_item(order_id, book_id)
                    line = replace(existing, book_units=0, updated_at=now)
                else:
                    line = tx.upsert_order_item(order_id, OrderItem(
                        order_id=order_id,
                        book_id=book_id,
                        book_name=book.name,
                        book_units=new_units,
                        unit_price_at_order=existing.unit_price_at_order if existing else book.price,
                        created_at=existing.created_at if existing else now,
                        updated_at=now,
                    ))

                tx.update_book(replace(book, inventory=new_inventory, updated_at=now))
                tx.commit()
        except BookstoreError as exc:
            log.info("Order line change rolled back", error_code=exc.code, reason=exc.message)
            raise

        log.info("Order line changed", book_units=line.book_units, inventory=new_inventory)
        return line
