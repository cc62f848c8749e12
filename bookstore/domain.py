"""Entities passed between the store, the services and the HTTP layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from uuid import UUID

PRICE_MAX = Decimal("9999.99")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    ACCEPTING_ITEMS = "accepting_items"
    SUBMITTED = "submitted"


class SortBy(str, Enum):
    NAME = "name"
    PRICE = "price"
    INVENTORY = "inventory"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass
class Book:
    id: UUID
    name: str
    price: Decimal
    inventory: int
    created_at: datetime
    updated_at: datetime
    archived: bool = False


@dataclass
class OrderItem:
    order_id: UUID
    book_id: UUID
    book_name: str
    book_units: int
    unit_price_at_order: Decimal
    created_at: datetime
    updated_at: datetime

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price_at_order * self.book_units


@dataclass
class Order:
    order_id: UUID
    purchaser_id: UUID
    status: OrderStatus
    created_at: datetime
    updated_at: datetime
    items: list[OrderItem] = field(default_factory=list)

    @property
    def total_price(self) -> Decimal:
        return sum((item.subtotal for item in self.items), Decimal("0"))

    @property
    def accepting_items(self) -> bool:
        return self.status == OrderStatus.ACCEPTING_ITEMS


@dataclass
class BookQuery:
    name: str = ""
    min_price: Decimal = Decimal("0")
    max_price: Decimal = PRICE_MAX
    sort_by: SortBy = SortBy.NAME
    sort_direction: SortDirection = SortDirection.ASC
    archived: bool = False
    page: int = 1
    page_size: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class BookPage:
    page_current: int
    page_total: int
    page_size: int
    items_total: int
    results: list[Book] = field(default_factory=list)
