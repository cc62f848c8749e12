from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from bookstore.domain import OrderStatus


# Request bodies leave every field optional so a missing field surfaces as the
# matching "blank fields" error rather than a generic validation failure.

class BookCreate(BaseModel):
    name: str = ''
    price: Optional[Decimal] = None
    inventory: Optional[int] = None

class BookUpdate(BaseModel):
    name: str = ''
    price: Optional[Decimal] = None

class BookRead(BaseModel):
    id: UUID
    name: str
    price: float
    inventory: int
    archived: bool
    created_at: datetime
    updated_at: datetime
    class Config: from_attributes = True

class BookPageRead(BaseModel):
    page_current: int
    page_total: int
    page_size: int
    items_total: int
    results: List[BookRead] = []
    class Config: from_attributes = True

class OrderCreate(BaseModel):
    purchaser_id: Optional[UUID] = None

class OrderItemUpdate(BaseModel):
    book_id: Optional[UUID] = None
    book_units_to_add: int = 0

class OrderItemRead(BaseModel):
    order_id: UUID
    book_id: UUID
    book_name: str
    book_units: int
    unit_price_at_order: float
    subtotal: float
    created_at: datetime
    updated_at: datetime
    class Config: from_attributes = True

class OrderRead(BaseModel):
    order_id: UUID
    purchaser_id: UUID
    status: OrderStatus
    total_price: float
    items: List[OrderItemRead] = []
    created_at: datetime
    updated_at: datetime
    class Config: from_attributes = True
