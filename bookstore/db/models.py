from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, DateTime, ForeignKey, Integer, Numeric, Boolean, Uuid, CheckConstraint, Enum as SAEnum
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from bookstore.db.session import Base
from bookstore.domain import OrderStatus

class Book(Base):
    __tablename__ = 'books'
    __table_args__ = (
        CheckConstraint('inventory >= 0', name='ck_books_inventory_non_negative'),
        CheckConstraint('price >= 0', name='ck_books_price_non_negative'),
    )
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String(240), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    inventory: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

class Order(Base):
    __tablename__ = 'orders'
    order_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    purchaser_id: Mapped[UUID] = mapped_column(Uuid, index=True, nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(OrderStatus, name='order_status', values_callable=lambda e: [m.value for m in e]),
        nullable=False, default=OrderStatus.ACCEPTING_ITEMS,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan')

class OrderItem(Base):
    __tablename__ = 'order_items'
    __table_args__ = (CheckConstraint('book_units > 0', name='ck_order_items_units_positive'),)
    order_id: Mapped[UUID] = mapped_column(ForeignKey('orders.order_id', ondelete='CASCADE'), primary_key=True)
    book_id: Mapped[UUID] = mapped_column(ForeignKey('books.id'), primary_key=True)
    book_name: Mapped[str] = mapped_column(String(240), nullable=False)
    book_units: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_at_order: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    order = relationship('Order', back_populates='items')
