from fastapi import Request

from bookstore.core.config import settings
from bookstore.services.books import BookService
from bookstore.services.orders import OrderService
from bookstore.store import deadline_after


def get_book_service(request: Request) -> BookService:
    return BookService(request.app.state.store, request.app.state.notifier)

def get_order_service(request: Request) -> OrderService:
    return OrderService(request.app.state.store)

def get_deadline() -> float | None:
    """Absolute deadline for the store work of one request."""
    if settings.REQUEST_TIMEOUT_SECONDS <= 0:
        return None
    return deadline_after(settings.REQUEST_TIMEOUT_SECONDS)
