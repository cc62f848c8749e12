from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends

from bookstore.api.deps import get_book_service, get_deadline
from bookstore.domain import PRICE_MAX, BookQuery, SortBy, SortDirection
from bookstore.errors import BookEntryBlankFields, QueryPageInvalid, QueryPriceInvalid, QuerySortInvalid
from bookstore.schemas import BookCreate, BookPageRead, BookRead, BookUpdate
from bookstore.services.books import BookService

router = APIRouter()


def _price(raw: Optional[str], default: Decimal) -> Decimal:
    if raw is None or raw == '':
        return default
    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise QueryPriceInvalid()
    if not value.is_finite() or value < 0 or value > PRICE_MAX:
        raise QueryPriceInvalid()
    return value

def _page_param(raw: Optional[str], default: int, upper: int | None = None) -> int:
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise QueryPageInvalid()
    if value < 1 or (upper is not None and value > upper):
        raise QueryPageInvalid()
    return value

def book_query(name: str = '', min_price: Optional[str] = None, max_price: Optional[str] = None,
               sort_by: Optional[str] = None, sort_direction: Optional[str] = None,
               archived: Optional[str] = None, page: Optional[str] = None,
               page_size: Optional[str] = None) -> BookQuery:
    """Query string -> BookQuery. Each malformed parameter maps to its own error code."""
    lo = _price(min_price, Decimal('0'))
    hi = _price(max_price, PRICE_MAX)
    try:
        order_by = SortBy(sort_by or 'name')
        direction = SortDirection(sort_direction or 'asc')
    except ValueError:
        raise QuerySortInvalid()
    return BookQuery(
        name=name,
        min_price=lo,
        max_price=hi,
        sort_by=order_by,
        sort_direction=direction,
        archived=archived == 'true',
        page=_page_param(page, 1),
        page_size=_page_param(page_size, 10, upper=30),
    )


@router.post('', response_model=BookRead, status_code=201)
def create_book(payload: BookCreate, background: BackgroundTasks,
                svc: BookService = Depends(get_book_service), deadline=Depends(get_deadline)):
    if not payload.name or payload.price is None or payload.inventory is None:
        raise BookEntryBlankFields()
    if not payload.price.is_finite():
        raise BookEntryBlankFields()
    book = svc.create_book(payload.name, payload.price, payload.inventory, deadline)
    background.add_task(svc.notify_created, book)
    return book

@router.get('', response_model=BookPageRead)
def list_books(query: BookQuery = Depends(book_query), svc: BookService = Depends(get_book_service),
               deadline=Depends(get_deadline)):
    return svc.list_books(query, deadline)

@router.get('/{book_id}', response_model=BookRead)
def get_book(book_id: UUID, svc: BookService = Depends(get_book_service), deadline=Depends(get_deadline)):
    return svc.get_book(book_id, deadline)

@router.put('/{book_id}', response_model=BookRead)
def update_book(book_id: UUID, payload: BookUpdate, svc: BookService = Depends(get_book_service),
                deadline=Depends(get_deadline)):
    if not payload.name or payload.price is None or not payload.price.is_finite():
        raise BookEntryBlankFields()
    return svc.update_book(book_id, payload.name, payload.price, deadline)

@router.delete('/{book_id}', response_model=BookRead)
def archive_book(book_id: UUID, svc: BookService = Depends(get_book_service), deadline=Depends(get_deadline)):
    return svc.archive_book(book_id, deadline)
