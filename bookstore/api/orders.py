from uuid import UUID

from fastapi import APIRouter, Depends

from bookstore.api.deps import get_deadline, get_order_service
from bookstore.errors import NewOrderEntryBlankFields, UpdateOrderEntryBlankFields
from bookstore.schemas import OrderCreate, OrderItemRead, OrderItemUpdate, OrderRead
from bookstore.services.orders import OrderService

router = APIRouter()


@router.post('', response_model=OrderRead, status_code=201)
def create_order(payload: OrderCreate, svc: OrderService = Depends(get_order_service),
                 deadline=Depends(get_deadline)):
    if payload.purchaser_id is None:
        raise NewOrderEntryBlankFields()
    return OrderRead.model_validate(svc.create_order(payload.purchaser_id, deadline))

@router.get('/{order_id}', response_model=OrderRead)
def get_order(order_id: UUID, svc: OrderService = Depends(get_order_service), deadline=Depends(get_deadline)):
    return OrderRead.model_validate(svc.get_order(order_id, deadline))

@router.put('/{order_id}/items', response_model=OrderItemRead)
def update_order_items(order_id: UUID, payload: OrderItemUpdate,
                       svc: OrderService = Depends(get_order_service), deadline=Depends(get_deadline)):
    if payload.book_id is None or payload.book_units_to_add == 0:
        raise UpdateOrderEntryBlankFields()
    line = svc.apply_unit_delta(order_id, payload.book_id, payload.book_units_to_add, deadline)
    return OrderItemRead.model_validate(line)

@router.post('/{order_id}/submit', response_model=OrderRead)
def submit_order(order_id: UUID, svc: OrderService = Depends(get_order_service), deadline=Depends(get_deadline)):
    return OrderRead.model_validate(svc.submit_order(order_id, deadline))
