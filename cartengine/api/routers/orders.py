# cartengine/api/routers/orders.py
import uuid

from fastapi import APIRouter, Depends

from cartengine.api.deps import get_current_user_id, get_order_service, get_session_id
from cartengine.api.errors import http_error
from cartengine.domain.errors import CartEngineError
from cartengine.domain.schemas import OrderOut, OrderPlacedOut, PlaceOrderIn
from cartengine.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderPlacedOut, status_code=201)
def place_order(
    payload: PlaceOrderIn,
    user_id: uuid.UUID | None = Depends(get_current_user_id),
    session_id: str | None = Depends(get_session_id),
    svc: OrderService = Depends(get_order_service),
):
    """
    Tworzy zamówienie z aktywnego koszyka.
    Wysyła powiadomienia asynchronicznie.
    """
    try:
        placed = svc.place_order(
            cart_id=payload.cart_id,
            shipping_address=payload.shipping_address,
            shipping_method=payload.shipping_method,
            payment_method=payload.payment_method,
            customer_email=payload.customer_email,
            customer_phone=payload.customer_phone,
            user_id=user_id,
            session_id=session_id,
        )
    except CartEngineError as e:
        raise http_error(e)
    return {"order_id": placed.order_id, "order_number": placed.order_number, "warnings": placed.warnings}


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: uuid.UUID,
    user_id: uuid.UUID | None = Depends(get_current_user_id),
    session_id: str | None = Depends(get_session_id),
    svc: OrderService = Depends(get_order_service),
):
    """
    Pobiera szczegóły zamówienia.
    """
    try:
        return svc.get_order(order_id, user_id=user_id, session_id=session_id)
    except CartEngineError as e:
        raise http_error(e)
