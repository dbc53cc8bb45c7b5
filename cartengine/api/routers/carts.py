# cartengine/api/routers/carts.py
import uuid

from fastapi import APIRouter, Depends, HTTPException

from cartengine.api.deps import get_cart_service, get_current_user_id, get_session_id
from cartengine.api.errors import http_error
from cartengine.domain.errors import CartEngineError
from cartengine.domain.schemas import (
    CartOut,
    CreateCartIn,
    DiscountCodeIn,
    ItemIn,
    QuantityIn,
)
from cartengine.services.cart_service import CartService

router = APIRouter(prefix="/carts", tags=["carts"])


@router.post("", response_model=CartOut)
def get_or_create_cart(
    payload: CreateCartIn | None = None,
    user_id: uuid.UUID | None = Depends(get_current_user_id),
    session_id: str | None = Depends(get_session_id),
    svc: CartService = Depends(get_cart_service),
):
    """
    Zwraca aktywny koszyk uzytkownika / sesji albo tworzy nowy.
    """
    if payload and payload.session_id:
        session_id = payload.session_id
    try:
        return svc.get_or_create_cart(user_id=user_id, session_id=session_id)
    except CartEngineError as e:
        raise http_error(e)


@router.get("/{cart_id}", response_model=CartOut)
def get_cart(
    cart_id: uuid.UUID,
    user_id: uuid.UUID | None = Depends(get_current_user_id),
    session_id: str | None = Depends(get_session_id),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.get_cart(cart_id, user_id=user_id, session_id=session_id)
    except CartEngineError as e:
        raise http_error(e)


@router.post("/{cart_id}/items", response_model=CartOut)
def add_item(
    cart_id: uuid.UUID,
    payload: ItemIn,
    user_id: uuid.UUID | None = Depends(get_current_user_id),
    session_id: str | None = Depends(get_session_id),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.add_item(
            cart_id=cart_id,
            product_id=payload.product_id,
            variant_id=payload.variant_id,
            quantity=payload.quantity,
            user_id=user_id,
            session_id=session_id,
        )
    except CartEngineError as e:
        raise http_error(e)


@router.patch("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: uuid.UUID,
    payload: QuantityIn,
    user_id: uuid.UUID | None = Depends(get_current_user_id),
    session_id: str | None = Depends(get_session_id),
    svc: CartService = Depends(get_cart_service),
):
    try:
        cart_id = svc.update_item_quantity(item_id, payload.quantity, user_id=user_id, session_id=session_id)
        return svc.get_cart(cart_id, user_id=user_id, session_id=session_id)
    except CartEngineError as e:
        raise http_error(e)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: uuid.UUID,
    user_id: uuid.UUID | None = Depends(get_current_user_id),
    session_id: str | None = Depends(get_session_id),
    svc: CartService = Depends(get_cart_service),
):
    try:
        cart_id = svc.remove_item(item_id, user_id=user_id, session_id=session_id)
        return svc.get_cart(cart_id, user_id=user_id, session_id=session_id)
    except CartEngineError as e:
        raise http_error(e)


@router.post("/{cart_id}/discount", response_model=CartOut)
def apply_discount(
    cart_id: uuid.UUID,
    payload: DiscountCodeIn,
    user_id: uuid.UUID | None = Depends(get_current_user_id),
    session_id: str | None = Depends(get_session_id),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.apply_discount(cart_id, payload.code, user_id=user_id, session_id=session_id)
    except CartEngineError as e:
        raise http_error(e)


@router.delete("/{cart_id}/discount", response_model=CartOut)
def clear_discount(
    cart_id: uuid.UUID,
    user_id: uuid.UUID | None = Depends(get_current_user_id),
    session_id: str | None = Depends(get_session_id),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.clear_discount(cart_id, user_id=user_id, session_id=session_id)
    except CartEngineError as e:
        raise http_error(e)


@router.post("/{cart_id}/merge", response_model=CartOut)
def merge_cart(
    cart_id: uuid.UUID,
    user_id: uuid.UUID | None = Depends(get_current_user_id),
    session_id: str | None = Depends(get_session_id),
    svc: CartService = Depends(get_cart_service),
):
    """
    Laczy koszyk goscia {cart_id} z aktywnym koszykiem zalogowanego uzytkownika.
    Koszyk goscia musi nalezec do sesji z naglowka X-Session-Id.
    """
    if user_id is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        return svc.merge_cart(cart_id, user_id, session_id=session_id)
    except CartEngineError as e:
        raise http_error(e)
