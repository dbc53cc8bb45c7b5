# cartengine/api/deps.py
import uuid

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from cartengine.data.database import get_db
from cartengine.services.cart_service import CartService
from cartengine.services.order_service import OrderService
from cartengine.services.product_client import ProductClient

# uwierzytelnianie jest poza serwisem, gateway przekazuje tozsamosc w naglowkach


def get_current_user_id(x_user_id: str | None = Header(None)) -> uuid.UUID | None:
    if not x_user_id:
        return None
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=422, detail="Invalid X-User-Id header")


def get_session_id(x_session_id: str | None = Header(None)) -> str | None:
    return x_session_id or None


def get_cart_service(db: Session = Depends(get_db)) -> CartService:
    return CartService(db=db, product_client=ProductClient())


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db)
