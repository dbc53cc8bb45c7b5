# cartengine/tasks/abandon.py
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, exists, select, update

from cartengine.celery_worker import celery_app
from cartengine.data.database import SessionLocal
from cartengine.data.models.cart import CartModel
from cartengine.data.models.cart_item import CartItemModel
from cartengine.utils.settings import CART_IDLE_TTL_SECONDS
from cartengine.utils.logging import get_logger

logger = get_logger(__name__)


def abandon_idle_carts(db, now: datetime | None = None, ttl_seconds: int = CART_IDLE_TTL_SECONDS) -> dict:
    """
    Aktywne koszyki bez zmian dluzej niz TTL -> abandoned (updated_at = now,
    wiec usuniete dopiero po kolejnym TTL).
    Puste koszyki abandoned/converted starsze niz TTL -> usuwane.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=ttl_seconds)

    abandoned = db.execute(
        update(CartModel)
        .where(CartModel.status == "active", CartModel.updated_at < cutoff)
        .values(
            status="abandoned",
            abandoned_at=now,
            updated_at=now,
            version=CartModel.version + 1,
        )
        .execution_options(synchronize_session=False)
    ).rowcount

    has_items = exists(select(CartItemModel.id).where(CartItemModel.cart_id == CartModel.id))
    deleted = db.execute(
        delete(CartModel)
        .where(
            CartModel.status.in_(("abandoned", "converted")),
            CartModel.updated_at < cutoff,
            ~has_items,
        )
        .execution_options(synchronize_session=False)
    ).rowcount

    logger.info(f"Abandoned {abandoned} idle carts, deleted {deleted} empty carts")
    return {"abandoned": abandoned, "deleted": deleted}


@celery_app.task(name="cartengine.tasks.abandon.abandon_idle_carts_task")
def abandon_idle_carts_task():
    logger.info("Abandon idle carts task started")

    db = SessionLocal()
    try:
        result = abandon_idle_carts(db)
        db.commit()
        return result
    except Exception as e:
        db.rollback()
        logger.error(f"Abandon idle carts task failed: {e}")
        raise
    finally:
        db.close()
