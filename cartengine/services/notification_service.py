# cartengine/services/notification_service.py
from cartengine.celery_worker import celery_app
from cartengine.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Serwis do wysyłania powiadomień.
    Używa Celery do asynchronicznego przetwarzania (fire-and-forget).
    """

    @staticmethod
    def notify(
        user_ids: list,
        type: str,
        title: str,
        message: str,
        action_url: str | None = None,
        metadata: dict | None = None,
    ):
        if not user_ids:
            return
        send_notification_task.delay(
            [str(u) for u in user_ids],
            type,
            title,
            message,
            action_url,
            metadata or {},
        )


@celery_app.task(name="cartengine.services.notification_service.send_notification_task")
def send_notification_task(
    user_ids: list,
    type: str,
    title: str,
    message: str,
    action_url: str | None = None,
    metadata: dict | None = None,
):
    """
    Celery task - tresc i kanal dostarczenia sa poza tym serwisem,
    tutaj tylko log.
    """
    for user_id in user_ids:
        logger.info(f"[NOTIFICATION] {type} -> user {user_id}: {title} - {message} ({action_url})")

    return {"user_ids": user_ids, "type": type, "status": "sent"}
