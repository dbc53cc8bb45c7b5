# cartengine/celery_worker.py
from celery import Celery

from cartengine.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND

celery_app = Celery(
    "cartengine",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# Explicite importuj taski, żeby Celery je zarejestrował
celery_app.conf.imports = (
    "cartengine.tasks.abandon",
    "cartengine.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "abandon-idle-carts-every-hour": {
        "task": "cartengine.tasks.abandon.abandon_idle_carts_task",
        "schedule": 60.0 * 60,
    },
}

celery_app.conf.timezone = "UTC"
