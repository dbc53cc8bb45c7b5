# cartengine/services/numbering_service.py
from datetime import datetime, timezone

import redis

from cartengine.utils.retry import redis_retry
from cartengine.utils.settings import REDIS_URL
from cartengine.utils.logging import get_logger

logger = get_logger(__name__)

#INCR w redis jest atomowy, kazdy klient dostaje inny numer
#licznik osobny dla prefixu i miesiaca: ORD-25-10-000001


class DocumentNumberService:
    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @redis_retry()
    def next_document_number(self, prefix: str, at: datetime | None = None) -> str:
        at = at or datetime.now(timezone.utc)
        key = f"docseq:{prefix}:{at.year:04d}:{at.month:02d}"
        seq = int(self.redis.incr(key))
        number = f"{prefix}-{at.year % 100:02d}-{at.month:02d}-{seq:06d}"
        logger.info(f"Issued document number {number}")
        return number
