"""Redis-backed cache of processed webhook delivery ids.

This is a fast path only. Cache errors are logged and ignored; the guarded
database update remains what makes duplicate deliveries harmless.
"""

from foodpay.common.logging import logger


class WebhookDeliveryCache:
    def __init__(self, rdb, ttl_seconds: int) -> None:
        self.rdb = rdb
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(delivery_id: str) -> str:
        return f"webhook:delivery:{delivery_id}"

    def seen(self, delivery_id: str) -> bool:
        try:
            return self.rdb.get(self._key(delivery_id)) is not None
        except Exception as exc:
            logger.warning("webhook_dedupe_read_failed: %s", exc)
            return False

    def remember(self, delivery_id: str) -> None:
        try:
            self.rdb.setex(self._key(delivery_id), self.ttl_seconds, "1")
        except Exception as exc:
            logger.warning("webhook_dedupe_write_failed: %s", exc)
