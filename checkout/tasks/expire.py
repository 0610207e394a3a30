# checkout/tasks/expire.py
from datetime import datetime, timezone

from checkout.celery_worker import celery_app
from checkout.data.database import SessionLocal
from checkout.repos.inventory_repo import AuditLog
from checkout.services.inventory_service import InventoryService
from checkout.utils.settings import DEFAULT_LOW_STOCK_THRESHOLD, STOCK_HOLD_TTL_SECONDS
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


def expire_stock_holds(session_factory=SessionLocal, now: datetime | None = None) -> int:
    """Give back stock held by checkouts that died between reservation and debit."""
    db = session_factory()
    try:
        inventory = InventoryService(
            db,
            AuditLog(session_factory),
            default_threshold=DEFAULT_LOW_STOCK_THRESHOLD,
            hold_ttl=STOCK_HOLD_TTL_SECONDS,
        )
        released = inventory.release_expired_holds(now or datetime.now(timezone.utc))
        logger.info(f"Released {released} expired stock holds")
        return released
    finally:
        db.close()


@celery_app.task(name="checkout.tasks.expire.expire_stock_holds_task")
def expire_stock_holds_task():
    logger.info("Expire stock holds task started")
    return expire_stock_holds()
