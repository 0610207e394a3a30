# checkout/services/notification_service.py
from checkout.celery_worker import celery_app
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Notification dispatcher.
    Publishes a Celery task, the caller never waits for delivery.
    """

    def dispatch(self, recipient: str, template_id: str, payload: dict) -> None:
        send_notification_task.delay(recipient, template_id, payload)
        logger.info(f"Queued {template_id} notification for {recipient}")


def dispatch_best_effort(dispatcher, recipient: str, template_id: str, payload: dict) -> bool:
    """Attempt a dispatch, record the outcome, never propagate."""
    try:
        dispatcher.dispatch(recipient, template_id, payload)
        return True
    except Exception as e:
        logger.warning(f"Failed to dispatch {template_id} notification for {recipient}: {e}")
        return False


@celery_app.task(name="checkout.services.notification_service.send_notification_task")
def send_notification_task(recipient: str, template_id: str, payload: dict):
    """
    Celery task - a real deployment hands this to an email/SMS/push provider.
    Here it only logs.
    """
    logger.info(f"[NOTIFICATION] {template_id} -> {recipient}: {payload}")

    return {"recipient": recipient, "template_id": template_id, "status": "sent"}
