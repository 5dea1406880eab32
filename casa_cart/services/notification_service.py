# casa_cart/services/notification_service.py
from kombu.exceptions import OperationalError

from casa_cart.celery_worker import celery_app
from casa_cart.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Order notifications, processed asynchronously by Celery.
    """

    def send_order_notification(self, user: str, order_id: int) -> None:
        # the order is already committed, a broker outage must not fail the request
        try:
            send_order_notification_task.delay(user, order_id)
        except OperationalError as e:
            logger.warning(f"Could not queue notification for order {order_id}: {e}")


@celery_app.task(name="casa_cart.services.notification_service.send_order_notification_task")
def send_order_notification_task(user: str, order_id: int):
    """
    Celery task. A real deployment would push an SMS / WhatsApp message here,
    for now the notification is only logged.
    """
    logger.info(f"[NOTIFICATION] User {user}: order {order_id} has been placed")
    return {"user": user, "order_id": order_id, "status": "sent"}
