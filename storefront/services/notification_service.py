# storefront/services/notification_service.py
import smtplib
from typing import Any, Dict

from storefront.celery_worker import celery_app
from storefront.services.email_channel import EmailChannel
from storefront.utils import settings
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

ORDER_CONFIRMATION = "order_confirmation"
ORDER_SHIPPED = "order_shipped"
ORDER_DELIVERED = "order_delivered"
ORDER_CANCELLED = "order_cancelled"
PAYMENT_CONFIRMATION = "payment_confirmation"

_SUBJECTS = {
    ORDER_CONFIRMATION: "Order {order_number} received",
    ORDER_SHIPPED: "Order {order_number} has been shipped",
    ORDER_DELIVERED: "Order {order_number} has been delivered",
    ORDER_CANCELLED: "Order {order_number} has been cancelled",
    PAYMENT_CONFIRMATION: "Payment for order {order_number} confirmed",
}

#polityka ponawiania publikacji do brokera, ograniczona
_PUBLISH_RETRY_POLICY = {
    "max_retries": 2,
    "interval_start": 0,
    "interval_step": 0.5,
    "interval_max": 1,
}


def build_payload(order, user) -> Dict[str, Any]:
    """Plaski slownik - task nie siega do bazy, dostaje wszystko w argumentach."""
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "email": user.email if user else None,
        "name": user.name if user else None,
        "total": str(order.total),
        "payment_status": order.payment_status,
        "tracking_number": order.tracking_number,
        "cancellation_reason": order.cancellation_reason,
    }


def render_message(template: str, payload: Dict[str, Any]) -> tuple[str, str]:
    subject = _SUBJECTS[template].format(order_number=payload["order_number"])
    lines = [
        f"Hello {payload.get('name') or 'customer'},",
        "",
        f"Order: {payload['order_number']}",
        f"Status: {payload['status']}",
        f"Total: {payload['total']}",
    ]
    if template == ORDER_SHIPPED and payload.get("tracking_number"):
        lines.append(f"Tracking number: {payload['tracking_number']}")
    if template == ORDER_CANCELLED and payload.get("cancellation_reason"):
        lines.append(f"Reason: {payload['cancellation_reason']}")
    return subject, "\n".join(lines)


class NotificationService:
    """
    Serwis do wysylania powiadomien o zamowieniach.
    Uzywa Celery do asynchronicznego przetwarzania, kazda metoda zwraca True/False
    i nigdy nie rzuca wyjatku - blad powiadomienia nie cofa zamowienia.
    """

    def _dispatch(self, template: str, order, user) -> bool:
        try:
            payload = build_payload(order, user)
            if not payload["email"]:
                logger.warning(f"[NOTIFICATION] {template} skipped, no recipient for order {payload['order_number']}")
                return False

            send_order_notification_task.apply_async(
                args=(template, payload),
                retry=True,
                retry_policy=_PUBLISH_RETRY_POLICY,
            )
            logger.info(f"[NOTIFICATION] {template} queued for order {payload['order_number']}")
            return True

        except Exception as e:
            logger.warning(f"[NOTIFICATION] {template} for order {getattr(order, 'id', None)} failed: {e}")
            return False

    def notify_order_created(self, order, user) -> bool:
        return self._dispatch(ORDER_CONFIRMATION, order, user)

    def notify_order_shipped(self, order, user) -> bool:
        return self._dispatch(ORDER_SHIPPED, order, user)

    def notify_order_delivered(self, order, user) -> bool:
        return self._dispatch(ORDER_DELIVERED, order, user)

    def notify_order_cancelled(self, order, user) -> bool:
        return self._dispatch(ORDER_CANCELLED, order, user)

    def notify_payment_confirmed(self, order, user) -> bool:
        return self._dispatch(PAYMENT_CONFIRMATION, order, user)


@celery_app.task(
    name="storefront.services.notification_service.send_order_notification_task",
    autoretry_for=(smtplib.SMTPException, OSError),
    retry_backoff=True,
    retry_backoff_max=60,
    max_retries=settings.NOTIFICATION_MAX_RETRIES,
)
def send_order_notification_task(template: str, payload: Dict[str, Any]):
    """
    Celery task - renderuje wiadomosc i wysyla przez EmailChannel.
    Przejsciowe bledy SMTP / sieci sa ponawiane z backoffem.
    """
    subject, body = render_message(template, payload)
    sent = EmailChannel().send(payload["email"], subject, body)

    logger.info(f"[NOTIFICATION] {template} for order {payload['order_number']} processed (sent={sent})")
    return {"order_id": payload["order_id"], "template": template, "sent": sent}
