from typing import Dict

from storefront.models.order import Order, OrderStatus
from storefront.utils.logging import get_logger

log = get_logger("storefront.notifications")

STATUS_MESSAGES: Dict[str, str] = {
    OrderStatus.PAYMENT_PENDING.value: "We received your payment details and will verify them shortly.",
    OrderStatus.PROCESSING.value: "Your payment is being verified.",
    OrderStatus.CONFIRMED.value: "Your payment has been confirmed. We are preparing your order.",
    OrderStatus.SHIPPED.value: "Your order is on its way.",
    OrderStatus.DELIVERED.value: "Your order has been delivered. Enjoy your new hair!",
    OrderStatus.CANCELLED.value: "Your order has been cancelled.",
}


class LogNotificationDispatcher:
    """Writes customer status notifications to the log instead of sending them."""

    def notify_status_change(self, order: Order, old_status: str, new_status: str) -> None:
        message = STATUS_MESSAGES.get(new_status, f"Your order is now {new_status}.")
        log.info(
            f"notify: order={order.order_number} user={order.user_id} "
            f"{old_status} -> {new_status}: {message}"
        )

    def health_check(self) -> bool:
        return True
