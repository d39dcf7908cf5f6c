"""
Turn order events into customer/admin notifications.
Delivery itself belongs to the mail service; LogNotifier is the hand-off point.
Customer recipients are "user:<id>" (orders only carry the user id, not an email);
the mail service resolves the id to the account's address. Admin recipients are plain addresses.
"""
import logging

from pydantic import BaseModel

from storefront.queue import ORDER_CREATED, ORDER_STATUS_UPDATED, PAYMENT_STATUS_UPDATED

logger = logging.getLogger(__name__)

BRAND = "Driphigh"


class Notification(BaseModel):
    recipient: str
    subject: str
    body: str


def order_reference(order_id: str) -> str:
    return order_id.replace("-", "")[-8:].upper()


def _customer(order: dict) -> str:
    return f"user:{order.get('user') or 'guest'}"


def _order_summary(order: dict) -> str:
    address = order.get("deliveryAddress") or {}
    lines = [
        f"Order #{order_reference(order['id'])}",
        f"Item: {order.get('name')} ({order.get('category')})",
    ]
    if order.get("sizes"):
        lines.append(f"Size: {order['sizes']}")
    if order.get("colors"):
        lines.append(f"Color: {order['colors']}")
    lines += [
        f"Price: {order.get('price'):,.2f}",
        f"Total: {order.get('totalPrice'):,.2f}",
        f"Payment: {order.get('paymentMethod')} ({order.get('paymentStatus')})",
        f"Status: {order.get('status')}",
        f"Deliver to: {address.get('street')}, {address.get('city')}, {address.get('state')}",
    ]
    if order.get("deliveryNote"):
        lines.append(f"Note: {order['deliveryNote']}")
    return "\n".join(lines)


def build_notifications(event: dict, admin_emails: list[str]) -> list[Notification]:
    event_type = event.get("event_type")
    payload = event.get("payload") or {}
    order = payload.get("order")
    if not order:
        return []
    ref = order_reference(order["id"])
    summary = _order_summary(order)

    if event_type == ORDER_CREATED:
        notifications = [Notification(
            recipient=_customer(order),
            subject=f"Order Confirmation - {BRAND}",
            body=f"Thank you for your order.\n\n{summary}",
        )]
        for email in admin_emails:
            notifications.append(Notification(
                recipient=email,
                subject=f"New Order Notification - {BRAND}",
                body=f"A new order was placed by {_customer(order)}.\n\n{summary}",
            ))
        return notifications

    if event_type == ORDER_STATUS_UPDATED:
        previous = payload.get("previous") or {}
        text = f"Your order #{ref} is now {order['status']} (was {previous.get('status')})."
        if previous.get("paymentStatus") and previous["paymentStatus"] != order["paymentStatus"]:
            text += f"\nPayment status changed to {order['paymentStatus']}."
        return [Notification(
            recipient=_customer(order),
            subject=f"Order Update #{ref} - {BRAND}",
            body=f"{text}\n\n{summary}",
        )]

    if event_type == PAYMENT_STATUS_UPDATED:
        previous = payload.get("previous") or {}
        return [Notification(
            recipient=_customer(order),
            subject=f"Payment Update #{ref} - {BRAND}",
            body=(
                f"Payment for order #{ref} is now {order['paymentStatus']} "
                f"(was {previous.get('paymentStatus')}).\n\n{summary}"
            ),
        )]

    return []


class LogNotifier:
    async def send(self, notification: Notification) -> None:
        logger.info("Notify %s: %s", notification.recipient, notification.subject)
        logger.debug("%s", notification.body)
