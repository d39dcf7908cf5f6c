"""
Order lifecycle operations: read the order, run the transition engine, write once, publish an event.
Publishing is fire-and-forget: a queue failure or a queue slower than PUBLISH_TIMEOUT_SECONDS never fails the operation.
"""
import asyncio
import logging
import uuid

from storefront.config import settings
from storefront.db import OrderStore
from storefront.errors import ForbiddenError, InvalidArgumentError, InvalidTransitionError
from storefront.metrics import (
    notification_publish_failed_total,
    order_transitions_rejected_total,
    order_transitions_total,
    orders_created_total,
)
from storefront.models import CreateOrderBody, Order
from storefront.order_state import (
    OrderStatus,
    PaymentStatus,
    apply_payment_transition,
    apply_status_transition,
)
from storefront.queue import (
    ORDER_CREATED,
    ORDER_STATUS_UPDATED,
    PAYMENT_STATUS_UPDATED,
    make_event,
    push_event,
)

logger = logging.getLogger(__name__)


def parse_order_id(raw: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw)
    except (ValueError, AttributeError, TypeError):
        raise InvalidArgumentError("Invalid order ID format")


async def publish_order_event(order: Order, event_type: str, previous: dict | None = None) -> None:
    event = make_event(
        order_id=str(order.id),
        event_type=event_type,
        payload={"order": order.to_json(), "previous": previous or {}},
    )
    try:
        await asyncio.wait_for(push_event(event), timeout=settings.publish_timeout_seconds)
    except asyncio.TimeoutError:
        notification_publish_failed_total.labels(event_type=event_type).inc()
        logger.warning(
            "Timed out queuing %s for order_id=%s after %.1fs",
            event_type, order.id, settings.publish_timeout_seconds,
        )
    except Exception:
        notification_publish_failed_total.labels(event_type=event_type).inc()
        logger.exception("Failed to queue %s for order_id=%s", event_type, order.id)

async def create_order(store: OrderStore, user_id: str, body: CreateOrderBody) -> Order:
    order = Order(
        id=uuid.uuid4(),
        user=user_id,
        name=body.name,
        delivery_note=body.delivery_note,
        price=body.price,
        images=body.images,
        category=body.category,
        sizes=body.sizes,
        colors=body.colors,
        total_price=body.total_price,
        status=OrderStatus.PENDING,
        delivery_address=body.delivery_address,
        payment_method=body.payment_method,
        payment_status=body.payment_status or PaymentStatus.PENDING,
    )
    order = await store.create(order)
    orders_created_total.labels(payment_method=order.payment_method.value).inc()
    logger.info("Created order_id=%s user=%s method=%s", order.id, user_id, order.payment_method.value)
    await publish_order_event(order, ORDER_CREATED)
    return order


async def change_order_status(
    store: OrderStore, order_id: str, target: OrderStatus
) -> tuple[Order, OrderStatus]:
    order = await store.get(parse_order_id(order_id))
    try:
        updated, previous = apply_status_transition(order, target)
    except InvalidTransitionError:
        order_transitions_rejected_total.labels(kind="status", reason="invalid_transition").inc()
        logger.info("Rejected status %s -> %s for order_id=%s", order.status.value, target.value, order.id)
        raise

    cascaded = updated.payment_status if updated.payment_status != order.payment_status else None
    updated = await store.save_status(order.id, target, cascaded)
    order_transitions_total.labels(kind="status", from_state=previous.value, to_state=target.value).inc()
    if updated.payment_status != order.payment_status:
        order_transitions_total.labels(
            kind="payment_status",
            from_state=order.payment_status.value,
            to_state=updated.payment_status.value,
        ).inc()
    logger.info(
        "Order order_id=%s status %s -> %s (payment %s -> %s)",
        order.id, previous.value, target.value, order.payment_status.value, updated.payment_status.value,
    )
    await publish_order_event(
        updated,
        ORDER_STATUS_UPDATED,
        previous={"status": previous.value, "paymentStatus": order.payment_status.value},
    )
    return updated, previous


async def change_payment_status(
    store: OrderStore, order_id: str, target: PaymentStatus
) -> tuple[Order, PaymentStatus]:
    order = await store.get(parse_order_id(order_id))
    try:
        updated, previous = apply_payment_transition(order, target)
    except ForbiddenError:
        order_transitions_rejected_total.labels(kind="payment_status", reason="prepaid").inc()
        logger.info("Rejected payment change on prepaid order_id=%s", order.id)
        raise
    except InvalidTransitionError:
        order_transitions_rejected_total.labels(kind="payment_status", reason="invalid_transition").inc()
        logger.info("Rejected payment %s -> %s for order_id=%s", order.payment_status.value, target.value, order.id)
        raise

    updated = await store.save_payment_status(order.id, target)
    order_transitions_total.labels(kind="payment_status", from_state=previous.value, to_state=target.value).inc()
    logger.info("Order order_id=%s payment %s -> %s", order.id, previous.value, target.value)
    await publish_order_event(updated, PAYMENT_STATUS_UPDATED, previous={"paymentStatus": previous.value})
    return updated, previous
