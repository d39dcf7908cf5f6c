"""
Publish order lifecycle events for the notification worker.
Backend: Redis (LPUSH) or AWS SQS when SQS_QUEUE_URL is set.
"""
import json
import uuid

from storefront.config import settings
from storefront.redis_client import get_redis
from storefront.sqs_client import get_sqs_queue

NOTIFICATION_QUEUE_KEY = "queue:order_notifications"
NOTIFICATION_DLQ_KEY = "queue:order_notifications:dlq"

EVENT_VERSION = 1

ORDER_CREATED = "ORDER_CREATED"
ORDER_STATUS_UPDATED = "ORDER_STATUS_UPDATED"
PAYMENT_STATUS_UPDATED = "PAYMENT_STATUS_UPDATED"


def make_event(
    order_id: str,
    event_type: str,
    payload: dict,
    event_id: str | None = None,
    attempts: int = 0,
) -> dict:
    return {
        "event_id": event_id or f"evt-{uuid.uuid4().hex}",
        "order_id": order_id,
        "event_type": event_type,
        "event_version": EVENT_VERSION,
        "payload": payload,
        "attempts": attempts,
    }


async def push_event(event: dict) -> None:
    if settings.sqs_queue_url:
        await get_sqs_queue().publish(event)
    else:
        r = await get_redis()
        await r.lpush(NOTIFICATION_QUEUE_KEY, json.dumps(event))


async def replay_redis_dlq(limit: int = 100) -> int:
    """Move up to `limit` dead-lettered events back to the main Redis queue with attempts reset."""
    r = await get_redis()
    replayed = 0
    while replayed < limit:
        raw = await r.rpop(NOTIFICATION_DLQ_KEY)
        if raw is None:
            break
        replayed += 1
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            continue
        if not data.get("event_id") or not data.get("event_type"):
            continue
        event = make_event(
            order_id=data.get("order_id", ""),
            event_type=data["event_type"],
            payload=data.get("payload") or {},
            event_id=data["event_id"],
        )
        await r.lpush(NOTIFICATION_QUEUE_KEY, json.dumps(event))
    return replayed


async def replay_dlq(limit: int = 100) -> int:
    if settings.sqs_queue_url:
        return await get_sqs_queue().replay_dead_letters(limit=limit)
    return await replay_redis_dlq(limit=limit)
