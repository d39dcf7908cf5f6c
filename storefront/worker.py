"""
Notification worker: pull order events from Redis or AWS SQS and hand the resulting notifications to the notifier.
- Redis: exponential backoff + manual DLQ. SQS: don't delete on failure; SQS redrive to DLQ after max receives.
- Prometheus /metrics on port 9090 (worker metrics).
- Graceful shutdown on SIGTERM.
Run: python -m storefront.worker
"""
import asyncio
import json
import logging
import signal
import sys
import threading
import time

import redis.asyncio as redis

from storefront.config import settings
from storefront.metrics import messages_dlq_total, messages_failed_total, notifications_sent_total
from storefront.notifications import LogNotifier, build_notifications
from storefront.queue import NOTIFICATION_DLQ_KEY, NOTIFICATION_QUEUE_KEY
from storefront.sqs_client import SqsEventQueue, get_sqs_queue

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)

BRPOP_TIMEOUT = 5
GRACEFUL_SHUTDOWN_WAIT_SEC = 30
WORKER_METRICS_PORT = 9090


def _start_metrics_server() -> None:
    from prometheus_client import start_http_server
    start_http_server(WORKER_METRICS_PORT)


async def dispatch_event(data: dict, notifier) -> int:
    """Send every notification for one event. Returns how many were sent; raises on notifier failure."""
    notifications = build_notifications(data, settings.admin_emails)
    for notification in notifications:
        await notifier.send(notification)
        notifications_sent_total.labels(event_type=data.get("event_type", "unknown")).inc()
    return len(notifications)


async def process_one_redis(
    r: redis.Redis,
    notifier,
    raw: str,
    sem: asyncio.Semaphore,
) -> None:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON from queue: %s", e)
        return
    event_id = data.get("event_id")
    attempts = data.get("attempts", 0)
    if not event_id:
        logger.warning("Message missing event_id, skipping")
        return

    async with sem:
        try:
            sent = await dispatch_event(data, notifier)
            logger.info("Processed event_id=%s type=%s (%d notifications)", event_id, data.get("event_type"), sent)
        except Exception as e:
            messages_failed_total.inc()
            logger.exception("Failed to process event_id=%s (attempt %d): %s", event_id, attempts + 1, e)
            next_attempts = attempts + 1
            if next_attempts >= settings.worker_max_retries:
                data.update({"attempts": next_attempts, "last_error": str(e), "failed_at": time.time()})
                await r.lpush(NOTIFICATION_DLQ_KEY, json.dumps(data))
                messages_dlq_total.inc()
                logger.warning("Moved event_id=%s to DLQ after %d attempts", event_id, settings.worker_max_retries)
            else:
                backoff_sec = 2 ** attempts
                logger.info("Re-queuing event_id=%s in %ds (attempt %d/%d)", event_id, backoff_sec, next_attempts, settings.worker_max_retries)
                await asyncio.sleep(backoff_sec)
                data["attempts"] = next_attempts
                await r.lpush(NOTIFICATION_QUEUE_KEY, json.dumps(data))


async def process_one_sqs(
    sqs: SqsEventQueue,
    notifier,
    message: dict,
    sem: asyncio.Semaphore,
) -> None:
    """Ack after every notification went out; on failure leave the message for redelivery (redrive to DLQ)."""
    receipt = message.get("ReceiptHandle") or ""
    receive_count = int((message.get("Attributes") or {}).get("ApproximateReceiveCount", 1))
    try:
        data = json.loads(message.get("Body") or "{}")
    except json.JSONDecodeError:
        logger.warning("Invalid JSON from SQS")
        return
    event_id = data.get("event_id")
    if not event_id:
        logger.warning("Message missing event_id, skipping")
        return

    async with sem:
        try:
            sent = await dispatch_event(data, notifier)
        except Exception as e:
            messages_failed_total.inc()
            logger.exception("Failed to process event_id=%s (receive #%d): %s", event_id, receive_count, e)
            delay = await asyncio.to_thread(sqs.retry_later, receipt, receive_count)
            logger.info("event_id=%s hidden for %ds before redelivery", event_id, delay)
            return
        logger.info("Processed event_id=%s type=%s (%d notifications)", event_id, data.get("event_type"), sent)
        await asyncio.to_thread(sqs.ack, receipt)


async def _drain(tasks: set[asyncio.Task]) -> None:
    if not tasks:
        return
    logger.info("Graceful shutdown: waiting for %d in-flight task(s) (max %ds) ...", len(tasks), GRACEFUL_SHUTDOWN_WAIT_SEC)
    _, pending = await asyncio.wait(tasks, timeout=GRACEFUL_SHUTDOWN_WAIT_SEC, return_when=asyncio.ALL_COMPLETED)
    for t in pending:
        t.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)


async def run_worker_redis(shutdown_event: asyncio.Event, notifier) -> None:
    sem = asyncio.Semaphore(settings.worker_concurrency)
    logger.info(
        "Backend=Redis. Listening on %s (concurrency=%d, max_retries=%d) ...",
        NOTIFICATION_QUEUE_KEY,
        settings.worker_concurrency,
        settings.worker_max_retries,
    )
    r = redis.from_url(settings.redis_url, decode_responses=True)
    tasks: set[asyncio.Task] = set()
    try:
        while not shutdown_event.is_set():
            result = await r.brpop(NOTIFICATION_QUEUE_KEY, timeout=BRPOP_TIMEOUT)
            if result is None:
                continue
            _key, raw = result
            t = asyncio.create_task(process_one_redis(r, notifier, raw, sem))
            tasks.add(t)
            t.add_done_callback(tasks.discard)
    finally:
        await _drain(tasks)
        await r.aclose()
        logger.info("Worker stopped.")


async def run_worker_sqs(shutdown_event: asyncio.Event, notifier) -> None:
    sem = asyncio.Semaphore(settings.worker_concurrency)
    logger.info(
        "Backend=SQS. Queue=%s (concurrency=%d) ...",
        settings.sqs_queue_url,
        settings.worker_concurrency,
    )
    sqs = get_sqs_queue()
    tasks: set[asyncio.Task] = set()
    try:
        while not shutdown_event.is_set():
            messages = await asyncio.to_thread(sqs.poll, 10, 5)
            for msg in messages:
                t = asyncio.create_task(process_one_sqs(sqs, notifier, msg, sem))
                tasks.add(t)
                t.add_done_callback(tasks.discard)
    finally:
        await _drain(tasks)
        logger.info("Worker stopped.")


async def run_worker(shutdown_event: asyncio.Event) -> None:
    notifier = LogNotifier()
    if settings.sqs_queue_url:
        await run_worker_sqs(shutdown_event, notifier)
    else:
        await run_worker_redis(shutdown_event, notifier)


def main() -> None:
    threading.Thread(target=_start_metrics_server, daemon=True).start()
    logger.info("Metrics server listening on port %s", WORKER_METRICS_PORT)

    shutdown_event = asyncio.Event()

    def on_signal():
        shutdown_event.set()

    loop = asyncio.new_event_loop()
    try:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, on_signal)
    except NotImplementedError:
        signal.signal(signal.SIGTERM, lambda *a: shutdown_event.set())
        signal.signal(signal.SIGINT, lambda *a: shutdown_event.set())

    asyncio.set_event_loop(loop)
    try:
        loop.run_until_complete(run_worker(shutdown_event))
    finally:
        loop.close()


if __name__ == "__main__":
    main()
