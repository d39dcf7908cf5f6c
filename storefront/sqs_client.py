"""
AWS SQS transport for notification events, used when SQS_QUEUE_URL is set.
The queue's redrive policy moves an event to SQS_DLQ_URL after repeated failed receives;
replay_dead_letters sends them back with attempts reset.
boto3 is synchronous, so every call made from the event loop goes through asyncio.to_thread.
"""
import asyncio
import json
import logging
from typing import Any

import boto3

from storefront.config import settings

logger = logging.getLogger(__name__)

MAX_VISIBILITY_BACKOFF_SEC = 900


def _parse_event(body: str | None) -> dict | None:
    try:
        event = json.loads(body or "")
    except json.JSONDecodeError:
        return None
    if not isinstance(event, dict) or not event.get("event_id") or not event.get("event_type"):
        return None
    return event


class SqsEventQueue:
    def __init__(self, client: Any, queue_url: str, dlq_url: str | None = None):
        self.client = client
        self.queue_url = queue_url
        self.dlq_url = dlq_url

    async def publish(self, event: dict) -> None:
        await asyncio.to_thread(
            self.client.send_message,
            QueueUrl=self.queue_url,
            MessageBody=json.dumps(event),
            MessageAttributes={
                "event_type": {"DataType": "String", "StringValue": event["event_type"]},
            },
        )

    def poll(self, max_messages: int = 10, wait_seconds: int = 5) -> list[dict]:
        """Long-poll the main queue (worker thread). Messages carry ApproximateReceiveCount."""
        resp = self.client.receive_message(
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=max_messages,
            WaitTimeSeconds=wait_seconds,
            AttributeNames=["ApproximateReceiveCount"],
        )
        return resp.get("Messages") or []

    def ack(self, receipt_handle: str) -> None:
        self.client.delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt_handle)

    def retry_later(self, receipt_handle: str, receive_count: int) -> int:
        """Hide the message for an exponential backoff; returns the delay in seconds."""
        delay = min(2 ** receive_count, MAX_VISIBILITY_BACKOFF_SEC)
        self.client.change_message_visibility(
            QueueUrl=self.queue_url,
            ReceiptHandle=receipt_handle,
            VisibilityTimeout=delay,
        )
        return delay

    async def depth(self) -> tuple[int, int]:
        """(waiting, in flight) on the main queue."""
        resp = await asyncio.to_thread(
            self.client.get_queue_attributes,
            QueueUrl=self.queue_url,
            AttributeNames=["ApproximateNumberOfMessages", "ApproximateNumberOfMessagesNotVisible"],
        )
        attrs = resp.get("Attributes") or {}
        return (
            int(attrs.get("ApproximateNumberOfMessages", 0)),
            int(attrs.get("ApproximateNumberOfMessagesNotVisible", 0)),
        )

    async def replay_dead_letters(self, limit: int = 100) -> int:
        """
        Move up to `limit` messages off the DLQ. Valid events are re-published with attempts=0;
        messages that are not events are discarded. Both count towards the returned total.
        """
        if not self.dlq_url:
            return 0
        handled = 0
        while handled < limit:
            resp = await asyncio.to_thread(
                self.client.receive_message,
                QueueUrl=self.dlq_url,
                MaxNumberOfMessages=min(10, limit - handled),
                WaitTimeSeconds=0,
            )
            batch = resp.get("Messages") or []
            if not batch:
                break
            for msg in batch:
                event = _parse_event(msg.get("Body"))
                if event is None:
                    logger.warning("Discarding malformed DLQ message %s", msg.get("MessageId"))
                else:
                    event["attempts"] = 0
                    await self.publish(event)
                await asyncio.to_thread(
                    self.client.delete_message,
                    QueueUrl=self.dlq_url,
                    ReceiptHandle=msg["ReceiptHandle"],
                )
                handled += 1
        return handled


_queue: SqsEventQueue | None = None


def get_sqs_queue() -> SqsEventQueue:
    global _queue
    if _queue is None:
        _queue = SqsEventQueue(
            boto3.client("sqs", region_name=settings.aws_region),
            settings.sqs_queue_url,
            settings.sqs_dlq_url,
        )
    return _queue
