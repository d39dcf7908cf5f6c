"""
Prometheus metrics: order transitions (API), notification dispatch (worker), queue depth.
"""
from prometheus_client import Counter, Gauge, generate_latest

# API: order lifecycle
orders_created_total = Counter(
    "orders_created_total",
    "Total orders created",
    ["payment_method"],
)
order_transitions_total = Counter(
    "order_transitions_total",
    "Total applied transitions (kind = status | payment_status)",
    ["kind", "from_state", "to_state"],
)
order_transitions_rejected_total = Counter(
    "order_transitions_rejected_total",
    "Total rejected transitions by reason",
    ["kind", "reason"],
)
notification_publish_failed_total = Counter(
    "notification_publish_failed_total",
    "Order events that could not be queued for notification",
    ["event_type"],
)

# Worker: notification dispatch outcomes
notifications_sent_total = Counter(
    "notifications_sent_total",
    "Total notifications handed to the notifier",
    ["event_type"],
)
messages_failed_total = Counter(
    "messages_failed_total",
    "Total event messages that failed dispatch (retried or sent to DLQ)",
)
messages_dlq_total = Counter(
    "messages_dlq_total",
    "Total event messages moved to DLQ after max retries",
)

# Queue depth: Redis list length or SQS approximate counts
queue_messages_waiting = Gauge(
    "queue_messages_waiting",
    "Approximate number of notification events waiting in the queue",
)
queue_messages_in_flight = Gauge(
    "queue_messages_in_flight",
    "Approximate number of events in flight (SQS only)",
)


def get_metrics_content_type():
    return "text/plain; charset=utf-8; version=0.0.4"


def get_metrics_bytes():
    return generate_latest()
