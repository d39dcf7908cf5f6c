"""
Shared helpers for scenario test scripts.
Uses: API_URL, REDIS_URL from env (defaults for local docker).
"""
import json
import os
import urllib.error
import urllib.request

# Defaults for local docker compose
API_BASE = os.environ.get("API_URL", "http://localhost:8000")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

ADMIN_HEADERS = {"X-User-Id": "scenario-admin", "X-User-Role": "admin"}


def call_api(
    method: str,
    path: str,
    body: dict | None = None,
    headers: dict | None = None,
    api_base: str | None = None,
) -> tuple[int, dict]:
    """Send one JSON request. Returns (status_code, response_body). Never raises on HTTP error."""
    base = api_base or API_BASE
    req = urllib.request.Request(
        f"{base}{path}",
        data=json.dumps(body).encode() if body is not None else None,
        headers={"Content-Type": "application/json", **(headers or {})},
        method=method,
    )
    try:
        with urllib.request.urlopen(req) as resp:
            return resp.status, json.loads(resp.read().decode())
    except urllib.error.HTTPError as e:
        raw = e.read()
        return e.code, json.loads(raw.decode()) if raw else {}


def create_order(user_id: str, payment_method: str = "delivery", payment_status: str | None = None) -> tuple[int, dict]:
    body = {
        "name": "Scenario Hoodie",
        "price": 30000,
        "images": ["https://cdn.example.com/hoodie.jpg"],
        "category": "outerwear",
        "totalPrice": 33000,
        "deliveryAddress": {"street": "1 Test Street", "city": "Yaba", "state": "Lagos"},
        "paymentMethod": payment_method,
    }
    if payment_status:
        body["paymentStatus"] = payment_status
    return call_api("POST", "/orders", body, headers={"X-User-Id": user_id})


def update_status(order_id: str, status: str) -> tuple[int, dict]:
    return call_api("PATCH", f"/orders/{order_id}/status", {"status": status}, headers=ADMIN_HEADERS)


def update_payment_status(order_id: str, payment_status: str) -> tuple[int, dict]:
    return call_api(
        "PATCH", f"/orders/{order_id}/payment-status", {"paymentStatus": payment_status}, headers=ADMIN_HEADERS
    )


def get_dlq_length(redis_url: str | None = None) -> int:
    """Return current length of the Redis notification DLQ."""
    import redis
    url = redis_url or REDIS_URL
    r = redis.from_url(url, decode_responses=True)
    return r.llen("queue:order_notifications:dlq")
