from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from storefront.auth import CurrentUser, get_current_user, require_admin
from storefront.db import OrderStore, get_store
from storefront.errors import ForbiddenError
from storefront.lifecycle import change_order_status, change_payment_status, create_order, parse_order_id
from storefront.models import CreateOrderBody, Order, OrderStatusBody, PaymentStatusBody
from storefront.order_state import (
    OrderStatus,
    PaymentStatus,
    can_update_payment_status,
    is_terminal,
    next_order_statuses,
    next_payment_statuses,
)

router = APIRouter(prefix="/orders", tags=["orders"])


def _parse_filter(enum_cls, value: str | None):
    """Unknown filter values are ignored rather than rejected."""
    try:
        return enum_cls(value) if value else None
    except ValueError:
        return None


def _order_list(orders: list[Order]) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content={
            "success": True,
            "message": "Orders fetched successfully",
            "orders": [o.to_json() for o in orders],
            "count": len(orders),
        },
    )


@router.post("")
async def place_order(
    body: CreateOrderBody,
    user: CurrentUser = Depends(get_current_user),
    store: OrderStore = Depends(get_store),
) -> JSONResponse:
    order = await create_order(store, user.id, body)
    return JSONResponse(
        status_code=201,
        content={"success": True, "message": "Order created successfully", "order": order.to_json()},
    )


@router.get("/my-orders")
async def my_orders(
    status: str | None = Query(default=None),
    payment_status: str | None = Query(default=None, alias="paymentStatus"),
    user: CurrentUser = Depends(get_current_user),
    store: OrderStore = Depends(get_store),
) -> JSONResponse:
    orders = await store.find(
        user_id=user.id,
        status=_parse_filter(OrderStatus, status),
        payment_status=_parse_filter(PaymentStatus, payment_status),
    )
    return _order_list(orders)


@router.get("/all")
async def all_orders(
    status: str | None = Query(default=None),
    payment_status: str | None = Query(default=None, alias="paymentStatus"),
    user_id: str | None = Query(default=None, alias="userId"),
    _admin: CurrentUser = Depends(require_admin),
    store: OrderStore = Depends(get_store),
) -> JSONResponse:
    orders = await store.find(
        user_id=user_id or None,
        status=_parse_filter(OrderStatus, status),
        payment_status=_parse_filter(PaymentStatus, payment_status),
    )
    return _order_list(orders)


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    user: CurrentUser = Depends(get_current_user),
    store: OrderStore = Depends(get_store),
) -> JSONResponse:
    """Owners see their own orders; admins see any."""
    order = await store.get(parse_order_id(order_id))
    if order.user != user.id and not user.is_admin:
        raise ForbiddenError("Unauthorized to access this order")
    return JSONResponse(
        status_code=200,
        content={"success": True, "message": "Order fetched successfully", "order": order.to_json()},
    )


@router.get("/{order_id}/actions")
async def order_actions(
    order_id: str,
    _admin: CurrentUser = Depends(require_admin),
    store: OrderStore = Depends(get_store),
) -> JSONResponse:
    """Transitions the admin dashboard may offer for this order."""
    order = await store.get(parse_order_id(order_id))
    editable = can_update_payment_status(order.payment_method, order.payment_status)
    payment_statuses = next_payment_statuses(order.payment_status) if editable else frozenset()
    return JSONResponse(
        status_code=200,
        content={
            "orderId": str(order.id),
            "orderStatuses": sorted(s.value for s in next_order_statuses(order.status)),
            "paymentStatuses": sorted(s.value for s in payment_statuses),
            "canUpdatePaymentStatus": editable,
            "terminal": is_terminal(order.status),
        },
    )


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: str,
    body: OrderStatusBody,
    _admin: CurrentUser = Depends(require_admin),
    store: OrderStore = Depends(get_store),
) -> JSONResponse:
    order, previous = await change_order_status(store, order_id, body.status)
    return JSONResponse(
        status_code=200,
        content={
            "success": True,
            "message": "Order status updated successfully",
            "order": order.to_json(),
            "previousStatus": previous.value,
        },
    )


@router.patch("/{order_id}/payment-status")
async def update_payment_status(
    order_id: str,
    body: PaymentStatusBody,
    _admin: CurrentUser = Depends(require_admin),
    store: OrderStore = Depends(get_store),
) -> JSONResponse:
    order, previous = await change_payment_status(store, order_id, body.payment_status)
    return JSONResponse(
        status_code=200,
        content={
            "success": True,
            "message": "Payment status updated successfully",
            "order": order.to_json(),
            "previousPaymentStatus": previous.value,
        },
    )
