"""
Async Postgres order store: one row per order document.
Product snapshot and delivery address live in JSONB columns; status fields are plain columns for filtering.
A state change is a single UPDATE of only the columns it changed (last writer wins, no row locking).
"""
import json
import uuid

import asyncpg

from storefront.config import settings
from storefront.errors import NotFoundError
from storefront.models import Order
from storefront.order_state import OrderStatus, PaymentStatus

_pool: asyncpg.Pool | None = None

_PRODUCT_FIELDS = ("name", "delivery_note", "images", "category", "sizes", "colors")


async def get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=1,
            max_size=5,
            command_timeout=60,
        )
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


async def init_schema(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as conn:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS orders (
                id UUID PRIMARY KEY,
                user_id VARCHAR(255),
                status VARCHAR(20) NOT NULL DEFAULT 'pending',
                payment_method VARCHAR(20) NOT NULL,
                payment_status VARCHAR(20) NOT NULL DEFAULT 'pending',
                price DOUBLE PRECISION NOT NULL CHECK (price > 0),
                total_price DOUBLE PRECISION NOT NULL CHECK (total_price >= price),
                product JSONB NOT NULL,
                delivery_address JSONB NOT NULL,
                created_at TIMESTAMPTZ DEFAULT NOW(),
                updated_at TIMESTAMPTZ DEFAULT NOW()
            );
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_orders_user_id
            ON orders(user_id, created_at DESC);
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_orders_status
            ON orders(status);
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_orders_payment_status
            ON orders(payment_status);
        """)


def _row_to_order(row: asyncpg.Record) -> Order:
    product = json.loads(row["product"])
    return Order(
        id=row["id"],
        user=row["user_id"],
        status=row["status"],
        payment_method=row["payment_method"],
        payment_status=row["payment_status"],
        price=row["price"],
        total_price=row["total_price"],
        delivery_address=json.loads(row["delivery_address"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        **{field: product[field] for field in _PRODUCT_FIELDS if field in product},
    )


class OrderStore:
    """Create/find/update operations over the orders table."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def create(self, order: Order) -> Order:
        product = {field: getattr(order, field) for field in _PRODUCT_FIELDS}
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO orders (id, user_id, status, payment_method, payment_status,
                                    price, total_price, product, delivery_address)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8::jsonb, $9::jsonb)
                RETURNING *;
                """,
                order.id,
                order.user,
                order.status.value,
                order.payment_method.value,
                order.payment_status.value,
                order.price,
                order.total_price,
                json.dumps(product),
                json.dumps(order.delivery_address.model_dump()),
            )
        return _row_to_order(row)

    async def get(self, order_id: uuid.UUID) -> Order:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM orders WHERE id = $1;", order_id)
        if row is None:
            raise NotFoundError("Order not found")
        return _row_to_order(row)

    async def find(
        self,
        user_id: str | None = None,
        status: OrderStatus | None = None,
        payment_status: PaymentStatus | None = None,
    ) -> list[Order]:
        clauses: list[str] = []
        args: list = []
        for column, value in (
            ("user_id", user_id),
            ("status", status.value if status else None),
            ("payment_status", payment_status.value if payment_status else None),
        ):
            if value is not None:
                args.append(value)
                clauses.append(f"{column} = ${len(args)}")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT * FROM orders {where} ORDER BY created_at DESC;", *args)
        return [_row_to_order(r) for r in rows]

    async def _update(self, query: str, *args) -> Order:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, *args)
        if row is None:
            raise NotFoundError("Order not found")
        return _row_to_order(row)

    async def save_status(
        self,
        order_id: uuid.UUID,
        status: OrderStatus,
        payment_status: PaymentStatus | None = None,
    ) -> Order:
        """Write the new status; payment_status only when the transition cascaded into it."""
        if payment_status is None:
            return await self._update(
                """
                UPDATE orders SET status = $1, updated_at = NOW()
                WHERE id = $2
                RETURNING *;
                """,
                status.value,
                order_id,
            )
        return await self._update(
            """
            UPDATE orders SET status = $1, payment_status = $2, updated_at = NOW()
            WHERE id = $3
            RETURNING *;
            """,
            status.value,
            payment_status.value,
            order_id,
        )

    async def save_payment_status(self, order_id: uuid.UUID, payment_status: PaymentStatus) -> Order:
        """Write the payment status alone; the order status column is left as stored."""
        return await self._update(
            """
            UPDATE orders SET payment_status = $1, updated_at = NOW()
            WHERE id = $2
            RETURNING *;
            """,
            payment_status.value,
            order_id,
        )


async def get_store() -> OrderStore:
    """FastAPI dependency."""
    return OrderStore(await get_pool())
