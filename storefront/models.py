"""
Order document and request bodies. JSON uses camelCase keys; Python attributes are snake_case.
"""
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from storefront.order_state import OrderStatus, PaymentMethod, PaymentStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class DeliveryAddress(_CamelModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)


class Order(_CamelModel):
    id: uuid.UUID
    user: str | None = None
    name: str
    delivery_note: str = ""
    price: float
    images: list[str]
    category: str
    sizes: str = ""
    colors: str = ""
    total_price: float
    status: OrderStatus = OrderStatus.PENDING
    delivery_address: DeliveryAddress
    payment_method: PaymentMethod
    payment_status: PaymentStatus = PaymentStatus.PENDING
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class CreateOrderBody(_CamelModel):
    name: str = Field(..., min_length=1)
    delivery_note: str = ""
    price: float = Field(..., gt=0)
    images: list[str] = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    sizes: str = ""
    colors: str = ""
    total_price: float = Field(..., gt=0)
    delivery_address: DeliveryAddress
    payment_method: PaymentMethod = PaymentMethod.GATEWAY
    payment_status: PaymentStatus | None = None

    @model_validator(mode="after")
    def check_amounts_and_payment(self) -> "CreateOrderBody":
        if self.total_price < self.price:
            raise ValueError("totalPrice must be greater than or equal to price")
        if self.payment_status == PaymentStatus.FAILED:
            raise ValueError("An order cannot be created with a failed payment")
        if self.payment_status == PaymentStatus.COMPLETED and self.payment_method != PaymentMethod.GATEWAY:
            raise ValueError("Only gateway orders can be created as already paid")
        return self


class OrderStatusBody(_CamelModel):
    status: OrderStatus


class PaymentStatusBody(_CamelModel):
    payment_status: PaymentStatus
