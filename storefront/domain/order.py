"""
Order Domain Models

Orders are created by the remote API at checkout. The client only holds
snapshots: the cart items are copied into the order when it is placed.
"""
from pydantic import BaseModel, Field, ConfigDict, AliasChoices, field_validator
from typing import Any, Dict, List, Optional
from decimal import Decimal
from enum import Enum


class OrderStatus(str, Enum):
    """Order lifecycle status"""
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class CartItem(BaseModel):
    """
    Cart line snapshotted into an order

    Fields:
        id: Product ID
        name: Product name at checkout time
        price: Unit price at checkout time
        quantity: Units ordered
        image: Product image at checkout time
        selected_variant: Variant chosen by the customer, if any
        custom_form_data: Answers for custom-request products
    """
    id: str = Field(..., description="Product ID")
    name: str = Field(..., description="Product name at checkout")
    price: Decimal = Field(..., description="Unit price", ge=0)
    quantity: int = Field(1, description="Units ordered", ge=1)
    image: Optional[str] = None
    selected_variant: Optional[Dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("selected_variant", "selectedVariant")
    )
    custom_form_data: Optional[Dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("custom_form_data", "customFormData")
    )

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class OrderCreate(BaseModel):
    """Checkout payload sent to POST /orders"""
    customer_name: str = Field(
        ..., validation_alias=AliasChoices("customer_name", "customerName")
    )
    customer_email: str = Field(
        ..., validation_alias=AliasChoices("customer_email", "customerEmail")
    )
    customer_phone: Optional[str] = Field(
        None, validation_alias=AliasChoices("customer_phone", "customerPhone")
    )
    address: Optional[str] = None
    city: Optional[str] = None
    pincode: Optional[str] = None
    items: List[CartItem] = Field(default_factory=list)
    total: Decimal = Field(..., description="Order total", ge=0)
    payment_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("payment_id", "paymentId")
    )
    order_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("order_id", "orderId")
    )

    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> dict:
        """Dump to a JSON-compatible dict with money as floats"""
        data = self.model_dump(mode="json")
        data["total"] = float(self.total)
        for item, dumped in zip(self.items, data["items"]):
            dumped["price"] = float(item.price)
        return data


class Order(OrderCreate):
    """
    Order domain model

    Status is changed only through the admin-authorized status update.
    Orders are never deleted except by an explicit admin action.
    """
    id: str = Field(..., description="Order ID")
    status: OrderStatus = Field(OrderStatus.PENDING, description="Lifecycle status")
    date: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("date", "created_at", "createdAt"),
        description="Creation date as sent by the server",
    )

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


def map_order_from_wire(payload: Dict[str, Any]) -> Order:
    """Map an API payload to an Order"""
    return Order.model_validate(payload)
