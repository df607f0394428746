"""Pydantic request/response schemas for the marketplace API.

Request and response shapes of the HTTP API, kept apart from the
internal Protean commands.
"""

from datetime import date, datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CustomerSchema(BaseModel):
    customer_id: str
    name: str | None = None
    email: str | None = None
    phone: str | None = None


class OrderItemSchema(BaseModel):
    product_id: str
    product_name: str
    supplier_id: str
    supplier_name: str | None = None
    supplier_contact: str | None = None
    variant: str | None = None
    quantity: int = Field(gt=0)
    unit_price: float = Field(ge=0)


class ShippingAddressSchema(BaseModel):
    street: str
    city: str
    state: str
    zip_code: str
    country: str
    notes: str | None = None


# ---------------------------------------------------------------------------
# Customer requests
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    customer: CustomerSchema
    items: list[OrderItemSchema] = Field(min_length=1)
    subtotal: float = Field(ge=0)
    discount: float = Field(default=0.0, ge=0)
    shipping: float = Field(default=0.0, ge=0)
    total: float = Field(ge=0)
    currency: str | None = None
    shipping_method: Literal["home_delivery", "pickup"]
    shipping_address: ShippingAddressSchema | None = None
    pickup_date: date | None = None
    payment_method: str | None = None
    notes: str | None = None
    idempotency_key: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer": {"customer_id": "cust-001", "name": "Ana Pérez", "email": "ana@example.com"},
                    "items": [
                        {
                            "product_id": "prod-001",
                            "product_name": "Mate de calabaza",
                            "supplier_id": "sup-001",
                            "supplier_name": "Artesanías del Sur",
                            "quantity": 2,
                            "unit_price": 500.0,
                        }
                    ],
                    "subtotal": 1000.0,
                    "total": 1000.0,
                    "shipping_method": "home_delivery",
                    "shipping_address": {
                        "street": "Av. Corrientes 1234",
                        "city": "Buenos Aires",
                        "state": "CABA",
                        "zip_code": "C1043",
                        "country": "AR",
                    },
                }
            ]
        }
    }


class CancelOrderRequest(BaseModel):
    reason: str | None = None
    expected_version: int | None = None


class RetryPaymentRequest(BaseModel):
    idempotency_key: str | None = None
    expected_version: int | None = None


# ---------------------------------------------------------------------------
# Supplier requests
# ---------------------------------------------------------------------------
class SupplierActionRequest(BaseModel):
    note: str | None = None
    expected_version: int | None = None


class ShipItemsRequest(BaseModel):
    tracking_number: str | None = None
    carrier: str | None = None
    note: str | None = None
    expected_version: int | None = None


class SupplierCancelRequest(BaseModel):
    reason: str | None = None
    expected_version: int | None = None


class UpdateTrackingRequest(BaseModel):
    tracking_number: str
    carrier: str | None = None
    tracking_url: str | None = None
    note: str | None = None
    expected_version: int | None = None


# ---------------------------------------------------------------------------
# Admin requests
# ---------------------------------------------------------------------------
class AdminOrderRequest(BaseModel):
    """One admin action per request; ``action`` selects which fields apply."""

    action: Literal["confirm", "cancel", "update_status", "update_tracking", "send_message"]
    status: str | None = None
    note: str | None = None
    reason: str | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    tracking_url: str | None = None
    recipient: Literal["customer", "suppliers", "all"] = "customer"
    message: str | None = None
    expected_version: int | None = None


# ---------------------------------------------------------------------------
# Gateway webhook
# ---------------------------------------------------------------------------
class GatewayWebhookRequest(BaseModel):
    """Gateway payment notification.

    Fields not named here are kept verbatim and stored with the payment.
    """

    model_config = ConfigDict(extra="allow")

    external_reference: str  # our order id
    external_transaction_id: str
    status: str
    transaction_amount: float | None = None
    net_received_amount: float | None = None
    timestamp: datetime | None = Field(default=None, validation_alias=AliasChoices("timestamp", "date"))
    intent_id: str | None = None
    status_detail: str | None = None
    payment_method: str | None = None


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Gateway unavailable"


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class OrderCreatedResponse(BaseModel):
    order_id: str
    order_number: str
    checkout_url: str | None = None
    status: str
    payment_status: str


class OrderStateResponse(BaseModel):
    order_id: str
    status: str
    payment_status: str
    version: int


class PaymentIntentResponse(BaseModel):
    order_id: str
    intent_id: str
    checkout_url: str | None = None


class PaymentSyncResponse(BaseModel):
    order_id: str
    outcome: str
    payment_status: str


class OrderItemResponse(BaseModel):
    item_id: str
    product_name: str
    supplier_id: str
    quantity: int
    unit_price: float
    fulfillment_status: str
    tracking_number: str | None = None


class CustomerOrderResponse(BaseModel):
    order_id: str
    order_number: str
    status: str
    payment_status: str
    payment_display: str
    total: float
    currency: str
    shipping_method: str
    pickup_date: str | None = None
    pickup_location: dict | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    checkout_url: str | None = None
    items: list[OrderItemResponse] = []
    version: int


class SupplierOrderResponse(BaseModel):
    order_id: str
    order_number: str
    customer_name: str | None = None
    item_count: int
    subtotal: float
    fulfillment_status: str
    order_status: str
    payment_status: str
    tracking_number: str | None = None


class AdminOrderResponse(BaseModel):
    message: str
    order: OrderStateResponse | None = None


class WebhookResponse(BaseModel):
    status: str = "ok"
    outcome: str


class PickupMinDateResponse(BaseModel):
    min_date: date
    lead_weekdays: int


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
