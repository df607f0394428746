"""FastAPI routes for the marketplace — customers, suppliers, admins and the gateway.

Who is calling is taken from headers set by the upstream auth proxy
(``X-Customer-Id``, ``X-Supplier-Id``, ``X-Admin-Id``); whether they may act
is decided by the order's state machine, not here.
"""

import json
from datetime import UTC, datetime

from fastapi import APIRouter, Header, HTTPException, Request
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from marketplace import config
from marketplace.api.schemas import (
    AdminOrderRequest,
    AdminOrderResponse,
    CancelOrderRequest,
    ConfigureGatewayRequest,
    CustomerOrderResponse,
    GatewayConfigResponse,
    GatewayWebhookRequest,
    OrderCreatedResponse,
    OrderItemResponse,
    OrderStateResponse,
    PaymentIntentResponse,
    PaymentSyncResponse,
    PickupMinDateResponse,
    PlaceOrderRequest,
    RetryPaymentRequest,
    ShipItemsRequest,
    SupplierActionRequest,
    SupplierCancelRequest,
    SupplierOrderResponse,
    UpdateTrackingRequest,
    WebhookResponse,
)
from marketplace.fulfillment.pickup import compute_min_pickup_date
from marketplace.gateway import get_gateway
from marketplace.gateway.fake_adapter import FakeGateway
from marketplace.order.admin import SendOrderMessage, status_command
from marketplace.order.cancellation import CancelOrder
from marketplace.order.concurrency import dispatch
from marketplace.order.fulfillment import ConfirmOrder, MarkShipped, StartProcessing, UpdateTracking
from marketplace.order.order import Order
from marketplace.order.placement import PlaceOrder
from marketplace.order.retry import RetryPayment
from marketplace.order.webhook import ReconcilePayment, SyncPaymentStatus
from marketplace.projections.customer_orders import CustomerOrderView, display_payment_status
from marketplace.projections.supplier_orders import SupplierOrderView


def _load_order(order_id: str) -> Order:
    return current_domain.repository_for(Order).get(order_id)


def _order_state(order_id: str) -> OrderStateResponse:
    order = _load_order(order_id)
    return OrderStateResponse(
        order_id=str(order.id),
        status=order.status,
        payment_status=order.payment_status,
        version=order.version,
    )


# ---------------------------------------------------------------------------
# Customer Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderCreatedResponse)
async def place_order(body: PlaceOrderRequest) -> OrderCreatedResponse:
    """Check out a cart as one order, possibly spanning several suppliers."""
    command = PlaceOrder(
        customer_id=body.customer.customer_id,
        customer_name=body.customer.name,
        customer_email=body.customer.email,
        customer_phone=body.customer.phone,
        items=json.dumps([item.model_dump() for item in body.items]),
        subtotal=body.subtotal,
        discount=body.discount,
        shipping=body.shipping,
        total=body.total,
        currency=body.currency,
        shipping_method=body.shipping_method,
        shipping_address=json.dumps(body.shipping_address.model_dump()) if body.shipping_address else None,
        pickup_date=body.pickup_date,
        payment_method=body.payment_method,
        notes=body.notes,
        idempotency_key=body.idempotency_key,
    )
    order_id = dispatch(command)
    order = _load_order(order_id)
    return OrderCreatedResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        checkout_url=order.checkout_url,
        status=order.status,
        payment_status=order.payment_status,
    )


@order_router.get("/{order_id}", response_model=CustomerOrderResponse)
async def get_order(order_id: str, x_customer_id: str | None = Header(default=None)) -> CustomerOrderResponse:
    """Customer-facing view of an order."""
    view = current_domain.repository_for(CustomerOrderView).get(order_id)
    if x_customer_id is not None and str(view.customer_id) != x_customer_id:
        # Other customers' orders do not exist for the caller
        raise ObjectNotFoundError(f"Order {order_id} not found")

    order = _load_order(order_id)
    return CustomerOrderResponse(
        order_id=str(view.order_id),
        order_number=view.order_number,
        status=view.status,
        payment_status=view.payment_status,
        payment_display=view.payment_display or display_payment_status(view.payment_status),
        total=view.total,
        currency=view.currency,
        shipping_method=view.shipping_method,
        pickup_date=view.pickup_date,
        pickup_location=json.loads(view.pickup_location) if view.pickup_location else None,
        tracking_number=view.tracking_number,
        carrier=view.carrier,
        checkout_url=view.checkout_url,
        items=[
            OrderItemResponse(
                item_id=str(item.id),
                product_name=item.product_name,
                supplier_id=str(item.supplier_id),
                quantity=item.quantity,
                unit_price=item.unit_price,
                fulfillment_status=item.fulfillment_status,
                tracking_number=item.tracking_number,
            )
            for item in order.items
        ],
        version=order.version,
    )


@order_router.post("/{order_id}/cancel", response_model=OrderStateResponse)
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    x_customer_id: str = Header(),
) -> OrderStateResponse:
    """Customer cancellation; only possible while the order is pending."""
    command = CancelOrder(
        order_id=order_id,
        actor_role="customer",
        actor_id=x_customer_id,
        reason=body.reason,
        expected_version=body.expected_version,
    )
    dispatch(command)
    return _order_state(order_id)


@order_router.post("/{order_id}/retry-payment", response_model=PaymentIntentResponse)
async def retry_payment(
    order_id: str,
    body: RetryPaymentRequest,
    x_customer_id: str = Header(),
) -> PaymentIntentResponse:
    """Open a fresh checkout link after a failed or abandoned payment."""
    command = RetryPayment(
        order_id=order_id,
        customer_id=x_customer_id,
        idempotency_key=body.idempotency_key,
        expected_version=body.expected_version,
    )
    intent_id = dispatch(command)
    order = _load_order(order_id)
    return PaymentIntentResponse(order_id=order_id, intent_id=intent_id, checkout_url=order.checkout_url)


@order_router.post("/{order_id}/sync-payment", response_model=PaymentSyncResponse)
async def sync_payment(order_id: str) -> PaymentSyncResponse:
    """Poll the gateway for the order's latest payment."""
    outcome = dispatch(SyncPaymentStatus(order_id=order_id))
    order = _load_order(order_id)
    return PaymentSyncResponse(order_id=order_id, outcome=outcome, payment_status=order.payment_status)


# ---------------------------------------------------------------------------
# Supplier Router
# ---------------------------------------------------------------------------
supplier_router = APIRouter(prefix="/supplier/orders", tags=["supplier"])


@supplier_router.get("", response_model=list[SupplierOrderResponse])
async def list_supplier_orders(x_supplier_id: str = Header()) -> list[SupplierOrderResponse]:
    """The caller's share of every order that includes its products."""
    repo = current_domain.repository_for(SupplierOrderView)
    rows = repo._dao.query.filter(supplier_id=x_supplier_id).all().items
    return [
        SupplierOrderResponse(
            order_id=str(row.order_id),
            order_number=row.order_number,
            customer_name=row.customer_name,
            item_count=row.item_count,
            subtotal=row.subtotal,
            fulfillment_status=row.fulfillment_status,
            order_status=row.order_status,
            payment_status=row.payment_status,
            tracking_number=row.tracking_number,
        )
        for row in rows
    ]


@supplier_router.post("/{order_id}/confirm", response_model=OrderStateResponse)
async def supplier_confirm(
    order_id: str,
    body: SupplierActionRequest,
    x_supplier_id: str = Header(),
) -> OrderStateResponse:
    command = ConfirmOrder(
        order_id=order_id,
        actor_role="supplier",
        actor_id=x_supplier_id,
        note=body.note,
        expected_version=body.expected_version,
    )
    dispatch(command)
    return _order_state(order_id)


@supplier_router.post("/{order_id}/process", response_model=OrderStateResponse)
async def supplier_start_processing(
    order_id: str,
    body: SupplierActionRequest,
    x_supplier_id: str = Header(),
) -> OrderStateResponse:
    command = StartProcessing(
        order_id=order_id,
        actor_role="supplier",
        actor_id=x_supplier_id,
        note=body.note,
        expected_version=body.expected_version,
    )
    dispatch(command)
    return _order_state(order_id)


@supplier_router.post("/{order_id}/ship", response_model=OrderStateResponse)
async def supplier_ship(
    order_id: str,
    body: ShipItemsRequest,
    x_supplier_id: str = Header(),
) -> OrderStateResponse:
    command = MarkShipped(
        order_id=order_id,
        actor_role="supplier",
        actor_id=x_supplier_id,
        tracking_number=body.tracking_number,
        carrier=body.carrier,
        note=body.note,
        expected_version=body.expected_version,
    )
    dispatch(command)
    return _order_state(order_id)


@supplier_router.post("/{order_id}/cancel", response_model=OrderStateResponse)
async def supplier_cancel(
    order_id: str,
    body: SupplierCancelRequest,
    x_supplier_id: str = Header(),
) -> OrderStateResponse:
    """Cancel an order that includes the caller's products."""
    command = CancelOrder(
        order_id=order_id,
        actor_role="supplier",
        actor_id=x_supplier_id,
        reason=body.reason,
        expected_version=body.expected_version,
    )
    dispatch(command)
    return _order_state(order_id)


@supplier_router.post("/{order_id}/tracking", response_model=OrderStateResponse)
async def supplier_update_tracking(
    order_id: str,
    body: UpdateTrackingRequest,
    x_supplier_id: str = Header(),
) -> OrderStateResponse:
    command = UpdateTracking(
        order_id=order_id,
        actor_role="supplier",
        actor_id=x_supplier_id,
        tracking_number=body.tracking_number,
        carrier=body.carrier,
        tracking_url=body.tracking_url,
        note=body.note,
        expected_version=body.expected_version,
    )
    dispatch(command)
    return _order_state(order_id)


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"])


def _admin_command(order_id: str, admin_id: str, body: AdminOrderRequest):
    common = {"order_id": order_id, "actor_role": "admin", "actor_id": admin_id}
    if body.action == "confirm":
        return ConfirmOrder(note=body.note, expected_version=body.expected_version, **common)
    if body.action == "cancel":
        return CancelOrder(reason=body.reason or body.note, expected_version=body.expected_version, **common)
    if body.action == "update_status":
        if not body.status:
            raise ValidationError({"status": ["is required for update_status"]})
        return status_command(
            order_id,
            body.status,
            admin_id,
            note=body.note,
            tracking_number=body.tracking_number,
            carrier=body.carrier,
            expected_version=body.expected_version,
        )
    if body.action == "update_tracking":
        if not body.tracking_number:
            raise ValidationError({"tracking_number": ["is required for update_tracking"]})
        return UpdateTracking(
            tracking_number=body.tracking_number,
            carrier=body.carrier,
            tracking_url=body.tracking_url,
            note=body.note,
            expected_version=body.expected_version,
            **common,
        )
    if not body.message:
        raise ValidationError({"message": ["is required for send_message"]})
    return SendOrderMessage(order_id=order_id, admin_id=admin_id, recipient=body.recipient, message=body.message)


@admin_router.patch("/{order_id}", response_model=AdminOrderResponse)
async def admin_update_order(
    order_id: str,
    body: AdminOrderRequest,
    x_admin_id: str = Header(),
) -> AdminOrderResponse:
    """Run one admin action against an order."""
    _load_order(order_id)
    result = dispatch(_admin_command(order_id, x_admin_id, body))

    if body.action == "send_message":
        message = f"Message sent to {result} recipient(s)"
    else:
        message = f"Action '{body.action}' applied"
    return AdminOrderResponse(message=message, order=_order_state(order_id))


# ---------------------------------------------------------------------------
# Gateway Webhook Router
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks/gateway", tags=["webhooks"])


@webhook_router.post("", response_model=WebhookResponse)
async def gateway_webhook(
    request: Request,
    body: GatewayWebhookRequest,
    x_gateway_signature: str = Header(default=""),
) -> WebhookResponse:
    """Apply a gateway payment notification.

    Duplicates, out-of-order deliveries and notices for superseded intents
    are acknowledged with 200 so the gateway stops redelivering them.
    """
    payload = (await request.body()).decode()
    if not get_gateway().verify_webhook_signature(payload, x_gateway_signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    command = ReconcilePayment(
        order_id=body.external_reference,
        external_transaction_id=body.external_transaction_id,
        gateway_status=body.status,
        transaction_amount=body.transaction_amount,
        net_received_amount=body.net_received_amount,
        event_timestamp=body.timestamp,
        intent_id=body.intent_id,
        status_detail=body.status_detail,
        payment_method=body.payment_method,
        details=json.dumps(body.model_extra, default=str) if body.model_extra else None,
    )
    outcome = dispatch(command)
    return WebhookResponse(outcome=outcome)


@webhook_router.post("/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only)."""
    if config.is_production():
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(should_succeed=body.should_succeed, failure_reason=body.failure_reason)
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
    )


# ---------------------------------------------------------------------------
# Fulfilment Router
# ---------------------------------------------------------------------------
fulfillment_router = APIRouter(prefix="/fulfillment", tags=["fulfillment"])


@fulfillment_router.get("/pickup/min-date", response_model=PickupMinDateResponse)
async def pickup_min_date() -> PickupMinDateResponse:
    """Earliest date a pickup order placed now can be collected."""
    return PickupMinDateResponse(
        min_date=compute_min_pickup_date(datetime.now(UTC)),
        lead_weekdays=config.pickup_lead_weekdays(),
    )
