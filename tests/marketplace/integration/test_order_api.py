"""Integration tests for the marketplace API via TestClient."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from marketplace.api import (
    admin_router,
    fulfillment_router,
    order_router,
    register_marketplace_exception_handlers,
    supplier_router,
    webhook_router,
)
from marketplace.gateway.fake_adapter import TEST_SIGNATURE

ADDRESS = {
    "street": "Av. Corrientes 1234",
    "city": "Buenos Aires",
    "state": "CABA",
    "zip_code": "C1043",
    "country": "AR",
}


def _line(supplier_id, unit_price, quantity=1):
    return {
        "product_id": f"prod-{supplier_id}",
        "product_name": f"Product from {supplier_id}",
        "supplier_id": supplier_id,
        "quantity": quantity,
        "unit_price": unit_price,
    }


@pytest.fixture()
def client():
    app = FastAPI()
    for router in (order_router, supplier_router, admin_router, webhook_router, fulfillment_router):
        app.include_router(router)
    register_marketplace_exception_handlers(app)
    return TestClient(app)


def _checkout(client, **overrides):
    payload = {
        "customer": {"customer_id": "cust-api", "name": "Ana Pérez", "email": "ana@example.com"},
        "items": [_line("sup-a", 1000.0), _line("sup-b", 500.0)],
        "subtotal": 1500.0,
        "total": 1500.0,
        "shipping_method": "home_delivery",
        "shipping_address": ADDRESS,
    }
    payload.update(overrides)
    response = client.post("/orders", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["order_id"]


def _notify(
    client, order_id, transaction_id, status, signature=TEST_SIGNATURE, at=None, time_field="timestamp", **extra
):
    payload = {
        "external_reference": order_id,
        "external_transaction_id": transaction_id,
        "status": status,
        "transaction_amount": 1500.0,
        time_field: (at or datetime.now(UTC)).isoformat(),
        **extra,
    }
    return client.post("/webhooks/gateway", json=payload, headers={"X-Gateway-Signature": signature})


class TestCheckoutAPI:
    def test_checkout_returns_201_with_checkout_link(self, client):
        response = client.post(
            "/orders",
            json={
                "customer": {"customer_id": "cust-api"},
                "items": [_line("sup-a", 250.0, quantity=2)],
                "subtotal": 500.0,
                "total": 500.0,
                "shipping_method": "home_delivery",
                "shipping_address": ADDRESS,
            },
        )
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "pending"
        assert body["payment_status"] == "pending"
        assert body["checkout_url"].startswith("https://checkout.fake-gateway.test/")

    def test_empty_cart_is_rejected(self, client):
        response = client.post(
            "/orders",
            json={
                "customer": {"customer_id": "cust-api"},
                "items": [],
                "subtotal": 0,
                "total": 0,
                "shipping_method": "home_delivery",
            },
        )
        assert response.status_code == 422

    def test_total_mismatch_is_a_validation_error(self, client):
        response = client.post(
            "/orders",
            json={
                "customer": {"customer_id": "cust-api"},
                "items": [_line("sup-a", 1000.0)],
                "subtotal": 1000.0,
                "total": 900.0,
                "shipping_method": "home_delivery",
                "shipping_address": ADDRESS,
            },
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"

    def test_gateway_outage_returns_502(self, client, gateway):
        gateway.configure(should_succeed=False)
        response = client.post(
            "/orders",
            json={
                "customer": {"customer_id": "cust-api"},
                "items": [_line("sup-a", 1000.0)],
                "subtotal": 1000.0,
                "total": 1000.0,
                "shipping_method": "home_delivery",
                "shipping_address": ADDRESS,
            },
        )
        assert response.status_code == 502


class TestCustomerOrderAPI:
    def test_get_order_shows_display_status(self, client):
        order_id = _checkout(client)
        _notify(client, order_id, "txn-1", "approved")

        response = client.get(f"/orders/{order_id}", headers={"X-Customer-Id": "cust-api"})
        assert response.status_code == 200
        body = response.json()
        assert body["payment_status"] == "approved"
        assert body["payment_display"] == "paid"
        assert len(body["items"]) == 2

    def test_other_customers_get_404(self, client):
        order_id = _checkout(client)
        response = client.get(f"/orders/{order_id}", headers={"X-Customer-Id": "cust-other"})
        assert response.status_code == 404

    def test_unknown_order_is_404(self, client):
        assert client.get("/orders/does-not-exist").status_code == 404

    def test_customer_cancel(self, client):
        order_id = _checkout(client)
        response = client.post(f"/orders/{order_id}/cancel", json={}, headers={"X-Customer-Id": "cust-api"})
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    def test_cancel_after_confirmation_is_a_conflict(self, client):
        order_id = _checkout(client)
        client.post(f"/supplier/orders/{order_id}/confirm", json={}, headers={"X-Supplier-Id": "sup-a"})
        client.post(f"/supplier/orders/{order_id}/confirm", json={}, headers={"X-Supplier-Id": "sup-b"})

        response = client.post(f"/orders/{order_id}/cancel", json={}, headers={"X-Customer-Id": "cust-api"})
        assert response.status_code == 409
        assert response.json()["status"] == "confirmed"

    def test_stale_version_is_a_conflict(self, client):
        order_id = _checkout(client)
        response = client.post(
            f"/orders/{order_id}/cancel",
            json={"expected_version": 1},
            headers={"X-Customer-Id": "cust-api"},
        )
        assert response.status_code == 409
        assert response.json()["actual_version"] == 2

    def test_retry_payment_after_rejection(self, client):
        order_id = _checkout(client)
        _notify(client, order_id, "txn-1", "rejected")

        response = client.post(
            f"/orders/{order_id}/retry-payment",
            json={"idempotency_key": "retry-1"},
            headers={"X-Customer-Id": "cust-api"},
        )
        assert response.status_code == 200
        assert response.json()["checkout_url"].endswith(response.json()["intent_id"])

    def test_sync_payment_without_payment(self, client):
        order_id = _checkout(client)
        response = client.post(f"/orders/{order_id}/sync-payment")
        assert response.status_code == 200
        assert response.json()["outcome"] == "no_payment"


class TestSupplierAPI:
    def test_supplier_sees_only_own_share(self, client):
        _checkout(client)
        response = client.get("/supplier/orders", headers={"X-Supplier-Id": "sup-b"})
        assert response.status_code == 200
        [row] = response.json()
        assert row["subtotal"] == 500.0
        assert row["fulfillment_status"] == "pending"

    def test_supplier_header_is_required(self, client):
        assert client.get("/supplier/orders").status_code == 422

    def test_supplier_ship_and_track(self, client):
        order_id = _checkout(client)
        for supplier_id in ("sup-a", "sup-b"):
            response = client.post(
                f"/supplier/orders/{order_id}/confirm", json={}, headers={"X-Supplier-Id": supplier_id}
            )
            assert response.status_code == 200, response.text

        response = client.post(
            f"/supplier/orders/{order_id}/ship",
            json={"tracking_number": "AR1234-XYZ", "carrier": "Andreani"},
            headers={"X-Supplier-Id": "sup-a"},
        )
        assert response.status_code == 200

        response = client.post(
            f"/supplier/orders/{order_id}/tracking",
            json={"tracking_number": "bad tracking!"},
            headers={"X-Supplier-Id": "sup-a"},
        )
        assert response.status_code == 400

    def test_supplier_cancel_cancels_the_order(self, client):
        order_id = _checkout(client)
        response = client.post(
            f"/supplier/orders/{order_id}/cancel", json={"reason": "Out of stock"}, headers={"X-Supplier-Id": "sup-b"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    def test_supplier_cannot_confirm_foreign_order(self, client):
        order_id = _checkout(client)
        response = client.post(f"/supplier/orders/{order_id}/confirm", json={}, headers={"X-Supplier-Id": "sup-z"})
        assert response.status_code == 409


class TestAdminAPI:
    def test_update_status(self, client):
        order_id = _checkout(client)
        response = client.patch(
            f"/admin/orders/{order_id}",
            json={"action": "update_status", "status": "confirmed"},
            headers={"X-Admin-Id": "admin-1"},
        )
        assert response.status_code == 200
        assert response.json()["order"]["status"] == "confirmed"

    def test_send_message(self, client, dispatcher):
        order_id = _checkout(client)
        response = client.patch(
            f"/admin/orders/{order_id}",
            json={"action": "send_message", "recipient": "all", "message": "Demora en el envío"},
            headers={"X-Admin-Id": "admin-1"},
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Message sent to 3 recipient(s)"

    def test_unknown_status_is_400(self, client):
        order_id = _checkout(client)
        response = client.patch(
            f"/admin/orders/{order_id}",
            json={"action": "update_status", "status": "lost"},
            headers={"X-Admin-Id": "admin-1"},
        )
        assert response.status_code == 400


class TestWebhookAPI:
    def test_bad_signature_is_401(self, client):
        order_id = _checkout(client)
        assert _notify(client, order_id, "txn-1", "approved", signature="forged").status_code == 401

    def test_duplicate_is_acknowledged(self, client):
        order_id = _checkout(client)
        first = _notify(client, order_id, "txn-1", "approved")
        second = _notify(client, order_id, "txn-1", "approved")

        assert first.json()["outcome"] == "applied"
        assert second.status_code == 200
        assert second.json()["outcome"] == "duplicate"

    def test_older_approval_after_rejection_is_out_of_order(self, client):
        order_id = _checkout(client)
        now = datetime.now(UTC)
        _notify(client, order_id, "txn-1", "rejected", at=now)

        response = _notify(client, order_id, "txn-2", "approved", at=now - timedelta(hours=1))

        assert response.status_code == 200
        assert response.json()["outcome"] == "out_of_order"
        order = client.get(f"/orders/{order_id}", headers={"X-Customer-Id": "cust-api"}).json()
        assert order["payment_status"] == "rejected"

    def test_date_is_accepted_for_timestamp(self, client):
        order_id = _checkout(client)
        now = datetime.now(UTC)
        _notify(client, order_id, "txn-1", "rejected", at=now, time_field="date")

        response = _notify(client, order_id, "txn-2", "approved", at=now - timedelta(hours=1), time_field="date")

        assert response.json()["outcome"] == "out_of_order"

    def test_unlisted_fields_are_kept_with_the_payment(self, client, load_order):
        order_id = _checkout(client)

        _notify(client, order_id, "txn-1", "approved", live_mode=False, payer={"email": "ana@example.com"})

        raw = json.loads(load_order(order_id).payment_details.raw)
        assert raw["live_mode"] is False
        assert raw["payer"] == {"email": "ana@example.com"}

    def test_unknown_order_is_404(self, client):
        assert _notify(client, "no-such-order", "txn-1", "approved").status_code == 404

    def test_configure_fake_gateway(self, client, gateway):
        response = client.post("/webhooks/gateway/configure", json={"should_succeed": False})
        assert response.status_code == 200
        assert gateway.should_succeed is False

    def test_configure_blocked_in_production(self, client, monkeypatch):
        monkeypatch.setenv("PROTEAN_ENV", "production")
        response = client.post("/webhooks/gateway/configure", json={"should_succeed": False})
        assert response.status_code == 403


class TestFulfillmentAPI:
    def test_pickup_min_date(self, client):
        response = client.get("/fulfillment/pickup/min-date")
        assert response.status_code == 200
        body = response.json()
        assert body["lead_weekdays"] == 3
        assert datetime.fromisoformat(body["min_date"]).weekday() < 5
