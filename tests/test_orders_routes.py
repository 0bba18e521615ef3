import pytest

from conftest import checkout_payload, sign
from core.extensions import db
from models.cartModels import CartItem
from models.orderModels import Order, OrderNotification, OrderTracking


class TestCheckoutRoutes:
    def test_init_checkout_as_guest(self, client, seed):
        response = client.post("/api/orders/checkout/init", json=checkout_payload(seed.tee))

        assert response.status_code == 200
        body = response.get_json()
        assert body["success"] is True
        assert body["data"]["total_amount"] == 365.0
        assert body["data"]["tax_amount"] == 45.0

    def test_init_checkout_records_user(self, client, seed, customer_headers):
        response = client.post("/api/orders/checkout/init", json=checkout_payload(seed.tee), headers=customer_headers)
        order = db.session.get(Order, response.get_json()["data"]["order_id"])
        assert order.user_id == seed.customer.id

    def test_missing_address_field(self, client, seed):
        payload = checkout_payload(seed.tee)
        del payload["shipping_address"]["postal_code"]

        response = client.post("/api/orders/checkout/init", json=payload)

        assert response.status_code == 400
        assert response.get_json()["code"] == "INVALID_REQUEST"

    def test_bad_items(self, client, seed):
        payload = checkout_payload(seed.tee)
        payload["items"][0]["quantity"] = 0
        assert client.post("/api/orders/checkout/init", json=payload).status_code == 400

    def test_price_mismatch_is_client_error(self, client, seed):
        response = client.post("/api/orders/checkout/init", json=checkout_payload(seed.dress, 1, unit_price=1.0))
        assert response.status_code == 400
        assert response.get_json()["code"] == "PRICE_MISMATCH"

    def test_gateway_failure_is_server_error(self, client, seed, gateway):
        gateway.fail_create = True
        response = client.post("/api/orders/checkout/init", json=checkout_payload(seed.tee))
        assert response.status_code == 500
        assert response.get_json()["code"] == "CHECKOUT_ERROR"

    def test_form_posts_are_refused(self, client, seed):
        response = client.post("/api/orders/checkout/init", data={"items": "x"})
        assert response.status_code == 400
        assert response.get_json()["code"] == "INVALID_CONTENT_TYPE"

    def test_security_headers(self, client, seed):
        response = client.get("/api/orders/shipping/methods")
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_shipping_methods_and_calculation(self, client, seed):
        methods = client.get("/api/orders/shipping/methods").get_json()["data"]
        assert [m["id"] for m in methods] == ["standard", "express"]

        response = client.post("/api/orders/shipping/calculate", json={
            "items": [{"product_id": seed.tee.id, "quantity": 4}],
            "shipping_method_id": "standard",
        })
        assert response.get_json()["data"]["shipping_cost"] == 90.0

        response = client.post("/api/orders/shipping/calculate", json={
            "items": [{"product_id": seed.tee.id, "quantity": 1}],
            "shipping_method_id": "teleport",
        })
        assert response.status_code == 400

    def test_payment_methods(self, client):
        assert len(client.get("/api/orders/payment/methods").get_json()["data"]) == 2


class TestPaymentRoutes:
    def _init(self, client, seed, headers=None):
        return client.post(
            "/api/orders/checkout/init", json=checkout_payload(seed.tee), headers=headers or {}
        ).get_json()["data"]

    def test_verify(self, client, seed):
        data = self._init(client, seed)
        response = client.post("/api/orders/payment/verify", json={
            "razorpay_order_id": data["razorpay_order_id"],
            "razorpay_payment_id": "pay_route",
            "razorpay_signature": sign(data["razorpay_order_id"], "pay_route"),
            "order_id": data["order_id"],
        })

        assert response.status_code == 200
        assert response.get_json()["data"]["status"] == "confirmed"
        assert response.get_json()["data"]["payment_status"] == "paid"

    def test_verify_bad_signature(self, client, seed):
        data = self._init(client, seed)
        response = client.post("/api/orders/payment/verify", json={
            "razorpay_order_id": data["razorpay_order_id"],
            "razorpay_payment_id": "pay_route",
            "razorpay_signature": "nope",
            "order_id": data["order_id"],
        })

        assert response.status_code == 400
        assert response.get_json()["reason"] == "invalid_signature"

    def test_verify_missing_fields(self, client):
        assert client.post("/api/orders/payment/verify", json={"order_id": 1}).status_code == 400

    def test_refund_own_order(self, client, paid_order, customer_headers):
        response = client.post("/api/orders/payment/refund", json={"order_id": paid_order.id}, headers=customer_headers)
        assert response.status_code == 200
        assert response.get_json()["data"]["refund_id"] == "rfnd_test_1"

    def test_refund_someone_elses_order(self, client, paid_order, other_headers, gateway):
        response = client.post("/api/orders/payment/refund", json={"order_id": paid_order.id}, headers=other_headers)
        assert response.status_code == 404
        assert gateway.refunds == []

    def test_refund_invalid_amount(self, client, paid_order, customer_headers):
        response = client.post(
            "/api/orders/payment/refund", json={"order_id": paid_order.id, "amount": -5}, headers=customer_headers
        )
        assert response.status_code == 400

    def test_refund_requires_login(self, client, paid_order):
        response = client.post("/api/orders/payment/refund", json={"order_id": paid_order.id})
        assert response.status_code == 401
        assert response.get_json()["code"] == "AUTHENTICATION_REQUIRED"


class TestCustomerOrders:
    def test_list_and_detail_are_scoped(self, client, make_order, seed, customer_headers, other_headers):
        mine = make_order()
        make_order(user=seed.other)

        listing = client.get("/api/orders", headers=customer_headers).get_json()
        assert [o["id"] for o in listing["orders"]] == [mine.id]
        assert listing["pagination"]["total"] == 1

        assert client.get(f"/api/orders/{mine.id}", headers=customer_headers).status_code == 200
        response = client.get(f"/api/orders/{mine.id}", headers=other_headers)
        assert response.status_code == 404
        assert response.get_json()["code"] == "ORDER_NOT_FOUND"

    def test_create_order_directly(self, client, seed, customer_headers):
        response = client.post("/api/orders", headers=customer_headers, json={
            "items": [{"product_id": seed.tee.id, "quantity": 2, "price": 125.0}],
            "shippingAddress": {"city": "Pune"},
            "paymentMethod": "cod",
        })

        assert response.status_code == 201
        order = response.get_json()["order"]
        assert order["subtotal"] == 250.0
        assert order["tax_amount"] == 45.0
        assert order["status"] == "pending"

    @pytest.mark.parametrize("price", ["abc", -5, None, True])
    def test_create_order_rejects_bad_price(self, client, seed, customer_headers, price):
        response = client.post("/api/orders", headers=customer_headers, json={
            "items": [{"product_id": seed.tee.id, "quantity": 1, "price": price}],
            "shippingAddress": {"city": "Pune"},
        })

        assert response.status_code == 400
        assert Order.query.count() == 0

    def test_cancel(self, client, make_order, customer_headers):
        order = make_order(status="confirmed")
        response = client.post(f"/api/orders/{order.id}/cancel", json={"reason": "Too slow"}, headers=customer_headers)

        assert response.status_code == 200
        assert db.session.get(Order, order.id).status == "cancelled"

    def test_cancel_after_shipping(self, client, make_order, customer_headers):
        order = make_order(status="shipped")
        response = client.post(f"/api/orders/{order.id}/cancel", json={}, headers=customer_headers)
        assert response.status_code == 400
        assert response.get_json()["error"] == "Order cannot be cancelled at this stage"

    def test_tracking(self, client, make_order, services, customer_headers):
        order = make_order(status="confirmed")
        assert client.get(f"/api/orders/{order.id}/tracking", headers=customer_headers).status_code == 404

        services.tracking.create_order_tracking(order.id, "TRK5", "bluedart")
        body = client.get(f"/api/orders/{order.id}/tracking", headers=customer_headers).get_json()
        assert body["data"]["courierName"] == "bluedart"

    def test_return_flow(self, client, make_order, customer_headers):
        order = make_order(status="delivered", paid=True)

        response = client.post(f"/api/orders/{order.id}/return", json={"returnReason": "Item damaged"}, headers=customer_headers)
        assert response.status_code == 200
        assert response.get_json()["data"]["returnStatus"] == "pending"

        again = client.post(f"/api/orders/{order.id}/return", json={"returnReason": "Other"}, headers=customer_headers)
        assert again.status_code == 400

        fetched = client.get(f"/api/orders/{order.id}/return", headers=customer_headers).get_json()
        assert fetched["data"]["returnReason"] == "Item damaged"

        listed = client.get("/api/orders/returns/list", headers=customer_headers).get_json()
        assert len(listed["data"]) == 1

    def test_return_not_eligible(self, client, make_order, customer_headers):
        order = make_order(status="pending")
        response = client.post(f"/api/orders/{order.id}/return", json={"returnReason": "Other"}, headers=customer_headers)
        assert response.status_code == 400
        assert response.get_json()["error"] == "Order is not eligible for return"

    def test_return_reference_data(self, client):
        assert len(client.get("/api/orders/returns/reasons").get_json()["data"]) == 8
        assert "check" in client.get("/api/orders/returns/refund-methods").get_json()["data"]

    def test_reorder(self, client, make_order, seed, customer_headers):
        order = make_order(quantity=2)
        response = client.post(f"/api/orders/{order.id}/reorder", json={}, headers=customer_headers)

        assert response.status_code == 200
        assert response.get_json()["data"]["totalItems"] == 1
        assert CartItem.query.filter_by(user_id=seed.customer.id).one().quantity == 2

    def test_invoice(self, client, make_order, customer_headers):
        order = make_order()
        body = client.get(f"/api/orders/{order.id}/invoice", headers=customer_headers).get_json()
        assert body["data"]["order"]["order_number"] == order.order_number


class TestAdminOrders:
    def test_requires_admin(self, client, seed, customer_headers):
        assert client.get("/api/orders/admin/all", headers=customer_headers).status_code == 403

    def test_list_with_filters(self, client, make_order, admin_headers):
        make_order(status="pending")
        shipped = make_order(status="shipped")

        body = client.get("/api/orders/admin/all?status=shipped", headers=admin_headers).get_json()
        assert [o["id"] for o in body["data"]] == [shipped.id]

        body = client.get(f"/api/orders/admin/all?search={shipped.order_number}", headers=admin_headers).get_json()
        assert [o["id"] for o in body["data"]] == [shipped.id]

    def test_ship_with_tracking_notifies_customer(self, client, make_order, admin_headers):
        order = make_order(status="confirmed", paid=True)

        response = client.put(f"/api/orders/admin/{order.id}/status", headers=admin_headers, json={
            "status": "shipped",
            "trackingNumber": "DL123",
            "courierName": "delhivery",
        })

        assert response.status_code == 200
        tracking = OrderTracking.query.filter_by(order_id=order.id).one()
        assert tracking.tracking_number == "DL123"
        assert tracking.estimated_delivery is not None
        notification = OrderNotification.query.filter_by(order_id=order.id).one()
        assert notification.notification_type == "email"

    def test_illegal_status(self, client, make_order, admin_headers):
        order = make_order(status="pending")
        response = client.put(f"/api/orders/admin/{order.id}/status", headers=admin_headers, json={"status": "delivered"})
        assert response.status_code == 400

    def test_patch_status(self, client, make_order, admin_headers):
        order = make_order(status="confirmed", paid=True)
        response = client.patch(f"/api/orders/{order.id}/status", headers=admin_headers, json={"status": "shipped"})
        assert response.status_code == 200
        assert response.get_json()["order"]["status"] == "shipped"

    def test_admin_cannot_confirm_unpaid_order(self, client, make_order, admin_headers):
        order = make_order(status="pending")

        put = client.put(f"/api/orders/admin/{order.id}/status", headers=admin_headers, json={"status": "confirmed"})
        patch = client.patch(f"/api/orders/{order.id}/status", headers=admin_headers, json={"status": "confirmed"})

        assert put.status_code == 400
        assert patch.status_code == 400
        order = db.session.get(Order, order.id)
        assert order.status == "pending"
        assert order.payment_status == "pending"

    @pytest.mark.parametrize("status", ["shipped", "delivered"])
    def test_admin_cannot_cancel_after_dispatch(self, client, make_order, admin_headers, status):
        order = make_order(status=status, paid=True)

        put = client.put(f"/api/orders/admin/{order.id}/status", headers=admin_headers, json={"status": "cancelled"})
        patch = client.patch(f"/api/orders/{order.id}/status", headers=admin_headers, json={"status": "cancelled"})

        assert put.status_code == 400
        assert patch.status_code == 400
        assert db.session.get(Order, order.id).status == status

    def test_admin_can_cancel_before_dispatch(self, client, make_order, admin_headers):
        order = make_order(status="pending")
        response = client.put(f"/api/orders/admin/{order.id}/status", headers=admin_headers, json={"status": "cancelled"})
        assert response.status_code == 200
        assert db.session.get(Order, order.id).status == "cancelled"

    def test_analytics(self, client, paid_order, make_order, admin_headers):
        make_order(status="pending")
        data = client.get("/api/orders/admin/analytics", headers=admin_headers).get_json()["data"]

        assert data["statistics"]["total_orders"] == 2
        assert data["statistics"]["paid_orders"] == 1
        assert data["statistics"]["total_revenue"] == 365.0
        assert data["statusDistribution"] == {"confirmed": 1, "pending": 1}
