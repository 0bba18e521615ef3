from core.extensions import db
from core.imports import datetime


def _iso(value):
    return value.isoformat() if value else None


class ShippingMethod(db.Model):
    __tablename__ = "shipping_methods"

    id = db.Column(db.String(50), primary_key=True)  # 'standard', 'express'
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(255), default="")
    base_rate = db.Column(db.Float, default=0.0, nullable=False)
    weight_rate = db.Column(db.Float, default=0.0, nullable=False)  # per kg
    estimated_days = db.Column(db.Integer, default=5)
    is_active = db.Column(db.Boolean, default=True)
    sort_order = db.Column(db.Integer, default=0)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "base_rate": self.base_rate,
            "weight_rate": self.weight_rate,
            "estimated_days": self.estimated_days,
            "is_active": self.is_active,
            "sort_order": self.sort_order,
        }


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    order_number = db.Column(db.String(40), unique=True, nullable=False)
    status = db.Column(db.String(20), default="pending", nullable=False)  # see services.statuses.OrderStatus
    payment_status = db.Column(db.String(20), default="pending", nullable=False)

    subtotal = db.Column(db.Float, nullable=False, default=0.0)
    tax_amount = db.Column(db.Float, nullable=False, default=0.0)
    shipping_amount = db.Column(db.Float, nullable=False, default=0.0)
    total_amount = db.Column(db.Float, nullable=False, default=0.0)

    payment_method = db.Column(db.String(50))
    razorpay_order_id = db.Column(db.String(100), index=True)
    razorpay_payment_id = db.Column(db.String(100))
    shipping_method = db.Column(db.String(50), db.ForeignKey("shipping_methods.id"), nullable=True)

    # snapshots taken at checkout, not live references
    shipping_address = db.Column(db.JSON)
    billing_address = db.Column(db.JSON)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order_items = db.relationship("OrderItem", backref="order", cascade="all, delete-orphan")
    user = db.relationship("Users", backref="orders")

    def to_dict(self, with_items=False):
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "order_number": self.order_number,
            "status": self.status,
            "payment_status": self.payment_status,
            "subtotal": self.subtotal,
            "tax_amount": self.tax_amount,
            "shipping_amount": self.shipping_amount,
            "total_amount": self.total_amount,
            "payment_method": self.payment_method,
            "razorpay_order_id": self.razorpay_order_id,
            "razorpay_payment_id": self.razorpay_payment_id,
            "shipping_method": self.shipping_method,
            "shipping_address": self.shipping_address,
            "billing_address": self.billing_address,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if with_items:
            data["order_items"] = [item.to_dict() for item in self.order_items]
        return data


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    product_name = db.Column(db.String(200), nullable=False, default="")  # snapshot of product name
    product_sku = db.Column(db.String(64), nullable=False, default="")
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)
    total_price = db.Column(db.Float, nullable=False)
    attributes = db.Column(db.JSON)

    def to_dict(self):
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total_price": self.total_price,
            "attributes": self.attributes,
        }


class OrderReturn(db.Model):
    __tablename__ = "order_returns"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    return_reason = db.Column(db.String(255), nullable=False)
    return_description = db.Column(db.Text)
    return_status = db.Column(db.String(20), default="pending", nullable=False)
    refund_amount = db.Column(db.Float)
    refund_method = db.Column(db.String(50))
    return_tracking_number = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = db.relationship("Order", backref=db.backref("order_return", uselist=False))

    def to_dict(self):
        return {
            "id": self.id,
            "orderId": self.order_id,
            "returnReason": self.return_reason,
            "returnDescription": self.return_description,
            "returnStatus": self.return_status,
            "refundAmount": self.refund_amount,
            "refundMethod": self.refund_method,
            "returnTrackingNumber": self.return_tracking_number,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class OrderTracking(db.Model):
    __tablename__ = "order_tracking"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), unique=True, nullable=False)
    tracking_number = db.Column(db.String(100))
    courier_name = db.Column(db.String(100))
    courier_url = db.Column(db.String(255))
    status = db.Column(db.String(50), default="pending")
    location = db.Column(db.String(150))
    estimated_delivery = db.Column(db.DateTime)
    actual_delivery_date = db.Column(db.DateTime)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class OrderStatusHistory(db.Model):
    __tablename__ = "order_status_history"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    status = db.Column(db.String(50), nullable=False)
    description = db.Column(db.String(255))
    location = db.Column(db.String(150))
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)
    created_by = db.Column(db.String(50), default="system")  # 'system', 'admin', 'customer', 'courier'

    def to_dict(self):
        return {
            "status": self.status,
            "description": self.description,
            "location": self.location,
            "timestamp": _iso(self.timestamp),
            "createdBy": self.created_by,
        }


class PaymentTransaction(db.Model):
    __tablename__ = "payment_transactions"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    razorpay_order_id = db.Column(db.String(100))
    razorpay_payment_id = db.Column(db.String(100))
    amount = db.Column(db.Float, nullable=False)  # negative for refunds
    currency = db.Column(db.String(3), default="INR")
    status = db.Column(db.String(20), nullable=False)  # 'success', 'refunded'
    payment_method = db.Column(db.String(50), default="razorpay")
    gateway_response = db.Column(db.JSON, default=dict)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "order_id": self.order_id,
            "razorpay_order_id": self.razorpay_order_id,
            "razorpay_payment_id": self.razorpay_payment_id,
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status,
            "payment_method": self.payment_method,
            "created_at": _iso(self.created_at),
        }


class OrderNotification(db.Model):
    __tablename__ = "order_notifications"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    notification_type = db.Column(db.String(10), nullable=False)  # 'email', 'sms', 'push'
    notification_data = db.Column(db.JSON, default=dict)
    is_sent = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
