from core.imports import Blueprint, jsonify, request, datetime, timedelta, func, or_
from core.extensions import db, limiter, config_limit
from core.auth import current_user_id, user_required, admin_required
from core.logger import get_logger
from models.orderModels import Order, OrderItem, ShippingMethod
from models.productModels import Products
from routes.cart import add_cart_item, get_cart_session_id
from services.errors import CheckoutError, ReturnRequestError
from services.registry import get_services
from services.statuses import OrderStatus, PaymentStatus, is_cancellable

orders_bp = Blueprint('orders', __name__)
limiter.limit(config_limit("RATELIMIT_CHECKOUT"))(orders_bp)
logger = get_logger(__name__)

REQUIRED_ADDRESS_FIELDS = ['first_name', 'last_name', 'address_line_1', 'city', 'state', 'postal_code', 'country', 'phone']

# client-correctable checkout failures; anything else is a server fault
CHECKOUT_CLIENT_ERRORS = {
    'PRODUCT_NOT_FOUND',
    'PRODUCT_UNAVAILABLE',
    'INSUFFICIENT_STOCK',
    'PRICE_MISMATCH',
    'INVALID_SHIPPING_METHOD',
}


def _invalid(message):
    return jsonify({"error": message, "code": "INVALID_REQUEST"}), 400


def _page_args(default_limit):
    page = max(request.args.get('page', 1, type=int), 1)
    limit = min(max(request.args.get('limit', default_limit, type=int), 1), 100)
    return page, limit


def _pagination(page, limit, total):
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": (total + limit - 1) // limit,
    }


def _user_order(order_id, user_id):
    return Order.query.filter_by(id=order_id, user_id=user_id).first()


def _is_amount(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


def _validate_items(items, with_prices=True):
    if not items or not isinstance(items, list):
        return False
    for item in items:
        if not isinstance(item, dict) or not str(item.get('product_id', '')).isdigit():
            return False
        quantity = item.get('quantity')
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            return False
        if with_prices:
            if not all(_is_amount(item.get(key)) for key in ('unit_price', 'total_price')):
                return False
        elif not _is_amount(item.get('price', 0)):
            return False
    return True


def seed_shipping_methods():
    methods = [
        {"id": "standard", "name": "Standard Shipping", "description": "Delivered in 5-7 business days",
         "base_rate": 50.0, "weight_rate": 20.0, "estimated_days": 5, "sort_order": 0},
        {"id": "express", "name": "Express Shipping", "description": "Delivered in 1-2 business days",
         "base_rate": 150.0, "weight_rate": 40.0, "estimated_days": 2, "sort_order": 1},
    ]
    created = []
    for data in methods:
        if db.session.get(ShippingMethod, data["id"]):
            continue
        db.session.add(ShippingMethod(**data))
        created.append(data["id"])
    db.session.commit()
    if created:
        print(f"✅ Shipping methods created: {', '.join(created)}")
    else:
        print("ℹ️ Shipping methods already exist.")


@orders_bp.route('/api/orders', methods=['GET'])
@user_required
def list_orders():
    """
    List the caller's orders
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - name: page
        in: query
        type: integer
        default: 1
      - name: limit
        in: query
        type: integer
        default: 10
    responses:
      200:
        description: Paginated orders, newest first
      401:
        description: User not authenticated
    """
    user_id = current_user_id()
    page, limit = _page_args(10)

    query = Order.query.filter_by(user_id=user_id)
    total = query.count()
    orders = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return jsonify({
        "orders": [o.to_dict() for o in orders],
        "pagination": _pagination(page, limit, total),
    }), 200


@orders_bp.route('/api/orders/<int:order_id>', methods=['GET'])
@user_required
def get_order(order_id):
    order = _user_order(order_id, current_user_id())
    if not order:
        return jsonify({"error": "Order not found", "code": "ORDER_NOT_FOUND"}), 404
    return jsonify({"order": order.to_dict(with_items=True)}), 200


@orders_bp.route('/api/orders', methods=['POST'])
@user_required
def create_order():
    """
    Create an order directly from priced items
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - items
            - shippingAddress
          properties:
            items:
              type: array
              items:
                type: object
                properties:
                  product_id: { type: integer, example: 5 }
                  quantity: { type: integer, example: 2 }
                  price: { type: number, example: 499.0 }
            shippingAddress:
              type: object
            billingAddress:
              type: object
            paymentMethod:
              type: string
              example: cod
    responses:
      201:
        description: Order created
      400:
        description: Invalid request
    """
    data = request.get_json(silent=True) or {}
    items = data.get('items')
    shipping_address = data.get('shippingAddress')

    if not _validate_items(items, with_prices=False):
        return _invalid("Order items are required")
    if not shipping_address:
        return _invalid("Shipping address is required")

    subtotal = round(sum(float(i.get('price', 0)) * i['quantity'] for i in items), 2)
    tax_amount = round(subtotal * 0.18, 2)
    shipping_amount = 0

    order = Order(
        user_id=current_user_id(),
        order_number=get_services().checkout.generate_order_number(),
        status=OrderStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
        subtotal=subtotal,
        tax_amount=tax_amount,
        shipping_amount=shipping_amount,
        total_amount=round(subtotal + tax_amount + shipping_amount, 2),
        payment_method=data.get('paymentMethod'),
        shipping_address=shipping_address,
        billing_address=data.get('billingAddress'),
    )
    for item in items:
        product = db.session.get(Products, int(item['product_id']))
        order.order_items.append(OrderItem(
            product_id=product.id if product else None,
            product_name=product.name if product else item.get('name', ''),
            product_sku=product.sku if product else '',
            quantity=item['quantity'],
            unit_price=float(item.get('price', 0)),
            total_price=round(float(item.get('price', 0)) * item['quantity'], 2),
        ))
    db.session.add(order)
    db.session.commit()

    return jsonify({
        "message": "Order created successfully",
        "order": order.to_dict(with_items=True),
    }), 201


@orders_bp.route('/api/orders/<int:order_id>/status', methods=['PATCH'])
@admin_required
def patch_order_status(order_id):
    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if not status:
        return _invalid("Status is required")

    order = db.session.get(Order, order_id)
    if not order:
        return jsonify({"error": "Order not found", "code": "ORDER_NOT_FOUND"}), 404

    tracking = get_services().tracking
    if not tracking.update_order_status(order_id, status, data.get('description'), data.get('location'), 'admin'):
        return _invalid(f"Cannot change order status from {order.status} to {status}")

    return jsonify({
        "message": "Order status updated successfully",
        "order": order.to_dict(),
    }), 200


@orders_bp.route('/api/orders/checkout/init', methods=['POST'])
def init_checkout():
    """
    Initialize checkout
    ---
    tags:
      - Checkout
    description: >
      Validates the cart against live stock and prices, prices shipping and
      18% tax, opens a Razorpay order and stores a pending order. Guests may
      check out without a token.
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - items
            - shipping_address
            - shipping_method_id
            - payment_method
          properties:
            items:
              type: array
              items:
                type: object
                properties:
                  product_id: { type: integer, example: 1 }
                  quantity: { type: integer, example: 2 }
                  unit_price: { type: number, example: 125.0 }
                  total_price: { type: number, example: 250.0 }
            shipping_address:
              type: object
              properties:
                first_name: { type: string }
                last_name: { type: string }
                address_line_1: { type: string }
                city: { type: string }
                state: { type: string }
                postal_code: { type: string }
                country: { type: string }
                phone: { type: string }
            billing_address:
              type: object
            shipping_method_id:
              type: string
              example: standard
            payment_method:
              type: string
              example: razorpay
    responses:
      200:
        description: Checkout initialized
        schema:
          type: object
          properties:
            success: { type: boolean }
            message: { type: string }
            data:
              type: object
              properties:
                order_id: { type: integer }
                order_number: { type: string }
                razorpay_order_id: { type: string }
                subtotal: { type: number, example: 250.0 }
                tax_amount: { type: number, example: 45.0 }
                shipping_amount: { type: number }
                total_amount: { type: number }
      400:
        description: >
          Invalid request, or PRODUCT_NOT_FOUND, PRODUCT_UNAVAILABLE,
          INSUFFICIENT_STOCK, PRICE_MISMATCH, INVALID_SHIPPING_METHOD
      500:
        description: CHECKOUT_ERROR or DATABASE_ERROR
    """
    data = request.get_json(silent=True) or {}
    items = data.get('items')
    shipping_address = data.get('shipping_address')

    if not _validate_items(items):
        return _invalid("Cart items are required")
    if not shipping_address or not isinstance(shipping_address, dict):
        return _invalid("Shipping address is required")
    if not data.get('shipping_method_id'):
        return _invalid("Shipping method is required")
    if not data.get('payment_method'):
        return _invalid("Payment method is required")

    for field in REQUIRED_ADDRESS_FIELDS:
        if not shipping_address.get(field):
            return _invalid(f"{field.replace('_', ' ')} is required")

    try:
        result = get_services().checkout.initialize_checkout({
            "items": items,
            "shipping_address": shipping_address,
            "billing_address": data.get('billing_address'),
            "shipping_method_id": data['shipping_method_id'],
            "payment_method": data['payment_method'],
            "user_id": current_user_id(),
        })
    except CheckoutError as e:
        status = 400 if e.code in CHECKOUT_CLIENT_ERRORS else 500
        logger.warning("checkout_failed", code=e.code, error=e.message)
        return jsonify({"error": e.message, "code": e.code}), status

    return jsonify({
        "success": True,
        "message": "Checkout initialized successfully",
        "data": result,
    }), 200


@orders_bp.route('/api/orders/shipping/methods', methods=['GET'])
def shipping_methods():
    return jsonify({
        "success": True,
        "data": get_services().checkout.get_shipping_methods(),
    }), 200


@orders_bp.route('/api/orders/shipping/calculate', methods=['POST'])
def calculate_shipping():
    data = request.get_json(silent=True) or {}
    items = data.get('items')
    if not _validate_items(items, with_prices=False):
        return jsonify({"error": "Items are required"}), 400
    if not data.get('shipping_method_id'):
        return jsonify({"error": "Shipping method is required"}), 400

    try:
        cost = get_services().checkout.calculate_shipping_cost(items, data['shipping_method_id'])
    except CheckoutError as e:
        return jsonify({"error": "Failed to calculate shipping cost", "message": e.message, "code": e.code}), 400

    return jsonify({"success": True, "data": {"shipping_cost": cost}}), 200


@orders_bp.route('/api/orders/payment/verify', methods=['POST'])
def verify_payment():
    """
    Verify a Razorpay payment
    ---
    tags:
      - Checkout
    description: >
      Checks the HMAC signature, that the Razorpay order belongs to the
      order, that the order still awaits payment and that the payment was
      captured. On success the order is confirmed and stock is drawn down.
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - razorpay_order_id
            - razorpay_payment_id
            - razorpay_signature
            - order_id
          properties:
            razorpay_order_id: { type: string, example: order_9A33XWu170gUtm }
            razorpay_payment_id: { type: string, example: pay_29QQoUBi66xm2f }
            razorpay_signature: { type: string }
            order_id: { type: integer, example: 1 }
    responses:
      200:
        description: Payment verified, order confirmed
      400:
        description: Verification failed
    """
    data = request.get_json(silent=True) or {}
    required = ('razorpay_order_id', 'razorpay_payment_id', 'razorpay_signature', 'order_id')
    if not all(data.get(k) for k in required):
        return jsonify({"error": "All payment verification parameters are required"}), 400

    try:
        order_id = int(data['order_id'])
    except (TypeError, ValueError):
        return jsonify({"error": "Invalid order id"}), 400

    result = get_services().payments.process_payment_verification(
        data['razorpay_order_id'],
        data['razorpay_payment_id'],
        data['razorpay_signature'],
        order_id,
    )
    if not result["success"]:
        return jsonify({"success": False, "error": result["message"], "reason": result["reason"]}), 400

    return jsonify({
        "success": True,
        "message": result["message"],
        "data": result["order"].to_dict(),
    }), 200


@orders_bp.route('/api/orders/payment/refund', methods=['POST'])
@user_required
def refund_payment():
    """
    Refund a paid order
    ---
    tags:
      - Checkout
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - order_id
          properties:
            order_id: { type: integer }
            amount: { type: number, description: Defaults to the order total }
            reason: { type: string }
    responses:
      200:
        description: Refund processed
      400:
        description: Refund failed
      404:
        description: Order not found
    """
    data = request.get_json(silent=True) or {}
    order_id = data.get('order_id')
    if not order_id:
        return jsonify({"error": "Order ID is required"}), 400

    order = _user_order(order_id, current_user_id())
    if not order:
        return jsonify({"error": "Order not found"}), 404

    amount = data.get('amount')
    if amount is not None and (not isinstance(amount, (int, float)) or amount <= 0):
        return jsonify({"error": "Invalid refund amount"}), 400

    result = get_services().payments.process_refund(order.id, amount, data.get('reason'))
    if not result["success"]:
        return jsonify({"success": False, "error": result["message"]}), 400

    return jsonify({
        "success": True,
        "message": result["message"],
        "data": {"refund_id": result["refund_id"]},
    }), 200


@orders_bp.route('/api/orders/payment/methods', methods=['GET'])
def payment_methods():
    return jsonify({
        "success": True,
        "data": get_services().payments.get_payment_methods(),
    }), 200


@orders_bp.route('/api/orders/<int:order_id>/tracking', methods=['GET'])
@user_required
def order_tracking(order_id):
    if not _user_order(order_id, current_user_id()):
        return jsonify({"error": "Order not found"}), 404

    tracking = get_services().tracking.get_order_tracking(order_id)
    if not tracking:
        return jsonify({"error": "Tracking information not found"}), 404

    return jsonify({"success": True, "data": tracking}), 200


@orders_bp.route('/api/orders/<int:order_id>/cancel', methods=['POST'])
@user_required
def cancel_order(order_id):
    """
    Cancel an order
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    description: Only pending or confirmed orders can be cancelled.
    parameters:
      - name: order_id
        in: path
        type: integer
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            reason: { type: string, example: Ordered by mistake }
    responses:
      200:
        description: Order cancelled
      400:
        description: Order cannot be cancelled at this stage
      404:
        description: Order not found
    """
    data = request.get_json(silent=True) or {}
    order = _user_order(order_id, current_user_id())
    if not order:
        return jsonify({"error": "Order not found"}), 404

    if not is_cancellable(order.status):
        return jsonify({"error": "Order cannot be cancelled at this stage"}), 400

    ok = get_services().tracking.update_order_status(
        order.id,
        OrderStatus.CANCELLED.value,
        data.get('reason') or "Cancelled by customer",
        None,
        'customer',
    )
    if not ok:
        return jsonify({"error": "Failed to cancel order"}), 500

    return jsonify({"success": True, "message": "Order cancelled successfully"}), 200


@orders_bp.route('/api/orders/<int:order_id>/return', methods=['POST'])
@user_required
def request_return(order_id):
    """
    Request a return
    ---
    tags:
      - Returns
    security:
      - Bearer: []
    description: >
      Shipped or delivered orders can be returned once. The refund amount
      defaults to the order total.
    parameters:
      - name: order_id
        in: path
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - returnReason
          properties:
            returnReason: { type: string, example: Item damaged }
            returnDescription: { type: string }
            refundAmount: { type: number }
            refundMethod: { type: string, example: original_payment_method }
    responses:
      200:
        description: Return request created
      400:
        description: Not eligible, already requested, or missing reason
      404:
        description: Order not found
    """
    data = request.get_json(silent=True) or {}
    if not data.get('returnReason'):
        return jsonify({"error": "Return reason is required"}), 400

    if not _user_order(order_id, current_user_id()):
        return jsonify({"error": "Order not found"}), 404

    try:
        return_request = get_services().returns.create_return_request(
            order_id,
            data['returnReason'],
            data.get('returnDescription'),
            data.get('refundAmount'),
            data.get('refundMethod'),
        )
    except ReturnRequestError as e:
        return jsonify({"error": str(e)}), 400

    if return_request is None:
        return jsonify({"error": "Failed to create return request"}), 500

    return jsonify({
        "success": True,
        "message": "Return request created successfully",
        "data": return_request,
    }), 200


@orders_bp.route('/api/orders/<int:order_id>/return', methods=['GET'])
@user_required
def get_return(order_id):
    if not _user_order(order_id, current_user_id()):
        return jsonify({"error": "Order not found"}), 404

    return_request = get_services().returns.get_order_return(order_id)
    if not return_request:
        return jsonify({"error": "Return request not found"}), 404

    return jsonify({"success": True, "data": return_request}), 200


@orders_bp.route('/api/orders/returns/list', methods=['GET'])
@user_required
def list_returns():
    return jsonify({
        "success": True,
        "data": get_services().returns.get_user_returns(current_user_id()),
    }), 200


@orders_bp.route('/api/orders/returns/reasons', methods=['GET'])
def return_reasons():
    return jsonify({"success": True, "data": get_services().returns.get_return_reasons()}), 200


@orders_bp.route('/api/orders/returns/refund-methods', methods=['GET'])
def refund_methods():
    return jsonify({"success": True, "data": get_services().returns.get_refund_methods()}), 200


@orders_bp.route('/api/orders/<int:order_id>/reorder', methods=['POST'])
@user_required
def reorder(order_id):
    """Put the still-available items of a past order back into the cart."""
    user_id = current_user_id()
    order = _user_order(order_id, user_id)
    if not order or not order.order_items:
        return jsonify({"error": "Order items not found"}), 404

    added, skipped = [], []
    session_id = get_cart_session_id()
    for item in order.order_items:
        product = db.session.get(Products, item.product_id) if item.product_id else None
        if not product or not product.is_active or product.stock_quantity < item.quantity:
            skipped.append({"product_id": item.product_id, "product_name": item.product_name})
            continue
        add_cart_item(user_id, session_id, product.id, item.quantity)
        added.append({"product_id": product.id, "quantity": item.quantity})
    db.session.commit()

    return jsonify({
        "success": True,
        "message": "Items added to cart for reorder",
        "data": {
            "items": added,
            "skipped": skipped,
            "totalItems": len(added),
        },
    }), 200


@orders_bp.route('/api/orders/<int:order_id>/invoice', methods=['GET'])
@user_required
def invoice(order_id):
    order = _user_order(order_id, current_user_id())
    if not order:
        return jsonify({"error": "Order not found"}), 404

    # TODO: render a PDF at invoiceUrl; the JSON payload is all clients get today
    return jsonify({
        "success": True,
        "message": "Invoice data retrieved",
        "data": {
            "order": order.to_dict(with_items=True),
            "invoiceUrl": f"/api/orders/{order.id}/invoice/pdf",
        },
    }), 200


# =========================
# Admin
# =========================
@orders_bp.route('/api/orders/admin/all', methods=['GET'])
@admin_required
def admin_list_orders():
    """
    Admin: list all orders
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - name: status
        in: query
        type: string
      - name: search
        in: query
        type: string
        description: Matches order number or user id
      - name: page
        in: query
        type: integer
      - name: limit
        in: query
        type: integer
    responses:
      200:
        description: Paginated orders with items
      403:
        description: Forbidden
    """
    page, limit = _page_args(20)
    query = Order.query

    status = request.args.get('status')
    if status:
        query = query.filter(Order.status == status)

    search = request.args.get('search')
    if search:
        conditions = [Order.order_number.ilike(f"%{search}%")]
        if search.isdigit():
            conditions.append(Order.user_id == int(search))
        query = query.filter(or_(*conditions))

    total = query.count()
    orders = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return jsonify({
        "success": True,
        "data": [o.to_dict(with_items=True) for o in orders],
        "pagination": _pagination(page, limit, total),
    }), 200


@orders_bp.route('/api/orders/admin/<int:order_id>/status', methods=['PUT'])
@admin_required
def admin_update_status(order_id):
    """
    Admin: move an order along its lifecycle
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - name: order_id
        in: path
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - status
          properties:
            status: { type: string, example: shipped }
            description: { type: string }
            location: { type: string }
            trackingNumber: { type: string }
            courierName: { type: string, example: delhivery }
    responses:
      200:
        description: Status updated
      400:
        description: Missing or illegal status
      404:
        description: Order not found
    """
    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if not status:
        return jsonify({"error": "Status is required"}), 400

    order = db.session.get(Order, order_id)
    if not order:
        return jsonify({"error": "Order not found"}), 404

    services = get_services()
    if not services.tracking.update_order_status(order_id, status, data.get('description'), data.get('location'), 'admin'):
        return jsonify({"error": f"Cannot change order status from {order.status} to {status}"}), 400

    if data.get('trackingNumber') and data.get('courierName'):
        services.tracking.create_order_tracking(
            order_id,
            data['trackingNumber'],
            data['courierName'],
            None,
            datetime.utcnow() + timedelta(days=7),
        )

    if order.user_id:
        services.tracking.send_order_notification(order.id, order.user_id, "email", {
            "subject": f"Order {order.order_number} is {order.status}",
            "message": data.get('description') or f"Your order {order.order_number} is now {order.status}.",
            "status": order.status,
        })

    return jsonify({"success": True, "message": "Order status updated successfully"}), 200


@orders_bp.route('/api/orders/admin/analytics', methods=['GET'])
@admin_required
def admin_analytics():
    query = db.session.query(Order)

    try:
        if request.args.get('startDate'):
            query = query.filter(Order.created_at >= datetime.fromisoformat(request.args['startDate']))
        if request.args.get('endDate'):
            query = query.filter(Order.created_at <= datetime.fromisoformat(request.args['endDate']))
    except ValueError:
        return jsonify({"error": "Dates must be ISO formatted"}), 400

    total_orders = query.count()
    paid = query.filter(Order.payment_status == PaymentStatus.PAID.value)
    revenue = paid.with_entities(func.coalesce(func.sum(Order.total_amount), 0)).scalar()
    paid_count = paid.count()

    status_counts = dict(
        query.with_entities(Order.status, func.count(Order.id)).group_by(Order.status).all()
    )

    return jsonify({
        "success": True,
        "data": {
            "statistics": {
                "total_orders": total_orders,
                "paid_orders": paid_count,
                "total_revenue": round(float(revenue or 0), 2),
                "average_order_value": round(float(revenue or 0) / paid_count, 2) if paid_count else 0,
            },
            "statusDistribution": status_counts,
        },
    }), 200
