from core.imports import Blueprint, jsonify, request, session, secrets, func
from core.extensions import db
from core.auth import current_user_id
from core.logger import get_logger
from models.cartModels import CartItem
from models.productModels import Products

cart_bp = Blueprint("cart", __name__)
logger = get_logger(__name__)

CART_TAX_RATE = 0.08
FREE_SHIPPING_THRESHOLD = 50
FLAT_SHIPPING = 5.99
MAX_LINE_QUANTITY = 99


def get_cart_session_id():
    """Guest carts are keyed by an id kept in the signed Flask session."""
    if "cart_session_id" not in session:
        session["cart_session_id"] = secrets.token_hex(16)
    return session["cart_session_id"]


def cart_query(user_id, session_id):
    if user_id:
        return CartItem.query.filter_by(user_id=user_id)
    return CartItem.query.filter_by(session_id=session_id, user_id=None)


def serialize_cart_item(item):
    product = item.product
    return {
        "id": item.id,
        "product_id": item.product_id,
        "quantity": item.quantity,
        "added_at": item.added_at.isoformat() if item.added_at else None,
        "updated_at": item.updated_at.isoformat() if item.updated_at else None,
        "product": {
            "id": product.id,
            "name": product.name,
            "slug": product.slug,
            "price": product.price,
            "sale_price": product.sale_price,
            "stock_quantity": product.stock_quantity,
            "images": product.images or [],
            "attributes": product.attributes or {},
        },
    }


def calculate_cart_totals(items):
    subtotal = sum(item.product.current_price * item.quantity for item in items)
    tax = subtotal * CART_TAX_RATE
    if subtotal == 0 or subtotal > FREE_SHIPPING_THRESHOLD:
        shipping = 0
    else:
        shipping = FLAT_SHIPPING
    return {
        "subtotal": round(subtotal, 2),
        "tax": round(tax, 2),
        "shipping": shipping,
        "total": round(subtotal + tax + shipping, 2),
        "itemCount": sum(item.quantity for item in items),
    }


def cart_response(user_id, session_id):
    items = cart_query(user_id, session_id).order_by(CartItem.added_at.desc(), CartItem.id.desc()).all()
    data = {"items": [serialize_cart_item(i) for i in items]}
    data.update(calculate_cart_totals(items))
    return data


def add_cart_item(user_id, session_id, product_id, quantity):
    """Add ``quantity`` of a product to the cart, merging with an existing line."""
    item = cart_query(user_id, session_id).filter_by(product_id=product_id).first()
    if item:
        item.quantity += quantity
    else:
        item = CartItem(
            user_id=user_id,
            session_id=None if user_id else session_id,
            product_id=product_id,
            quantity=quantity,
        )
        db.session.add(item)
    return item


def merge_guest_cart_to_user(session_id, user_id):
    guest_items = CartItem.query.filter_by(session_id=session_id, user_id=None).all()
    for guest_item in guest_items:
        add_cart_item(user_id, None, guest_item.product_id, guest_item.quantity)
        db.session.delete(guest_item)
    db.session.commit()
    return len(guest_items)


def _valid_quantity(quantity):
    return isinstance(quantity, int) and not isinstance(quantity, bool) and 1 <= quantity <= MAX_LINE_QUANTITY


@cart_bp.route('/api/cart', methods=['GET'])
def get_cart():
    """
    Get the current cart
    ---
    tags:
      - Cart
    description: >
      Returns the signed-in user's cart, or the guest cart bound to the
      session cookie. Totals include 8% tax and flat 5.99 shipping on
      orders of 50 or less.
    responses:
      200:
        description: Cart retrieved successfully
        schema:
          type: object
          properties:
            items:
              type: array
              items:
                type: object
            subtotal: { type: number, example: 59.98 }
            tax: { type: number, example: 4.8 }
            shipping: { type: number, example: 0 }
            total: { type: number, example: 64.78 }
            itemCount: { type: integer, example: 2 }
    """
    return jsonify(cart_response(current_user_id(), get_cart_session_id())), 200


@cart_bp.route('/api/cart/count', methods=['GET'])
def get_cart_count():
    user_id = current_user_id()
    session_id = get_cart_session_id()
    if user_id:
        count = db.session.query(func.sum(CartItem.quantity)).filter(CartItem.user_id == user_id).scalar()
    else:
        count = (
            db.session.query(func.sum(CartItem.quantity))
            .filter(CartItem.session_id == session_id, CartItem.user_id.is_(None))
            .scalar()
        )
    return jsonify({"count": int(count or 0)}), 200


@cart_bp.route('/api/cart/items', methods=['POST'])
def add_to_cart():
    """
    Add a product to the cart
    ---
    tags:
      - Cart
    consumes:
      - application/json
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - productId
            - quantity
          properties:
            productId:
              type: integer
              example: 10
            quantity:
              type: integer
              example: 2
    responses:
      200:
        description: Updated cart
      400:
        description: Invalid product ID or quantity, or insufficient stock
      404:
        description: Product not found
    """
    data = request.get_json(silent=True) or {}
    product_id = data.get('productId') or data.get('product_id')
    quantity = data.get('quantity')

    if not product_id or not _valid_quantity(quantity):
        return jsonify({"message": "Invalid product ID or quantity"}), 400

    product = Products.query.filter_by(id=product_id, is_active=True).first()
    if not product:
        return jsonify({"message": "Product not found"}), 404

    if product.stock_quantity < quantity:
        return jsonify({"message": "Insufficient stock"}), 400

    user_id = current_user_id()
    session_id = get_cart_session_id()
    add_cart_item(user_id, session_id, product.id, quantity)
    db.session.commit()

    return jsonify(cart_response(user_id, session_id)), 200


@cart_bp.route('/api/cart/items/<int:item_id>', methods=['PUT'])
def update_cart_item(item_id):
    """
    Update quantity of a cart item
    ---
    tags:
      - Cart
    parameters:
      - name: item_id
        in: path
        type: integer
        required: true
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            quantity:
              type: integer
              example: 3
    responses:
      200:
        description: Updated cart
      400:
        description: Invalid quantity or insufficient stock
      404:
        description: Cart item not found
    """
    data = request.get_json(silent=True) or {}
    quantity = data.get('quantity')
    if not _valid_quantity(quantity):
        return jsonify({"message": "Invalid quantity"}), 400

    user_id = current_user_id()
    session_id = get_cart_session_id()
    item = cart_query(user_id, session_id).filter_by(id=item_id).first()
    if not item:
        return jsonify({"message": "Cart item not found"}), 404

    if item.product.stock_quantity < quantity:
        return jsonify({"message": "Insufficient stock"}), 400

    item.quantity = quantity
    db.session.commit()

    return jsonify(cart_response(user_id, session_id)), 200


@cart_bp.route('/api/cart/items/<int:item_id>', methods=['DELETE'])
def remove_cart_item(item_id):
    user_id = current_user_id()
    session_id = get_cart_session_id()
    item = cart_query(user_id, session_id).filter_by(id=item_id).first()
    if not item:
        return jsonify({"message": "Cart item not found"}), 404

    db.session.delete(item)
    db.session.commit()

    return jsonify(cart_response(user_id, session_id)), 200


@cart_bp.route('/api/cart/clear', methods=['POST'])
def clear_cart():
    user_id = current_user_id()
    session_id = get_cart_session_id()
    cart_query(user_id, session_id).delete(synchronize_session=False)
    db.session.commit()
    return jsonify({"message": "Cart cleared successfully"}), 200


@cart_bp.route('/api/cart/merge', methods=['POST'])
def merge_cart():
    """
    Merge the guest cart into the signed-in user's cart
    ---
    tags:
      - Cart
    security:
      - Bearer: []
    responses:
      200:
        description: Merged cart
      401:
        description: User must be authenticated
    """
    user_id = current_user_id()
    if not user_id:
        return jsonify({"message": "User must be authenticated"}), 401

    merged = merge_guest_cart_to_user(get_cart_session_id(), user_id)
    logger.info("guest_cart_merged", user_id=user_id, lines=merged)

    return jsonify(cart_response(user_id, None)), 200
