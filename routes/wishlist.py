from core.imports import Blueprint, jsonify, request, jwt_required, get_jwt_identity, IntegrityError
from core.extensions import db
from models.productModels import Products
from models.wishlistModels import WishlistItem
from routes.cart import add_cart_item

wishlist_bp = Blueprint('wishlist', __name__)


def serialize_wishlist_item(item, user_id):
    product = item.product
    category = product.category
    return {
        "id": item.id,
        "userId": user_id,
        "productId": product.id,
        "product": {
            "id": product.id,
            "name": product.name,
            "slug": product.slug,
            "description": product.description,
            "shortDescription": product.short_description,
            "price": product.price,
            "salePrice": product.sale_price,
            "images": product.images or [],
            "isActive": product.is_active,
            "stockQuantity": product.stock_quantity,
            "categoryId": product.category_id,
            "category": {"id": category.id, "name": category.name, "slug": category.slug} if category else None,
        },
        "addedAt": item.added_at.isoformat() if item.added_at else None,
    }


def _product_id_from_body():
    data = request.get_json(silent=True) or {}
    return data.get('productId'), data


@wishlist_bp.route('/api/wishlist', methods=['GET'])
@jwt_required()
def get_wishlist():
    """
    Get the user's wishlist
    ---
    tags:
      - Wishlist
    security:
      - Bearer: []
    parameters:
      - name: page
        in: query
        type: integer
      - name: limit
        in: query
        type: integer
    responses:
      200:
        description: Wishlist items with product details, newest first
    """
    user_id = int(get_jwt_identity())
    page = max(request.args.get('page', 1, type=int), 1)
    limit = min(max(request.args.get('limit', 20, type=int), 1), 100)

    query = WishlistItem.query.filter_by(user_id=user_id)
    total = query.count()
    items = (
        query.order_by(WishlistItem.added_at.desc(), WishlistItem.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return jsonify({
        "items": [serialize_wishlist_item(i, user_id) for i in items],
        "totalCount": total,
    }), 200


@wishlist_bp.route('/api/wishlist/items', methods=['POST'])
@jwt_required()
def add_to_wishlist():
    user_id = int(get_jwt_identity())
    product_id, _ = _product_id_from_body()
    if not product_id:
        return jsonify({"error": "Product ID is required"}), 400

    product = Products.query.filter_by(id=product_id, is_active=True).first()
    if not product:
        return jsonify({"error": "Product not found or inactive"}), 404

    if WishlistItem.query.filter_by(user_id=user_id, product_id=product.id).first():
        return jsonify({"error": "Product already in wishlist"}), 409

    db.session.add(WishlistItem(user_id=user_id, product_id=product.id))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "Product already in wishlist"}), 409

    return jsonify({"success": True, "message": "Added to wishlist successfully"}), 200


@wishlist_bp.route('/api/wishlist/items', methods=['DELETE'])
@jwt_required()
def remove_from_wishlist():
    product_id, _ = _product_id_from_body()
    if not product_id:
        return jsonify({"error": "Product ID is required"}), 400

    WishlistItem.query.filter_by(user_id=int(get_jwt_identity()), product_id=product_id).delete()
    db.session.commit()
    return jsonify({"success": True, "message": "Removed from wishlist successfully"}), 200


@wishlist_bp.route('/api/wishlist/items/move', methods=['POST'])
@jwt_required()
def move_to_cart():
    """
    Move a wishlist item into the cart
    ---
    tags:
      - Wishlist
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - productId
          properties:
            productId: { type: integer }
            quantity: { type: integer, default: 1 }
    responses:
      200:
        description: Moved to cart
      404:
        description: Product not found in wishlist
    """
    user_id = int(get_jwt_identity())
    product_id, data = _product_id_from_body()
    if not product_id:
        return jsonify({"error": "Product ID is required"}), 400

    quantity = data.get('quantity', 1)
    if not isinstance(quantity, int) or quantity < 1:
        return jsonify({"error": "Invalid quantity"}), 400

    item = WishlistItem.query.filter_by(user_id=user_id, product_id=product_id).first()
    if not item:
        return jsonify({"error": "Product not found in wishlist"}), 404

    add_cart_item(user_id, None, item.product_id, quantity)
    db.session.delete(item)
    db.session.commit()

    return jsonify({"success": True, "message": "Moved to cart successfully"}), 200


@wishlist_bp.route('/api/wishlist/check/<int:product_id>', methods=['GET'])
@jwt_required()
def check_wishlist(product_id):
    exists = WishlistItem.query.filter_by(user_id=int(get_jwt_identity()), product_id=product_id).first() is not None
    return jsonify({"isInWishlist": exists}), 200


@wishlist_bp.route('/api/wishlist/count', methods=['GET'])
@jwt_required()
def wishlist_count():
    return jsonify({"count": WishlistItem.query.filter_by(user_id=int(get_jwt_identity())).count()}), 200


@wishlist_bp.route('/api/wishlist/clear', methods=['DELETE'])
@jwt_required()
def clear_wishlist():
    WishlistItem.query.filter_by(user_id=int(get_jwt_identity())).delete()
    db.session.commit()
    return jsonify({"success": True, "message": "Wishlist cleared successfully"}), 200
