from core.imports import Blueprint, jsonify, request, jwt_required, get_jwt_identity, datetime, timedelta, func, or_
from core.extensions import db
from core.logger import get_logger
from models.orderModels import Order, OrderItem
from models.productModels import Products
from models.reviewModels import Review, ReviewReport, ReviewVote
from services.statuses import OrderStatus

reviews_bp = Blueprint('reviews', __name__)
logger = get_logger(__name__)

PURCHASED_STATUSES = (OrderStatus.CONFIRMED.value, OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value)
VOTE_TYPES = ('helpful', 'unhelpful')
EDIT_WINDOW = timedelta(days=30)


def has_purchased(user_id, product_id):
    return db.session.query(
        Order.query
        .join(OrderItem, OrderItem.order_id == Order.id)
        .filter(
            Order.user_id == user_id,
            OrderItem.product_id == product_id,
            Order.status.in_(PURCHASED_STATUSES),
        )
        .exists()
    ).scalar()


def review_stats(product_id):
    """Rating summary over approved reviews of a product."""
    approved = Review.query.filter_by(product_id=product_id, is_approved=True)
    rows = (
        approved.with_entities(Review.rating, func.count(Review.id))
        .group_by(Review.rating)
        .all()
    )
    distribution = {str(star): 0 for star in range(1, 6)}
    for rating, count in rows:
        distribution[str(rating)] = count

    total = sum(distribution.values())
    average = sum(int(star) * count for star, count in distribution.items()) / total if total else 0

    return {
        "totalReviews": total,
        "averageRating": round(average, 2),
        "ratingDistribution": distribution,
        "verifiedReviews": approved.filter(Review.is_verified_purchase.is_(True)).count(),
        "recentReviews": approved.filter(Review.created_at >= datetime.utcnow() - EDIT_WINDOW).count(),
    }


def _validate_review_fields(rating, title, review_text):
    if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
        return "Rating must be between 1 and 5"
    if not 3 <= len(title) <= 255:
        return "Title must be between 3 and 255 characters"
    if not 10 <= len(review_text) <= 2000:
        return "Review text must be between 10 and 2000 characters"
    return None


@reviews_bp.route('/api/reviews/products/<int:product_id>/reviews', methods=['GET'])
def product_reviews(product_id):
    """
    Approved reviews of a product
    ---
    tags:
      - Reviews
    parameters:
      - name: product_id
        in: path
        type: integer
        required: true
      - name: rating
        in: query
        type: integer
      - name: search
        in: query
        type: string
      - name: sortBy
        in: query
        type: string
        enum: [helpful, date, rating]
      - name: sortOrder
        in: query
        type: string
        enum: [asc, desc]
      - name: page
        in: query
        type: integer
      - name: limit
        in: query
        type: integer
    responses:
      200:
        description: Reviews with rating distribution and paging flags
    """
    page = max(request.args.get('page', 1, type=int), 1)
    limit = min(max(request.args.get('limit', 10, type=int), 1), 100)

    query = Review.query.filter_by(product_id=product_id, is_approved=True)
    rating = request.args.get('rating', type=int)
    if rating:
        query = query.filter(Review.rating == rating)
    search = request.args.get('search')
    if search:
        query = query.filter(or_(Review.title.ilike(f"%{search}%"), Review.review_text.ilike(f"%{search}%")))

    column = {
        'helpful': Review.helpful_count,
        'date': Review.created_at,
        'rating': Review.rating,
    }.get(request.args.get('sortBy', 'helpful'), Review.created_at)
    direction = column.asc() if request.args.get('sortOrder') == 'asc' else column.desc()

    total = query.count()
    reviews = query.order_by(direction, Review.id.desc()).offset((page - 1) * limit).limit(limit).all()
    stats = review_stats(product_id)

    return jsonify({
        "reviews": [r.to_dict() for r in reviews],
        "totalCount": total,
        "averageRating": stats["averageRating"],
        "ratingDistribution": stats["ratingDistribution"],
        "hasNextPage": page * limit < total,
        "hasPreviousPage": page > 1,
    }), 200


@reviews_bp.route('/api/reviews', methods=['POST'])
@jwt_required()
def create_review():
    """
    Write a review
    ---
    tags:
      - Reviews
    security:
      - Bearer: []
    description: Only customers who bought the product may review it, once. Reviews wait for admin approval.
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - productId
            - rating
            - title
            - reviewText
          properties:
            productId: { type: integer }
            rating: { type: integer, minimum: 1, maximum: 5 }
            title: { type: string }
            reviewText: { type: string }
            imageUrls:
              type: array
              items:
                type: string
    responses:
      201:
        description: Review created, pending approval
      400:
        description: Validation failed
      403:
        description: Product not purchased or already reviewed
    """
    user_id = int(get_jwt_identity())
    data = request.get_json(silent=True) or {}
    product_id = data.get('productId')
    rating = data.get('rating')
    title = (data.get('title') or '').strip()
    review_text = (data.get('reviewText') or '').strip()

    if not product_id or rating is None or not title or not review_text:
        return jsonify({"error": "Missing required fields"}), 400

    error = _validate_review_fields(rating, title, review_text)
    if error:
        return jsonify({"error": error}), 400

    if not db.session.get(Products, product_id):
        return jsonify({"error": "Product not found"}), 404

    purchased = has_purchased(user_id, product_id)
    already_reviewed = Review.query.filter_by(user_id=user_id, product_id=product_id).first() is not None
    if not purchased or already_reviewed:
        return jsonify({
            "error": "You cannot review this product. You must purchase it first and not have already reviewed it."
        }), 403

    image_urls = data.get('imageUrls') if isinstance(data.get('imageUrls'), list) else []
    review = Review(
        product_id=product_id,
        user_id=user_id,
        rating=rating,
        title=title,
        review_text=review_text,
        images=image_urls,
        is_verified_purchase=purchased,
        is_approved=False,
    )
    db.session.add(review)
    db.session.commit()

    return jsonify(review.to_dict()), 201


@reviews_bp.route('/api/reviews/<int:review_id>', methods=['PUT'])
@jwt_required()
def update_review(review_id):
    review = Review.query.filter_by(id=review_id, user_id=int(get_jwt_identity())).first()
    if not review:
        return jsonify({"error": "Review not found or not authorized"}), 404

    if review.created_at < datetime.utcnow() - EDIT_WINDOW:
        return jsonify({"error": "Reviews can only be edited within 30 days"}), 403

    data = request.get_json(silent=True) or {}
    rating = data.get('rating', review.rating)
    title = (data.get('title') or review.title).strip()
    review_text = (data.get('reviewText') or review.review_text).strip()

    error = _validate_review_fields(rating, title, review_text)
    if error:
        return jsonify({"error": error}), 400

    review.rating = rating
    review.title = title
    review.review_text = review_text
    review.is_edited = True
    # edits go back through moderation
    review.is_approved = False
    db.session.commit()

    return jsonify(review.to_dict()), 200


@reviews_bp.route('/api/reviews/<int:review_id>', methods=['DELETE'])
@jwt_required()
def delete_review(review_id):
    review = Review.query.filter_by(id=review_id, user_id=int(get_jwt_identity())).first()
    if not review:
        return jsonify({"error": "Review not found or not authorized"}), 404

    db.session.delete(review)
    db.session.commit()
    return jsonify({"success": True, "message": "Review deleted successfully"}), 200


@reviews_bp.route('/api/reviews/<int:review_id>/vote', methods=['POST'])
@jwt_required()
def vote_review(review_id):
    user_id = int(get_jwt_identity())
    vote_type = (request.get_json(silent=True) or {}).get('voteType')
    if vote_type not in VOTE_TYPES:
        return jsonify({"error": "Invalid vote type"}), 400

    review = db.session.get(Review, review_id)
    if not review:
        return jsonify({"error": "Review not found"}), 404

    vote = ReviewVote.query.filter_by(review_id=review.id, user_id=user_id).first()
    if vote:
        vote.vote_type = vote_type
    else:
        db.session.add(ReviewVote(review_id=review.id, user_id=user_id, vote_type=vote_type))
    db.session.flush()

    review.helpful_count = ReviewVote.query.filter_by(review_id=review.id, vote_type='helpful').count()
    review.unhelpful_count = ReviewVote.query.filter_by(review_id=review.id, vote_type='unhelpful').count()
    db.session.commit()

    return jsonify({"success": True, "message": "Vote recorded successfully"}), 200


@reviews_bp.route('/api/reviews/<int:review_id>/report', methods=['POST'])
@jwt_required()
def report_review(review_id):
    data = request.get_json(silent=True) or {}
    if not data.get('reportReason'):
        return jsonify({"error": "Report reason is required"}), 400

    if not db.session.get(Review, review_id):
        return jsonify({"error": "Review not found"}), 404

    db.session.add(ReviewReport(
        review_id=review_id,
        reporter_id=int(get_jwt_identity()),
        report_reason=data['reportReason'],
        report_description=data.get('reportDescription'),
    ))
    db.session.commit()
    logger.info("review_reported", review_id=review_id, reason=data['reportReason'])

    return jsonify({"success": True, "message": "Report submitted successfully"}), 200


@reviews_bp.route('/api/reviews/products/<int:product_id>/can-review', methods=['GET'])
@jwt_required()
def can_review(product_id):
    user_id = int(get_jwt_identity())
    purchased = bool(has_purchased(user_id, product_id))
    reviewed = Review.query.filter_by(user_id=user_id, product_id=product_id).first() is not None
    allowed = purchased and not reviewed

    body = {
        "canReview": allowed,
        "hasPurchase": purchased,
        "hasReview": reviewed,
    }
    if not allowed:
        body["reason"] = "You must purchase this product first and not have already reviewed it."
    return jsonify(body), 200


@reviews_bp.route('/api/reviews/products/<int:product_id>/reviews/analytics', methods=['GET'])
def product_review_analytics(product_id):
    data = {"productId": product_id}
    data.update(review_stats(product_id))
    data["lastUpdated"] = datetime.utcnow().isoformat()
    return jsonify(data), 200
