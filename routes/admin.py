from core.imports import Blueprint, jsonify, jwt_required, request, get_jwt, func
from core.extensions import db
from core.logger import get_logger
from models.orderModels import Order, OrderReturn
from models.productModels import Products
from models.reviewModels import Review, ReviewReport
from models.userModel import Users
from services.registry import get_services
from services.statuses import PaymentStatus, ReturnStatus

admin_bp = Blueprint('admin', __name__)
logger = get_logger(__name__)

REVIEW_SORTS = {
    'created_at': Review.created_at,
    'rating': Review.rating,
    'helpful': Review.helpful_count,
}
REPORT_STATUSES = ('pending', 'reviewed', 'resolved', 'dismissed')


def _is_admin():
    return get_jwt().get("role") == "admin"


def _forbidden():
    return jsonify({"error": "Forbidden"}), 403


def serialize_admin_review(review):
    data = review.to_dict()
    data["adminNotes"] = review.admin_notes
    data["product"] = {
        "id": review.product.id,
        "name": review.product.name,
        "slug": review.product.slug,
    } if review.product else None
    data["user"] = {
        "id": review.user.id,
        "name": f"{review.user.first_name} {review.user.last_name}",
        "email": review.user.email,
    } if review.user else None
    return data


# =========================
# /api/admin/stats (GET)
# =========================
@admin_bp.route('/api/admin/stats', methods=['GET'])
@jwt_required()
def get_admin_stats():
    """
    Admin: Get store statistics
    ---
    tags:
      - Admin
    summary: Get store statistics (Admin only)
    description: Returns counts of customers, products, orders and reviews awaiting moderation, plus paid revenue.
    security:
      - Bearer: []
    responses:
      200:
        description: Store stats
        schema:
          type: object
          properties:
            users: { type: integer, example: 120 }
            products:
              type: object
              properties:
                total: { type: integer, example: 500 }
                active: { type: integer, example: 420 }
            orders:
              type: object
              properties:
                total: { type: integer, example: 80 }
                paid: { type: integer, example: 64 }
                revenue: { type: number, example: 125000.5 }
            pending_reviews: { type: integer, example: 3 }
            pending_returns: { type: integer, example: 1 }
      403:
        description: Forbidden (not admin)
    """
    if not _is_admin():
        return _forbidden()

    paid = Order.query.filter(Order.payment_status == PaymentStatus.PAID.value)
    revenue = paid.with_entities(func.coalesce(func.sum(Order.total_amount), 0)).scalar()

    return jsonify({
        "users": Users.query.filter(Users.role != "admin").count(),
        "products": {
            "total": Products.query.count(),
            "active": Products.query.filter_by(is_active=True).count(),
        },
        "orders": {
            "total": Order.query.count(),
            "paid": paid.count(),
            "revenue": round(float(revenue or 0), 2),
        },
        "pending_reviews": Review.query.filter_by(is_approved=False, rejection_reason=None).count(),
        "pending_returns": OrderReturn.query.filter_by(return_status=ReturnStatus.PENDING.value).count(),
    }), 200


# =========================
# /api/admin/reviews (GET)
# =========================
@admin_bp.route('/api/admin/reviews', methods=['GET'])
@jwt_required()
def list_reviews_for_moderation():
    """
    Admin: List reviews for moderation
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - name: status
        in: query
        type: string
        enum: [pending, approved, rejected, all]
        default: pending
      - name: sortBy
        in: query
        type: string
        enum: [created_at, rating, helpful]
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
        description: Reviews with product and author details
      403:
        description: Forbidden (not admin)
    """
    if not _is_admin():
        return _forbidden()

    page = max(request.args.get('page', 1, type=int), 1)
    limit = min(max(request.args.get('limit', 20, type=int), 1), 100)
    status = request.args.get('status', 'pending')

    query = Review.query
    if status == 'pending':
        query = query.filter(Review.is_approved.is_(False), Review.rejection_reason.is_(None))
    elif status == 'approved':
        query = query.filter(Review.is_approved.is_(True))
    elif status == 'rejected':
        query = query.filter(Review.is_approved.is_(False), Review.rejection_reason.isnot(None))

    column = REVIEW_SORTS.get(request.args.get('sortBy'), Review.created_at)
    direction = column.asc() if request.args.get('sortOrder') == 'asc' else column.desc()

    total = query.count()
    reviews = query.order_by(direction, Review.id.desc()).offset((page - 1) * limit).limit(limit).all()
    total_pages = (total + limit - 1) // limit

    return jsonify({
        "reviews": [serialize_admin_review(r) for r in reviews],
        "totalCount": total,
        "currentPage": page,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
        "hasPreviousPage": page > 1,
    }), 200


# =========================
# PUT /api/admin/reviews/<review_id>/approve
# =========================
@admin_bp.route('/api/admin/reviews/<int:review_id>/approve', methods=['PUT'])
@jwt_required()
def approve_review(review_id):
    if not _is_admin():
        return _forbidden()

    review = db.session.get(Review, review_id)
    if not review:
        return jsonify({"error": "Review not found"}), 404

    data = request.get_json(silent=True) or {}
    review.is_approved = True
    review.rejection_reason = None
    review.admin_notes = data.get('adminNotes')
    db.session.commit()
    logger.info("review_approved", review_id=review.id)

    return jsonify({
        "success": True,
        "message": "Review approved successfully",
        "review": {
            "id": review.id,
            "isApproved": review.is_approved,
            "adminNotes": review.admin_notes,
            "updatedAt": review.updated_at.isoformat() if review.updated_at else None,
        },
    }), 200


# =========================
# PUT /api/admin/reviews/<review_id>/reject
# =========================
@admin_bp.route('/api/admin/reviews/<int:review_id>/reject', methods=['PUT'])
@jwt_required()
def reject_review(review_id):
    """
    Admin: Reject a review
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    parameters:
      - name: review_id
        in: path
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - rejectionReason
          properties:
            rejectionReason: { type: string, example: Contains personal data }
            adminNotes: { type: string }
    responses:
      200:
        description: Review rejected
      400:
        description: Rejection reason is required
      404:
        description: Review not found
    """
    if not _is_admin():
        return _forbidden()

    data = request.get_json(silent=True) or {}
    if not data.get('rejectionReason'):
        return jsonify({"error": "Rejection reason is required"}), 400

    review = db.session.get(Review, review_id)
    if not review:
        return jsonify({"error": "Review not found"}), 404

    review.is_approved = False
    review.rejection_reason = data['rejectionReason']
    review.admin_notes = data.get('adminNotes')
    db.session.commit()
    logger.info("review_rejected", review_id=review.id, reason=review.rejection_reason)

    return jsonify({
        "success": True,
        "message": "Review rejected successfully",
        "review": {
            "id": review.id,
            "isApproved": review.is_approved,
            "rejectionReason": review.rejection_reason,
            "adminNotes": review.admin_notes,
            "updatedAt": review.updated_at.isoformat() if review.updated_at else None,
        },
    }), 200


# =========================
# POST /api/admin/reviews/bulk-approve
# =========================
@admin_bp.route('/api/admin/reviews/bulk-approve', methods=['POST'])
@jwt_required()
def bulk_approve_reviews():
    if not _is_admin():
        return _forbidden()

    data = request.get_json(silent=True) or {}
    review_ids = data.get('reviewIds')
    if not review_ids or not isinstance(review_ids, list):
        return jsonify({"error": "Review IDs array is required"}), 400

    reviews = Review.query.filter(Review.id.in_(review_ids)).all()
    for review in reviews:
        review.is_approved = True
        review.rejection_reason = None
        review.admin_notes = data.get('adminNotes')
    db.session.commit()

    return jsonify({
        "success": True,
        "message": f"{len(reviews)} reviews approved successfully",
        "approvedCount": len(reviews),
    }), 200


# =========================
# GET /api/admin/reviews/analytics
# =========================
@admin_bp.route('/api/admin/reviews/analytics', methods=['GET'])
@jwt_required()
def review_moderation_analytics():
    if not _is_admin():
        return _forbidden()

    total = Review.query.count()
    approved = Review.query.filter_by(is_approved=True)
    approved_count = approved.count()
    average = approved.with_entities(func.avg(Review.rating)).scalar()

    return jsonify({
        "totalReviews": total,
        "pendingReviews": total - approved_count,
        "approvedReviews": approved_count,
        "averageRating": round(float(average or 0), 2),
        "reviewRate": f"{approved_count / total * 100:.2f}" if total else "0",
    }), 200


# =========================
# GET /api/admin/reviews/reports
# =========================
@admin_bp.route('/api/admin/reviews/reports', methods=['GET'])
@jwt_required()
def list_review_reports():
    if not _is_admin():
        return _forbidden()

    page = max(request.args.get('page', 1, type=int), 1)
    limit = min(max(request.args.get('limit', 20, type=int), 1), 100)
    status = request.args.get('status', 'pending')

    query = ReviewReport.query
    if status != 'all':
        query = query.filter(ReviewReport.status == status)

    total = query.count()
    reports = (
        query.order_by(ReviewReport.created_at.desc(), ReviewReport.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    data = []
    for report in reports:
        reporter = db.session.get(Users, report.reporter_id)
        data.append({
            "id": report.id,
            "reviewId": report.review_id,
            "reporterId": report.reporter_id,
            "reportReason": report.report_reason,
            "reportDescription": report.report_description,
            "reportStatus": report.status,
            "adminNotes": report.admin_notes,
            "createdAt": report.created_at.isoformat() if report.created_at else None,
            "review": {
                "id": report.review.id,
                "title": report.review.title,
                "reviewText": report.review.review_text,
                "rating": report.review.rating,
                "isApproved": report.review.is_approved,
            },
            "reporter": {
                "id": reporter.id,
                "name": f"{reporter.first_name} {reporter.last_name}",
                "email": reporter.email,
            } if reporter else None,
        })

    return jsonify({
        "reports": data,
        "totalCount": total,
        "currentPage": page,
        "totalPages": (total + limit - 1) // limit,
    }), 200


# =========================
# PUT /api/admin/reviews/reports/<report_id>
# =========================
@admin_bp.route('/api/admin/reviews/reports/<int:report_id>', methods=['PUT'])
@jwt_required()
def update_review_report(report_id):
    if not _is_admin():
        return _forbidden()

    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if status not in REPORT_STATUSES:
        return jsonify({"error": f"Invalid status. Must be one of: {', '.join(REPORT_STATUSES)}"}), 400

    report = db.session.get(ReviewReport, report_id)
    if not report:
        return jsonify({"error": "Report not found"}), 404

    report.status = status
    report.admin_notes = data.get('adminNotes')
    db.session.commit()

    return jsonify({
        "success": True,
        "message": "Report status updated successfully",
        "report": {
            "id": report.id,
            "status": report.status,
            "adminNotes": report.admin_notes,
        },
    }), 200


# =========================
# GET /api/admin/returns
# =========================
@admin_bp.route('/api/admin/returns', methods=['GET'])
@jwt_required()
def list_returns():
    if not _is_admin():
        return _forbidden()

    query = OrderReturn.query
    status = request.args.get('status')
    if status:
        query = query.filter(OrderReturn.return_status == status)

    returns = query.order_by(OrderReturn.created_at.desc(), OrderReturn.id.desc()).all()
    data = []
    for return_request in returns:
        item = return_request.to_dict()
        item["orderNumber"] = return_request.order.order_number
        item["orderTotal"] = return_request.order.total_amount
        data.append(item)

    return jsonify({"success": True, "data": data}), 200


# =========================
# PUT /api/admin/returns/<return_id>/status
# =========================
@admin_bp.route('/api/admin/returns/<int:return_id>/status', methods=['PUT'])
@jwt_required()
def update_return_status(return_id):
    """
    Admin: Move a return along its lifecycle
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    description: >
      pending -> approved -> processed -> completed. Approving with a
      refundAmount refunds the payment and marks the return processed.
    parameters:
      - name: return_id
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
            status:
              type: string
              enum: [approved, processed, completed]
            refundAmount: { type: number, example: 295.0 }
            returnTrackingNumber: { type: string }
    responses:
      200:
        description: Return updated
      400:
        description: Missing or illegal status
      404:
        description: Return not found
    """
    if not _is_admin():
        return _forbidden()

    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if not status:
        return jsonify({"error": "Status is required"}), 400

    return_request = db.session.get(OrderReturn, return_id)
    if not return_request:
        return jsonify({"error": "Return request not found"}), 404

    refund_amount = data.get('refundAmount')
    if refund_amount is not None and (not isinstance(refund_amount, (int, float)) or refund_amount <= 0):
        return jsonify({"error": "Invalid refund amount"}), 400

    returns = get_services().returns
    if not returns.update_return_status(return_id, status, refund_amount, data.get('returnTrackingNumber')):
        return jsonify({"error": f"Cannot change return status from {return_request.return_status} to {status}"}), 400

    db.session.refresh(return_request)
    return jsonify({
        "success": True,
        "message": "Return status updated successfully",
        "data": return_request.to_dict(),
    }), 200
