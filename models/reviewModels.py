from core.extensions import db
from core.imports import datetime


class Review(db.Model):
    __tablename__ = "product_reviews"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(255), nullable=False)
    review_text = db.Column(db.Text, nullable=False)
    images = db.Column(db.JSON, default=list)
    is_verified_purchase = db.Column(db.Boolean, default=False)
    is_approved = db.Column(db.Boolean, default=False)  # requires admin approval
    is_edited = db.Column(db.Boolean, default=False)
    rejection_reason = db.Column(db.String(255), nullable=True)
    admin_notes = db.Column(db.Text, nullable=True)
    helpful_count = db.Column(db.Integer, default=0)
    unhelpful_count = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = db.relationship("Products", backref="reviews")
    user = db.relationship("Users")
    votes = db.relationship("ReviewVote", backref="review", cascade="all, delete-orphan")
    reports = db.relationship("ReviewReport", backref="review", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "productId": self.product_id,
            "userId": self.user_id,
            "rating": self.rating,
            "title": self.title,
            "reviewText": self.review_text,
            "images": self.images or [],
            "isVerifiedPurchase": self.is_verified_purchase,
            "isApproved": self.is_approved,
            "isEdited": self.is_edited,
            "rejectionReason": self.rejection_reason,
            "helpfulCount": self.helpful_count,
            "unhelpfulCount": self.unhelpful_count,
            "author": f"{self.user.first_name} {self.user.last_name[:1]}." if self.user else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class ReviewVote(db.Model):
    __tablename__ = "review_votes"
    __table_args__ = (db.UniqueConstraint("review_id", "user_id", name="uq_review_vote"),)

    id = db.Column(db.Integer, primary_key=True)
    review_id = db.Column(db.Integer, db.ForeignKey("product_reviews.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    vote_type = db.Column(db.String(20), nullable=False)  # 'helpful', 'unhelpful'


class ReviewReport(db.Model):
    __tablename__ = "review_reports"

    id = db.Column(db.Integer, primary_key=True)
    review_id = db.Column(db.Integer, db.ForeignKey("product_reviews.id"), nullable=False)
    reporter_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    report_reason = db.Column(db.String(100), nullable=False)
    report_description = db.Column(db.Text)
    status = db.Column(db.String(20), default="pending")  # 'pending', 'resolved', 'dismissed'
    admin_notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
