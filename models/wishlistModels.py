from core.extensions import db
from core.imports import datetime


class WishlistItem(db.Model):
    __tablename__ = "wishlists"
    __table_args__ = (db.UniqueConstraint("user_id", "product_id", name="uq_wishlist_user_product"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    added_at = db.Column(db.DateTime, default=datetime.utcnow)

    # relationships
    product = db.relationship("Products", backref="wishlisted_by")
