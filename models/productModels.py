from core.extensions import db
from core.imports import datetime


class Category(db.Model):
    __tablename__ = "product_categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(120), unique=True, nullable=False, index=True)
    description = db.Column(db.Text, default="")
    parent_id = db.Column(db.Integer, db.ForeignKey("product_categories.id"), nullable=True)
    sort_order = db.Column(db.Integer, default=0)
    is_active = db.Column(db.Boolean, default=True)

    subcategories = db.relationship("Category", backref=db.backref("parent", remote_side=[id]))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "parent_id": self.parent_id,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
        }


class Products(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    slug = db.Column(db.String(180), unique=True, nullable=False, index=True)
    sku = db.Column(db.String(64), unique=True, nullable=False)
    description = db.Column(db.Text, default="")
    short_description = db.Column(db.String(300), default="")
    price = db.Column(db.Float, nullable=False)
    sale_price = db.Column(db.Float, nullable=True)
    stock_quantity = db.Column(db.Integer, default=0, nullable=False)
    images = db.Column(db.JSON, default=list)
    attributes = db.Column(db.JSON, default=dict)
    is_active = db.Column(db.Boolean, default=True)
    is_featured = db.Column(db.Boolean, default=False)

    category_id = db.Column(db.Integer, db.ForeignKey("product_categories.id"), nullable=True)
    category = db.relationship("Category", backref="products")

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def current_price(self):
        return self.sale_price or self.price

    def to_dict(self, with_category=True):
        data = {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "sku": self.sku,
            "description": self.description,
            "short_description": self.short_description,
            "price": self.price,
            "sale_price": self.sale_price,
            "stock_quantity": self.stock_quantity,
            "images": self.images or [],
            "attributes": self.attributes or {},
            "is_active": self.is_active,
            "is_featured": self.is_featured,
            "category_id": self.category_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if with_category and self.category:
            data["category"] = {
                "id": self.category.id,
                "name": self.category.name,
                "slug": self.category.slug,
            }
        return data
