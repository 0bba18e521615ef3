from core.extensions import db
from core.imports import datetime


def _iso(value):
    return value.isoformat() if value else None


blog_post_categories = db.Table(
    "blog_post_categories",
    db.Column("post_id", db.Integer, db.ForeignKey("blog_posts.id"), primary_key=True),
    db.Column("category_id", db.Integer, db.ForeignKey("blog_categories.id"), primary_key=True),
)


class BlogCategory(db.Model):
    __tablename__ = "blog_categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(120), unique=True, nullable=False, index=True)
    description = db.Column(db.Text)
    parent_id = db.Column(db.Integer, db.ForeignKey("blog_categories.id"), nullable=True)
    sort_order = db.Column(db.Integer, default=0)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    children = db.relationship("BlogCategory", backref=db.backref("parent", remote_side=[id]))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "parentId": self.parent_id,
            "sortOrder": self.sort_order,
            "isActive": self.is_active,
            "createdAt": _iso(self.created_at),
        }


class BlogPost(db.Model):
    __tablename__ = "blog_posts"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(280), unique=True, nullable=False, index=True)
    excerpt = db.Column(db.Text)
    content = db.Column(db.Text, nullable=False)
    featured_image = db.Column(db.String(500))
    author_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    status = db.Column(db.String(20), default="draft")  # 'draft', 'published', 'scheduled', 'archived'
    published_at = db.Column(db.DateTime)
    meta_title = db.Column(db.String(255))
    meta_description = db.Column(db.String(500))
    tags = db.Column(db.JSON, default=list)
    reading_time = db.Column(db.Integer, default=1)  # minutes
    view_count = db.Column(db.Integer, default=0)
    like_count = db.Column(db.Integer, default=0)
    comment_count = db.Column(db.Integer, default=0)
    is_featured = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    author = db.relationship("Users", backref="blog_posts")
    categories = db.relationship("BlogCategory", secondary=blog_post_categories, backref="posts")
    comments = db.relationship("BlogComment", backref="post", cascade="all, delete-orphan")

    def to_dict(self, with_content=True):
        data = {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "excerpt": self.excerpt,
            "featuredImage": self.featured_image,
            "authorId": self.author_id,
            "status": self.status,
            "publishedAt": _iso(self.published_at),
            "metaTitle": self.meta_title,
            "metaDescription": self.meta_description,
            "tags": self.tags or [],
            "readingTime": self.reading_time,
            "viewCount": self.view_count or 0,
            "likeCount": self.like_count or 0,
            "commentCount": self.comment_count or 0,
            "isFeatured": self.is_featured,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "categories": [c.to_dict() for c in self.categories],
        }
        if with_content:
            data["content"] = self.content
        if self.author:
            data["author"] = {
                "id": self.author.id,
                "name": f"{self.author.first_name} {self.author.last_name}",
                "email": self.author.email,
            }
        return data


class BlogComment(db.Model):
    __tablename__ = "blog_comments"

    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey("blog_posts.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("blog_comments.id"), nullable=True)
    author_name = db.Column(db.String(100))
    author_email = db.Column(db.String(255))
    content = db.Column(db.Text, nullable=False)
    is_approved = db.Column(db.Boolean, default=False)
    is_spam = db.Column(db.Boolean, default=False)
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship("Users")
    replies = db.relationship(
        "BlogComment",
        backref=db.backref("parent", remote_side=[id]),
        cascade="all, delete-orphan",
        order_by="BlogComment.created_at",
    )

    def to_dict(self, with_replies=False):
        data = {
            "id": self.id,
            "postId": self.post_id,
            "userId": self.user_id,
            "parentId": self.parent_id,
            "authorName": self.author_name,
            "content": self.content,
            "isApproved": self.is_approved,
            "createdAt": _iso(self.created_at),
        }
        if self.user:
            data["user"] = {"id": self.user.id, "name": f"{self.user.first_name} {self.user.last_name}"}
        if with_replies:
            data["replies"] = [r.to_dict() for r in self.replies if r.is_approved]
        return data


class PromotionalContent(db.Model):
    __tablename__ = "promotional_content"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    content_type = db.Column(db.String(20), nullable=False)  # 'banner', 'campaign', 'testimonial', 'video'
    content_data = db.Column(db.JSON, default=dict)
    display_location = db.Column(db.String(100), nullable=False, index=True)
    start_date = db.Column(db.DateTime)
    end_date = db.Column(db.DateTime)
    is_active = db.Column(db.Boolean, default=True)
    sort_order = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "contentType": self.content_type,
            "contentData": self.content_data or {},
            "displayLocation": self.display_location,
            "startDate": _iso(self.start_date),
            "endDate": _iso(self.end_date),
            "sortOrder": self.sort_order,
        }


class ContentAnalytics(db.Model):
    __tablename__ = "content_analytics"

    id = db.Column(db.Integer, primary_key=True)
    content_id = db.Column(db.String(64), nullable=False, index=True)
    content_type = db.Column(db.String(50), nullable=False)
    event_type = db.Column(db.String(20), nullable=False)  # 'view', 'like', 'share', 'comment'
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    session_id = db.Column(db.String(128))
    ip_address = db.Column(db.String(64))
    user_agent = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class NewsletterSubscription(db.Model):
    __tablename__ = "newsletter_subscriptions"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))
    is_active = db.Column(db.Boolean, default=True)
    subscription_source = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "isActive": self.is_active,
            "subscriptionSource": self.subscription_source,
            "createdAt": _iso(self.created_at),
        }
