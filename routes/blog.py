import math
import re

from core.imports import Blueprint, jsonify, request, datetime, or_, IntegrityError
from core.extensions import db
from core.auth import current_user_id, current_role, user_required, admin_required, role_required
from core.logger import get_logger
from models.blogModels import (
    BlogCategory, BlogComment, BlogPost, ContentAnalytics, NewsletterSubscription, PromotionalContent,
)
from routes.auth import EMAIL_RE
from routes.products import page_args, paginate

blog_bp = Blueprint('blog', __name__)
logger = get_logger(__name__)

POST_STATUSES = ('draft', 'published', 'scheduled', 'archived')
POST_SORTS = {
    'created_at': BlogPost.created_at,
    'published_at': BlogPost.published_at,
    'title': BlogPost.title,
    'view_count': BlogPost.view_count,
}
EVENT_TYPES = ('view', 'like', 'share', 'comment')
WORDS_PER_MINUTE = 200


def generate_slug(title):
    return re.sub(r'[^a-z0-9]+', '-', title.lower()).strip('-')


def reading_time(content):
    return max(math.ceil(len(content.split()) / WORDS_PER_MINUTE), 1)


def _is_admin():
    return current_role() == 'admin'


def _categories_for(ids):
    if not ids:
        return []
    return BlogCategory.query.filter(BlogCategory.id.in_([int(i) for i in ids if str(i).isdigit()])).all()


def track_event(content_id, content_type, event_type):
    db.session.add(ContentAnalytics(
        content_id=str(content_id),
        content_type=content_type,
        event_type=event_type,
        user_id=current_user_id(),
        session_id=request.headers.get('session-id'),
        ip_address=request.remote_addr,
        user_agent=(request.user_agent.string or '')[:255],
    ))


def content_analytics(content_id, content_type):
    events = ContentAnalytics.query.filter_by(content_id=str(content_id), content_type=content_type).all()
    counts = {event_type: 0 for event_type in EVENT_TYPES}
    visitors = set()
    for event in events:
        if event.event_type in counts:
            counts[event.event_type] += 1
        visitors.add(event.user_id or event.session_id or event.ip_address)

    views = counts['view']
    engagement = counts['like'] + counts['share'] + counts['comment']
    return {
        "contentId": str(content_id),
        "contentType": content_type,
        "views": views,
        "likes": counts['like'],
        "shares": counts['share'],
        "comments": counts['comment'],
        "engagementRate": round(engagement / views * 100, 2) if views else 0,
        "uniqueVisitors": len(visitors),
    }


def filtered_posts(args, statuses=None):
    query = BlogPost.query
    status = args.get('status')
    if statuses is not None:
        query = query.filter(BlogPost.status.in_(statuses))
    if status:
        query = query.filter(BlogPost.status == status)
    if args.get('categoryId'):
        query = query.filter(BlogPost.categories.any(BlogCategory.id == args.get('categoryId', type=int)))
    if args.get('authorId'):
        query = query.filter(BlogPost.author_id == args.get('authorId', type=int))
    if args.get('isFeatured') == 'true':
        query = query.filter(BlogPost.is_featured.is_(True))
    if args.get('tags'):
        tags = [t.strip() for t in args['tags'].split(',') if t.strip()]
        # tags are stored as a JSON list; match any quoted entry
        query = query.filter(or_(*[db.cast(BlogPost.tags, db.String).like(f'%"{t}"%') for t in tags]))
    if args.get('search'):
        term = f"%{args['search']}%"
        query = query.filter(or_(BlogPost.title.ilike(term), BlogPost.content.ilike(term)))

    column = POST_SORTS.get(args.get('sortBy'), BlogPost.created_at)
    ordering = column.asc() if args.get('sortOrder') == 'asc' else column.desc()
    return query.order_by(ordering, BlogPost.id.desc())


def seed_blog_categories():
    names = ["Sustainability", "Style Guides", "Behind the Seams"]
    created = []
    for order, name in enumerate(names):
        slug = generate_slug(name)
        if not BlogCategory.query.filter_by(slug=slug).first():
            db.session.add(BlogCategory(name=name, slug=slug, sort_order=order))
            created.append(name)
    db.session.commit()
    if created:
        print(f"✅ Blog categories created: {', '.join(created)}")
    else:
        print("ℹ️ Blog categories already exist.")


# =====================================
# POSTS
# =====================================

@blog_bp.route('/api/blog/posts', methods=['GET'])
def list_posts():
    """
    List blog posts
    ---
    tags:
      - Blog
    description: >
      Anonymous callers and customers only see published posts. Admins may
      filter by any status.
    parameters:
      - name: status
        in: query
        type: string
        enum: [draft, published, scheduled, archived]
      - name: categoryId
        in: query
        type: integer
      - name: authorId
        in: query
        type: integer
      - name: isFeatured
        in: query
        type: boolean
      - name: tags
        in: query
        type: string
        description: Comma separated, matches any
      - name: search
        in: query
        type: string
      - name: sortBy
        in: query
        type: string
        enum: [created_at, published_at, title, view_count]
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
        description: A page of posts
    """
    statuses = None if _is_admin() else ('published',)
    page, limit = page_args(default_limit=10)
    posts, pagination = paginate(filtered_posts(request.args, statuses), page, limit)
    return jsonify({
        "posts": [p.to_dict(with_content=False) for p in posts],
        "pagination": pagination,
    }), 200


@blog_bp.route('/api/blog/posts/<slug>', methods=['GET'])
def get_post(slug):
    post = BlogPost.query.filter_by(slug=slug, status='published').first()
    if not post:
        return jsonify({"error": "Blog post not found"}), 404

    post.view_count = (post.view_count or 0) + 1
    track_event(post.id, 'blog_post', 'view')
    db.session.commit()
    return jsonify(post.to_dict()), 200


@blog_bp.route('/api/blog/posts', methods=['POST'])
@role_required('admin', 'author')
def create_post():
    """
    Create a blog post
    ---
    tags:
      - Blog
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - title
            - content
          properties:
            title: { type: string, example: Caring for linen }
            slug: { type: string }
            excerpt: { type: string }
            content: { type: string }
            featuredImage: { type: string }
            status: { type: string, enum: [draft, published, scheduled, archived] }
            tags: { type: array, items: { type: string } }
            isFeatured: { type: boolean }
            categoryIds: { type: array, items: { type: integer } }
    responses:
      201:
        description: Post created
      400:
        description: Missing title or content, or unknown status
      409:
        description: Slug already in use
    """
    data = request.get_json(silent=True) or {}
    title = (data.get('title') or '').strip()
    content = data.get('content') or ''
    if not title or not content.strip():
        return jsonify({"error": "Title and content are required"}), 400

    status = data.get('status') or 'draft'
    if status not in POST_STATUSES:
        return jsonify({"error": "Invalid post status"}), 400

    published_at = None
    if data.get('publishedAt'):
        try:
            published_at = datetime.fromisoformat(data['publishedAt'])
        except (TypeError, ValueError):
            return jsonify({"error": "publishedAt must be ISO formatted"}), 400
    elif status == 'published':
        published_at = datetime.utcnow()

    post = BlogPost(
        title=title,
        slug=data.get('slug') or generate_slug(title),
        excerpt=data.get('excerpt'),
        content=content,
        featured_image=data.get('featuredImage'),
        author_id=current_user_id(),
        status=status,
        published_at=published_at,
        meta_title=data.get('metaTitle'),
        meta_description=data.get('metaDescription'),
        tags=data.get('tags') or [],
        reading_time=reading_time(content),
        is_featured=bool(data.get('isFeatured')),
        categories=_categories_for(data.get('categoryIds')),
    )
    db.session.add(post)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "A post with this slug already exists"}), 409

    logger.info("blog_post_created", post_id=post.id, author_id=post.author_id, status=post.status)
    return jsonify(post.to_dict()), 201


def _editable_post(post_id, action):
    post = db.session.get(BlogPost, post_id)
    if not post:
        return None, (jsonify({"error": "Blog post not found"}), 404)
    if not _is_admin() and post.author_id != current_user_id():
        return None, (jsonify({"error": f"Not authorized to {action} this post"}), 403)
    return post, None


@blog_bp.route('/api/blog/posts/<int:post_id>', methods=['PUT'])
@role_required('admin', 'author')
def update_post(post_id):
    post, error = _editable_post(post_id, "edit")
    if error:
        return error

    data = request.get_json(silent=True) or {}
    if 'status' in data:
        if data['status'] not in POST_STATUSES:
            return jsonify({"error": "Invalid post status"}), 400
        if data['status'] == 'published' and not post.published_at:
            post.published_at = datetime.utcnow()
        post.status = data['status']

    if data.get('title'):
        post.title = data['title'].strip()
    if data.get('slug'):
        post.slug = data['slug']
    if data.get('content'):
        post.content = data['content']
        post.reading_time = reading_time(data['content'])
    for key, attr in (('excerpt', 'excerpt'), ('featuredImage', 'featured_image'),
                      ('metaTitle', 'meta_title'), ('metaDescription', 'meta_description')):
        if key in data:
            setattr(post, attr, data[key])
    if 'tags' in data:
        post.tags = data['tags'] or []
    if 'isFeatured' in data:
        post.is_featured = bool(data['isFeatured'])
    if 'categoryIds' in data:
        post.categories = _categories_for(data['categoryIds'])

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "A post with this slug already exists"}), 409
    return jsonify(post.to_dict()), 200


@blog_bp.route('/api/blog/posts/<int:post_id>', methods=['DELETE'])
@role_required('admin', 'author')
def delete_post(post_id):
    post, error = _editable_post(post_id, "delete")
    if error:
        return error

    db.session.delete(post)
    db.session.commit()
    logger.info("blog_post_deleted", post_id=post_id)
    return '', 204


# =====================================
# CATEGORIES
# =====================================

@blog_bp.route('/api/blog/categories', methods=['GET'])
def list_blog_categories():
    categories = (
        BlogCategory.query
        .filter_by(is_active=True)
        .order_by(BlogCategory.sort_order.asc(), BlogCategory.id.asc())
        .all()
    )
    return jsonify({"categories": [c.to_dict() for c in categories]}), 200


@blog_bp.route('/api/blog/categories', methods=['POST'])
@admin_required
def create_blog_category():
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({"error": "Category name is required"}), 400

    category = BlogCategory(
        name=name,
        slug=data.get('slug') or generate_slug(name),
        description=data.get('description'),
        parent_id=data.get('parentId'),
        sort_order=data.get('sortOrder') or 0,
        is_active=data.get('isActive') is not False,
    )
    db.session.add(category)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "A category with this slug already exists"}), 409
    return jsonify(category.to_dict()), 201


# =====================================
# COMMENTS
# =====================================

@blog_bp.route('/api/blog/posts/<int:post_id>/comments', methods=['GET'])
def list_comments(post_id):
    comments = (
        BlogComment.query
        .filter_by(post_id=post_id, is_approved=True, parent_id=None)
        .order_by(BlogComment.created_at.asc(), BlogComment.id.asc())
        .all()
    )
    return jsonify({"comments": [c.to_dict(with_replies=True) for c in comments]}), 200


@blog_bp.route('/api/blog/posts/<int:post_id>/comments', methods=['POST'])
def create_comment(post_id):
    """
    Comment on a post
    ---
    tags:
      - Blog
    description: >
      Signed-in readers are published straight away. Guest comments need a
      name and email and wait for moderation.
    parameters:
      - name: post_id
        in: path
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - content
          properties:
            content: { type: string }
            parentId: { type: integer }
            authorName: { type: string }
            authorEmail: { type: string }
    responses:
      201:
        description: Comment stored
      400:
        description: Validation failed
      404:
        description: Post not found
    """
    data = request.get_json(silent=True) or {}
    post = BlogPost.query.filter_by(id=post_id, status='published').first()
    if not post:
        return jsonify({"error": "Blog post not found"}), 404

    content = (data.get('content') or '').strip()
    if not content:
        return jsonify({"error": "Comment content is required"}), 400

    user_id = current_user_id()
    author_name, author_email = data.get('authorName'), data.get('authorEmail')
    if user_id is None and (not author_name or not EMAIL_RE.match(author_email or '')):
        return jsonify({"error": "Name and a valid email are required to comment as a guest"}), 400

    parent_id = data.get('parentId')
    if parent_id and not BlogComment.query.filter_by(id=parent_id, post_id=post.id).first():
        return jsonify({"error": "Parent comment not found"}), 400

    comment = BlogComment(
        post_id=post.id,
        user_id=user_id,
        parent_id=parent_id,
        author_name=author_name,
        author_email=author_email,
        content=content,
        is_approved=user_id is not None,
        ip_address=request.remote_addr,
        user_agent=(request.user_agent.string or '')[:255],
    )
    db.session.add(comment)
    if comment.is_approved:
        post.comment_count = (post.comment_count or 0) + 1
    track_event(post.id, 'blog_post', 'comment')
    db.session.commit()

    return jsonify(comment.to_dict()), 201


@blog_bp.route('/api/blog/comments/<int:comment_id>', methods=['PUT'])
@user_required
def update_comment(comment_id):
    data = request.get_json(silent=True) or {}
    content = (data.get('content') or '').strip()
    if not content:
        return jsonify({"error": "Comment content is required"}), 400

    comment = BlogComment.query.filter_by(id=comment_id, user_id=current_user_id()).first()
    if not comment:
        return jsonify({"error": "Comment not found"}), 404

    comment.content = content
    db.session.commit()
    return jsonify({"message": "Comment updated successfully", "comment": comment.to_dict()}), 200


@blog_bp.route('/api/blog/comments/<int:comment_id>', methods=['DELETE'])
@admin_required
def delete_comment(comment_id):
    comment = db.session.get(BlogComment, comment_id)
    if not comment:
        return jsonify({"error": "Comment not found"}), 404

    post = comment.post
    removed = sum(1 for c in [comment] + list(comment.replies) if c.is_approved)
    post.comment_count = max((post.comment_count or 0) - removed, 0)
    db.session.delete(comment)
    db.session.commit()
    return '', 204


@blog_bp.route('/api/blog/comments/<int:comment_id>/approve', methods=['PUT'])
@admin_required
def approve_comment(comment_id):
    comment = db.session.get(BlogComment, comment_id)
    if not comment:
        return jsonify({"error": "Comment not found"}), 404

    if not comment.is_approved:
        comment.is_approved = True
        comment.post.comment_count = (comment.post.comment_count or 0) + 1
        db.session.commit()
    return jsonify({"message": "Comment approved successfully"}), 200


# =====================================
# PROMOTIONS & NEWSLETTER
# =====================================

@blog_bp.route('/api/blog/promotional', methods=['GET'])
def promotional_content():
    now = datetime.utcnow()
    query = PromotionalContent.query.filter(
        PromotionalContent.is_active.is_(True),
        or_(PromotionalContent.start_date.is_(None), PromotionalContent.start_date <= now),
        or_(PromotionalContent.end_date.is_(None), PromotionalContent.end_date >= now),
    )
    if request.args.get('location'):
        query = query.filter(PromotionalContent.display_location == request.args['location'])

    content = query.order_by(PromotionalContent.sort_order.asc(), PromotionalContent.id.asc()).all()
    return jsonify({"content": [c.to_dict() for c in content]}), 200


@blog_bp.route('/api/blog/newsletter/subscribe', methods=['POST'])
def subscribe():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    if not EMAIL_RE.match(email):
        return jsonify({"error": "A valid email is required"}), 400

    subscription = NewsletterSubscription.query.filter_by(email=email).first()
    if not subscription:
        subscription = NewsletterSubscription(email=email)
        db.session.add(subscription)
    subscription.first_name = data.get('firstName') or subscription.first_name
    subscription.last_name = data.get('lastName') or subscription.last_name
    subscription.subscription_source = data.get('source') or subscription.subscription_source
    subscription.is_active = True
    db.session.commit()

    logger.info("newsletter_subscribed", source=subscription.subscription_source)
    return jsonify(subscription.to_dict()), 201


@blog_bp.route('/api/blog/newsletter/unsubscribe', methods=['POST'])
def unsubscribe():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    if not email:
        return jsonify({"error": "Email is required"}), 400

    subscription = NewsletterSubscription.query.filter_by(email=email).first()
    if subscription and subscription.is_active:
        subscription.is_active = False
        db.session.commit()
    return jsonify({"message": "Successfully unsubscribed from newsletter"}), 200


# =====================================
# ADMIN CONTENT & ANALYTICS
# =====================================

@blog_bp.route('/api/blog/analytics/<content_id>', methods=['GET'])
@admin_required
def analytics_for(content_id):
    content_type = request.args.get('contentType')
    if not content_type:
        return jsonify({"error": "Content type is required"}), 400
    return jsonify(content_analytics(content_id, content_type)), 200


@blog_bp.route('/api/blog/admin/content', methods=['GET'])
@admin_required
def admin_content():
    page, limit = page_args(default_limit=20)
    posts, pagination = paginate(filtered_posts(request.args), page, limit)
    return jsonify({
        "posts": [p.to_dict(with_content=False) for p in posts],
        "pagination": pagination,
    }), 200


@blog_bp.route('/api/blog/admin/content/analytics', methods=['GET'])
@admin_required
def admin_content_analytics():
    content_id = request.args.get('contentId')
    content_type = request.args.get('contentType')
    if not content_id or not content_type:
        return jsonify({"error": "Content ID and content type are required"}), 400
    return jsonify(content_analytics(content_id, content_type)), 200
