from core.imports import Blueprint, jsonify, request
from models.productModels import Category, Products
from routes.products import apply_sort, category_ids_for, page_args, paginate

categories_bp = Blueprint('categories', __name__)


def _active_children(category):
    children = [c for c in category.subcategories if c.is_active]
    return sorted(children, key=lambda c: (c.sort_order, c.name))


@categories_bp.route('/api/categories', methods=['GET'])
def list_categories():
    """
    Category tree
    ---
    tags:
      - Categories
    responses:
      200:
        description: Active top-level categories, each with its active subcategories
    """
    roots = (
        Category.query
        .filter_by(is_active=True, parent_id=None)
        .order_by(Category.sort_order.asc(), Category.name.asc())
        .all()
    )
    categories = []
    for root in roots:
        data = root.to_dict()
        data["subcategories"] = [c.to_dict() for c in _active_children(root)]
        categories.append(data)
    return jsonify({"categories": categories}), 200


@categories_bp.route('/api/categories/<string:slug>', methods=['GET'])
def category_by_slug(slug):
    category = Category.query.filter_by(slug=slug, is_active=True).first()
    if not category:
        return jsonify({"error": "Category not found"}), 404

    data = category.to_dict()
    data["subcategories"] = [] if category.parent_id else [c.to_dict() for c in _active_children(category)]
    return jsonify({"category": data}), 200


@categories_bp.route('/api/categories/<string:slug>/products', methods=['GET'])
def category_products(slug):
    category = Category.query.filter_by(slug=slug, is_active=True).first()
    if not category:
        return jsonify({"error": "Category not found"}), 404

    page, limit = page_args()
    query = Products.query.filter(
        Products.is_active.is_(True),
        Products.category_id.in_(category_ids_for(category)),
    )
    products, pagination = paginate(apply_sort(query, request.args.get('sort')), page, limit)

    return jsonify({
        "category": category.to_dict(),
        "products": [p.to_dict() for p in products],
        "pagination": pagination,
    }), 200
