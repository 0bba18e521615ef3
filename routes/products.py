from core.imports import Blueprint, jsonify, request, or_
from core.extensions import db
from models.productModels import Category, Products

products_bp = Blueprint('products', __name__)

SORTS = {
    'price_asc': Products.price.asc(),
    'price_desc': Products.price.desc(),
    'name_asc': Products.name.asc(),
    'name_desc': Products.name.desc(),
}


def apply_sort(query, sort):
    # popularity falls back to newest until sales are tracked
    return query.order_by(SORTS.get(sort, Products.created_at.desc()), Products.id.desc())


def category_ids_for(category):
    """A top-level category covers its subcategories too."""
    if category.parent_id:
        return [category.id]
    return [category.id] + [sub.id for sub in category.subcategories]


def page_args(default_limit=12):
    page = max(request.args.get('page', 1, type=int), 1)
    limit = min(max(request.args.get('limit', default_limit, type=int), 1), 100)
    return page, limit


def paginate(query, page, limit):
    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": (total + limit - 1) // limit,
    }


def seed_categories():
    tree = {
        "Clothing": ["Dresses", "Tops"],
        "Home": ["Bedding", "Kitchen"],
    }
    created = []
    for order, (name, children) in enumerate(tree.items()):
        parent = Category.query.filter_by(slug=name.lower()).first()
        if not parent:
            parent = Category(name=name, slug=name.lower(), sort_order=order)
            db.session.add(parent)
            db.session.flush()
            created.append(name)
        for child_order, child in enumerate(children):
            if not Category.query.filter_by(slug=child.lower()).first():
                db.session.add(Category(name=child, slug=child.lower(), parent_id=parent.id, sort_order=child_order))
                created.append(child)
    db.session.commit()
    if created:
        print(f"✅ Categories created: {', '.join(created)}")
    else:
        print("ℹ️ Categories already exist.")


def seed_products():
    sample_products = [
        {
            "name": "Linen Wrap Dress",
            "sku": "DRS-001",
            "price": 2499.0,
            "sale_price": 1999.0,
            "stock_quantity": 25,
            "category": "dresses",
            "attributes": {"material": "linen", "organic_certified": True},
            "is_featured": True,
        },
        {
            "name": "Cotton Tee",
            "sku": "TOP-001",
            "price": 799.0,
            "stock_quantity": 60,
            "category": "tops",
            "attributes": {"material": "cotton", "organic_certified": True},
        },
        {
            "name": "Percale Sheet Set",
            "sku": "BED-001",
            "price": 3499.0,
            "stock_quantity": 12,
            "category": "bedding",
            "attributes": {"material": "cotton"},
            "is_featured": True,
        },
    ]

    for data in sample_products:
        if Products.query.filter_by(sku=data["sku"]).first():
            continue
        category = Category.query.filter_by(slug=data["category"]).first()
        db.session.add(Products(
            name=data["name"],
            slug=data["name"].lower().replace(" ", "-"),
            sku=data["sku"],
            description=f"{data['name']} from the house collection.",
            short_description=data["name"],
            price=data["price"],
            sale_price=data.get("sale_price"),
            stock_quantity=data["stock_quantity"],
            images=["https://via.placeholder.com/600"],
            attributes=data["attributes"],
            is_featured=data.get("is_featured", False),
            category_id=category.id if category else None,
        ))
    db.session.commit()
    print("✅ Sample products seeded")


@products_bp.route('/api/products', methods=['GET'])
def list_products():
    """
    Browse products
    ---
    tags:
      - Products
    parameters:
      - name: category
        in: query
        type: string
        description: Category or subcategory slug
      - name: subcategory
        in: query
        type: string
      - name: search
        in: query
        type: string
      - name: minPrice
        in: query
        type: number
      - name: maxPrice
        in: query
        type: number
      - name: material
        in: query
        type: string
      - name: organicCertified
        in: query
        type: boolean
      - name: featured
        in: query
        type: boolean
      - name: sort
        in: query
        type: string
        enum: [created_at, price_asc, price_desc, name_asc, name_desc, popularity]
      - name: page
        in: query
        type: integer
      - name: limit
        in: query
        type: integer
    responses:
      200:
        description: Paginated active products
    """
    page, limit = page_args()
    query = Products.query.filter(Products.is_active.is_(True))

    slug = request.args.get('subcategory') or request.args.get('category')
    if slug:
        category = Category.query.filter_by(slug=slug).first()
        if not category:
            return jsonify({"products": [], "pagination": {"page": page, "limit": limit, "total": 0, "totalPages": 0}}), 200
        query = query.filter(Products.category_id.in_(category_ids_for(category)))

    min_price = request.args.get('minPrice', type=float)
    if min_price is not None:
        query = query.filter(Products.price >= min_price)
    max_price = request.args.get('maxPrice', type=float)
    if max_price is not None:
        query = query.filter(Products.price <= max_price)

    material = request.args.get('material')
    if material:
        query = query.filter(Products.attributes["material"].as_string() == material)
    if request.args.get('organicCertified') == 'true':
        query = query.filter(Products.attributes["organic_certified"].as_boolean().is_(True))
    if request.args.get('featured') == 'true':
        query = query.filter(Products.is_featured.is_(True))

    search = request.args.get('search')
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Products.name.ilike(pattern),
            Products.short_description.ilike(pattern),
            Products.description.ilike(pattern),
        ))

    products, pagination = paginate(apply_sort(query, request.args.get('sort')), page, limit)
    return jsonify({
        "products": [p.to_dict() for p in products],
        "pagination": pagination,
    }), 200


@products_bp.route('/api/products/featured/list', methods=['GET'])
def featured_products():
    products = (
        Products.query
        .filter_by(is_active=True, is_featured=True)
        .order_by(Products.created_at.desc(), Products.id.desc())
        .limit(8)
        .all()
    )
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.route('/api/products/search/suggestions', methods=['GET'])
def search_suggestions():
    q = (request.args.get('q') or '').strip()
    if len(q) < 2:
        return jsonify({"suggestions": []}), 200

    pattern = f"%{q}%"
    products = (
        Products.query
        .filter(Products.is_active.is_(True))
        .filter(or_(Products.name.ilike(pattern), Products.short_description.ilike(pattern)))
        .limit(5)
        .all()
    )
    return jsonify({
        "suggestions": [
            {"name": p.name, "slug": p.slug, "short_description": p.short_description}
            for p in products
        ]
    }), 200


@products_bp.route('/api/products/related/<int:product_id>', methods=['GET'])
def related_products(product_id):
    product = db.session.get(Products, product_id)
    if not product:
        return jsonify({"error": "Product not found"}), 404

    related = (
        Products.query
        .filter(
            Products.category_id == product.category_id,
            Products.is_active.is_(True),
            Products.id != product.id,
        )
        .order_by(Products.created_at.desc(), Products.id.desc())
        .limit(4)
        .all()
    )
    return jsonify({"products": [p.to_dict() for p in related]}), 200


@products_bp.route('/api/products/category/<string:category_slug>', methods=['GET'])
def products_by_category(category_slug):
    category = Category.query.filter_by(slug=category_slug).first()
    if not category:
        return jsonify({"error": "Category not found"}), 404

    page, limit = page_args()
    query = Products.query.filter(
        Products.is_active.is_(True),
        Products.category_id.in_(category_ids_for(category)),
    )
    products, pagination = paginate(apply_sort(query, request.args.get('sort')), page, limit)

    return jsonify({
        "products": [p.to_dict() for p in products],
        "category": category_slug,
        "pagination": pagination,
    }), 200


@products_bp.route('/api/products/<string:slug>', methods=['GET'])
def product_by_slug(slug):
    product = Products.query.filter_by(slug=slug, is_active=True).first()
    if not product:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": product.to_dict()}), 200
