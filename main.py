from core.imports import jsonify, text, Flask, SQLAlchemyError
from core.config import Config
from core.extensions import db, jwt, swagger, cors, bcrypt, migrate, mail, limiter
from core.errors import register_error_handlers
from core.logger import configure_logging
from core.security import init_security
from routes.auth import auth_bp, seed_admin_user, seed_demo_user
from routes.admin import admin_bp
from routes.products import products_bp, seed_categories, seed_products
from routes.categories import categories_bp
from routes.cart import cart_bp
from routes.orders import orders_bp, seed_shipping_methods
from routes.wishlist import wishlist_bp
from routes.reviews import reviews_bp
from routes.users import users_bp
from routes.blog import blog_bp, seed_blog_categories
from services.registry import build_services


def create_app(config_class=Config, gateway=None, couriers=None):
    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(app.debug)

    db.init_app(app)
    jwt.init_app(app)
    swagger.init_app(app)
    cors.init_app(app, origins=app.config["ALLOWED_ORIGINS"], supports_credentials=True)
    bcrypt.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)
    limiter.init_app(app)

    init_security(app)
    register_error_handlers(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(wishlist_bp)
    app.register_blueprint(reviews_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(blog_bp)

    build_services(app, gateway=gateway, couriers=couriers)

    @app.route('/ping')
    def ping():
        return "Ping received", 200

    @app.route('/health')
    def health():
        try:
            db.session.execute(text("SELECT 1"))
            database = "ok"
        except SQLAlchemyError as e:
            db.session.rollback()
            return jsonify({"status": "degraded", "database": str(e)}), 503
        return jsonify({"status": "ok", "database": database}), 200

    return app


def seed_all():
    seed_admin_user()
    seed_demo_user()
    seed_categories()
    seed_products()
    seed_shipping_methods()
    seed_blog_categories()


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        db.create_all()
        seed_all()

    app.run(debug=True)
