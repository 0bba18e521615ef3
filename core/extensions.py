from core.imports import Bcrypt, Swagger, JWTManager, SQLAlchemy, CORS, Migrate, Mail, Limiter, get_remote_address, current_app

# routes declare `security: - Bearer: []` against this definition
SWAGGER_TEMPLATE = {
    "info": {
        "title": "Storefront API",
        "description": "Catalogue, cart, checkout, payments, tracking and returns",
        "version": "0.1.0",
    },
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "JWT token in format: Bearer <your_token>",
        }
    },
}


def config_limit(key):
    """Read a rate limit string from the active app's config at request time."""
    return lambda: current_app.config[key]


db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
bcrypt = Bcrypt()
mail = Mail()
cors = CORS()
swagger = Swagger(template=SWAGGER_TEMPLATE)
limiter = Limiter(key_func=get_remote_address, default_limits=[config_limit("RATELIMIT_GENERAL")])
