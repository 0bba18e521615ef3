from werkzeug.exceptions import HTTPException

from core.extensions import db, jwt
from core.imports import current_app, jsonify, request
from core.logger import get_logger

logger = get_logger(__name__)

RATE_LIMIT_ERRORS = {
    "auth": ("Too many authentication attempts, please try again later", "AUTH_RATE_LIMIT_EXCEEDED"),
    "orders": ("Too many checkout attempts, please try again later", "CHECKOUT_RATE_LIMIT_EXCEEDED"),
}
GENERAL_RATE_LIMIT_ERROR = ("Too many requests from this IP, please try again later", "RATE_LIMIT_EXCEEDED")


def register_error_handlers(app):
    @app.errorhandler(404)
    def route_not_found(_error):
        return jsonify({"error": "Route not found", "code": "ROUTE_NOT_FOUND"}), 404

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return jsonify({"error": "Method not allowed", "code": "METHOD_NOT_ALLOWED"}), 405

    @app.errorhandler(413)
    def request_too_large(_error):
        return jsonify({"error": "Request too large", "code": "REQUEST_TOO_LARGE"}), 413

    @app.errorhandler(429)
    def rate_limited(_error):
        message, code = RATE_LIMIT_ERRORS.get(request.blueprint, GENERAL_RATE_LIMIT_ERROR)
        logger.warning("rate_limit_exceeded", path=request.path, ip=request.remote_addr, code=code)
        return jsonify({"error": message, "code": code}), 429

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({"error": error.description, "code": error.name.upper().replace(" ", "_")}), error.code

    @app.errorhandler(Exception)
    def unhandled_error(error):
        db.session.rollback()
        logger.exception("unhandled_error", error=str(error))
        body = {
            "error": "Something went wrong!",
            "code": "INTERNAL_ERROR",
            "message": "Internal server error",
        }
        if current_app.debug:
            body["message"] = repr(error)
        return jsonify(body), 500


@jwt.unauthorized_loader
def missing_token(reason):
    return jsonify({"error": "Access token required", "code": "AUTHENTICATION_REQUIRED"}), 401


@jwt.invalid_token_loader
def invalid_token(reason):
    return jsonify({"error": "Invalid or expired token", "code": "INVALID_TOKEN"}), 401


@jwt.expired_token_loader
def expired_token(_header, _payload):
    return jsonify({"error": "Token expired", "code": "TOKEN_EXPIRED"}), 401
