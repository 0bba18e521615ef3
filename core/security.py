"""Request security hooks: CSRF tokens, payment route hardening, IP blocking
and security event logging.
"""

import time

from core.imports import current_app, g, hmac, jsonify, request, secrets, session
from core.logger import get_logger

logger = get_logger(__name__)

CSRF_HEADER = "X-CSRF-Token"
PAYMENT_PREFIX = "/api/orders"
SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}
ALLOWED_METHODS = {"GET", "HEAD", "OPTIONS", "POST", "PUT", "DELETE", "PATCH"}


def generate_csrf_token():
    return secrets.token_hex(32)


def validate_csrf_token(token, session_token):
    if not token or not session_token:
        return False
    return hmac.compare_digest(str(token), str(session_token))


def _error(message, code, status):
    return jsonify({"error": message, "code": code}), status


def before_request():
    g.request_started = time.monotonic()

    if request.method not in ALLOWED_METHODS:
        return _error("Method not allowed", "METHOD_NOT_ALLOWED", 405)

    client_ip = request.remote_addr
    if client_ip in current_app.config.get("BLOCKED_IPS", []):
        return _error("Access denied", "IP_BLOCKED", 403)

    if "csrf_token" not in session:
        session["csrf_token"] = generate_csrf_token()

    if not request.path.startswith(PAYMENT_PREFIX):
        return None

    origin = request.headers.get("Origin")
    if origin and origin not in current_app.config.get("ALLOWED_ORIGINS", []):
        return _error("Invalid request origin", "INVALID_ORIGIN", 403)

    if request.method == "POST" and not request.is_json:
        return _error("Invalid content type", "INVALID_CONTENT_TYPE", 400)

    if current_app.config.get("CSRF_ENABLED") and request.method not in SAFE_METHODS:
        if not validate_csrf_token(request.headers.get(CSRF_HEADER), session.get("csrf_token")):
            return _error("CSRF token validation failed", "CSRF_ERROR", 403)

    return None


def after_request(response):
    token = session.get("csrf_token")
    if token:
        response.headers[CSRF_HEADER] = token

    if request.path.startswith(PAYMENT_PREFIX):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    started = g.get("request_started")
    duration_ms = round((time.monotonic() - started) * 1000, 2) if started else None

    if response.status_code >= 400:
        logger.warning(
            "security_event",
            ip=request.remote_addr,
            method=request.method,
            path=request.path,
            status=response.status_code,
            user_agent=request.headers.get("User-Agent"),
            duration_ms=duration_ms,
        )

    if "/payment" in request.path or "/checkout" in request.path:
        logger.info(
            "payment_request",
            ip=request.remote_addr,
            method=request.method,
            path=request.path,
            status=response.status_code,
        )

    return response


def init_security(app):
    app.before_request(before_request)
    app.after_request(after_request)
