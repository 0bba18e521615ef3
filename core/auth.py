from functools import wraps

from core.imports import current_app, get_jwt, get_jwt_identity, jsonify, request, verify_jwt_in_request


def current_user_id():
    """Return the caller's user id, or None for anonymous requests.

    A valid bearer token always wins. The ``user-id`` header is only read
    when ``TRUST_USER_ID_HEADER`` is switched on for legacy clients.
    """
    verify_jwt_in_request(optional=True)
    identity = get_jwt_identity()
    if identity is not None:
        return int(identity)

    if current_app.config.get("TRUST_USER_ID_HEADER"):
        header_id = request.headers.get("user-id")
        if header_id and header_id.isdigit():
            return int(header_id)
    return None


def current_role():
    verify_jwt_in_request(optional=True)
    return get_jwt().get("role") if get_jwt_identity() is not None else None


def user_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if current_user_id() is None:
            return jsonify({
                "error": "User not authenticated",
                "code": "AUTHENTICATION_REQUIRED"
            }), 401
        return fn(*args, **kwargs)
    return wrapper


def role_required(*roles):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if get_jwt().get("role") not in roles:
                return jsonify({"error": "Forbidden"}), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator


admin_required = role_required("admin")
