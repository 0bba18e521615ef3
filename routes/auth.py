import re

from core.imports import Blueprint, jsonify, request, session, create_access_token, decode_token, jwt_required, get_jwt_identity, current_app, Message, IntegrityError, PyJWTError, JWTExtendedException
from core.extensions import db, bcrypt, mail, limiter, config_limit
from core.logger import get_logger
from core.security import generate_csrf_token
from models.userModel import Users, UserAddress

auth_bp = Blueprint('auth', __name__)
limiter.limit(config_limit("RATELIMIT_AUTH"))(auth_bp)
logger = get_logger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8
ADDRESS_TYPES = ('billing', 'shipping')
RESET_PURPOSE = "password_reset"


def issue_token(user):
    return create_access_token(
        identity=str(user.id),
        additional_claims={"userId": user.id, "email": user.email, "role": user.role},
    )


def serialize_user(user):
    return {
        "id": user.id,
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "phone": user.phone,
        "role": user.role,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


def serialize_address(address):
    return {
        "id": address.id,
        "address_type": address.address_type,
        "first_name": address.first_name,
        "last_name": address.last_name,
        "company": address.company,
        "address_line1": address.address_line1,
        "address_line2": address.address_line2,
        "city": address.city,
        "state": address.state,
        "postal_code": address.postal_code,
        "country": address.country,
        "phone": address.phone,
        "is_default": address.is_default,
    }


def send_email(to, subject, body):
    msg = Message(subject=subject, recipients=[to])
    msg.body = body
    try:
        mail.send(msg)
    except Exception as e:
        logger.error("email_send_failed", to=to, subject=subject, error=str(e))


def validate_address(data):
    if data.get('address_type') not in ADDRESS_TYPES:
        return "Address type must be billing or shipping"
    for field, label in (('address_line1', "Address line 1"), ('city', "City"), ('state', "State"), ('postal_code', "Postal code")):
        if not str(data.get(field) or '').strip():
            return f"{label} is required"
    return None


def _unset_default_addresses(user_id, address_type, exclude_id=None):
    query = UserAddress.query.filter_by(user_id=user_id, address_type=address_type, is_default=True)
    if exclude_id:
        query = query.filter(UserAddress.id != exclude_id)
    for address in query.all():
        address.is_default = False


def save_address(user_id, data, address=None):
    """Create or update a saved address from snake_case fields.

    Returns ``(address, error)``; only one default is kept per address type.
    """
    error = validate_address(data)
    if error:
        return None, error

    is_default = bool(data.get('is_default'))
    if is_default:
        _unset_default_addresses(user_id, data['address_type'], exclude_id=address.id if address else None)

    if address is None:
        address = UserAddress(user_id=user_id)
        db.session.add(address)

    address.address_type = data['address_type']
    address.address_line1 = data['address_line1']
    address.address_line2 = data.get('address_line2')
    address.city = data['city']
    address.state = data['state']
    address.postal_code = data['postal_code']
    address.country = data.get('country') or "India"
    address.is_default = is_default
    for field in ('first_name', 'last_name', 'company', 'phone'):
        if field in data:
            setattr(address, field, data[field])
    db.session.commit()
    return address, None


def seed_admin_user():
    email = current_app.config.get("ADMIN_EMAIL", "admin@storefront.local")
    admin = Users.query.filter_by(email=email).first()
    if not admin:
        raw_password = current_app.config.get("ADMIN_PASSWORD", "AdminPass123")
        admin = Users(
            email=email,
            password=bcrypt.generate_password_hash(raw_password).decode('utf-8'),
            first_name="Store",
            last_name="Admin",
            role="admin",
        )
        db.session.add(admin)
        db.session.commit()
        print(f"✅ Admin user created (email={email})")
    else:
        print("ℹ️ Admin user already exists.")
    return admin


def seed_demo_user():
    user = Users.query.filter_by(email="demo@storefront.local").first()
    if not user:
        raw_password = "password123"
        user = Users(
            email="demo@storefront.local",
            password=bcrypt.generate_password_hash(raw_password).decode('utf-8'),
            first_name="Jane",
            last_name="Doe",
            phone="9876543210",
        )
        db.session.add(user)
        db.session.commit()
        print(f"✅ Demo user created (email=demo@storefront.local, password={raw_password})")
    else:
        print("ℹ️ Demo user already exists.")
    return user


@auth_bp.route('/api/auth/register', methods=['POST'])
def register():
    """
    Register a customer account
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - email
            - password
            - firstName
            - lastName
          properties:
            email: { type: string, example: jane@example.com }
            password: { type: string, example: supersecret }
            firstName: { type: string, example: Jane }
            lastName: { type: string, example: Doe }
    responses:
      201:
        description: User registered, token issued
      400:
        description: Validation failed or user already exists
    """
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    first_name = (data.get('firstName') or '').strip()
    last_name = (data.get('lastName') or '').strip()

    if not EMAIL_RE.match(email):
        return jsonify({"error": "A valid email is required"}), 400
    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": "Password must be at least 8 characters"}), 400
    if not first_name:
        return jsonify({"error": "First name is required"}), 400
    if not last_name:
        return jsonify({"error": "Last name is required"}), 400

    if Users.query.filter_by(email=email).first():
        return jsonify({"error": "User already exists"}), 400

    user = Users(
        email=email,
        password=bcrypt.generate_password_hash(password).decode('utf-8'),
        first_name=first_name,
        last_name=last_name,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "User already exists"}), 400

    logger.info("user_registered", user_id=user.id)
    return jsonify({
        "message": "User registered successfully",
        "user": serialize_user(user),
        "token": issue_token(user),
    }), 201


@auth_bp.route('/api/auth/login', methods=['POST'])
def login():
    """
    Log in
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - email
            - password
          properties:
            email: { type: string }
            password: { type: string }
    responses:
      200:
        description: Login successful
      400:
        description: Email and password are required
      401:
        description: Invalid credentials
    """
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password')

    if not email or not password:
        return jsonify({"error": "Email and password are required"}), 400

    user = Users.query.filter_by(email=email).first()
    if not user or not bcrypt.check_password_hash(user.password, password):
        return jsonify({"error": "Invalid credentials"}), 401

    return jsonify({
        "message": "Login successful",
        "user": serialize_user(user),
        "token": issue_token(user),
    }), 200


@auth_bp.route('/api/auth/logout', methods=['POST'])
@jwt_required()
def logout():
    # tokens are stateless; the client drops its copy
    return jsonify({"message": "Logout successful"}), 200


@auth_bp.route('/api/auth/refresh', methods=['POST'])
@jwt_required()
def refresh():
    user = db.session.get(Users, int(get_jwt_identity()))
    if not user:
        return jsonify({"error": "User not found"}), 404
    return jsonify({"token": issue_token(user)}), 200


@auth_bp.route('/api/auth/forgot-password', methods=['POST'])
def forgot_password():
    """
    Request a password reset email
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            email: { type: string }
    responses:
      200:
        description: Always returned so account existence is not revealed
    """
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    if not EMAIL_RE.match(email):
        return jsonify({"error": "A valid email is required"}), 400

    message = "If an account exists, a reset link has been sent"
    user = Users.query.filter_by(email=email).first()
    if not user:
        return jsonify({"message": message}), 200

    reset_token = create_access_token(
        identity=str(user.id),
        additional_claims={"purpose": RESET_PURPOSE},
        expires_delta=current_app.config["PASSWORD_RESET_EXPIRES"],
    )
    reset_link = f"{current_app.config['FRONTEND_URL']}/reset-password?token={reset_token}"
    send_email(
        user.email,
        "Reset your password",
        f"We received a request to reset your password.\n\nUse this link within the hour:\n{reset_link}\n",
    )

    return jsonify({"message": message}), 200


@auth_bp.route('/api/auth/reset-password', methods=['POST'])
def reset_password():
    data = request.get_json(silent=True) or {}
    token = data.get('token')
    password = data.get('password') or ''

    if not token:
        return jsonify({"error": "Reset token is required"}), 400
    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": "Password must be at least 8 characters"}), 400

    try:
        claims = decode_token(token)
    except (PyJWTError, JWTExtendedException):
        return jsonify({"error": "Invalid or expired reset token"}), 400

    if claims.get("purpose") != RESET_PURPOSE:
        return jsonify({"error": "Invalid or expired reset token"}), 400

    user = db.session.get(Users, int(claims["sub"]))
    if not user:
        return jsonify({"error": "Invalid or expired reset token"}), 400

    user.password = bcrypt.generate_password_hash(password).decode('utf-8')
    db.session.commit()

    return jsonify({"message": "Password reset successful"}), 200


@auth_bp.route('/api/auth/profile', methods=['GET'])
@jwt_required()
def profile():
    user = db.session.get(Users, int(get_jwt_identity()))
    if not user:
        return jsonify({"error": "User not found"}), 404
    return jsonify({"user": serialize_user(user)}), 200


@auth_bp.route('/api/auth/profile', methods=['PUT'])
@jwt_required()
def update_profile():
    data = request.get_json(silent=True) or {}
    user = db.session.get(Users, int(get_jwt_identity()))
    if not user:
        return jsonify({"error": "User not found"}), 404

    if data.get('firstName'):
        user.first_name = data['firstName'].strip()
    if data.get('lastName'):
        user.last_name = data['lastName'].strip()
    if data.get('phone'):
        user.phone = data['phone'].strip()
    db.session.commit()

    return jsonify({
        "message": "Profile updated successfully",
        "user": serialize_user(user),
    }), 200


@auth_bp.route('/api/auth/addresses', methods=['GET'])
@jwt_required()
def list_addresses():
    addresses = (
        UserAddress.query
        .filter_by(user_id=int(get_jwt_identity()))
        .order_by(UserAddress.created_at.desc(), UserAddress.id.desc())
        .all()
    )
    return jsonify({"addresses": [serialize_address(a) for a in addresses]}), 200


@auth_bp.route('/api/auth/addresses', methods=['POST'])
@jwt_required()
def add_address():
    """
    Add a saved address
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - address_type
            - address_line1
            - city
            - state
            - postal_code
          properties:
            address_type: { type: string, enum: [billing, shipping] }
            address_line1: { type: string }
            address_line2: { type: string }
            city: { type: string }
            state: { type: string }
            postal_code: { type: string }
            country: { type: string, example: India }
            is_default: { type: boolean }
    responses:
      201:
        description: Address added
      400:
        description: Validation failed
    """
    address, error = save_address(int(get_jwt_identity()), request.get_json(silent=True) or {})
    if error:
        return jsonify({"error": error}), 400

    return jsonify({
        "message": "Address added successfully",
        "address": serialize_address(address),
    }), 201


@auth_bp.route('/api/auth/addresses/<int:address_id>', methods=['PUT'])
@jwt_required()
def update_address(address_id):
    user_id = int(get_jwt_identity())
    address = UserAddress.query.filter_by(id=address_id, user_id=user_id).first()
    if not address:
        return jsonify({"error": "Address not found"}), 404

    address, error = save_address(user_id, request.get_json(silent=True) or {}, address)
    if error:
        return jsonify({"error": error}), 400

    return jsonify({
        "message": "Address updated successfully",
        "address": serialize_address(address),
    }), 200


@auth_bp.route('/api/auth/addresses/<int:address_id>', methods=['DELETE'])
@jwt_required()
def delete_address(address_id):
    address = UserAddress.query.filter_by(id=address_id, user_id=int(get_jwt_identity())).first()
    if not address:
        return jsonify({"error": "Address not found"}), 404

    db.session.delete(address)
    db.session.commit()
    return jsonify({"message": "Address deleted successfully"}), 200


@auth_bp.route('/api/auth/csrf-token', methods=['GET'])
def csrf_token():
    if "csrf_token" not in session:
        session["csrf_token"] = generate_csrf_token()
    return jsonify({"csrfToken": session["csrf_token"]}), 200
