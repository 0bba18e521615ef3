from core.imports import Blueprint, jsonify, request
from core.extensions import db
from core.auth import current_user_id, user_required
from models.userModel import Users, UserAddress
from routes.auth import save_address, serialize_address, serialize_user

users_bp = Blueprint('users', __name__)

# camelCase request keys accepted by the account pages
ADDRESS_FIELDS = {
    'addressType': 'address_type',
    'firstName': 'first_name',
    'lastName': 'last_name',
    'company': 'company',
    'addressLine1': 'address_line1',
    'addressLine2': 'address_line2',
    'city': 'city',
    'state': 'state',
    'postalCode': 'postal_code',
    'country': 'country',
    'phone': 'phone',
    'isDefault': 'is_default',
}


def address_fields(data):
    return {column: data[key] for key, column in ADDRESS_FIELDS.items() if key in data}


@users_bp.route('/api/users/profile', methods=['GET'])
@user_required
def get_profile():
    user = db.session.get(Users, current_user_id())
    if not user:
        return jsonify({"error": "User not found"}), 404
    return jsonify({"user": serialize_user(user)}), 200


@users_bp.route('/api/users/profile', methods=['PUT'])
@user_required
def update_profile():
    data = request.get_json(silent=True) or {}
    user = db.session.get(Users, current_user_id())
    if not user:
        return jsonify({"error": "User not found"}), 404

    for key, attr in (('firstName', 'first_name'), ('lastName', 'last_name'), ('phone', 'phone')):
        if data.get(key):
            setattr(user, attr, str(data[key]).strip())
    db.session.commit()

    return jsonify({
        "message": "Profile updated successfully",
        "user": serialize_user(user),
    }), 200


@users_bp.route('/api/users/addresses', methods=['GET'])
@user_required
def list_addresses():
    addresses = (
        UserAddress.query
        .filter_by(user_id=current_user_id())
        .order_by(UserAddress.is_default.desc(), UserAddress.id.asc())
        .all()
    )
    return jsonify({"addresses": [serialize_address(a) for a in addresses]}), 200


@users_bp.route('/api/users/addresses', methods=['POST'])
@user_required
def add_address():
    """
    Add a saved address
    ---
    tags:
      - Users
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - addressType
            - addressLine1
            - city
            - state
            - postalCode
          properties:
            addressType: { type: string, enum: [billing, shipping] }
            addressLine1: { type: string }
            addressLine2: { type: string }
            city: { type: string }
            state: { type: string }
            postalCode: { type: string }
            country: { type: string, example: India }
            isDefault: { type: boolean }
    responses:
      201:
        description: Address added
      400:
        description: Validation failed
      401:
        description: Not signed in
    """
    address, error = save_address(current_user_id(), address_fields(request.get_json(silent=True) or {}))
    if error:
        return jsonify({"error": error}), 400

    return jsonify({
        "message": "Address added successfully",
        "address": serialize_address(address),
    }), 201


@users_bp.route('/api/users/addresses/<int:address_id>', methods=['PUT'])
@user_required
def update_address(address_id):
    user_id = current_user_id()
    address = UserAddress.query.filter_by(id=address_id, user_id=user_id).first()
    if not address:
        return jsonify({"error": "Address not found"}), 404

    address, error = save_address(user_id, address_fields(request.get_json(silent=True) or {}), address)
    if error:
        return jsonify({"error": error}), 400

    return jsonify({
        "message": "Address updated successfully",
        "address": serialize_address(address),
    }), 200


@users_bp.route('/api/users/addresses/<int:address_id>', methods=['DELETE'])
@user_required
def delete_address(address_id):
    address = UserAddress.query.filter_by(id=address_id, user_id=current_user_id()).first()
    if not address:
        return jsonify({"error": "Address not found"}), 404

    db.session.delete(address)
    db.session.commit()
    return jsonify({"message": "Address deleted successfully"}), 200
