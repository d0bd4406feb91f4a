from datetime import datetime, timezone
from flask import request, jsonify
from flask_jwt_extended import (
    create_access_token, create_refresh_token,
    get_jwt_identity, get_jwt
)
from mediscript.extensions import db
from mediscript.models.system_models import RevokedToken
from mediscript.services import auth_service
from mediscript.services.auth_service import AuthError

def _tokens_for(user):
    # Identity is the account id only; no PII in the token payload.
    return {
        'access_token': create_access_token(identity=str(user.id)),
        'refresh_token': create_refresh_token(identity=str(user.id)),
    }

def register_user():
    """Registers a doctor account together with its profile."""
    data = request.get_json(silent=True) or {}

    required_fields = ['email', 'password', 'name']
    if any(not data.get(field) for field in required_fields):
        return jsonify({'error': 'Missing required fields: email, password, name'}), 400

    try:
        user = auth_service.register_doctor(data['email'], data['password'], data)
    except AuthError as e:
        return jsonify({'error': str(e)}), e.status_code

    return jsonify({
        'message': 'Registration successful',
        'user_id': user.id,
        'doctor': user.doctor_profile.to_dict(),
        **_tokens_for(user)
    }), 201

def login_user():
    data = request.get_json(silent=True) or {}
    if not data.get('email') or not data.get('password'):
        return jsonify({'error': 'Email and password required'}), 400

    try:
        user = auth_service.authenticate(data['email'], data['password'])
    except AuthError as e:
        return jsonify({'error': str(e)}), e.status_code

    profile = auth_service.get_or_create_doctor_profile(user)
    return jsonify({
        **_tokens_for(user),
        'user': {'uid': user.id, 'email': user.email},
        'doctor': profile.to_dict()
    }), 200

def logout_user():
    claims = get_jwt()
    revoked_token = RevokedToken(
        jti=claims['jti'],
        expires_at=datetime.fromtimestamp(claims['exp'], tz=timezone.utc).replace(tzinfo=None)
    )
    db.session.add(revoked_token)
    db.session.commit()
    return jsonify({'message': 'Successfully logged out'}), 200

def refresh_token():
    user_id = get_jwt_identity()
    try:
        user = auth_service.get_user(user_id)
    except AuthError:
        return jsonify({'error': 'User not found or inactive'}), 403
    if not user.is_active:
        return jsonify({'error': 'User not found or inactive'}), 403

    access_token = create_access_token(identity=str(user.id))
    return jsonify({'access_token': access_token}), 200

def change_user_password():
    data = request.get_json(silent=True) or {}
    try:
        auth_service.change_password(
            get_jwt_identity(), data.get('current_password'), data.get('new_password')
        )
    except AuthError as e:
        return jsonify({'error': str(e)}), e.status_code
    return jsonify({'message': 'Password changed successfully'}), 200
