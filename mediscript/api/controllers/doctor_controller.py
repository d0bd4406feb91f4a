from flask import request, jsonify, g
from mediscript.services import auth_service
from mediscript.services.auth_service import AuthError


def get_doctor_profile():
    """Profile of the signed-in doctor; a placeholder is created if missing."""
    profile = auth_service.get_or_create_doctor_profile(g.current_user)
    return jsonify({'doctor': profile.to_dict()}), 200


def update_doctor_profile():
    data = request.get_json(silent=True) or {}
    try:
        profile = auth_service.update_doctor_profile(g.current_user.id, data)
    except AuthError as e:
        return jsonify({'error': str(e)}), e.status_code
    return jsonify({'message': 'Profile updated', 'doctor': profile.to_dict()}), 200
