from functools import wraps
from flask import request, current_app, jsonify, make_response, g
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from sqlalchemy.exc import SQLAlchemyError
from mediscript.extensions import db
from mediscript.models.system_models import AuditLog
from mediscript.models.user_models import User

def _write_audit_entry(user_id, action, resource, resource_id, success, details):
    log_entry = AuditLog(
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=resource_id,
        ip_address=request.remote_addr,
        user_agent=request.headers.get('User-Agent'),
        success=success,
        details=details
    )
    try:
        db.session.add(log_entry)
        db.session.commit()
    except SQLAlchemyError as db_error:
        db.session.rollback()
        current_app.audit_logger.error(f"Failed to log audit entry due to DB error: {db_error}")

    current_app.audit_logger.info(
        f"Action='{action}', Resource='{resource}', ResourceID='{resource_id}', "
        f"UserID='{user_id}', Success='{success}', Details='{details}'"
    )

def audit_log(action, resource):
    """Records who did what to which record, for every decorated endpoint."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_id = None
            resource_id = kwargs.get('patient_id')

            try:
                user_id = get_jwt_identity()
            except RuntimeError:
                # No JWT in this request (registration, login)
                pass

            try:
                response = make_response(f(*args, **kwargs))
            except Exception as e:
                _write_audit_entry(user_id, action, resource, resource_id, False, f"An error occurred: {str(e)}")
                raise

            success = response.status_code < 400

            # Newly created resources are only known from the response body
            if success and response.is_json and resource_id is None:
                body = response.get_json(silent=True) or {}
                if action == "USER_REGISTRATION":
                    user_id = body.get('user_id')
                elif isinstance(body.get('patient'), dict):
                    resource_id = body['patient'].get('id')

            _write_audit_entry(
                user_id, action, resource, resource_id, success,
                f"Request completed. Status: {response.status_code}"
            )
            return response

        return decorated_function
    return decorator

def doctor_required(f):
    """Verifies the JWT and loads the active doctor account into g.current_user."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        verify_jwt_in_request()
        user_id = get_jwt_identity()
        user = db.session.get(User, int(user_id)) if user_id else None

        if not user or not user.is_active:
            return jsonify({'error': 'User not found or inactive'}), 403

        g.current_user = user
        return f(*args, **kwargs)
    return decorated_function
