# /mediscript/services/auth_service.py
import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from mediscript.extensions import db
from mediscript.models.user_models import User, DoctorProfile, PLACEHOLDER_DOCTOR_NAME

logger = logging.getLogger(__name__)


class AuthError(Exception):
    status_code = 400


class RegistrationError(AuthError):
    status_code = 400


class EmailAlreadyRegisteredError(RegistrationError):
    status_code = 409

    def __init__(self, message='Email already exists'):
        super().__init__(message)


class AuthenticationError(AuthError):
    status_code = 401

    def __init__(self, message='Invalid email or password'):
        super().__init__(message)


class AccountLockedError(AuthError):
    status_code = 423

    def __init__(self, message='Account locked due to multiple failed attempts'):
        super().__init__(message)


class AccountInactiveError(AuthError):
    status_code = 403

    def __init__(self, message='Account deactivated'):
        super().__init__(message)


class UserNotFoundError(AuthError):
    status_code = 404

    def __init__(self, message='User not found'):
        super().__init__(message)


def _profile_fields(data):
    return {
        name: (data[name].strip() if isinstance(data[name], str) else data[name])
        for name in DoctorProfile.EDITABLE_FIELDS
        if name in data
    }


def register_doctor(email, password, profile_data=None):
    """Create an account and its doctor profile at the same id."""
    email = (email or '').strip()
    if not email or '@' not in email:
        raise RegistrationError('A valid email is required')
    if User.find_by_email(email):
        raise EmailAlreadyRegisteredError()

    user = User(email=email.lower(), email_hash=User.create_hash(email))
    try:
        user.set_password(password)
    except ValueError as e:
        raise RegistrationError(str(e)) from e

    fields = _profile_fields(profile_data or {})
    if not fields.get('name'):
        fields['name'] = PLACEHOLDER_DOCTOR_NAME
    user.doctor_profile = DoctorProfile(**fields)

    try:
        db.session.add(user)
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise EmailAlreadyRegisteredError() from e

    logger.info("Registered doctor account %s", user.id)
    return user


def authenticate(email, password):
    """Check credentials, applying the failed-login lockout."""
    user = User.find_by_email(email) if email else None
    if user is None:
        raise AuthenticationError()

    if user.is_locked():
        raise AccountLockedError()

    is_valid = user.check_password(password or '')
    db.session.commit()

    if not is_valid:
        logger.info("Failed login for account %s (%d attempts)", user.id, user.failed_login_attempts)
        if user.is_locked():
            raise AccountLockedError()
        raise AuthenticationError()
    if not user.is_active:
        raise AccountInactiveError()
    return user


def get_user(user_id):
    user = db.session.get(User, int(user_id)) if user_id is not None else None
    if user is None:
        raise UserNotFoundError()
    return user


def get_or_create_doctor_profile(user):
    """Return the profile, creating a placeholder when none exists yet."""
    if user.doctor_profile is not None:
        return user.doctor_profile

    profile = DoctorProfile(id=user.id, name=PLACEHOLDER_DOCTOR_NAME)
    user.doctor_profile = profile
    db.session.commit()
    logger.info("Created placeholder doctor profile for account %s", user.id)
    return profile


def update_doctor_profile(user_id, data):
    """Merge editable profile fields; email and id are never changed here."""
    user = get_user(user_id)
    profile = get_or_create_doctor_profile(user)

    fields = _profile_fields(data)
    if 'name' in fields and not fields['name']:
        raise AuthError('Name cannot be empty')

    for name, value in fields.items():
        setattr(profile, name, value)
    profile.updated_at = datetime.utcnow()

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Profile update failed for account %s: %s", user_id, e)
        raise AuthError('Profile update failed') from e
    return profile


def change_password(user_id, current_password, new_password):
    user = get_user(user_id)
    if not current_password or not new_password:
        raise AuthError('Current and new passwords required')
    if not user.check_password(current_password):
        db.session.commit()
        raise AuthenticationError('Invalid current password')
    try:
        user.set_password(new_password)
    except ValueError as e:
        db.session.rollback()
        raise AuthError(str(e)) from e
    db.session.commit()
    return user
