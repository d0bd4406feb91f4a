"""Tests for doctor accounts and the in-process auth session."""
import pytest
from sqlalchemy import text

from mediscript.extensions import db
from mediscript.models.user_models import MAX_FAILED_LOGINS, PLACEHOLDER_DOCTOR_NAME, User
from mediscript.services import auth_service
from mediscript.services.auth_service import (
    AccountLockedError, AuthError, AuthenticationError, EmailAlreadyRegisteredError, RegistrationError,
)
from mediscript.services.auth_session import AuthSession, AuthState
from tests.conftest import DOCTOR_PASSWORD


# ---------------------------------------------------------------------------
# auth_service
# ---------------------------------------------------------------------------

class TestRegisterDoctor:
    def test_profile_shares_account_id(self, doctor):
        assert doctor.doctor_profile.id == doctor.id
        assert doctor.doctor_profile.name == "Gregory House"
        assert doctor.email == "house@example.com"

    def test_email_is_encrypted_and_hashed(self, doctor):
        raw = db.session.execute(text("SELECT email FROM users")).scalar_one()
        assert raw != "house@example.com"
        assert User.find_by_email("  HOUSE@example.com ") is not None

    def test_duplicate_email(self, doctor):
        with pytest.raises(EmailAlreadyRegisteredError):
            auth_service.register_doctor("House@Example.com", DOCTOR_PASSWORD)

    def test_weak_password(self, app):
        with pytest.raises(RegistrationError):
            auth_service.register_doctor("new@example.com", "short")

    def test_name_defaults_to_placeholder(self, app):
        user = auth_service.register_doctor("anon@example.com", DOCTOR_PASSWORD)
        assert user.doctor_profile.name == PLACEHOLDER_DOCTOR_NAME


class TestAuthenticate:
    def test_valid_credentials(self, doctor):
        assert auth_service.authenticate("house@example.com", DOCTOR_PASSWORD) is doctor
        assert doctor.last_login is not None

    def test_wrong_password(self, doctor):
        with pytest.raises(AuthenticationError):
            auth_service.authenticate("house@example.com", "Wr0ng!Password")
        assert doctor.failed_login_attempts == 1

    def test_unknown_email(self, app):
        with pytest.raises(AuthenticationError):
            auth_service.authenticate("nobody@example.com", DOCTOR_PASSWORD)

    def test_lockout_after_repeated_failures(self, doctor):
        for _ in range(MAX_FAILED_LOGINS - 1):
            with pytest.raises(AuthenticationError):
                auth_service.authenticate("house@example.com", "Wr0ng!Password")
        with pytest.raises(AccountLockedError):
            auth_service.authenticate("house@example.com", "Wr0ng!Password")
        with pytest.raises(AccountLockedError):
            auth_service.authenticate("house@example.com", DOCTOR_PASSWORD)

    def test_change_password(self, doctor):
        auth_service.change_password(doctor.id, DOCTOR_PASSWORD, "N3w!Passw0rd-xyz")
        assert auth_service.authenticate("house@example.com", "N3w!Passw0rd-xyz") is doctor
        with pytest.raises(AuthenticationError):
            auth_service.change_password(doctor.id, DOCTOR_PASSWORD, "An0ther!Passw0rd")


class TestDoctorProfile:
    def test_update_editable_fields_only(self, doctor):
        profile = auth_service.update_doctor_profile(
            doctor.id, {"clinic_name": "Princeton-Plainsboro", "id": 999, "email": "x@example.com"}
        )
        assert profile.clinic_name == "Princeton-Plainsboro"
        assert profile.id == doctor.id
        assert doctor.email == "house@example.com"

    def test_empty_name_rejected(self, doctor):
        with pytest.raises(AuthError):
            auth_service.update_doctor_profile(doctor.id, {"name": "  "})

    def test_placeholder_created_when_missing(self, doctor):
        db.session.delete(doctor.doctor_profile)
        db.session.commit()
        assert doctor.doctor_profile is None

        profile = auth_service.get_or_create_doctor_profile(doctor)
        assert profile.id == doctor.id
        assert profile.name == PLACEHOLDER_DOCTOR_NAME


# ---------------------------------------------------------------------------
# AuthSession
# ---------------------------------------------------------------------------

@pytest.fixture
def session():
    return AuthSession()


@pytest.fixture
def published(session):
    states = []
    session.subscribe(states.append)
    return states


class TestAuthSession:
    def test_initial_state_is_loading(self, session):
        assert session.state == AuthState(user=None, doctor=None, loading=True, error=None)
        assert session.doctor_id is None

    def test_login_publishes_signed_in_snapshot(self, doctor, session, published):
        state = session.login("house@example.com", DOCTOR_PASSWORD)
        assert published == [state]
        assert state.user.uid == doctor.id
        assert state.user.email == "house@example.com"
        assert state.doctor["name"] == "Gregory House"
        assert not state.loading and state.error is None
        assert session.doctor_id == doctor.id

    def test_failed_login_publishes_error(self, doctor, session, published):
        with pytest.raises(AuthenticationError):
            session.login("house@example.com", "Wr0ng!Password")
        assert len(published) == 1
        assert published[0].user is None
        assert published[0].error == "Invalid email or password"
        assert not published[0].loading

    def test_register_signs_in(self, app, session, published):
        state = session.register("cuddy@example.com", DOCTOR_PASSWORD, {"name": "Lisa Cuddy"})
        assert state.user is not None
        assert state.doctor["name"] == "Lisa Cuddy"
        assert published[-1] is state

    def test_login_creates_missing_profile(self, doctor, session):
        db.session.delete(doctor.doctor_profile)
        db.session.commit()
        state = session.login("house@example.com", DOCTOR_PASSWORD)
        assert state.doctor["name"] == PLACEHOLDER_DOCTOR_NAME
        assert state.doctor["id"] == doctor.id

    def test_logout_clears_state(self, doctor, session, published):
        session.login("house@example.com", DOCTOR_PASSWORD)
        signed_in = session.state
        state = session.logout()
        assert state.user is None and state.doctor is None
        assert signed_in.user is not None
        assert published[-1] is state

    def test_profile_update_merges_in_place(self, doctor, session, published):
        before = session.login("house@example.com", DOCTOR_PASSWORD)
        doctor_dict = before.doctor
        state = session.update_doctor_profile({"specialization": "Nephrology", "unknown": "ignored"})

        assert state is before
        assert state.doctor is doctor_dict
        assert doctor_dict["specialization"] == "Nephrology"
        assert "unknown" not in doctor_dict
        assert published[-1] is before

    def test_profile_update_requires_sign_in(self, session, published):
        with pytest.raises(AuthError):
            session.update_doctor_profile({"name": "Nobody"})
        assert published[-1].error == "User not authenticated"

    def test_unsubscribe(self, doctor, session):
        states = []
        unsubscribe = session.subscribe(states.append)
        unsubscribe()
        session.login("house@example.com", DOCTOR_PASSWORD)
        assert states == []
