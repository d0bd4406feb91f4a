# /mediscript/services/auth_session.py
"""
In-process session for tools that act as a signed-in doctor (the CLI).

Every transition publishes a fresh AuthState snapshot to subscribers; the
only in-place change is merging updated fields into the current doctor
profile.
"""
import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional

from mediscript.models.user_models import DoctorProfile
from mediscript.services import auth_service
from mediscript.services.auth_service import AuthError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthUser:
    uid: int
    email: Optional[str]


@dataclass(frozen=True)
class AuthState:
    user: Optional[AuthUser] = None
    doctor: Optional[dict] = None
    loading: bool = True
    error: Optional[str] = None


class AuthSession:
    def __init__(self):
        self._state = AuthState()
        self._subscribers: List[Callable[[AuthState], None]] = []

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def doctor_id(self):
        return self._state.user.uid if self._state.user else None

    def subscribe(self, callback):
        """Register a listener; returns a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, state):
        self._state = state
        for callback in list(self._subscribers):
            callback(state)

    def _fail(self, error):
        self._publish(replace(self._state, loading=False, error=str(error)))

    def _signed_in(self, user):
        profile = auth_service.get_or_create_doctor_profile(user)
        self._publish(AuthState(
            user=AuthUser(uid=user.id, email=user.email),
            doctor=profile.to_dict(),
            loading=False,
            error=None,
        ))

    def register(self, email, password, profile_data=None):
        try:
            user = auth_service.register_doctor(email, password, profile_data)
        except AuthError as e:
            logger.info("Registration failed: %s", e)
            self._fail(e)
            raise
        self._signed_in(user)
        return self._state

    def login(self, email, password):
        try:
            user = auth_service.authenticate(email, password)
        except AuthError as e:
            logger.info("Login failed: %s", e)
            self._fail(e)
            raise
        self._signed_in(user)
        return self._state

    def logout(self):
        self._publish(AuthState(user=None, doctor=None, loading=False, error=None))
        return self._state

    def update_doctor_profile(self, data):
        if self._state.user is None:
            error = AuthError('User not authenticated')
            self._fail(error)
            raise error
        try:
            profile = auth_service.update_doctor_profile(self._state.user.uid, data)
        except AuthError as e:
            self._fail(e)
            raise

        if self._state.doctor is not None:
            merged = profile.to_dict()
            self._state.doctor.update({k: merged[k] for k in data if k in DoctorProfile.EDITABLE_FIELDS})
            self._publish(self._state)
        else:
            self._publish(replace(self._state, doctor=profile.to_dict()))
        return self._state
