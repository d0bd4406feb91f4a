import hashlib
from datetime import datetime, timedelta
from mediscript.extensions import db, bcrypt
from mediscript.utils.encryption_util import EncryptedText

MAX_FAILED_LOGINS = 5
LOCKOUT_PERIOD = timedelta(minutes=30)
PLACEHOLDER_DOCTOR_NAME = 'Doctor'


class User(db.Model):
    """Doctor account: the auth identity every patient record hangs off."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(EncryptedText, nullable=False)
    email_hash = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = db.Column(db.DateTime)
    failed_login_attempts = db.Column(db.Integer, default=0)
    account_locked = db.Column(db.Boolean, default=False)
    account_locked_until = db.Column(db.DateTime)
    password_changed_at = db.Column(db.DateTime, default=datetime.utcnow)
    is_active = db.Column(db.Boolean, default=True)

    # --- Relationships ---
    audit_logs = db.relationship('AuditLog', backref='user', lazy='dynamic')
    doctor_profile = db.relationship('DoctorProfile', backref='user', uselist=False, cascade="all, delete-orphan")
    patients = db.relationship('Patient', back_populates='doctor', lazy='dynamic')

    @staticmethod
    def create_hash(value: str) -> str:
        """Creates a SHA-256 hash for a given string."""
        if not value:
            return ""
        return hashlib.sha256(value.strip().lower().encode('utf-8')).hexdigest()

    @classmethod
    def find_by_email(cls, email):
        return cls.query.filter_by(email_hash=cls.create_hash(email)).first()

    def set_password(self, password: str) -> None:
        """Hashes and sets the user's password, enforcing complexity rules."""
        if not self._validate_password_strength(password):
            raise ValueError(
                "Password must be at least 12 characters and include upper and lower case "
                "letters, a digit and a symbol"
            )
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')
        self.password_changed_at = datetime.utcnow()

    def is_locked(self) -> bool:
        return bool(
            self.account_locked
            and self.account_locked_until
            and datetime.utcnow() < self.account_locked_until
        )

    def check_password(self, password: str) -> bool:
        """Checks a password and updates the lockout counters. Caller commits."""
        if self.is_locked():
            return False
        elif self.account_locked:
            self.account_locked = False
            self.account_locked_until = None
            self.failed_login_attempts = 0

        is_valid = bcrypt.check_password_hash(self.password_hash, password)

        if not is_valid:
            self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
            if self.failed_login_attempts >= MAX_FAILED_LOGINS:
                self.account_locked = True
                self.account_locked_until = datetime.utcnow() + LOCKOUT_PERIOD
        else:
            self.failed_login_attempts = 0
            self.last_login = datetime.utcnow()

        return is_valid

    @staticmethod
    def _validate_password_strength(password: str) -> bool:
        return (bool(password) and len(password) >= 12 and
                any(c.isupper() for c in password) and
                any(c.islower() for c in password) and
                any(c.isdigit() for c in password) and
                any(c in '!@#$%^&*()_+-=[]{}|;:,.<>?' for c in password))


class DoctorProfile(db.Model):
    """Doctor-facing profile, sharing its id with the auth identity."""
    __tablename__ = 'doctor_profiles'

    EDITABLE_FIELDS = ('name', 'specialization', 'clinic_name', 'clinic_address', 'phone_number')

    id = db.Column(db.Integer, db.ForeignKey('users.id'), primary_key=True)
    name = db.Column(db.String(255), nullable=False, default=PLACEHOLDER_DOCTOR_NAME)
    specialization = db.Column(db.String(100))
    clinic_name = db.Column(db.String(255))
    clinic_address = db.Column(db.String(1024))
    phone_number = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.user.email if self.user else None,
            'specialization': self.specialization,
            'clinic_name': self.clinic_name,
            'clinic_address': self.clinic_address,
            'phone_number': self.phone_number,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
