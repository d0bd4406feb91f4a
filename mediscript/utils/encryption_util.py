# /mediscript/utils/encryption_util.py
from cryptography.fernet import Fernet, InvalidToken
from flask import current_app
from sqlalchemy.types import Text, TypeDecorator


class Encryptor:
    """
    Fernet wrapper used to keep patient PHI encrypted at rest.
    It must be initialized with the Flask app to load the key.
    """
    def __init__(self, app=None):
        self.fernet = None
        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initializes the Fernet suite with the key from the app's config."""
        key = app.config.get('EMR_ENCRYPTION_KEY')
        if not key:
            raise ValueError("EMR_ENCRYPTION_KEY not set in the Flask application config.")

        self.fernet = Fernet(key.encode())

    def _require_fernet(self):
        if self.fernet is None:
            raise RuntimeError("Encryptor has not been initialized with an app context.")
        return self.fernet

    def encrypt(self, data: str) -> str:
        fernet = self._require_fernet()
        if not isinstance(data, str):
            data = str(data)
        return fernet.encrypt(data.encode('utf-8')).decode('utf-8')

    def decrypt(self, token: str) -> str | None:
        """Decrypts a token; returns None for empty or tampered values."""
        fernet = self._require_fernet()
        if not token:
            return None
        try:
            return fernet.decrypt(token.encode('utf-8')).decode('utf-8')
        except InvalidToken:
            current_app.logger.error("Decryption failed: Invalid token provided.")
            return None


# Create a single, uninitialized instance to be imported by other modules.
encryptor = Encryptor()


class EncryptedText(TypeDecorator):
    """Text column that is transparently encrypted with the app's Fernet key.

    Empty strings and None are stored as NULL and read back as None.
    """
    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None or value == '':
            return None
        return encryptor.encrypt(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return encryptor.decrypt(value)
