# /storechat/services/security_service.py

import hmac
import hashlib
import secrets
import bcrypt

# Password hashing, credential comparison and Meta webhook signature checks.

class SecurityService:
    @staticmethod
    def verify_webhook_signature(payload: bytes, signature: str, secret: str) -> bool:
        if not signature or not signature.startswith('sha256='):
            return False
        expected_signature = hmac.new(secret.encode('utf-8'), payload, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected_signature, signature[7:])

    @staticmethod
    def hash_password(password: str) -> str:
        return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    @staticmethod
    def verify_password(password: str, hashed: str) -> bool:
        """False for a wrong password and for a missing or malformed hash."""
        try:
            return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))
        except (ValueError, TypeError, AttributeError):
            return False

    @staticmethod
    def verify_admin_credentials(username: str, password: str, expected_username: str, expected_password: str | None) -> bool:
        if not expected_password:
            return False
        username_ok = secrets.compare_digest(username.encode('utf-8'), expected_username.encode('utf-8'))
        password_ok = secrets.compare_digest(password.encode('utf-8'), expected_password.encode('utf-8'))
        return username_ok and password_ok

    @staticmethod
    def validate_message_content(message: str) -> str:
        if len(message) > 4096:
            raise ValueError("Message too long")
        return message.strip()
