# backend/tests/unit/test_security.py

import hmac
import hashlib
import pytest
from datetime import timedelta
from fastapi import HTTPException
from jose import jwt

from storechat.services.jwt_service import jwt_service
from storechat.services.security_service import SecurityService


class TestSecurityService:

    def test_password_hash_round_trip(self):
        hashed = SecurityService.hash_password("s3cret-pass")
        assert hashed != "s3cret-pass"
        assert SecurityService.verify_password("s3cret-pass", hashed)
        assert not SecurityService.verify_password("wrong", hashed)

    def test_verify_password_handles_missing_hash(self):
        assert not SecurityService.verify_password("anything", None)
        assert not SecurityService.verify_password("anything", "not-a-bcrypt-hash")

    def test_webhook_signature(self):
        body = b'{"object":"page"}'
        signature = "sha256=" + hmac.new(b"app-secret", body, hashlib.sha256).hexdigest()
        assert SecurityService.verify_webhook_signature(body, signature, "app-secret")
        assert not SecurityService.verify_webhook_signature(body, signature, "other-secret")
        assert not SecurityService.verify_webhook_signature(body, "sha1=abc", "app-secret")
        assert not SecurityService.verify_webhook_signature(body, "", "app-secret")

    def test_admin_credentials(self):
        assert SecurityService.verify_admin_credentials("admin", "pw", "admin", "pw")
        assert not SecurityService.verify_admin_credentials("admin", "bad", "admin", "pw")
        assert not SecurityService.verify_admin_credentials("admin", "pw", "admin", None)

    def test_validate_message_content(self):
        assert SecurityService.validate_message_content("  مرحبا  ") == "مرحبا"
        with pytest.raises(ValueError, match="Message too long"):
            SecurityService.validate_message_content("a" * 5000)


class TestJWTService:

    def test_tenant_token_claims(self):
        token = jwt_service.create_tenant_token({"id": "tenant-1", "username": "owner"})
        payload = jwt_service.verify_token(token)
        assert payload["sub"] == "tenant-1"
        assert payload["role"] == "tenant"
        assert payload["type"] == "access"

    def test_oauth_state_is_not_an_access_token(self):
        payload = jwt_service.verify_token(jwt_service.create_oauth_state("tenant-1"))
        assert payload["type"] == "oauth_state"
        assert payload["sub"] == "tenant-1"

    def test_expired_token_is_rejected(self):
        token = jwt_service.create_access_token({"sub": "x"}, expires_delta=timedelta(seconds=-1))
        with pytest.raises(HTTPException) as exc_info:
            jwt_service.verify_token(token)
        assert exc_info.value.status_code == 401

    def test_token_signed_with_another_key_is_rejected(self):
        token = jwt.encode({"sub": "admin", "role": "admin", "type": "access"}, "x" * 40, algorithm="HS256")
        with pytest.raises(HTTPException):
            jwt_service.verify_token(token)
