# /storechat/services/jwt_service.py

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fastapi import HTTPException, status

from storechat.config.settings import settings

# JSON Web Token handling: tenant and admin access tokens, plus the short-lived
# signed `state` used during the Facebook OAuth round trip.

class JWTService:
    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def create_access_token(self, data: dict, expires_delta: Optional[timedelta] = None) -> str:
        to_encode = data.copy()
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(days=settings.jwt_access_token_expire_days))
        to_encode.update({
            "exp": expire,
            "iat": now,
            "jti": str(uuid.uuid4())
        })
        to_encode.setdefault("type", "access")
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def create_tenant_token(self, user: dict) -> str:
        return self.create_access_token({"sub": user["id"], "username": user["username"], "role": "tenant"})

    def create_admin_token(self, username: str) -> str:
        return self.create_access_token({"sub": username, "role": "admin"})

    def create_oauth_state(self, tenant_id: str) -> str:
        return self.create_access_token(
            {"sub": tenant_id, "type": "oauth_state"},
            expires_delta=timedelta(minutes=settings.oauth_state_expire_minutes),
        )

    def verify_token(self, token: str) -> dict:
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Token verification failed: {e}",
                headers={"WWW-Authenticate": "Bearer"},
            )

# Globally accessible instance
jwt_service = JWTService(settings.jwt_secret_key, settings.jwt_algorithm)
