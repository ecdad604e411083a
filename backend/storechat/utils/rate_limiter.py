# /storechat/utils/rate_limiter.py

from fastapi import HTTPException, Request
from slowapi import Limiter

from storechat.config.settings import settings
from storechat.services.jwt_service import jwt_service
from storechat.utils.request_utils import get_remote_address

# Authenticated requests are limited per account; anonymous and webhook
# traffic per client address.


def get_rate_limit_key(request: Request) -> str:
    authorization = request.headers.get("authorization", "")
    token = authorization[7:] if authorization.lower().startswith("bearer ") else request.headers.get("x-auth-token")
    if token:
        try:
            payload = jwt_service.verify_token(token)
        except HTTPException:
            payload = {}
        if payload.get("sub"):
            return f"{payload.get('role', 'user')}:{payload['sub']}"
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"]
)
