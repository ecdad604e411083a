# /storechat/utils/dependencies.py

import secrets
import structlog
from fastapi import Request, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from storechat.config.settings import settings
from storechat.models.domain import Tenant
from storechat.services.jwt_service import jwt_service
from storechat.services.security_service import SecurityService
from storechat.services.db_service import db_service
from storechat.utils.metrics import webhook_signature_counter
from storechat.utils.request_utils import get_remote_address

bearer_scheme = HTTPBearer(auto_error=False)
log = structlog.get_logger(__name__)


def _extract_token(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str:
    # `x-auth-token` is still sent by older dashboard builds
    token = credentials.credentials if credentials else request.headers.get("x-auth-token")
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token, authorization denied",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


async def verify_jwt_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict:
    payload = jwt_service.verify_token(_extract_token(request, credentials))
    if payload.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    return payload


async def get_current_tenant(payload: dict = Depends(verify_jwt_token)) -> Tenant:
    if payload.get("role") != "tenant" or not payload.get("sub"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Tenant context missing")

    user = await db_service.get_user_by_id(payload["sub"])
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return Tenant.from_document(user)


async def require_admin(payload: dict = Depends(verify_jwt_token)) -> dict:
    if payload.get("role") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return payload


async def verify_messenger_signature(request: Request) -> bytes:
    """Checks X-Hub-Signature-256 when an app secret is configured; returns the raw body."""
    body = await request.body()
    if not settings.facebook_app_secret:
        return body

    signature = request.headers.get("x-hub-signature-256", "")
    if not SecurityService.verify_webhook_signature(body, signature, settings.facebook_app_secret):
        webhook_signature_counter.labels(status="invalid").inc()
        log.error("Invalid webhook signature.", client_ip=get_remote_address(request), signature=signature[:50])
        raise HTTPException(status_code=403, detail="Invalid signature")
    webhook_signature_counter.labels(status="valid").inc()
    return body


async def verify_metrics_access(request: Request):
    if settings.api_key:
        provided_key = request.headers.get("X-API-KEY")
        if not (provided_key and secrets.compare_digest(provided_key, settings.api_key)):
            raise HTTPException(status_code=403, detail="Invalid or missing API key")
