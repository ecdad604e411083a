# /storechat/routes/auth.py

import logging
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pymongo.errors import DuplicateKeyError

from storechat.config.settings import settings
from storechat.models.api import (
    ActivateRequest, AdminLoginRequest, APIResponse, AuthResponse, LoginRequest,
    RegisterRequest, TokenResponse,
)
from storechat.models.domain import Tenant
from storechat.services.db_service import db_service
from storechat.services.jwt_service import jwt_service
from storechat.services.quota_service import activation_terms
from storechat.services.security_service import SecurityService
from storechat.utils.dependencies import get_current_tenant
from storechat.utils.metrics import auth_attempts_counter
from storechat.utils.rate_limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)


def _public_user(user: dict) -> dict:
    return Tenant.from_document(user).model_dump()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(f"{settings.auth_rate_limit_per_minute}/minute")
async def register(request: Request, body: RegisterRequest):
    if await db_service.get_user_by_username(body.username):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")

    try:
        user = await db_service.create_user(
            body.username, SecurityService.hash_password(body.password), body.email, body.name
        )
    except DuplicateKeyError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")

    logger.info(f"Registered tenant {user['id']} ({body.username})")
    return AuthResponse(token=jwt_service.create_tenant_token(user), user=_public_user(user))


@router.post("/login", response_model=AuthResponse)
@limiter.limit(f"{settings.auth_rate_limit_per_minute}/minute")
async def login(request: Request, body: LoginRequest):
    user = await db_service.get_user_by_username(body.username)
    if not user or not SecurityService.verify_password(body.password, user.get("password")):
        auth_attempts_counter.labels(status="failure", method="password").inc()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")

    auth_attempts_counter.labels(status="success", method="password").inc()
    return AuthResponse(token=jwt_service.create_tenant_token(user), user=_public_user(user))


@router.get("/me", response_model=APIResponse)
async def read_current_user(tenant: Tenant = Depends(get_current_tenant)):
    return APIResponse(
        success=True,
        message="User authenticated successfully.",
        data={"user": tenant.model_dump()},
        version=settings.api_version
    )


@router.post("/activate", response_model=APIResponse)
@limiter.limit(f"{settings.auth_rate_limit_per_minute}/minute")
async def activate(request: Request, body: ActivateRequest, tenant: Tenant = Depends(get_current_tenant)):
    code = await db_service.claim_activation_code(body.code.strip().upper(), tenant.id)
    if not code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or used activation code")

    expiry, free_messages = activation_terms(code["type"])
    user = await db_service.update_user(tenant.id, {
        "activation_code": code["code"],
        "activation_expiry": expiry,
        "activation_type": code["type"],
        "free_messages_remaining": free_messages,
    })
    logger.info(f"Tenant {tenant.id} activated with a {code['type']} code until {expiry.isoformat()}")
    return APIResponse(
        success=True,
        message="Account activated successfully",
        data={"user": _public_user(user)},
        version=settings.api_version
    )


@router.post("/admin/login", response_model=TokenResponse)
@limiter.limit(f"{settings.auth_rate_limit_per_minute}/minute")
async def admin_login(request: Request, body: AdminLoginRequest):
    if not SecurityService.verify_admin_credentials(
        body.username, body.password, settings.admin_username, settings.admin_password
    ):
        auth_attempts_counter.labels(status="failure", method="admin").inc()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin credentials")

    auth_attempts_counter.labels(status="success", method="admin").inc()
    return TokenResponse(
        access_token=jwt_service.create_admin_token(body.username),
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_days * 86400
    )
