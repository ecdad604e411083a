# /storechat/routes/oauth.py

import logging
from urllib.parse import urlencode
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse

from storechat.config.settings import settings
from storechat.models.api import APIResponse
from storechat.models.domain import Tenant
from storechat.services.db_service import db_service
from storechat.services.facebook_oauth_service import facebook_oauth_service, OAuthError
from storechat.services.jwt_service import jwt_service
from storechat.utils.dependencies import get_current_tenant

# Connecting a tenant's Facebook pages. The callback is reached by the
# browser redirect from Facebook, so it authenticates through the signed
# `state` instead of a bearer token.

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/oauth",
    tags=["OAuth"]
)


def _redirect(url: str, **params) -> RedirectResponse:
    if params:
        url = f"{url}?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


@router.get("/facebook", response_model=APIResponse)
async def start_facebook_oauth(tenant: Tenant = Depends(get_current_tenant)):
    if not facebook_oauth_service.configured:
        raise HTTPException(status_code=status.HTTP_501_NOT_IMPLEMENTED, detail="Facebook login is not configured")

    state = jwt_service.create_oauth_state(tenant.id)
    return APIResponse(
        success=True,
        message="Authorization URL created",
        data={"auth_url": facebook_oauth_service.build_authorization_url(state)},
        version=settings.api_version
    )


@router.get("/callback")
async def facebook_oauth_callback(
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
):
    """Completes the Facebook login round trip and redirects back to the dashboard."""
    if error or not code or not state:
        logger.warning(f"Facebook OAuth callback without code: {error}")
        return _redirect(settings.oauth_error_url, error="missing_code")

    try:
        payload = jwt_service.verify_token(state)
    except HTTPException:
        return _redirect(settings.oauth_error_url, error="invalid_state")
    if payload.get("type") != "oauth_state" or not payload.get("sub"):
        return _redirect(settings.oauth_error_url, error="invalid_state")

    tenant_id = payload["sub"]
    if not await db_service.get_user_by_id(tenant_id):
        return _redirect(settings.oauth_error_url, error="user_not_found")

    try:
        connection = await facebook_oauth_service.complete_connection(tenant_id, code)
    except OAuthError as e:
        logger.error(f"Facebook OAuth exchange failed for tenant {tenant_id}: {e}")
        return _redirect(settings.oauth_error_url, error="exchange_failed")

    return _redirect(settings.oauth_success_url, pages=len(connection["accounts"]))


@router.get("/accounts", response_model=APIResponse)
async def connected_accounts(tenant: Tenant = Depends(get_current_tenant)):
    summary = await facebook_oauth_service.get_connection_summary(tenant.id)
    return APIResponse(success=True, message="Connection status retrieved", data=summary, version=settings.api_version)


@router.delete("/accounts", response_model=APIResponse)
async def disconnect_accounts(tenant: Tenant = Depends(get_current_tenant)):
    removed = await db_service.delete_page_connection(tenant.id)
    if removed:
        logger.info(f"Facebook connection removed for tenant {tenant.id}")
    return APIResponse(
        success=True,
        message="Facebook account disconnected" if removed else "No Facebook account was connected",
        data={"removed": removed},
        version=settings.api_version
    )
