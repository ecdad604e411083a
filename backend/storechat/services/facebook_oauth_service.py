# /storechat/services/facebook_oauth_service.py

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from storechat.config.settings import settings
from storechat.services.db_service import db_service

# Facebook Login for connecting a tenant's pages (and their linked Instagram
# business accounts) so webhook events can be routed back to the tenant.

logger = logging.getLogger(__name__)

OAUTH_SCOPES = (
    "instagram_basic",
    "instagram_manage_messages",
    "pages_show_list",
    "pages_manage_metadata",
    "pages_messaging",
    "pages_read_engagement",
    "pages_manage_posts",
    "public_profile",
    "email",
)

USER_FIELDS = "id,name,email,accounts{name,access_token,id,instagram_business_account{id,name,username,profile_picture_url}}"
INSTAGRAM_FIELDS = "name,username,profile_picture_url,followers_count,media_count"

DEFAULT_TOKEN_LIFETIME = timedelta(days=60)
MAX_TOKEN_LIFETIME = timedelta(days=90)


class OAuthError(Exception):
    """The OAuth exchange with Facebook failed."""


def token_expiry(expires_in: Any, now: Optional[datetime] = None) -> datetime:
    """Expiry from Facebook's `expires_in` seconds, 60 days when absent, capped at 90 days."""
    now = now or datetime.now(timezone.utc)
    try:
        lifetime = timedelta(seconds=int(expires_in)) if expires_in else DEFAULT_TOKEN_LIFETIME
    except (TypeError, ValueError):
        lifetime = DEFAULT_TOKEN_LIFETIME
    if lifetime <= timedelta(0):
        lifetime = DEFAULT_TOKEN_LIFETIME
    return now + min(lifetime, MAX_TOKEN_LIFETIME)


def format_accounts(accounts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Dashboard view of connected pages; page tokens are never included."""
    formatted = []
    for account in accounts:
        instagram = account.get("instagram_account")
        formatted.append({
            "id": account.get("id"),
            "name": account.get("name"),
            "type": "facebook",
            "connected": True,
            "instagram": {
                "id": instagram.get("id"),
                "name": instagram.get("name") or instagram.get("username"),
                "username": instagram.get("username"),
                "profile_picture": instagram.get("profile_picture_url"),
                "followers_count": instagram.get("followers_count"),
                "media_count": instagram.get("media_count"),
                "connected": True,
            } if instagram else None,
        })
    return formatted


class FacebookOAuthService:
    def __init__(self, app_id: Optional[str], app_secret: Optional[str], redirect_uri: Optional[str], database):
        self.app_id = app_id
        self.app_secret = app_secret
        self.redirect_uri = redirect_uri
        self.db = database
        self.base_url = settings.graph_api_base_url
        self.http_client = httpx.AsyncClient(timeout=15.0)

    @property
    def configured(self) -> bool:
        return bool(self.app_id and self.app_secret and self.redirect_uri)

    def build_authorization_url(self, state: str) -> str:
        query = urlencode({
            "client_id": self.app_id,
            "redirect_uri": self.redirect_uri,
            "state": state,
            "scope": ",".join(OAUTH_SCOPES),
            "display": "popup",
        })
        return f"{settings.facebook_dialog_url}?{query}"

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self.http_client.get(f"{self.base_url}/{path}", params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise OAuthError(f"Graph API {path} returned {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise OAuthError(f"Graph API {path} request failed: {e}") from e
        return response.json()

    async def _instagram_details(self, instagram: Dict[str, Any], page_token: str) -> Dict[str, Any]:
        try:
            details = await self._get(instagram["id"], {"access_token": page_token, "fields": INSTAGRAM_FIELDS})
        except OAuthError as e:
            logger.warning(f"Could not fetch Instagram details for {instagram.get('id')}: {e}")
            return instagram
        return {**instagram, **details}

    async def _process_account(self, account: Dict[str, Any]) -> Dict[str, Any]:
        instagram = account.get("instagram_business_account")
        if instagram:
            instagram = await self._instagram_details(instagram, account["access_token"])
        return {
            "id": account["id"],
            "name": account.get("name", ""),
            "access_token": account["access_token"],
            "instagram_account": instagram,
        }

    async def complete_connection(self, tenant_id: str, code: str) -> Dict[str, Any]:
        """Exchanges the OAuth code and stores the tenant's page connection."""
        token_data = await self._get("oauth/access_token", {
            "client_id": self.app_id,
            "client_secret": self.app_secret,
            "redirect_uri": self.redirect_uri,
            "code": code,
        })
        access_token = token_data.get("access_token")
        if not access_token:
            raise OAuthError("Facebook did not return an access token")

        profile = await self._get("me", {"access_token": access_token, "fields": USER_FIELDS})
        raw_accounts = (profile.get("accounts") or {}).get("data", [])
        accounts = await asyncio.gather(*(self._process_account(account) for account in raw_accounts))

        now = datetime.now(timezone.utc)
        connection = {
            "facebook_id": profile.get("id"),
            "name": profile.get("name", ""),
            "email": profile.get("email", ""),
            "access_token": access_token,
            "expires_at": token_expiry(token_data.get("expires_in"), now),
            "connected_at": now,
            "accounts": list(accounts),
        }
        await self.db.save_page_connection(tenant_id, connection)
        logger.info(f"Stored Facebook connection for tenant {tenant_id} with {len(accounts)} pages")
        return connection

    async def get_connection_summary(self, tenant_id: str) -> Dict[str, Any]:
        connection = await self.db.get_page_connection(tenant_id)
        if not connection:
            return {"connected": False}

        expires_at = connection.get("expires_at")
        if expires_at and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at and expires_at < datetime.now(timezone.utc):
            return {
                "connected": True,
                "expired": True,
                "name": connection.get("name"),
                "email": connection.get("email"),
            }

        return {
            "connected": True,
            "expired": False,
            "name": connection.get("name"),
            "email": connection.get("email"),
            "facebook_id": connection.get("facebook_id"),
            "connected_at": connection.get("connected_at"),
            "accounts": format_accounts(connection.get("accounts", [])),
        }

    async def close(self) -> None:
        await self.http_client.aclose()


facebook_oauth_service = FacebookOAuthService(
    settings.facebook_app_id,
    settings.facebook_app_secret,
    settings.facebook_redirect_uri,
    db_service,
)
