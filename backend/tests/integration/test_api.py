# backend/tests/integration/test_api.py
import hmac
import hashlib
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

from storechat.config.settings import settings
from storechat.models.domain import OrderSignal
from storechat.services.ai_service import GenerationError
from storechat.services.conversation_service import ConversationResult
from storechat.services.db_service import RecordNotFoundError
from storechat.services.quota_service import QuotaDecision, QuotaExceededError
from storechat.services.security_service import SecurityService

API_PREFIX = f"/api/{settings.api_version}"


def _signed(payload):
    payload_bytes = json.dumps(payload).encode('utf-8')
    signature = "sha256=" + hmac.new(settings.facebook_app_secret.encode('utf-8'), payload_bytes, hashlib.sha256).hexdigest()
    return payload_bytes, {"X-Hub-Signature-256": signature, "Content-Type": "application/json"}


# --- Messenger webhook ---

def test_webhook_verification_success(test_client):
    params = {
        "hub.mode": "subscribe", "hub.challenge": "12345",
        "hub.verify_token": settings.facebook_verify_token
    }
    response = test_client.get(f"{API_PREFIX}/webhooks/facebook", params=params)
    assert response.status_code == 200
    assert response.text == "12345"

def test_webhook_verification_failure(test_client):
    params = {"hub.mode": "subscribe", "hub.challenge": "12345", "hub.verify_token": "wrong_token"}
    response = test_client.get(f"{API_PREFIX}/webhooks/facebook", params=params)
    assert response.status_code == 403

def test_webhook_verification_missing_params(test_client):
    response = test_client.get(f"{API_PREFIX}/webhooks/facebook", params={"hub.challenge": "12345"})
    assert response.status_code == 400

def test_handle_webhook_acknowledges_page_events(test_client, mocker):
    mock_process = mocker.patch("storechat.routes.webhooks.messenger_service.process_page_event", new_callable=AsyncMock)
    payload = {"object": "page", "entry": [{"id": "page-1", "messaging": [
        {"sender": {"id": "user-9"}, "message": {"mid": "m1", "text": "مرحبا"}}
    ]}]}
    payload_bytes, headers = _signed(payload)

    response = test_client.post(f"{API_PREFIX}/webhooks/facebook", content=payload_bytes, headers=headers)

    assert response.status_code == 200
    assert response.text == "EVENT_RECEIVED"
    mock_process.assert_called_once_with(payload)

def test_handle_webhook_rejects_non_page_objects(test_client, mocker):
    mock_process = mocker.patch("storechat.routes.webhooks.messenger_service.process_page_event", new_callable=AsyncMock)
    payload_bytes, headers = _signed({"object": "instagram", "entry": []})

    response = test_client.post(f"{API_PREFIX}/webhooks/facebook", content=payload_bytes, headers=headers)

    assert response.status_code == 404
    mock_process.assert_not_called()

def test_handle_webhook_invalid_signature(test_client, mocker):
    mock_process = mocker.patch("storechat.routes.webhooks.messenger_service.process_page_event", new_callable=AsyncMock)
    payload_bytes = json.dumps({"object": "page", "entry": []}).encode('utf-8')
    headers = {"X-Hub-Signature-256": "sha256=invalid", "Content-Type": "application/json"}

    response = test_client.post(f"{API_PREFIX}/webhooks/facebook", content=payload_bytes, headers=headers)
    assert response.status_code == 403
    mock_process.assert_not_called()


# --- Chat ---

def test_chat_returns_reply(test_client, mocker, tenant_document, tenant_headers):
    mocker.patch("storechat.services.db_service.db_service.get_user_by_id", new_callable=AsyncMock, return_value=tenant_document)
    mocker.patch("storechat.routes.messages.quota_service.consume", new_callable=AsyncMock, return_value=QuotaDecision.FREE)
    created_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    mock_handle = mocker.patch(
        "storechat.routes.messages.conversation_service.handle_inbound_message",
        new_callable=AsyncMock,
        return_value=ConversationResult(
            reply_text="تم تأكيد طلبك!", order_signal=OrderSignal.CONFIRMED, order_created=True,
            inbound_message={"id": "in-1"}, reply_message={"id": "out-1", "created_at": created_at},
        ),
    )

    response = test_client.post(f"{API_PREFIX}/messages/chat", json={"message": "  أريد آيفون  "}, headers=tenant_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "تم تأكيد طلبك!"
    assert body["message_id"] == "out-1"
    assert body["order_status"] == "CONFIRMED"
    assert body["order_created"] is True
    mock_handle.assert_awaited_once_with("tenant-1", "test", "أريد آيفون")

def test_chat_quota_exceeded(test_client, mocker, tenant_document, tenant_headers):
    mocker.patch("storechat.services.db_service.db_service.get_user_by_id", new_callable=AsyncMock, return_value=tenant_document)
    mocker.patch("storechat.routes.messages.quota_service.consume", new_callable=AsyncMock, side_effect=QuotaExceededError())
    mock_handle = mocker.patch("storechat.routes.messages.conversation_service.handle_inbound_message", new_callable=AsyncMock)

    response = test_client.post(f"{API_PREFIX}/messages/chat", json={"message": "hi"}, headers=tenant_headers)

    assert response.status_code == 403
    assert response.json()["detail"]["requires_activation"] is True
    mock_handle.assert_not_awaited()

def test_chat_generation_failure_is_bad_gateway(test_client, mocker, tenant_document, tenant_headers):
    mocker.patch("storechat.services.db_service.db_service.get_user_by_id", new_callable=AsyncMock, return_value=tenant_document)
    mocker.patch("storechat.routes.messages.quota_service.consume", new_callable=AsyncMock, return_value=QuotaDecision.FREE)
    mocker.patch(
        "storechat.routes.messages.conversation_service.handle_inbound_message",
        new_callable=AsyncMock, side_effect=GenerationError("down"),
    )

    response = test_client.post(f"{API_PREFIX}/messages/chat", json={"message": "hi"}, headers=tenant_headers)
    assert response.status_code == 502

def test_chat_invalid_body_does_not_consume_quota(test_client, mocker, tenant_document, tenant_headers):
    mocker.patch("storechat.services.db_service.db_service.get_user_by_id", new_callable=AsyncMock, return_value=tenant_document)
    mock_consume = mocker.patch("storechat.routes.messages.quota_service.consume", new_callable=AsyncMock)

    response = test_client.post(f"{API_PREFIX}/messages/chat", json={"message": ""}, headers=tenant_headers)

    assert response.status_code == 422
    mock_consume.assert_not_awaited()

def test_chat_requires_token(test_client):
    response = test_client.post(f"{API_PREFIX}/messages/chat", json={"message": "hi"})
    assert response.status_code == 401


# --- Auth ---

def test_register_existing_user(test_client, mocker, tenant_document):
    mocker.patch("storechat.services.db_service.db_service.get_user_by_username", new_callable=AsyncMock, return_value=tenant_document)
    response = test_client.post(f"{API_PREFIX}/auth/register", json={"username": "store_owner", "password": "secret123"})
    assert response.status_code == 400
    assert response.json()["detail"] == "User already exists"

def test_login_success_hides_password(test_client, mocker, tenant_document):
    user = {**tenant_document, "password": SecurityService.hash_password("secret123")}
    mocker.patch("storechat.services.db_service.db_service.get_user_by_username", new_callable=AsyncMock, return_value=user)

    response = test_client.post(f"{API_PREFIX}/auth/login", json={"username": "store_owner", "password": "secret123"})

    assert response.status_code == 200
    body = response.json()
    assert body["token"]
    assert body["user"]["id"] == "tenant-1"
    assert "password" not in body["user"]

def test_login_invalid_credentials(test_client, mocker):
    mocker.patch("storechat.services.db_service.db_service.get_user_by_username", new_callable=AsyncMock, return_value=None)
    response = test_client.post(f"{API_PREFIX}/auth/login", json={"username": "ghost", "password": "secret123"})
    assert response.status_code == 400

def test_activate_with_used_code(test_client, mocker, tenant_document, tenant_headers):
    mocker.patch("storechat.services.db_service.db_service.get_user_by_id", new_callable=AsyncMock, return_value=tenant_document)
    mocker.patch("storechat.services.db_service.db_service.claim_activation_code", new_callable=AsyncMock, return_value=None)
    response = test_client.post(f"{API_PREFIX}/auth/activate", json={"code": "ABCD1234"}, headers=tenant_headers)
    assert response.status_code == 400

def test_admin_login(test_client):
    response = test_client.post(
        f"{API_PREFIX}/auth/admin/login",
        json={"username": settings.admin_username, "password": settings.admin_password},
    )
    assert response.status_code == 200
    assert response.json()["token_type"] == "bearer"

    response = test_client.post(f"{API_PREFIX}/auth/admin/login", json={"username": "admin", "password": "wrong"})
    assert response.status_code == 401


# --- Admin and tenant resources ---

def test_admin_stats_unauthorized(test_client):
    response = test_client.get(f"{API_PREFIX}/admin/stats")
    assert response.status_code == 401

def test_admin_stats_rejects_tenant_token(test_client, tenant_headers):
    response = test_client.get(f"{API_PREFIX}/admin/stats", headers=tenant_headers)
    assert response.status_code == 403

def test_admin_creates_activation_code(test_client, mocker, admin_headers):
    mock_create = mocker.patch(
        "storechat.services.db_service.db_service.create_activation_code",
        new_callable=AsyncMock,
        return_value={"code": "ABCD1234", "type": "temp", "duration_days": 7, "used": False},
    )
    response = test_client.post(f"{API_PREFIX}/admin/codes", json={"type": "temp"}, headers=admin_headers)

    assert response.status_code == 201
    assert response.json()["data"]["code"]["code"] == "ABCD1234"
    mock_create.assert_awaited_once_with("temp", "temp activation code")

def test_delete_missing_product(test_client, mocker, tenant_document, tenant_headers):
    mocker.patch("storechat.services.db_service.db_service.get_user_by_id", new_callable=AsyncMock, return_value=tenant_document)
    mocker.patch(
        "storechat.services.db_service.db_service.delete_product",
        new_callable=AsyncMock, side_effect=RecordNotFoundError("missing"),
    )
    response = test_client.delete(f"{API_PREFIX}/products/nope", headers=tenant_headers)
    assert response.status_code == 404

def test_store_info_update_requires_a_field(test_client, mocker, tenant_document, tenant_headers):
    mocker.patch("storechat.services.db_service.db_service.get_user_by_id", new_callable=AsyncMock, return_value=tenant_document)
    response = test_client.post(f"{API_PREFIX}/store/info", json={}, headers=tenant_headers)
    assert response.status_code == 400

def test_oauth_callback_with_bad_state_redirects_to_error(test_client):
    response = test_client.get(
        f"{API_PREFIX}/oauth/callback", params={"code": "abc", "state": "garbage"}, follow_redirects=False
    )
    assert response.status_code == 302
    assert response.headers["location"].startswith(settings.oauth_error_url)

def test_health(test_client):
    response = test_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
