# backend/tests/unit/test_db_service.py
import pytest
from datetime import datetime, timezone
from pydantic import ValidationError
from unittest.mock import AsyncMock, MagicMock

from storechat.models.domain import StoreProfile
from storechat.services.db_service import DatabaseService, RecordNotFoundError, STORE_PROFILE_DEFAULTS


@pytest.fixture
def service():
    database = DatabaseService("mongodb://localhost:27017", "storechat_test")
    database.db = MagicMock()
    return database


def _cursor(documents):
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=documents)
    return cursor


@pytest.mark.asyncio
async def test_conversation_history_is_newest_window_in_chronological_order(service):
    newest_first = [
        {"_id": "m4", "role": "generated", "content": "4"},
        {"_id": "m3", "role": "customer", "content": "3"},
    ]
    cursor = _cursor(newest_first)
    service.db.messages.find.return_value = cursor

    history = await service.get_conversation_history("tenant-1", limit=1)

    service.db.messages.find.assert_called_once_with({"tenant_id": "tenant-1"})
    cursor.sort.assert_called_once_with([("created_at", -1), ("_id", -1)])
    cursor.limit.assert_called_once_with(2)
    assert [m["id"] for m in history] == ["m3", "m4"]


@pytest.mark.asyncio
async def test_store_info_is_created_lazily_with_one_upsert(service):
    service.db.store_profiles.find_one_and_update = AsyncMock(return_value={"tenant_id": "tenant-1", "name": ""})

    profile = await service.get_store_info("tenant-1")

    assert profile["name"] == ""
    args, kwargs = service.db.store_profiles.find_one_and_update.await_args
    assert args[0] == {"tenant_id": "tenant-1"}
    assert "$setOnInsert" in args[1]
    assert kwargs["upsert"] is True


@pytest.mark.asyncio
async def test_consume_free_message_is_guarded(service):
    service.db.users.find_one_and_update = AsyncMock(return_value=None)

    assert await service.consume_free_message("tenant-1") is False
    query, update = service.db.users.find_one_and_update.await_args.args
    assert query == {"_id": "tenant-1", "free_messages_remaining": {"$gt": 0}}
    assert update == {"$inc": {"free_messages_remaining": -1, "message_count": 1}}


@pytest.mark.asyncio
async def test_add_order_validates_and_stores(service):
    service.db.orders.insert_one = AsyncMock()

    order = await service.add_order("tenant-1", {"product_name": "آيفون 15", "quantity": 2})

    service.db.orders.insert_one.assert_awaited_once()
    assert order["id"]
    assert order["tenant_id"] == "tenant-1"
    assert order["status"] == "pending"
    assert order["source"] == "manual"
    assert order["total_amount"] == "0"


@pytest.mark.asyncio
async def test_missing_records_raise(service):
    service.db.products.find_one_and_update = AsyncMock(return_value=None)
    service.db.orders.delete_one = AsyncMock(return_value=MagicMock(deleted_count=0))

    with pytest.raises(RecordNotFoundError):
        await service.update_product("tenant-1", "nope", {"name": "x"})
    with pytest.raises(RecordNotFoundError):
        await service.delete_order("tenant-1", "nope")


@pytest.mark.asyncio
async def test_find_page_account_uses_positional_projection(service):
    service.db.page_connections.find_one = AsyncMock(return_value={
        "tenant_id": "tenant-1", "accounts": [{"id": "page-2", "access_token": "t2"}],
    })

    tenant_id, account = await service.find_page_account("page-2")

    assert tenant_id == "tenant-1"
    assert account["access_token"] == "t2"
    assert service.db.page_connections.find_one.await_args.args[1] == {"tenant_id": 1, "accounts.$": 1}


@pytest.mark.asyncio
async def test_add_message_stores_a_validated_message(service):
    service.db.messages.insert_one = AsyncMock(return_value=MagicMock(inserted_id="abc123"))

    message = await service.add_message("tenant-1", "facebook", "customer", "مرحبا", {"sender_id": "u1"})

    stored = service.db.messages.insert_one.await_args.args[0]
    assert stored["channel"] == "facebook"
    assert stored["role"] == "customer"
    assert stored["metadata"] == {"sender_id": "u1"}
    assert message["id"] == "abc123"


@pytest.mark.asyncio
async def test_add_message_rejects_unknown_channel(service):
    service.db.messages.insert_one = AsyncMock()

    with pytest.raises(ValidationError):
        await service.add_message("tenant-1", "telegram", "customer", "hi")
    service.db.messages.insert_one.assert_not_awaited()


@pytest.mark.asyncio
async def test_add_product_fills_defaults(service):
    service.db.products.insert_one = AsyncMock()

    product = await service.add_product("tenant-1", {"name": "آيفون 15", "price": "1200 دولار"})

    assert product["id"]
    assert product["tenant_id"] == "tenant-1"
    assert product["description"] == ""
    assert product["in_stock"] is True


@pytest.mark.asyncio
async def test_create_activation_code(service):
    service.db.activation_codes.insert_one = AsyncMock()

    code = await service.create_activation_code("full", "شهر كامل")

    assert len(code["code"]) == 8 and code["code"] == code["code"].upper()
    assert code["type"] == "full"
    assert code["duration_days"] == 30
    assert code["used"] is False
    assert "_id" not in code


@pytest.mark.asyncio
async def test_save_page_connection_validates_accounts(service):
    service.db.page_connections.replace_one = AsyncMock()
    now = datetime.now(timezone.utc)

    await service.save_page_connection("tenant-1", {
        "facebook_id": "fb-1", "access_token": "user-token", "expires_at": now, "connected_at": now,
        "accounts": [{"id": "page-1", "access_token": "page-token"}],
    })

    query, document = service.db.page_connections.replace_one.await_args.args
    assert query == {"tenant_id": "tenant-1"}
    assert document["tenant_id"] == "tenant-1"
    assert document["accounts"] == [{"id": "page-1", "name": "", "access_token": "page-token", "instagram_account": None}]

    with pytest.raises(ValidationError):
        await service.save_page_connection("tenant-1", {"accounts": [{"id": "page-1"}]})


def test_store_profile_context_uses_name_address_and_description():
    assert not StoreProfile(phone="0790000000", website="example.com").has_context()
    assert StoreProfile(description="إلكترونيات").has_context()
    assert STORE_PROFILE_DEFAULTS == {
        "name": "", "address": "", "description": "", "phone": "", "email": "", "website": "", "logo": "",
    }
