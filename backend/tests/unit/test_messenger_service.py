# backend/tests/unit/test_messenger_service.py
import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from storechat.services.conversation_service import ConversationResult
from storechat.services.messenger_service import MessengerService, split_message


def _ok_response(message_id="mid.1"):
    response = MagicMock()
    response.raise_for_status = MagicMock()
    response.json = lambda: {"message_id": message_id}
    return response


@pytest.fixture
def conversations():
    conv = AsyncMock()
    conv.handle_inbound_message.return_value = ConversationResult(
        reply_text="أهلاً بك", order_signal=None, order_created=False,
        inbound_message={"id": "in-1"}, reply_message={"id": "out-1"},
    )
    return conv


@pytest.fixture
def service(conversations):
    db = AsyncMock()
    db.find_page_account.return_value = ("tenant-1", {"id": "page-1", "access_token": "page-token"})
    messenger = MessengerService("https://graph.facebook.com/v18.0", db, conversations)
    messenger.http_client = MagicMock()
    messenger.http_client.post = AsyncMock(return_value=_ok_response())
    return messenger


def _page_event(*messaging, page_id="page-1"):
    return {"object": "page", "entry": [{"id": page_id, "messaging": list(messaging)}]}


@pytest.mark.asyncio
async def test_text_message_is_answered(service, conversations):
    await service.process_page_event(_page_event(
        {"sender": {"id": "user-9"}, "recipient": {"id": "page-1"}, "message": {"mid": "m1", "text": "مرحبا"}}
    ))

    conversations.handle_inbound_message.assert_awaited_once()
    args, kwargs = conversations.handle_inbound_message.await_args
    assert args == ("tenant-1", "facebook", "مرحبا")
    assert kwargs["metadata"] == {"sender_id": "user-9", "page_id": "page-1"}

    post_kwargs = service.http_client.post.await_args.kwargs
    assert post_kwargs["params"] == {"access_token": "page-token"}
    assert post_kwargs["json"] == {"recipient": {"id": "user-9"}, "message": {"text": "أهلاً بك"}}


@pytest.mark.asyncio
async def test_echoes_and_non_text_events_are_skipped(service, conversations):
    await service.process_page_event(_page_event(
        {"sender": {"id": "page-1"}, "message": {"text": "from the page"}},
        {"sender": {"id": "user-9"}, "message": {"text": "echo", "is_echo": True}},
        {"sender": {"id": "user-9"}, "message": {"attachments": [{"type": "image"}]}},
        {"sender": {"id": "user-9"}, "delivery": {"mids": ["m1"]}},
    ))

    conversations.handle_inbound_message.assert_not_awaited()
    service.http_client.post.assert_not_awaited()


@pytest.mark.asyncio
async def test_unknown_page_is_ignored(service, conversations):
    service.db.find_page_account.return_value = None
    await service.process_page_event(_page_event({"sender": {"id": "user-9"}, "message": {"text": "hi"}}, page_id="page-x"))
    conversations.handle_inbound_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_failing_event_does_not_stop_the_batch(service, conversations):
    ok_result = conversations.handle_inbound_message.return_value
    conversations.handle_inbound_message.side_effect = [RuntimeError("boom"), ok_result]

    await service.process_page_event(_page_event(
        {"sender": {"id": "user-1"}, "message": {"text": "first"}},
        {"sender": {"id": "user-2"}, "message": {"text": "second"}},
    ))

    assert conversations.handle_inbound_message.await_count == 2
    service.http_client.post.assert_awaited_once()


@pytest.mark.asyncio
async def test_page_lookup_failure_does_not_stop_the_batch(service, conversations):
    service.db.find_page_account.side_effect = [
        RuntimeError("mongo down"),
        ("tenant-2", {"id": "page-2", "access_token": "token-2"}),
    ]
    body = {"object": "page", "entry": [
        {"id": "page-1", "messaging": [{"sender": {"id": "user-1"}, "message": {"text": "first"}}]},
        {"id": "page-2", "messaging": [{"sender": {"id": "user-2"}, "message": {"text": "second"}}]},
    ]}

    await service.process_page_event(body)

    assert service.db.find_page_account.await_count == 2
    conversations.handle_inbound_message.assert_awaited_once()
    assert conversations.handle_inbound_message.await_args.args[0] == "tenant-2"
    assert service.http_client.post.await_args.kwargs["params"] == {"access_token": "token-2"}


@pytest.mark.asyncio
async def test_send_failure_returns_none(service):
    response = MagicMock()
    response.raise_for_status.side_effect = httpx.HTTPStatusError(
        "bad", request=MagicMock(), response=MagicMock(status_code=400, text="error")
    )
    service.http_client.post = AsyncMock(return_value=response)

    assert await service.send_text("user-9", "hi", "page-token") is None


def test_split_message_respects_limit():
    text = "\n".join(["سطر " * 100] * 10)
    chunks = split_message(text, limit=2000)
    assert len(chunks) > 1
    assert all(len(chunk) <= 2000 for chunk in chunks)
    assert split_message("قصير") == ["قصير"]
