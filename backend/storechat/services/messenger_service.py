# /storechat/services/messenger_service.py

import logging
from typing import Any, Dict, List, Optional

import httpx

from storechat.config.settings import settings
from storechat.models.domain import Channel
from storechat.services.db_service import db_service
from storechat.services.conversation_service import conversation_service
from storechat.utils.metrics import messenger_send_counter

# Facebook Messenger channel: turns page webhook events into conversation
# pipeline calls and sends the replies back through the Graph send API.
# Delivery is best effort; failures are logged, never retried.

logger = logging.getLogger(__name__)

# Graph API rejects text messages longer than this.
MAX_MESSAGE_LENGTH = 2000


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> List[str]:
    """Splits on line breaks where possible so each chunk fits the send API."""
    if len(text) <= limit:
        return [text]
    chunks, current = [], ""
    for line in text.splitlines(keepends=True):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]
        if len(current) + len(line) > limit:
            chunks.append(current)
            current = ""
        current += line
    if current:
        chunks.append(current)
    return [chunk.strip() for chunk in chunks if chunk.strip()]


class MessengerService:
    def __init__(self, base_url: str, database, conversations):
        self.base_url = base_url
        self.db = database
        self.conversations = conversations
        self.http_client = httpx.AsyncClient(timeout=15.0)

    async def send_text(self, recipient_id: str, text: str, page_token: str) -> Optional[str]:
        """Sends a reply to a Messenger user; returns the last message id or None on failure."""
        message_id = None
        for chunk in split_message(text):
            payload = {"recipient": {"id": recipient_id}, "message": {"text": chunk}}
            try:
                response = await self.http_client.post(
                    f"{self.base_url}/me/messages",
                    params={"access_token": page_token},
                    json=payload,
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                messenger_send_counter.labels(status="error").inc()
                logger.error(f"Messenger send failed for {recipient_id}: {e.response.status_code} {e.response.text[:200]}")
                return None
            except httpx.RequestError as e:
                messenger_send_counter.labels(status="error").inc()
                logger.error(f"Messenger send request error for {recipient_id}: {e}")
                return None
            messenger_send_counter.labels(status="success").inc()
            message_id = response.json().get("message_id")
        logger.info(f"Messenger reply sent to {recipient_id}, message_id: {message_id}")
        return message_id

    async def handle_messaging_event(self, event: Dict[str, Any], tenant_id: str, page_id: str, page_token: str) -> None:
        message = event.get("message")
        if not message:
            return

        sender_id = (event.get("sender") or {}).get("id")
        if not sender_id or sender_id == page_id or message.get("is_echo"):
            logger.debug(f"Skipping echo or anonymous event on page {page_id}")
            return

        text = message.get("text")
        if not text:
            logger.debug(f"Skipping non-text message from {sender_id} on page {page_id}")
            return

        result = await self.conversations.handle_inbound_message(
            tenant_id,
            Channel.FACEBOOK.value,
            text,
            metadata={"sender_id": sender_id, "page_id": page_id},
            reply_metadata={"recipient_id": sender_id, "page_id": page_id},
        )
        if result.reply_text:
            await self.send_text(sender_id, result.reply_text, page_token)

    async def process_page_event(self, body: Dict[str, Any]) -> None:
        """Background processing of a `page` webhook payload; one failing event does not stop the others."""
        for entry in body.get("entry", []):
            page_id = entry.get("id")
            try:
                resolved = await self.db.find_page_account(page_id) if page_id else None
            except Exception:
                logger.error(f"Could not resolve tenant for page ID: {page_id}", exc_info=True)
                continue
            if not resolved:
                logger.error(f"No connected tenant for page ID: {page_id}")
                continue

            tenant_id, account = resolved
            for event in entry.get("messaging", []):
                try:
                    await self.handle_messaging_event(event, tenant_id, page_id, account["access_token"])
                except Exception:
                    logger.error(f"Error handling messaging event for page {page_id}", exc_info=True)

    async def close(self) -> None:
        await self.http_client.aclose()


# Globally accessible instance
messenger_service = MessengerService(settings.graph_api_base_url, db_service, conversation_service)
