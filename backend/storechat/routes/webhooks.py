# /storechat/routes/webhooks.py

import json
import asyncio
import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse

from storechat.config.settings import settings
from storechat.services.messenger_service import messenger_service
from storechat.utils.dependencies import verify_messenger_signature

# Facebook Messenger webhook. Meta expects a fast 200, so events are handed
# to a background task and the response does not wait for the reply.

router = APIRouter(
    tags=["Webhooks"]
)

log = structlog.get_logger(__name__)

# Strong references so pending tasks are not garbage collected mid-flight.
_background_tasks: set = set()


def _schedule(coro) -> asyncio.Task:
    task = asyncio.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


@router.get("/facebook")
async def verify_facebook_webhook(
    hub_mode: str = Query(None, alias="hub.mode"),
    hub_verify_token: str = Query(None, alias="hub.verify_token"),
    hub_challenge: str = Query(None, alias="hub.challenge")
):
    """Messenger webhook verification handshake."""
    if not hub_mode or not hub_verify_token:
        log.error("Webhook verification request is missing parameters.")
        raise HTTPException(status_code=400, detail="Bad Request")
    if hub_mode == "subscribe" and hub_verify_token == settings.facebook_verify_token:
        log.info("Messenger webhook verification successful.")
        return PlainTextResponse(hub_challenge or "")
    log.error("Messenger webhook verification failed. Token mismatch.")
    raise HTTPException(status_code=403, detail="Forbidden")


@router.post("/facebook")
async def handle_facebook_webhook(verified_body: bytes = Depends(verify_messenger_signature)):
    """Acknowledges page events immediately and processes them in the background."""
    try:
        data = json.loads(verified_body.decode() or "{}")
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    if data.get("object") != "page":
        log.warning("Webhook event is not from a page subscription.", object=data.get("object"))
        raise HTTPException(status_code=404, detail="Not Found")

    log.info("Messenger webhook received.", entries=len(data.get("entry", [])))
    _schedule(messenger_service.process_page_event(data))
    return PlainTextResponse("EVENT_RECEIVED")
