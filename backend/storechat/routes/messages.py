# /storechat/routes/messages.py

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status

from storechat.config.settings import settings
from storechat.models.api import APIResponse, ChatRequest, ChatResponse
from storechat.models.domain import Tenant
from storechat.services.ai_service import ai_service, GenerationError
from storechat.services.conversation_service import conversation_service
from storechat.services.db_service import db_service
from storechat.services.quota_service import quota_service, QuotaExceededError
from storechat.services.security_service import SecurityService
from storechat.utils.dependencies import get_current_tenant, require_admin
from storechat.utils.metrics import response_time_histogram
from storechat.utils.rate_limiter import limiter

# The dashboard's chat channel plus message history and statistics.

router = APIRouter(
    prefix="/messages",
    tags=["Messages"]
)

log = structlog.get_logger(__name__)

GENERATION_FAILED_MESSAGE = "خطأ في الاتصال بخدمة الذكاء الاصطناعي. يرجى المحاولة مرة أخرى لاحقاً."


@router.get("", response_model=APIResponse)
async def list_messages(tenant: Tenant = Depends(get_current_tenant)):
    messages = await db_service.get_messages(tenant.id)
    return APIResponse(success=True, message="Messages retrieved", data={"messages": messages}, version=settings.api_version)


@router.post("/chat", response_model=ChatResponse)
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def chat(request: Request, body: ChatRequest, tenant: Tenant = Depends(get_current_tenant)):
    """Sends a customer message through the assistant and returns its reply."""
    try:
        text = SecurityService.validate_message_content(body.message)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message is required")

    try:
        await quota_service.consume(tenant)
    except QuotaExceededError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": "Message quota exceeded", "requires_activation": True},
        )

    with response_time_histogram.labels(endpoint="chat").time():
        try:
            result = await conversation_service.handle_inbound_message(tenant.id, body.channel.value, text)
        except GenerationError as e:
            log.error("Reply generation failed", tenant_id=tenant.id, error=str(e))
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=GENERATION_FAILED_MESSAGE)

    return ChatResponse(
        message=result.reply_text,
        message_id=result.reply_message.get("id"),
        timestamp=result.reply_message.get("created_at"),
        order_status=result.order_signal.value if result.order_signal else None,
        order_created=result.order_created,
    )


@router.get("/stats", response_model=APIResponse)
async def message_stats(tenant: Tenant = Depends(get_current_tenant)):
    stats = await db_service.get_message_stats(tenant.id)
    return APIResponse(success=True, message="Message statistics retrieved", data=stats, version=settings.api_version)


@router.get("/test-gemini", response_model=APIResponse, dependencies=[Depends(require_admin)])
@limiter.limit("5/minute")
async def test_gemini(request: Request):
    result = await ai_service.test_connection()
    return APIResponse(
        success=result["success"],
        message="Gemini connection OK" if result["success"] else "Gemini connection failed",
        data=result,
        version=settings.api_version
    )
