# /storechat/services/quota_service.py

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Tuple

from storechat.models.domain import ActivationType, Tenant
from storechat.services.db_service import db_service, ACTIVATION_DURATION_DAYS
from storechat.config.settings import settings
from storechat.utils.metrics import quota_counter

# Per-tenant message quota: free messages first, then an activation window.
# The decision itself is a pure function of the tenant record.

logger = logging.getLogger(__name__)


class QuotaDecision(str, Enum):
    FREE = "free"
    ACTIVATED = "activated"
    EXHAUSTED = "exhausted"


class QuotaExceededError(Exception):
    """The tenant has no free messages left and no active activation window."""


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def evaluate_quota(tenant: Tenant, now: Optional[datetime] = None) -> QuotaDecision:
    now = now or datetime.now(timezone.utc)
    if tenant.free_messages_remaining > 0:
        return QuotaDecision.FREE
    expiry = _as_utc(tenant.activation_expiry)
    if expiry and expiry > now:
        return QuotaDecision.ACTIVATED
    return QuotaDecision.EXHAUSTED


def activation_terms(code_type: str, now: Optional[datetime] = None) -> Tuple[datetime, int]:
    """(expiry, free messages) granted by redeeming a code of the given type."""
    now = now or datetime.now(timezone.utc)
    expiry = now + timedelta(days=ACTIVATION_DURATION_DAYS[code_type])
    free_messages = settings.default_free_messages if code_type == ActivationType.TEMP.value else 0
    return expiry, free_messages


class QuotaService:
    def __init__(self, database):
        self.db = database

    async def consume(self, tenant: Tenant) -> QuotaDecision:
        """Charges one message to the tenant or raises QuotaExceededError."""
        decision = evaluate_quota(tenant)

        # The free counter can reach zero between reading the tenant and
        # spending; fall through to the activation window in that case.
        if decision == QuotaDecision.FREE and not await self.db.consume_free_message(tenant.id):
            decision = evaluate_quota(tenant.model_copy(update={"free_messages_remaining": 0}))

        if decision == QuotaDecision.ACTIVATED:
            await self.db.record_activated_message(tenant.id)

        quota_counter.labels(decision=decision.value).inc()
        if decision == QuotaDecision.EXHAUSTED:
            logger.info(f"Message quota exhausted for tenant {tenant.id}")
            raise QuotaExceededError("Message quota exceeded")
        return decision


quota_service = QuotaService(db_service)
