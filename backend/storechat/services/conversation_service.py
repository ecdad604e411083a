# /storechat/services/conversation_service.py

import logging
import structlog
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from storechat.models.domain import MessageRole, OrderSignal
from storechat.services.ai_service import ai_service
from storechat.services.db_service import db_service
from storechat.services.order_directive import build_chat_order, parse_order_directive
from storechat.utils.metrics import message_counter, order_counter, order_signal_counter

# The conversation pipeline shared by every channel: store the customer's
# message, generate a reply with catalog and history context, turn a confirmed
# order directive into an order, store the reply.

logger = logging.getLogger(__name__)

# Exchanges of history given to the model.
HISTORY_PAIRS = 5

# Below this many messages the multi-turn request has nothing to build on.
MIN_CONVERSATION_MESSAGES = 2


@dataclass
class ConversationResult:
    reply_text: str
    order_signal: Optional[OrderSignal]
    order_created: bool
    inbound_message: Dict[str, Any]
    reply_message: Dict[str, Any]
    order: Optional[Dict[str, Any]] = None


class ConversationService:
    def __init__(self, database, generator):
        self.db = database
        self.generator = generator

    async def _generate_reply(
        self,
        text: str,
        prior_history: List[Dict[str, Any]],
        working_history: List[Dict[str, Any]],
        products: List[Dict[str, Any]],
        store_info: Dict[str, Any],
    ) -> str:
        if len(working_history) >= MIN_CONVERSATION_MESSAGES:
            try:
                return await self.generator.generate_conversation_response(working_history, products, store_info)
            except Exception as e:
                logger.warning(f"Multi-turn generation failed, falling back to single-shot: {e}")
        return await self.generator.generate_product_response(text, products, prior_history, store_info)

    async def _create_order(self, tenant_id: str, directive, products) -> Optional[Dict[str, Any]]:
        order_fields = build_chat_order(directive, products)
        try:
            order = await self.db.add_order(tenant_id, order_fields)
        except Exception:
            order_counter.labels(source="chat", status="failed").inc()
            logger.error(f"Failed to save chat order for tenant {tenant_id}", exc_info=True)
            return None
        order_counter.labels(source="chat", status="created").inc()
        logger.info(f"Chat order {order.get('id')} created for tenant {tenant_id}")
        return order

    async def handle_inbound_message(
        self,
        tenant_id: str,
        channel: str,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
        reply_metadata: Optional[Dict[str, Any]] = None,
    ) -> ConversationResult:
        """
        Runs one customer message through the pipeline.

        The customer's message is persisted before anything that can fail.
        Multi-turn generation falls back to a single-shot prompt once; if that
        fails too, GenerationError reaches the caller. Log records emitted
        meanwhile carry `tenant_id` and `channel`.
        """
        with structlog.contextvars.bound_contextvars(tenant_id=tenant_id, channel=channel):
            return await self._process(tenant_id, channel, text, metadata, reply_metadata)

    async def _process(
        self,
        tenant_id: str,
        channel: str,
        text: str,
        metadata: Optional[Dict[str, Any]],
        reply_metadata: Optional[Dict[str, Any]],
    ) -> ConversationResult:
        inbound = await self.db.add_message(tenant_id, channel, MessageRole.CUSTOMER.value, text, metadata)

        products = await self.db.get_products(tenant_id)
        store_info = await self.db.get_store_info(tenant_id)
        history = await self.db.get_conversation_history(tenant_id, HISTORY_PAIRS)

        prior_history = [message for message in history if message.get("id") != inbound.get("id")]
        working_history = prior_history + [inbound]

        logger.info(
            f"Processing {channel} message for tenant {tenant_id}: "
            f"{len(products)} products, {len(prior_history)} prior messages"
        )

        try:
            raw_reply = await self._generate_reply(text, prior_history, working_history, products, store_info)
        except Exception:
            message_counter.labels(channel=channel, status="generation_failed").inc()
            raise

        directive = parse_order_directive(raw_reply)
        order = None
        if directive.signal is not None:
            order_signal_counter.labels(signal=directive.signal.value).inc()
        if directive.signal == OrderSignal.CONFIRMED:
            order = await self._create_order(tenant_id, directive, products)
        elif directive.signal == OrderSignal.PENDING:
            logger.info(f"Order pending customer details for tenant {tenant_id}: {directive.product_name}")

        reply = await self.db.add_message(
            tenant_id, channel, MessageRole.GENERATED.value, directive.visible_text, reply_metadata
        )
        message_counter.labels(channel=channel, status="replied").inc()

        return ConversationResult(
            reply_text=directive.visible_text,
            order_signal=directive.signal,
            order_created=order is not None,
            inbound_message=inbound,
            reply_message=reply,
            order=order,
        )


# Globally accessible instance
conversation_service = ConversationService(db_service, ai_service)
