# /storechat/services/ai_service.py

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from google import genai
from google.genai.types import (
    Content,
    GenerateContentConfig,
    HarmBlockThreshold,
    HarmCategory,
    HttpOptions,
    Part,
    SafetySetting,
)

from storechat.config.settings import settings
from storechat.config import persona
from storechat.models.domain import MessageRole, StoreProfile
from storechat.utils.metrics import ai_requests_counter

# This service wraps Google Gemini. It only turns prompts (or a message
# history plus store context) into reply text; reading order directives out of
# that text is order_directive's job.

logger = logging.getLogger(__name__)

SAFETY_CATEGORIES = (
    HarmCategory.HARM_CATEGORY_HARASSMENT,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
)


class GenerationError(Exception):
    """Gemini could not produce a usable reply (transport, timeout or empty candidates)."""


class AIService:
    def __init__(self, api_key: Optional[str], model_name: str, timeout_seconds: float):
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        if api_key:
            http_options = HttpOptions(api_version='v1', timeout=int(timeout_seconds * 1000))
            self.gemini_client = genai.Client(api_key=api_key, http_options=http_options)
            logger.info(f"Using Gemini model: {self.model_name}")
        else:
            self.gemini_client = None
            logger.warning("GEMINI_API_KEY is not set; reply generation is disabled.")

    def _generation_config(self, max_output_tokens: int = 1024) -> GenerateContentConfig:
        return GenerateContentConfig(
            temperature=0.7,
            max_output_tokens=max_output_tokens,
            top_p=0.95,
            top_k=40,
            safety_settings=[
                SafetySetting(category=category, threshold=HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE)
                for category in SAFETY_CATEGORIES
            ],
        )

    @staticmethod
    def _extract_text(response: Any) -> Optional[str]:
        """Text of the first part of the first candidate, or None when the response has none."""
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            return None
        content = getattr(candidates[0], "content", None)
        parts = getattr(content, "parts", None) or []
        if not parts:
            return None
        return getattr(parts[0], "text", None)

    async def _generate(self, contents: Any, operation: str, max_output_tokens: int = 1024) -> str:
        if not self.gemini_client:
            raise GenerationError("Gemini client not available")

        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    self.gemini_client.models.generate_content,
                    model=self.model_name,
                    contents=contents,
                    config=self._generation_config(max_output_tokens),
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            ai_requests_counter.labels(model=self.model_name, status="timeout").inc()
            logger.error(f"Gemini {operation} timed out after {self.timeout_seconds}s")
            raise GenerationError(f"Gemini request timed out after {self.timeout_seconds}s") from e
        except Exception as e:
            ai_requests_counter.labels(model=self.model_name, status="error").inc()
            logger.error(f"Gemini {operation} failed: {e}")
            raise GenerationError(f"Gemini request failed: {e}") from e

        text = self._extract_text(response)
        if not text:
            ai_requests_counter.labels(model=self.model_name, status="invalid").inc()
            logger.error(f"Invalid response format from Gemini API during {operation}")
            raise GenerationError("Invalid response format from Gemini API")

        ai_requests_counter.labels(model=self.model_name, status="success").inc()
        return text

    # --- Prompt building ---

    @staticmethod
    def build_store_context(store_info: Optional[Dict[str, Any]]) -> str:
        profile = StoreProfile(**store_info) if store_info else None
        if not profile or not profile.has_context():
            return ""
        lines = [persona.STORE_CONTEXT_HEADER]
        if profile.name:
            lines.append(f"{persona.STORE_NAME_LABEL}: {profile.name}")
        if profile.address:
            lines.append(f"{persona.STORE_ADDRESS_LABEL}: {profile.address}")
        if profile.description:
            lines.append(f"{persona.STORE_DESCRIPTION_LABEL}: {profile.description}")
        return "\n".join(lines) + "\n\n"

    @staticmethod
    def build_product_context(products: Optional[Sequence[Dict[str, Any]]]) -> str:
        if not products:
            return persona.NO_PRODUCTS_TEXT
        lines = [persona.PRODUCTS_HEADER]
        for index, product in enumerate(products, start=1):
            lines.append(f"{index}. {product.get('name', '')}: {product.get('price', '')} - {product.get('description', '')}")
        return "\n".join(lines) + "\n\n" + persona.PRODUCTS_FOOTER

    @staticmethod
    def build_conversation_context(history: Optional[Sequence[Dict[str, Any]]]) -> str:
        if not history:
            return ""
        lines = [persona.HISTORY_HEADER]
        for message in history:
            speaker = persona.CUSTOMER_SPEAKER if message.get("role") == MessageRole.CUSTOMER.value else persona.ASSISTANT_SPEAKER
            lines.append(f"{speaker}: {message.get('content', '')}")
        return "\n".join(lines) + "\n\n"

    def create_product_prompt(self, user_message: str, products, history, store_info) -> str:
        return persona.PRODUCT_RESPONSE_TEMPLATE.format(
            persona=persona.PERSONA_INTRO,
            store_context=self.build_store_context(store_info),
            product_context=self.build_product_context(products),
            conversation_context=self.build_conversation_context(history),
            user_message=user_message,
            instructions=persona.ASSISTANT_INSTRUCTIONS,
        )

    def create_conversation_contents(self, history, products, store_info) -> List[Content]:
        system_text = persona.CONVERSATION_SYSTEM_TEMPLATE.format(
            persona=persona.PERSONA_INTRO,
            store_context=self.build_store_context(store_info),
            product_context=self.build_product_context(products),
            instructions=persona.ASSISTANT_INSTRUCTIONS,
            start_marker=persona.CONVERSATION_START_MARKER,
        )
        contents = [Content(role="user", parts=[Part(text=system_text)])]
        for message in history:
            role = "user" if message.get("role") == MessageRole.CUSTOMER.value else "model"
            contents.append(Content(role=role, parts=[Part(text=message.get("content", ""))]))
        return contents

    # --- Public API ---

    async def generate_response(self, prompt: str, max_output_tokens: int = 1024) -> str:
        """Single prompt in, reply text out."""
        return await self._generate(prompt, "generate_response", max_output_tokens)

    async def generate_product_response(
        self,
        user_message: str,
        products: Sequence[Dict[str, Any]],
        history: Optional[Sequence[Dict[str, Any]]] = None,
        store_info: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Single-shot reply: store, catalog and prior turns are flattened into one prompt."""
        prompt = self.create_product_prompt(user_message, products, history or [], store_info)
        logger.debug(f"Generating single-shot reply with {len(history or [])} history messages")
        return await self.generate_response(prompt)

    async def generate_conversation_response(
        self,
        history: Sequence[Dict[str, Any]],
        products: Sequence[Dict[str, Any]],
        store_info: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Multi-turn reply: instructions as the first user turn, then the history."""
        contents = self.create_conversation_contents(history, products, store_info)
        logger.debug(f"Generating multi-turn reply over {len(history)} messages")
        return await self._generate(contents, "generate_conversation_response")

    async def test_connection(self) -> Dict[str, Any]:
        try:
            response = await self.generate_response(persona.CONNECTION_TEST_PROMPT)
            return {"success": True, "response": response}
        except GenerationError as e:
            return {"success": False, "error": str(e)}


# Globally accessible instance
ai_service = AIService(settings.gemini_api_key, settings.gemini_model, settings.gemini_timeout_seconds)
