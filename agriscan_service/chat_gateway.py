"""
Chat gateway: single-turn farming advice from the Gemini text model.
"""
import logging
from typing import Optional

from .gemini_client import GeminiClient
from .prompts import build_chat_prompt

logger = logging.getLogger(__name__)

CHAT_UNAVAILABLE_RESPONSE = (
    "Unable to generate advanced analysis - something went wrong. "
    "Please try again later or contact support if the issue persists."
)


class ChatGateway:
    """Stateless: every call builds a fresh prompt, no history is kept."""

    def __init__(self, model: Optional[GeminiClient]):
        self.model = model

    async def reply(self, message: str, context: Optional[str] = None) -> str:
        if self.model is None:
            logger.warning("GEMINI_API_KEY not set for chat, returning fallback response")
            return CHAT_UNAVAILABLE_RESPONSE

        prompt = build_chat_prompt(message, context)
        logger.info(f"Chat message ({len(message)} chars, context={'yes' if context else 'no'})")
        return await self.model.generate_text(prompt)
