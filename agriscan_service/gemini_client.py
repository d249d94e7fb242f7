"""
Gemini client - thin async wrapper around google-genai.

One instance is built at startup and shared by the analysis and chat
gateways. Each call is a single attempt; errors propagate to the caller.
"""
import logging
from typing import Optional

from google import genai
from google.genai import types

from .config import Settings
from .structured_logging import mask_secret

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 120.0


class ModelNotConfiguredError(RuntimeError):
    """Raised when a Gemini client is requested without an API key."""


class GeminiClient:
    """Text and vision generation against the Gemini API."""

    def __init__(
        self,
        api_key: str,
        model_name: str,
        vision_model_name: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[genai.Client] = None,
    ):
        if not api_key:
            raise ModelNotConfiguredError(
                "No Gemini API key found. Set GEMINI_API_KEY or GOOGLE_API_KEY."
            )
        self.model_name = model_name
        self.vision_model_name = vision_model_name or model_name
        if client is None:
            timeout_ms = int(timeout * 1000)
            client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=timeout_ms),
            )
        self.client = client
        logger.info(
            f"Gemini client initialized with model: {self.model_name} "
            f"(vision: {self.vision_model_name}, key: {mask_secret(api_key)}, timeout: {timeout}s)"
        )

    async def generate_text(self, prompt: str, temperature: float = 0.7) -> str:
        """Generate a plain-text completion."""
        response = await self.client.aio.models.generate_content(
            model=self.model_name,
            contents=prompt,
            config=types.GenerateContentConfig(temperature=temperature),
        )
        text = response.text or ""
        logger.info(f"Gemini text response: {len(text)} chars")
        return text

    async def generate_from_image(
        self,
        prompt: str,
        image_bytes: bytes,
        mime_type: str,
        temperature: float = 0.4,
        json_output: bool = True,
    ) -> str:
        """Generate a completion for a prompt plus one inline image.

        With ``json_output`` the model is asked for an application/json
        response; callers still have to parse defensively.
        """
        config = types.GenerateContentConfig(
            temperature=temperature,
            response_mime_type="application/json" if json_output else None,
        )
        response = await self.client.aio.models.generate_content(
            model=self.vision_model_name,
            contents=[
                prompt,
                types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
            ],
            config=config,
        )
        text = response.text or ""
        logger.info(f"Gemini vision response ({mime_type}, {len(image_bytes)} bytes in): {len(text)} chars")
        return text


def create_gemini_client(settings: Settings) -> Optional[GeminiClient]:
    """Build the shared client, or None when no key is configured."""
    if not settings.gemini_configured:
        logger.warning("GEMINI_API_KEY not set; analysis returns mock results and chat returns a fixed reply")
        return None
    return GeminiClient(
        api_key=settings.gemini_api_key,
        model_name=settings.gemini_model,
        vision_model_name=settings.gemini_vision_model,
        timeout=settings.gemini_timeout_seconds,
    )
