"""
Image analysis gateway.

Decodes the data-URI image, asks the Gemini vision model for a diagnosis,
normalizes the answer and, when storage is configured, pins the image on
IPFS. With ``fallback_on_error`` (the default) the caller always gets a
well-formed result, even when the model call fails.
"""
import base64
import binascii
import logging
import random
import re
from typing import Optional, Tuple

from .gemini_client import GeminiClient
from .ipfs_storage import NFTStorageUploader, StorageConfigError, StorageUploadError
from .models import AnalysisResult, AnalyzeResponse, DIAGNOSES
from .normalizer import (
    FALLBACK_REASONING,
    default_disease_name,
    fallback_result,
    normalize_model_output,
)
from .prompts import build_analysis_prompt

logger = logging.getLogger(__name__)

DATA_URI_IMAGE_PREFIX = "data:image/"
DEFAULT_MIME_TYPE = "image/jpeg"

MOCK_CONFIDENCE_RANGE = (0.6, 0.9)


class InvalidDataURIError(ValueError):
    """The image field is not a decodable base64 data URI."""


def is_image_data_uri(value) -> bool:
    return isinstance(value, str) and value.startswith(DATA_URI_IMAGE_PREFIX)


def parse_data_uri(uri: str) -> Tuple[str, bytes]:
    """Split ``data:<mime>;base64,<payload>`` into (mime type, raw bytes)."""
    header, sep, payload = uri.partition(",")
    if not sep:
        raise InvalidDataURIError("Data URI has no payload separator")

    match = re.match(r"data:([^;,]+)", header)
    mime_type = match.group(1) if match else DEFAULT_MIME_TYPE

    try:
        data = base64.b64decode(payload)
    except (binascii.Error, ValueError) as e:
        raise InvalidDataURIError(f"Image payload is not valid base64: {e}") from e
    if not data:
        raise InvalidDataURIError("Image payload is empty")
    return mime_type, data


class ImageAnalysisGateway:
    """Diagnoses a single image per call; holds no per-request state."""

    def __init__(
        self,
        model: Optional[GeminiClient],
        uploader: Optional[NFTStorageUploader] = None,
        fallback_on_error: bool = True,
        rng: Optional[random.Random] = None,
    ):
        self.model = model
        self.uploader = uploader
        self.fallback_on_error = fallback_on_error
        self._rng = rng or random.Random()

    async def analyze(self, image_data_uri: str, subject_hint: Optional[str] = None) -> AnalyzeResponse:
        if self.model is None:
            logger.warning("GEMINI_API_KEY not set, returning mock analysis")
            result = self.mock_result(subject_hint)
            image_bytes = self._decode_for_upload(image_data_uri)
        else:
            try:
                mime_type, image_bytes = parse_data_uri(image_data_uri)
                result = await self._run_model(image_bytes, mime_type, subject_hint)
            except Exception as e:
                if not self.fallback_on_error:
                    raise
                logger.error(f"Analysis failed, returning fallback result: {e}", exc_info=True)
                return AnalyzeResponse.from_result(fallback_result(subject_hint))

        image_cid = await self._maybe_upload(image_bytes)
        return AnalyzeResponse.from_result(result, image_cid=image_cid)

    async def _run_model(self, image_bytes: bytes, mime_type: str, subject_hint: Optional[str]) -> AnalysisResult:
        prompt = build_analysis_prompt(subject_hint)
        logger.info(f"Analyzing image ({mime_type}, {len(image_bytes)} bytes, hint={subject_hint!r})")
        text = await self.model.generate_from_image(prompt, image_bytes, mime_type)
        result = normalize_model_output(text, subject_hint)
        logger.info(f"Diagnosis: {result.diagnosis} ({result.confidence:.2f}), subject={result.identified_subject}")
        return result

    def mock_result(self, subject_hint: Optional[str] = None) -> AnalysisResult:
        """Random result for offline/demo operation without a model key."""
        diagnosis = self._rng.choice(DIAGNOSES)
        confidence = round(self._rng.uniform(*MOCK_CONFIDENCE_RANGE), 2)
        return AnalysisResult(
            diagnosis=diagnosis,
            confidence=confidence,
            reasoning=FALLBACK_REASONING,
            identified_subject=subject_hint or "Unknown",
            disease_name=default_disease_name(diagnosis),
        )

    def _decode_for_upload(self, image_data_uri: str) -> Optional[bytes]:
        if self.uploader is None:
            return None
        try:
            return parse_data_uri(image_data_uri)[1]
        except InvalidDataURIError as e:
            logger.warning(f"Skipping IPFS upload: {e}")
            return None

    async def _maybe_upload(self, image_bytes: Optional[bytes]) -> Optional[str]:
        if self.uploader is None or not image_bytes:
            return None
        try:
            return await self.uploader.upload_image(image_bytes)
        except (StorageConfigError, StorageUploadError) as e:
            logger.warning(f"IPFS upload failed, continuing without CID: {e}")
            return None
