"""
Diagnosis normalization for Gemini vision output.

The model is asked for a fixed JSON schema but does not always comply.
Everything here turns whatever came back (JSON, JSON wrapped in prose,
or plain prose) into an AnalysisResult whose diagnosis is one of the
three known labels, and never raises.
"""
import logging
import math
from typing import Any, Optional

from .json_utils import extract_json_object
from .models import (
    AnalysisResult,
    DIAGNOSIS_HEALTHY,
    DIAGNOSIS_MILD,
    DIAGNOSIS_SEVERE,
)

logger = logging.getLogger(__name__)

FALLBACK_REASONING = (
    "Unable to generate advanced analysis - something went wrong. "
    "Please try again later."
)

DEFAULT_CONFIDENCE = 0.5

# Confidence estimates for the prose path, where the model gave no number
TEXT_CONFIDENCE = {
    DIAGNOSIS_SEVERE: 0.8,
    DIAGNOSIS_MILD: 0.7,
    DIAGNOSIS_HEALTHY: 0.5,
}

SEVERE_KEYWORDS = ("severe", "critical")
MILD_KEYWORDS = ("mild", "early", "minor")


def classify_diagnosis(text: Optional[str]) -> str:
    """Map free text onto one of the three diagnosis labels.

    Severe keywords win over mild ones; anything else is Healthy.
    """
    lower = (text or "").lower()
    if any(word in lower for word in SEVERE_KEYWORDS):
        return DIAGNOSIS_SEVERE
    if any(word in lower for word in MILD_KEYWORDS):
        return DIAGNOSIS_MILD
    return DIAGNOSIS_HEALTHY


def clamp_confidence(value: Any, default: float = DEFAULT_CONFIDENCE) -> float:
    """Clamp a model-supplied confidence into [0.0, 1.0].

    Missing, zero, non-numeric and NaN values all become ``default``.
    """
    if not value or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return max(0.0, min(1.0, number))


def sanitize_reasoning(text: Optional[str]) -> str:
    """Replace reasoning that leaks internal configuration language."""
    text = text or ""
    lower = text.lower()
    if (
        "mock" in lower
        or "gemini_api_key" in lower
        or ("set" in lower and "for real" in lower)
    ):
        return FALLBACK_REASONING
    return text


def default_disease_name(diagnosis: str, name: Optional[str] = None) -> str:
    if name:
        return name
    return "None" if diagnosis == DIAGNOSIS_HEALTHY else "Unknown Disease"


def _subject(value: Any, subject_hint: Optional[str]) -> str:
    return _text(value) or subject_hint or "Unknown"


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return "\n".join(str(item) for item in value)
    return str(value)


def result_from_structured(data: dict, subject_hint: Optional[str] = None) -> AnalysisResult:
    """Build a result from the JSON object the model returned."""
    diagnosis = classify_diagnosis(_text(data.get("diagnosis")))
    return AnalysisResult(
        diagnosis=diagnosis,
        confidence=clamp_confidence(data.get("confidence")),
        reasoning=sanitize_reasoning(_text(data.get("reasoning"))),
        identified_subject=_subject(data.get("identifiedSubject"), subject_hint),
        disease_name=default_disease_name(diagnosis, _text(data.get("diseaseName"))),
        disease_description=_text(data.get("diseaseDescription")),
        prevention_tips=_text(data.get("preventionTips")),
        severity=_text(data.get("severity")),
    )


def result_from_text(text: Optional[str], subject_hint: Optional[str] = None) -> AnalysisResult:
    """Heuristic result for model output that held no usable JSON."""
    diagnosis = classify_diagnosis(text)
    return AnalysisResult(
        diagnosis=diagnosis,
        confidence=TEXT_CONFIDENCE[diagnosis],
        reasoning=FALLBACK_REASONING,
        identified_subject=subject_hint or "Unknown",
        disease_name=default_disease_name(diagnosis),
    )


def fallback_result(subject_hint: Optional[str] = None) -> AnalysisResult:
    """Fixed result used when the model could not be reached at all."""
    return AnalysisResult(
        diagnosis=DIAGNOSIS_HEALTHY,
        confidence=DEFAULT_CONFIDENCE,
        reasoning=FALLBACK_REASONING,
        identified_subject=subject_hint or "Unknown",
        disease_name="None",
    )


def normalize_model_output(text: Optional[str], subject_hint: Optional[str] = None) -> AnalysisResult:
    """Turn raw model output into a well-formed AnalysisResult.

    Tries the first balanced JSON object first and falls back to
    keyword scanning over the whole text when that fails.
    """
    try:
        data = extract_json_object(text or "")
    except ValueError as e:
        logger.warning(f"No usable JSON in model output ({e}); using text heuristics")
        return result_from_text(text, subject_hint)

    try:
        return result_from_structured(data, subject_hint)
    except Exception as e:
        logger.error(f"Structured result could not be built: {e}")
        return result_from_text(text, subject_hint)
