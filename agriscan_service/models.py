"""
Pydantic request/response models for the AgriScan AI Service API.

Field names are snake_case in Python and camelCase on the wire.
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Literal, Optional


DIAGNOSIS_HEALTHY = "Healthy"
DIAGNOSIS_MILD = "Mild Disease"
DIAGNOSIS_SEVERE = "Severe Disease"
DIAGNOSES = (DIAGNOSIS_HEALTHY, DIAGNOSIS_MILD, DIAGNOSIS_SEVERE)

DiagnosisLabel = Literal["Healthy", "Mild Disease", "Severe Disease"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Image Analysis ---

class AnalyzeRequest(CamelModel):
    image_base64: Optional[str] = None
    plant_type: Optional[str] = None  # Subject hint, e.g. "Tomato" or "Goat"


class AnalysisResult(CamelModel):
    diagnosis: DiagnosisLabel
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    identified_subject: str = "Unknown"
    disease_name: str = "None"
    disease_description: str = ""
    prevention_tips: str = ""
    severity: str = ""


class AnalyzeResponse(AnalysisResult):
    image_cid: Optional[str] = None

    @classmethod
    def from_result(cls, result: AnalysisResult, image_cid: Optional[str] = None) -> "AnalyzeResponse":
        return cls(**result.model_dump(), image_cid=image_cid)


# --- Chat ---

class ChatRequest(CamelModel):
    message: Optional[str] = None
    context: Optional[str] = None


class ChatResponse(CamelModel):
    response: str


# --- Health / Errors ---

class HealthResponse(BaseModel):
    status: str
    timestamp: str


class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None
