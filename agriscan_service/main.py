"""
AgriScan AI Service - FastAPI Backend
Gemini-powered plant and animal diagnosis for the AgriScan mobile app.

Architecture:
  - Gemini vision model = image diagnosis, normalized to a fixed schema
  - Gemini text model = farming advice chat
  - NFT.Storage = optional IPFS pinning of analyzed images
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .analysis_gateway import ImageAnalysisGateway, is_image_data_uri
from .chat_gateway import ChatGateway
from .config import Settings
from .gemini_client import create_gemini_client
from .ipfs_storage import NFTStorageUploader
from .models import AnalyzeRequest, ChatRequest, ChatResponse, HealthResponse
from .structured_logging import (
    StructuredLogger,
    log_request,
    set_request_id,
    setup_logging,
)

logger = StructuredLogger(__name__)

QUIET_PATHS = ["/health", "/docs", "/openapi.json"]


def _first_error_message(errors: list) -> str:
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return f"{location}: {message}" if location else message


def build_gateways(settings: Settings) -> tuple[ImageAnalysisGateway, ChatGateway, Optional[NFTStorageUploader]]:
    """Construct the shared external clients once and hand them to the gateways."""
    gemini = create_gemini_client(settings)

    uploader = None
    if settings.ipfs_configured:
        uploader = NFTStorageUploader(
            api_key=settings.ipfs_api_key,
            base_url=settings.nft_storage_url,
            timeout=settings.ipfs_timeout_seconds,
        )
        logger.info("IPFS uploads enabled", storage_url=settings.nft_storage_url)
    else:
        logger.info("IPFS_API_KEY not set; image uploads disabled")

    analysis = ImageAnalysisGateway(
        model=gemini,
        uploader=uploader,
        fallback_on_error=settings.fallback_on_error,
    )
    chat = ChatGateway(model=gemini)
    return analysis, chat, uploader


def create_app(
    settings: Optional[Settings] = None,
    analysis_gateway: Optional[ImageAnalysisGateway] = None,
    chat_gateway: Optional[ChatGateway] = None,
) -> FastAPI:
    """Application factory.

    Gateways can be injected (tests, alternative hosting); otherwise they
    are built from ``settings``.
    """
    settings = settings or Settings.from_env()

    uploader = None
    if analysis_gateway is None or chat_gateway is None:
        default_analysis, default_chat, uploader = build_gateways(settings)
        analysis_gateway = analysis_gateway or default_analysis
        chat_gateway = chat_gateway or default_chat

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting AgriScan AI Service...",
            model_configured=settings.gemini_configured,
            ipfs_configured=settings.ipfs_configured,
        )
        yield
        if uploader is not None:
            await uploader.aclose()
        logger.info("Shutting down...")

    fastapi_app = FastAPI(
        title="AgriScan AI Service",
        description="Plant and animal health diagnosis and farming advice API",
        version="1.0.0",
        lifespan=lifespan,
    )
    fastapi_app.state.settings = settings
    fastapi_app.state.analysis_gateway = analysis_gateway
    fastapi_app.state.chat_gateway = chat_gateway

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    @fastapi_app.middleware("http")
    async def body_size_middleware(request: Request, call_next):
        """Reject bodies larger than the configured limit before parsing."""
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > settings.max_body_bytes:
            return JSONResponse(
                {
                    "error": "Request body too large",
                    "message": f"Maximum body size is {settings.max_body_bytes // (1024 * 1024)} MB",
                },
                status_code=413,
            )
        return await call_next(request)

    @fastapi_app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        """Middleware for request ID tracking and logging."""
        start_time = time.time()
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        set_request_id(request_id)

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000

        if request.url.path not in QUIET_PATHS:
            log_request(
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=duration_ms,
                client_ip=request.client.host if request.client else None,
            )

        response.headers["X-Request-ID"] = request_id
        return response

    @fastapi_app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            {"error": "Invalid request body", "message": _first_error_message(exc.errors())},
            status_code=400,
        )

    @fastapi_app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", path=request.url.path, error=str(exc))
        return JSONResponse(
            {"error": "Internal server error", "message": str(exc)},
            status_code=500,
        )

    @fastapi_app.get("/health")
    async def health():
        return HealthResponse(
            status="ok",
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    @fastapi_app.post("/analyze")
    async def analyze(request: dict, req: Request):
        """Diagnose a plant/animal image sent as a base64 data URI.

        Returns the normalized diagnosis plus the IPFS CID of the image
        when it was pinned, else ``imageCid: null``.
        """
        try:
            request_model = AnalyzeRequest.model_validate(request)
        except ValidationError as e:
            return JSONResponse(
                {"error": _first_error_message(e.errors())},
                status_code=400,
            )

        if not request_model.image_base64:
            return JSONResponse(
                {"error": "Missing required field: imageBase64"},
                status_code=400,
            )

        if not is_image_data_uri(request_model.image_base64):
            return JSONResponse(
                {"error": "Invalid image format. Expected data URI with base64"},
                status_code=400,
            )

        gateway: ImageAnalysisGateway = req.app.state.analysis_gateway
        try:
            result = await gateway.analyze(request_model.image_base64, request_model.plant_type)
        except Exception as e:
            logger.error("analyze failed", error=str(e))
            return JSONResponse(
                {"error": "Failed to analyze image", "message": str(e)},
                status_code=500,
            )

        return JSONResponse(result.model_dump(by_alias=True))

    @fastapi_app.post("/chat")
    async def chat(request: dict, req: Request):
        """Answer a farming question, optionally with free-text context."""
        try:
            request_model = ChatRequest.model_validate(request)
        except ValidationError as e:
            return JSONResponse(
                {"error": _first_error_message(e.errors())},
                status_code=400,
            )

        if not request_model.message:
            return JSONResponse(
                {"error": "Missing required field: message"},
                status_code=400,
            )

        gateway: ChatGateway = req.app.state.chat_gateway
        try:
            reply = await gateway.reply(request_model.message, request_model.context)
        except Exception as e:
            logger.error("chat failed", error=str(e))
            return JSONResponse(
                {"error": "Failed to process chat message", "message": str(e)},
                status_code=500,
            )

        return JSONResponse(ChatResponse(response=reply).model_dump(by_alias=True))

    return fastapi_app


_settings = Settings.from_env()
setup_logging(_settings.log_level, use_json=_settings.log_json)
app = create_app(_settings)


def run() -> None:
    """Run the module-level app with uvicorn."""
    import uvicorn
    uvicorn.run(app, host=_settings.host, port=_settings.port)


if __name__ == "__main__":
    run()
