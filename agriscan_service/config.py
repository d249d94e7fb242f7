"""
Runtime configuration for the AgriScan AI Service.

Values come from the process environment, with a local .env file loaded
first for development. Missing credentials are not errors: no Gemini key
means mock/apology responses, no IPFS key means uploads are skipped.
"""
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_NFT_STORAGE_URL = "https://api.nft.storage"
MAX_BODY_MB = 10


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_secret(*names: str) -> Optional[str]:
    """First non-blank value among the given variables."""
    for name in names:
        value = os.getenv(name)
        if value and value.strip():
            return value.strip()
    return None


def _env_list(name: str, default: list[str]) -> list[str]:
    value = os.getenv(name)
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    gemini_vision_model: str = DEFAULT_GEMINI_MODEL
    gemini_timeout_seconds: float = 120.0
    ipfs_api_key: Optional[str] = None
    nft_storage_url: str = DEFAULT_NFT_STORAGE_URL
    ipfs_timeout_seconds: float = 60.0
    fallback_on_error: bool = True
    max_body_bytes: int = MAX_BODY_MB * 1024 * 1024
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    log_json: bool = True
    host: str = "0.0.0.0"
    port: int = 3000

    @property
    def gemini_configured(self) -> bool:
        return bool(self.gemini_api_key)

    @property
    def ipfs_configured(self) -> bool:
        return bool(self.ipfs_api_key)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """Build settings from environment variables (and .env if present)."""
        if dotenv:
            load_dotenv()

        gemini_model = os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL)
        return cls(
            gemini_api_key=_env_secret("GEMINI_API_KEY", "GOOGLE_API_KEY"),
            gemini_model=gemini_model,
            gemini_vision_model=os.getenv("GEMINI_VISION_MODEL", gemini_model),
            gemini_timeout_seconds=float(os.getenv("GEMINI_TIMEOUT_SECONDS", "120")),
            ipfs_api_key=_env_secret("IPFS_API_KEY"),
            nft_storage_url=os.getenv("NFT_STORAGE_URL", DEFAULT_NFT_STORAGE_URL),
            ipfs_timeout_seconds=float(os.getenv("IPFS_TIMEOUT_SECONDS", "60")),
            fallback_on_error=_env_bool("ANALYSIS_FALLBACK_ON_ERROR", True),
            max_body_bytes=int(float(os.getenv("MAX_BODY_MB", str(MAX_BODY_MB))) * 1024 * 1024),
            cors_origins=_env_list("CORS_ORIGINS", ["*"]),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("LOG_JSON", True),
            host=os.getenv("HOST", "0.0.0.0"),
            port=max(1, int(os.getenv("PORT", "3000"))),
        )
