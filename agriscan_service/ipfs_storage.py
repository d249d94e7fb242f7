"""
IPFS pinning via the NFT.Storage HTTP API.
"""
import io
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.nft.storage"
DEFAULT_TIMEOUT = 60.0

IMAGE_FILENAME = "plant-image.jpg"
IMAGE_MIME_TYPE = "image/jpeg"


class StorageConfigError(RuntimeError):
    """Upload attempted without a storage API key."""


class StorageUploadError(RuntimeError):
    """The storage service could not pin the image."""


class NFTStorageUploader:
    """Pins image bytes on IPFS and returns the content identifier."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def upload_image(self, image_bytes: bytes) -> str:
        """Upload an image and return its CID.

        Raises:
            StorageConfigError: no API key configured.
            StorageUploadError: any transport, HTTP or payload failure.
        """
        if not self.api_key:
            raise StorageConfigError("IPFS_API_KEY not configured")

        try:
            response = await self.client.post(
                f"{self.base_url}/upload",
                headers={"Authorization": f"Bearer {self.api_key}"},
                files={"file": (IMAGE_FILENAME, io.BytesIO(image_bytes), IMAGE_MIME_TYPE)},
            )
            response.raise_for_status()
            data = response.json()
            if not data.get("ok", False):
                error = data.get("error")
                message = error.get("message") if isinstance(error, dict) else error
                raise StorageUploadError(message or "service reported failure")
            cid = (data.get("value") or {}).get("cid")
            if not cid:
                raise StorageUploadError("response did not include a CID")
        except httpx.HTTPStatusError as e:
            logger.error(f"NFT.Storage HTTP error: {e.response.status_code} - {e.response.text}")
            raise StorageUploadError(f"IPFS upload failed: HTTP {e.response.status_code}") from e
        except Exception as e:
            logger.error(f"IPFS upload error: {e}")
            raise StorageUploadError(f"IPFS upload failed: {e}") from e

        logger.info(f"Image uploaded to IPFS: {cid}")
        return cid

    async def aclose(self) -> None:
        await self.client.aclose()
