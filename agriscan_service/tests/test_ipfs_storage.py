"""
Tests for the NFT.Storage uploader.

Uses httpx.MockTransport so requests never leave the process.
"""
import asyncio
import json

import httpx
import pytest

from agriscan_service.ipfs_storage import (
    IMAGE_FILENAME,
    NFTStorageUploader,
    StorageConfigError,
    StorageUploadError,
)

IMAGE_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"


def _uploader(handler, api_key="test-token"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NFTStorageUploader(api_key=api_key, base_url="https://nft.test/", client=client)


class TestNFTStorageUploader:
    """Test NFTStorageUploader.upload_image."""

    def test_returns_cid(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = request.content
            return httpx.Response(200, json={"ok": True, "value": {"cid": "bafkreicid"}})

        cid = asyncio.run(_uploader(handler).upload_image(IMAGE_BYTES))

        assert cid == "bafkreicid"
        assert seen["url"] == "https://nft.test/upload"
        assert seen["auth"] == "Bearer test-token"
        assert IMAGE_FILENAME.encode() in seen["body"]
        assert b"image/jpeg" in seen["body"]
        assert IMAGE_BYTES in seen["body"]

    def test_missing_key_fails_before_network(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(StorageConfigError, match="IPFS_API_KEY not configured"):
            asyncio.run(_uploader(handler, api_key=None).upload_image(IMAGE_BYTES))

    def test_http_error_wrapped(self):
        def handler(request):
            return httpx.Response(401, json={"ok": False, "error": {"message": "Unauthorized"}})

        with pytest.raises(StorageUploadError, match="IPFS upload failed: HTTP 401"):
            asyncio.run(_uploader(handler).upload_image(IMAGE_BYTES))

    def test_service_failure_wrapped(self):
        def handler(request):
            return httpx.Response(200, json={"ok": False, "error": {"message": "quota reached"}})

        with pytest.raises(StorageUploadError, match="IPFS upload failed: quota reached"):
            asyncio.run(_uploader(handler).upload_image(IMAGE_BYTES))

    def test_missing_cid_wrapped(self):
        def handler(request):
            return httpx.Response(200, json={"ok": True, "value": {}})

        with pytest.raises(StorageUploadError, match="CID"):
            asyncio.run(_uploader(handler).upload_image(IMAGE_BYTES))

    def test_transport_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(StorageUploadError) as exc_info:
            asyncio.run(_uploader(handler).upload_image(IMAGE_BYTES))
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_non_json_body_wrapped(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>gateway</html>")

        with pytest.raises(StorageUploadError):
            asyncio.run(_uploader(handler).upload_image(IMAGE_BYTES))

    def test_aclose(self):
        uploader = _uploader(lambda request: httpx.Response(200, content=json.dumps({}).encode()))
        asyncio.run(uploader.aclose())
        assert uploader.client.is_closed
