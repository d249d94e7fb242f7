"""
Tests for the image analysis gateway.

The Gemini client and the IPFS uploader are replaced with mocks, so no
network access is needed.
"""
import asyncio
import base64
import json
import random
import unittest
from unittest.mock import AsyncMock, Mock

from agriscan_service.analysis_gateway import (
    ImageAnalysisGateway,
    InvalidDataURIError,
    is_image_data_uri,
    parse_data_uri,
)
from agriscan_service.ipfs_storage import StorageUploadError
from agriscan_service.models import DIAGNOSES
from agriscan_service.normalizer import FALLBACK_REASONING

IMAGE_BYTES = b"\x89PNG\r\n\x1a\nfake-image-bytes"
DATA_URI = "data:image/png;base64," + base64.b64encode(IMAGE_BYTES).decode()

MODEL_JSON = json.dumps({
    "diagnosis": "Severe Disease",
    "confidence": 0.91,
    "reasoning": "Large necrotic lesions covering most of the leaf.",
    "identifiedSubject": "Coffee",
    "diseaseName": "Coffee Leaf Rust",
    "diseaseDescription": "Orange powdery pustules on leaf undersides.",
    "preventionTips": "Apply copper fungicide and improve airflow.",
    "severity": "Advanced",
})


def _model(return_value=MODEL_JSON, side_effect=None):
    model = Mock()
    model.generate_from_image = AsyncMock(return_value=return_value, side_effect=side_effect)
    return model


def _uploader(cid="bafkreiexamplecid", side_effect=None):
    uploader = Mock()
    uploader.upload_image = AsyncMock(return_value=cid, side_effect=side_effect)
    return uploader


class TestDataUri(unittest.TestCase):
    """Test data URI helpers."""

    def test_is_image_data_uri(self):
        self.assertTrue(is_image_data_uri(DATA_URI))
        self.assertFalse(is_image_data_uri("not-a-data-uri"))
        self.assertFalse(is_image_data_uri("data:text/plain;base64,aGk="))
        self.assertFalse(is_image_data_uri(None))

    def test_parse(self):
        mime_type, data = parse_data_uri(DATA_URI)
        self.assertEqual(mime_type, "image/png")
        self.assertEqual(data, IMAGE_BYTES)

    def test_parse_defaults_mime(self):
        payload = base64.b64encode(IMAGE_BYTES).decode()
        mime_type, _ = parse_data_uri(f"data:;base64,{payload}")
        self.assertEqual(mime_type, "image/jpeg")

    def test_parse_without_separator(self):
        with self.assertRaises(InvalidDataURIError):
            parse_data_uri("data:image/png;base64")

    def test_parse_bad_base64(self):
        with self.assertRaises(InvalidDataURIError):
            parse_data_uri("data:image/png;base64,abc")

    def test_parse_empty_payload(self):
        with self.assertRaises(InvalidDataURIError):
            parse_data_uri("data:image/png;base64,")


class TestMockMode(unittest.TestCase):
    """No model configured: randomized demo results."""

    def test_mock_result_shape(self):
        gateway = ImageAnalysisGateway(model=None, rng=random.Random(7))
        for _ in range(50):
            result = gateway.mock_result("Cassava")
            self.assertIn(result.diagnosis, DIAGNOSES)
            self.assertGreaterEqual(result.confidence, 0.6)
            self.assertLessEqual(result.confidence, 0.9)
            self.assertEqual(result.confidence, round(result.confidence, 2))
            self.assertEqual(result.identified_subject, "Cassava")
            self.assertEqual(result.reasoning, FALLBACK_REASONING)

    def test_mock_covers_all_categories(self):
        gateway = ImageAnalysisGateway(model=None, rng=random.Random(1))
        seen = {gateway.mock_result().diagnosis for _ in range(200)}
        self.assertEqual(seen, set(DIAGNOSES))

    def test_analyze_without_model_or_storage(self):
        gateway = ImageAnalysisGateway(model=None)
        response = asyncio.run(gateway.analyze(DATA_URI))
        self.assertIn(response.diagnosis, DIAGNOSES)
        self.assertIsNone(response.image_cid)
        self.assertEqual(response.identified_subject, "Unknown")

    def test_analyze_without_model_still_uploads(self):
        uploader = _uploader()
        gateway = ImageAnalysisGateway(model=None, uploader=uploader)
        response = asyncio.run(gateway.analyze(DATA_URI))
        uploader.upload_image.assert_awaited_once_with(IMAGE_BYTES)
        self.assertEqual(response.image_cid, "bafkreiexamplecid")


class TestModelPath(unittest.TestCase):
    """Model configured: prompt, normalization, fallback and upload."""

    def test_successful_analysis(self):
        model = _model()
        gateway = ImageAnalysisGateway(model=model)
        response = asyncio.run(gateway.analyze(DATA_URI, "Coffee"))

        prompt, image_bytes, mime_type = model.generate_from_image.await_args.args
        self.assertIn("The subject type is: Coffee.", prompt)
        self.assertEqual(image_bytes, IMAGE_BYTES)
        self.assertEqual(mime_type, "image/png")

        self.assertEqual(response.diagnosis, "Severe Disease")
        self.assertEqual(response.confidence, 0.91)
        self.assertEqual(response.disease_name, "Coffee Leaf Rust")
        self.assertIsNone(response.image_cid)

    def test_prompt_without_hint_asks_for_identification(self):
        model = _model()
        asyncio.run(ImageAnalysisGateway(model=model).analyze(DATA_URI))
        prompt = model.generate_from_image.await_args.args[0]
        self.assertIn("Identify what organism this is", prompt)

    def test_prose_output_is_classified(self):
        model = _model(return_value="Mild early blight on two leaves.")
        response = asyncio.run(ImageAnalysisGateway(model=model).analyze(DATA_URI))
        self.assertEqual(response.diagnosis, "Mild Disease")
        self.assertEqual(response.confidence, 0.7)

    def test_model_error_returns_fallback(self):
        uploader = _uploader()
        model = _model(side_effect=RuntimeError("503 UNAVAILABLE"))
        gateway = ImageAnalysisGateway(model=model, uploader=uploader)
        response = asyncio.run(gateway.analyze(DATA_URI, "Goat"))

        self.assertEqual(response.diagnosis, "Healthy")
        self.assertEqual(response.confidence, 0.5)
        self.assertEqual(response.reasoning, FALLBACK_REASONING)
        self.assertEqual(response.identified_subject, "Goat")
        self.assertIsNone(response.image_cid)
        uploader.upload_image.assert_not_awaited()

    def test_model_error_propagates_without_fallback(self):
        model = _model(side_effect=RuntimeError("quota exceeded"))
        gateway = ImageAnalysisGateway(model=model, fallback_on_error=False)
        with self.assertRaises(RuntimeError):
            asyncio.run(gateway.analyze(DATA_URI))

    def test_undecodable_image_returns_fallback(self):
        model = _model()
        response = asyncio.run(ImageAnalysisGateway(model=model).analyze("data:image/png;base64,abc"))
        self.assertEqual(response.diagnosis, "Healthy")
        model.generate_from_image.assert_not_awaited()

    def test_upload_success_sets_cid(self):
        uploader = _uploader(cid="bafybeigdyrzt")
        gateway = ImageAnalysisGateway(model=_model(), uploader=uploader)
        response = asyncio.run(gateway.analyze(DATA_URI))
        uploader.upload_image.assert_awaited_once_with(IMAGE_BYTES)
        self.assertEqual(response.image_cid, "bafybeigdyrzt")

    def test_upload_failure_is_swallowed(self):
        uploader = _uploader(side_effect=StorageUploadError("IPFS upload failed: HTTP 401"))
        gateway = ImageAnalysisGateway(model=_model(), uploader=uploader)
        response = asyncio.run(gateway.analyze(DATA_URI))
        self.assertEqual(response.diagnosis, "Severe Disease")
        self.assertIsNone(response.image_cid)
