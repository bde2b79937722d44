from collections.abc import Mapping
from typing import Any

from fastapi.testclient import TestClient

from receiptlens.runtime.extraction_server import create_app
from receiptlens.runtime.settings import ExtractionSettings


class MerchantEnhancer:
    async def enhance(self, raw_text: str, draft_summary: Mapping[str, Any]) -> Mapping[str, Any] | None:
        return {"merchant": "Corner Bistro"}


def _client(enhancer: Any = None) -> TestClient:
    return TestClient(create_app(settings=ExtractionSettings(), enhancer=enhancer))


def test_health() -> None:
    response = _client().get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "schema_version": "1"}


def test_extract_returns_record(sample_receipt_text: str) -> None:
    response = _client().post("/extract", json={"text": sample_receipt_text, "confidence": 0.95})

    assert response.status_code == 200
    data = response.json()
    assert data["schema_version"] == "1"
    assert data["merchant"] == "CAFE OLIMPICO"
    assert data["total"] == "11.50"
    assert data["tax"]["gst"] == "0.50"
    assert [item["name"] for item in data["items"]] == ["Bananas", "Apples", "Bread"]
    assert data["issues"] == []


def test_extract_failed_ocr() -> None:
    response = _client().post("/extract", json={"text": "TOTAL 5.00", "success": False})

    assert response.status_code == 200
    data = response.json()
    assert data["confidence"] == 0.0
    assert data["total"] is None
    assert data["raw_text"] == "TOTAL 5.00"


def test_extract_rejects_out_of_range_confidence() -> None:
    response = _client().post("/extract", json={"text": "TOTAL 5.00", "confidence": 1.5})

    assert response.status_code == 422


def test_extract_with_enhancement() -> None:
    client = _client(enhancer=MerchantEnhancer())

    plain = client.post("/extract", json={"text": "12.00\nTOTAL 12.00"}).json()
    enhanced = client.post("/extract", json={"text": "12.00\nTOTAL 12.00", "enhance": True}).json()

    assert plain["merchant"] is None
    assert enhanced["merchant"] == "Corner Bistro"
    assert enhanced["category"] == "restaurant"
    assert enhanced["enhanced_fields"] == ["merchant"]
