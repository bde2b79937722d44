"""FastAPI server exposing receipt text extraction over HTTP."""

from typing import Any

from fastapi import FastAPI
from pydantic import BaseModel, Field

from receiptlens.application.receipts.extract import ReceiptExtractionRequest, run_receipt_extraction_async
from receiptlens.domain.receipt import SCHEMA_VERSION, OcrInput
from receiptlens.receipt.enhancement import ReceiptEnhancer
from receiptlens.runtime.logging import get_logger
from receiptlens.runtime.settings import ExtractionSettings

logger = get_logger(__name__)


class ExtractRequest(BaseModel):
    """OCR output posted by a client."""

    text: str
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    success: bool = True
    enhance: bool = False


def create_app(settings: ExtractionSettings | None = None, enhancer: ReceiptEnhancer | None = None) -> FastAPI:
    """Build the app. Settings default to the environment at startup."""
    resolved_settings = settings or ExtractionSettings.from_env()
    app = FastAPI(title="Receipt Text Extraction")

    @app.post("/extract")
    async def extract(body: ExtractRequest) -> dict[str, Any]:
        """Turn OCR text into a structured receipt record."""
        request = ReceiptExtractionRequest(
            ocr=OcrInput(text=body.text, confidence=body.confidence, success=body.success),
            enhance=body.enhance,
        )
        record = await run_receipt_extraction_async(request, settings=resolved_settings, enhancer=enhancer)
        logger.debug(
            f"Extracted: merchant={record.merchant!r}, items={len(record.items)}, confidence={record.confidence:.2f}"
        )
        return record.to_dict()

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "schema_version": SCHEMA_VERSION}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
