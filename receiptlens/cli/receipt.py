"""Receipt command handlers used by the unified CLI."""

import argparse
import asyncio
import json
import sys
from dataclasses import replace
from pathlib import Path

from receiptlens.runtime import ExtractionSettings, get_logger

logger = get_logger(__name__)


def _read_text(source: str, encoding: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding=encoding)


def cmd_extract(args: argparse.Namespace) -> None:
    """Extract a receipt record from OCR text and print it as JSON."""
    from receiptlens.application.receipts.extract import (
        ReceiptExtractionRequest,
        run_receipt_extraction,
        run_receipt_extraction_async,
    )
    from receiptlens.domain.receipt import OcrInput

    if args.text_file != "-" and not Path(args.text_file).is_file():
        logger.error("OCR text file not found: %s", args.text_file)
        print(f"Error: OCR text file not found: {args.text_file}")
        sys.exit(1)

    if not 0.0 <= args.ocr_confidence <= 1.0:
        print(f"Error: --ocr-confidence must be between 0 and 1, got {args.ocr_confidence}")
        sys.exit(1)

    settings = ExtractionSettings.from_env()
    if args.date_order:
        settings = replace(settings, date_order=args.date_order)

    try:
        text = _read_text(args.text_file, args.encoding)
    except UnicodeDecodeError as exc:
        logger.error("Cannot decode %s as %s: %s", args.text_file, args.encoding, exc)
        print(f"Error: {args.text_file} is not valid {args.encoding} text; retry with --encoding latin-1")
        sys.exit(1)
    except LookupError:
        print(f"Error: unknown encoding: {args.encoding}")
        sys.exit(1)

    request = ReceiptExtractionRequest(
        ocr=OcrInput(text=text, confidence=args.ocr_confidence),
        enhance=args.enhance,
    )
    if args.enhance:
        record = asyncio.run(run_receipt_extraction_async(request, settings=settings))
    else:
        record = run_receipt_extraction(request, settings=settings)

    indent = None if args.compact else 2
    print(json.dumps(record.to_dict(), indent=indent, ensure_ascii=False))


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the FastAPI extraction server."""
    import uvicorn

    from receiptlens.runtime import extraction_server as server

    print(f"Starting extraction server on {args.host}:{args.port}")
    print(f"Endpoints: POST http://{args.host}:{args.port}/extract | GET /health")
    print("Press Ctrl+C to stop")

    uvicorn.run(server.app, host=args.host, port=args.port)
