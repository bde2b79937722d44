"""HTTP client for an OpenAI-compatible chat completions endpoint used as receipt enhancer."""

from __future__ import annotations

import json
import time
from collections.abc import Mapping
from typing import Any

import httpx

from receiptlens.runtime.logging import get_logger
from receiptlens.runtime.settings import ExtractionSettings

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You extract structured data from OCR text of a purchase receipt. "
    "Reply with a single JSON object with keys: merchant (string), date (YYYY-MM-DD), "
    "subtotal, total (numbers), tax (object with optional gst, qst, pst, hst, total numbers) "
    "and items (list of objects with name, price, optional quantity and unit_price). "
    "Use null for anything not printed on the receipt. Do not invent values."
)


class EnhancementUnavailable(RuntimeError):
    """Raised when the enhancement service cannot be reached or returns an unusable reply."""


def extract_json_object(content: str) -> dict[str, Any]:
    """Parse the first JSON object in a model reply, tolerating code fences and chatter."""
    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end <= start:
        raise EnhancementUnavailable("Enhancement reply contains no JSON object")
    try:
        data = json.loads(content[start : end + 1])
    except json.JSONDecodeError as exc:
        raise EnhancementUnavailable(f"Enhancement reply is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise EnhancementUnavailable("Enhancement reply is not a JSON object")
    return data


class LLMReceiptEnhancer:
    """
    Ask a chat model to re-read the receipt and return the draft shape.

    Args:
        base_url: Endpoint root; "/chat/completions" is appended.
        model: Model name sent with every request.
        api_key: Optional bearer token.
        timeout: Transport timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: ExtractionSettings) -> LLMReceiptEnhancer:
        if not settings.enhancement_url:
            raise EnhancementUnavailable("RECEIPTLENS_ENHANCEMENT_URL is not set")
        return cls(
            settings.enhancement_url,
            settings.enhancement_model,
            api_key=settings.enhancement_api_key,
            timeout=settings.enhancement_timeout,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _request_body(self, raw_text: str, draft_summary: Mapping[str, Any]) -> dict[str, Any]:
        user_prompt = (
            "Receipt OCR text:\n"
            f"{raw_text}\n\n"
            "Values already extracted (may be incomplete):\n"
            f"{json.dumps(draft_summary, ensure_ascii=False)}"
        )
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": 0,
            "response_format": {"type": "json_object"},
        }

    async def enhance(self, raw_text: str, draft_summary: Mapping[str, Any]) -> Mapping[str, Any] | None:
        url = f"{self.base_url}/chat/completions"
        logger.debug("Sending receipt to enhancement service at %s", self.base_url)

        try:
            start_time = time.monotonic()
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    url, headers=self._headers(), json=self._request_body(raw_text, draft_summary)
                )
            logger.debug("Enhancement service returned in %.2f seconds", time.monotonic() - start_time)
        except httpx.RequestError as exc:
            raise EnhancementUnavailable(f"Failed to connect to enhancement service: {exc}") from exc

        if response.status_code != 200:
            raise EnhancementUnavailable(f"Enhancement service error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise EnhancementUnavailable("Enhancement service returned non-JSON body") from exc

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise EnhancementUnavailable("Enhancement service returned no choices")
        content = (choices[0].get("message") or {}).get("content")
        if not content:
            return None
        return extract_json_object(content)
