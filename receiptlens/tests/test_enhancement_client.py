import asyncio
import json

import httpx
import pytest

from receiptlens.runtime.enhancement_client import EnhancementUnavailable, LLMReceiptEnhancer, extract_json_object
from receiptlens.runtime.settings import ExtractionSettings


def _chat_reply(content: str | None) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _enhancer(handler, api_key: str | None = None) -> LLMReceiptEnhancer:
    return LLMReceiptEnhancer(
        "http://llm.test/v1/", "test-model", api_key=api_key, transport=httpx.MockTransport(handler)
    )


def test_extract_json_object_tolerates_fences_and_chatter() -> None:
    content = 'Sure! Here it is:\n```json\n{"merchant": "Cafe", "total": 4.5}\n```'

    assert extract_json_object(content) == {"merchant": "Cafe", "total": 4.5}


def test_extract_json_object_rejects_non_json() -> None:
    with pytest.raises(EnhancementUnavailable):
        extract_json_object("no receipt here")
    with pytest.raises(EnhancementUnavailable):
        extract_json_object("{not json}")


def test_enhance_posts_chat_request() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_chat_reply('{"merchant": "Cafe Olimpico"}'))

    enhancer = _enhancer(handler, api_key="sk-test")
    payload = asyncio.run(enhancer.enhance("CAFE OLIMPICO\nTOTAL 4.50", {"merchant": None}))

    assert payload == {"merchant": "Cafe Olimpico"}
    request = seen[0]
    assert str(request.url) == "http://llm.test/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    body = json.loads(request.content)
    assert body["model"] == "test-model"
    assert body["temperature"] == 0
    assert "CAFE OLIMPICO" in body["messages"][1]["content"]


def test_enhance_without_api_key_sends_no_auth_header() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_chat_reply("{}"))

    asyncio.run(_enhancer(handler).enhance("TOTAL 1.00", {}))

    assert "Authorization" not in seen[0].headers


def test_enhance_empty_content_returns_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_chat_reply(None))

    assert asyncio.run(_enhancer(handler).enhance("TOTAL 1.00", {})) is None


def test_enhance_http_error_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="overloaded")

    with pytest.raises(EnhancementUnavailable, match="500"):
        asyncio.run(_enhancer(handler).enhance("TOTAL 1.00", {}))


def test_enhance_connection_error_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(EnhancementUnavailable, match="Failed to connect"):
        asyncio.run(_enhancer(handler).enhance("TOTAL 1.00", {}))


def test_from_settings_requires_url() -> None:
    with pytest.raises(EnhancementUnavailable):
        LLMReceiptEnhancer.from_settings(ExtractionSettings())

    enhancer = LLMReceiptEnhancer.from_settings(
        ExtractionSettings(enhancement_url="http://llm.test/v1", enhancement_model="llama3", enhancement_timeout=3.0)
    )
    assert enhancer.base_url == "http://llm.test/v1"
    assert enhancer.model == "llama3"
    assert enhancer.timeout == 3.0
