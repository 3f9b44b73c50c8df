"""Tests for the HTTP completion client, using httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from lead_reasoner.config import Settings
from lead_reasoner.services.completion import (
    ChatCompletionClient,
    CompletionError,
    CompletionRequest,
    CompletionTransportError,
    EmptyCompletionError,
    MalformedCompletionError,
    parse_json_object,
)


def _envelope(content):
    return {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"total_tokens": 321},
    }


def _client(handler) -> ChatCompletionClient:
    settings = Settings(llm_api_key="sk-test", llm_base_url="https://llm.test/v1/")
    return ChatCompletionClient(settings=settings, transport=httpx.MockTransport(handler))


REQUEST = CompletionRequest(
    system_instructions="You are a test.",
    user_context="Say hi.",
    temperature=0.2,
    max_tokens=100,
)


# ---------------------------------------------------------------------------
# Successful calls
# ---------------------------------------------------------------------------


class TestCompleteJson:
    @pytest.mark.asyncio
    async def test_returns_parsed_object(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_envelope('{"strategy": "qualify"}'))

        result = await _client(handler).complete_json(REQUEST)

        assert result == {"strategy": "qualify"}
        assert seen["url"] == "https://llm.test/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["response_format"] == {"type": "json_object"}
        assert seen["body"]["temperature"] == 0.2
        assert seen["body"]["messages"][0] == {"role": "system", "content": "You are a test."}

    @pytest.mark.asyncio
    async def test_text_mode_omits_response_format(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_envelope("Plain summary text."))

        request = CompletionRequest(system_instructions="s", user_context="u", json_mode=False)
        text = await _client(handler).complete_text(request)

        assert text == "Plain summary text."
        assert "response_format" not in seen["body"]


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "content,error",
        [
            (None, EmptyCompletionError),
            ("", EmptyCompletionError),
            ("   ", EmptyCompletionError),
            ("{not json", MalformedCompletionError),
            ("[1, 2, 3]", MalformedCompletionError),
            ('"just a string"', MalformedCompletionError),
        ],
    )
    async def test_bad_content(self, content, error):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=_envelope(content))

        with pytest.raises(error):
            await _client(handler).complete_json(REQUEST)

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, json={"error": "overloaded"})

        with pytest.raises(CompletionTransportError, match="HTTP 503"):
            await _client(handler).complete_json(REQUEST)

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(CompletionTransportError, match="timed out"):
            await _client(handler).complete_json(REQUEST)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CompletionTransportError, match="unreachable"):
            await _client(handler).complete_json(REQUEST)

    @pytest.mark.asyncio
    async def test_non_json_envelope(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>gateway</html>")

        with pytest.raises(MalformedCompletionError):
            await _client(handler).complete_json(REQUEST)

    @pytest.mark.asyncio
    async def test_envelope_without_choices(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"choices": []})

        with pytest.raises(MalformedCompletionError):
            await _client(handler).complete_json(REQUEST)

    @pytest.mark.asyncio
    async def test_empty_text_completion(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=_envelope(""))

        with pytest.raises(EmptyCompletionError):
            await _client(handler).complete_text(REQUEST)


class TestParseJsonObject:
    def test_all_failures_share_a_base_class(self):
        for bad in (None, "", "nope", "[]"):
            with pytest.raises(CompletionError):
                parse_json_object(bad)

    def test_error_kinds(self):
        assert EmptyCompletionError.kind == "empty_response"
        assert MalformedCompletionError.kind == "malformed_response"
        assert CompletionTransportError.kind == "transport_error"
