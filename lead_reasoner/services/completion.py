"""
Completion Service Client.

Narrow boundary to the natural-language completion service: submit a
system/user prompt pair, get back either a parsed JSON object, plain
text, or a ``CompletionError``. Empty content, malformed encoding and
transport failures (including timeouts) all surface as subclasses of
``CompletionError`` so callers can treat them identically.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional, Protocol

import httpx

from lead_reasoner.config import Settings, get_settings
from lead_reasoner.logging_config import get_logger

logger = get_logger(__name__)


class CompletionError(Exception):
    """The completion service did not produce a usable response."""

    kind = "service_failure"


class EmptyCompletionError(CompletionError):
    kind = "empty_response"


class MalformedCompletionError(CompletionError):
    kind = "malformed_response"


class CompletionTransportError(CompletionError):
    kind = "transport_error"


@dataclass(frozen=True)
class CompletionRequest:
    system_instructions: str
    user_context: str
    temperature: float = 0.3
    max_tokens: int = 1000
    json_mode: bool = True


class CompletionService(Protocol):
    async def complete_json(self, request: CompletionRequest) -> dict[str, Any]: ...

    async def complete_text(self, request: CompletionRequest) -> str: ...


def parse_json_object(content: Optional[str]) -> dict[str, Any]:
    """Decode a completion into a JSON object or raise ``CompletionError``."""
    if content is None or not content.strip():
        raise EmptyCompletionError("completion service returned empty content")
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise MalformedCompletionError(f"completion is not valid JSON: {e.msg}") from e
    if not isinstance(parsed, dict):
        raise MalformedCompletionError(
            f"completion is a JSON {type(parsed).__name__}, expected an object"
        )
    return parsed


class ChatCompletionClient:
    """
    Client for any OpenAI-compatible ``/chat/completions`` endpoint.

    One HTTP request per call, no retries. The timeout is enforced by
    httpx; a timeout is reported as ``CompletionTransportError``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport

    async def complete_json(self, request: CompletionRequest) -> dict[str, Any]:
        content = await self._complete(request)
        return parse_json_object(content)

    async def complete_text(self, request: CompletionRequest) -> str:
        content = await self._complete(request)
        if content is None or not content.strip():
            raise EmptyCompletionError("completion service returned empty content")
        return content

    async def _complete(self, request: CompletionRequest) -> Optional[str]:
        body: dict[str, Any] = {
            "model": self._settings.llm_model,
            "messages": [
                {"role": "system", "content": request.system_instructions},
                {"role": "user", "content": request.user_context},
            ],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if request.json_mode:
            body["response_format"] = {"type": "json_object"}

        try:
            async with httpx.AsyncClient(
                timeout=self._settings.llm_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self._settings.chat_completions_url,
                    headers={
                        "Authorization": f"Bearer {self._settings.llm_api_key}",
                        "Content-Type": "application/json",
                    },
                    json=body,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise CompletionTransportError(
                f"completion service returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise CompletionTransportError("completion service timed out") from e
        except httpx.HTTPError as e:
            raise CompletionTransportError(f"completion service unreachable: {e}") from e
        except ValueError as e:
            raise MalformedCompletionError("completion service sent a non-JSON envelope") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedCompletionError("completion envelope has no message content") from e

        usage = data.get("usage") if isinstance(data, dict) else None
        logger.debug(
            "completion_received",
            model=self._settings.llm_model,
            content_length=len(content or ""),
            total_tokens=(usage or {}).get("total_tokens"),
        )
        return content


@lru_cache(maxsize=1)
def get_completion_client() -> ChatCompletionClient:
    return ChatCompletionClient()
