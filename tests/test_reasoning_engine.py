"""Tests for a full reasoning turn against a stubbed completion service."""

from __future__ import annotations

import asyncio

import pytest

from lead_reasoner.config import Settings
from lead_reasoner.schemas.extraction import ConfidenceField
from lead_reasoner.schemas.reasoning import ConversationContext, ConversationMessage, Strategy
from lead_reasoner.services.completion import (
    CompletionTransportError,
    EmptyCompletionError,
    MalformedCompletionError,
)
from lead_reasoner.services.reasoning_engine import (
    FALLBACK_REJECTION_REASON,
    FALLBACK_RESPONSE,
    OVERRIDDEN_BY_RULES,
    build_user_context,
    fallback_result,
    reason,
)
from lead_reasoner.services.strategy import DEFAULT_RESPONSES

BUYER_INPUT = "We're relocating to Austin in about 3 months, budget is 500 to 600K."


def _rejected(result):
    return {a.strategy: a.reason for a in result.alternatives_rejected}


def _assert_fallback(result):
    assert result.strategy == Strategy.CLARIFY
    assert result.readiness_score == 0
    assert result.confidence == 0.0
    assert result.response_to_user == FALLBACK_RESPONSE
    assert result.extracted.lead_type.value == "buyer"
    assert result.extracted.lead_type.confidence == 0.5
    assert result.extracted.intent.value == "unknown"
    assert _rejected(result) == {
        Strategy.QUALIFY: FALLBACK_REJECTION_REASON,
        Strategy.BOOK_NOW: FALLBACK_REJECTION_REASON,
    }
    assert result.reasoning.startswith("Analysis failed due to:")


# ---------------------------------------------------------------------------
# Successful turns
# ---------------------------------------------------------------------------


class TestSuccessfulTurn:
    @pytest.mark.asyncio
    async def test_high_readiness_buyer_books(self, stub_completion, make_payload):
        payload = make_payload()
        result = await reason(BUYER_INPUT, completion=stub_completion(payload=payload))

        assert result.strategy == Strategy.BOOK_NOW
        assert result.readiness_score == 84
        assert result.confidence == 0.85
        assert result.response_to_user == payload["response_to_user"]
        assert result.next_action == payload["next_action"]
        assert result.extracted.location.value == "Austin"

    @pytest.mark.asyncio
    async def test_alternatives_exclude_chosen_strategy(self, stub_completion, make_payload):
        payload = make_payload(alternatives_rejected=[
            {"strategy": "book_now", "reason": "listed by mistake"},
            {"strategy": "nurture", "reason": "lead is actively buying"},
        ])
        result = await reason(BUYER_INPUT, completion=stub_completion(payload=payload))

        rejected = _rejected(result)
        assert Strategy.BOOK_NOW not in rejected
        assert rejected[Strategy.NURTURE] == "lead is actively buying"
        assert Strategy.CLARIFY in rejected

    @pytest.mark.asyncio
    async def test_reported_score_is_recomputed(self, stub_completion, make_payload):
        payload = make_payload(readiness_score=150, confidence=1.7)
        result = await reason(BUYER_INPUT, completion=stub_completion(payload=payload))

        assert result.readiness_score == 84
        assert result.confidence == 1.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score", [10**400, -(10**400)])
    async def test_oversized_reported_score_is_clamped(self, stub_completion, make_payload, score):
        payload = make_payload(readiness_score=score, confidence=10**400)
        result = await reason(BUYER_INPUT, completion=stub_completion(payload=payload))

        assert result.strategy == Strategy.BOOK_NOW
        assert result.readiness_score == 84
        assert result.confidence == 1.0

    @pytest.mark.asyncio
    async def test_low_budget_confidence_clarifies(self, stub_completion, make_payload, extraction_data, field_factory):
        extracted = extraction_data(budget=field_factory("around 500K maybe", 0.4))
        payload = make_payload(strategy="clarify", extracted=extracted)
        result = await reason("Maybe around 500K, not sure", completion=stub_completion(payload=payload))

        assert result.strategy == Strategy.CLARIFY
        assert "budget" in result.reasoning
        rejected = _rejected(result)
        assert Strategy.QUALIFY in rejected
        assert Strategy.BOOK_NOW in rejected

    @pytest.mark.asyncio
    async def test_request_for_human_hands_off(self, stub_completion, make_payload):
        payload = make_payload(strategy="book_now")
        result = await reason("Can I talk to a real person?", completion=stub_completion(payload=payload))

        assert result.strategy == Strategy.HANDOFF
        assert result.response_to_user == DEFAULT_RESPONSES[Strategy.HANDOFF]
        assert _rejected(result)[Strategy.BOOK_NOW].startswith("superseded by handoff")


# ---------------------------------------------------------------------------
# Rule engine vs. completion service
# ---------------------------------------------------------------------------


class TestStrategyDisagreement:
    @pytest.mark.asyncio
    async def test_rule_precedence_overrides_service(self, stub_completion, make_payload):
        payload = make_payload(strategy="nurture")
        result = await reason(BUYER_INPUT, completion=stub_completion(payload=payload))

        assert result.strategy == Strategy.BOOK_NOW
        assert result.response_to_user == DEFAULT_RESPONSES[Strategy.BOOK_NOW]
        assert _rejected(result)[Strategy.NURTURE] == OVERRIDDEN_BY_RULES
        assert "proposed nurture" in result.reasoning

    @pytest.mark.asyncio
    async def test_statement_opening_with_should_keeps_qualify(
        self, stub_completion, make_payload, extraction_data, field_factory
    ):
        extracted = extraction_data(urgency=field_factory("medium", 0.6))
        payload = make_payload(strategy="qualify", extracted=extracted)
        result = await reason(
            "Should be about three months, we're buying in Austin with 550K.",
            completion=stub_completion(payload=payload),
        )

        assert result.strategy == Strategy.QUALIFY
        assert result.response_to_user == payload["response_to_user"]
        assert OVERRIDDEN_BY_RULES not in _rejected(result).values()

    @pytest.mark.asyncio
    async def test_trusting_mode_keeps_service_choice(self, stub_completion, make_payload):
        settings = Settings(rule_engine_authoritative=False)
        payload = make_payload(strategy="nurture", readiness_score=140, confidence=-0.3)
        result = await reason(
            BUYER_INPUT, completion=stub_completion(payload=payload), settings=settings
        )

        assert result.strategy == Strategy.NURTURE
        assert result.readiness_score == 100
        assert result.confidence == 0.0
        assert result.response_to_user == payload["response_to_user"]
        assert Strategy.NURTURE not in _rejected(result)


# ---------------------------------------------------------------------------
# Fallback
# ---------------------------------------------------------------------------


class TestFallback:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            CompletionTransportError("completion service timed out"),
            EmptyCompletionError("completion service returned empty content"),
            MalformedCompletionError("completion is not valid JSON"),
            asyncio.TimeoutError(),
            RuntimeError("boom"),
        ],
    )
    async def test_service_errors_fall_back(self, stub_completion, error):
        result = await reason(BUYER_INPUT, completion=stub_completion(error=error))
        _assert_fallback(result)

    @pytest.mark.asyncio
    async def test_transport_error_is_named_in_reasoning(self, stub_completion):
        error = CompletionTransportError("completion service timed out")
        result = await reason(BUYER_INPUT, completion=stub_completion(error=error))
        assert "transport error" in result.reasoning
        assert "timed out" in result.reasoning

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"readiness_score": "85"},
            {"confidence": "high"},
            {"strategy": "hard_sell"},
            {"alternatives_rejected": "none"},
        ],
    )
    async def test_schema_violations_fall_back(self, stub_completion, make_payload, overrides):
        payload = make_payload(**overrides)
        result = await reason(BUYER_INPUT, completion=stub_completion(payload=payload))
        _assert_fallback(result)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["strategy", "response_to_user", "extracted"])
    async def test_missing_key_falls_back(self, stub_completion, make_payload, key):
        payload = make_payload()
        del payload[key]
        result = await reason(BUYER_INPUT, completion=stub_completion(payload=payload))
        _assert_fallback(result)

    @pytest.mark.asyncio
    async def test_empty_object_falls_back(self, stub_completion):
        result = await reason(BUYER_INPUT, completion=stub_completion(payload={}))
        _assert_fallback(result)

    def test_fallback_result_is_well_formed(self):
        result = fallback_result("completion service returned empty content")
        _assert_fallback(result)
        assert "empty content" in result.reasoning


# ---------------------------------------------------------------------------
# Inputs and prompt
# ---------------------------------------------------------------------------


class TestInputs:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_empty_input_is_rejected(self, stub_completion, make_payload, text):
        stub = stub_completion(payload=make_payload())
        with pytest.raises(ValueError):
            await reason(text, completion=stub)
        assert stub.requests == []

    @pytest.mark.asyncio
    async def test_prompt_is_deterministic(self, stub_completion, make_payload):
        stub = stub_completion(payload=make_payload())
        context = ConversationContext(
            lead_id="lead-1",
            previous_messages=(
                ConversationMessage(role="user", content="Hi, I'm looking at homes."),
                ConversationMessage(role="assistant", content="Happy to help! Where are you looking?"),
            ),
            prior_snapshot={"budget": ConfidenceField(value="$500K", confidence=0.6)},
        )

        await reason(BUYER_INPUT, context, completion=stub)
        await reason(BUYER_INPUT, context, completion=stub)

        first, second = stub.requests
        assert first == second
        assert first.json_mode is True
        assert "Austin, TX" in first.system_instructions
        assert "{market_region}" not in first.system_instructions
        assert "lead-1" in first.user_context
        assert "$500K" in first.user_context
        assert "Happy to help!" in first.user_context

    @pytest.mark.asyncio
    async def test_context_is_not_mutated(self, stub_completion, make_payload):
        context = ConversationContext(
            lead_id="lead-7",
            prior_snapshot={"location": ConfidenceField(value="Round Rock", confidence=0.9)},
        )
        before = context.model_dump()
        await reason(BUYER_INPUT, context, completion=stub_completion(payload=make_payload()))
        assert context.model_dump() == before

    def test_user_context_handles_missing_history(self):
        text = build_user_context("Hello", ConversationContext())
        assert "Lead ID: new" in text
        assert "Previous Messages: []" in text
        assert "Known Lead Data: null" in text
