"""
Lead Reasoning Engine.

Runs a single reasoning turn: builds the prompt from the utterance and
conversation context, asks the completion service for a structured
decision, validates and clamps it, recomputes readiness and strategy
with the local rules, and returns a Reasoning Result.

Any failure of the completion service (empty content, malformed JSON,
timeout, schema violation) produces a deterministic fallback result.
``reason()`` never raises for service problems; only an empty utterance
is rejected, since that is the caller's error.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from lead_reasoner.config import Settings, get_settings
from lead_reasoner.logging_config import get_logger
from lead_reasoner.schemas.extraction import ConfidenceField, ExtractionResult
from lead_reasoner.schemas.reasoning import (
    AlternativeRejected,
    ConversationContext,
    ReasoningPayload,
    ReasoningResult,
    Strategy,
)
from lead_reasoner.services.completion import (
    CompletionError,
    CompletionRequest,
    CompletionService,
    get_completion_client,
)
from lead_reasoner.services.scoring import clamp_confidence, clamp_score, readiness_score
from lead_reasoner.services.strategy import (
    DEFAULT_RESPONSES,
    detect_signals,
    select_strategy,
    signals_from_service,
)

logger = get_logger(__name__)

FALLBACK_RESPONSE = (
    "I'm sorry, I didn't quite catch that. "
    "Could you tell me a bit more about what you're looking for?"
)
FALLBACK_NEXT_ACTION = "Ask the lead to restate what they are looking for."
FALLBACK_REJECTION_REASON = "cannot act without successful analysis"
FALLBACK_LEAD_TYPE_CONFIDENCE = 0.5

OVERRIDDEN_BY_RULES = "proposed by the completion service but overridden by rule precedence"


REASONING_SYSTEM_PROMPT = """You are the reasoning engine of a real estate AI agent working in the {market_region} market. Your job is to analyze what a lead just said and produce structured, transparent reasoning.

The agent's name is {agent_name}: professional, calm, empathetic and highly organized.

You MUST output valid JSON matching this exact schema:

{
  "extracted": {
    "intent": { "value": "buy|sell|invest|rent|browse|unknown", "confidence": 0.0-1.0, "uncertainty_markers": [] },
    "budget": { "value": "$XXK-$XXXK or null", "confidence": 0.0-1.0, "uncertainty_markers": [] },
    "urgency": { "value": "immediate|high|medium|low|unknown", "confidence": 0.0-1.0, "uncertainty_markers": [] },
    "location": { "value": "city/area or null", "confidence": 0.0-1.0, "uncertainty_markers": [] },
    "timeline": { "value": "timeframe or null", "confidence": 0.0-1.0, "uncertainty_markers": [] },
    "motivation": { "value": "reason or null", "confidence": 0.0-1.0, "uncertainty_markers": [] },
    "lead_type": { "value": "buyer|seller|investor|renter", "confidence": 0.0-1.0, "uncertainty_markers": [] },
    "property_type": { "value": "type or null", "confidence": 0.0-1.0, "uncertainty_markers": [] },
    "financing_discussed": false
  },
  "reasoning": "2-3 sentences explaining WHY you chose this strategy, citing the confidence values and what is still missing.",
  "strategy": "clarify|qualify|book_now|nurture|handoff|provide_info",
  "alternatives_rejected": [
    { "strategy": "one of the strategies above", "reason": "why it was rejected" }
  ],
  "readiness_score": 0-100,
  "next_action": "Specific next action to take",
  "confidence": 0.0-1.0,
  "response_to_user": "Natural, calm, professional reply to the lead. Under 40 words."
}

FIELD RULES:
- Every key above is required. Use null (or "unknown" for intent and urgency) with confidence 0 when a field was not mentioned.
- confidence is how clearly the lead stated the value: 1.0 explicit, 0.7-0.9 clearly implied, 0.4-0.6 vague, below 0.4 guessed.
- uncertainty_markers lists hedging phrases copied from the lead's words ("maybe", "I think", "around").
- readiness_score and confidence are JSON numbers, not strings.

STRATEGY RULES (first match wins):
1. "clarify": confidence on ANY of intent, budget, timeline is below 0.7. Always prefer clarification over action when uncertain.
2. "handoff": the lead asks a complex legal or financial question, or explicitly asks for a human agent.
3. "book_now": readiness_score > 80 AND urgency is high or immediate AND budget and location are known.
4. "qualify": intent, budget and timeline all have confidence >= 0.7.
5. "provide_info": the lead asks a specific property or market question you can answer.
6. "nurture": intent is low or browse, or readiness_score < 40. Share information, do not push.

READINESS SCORE FORMULA:
readiness = (intent_confidence * 25) + (urgency_confidence * 20) + (budget_confidence * 20) + (timeline_confidence * 15) + (motivation_confidence * 10) + (location_confidence * 10)

TONE:
- Helpful, reassuring and knowledgeable about US real estate.
- Acknowledge what the lead said before asking the next question.
- Never sound robotic or transactional.

Always explain your reasoning transparently. Never pick a strategy without saying why."""


def build_system_prompt(settings: Settings) -> str:
    return (
        REASONING_SYSTEM_PROMPT
        .replace("{market_region}", settings.market_region)
        .replace("{agent_name}", settings.agent_name)
    )


def build_user_context(user_input: str, context: ConversationContext) -> str:
    """Serialize the turn deterministically: same input, same prompt."""
    history = [m.model_dump() for m in context.previous_messages]
    snapshot: Any = None
    if context.prior_snapshot:
        snapshot = {
            name: field.model_dump(mode="json")
            for name, field in sorted(context.prior_snapshot.items())
        }

    return (
        "LEAD CONTEXT:\n"
        f"Lead ID: {context.lead_id or 'new'}\n"
        f"Call ID: {context.call_id or 'none'}\n"
        f"Previous Messages: {json.dumps(history, ensure_ascii=False)}\n"
        f"Known Lead Data: {json.dumps(snapshot, sort_keys=True, ensure_ascii=False)}\n"
        "\n"
        "USER INPUT:\n"
        f"{json.dumps(user_input, ensure_ascii=False)}\n"
        "\n"
        "Provide your structured reasoning JSON."
    )


def build_reasoning_request(
    user_input: str,
    context: ConversationContext,
    settings: Settings,
) -> CompletionRequest:
    return CompletionRequest(
        system_instructions=build_system_prompt(settings),
        user_context=build_user_context(user_input, context),
        temperature=settings.reasoning_temperature,
        max_tokens=settings.reasoning_max_tokens,
        json_mode=True,
    )


def fallback_result(cause: str) -> ReasoningResult:
    """
    The degraded-but-valid result used whenever analysis fails.

    Built only from constants and the cause string, so it cannot fail.
    """
    extracted = ExtractionResult.unknown().model_copy(
        update={
            "lead_type": ConfidenceField(
                value="buyer", confidence=FALLBACK_LEAD_TYPE_CONFIDENCE
            ),
        }
    )
    return ReasoningResult(
        extracted=extracted,
        reasoning=(
            f"Analysis failed due to: {cause}. "
            "Falling back to clarification until the lead's needs can be analyzed."
        ),
        strategy=Strategy.CLARIFY,
        alternatives_rejected=(
            AlternativeRejected(strategy=Strategy.QUALIFY, reason=FALLBACK_REJECTION_REASON),
            AlternativeRejected(strategy=Strategy.BOOK_NOW, reason=FALLBACK_REJECTION_REASON),
        ),
        readiness_score=0,
        next_action=FALLBACK_NEXT_ACTION,
        confidence=0.0,
        response_to_user=FALLBACK_RESPONSE,
    )


def _trusting_service(payload: ReasoningPayload) -> ReasoningResult:
    """Accept the model's own strategy and score, bounded but otherwise as-is."""
    strategy = payload.strategy
    return ReasoningResult(
        extracted=payload.extracted,
        reasoning=payload.reasoning.strip() or f"Completion service chose {strategy.value}.",
        strategy=strategy,
        alternatives_rejected=tuple(
            a for a in payload.alternatives_rejected if a.strategy != strategy
        ),
        readiness_score=clamp_score(payload.readiness_score),
        next_action=payload.next_action.strip() or FALLBACK_NEXT_ACTION,
        confidence=clamp_confidence(payload.confidence),
        response_to_user=payload.response_to_user.strip() or DEFAULT_RESPONSES[strategy],
    )


def _with_rule_engine(payload: ReasoningPayload, user_input: str) -> ReasoningResult:
    """Recompute readiness and strategy locally; the model's choice is a cross-check."""
    extraction = payload.extracted
    score = readiness_score(extraction)
    reported = clamp_score(payload.readiness_score)
    if reported != score:
        logger.info("readiness_score_recomputed", reported=reported, computed=score)

    signals = detect_signals(user_input).merge(signals_from_service(payload.strategy))
    decision = select_strategy(extraction, score, signals)

    alternatives = list(decision.alternatives_rejected)
    listed = {a.strategy for a in alternatives} | {decision.strategy}

    if decision.strategy == payload.strategy:
        model_reasoning = payload.reasoning.strip()
        reasoning = f"{decision.reasoning} {model_reasoning}".strip()
        next_action = payload.next_action.strip() or decision.next_action
        response = payload.response_to_user.strip() or DEFAULT_RESPONSES[decision.strategy]
        for alt in payload.alternatives_rejected:
            if alt.strategy not in listed:
                alternatives.append(alt)
                listed.add(alt.strategy)
    else:
        logger.warning(
            "strategy_disagreement",
            service_strategy=payload.strategy.value,
            rule_strategy=decision.strategy.value,
            readiness_score=score,
        )
        reasoning = (
            f"{decision.reasoning} The completion service proposed "
            f"{payload.strategy.value}, which rule precedence overrides."
        )
        next_action = decision.next_action
        # The generated reply was written for the other strategy
        response = DEFAULT_RESPONSES[decision.strategy]
        if payload.strategy not in listed:
            alternatives.append(
                AlternativeRejected(strategy=payload.strategy, reason=OVERRIDDEN_BY_RULES)
            )

    return ReasoningResult(
        extracted=extraction,
        reasoning=reasoning,
        strategy=decision.strategy,
        alternatives_rejected=tuple(alternatives),
        readiness_score=score,
        next_action=next_action,
        confidence=clamp_confidence(payload.confidence),
        response_to_user=response,
    )


async def reason(
    user_input: str,
    context: ConversationContext | None = None,
    *,
    completion: CompletionService | None = None,
    settings: Settings | None = None,
) -> ReasoningResult:
    """
    Run one reasoning turn.

    Args:
        user_input: What the lead just said. Must be non-empty.
        context: Prior messages and lead snapshot. Treated as read-only.
        completion: Completion service; defaults to the configured HTTP client.
        settings: Defaults to the cached application settings.

    Returns:
        A well-formed ReasoningResult, the fallback one if analysis failed.

    Raises:
        ValueError: if ``user_input`` is empty or whitespace.
    """
    if not user_input or not user_input.strip():
        raise ValueError("user_input must be a non-empty string")

    context = context or ConversationContext()
    settings = settings or get_settings()
    completion = completion or get_completion_client()
    log = logger.bind(lead_id=context.lead_id, call_id=context.call_id)

    log.info(
        "reasoning_started",
        input_length=len(user_input),
        history_length=len(context.previous_messages),
        has_snapshot=bool(context.prior_snapshot),
    )

    try:
        request = build_reasoning_request(user_input, context, settings)
        raw = await completion.complete_json(request)
        payload = ReasoningPayload.model_validate(raw)
        if settings.rule_engine_authoritative:
            result = _with_rule_engine(payload, user_input)
        else:
            result = _trusting_service(payload)
    except CompletionError as e:
        log.warning("reasoning_fallback", error_kind=e.kind, error=str(e))
        return fallback_result(f"{e.kind.replace('_', ' ')}: {e}")
    except ValidationError as e:
        log.warning("reasoning_fallback", error_kind="schema_violation", error_count=e.error_count())
        return fallback_result(
            f"response did not match the reasoning schema ({e.error_count()} problems)"
        )
    except Exception as e:
        log.error("reasoning_fallback", error_kind="unexpected", error=str(e))
        return fallback_result(f"unexpected error: {e}")

    log.info(
        "reasoning_complete",
        strategy=result.strategy.value,
        readiness_score=result.readiness_score,
        confidence=result.confidence,
        alternatives=len(result.alternatives_rejected),
    )
    return result
