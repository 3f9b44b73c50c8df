"""
Lead State Merge.

Caller-side policy for folding a Reasoning Result into the stored lead:
which status a strategy implies, which columns a turn may overwrite, and
how a stored lead is turned back into a prior snapshot for the next
turn. The reasoning engine itself never touches lead state.
"""

from __future__ import annotations

from typing import Any, Optional

from lead_reasoner.schemas.extraction import ConfidenceField
from lead_reasoner.schemas.lead import LeadStatus
from lead_reasoner.schemas.reasoning import ReasoningResult, Strategy
from lead_reasoner.services.scoring import clamp_confidence, round_half_up

# Confidence given to stored values we have no better estimate for
STORED_VALUE_CONFIDENCE = 0.5
STORED_LEAD_TYPE_CONFIDENCE = 0.8

STATUS_BY_STRATEGY: dict[Strategy, LeadStatus] = {
    Strategy.BOOK_NOW: LeadStatus.APPOINTMENT_SET,
    Strategy.QUALIFY: LeadStatus.QUALIFIED,
    Strategy.HANDOFF: LeadStatus.QUALIFIED,
    Strategy.NURTURE: LeadStatus.CONTACTED,
    Strategy.PROVIDE_INFO: LeadStatus.CONTACTED,
    Strategy.CLARIFY: LeadStatus.CONTACTED,
}

# Lead column <- extraction field, copied only when the turn found a value
_VALUE_COLUMNS = {
    "budget_range": "budget",
    "location": "location",
    "timeline": "timeline",
    "motivation": "motivation",
}


def status_from_strategy(strategy: Strategy) -> LeadStatus:
    """Lead status implied by a turn's strategy."""
    return STATUS_BY_STRATEGY.get(strategy, LeadStatus.NEW)


def to_ten_point(confidence: float) -> int:
    """0-1 confidence as the 0-10 score stored on the lead."""
    return round_half_up(clamp_confidence(confidence) * 10)


def build_lead_update(result: ReasoningResult, intent_threshold: float) -> Optional[dict[str, Any]]:
    """
    Columns to write for this turn.

    Args:
        result: The turn's Reasoning Result.
        intent_threshold: Intent confidence the turn must exceed before it
            may change the lead.

    Returns:
        Column updates (scores, status, next action, and any values the
        turn actually found), or None when intent is too uncertain.
    """
    extracted = result.extracted
    if extracted.intent.confidence <= intent_threshold:
        return None

    lead_type = extracted.lead_type.value
    update: dict[str, Any] = {
        "lead_type": lead_type if isinstance(lead_type, str) and lead_type else "buyer",
        "intent_score": to_ten_point(extracted.intent.confidence),
        "urgency_score": to_ten_point(extracted.urgency.confidence),
        "readiness_score": result.readiness_score,
        "next_action": result.next_action,
        "status": status_from_strategy(result.strategy).value,
    }
    for column, field_name in _VALUE_COLUMNS.items():
        field = extracted.get(field_name)
        if field.is_known:
            update[column] = str(field.value)
    return update


def snapshot_from_lead(lead: dict[str, Any]) -> dict[str, ConfidenceField]:
    """
    Rebuild a prior snapshot from a stored lead for the next turn.

    Stored 0-10 scores become confidences; other stored values get
    ``STORED_VALUE_CONFIDENCE``.

    Args:
        lead: Row from the ``leads`` table.

    Returns:
        Field name -> ConfidenceField, unknown at 0 for empty columns.
    """

    def score(key: str) -> float:
        raw = lead.get(key) or 0
        return clamp_confidence(float(raw) / 10)

    def stored(key: str) -> ConfidenceField:
        value = lead.get(key)
        if value in (None, ""):
            return ConfidenceField.unknown()
        return ConfidenceField(value=value, confidence=STORED_VALUE_CONFIDENCE)

    lead_type = lead.get("lead_type")
    return {
        "intent": ConfidenceField(value=lead_type, confidence=score("intent_score")),
        "urgency": ConfidenceField(value=lead.get("urgency"), confidence=score("urgency_score")),
        "budget": stored("budget_range"),
        "location": stored("location"),
        "timeline": stored("timeline"),
        "motivation": stored("motivation"),
        "lead_type": ConfidenceField(
            value=lead_type,
            confidence=STORED_LEAD_TYPE_CONFIDENCE if lead_type else 0.0,
        ),
    }


def build_reasoning_log(
    result: ReasoningResult,
    user_input: str,
    lead_id: Optional[str] = None,
    call_id: Optional[str] = None,
) -> dict[str, Any]:
    """
    Row for the ``reasoning_logs`` audit table.

    Args:
        result: The turn's Reasoning Result.
        user_input: Utterance the result was produced from.
        lead_id: Lead the turn belongs to, if known.
        call_id: Voice call the turn came from, if any.

    Returns:
        JSON-ready dict matching the table columns.
    """
    return {
        "lead_id": lead_id,
        "call_id": call_id,
        "user_input": user_input,
        "extracted_data": result.extracted.model_dump(mode="json"),
        "reasoning": result.reasoning,
        "strategy_chosen": result.strategy.value,
        "alternatives_rejected": [a.model_dump(mode="json") for a in result.alternatives_rejected],
        "readiness_score": result.readiness_score,
        "confidence": result.confidence,
        "action_taken": result.next_action,
    }
