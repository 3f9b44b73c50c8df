"""
Strategy Selector.

Per-turn classifier that maps an extraction, its readiness score and a
few signals about the utterance to one of six conversational strategies.
Rules are evaluated in a fixed precedence order and the first match
wins. Every other strategy with a plausible case is recorded as a
rejected alternative so the decision can be audited later.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from lead_reasoner.logging_config import get_logger
from lead_reasoner.schemas.extraction import CRITICAL_FIELDS, UNKNOWN, ExtractionResult
from lead_reasoner.schemas.reasoning import AlternativeRejected, Strategy

logger = get_logger(__name__)

CONFIDENCE_THRESHOLD = 0.7
BOOK_NOW_SCORE = 80  # strictly above
NURTURE_SCORE = 40   # strictly below

URGENT_VALUES = frozenset({"high", "immediate"})
PASSIVE_INTENTS = frozenset({"browse", "low", UNKNOWN})

PRECEDENCE: tuple[Strategy, ...] = (
    Strategy.CLARIFY,
    Strategy.HANDOFF,
    Strategy.BOOK_NOW,
    Strategy.QUALIFY,
    Strategy.PROVIDE_INFO,
    Strategy.NURTURE,
)

HUMAN_AGENT_REQUEST = "explicit request for a human agent"
OUT_OF_SCOPE_QUESTION = "legal or financial question beyond scope"

_HUMAN_REQUEST_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\b(speak|talk|chat)\s+(to|with)\s+(a|an|the|your)?\s*(real\s+|live\s+)?(person|human|agent|realtor|someone)\b",
        r"\b(real|live|actual)\s+(person|human|agent)\b",
        r"\bhuman\s+agent\b",
        r"\btransfer\s+me\b",
        r"\bare\s+you\s+a\s+(bot|robot|machine)\b",
    )
]

_OUT_OF_SCOPE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\b(lawyer|attorney|legal\s+advice|lawsuit|sue)\b",
        r"\b(probate|divorce|lien|easement|zoning\s+variance|title\s+dispute)\b",
        r"\b(tax\s+(advice|implications?|deduction)|capital\s+gains|1031\s+exchange)\b",
        r"\b(foreclosure|bankruptcy|short\s+sale)\b",
        r"\b(credit\s+repair|loan\s+modification)\b",
    )
]

# A sentence closed by a question mark; an opening "should" or "would"
# alone does not make a statement a question
_QUESTION_SENTENCE = re.compile(r"\w[^.!?]*\?")


@dataclass(frozen=True)
class TurnSignals:
    """Facts about the utterance that extraction confidences cannot express."""
    handoff_reason: Optional[str] = None
    info_question: bool = False

    def merge(self, other: TurnSignals) -> TurnSignals:
        return TurnSignals(
            handoff_reason=self.handoff_reason or other.handoff_reason,
            info_question=self.info_question or other.info_question,
        )


def detect_signals(user_input: str) -> TurnSignals:
    """
    Phrase-level detection of handoff requests and factual questions.

    Args:
        user_input: The utterance for this turn.

    Returns:
        TurnSignals with a handoff reason when the lead asks for a person
        or raises a legal or financial topic, and ``info_question`` set
        when any sentence is closed by a question mark.
    """
    text = user_input.strip()

    handoff_reason: Optional[str] = None
    if any(p.search(text) for p in _HUMAN_REQUEST_PATTERNS):
        handoff_reason = HUMAN_AGENT_REQUEST
    elif any(p.search(text) for p in _OUT_OF_SCOPE_PATTERNS):
        handoff_reason = OUT_OF_SCOPE_QUESTION

    info_question = bool(_QUESTION_SENTENCE.search(text))
    return TurnSignals(handoff_reason=handoff_reason, info_question=info_question)


def signals_from_service(strategy: Optional[Strategy]) -> TurnSignals:
    """Treat the model's own handoff / provide_info call as a turn signal."""
    if strategy == Strategy.HANDOFF:
        return TurnSignals(handoff_reason="completion service flagged the request for a human agent")
    if strategy == Strategy.PROVIDE_INFO:
        return TurnSignals(info_question=True)
    return TurnSignals()


@dataclass(frozen=True)
class StrategyDecision:
    strategy: Strategy
    reasoning: str
    next_action: str
    alternatives_rejected: tuple[AlternativeRejected, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class _RuleOutcome:
    strategy: Strategy
    matched: bool
    because: str


# Canned counterpart replies, used when the generated one is empty or no
# longer matches the selected strategy.
DEFAULT_RESPONSES: dict[Strategy, str] = {
    Strategy.CLARIFY: "Thanks for sharing that. So I point you in the right direction, could you tell me a bit more about your budget and timing?",
    Strategy.QUALIFY: "That's really helpful. Have you started talking with a lender yet, or would it help if I walked you through financing options?",
    Strategy.BOOK_NOW: "It sounds like you're ready to see some homes. Would you like me to set up a showing this week?",
    Strategy.NURTURE: "No pressure at all. I'll send you a few listings and market updates so you can explore at your own pace.",
    Strategy.HANDOFF: "That's a great question for one of our licensed specialists. Let me connect you with someone who can help directly.",
    Strategy.PROVIDE_INFO: "Good question. Let me share what I know about that, and feel free to ask anything else.",
}


def _fmt(value: float) -> str:
    return f"{value:.2f}"


def _critical_summary(extraction: ExtractionResult) -> str:
    return ", ".join(f"{name} {_fmt(extraction.get(name).confidence)}" for name in CRITICAL_FIELDS)


def _confidence_summary(extraction: ExtractionResult) -> str:
    names = ("intent", "urgency", "budget", "timeline", "motivation", "location")
    return ", ".join(f"{name} {_fmt(extraction.get(name).confidence)}" for name in names)


def _intent_value(extraction: ExtractionResult) -> str:
    value = extraction.intent.value
    return str(value).strip().lower() if value is not None else UNKNOWN


def _low_critical(extraction: ExtractionResult) -> list[str]:
    return extraction.low_confidence_fields(CONFIDENCE_THRESHOLD)


def _describe_low(extraction: ExtractionResult, names: list[str]) -> str:
    return ", ".join(f"{name} ({_fmt(extraction.get(name).confidence)})" for name in names)


def _clarify_rule(extraction: ExtractionResult, score: int, signals: TurnSignals) -> _RuleOutcome:
    low = _low_critical(extraction)
    if low:
        return _RuleOutcome(
            Strategy.CLARIFY, True,
            f"confidence below {CONFIDENCE_THRESHOLD} on {_describe_low(extraction, low)}",
        )
    return _RuleOutcome(
        Strategy.CLARIFY, False,
        f"critical fields are all at or above {CONFIDENCE_THRESHOLD} ({_critical_summary(extraction)})",
    )


def _handoff_rule(extraction: ExtractionResult, score: int, signals: TurnSignals) -> _RuleOutcome:
    if signals.handoff_reason:
        return _RuleOutcome(Strategy.HANDOFF, True, signals.handoff_reason)
    return _RuleOutcome(
        Strategy.HANDOFF, False,
        "no request for a human agent and no out-of-scope legal or financial question",
    )


def _book_now_rule(extraction: ExtractionResult, score: int, signals: TurnSignals) -> _RuleOutcome:
    urgency = str(extraction.urgency.value or UNKNOWN).strip().lower()
    failures = []
    if score <= BOOK_NOW_SCORE:
        failures.append(f"readiness {score} is not above {BOOK_NOW_SCORE}")
    if urgency not in URGENT_VALUES:
        failures.append(f"urgency '{urgency}' is not high or immediate")
    if not extraction.budget.is_known:
        failures.append("budget not provided")
    if not extraction.location.is_known:
        failures.append("location not provided")

    if failures:
        return _RuleOutcome(Strategy.BOOK_NOW, False, "; ".join(failures))
    return _RuleOutcome(
        Strategy.BOOK_NOW, True,
        f"readiness {score} is above {BOOK_NOW_SCORE} with {urgency} urgency "
        f"(confidence {_fmt(extraction.urgency.confidence)}), budget {extraction.budget.value} "
        f"and location {extraction.location.value} known",
    )


def _qualify_rule(extraction: ExtractionResult, score: int, signals: TurnSignals) -> _RuleOutcome:
    low = _low_critical(extraction)
    intent = _intent_value(extraction)
    if low:
        return _RuleOutcome(
            Strategy.QUALIFY, False,
            f"confidence below {CONFIDENCE_THRESHOLD} on {_describe_low(extraction, low)}",
        )
    if intent in PASSIVE_INTENTS:
        return _RuleOutcome(
            Strategy.QUALIFY, False,
            f"intent '{intent}' is not an active buy, sell, invest or rent intent",
        )
    return _RuleOutcome(
        Strategy.QUALIFY, True,
        f"{_critical_summary(extraction)} all at or above {CONFIDENCE_THRESHOLD}",
    )


def _provide_info_rule(extraction: ExtractionResult, score: int, signals: TurnSignals) -> _RuleOutcome:
    if signals.info_question:
        return _RuleOutcome(Strategy.PROVIDE_INFO, True, "the lead asked a specific factual question")
    return _RuleOutcome(Strategy.PROVIDE_INFO, False, "the input is not a specific factual question")


def _nurture_rule(extraction: ExtractionResult, score: int, signals: TurnSignals) -> _RuleOutcome:
    intent = _intent_value(extraction)
    reasons = []
    if intent in PASSIVE_INTENTS:
        reasons.append(f"intent is '{intent}' (confidence {_fmt(extraction.intent.confidence)})")
    if score < NURTURE_SCORE:
        reasons.append(f"readiness {score} is below {NURTURE_SCORE}")
    if reasons:
        return _RuleOutcome(Strategy.NURTURE, True, " and ".join(reasons))
    return _RuleOutcome(
        Strategy.NURTURE, False,
        f"intent '{intent}' is active and readiness {score} is at least {NURTURE_SCORE}",
    )


_RULES: dict[Strategy, Callable[[ExtractionResult, int, TurnSignals], _RuleOutcome]] = {
    Strategy.CLARIFY: _clarify_rule,
    Strategy.HANDOFF: _handoff_rule,
    Strategy.BOOK_NOW: _book_now_rule,
    Strategy.QUALIFY: _qualify_rule,
    Strategy.PROVIDE_INFO: _provide_info_rule,
    Strategy.NURTURE: _nurture_rule,
}


def next_action_for(strategy: Strategy, extraction: ExtractionResult) -> str:
    """
    Concrete follow-up for the chosen strategy.

    Args:
        strategy: The strategy selected for this turn.
        extraction: Supplies the low-confidence fields to ask about and
            the location and budget to propose showings within.

    Returns:
        A non-empty instruction for the agent.
    """
    if strategy == Strategy.CLARIFY:
        low = _low_critical(extraction) or list(CRITICAL_FIELDS)
        return f"Ask the lead to confirm their {', '.join(low)} before taking any action."
    if strategy == Strategy.HANDOFF:
        return "Transfer the conversation to a licensed human agent and log the question for follow-up."
    if strategy == Strategy.BOOK_NOW:
        return (
            f"Propose showing times in {extraction.location.value} "
            f"within the {extraction.budget.value} budget and confirm an appointment."
        )
    if strategy == Strategy.QUALIFY:
        if extraction.financing_discussed:
            return "Confirm property preferences and must-haves to complete qualification."
        return "Ask about financing and pre-approval status to complete qualification."
    if strategy == Strategy.PROVIDE_INFO:
        return "Answer the question with current market information, then ask one qualifying question."
    return "Add the lead to a nurture sequence and share relevant listings without pressing for commitment."


def select_strategy(
    extraction: ExtractionResult,
    score: int,
    signals: TurnSignals | None = None,
) -> StrategyDecision:
    """
    Choose the strategy for this turn.

    Rules run in ``PRECEDENCE`` order and the first match wins; if none
    match, the lead is nurtured. Strategies evaluated before the winner
    are recorded with the reason they did not apply, strategies after it
    only when they also matched (superseded). When the winner is
    ``clarify``, ``qualify`` and ``book_now`` are always recorded.

    Args:
        extraction: Validated extraction for this turn.
        score: Readiness score computed from ``extraction``.
        signals: Utterance-level facts; defaults to none detected.

    Returns:
        StrategyDecision with reasoning that cites the confidences, a
        next action, and the rejected alternatives in precedence order.
    """
    signals = signals or TurnSignals()
    outcomes = [_RULES[s](extraction, score, signals) for s in PRECEDENCE]

    winner = next((o for o in outcomes if o.matched), None)
    if winner is None:
        winner = _RuleOutcome(Strategy.NURTURE, True, "no higher-precedence rule applied")

    low = _low_critical(extraction)
    alternatives: list[AlternativeRejected] = []
    seen_winner = False
    for outcome in outcomes:
        if outcome.strategy == winner.strategy:
            seen_winner = True
            continue
        if not seen_winner:
            alternatives.append(AlternativeRejected(strategy=outcome.strategy, reason=outcome.because))
        elif outcome.matched:
            alternatives.append(AlternativeRejected(
                strategy=outcome.strategy,
                reason=f"superseded by {winner.strategy.value}: {outcome.because}",
            ))
        elif winner.strategy == Strategy.CLARIFY and outcome.strategy in (Strategy.BOOK_NOW, Strategy.QUALIFY):
            alternatives.append(AlternativeRejected(
                strategy=outcome.strategy,
                reason=f"cannot act on low-confidence critical fields: {_describe_low(extraction, low)}",
            ))

    reasoning = (
        f"Chose {winner.strategy.value} because {winner.because}. "
        f"Readiness {score}/100 from confidences {_confidence_summary(extraction)}."
    )

    logger.debug(
        "strategy_selected",
        strategy=winner.strategy.value,
        readiness_score=score,
        rejected=[a.strategy.value for a in alternatives],
    )

    return StrategyDecision(
        strategy=winner.strategy,
        reasoning=reasoning,
        next_action=next_action_for(winner.strategy, extraction),
        alternatives_rejected=tuple(alternatives),
    )
