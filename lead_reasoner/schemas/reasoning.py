"""
Data models for a single reasoning turn: strategies, the conversation
context fed in, the raw payload expected from the completion service,
and the final Reasoning Result handed to callers.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, field_validator

from lead_reasoner.schemas.extraction import ConfidenceField, ExtractionResult
from lead_reasoner.services.scoring import clamp_confidence, clamp_score


class Strategy(str, Enum):
    """Conversational action class chosen for a turn."""
    CLARIFY = "clarify"
    QUALIFY = "qualify"
    BOOK_NOW = "book_now"
    NURTURE = "nurture"
    HANDOFF = "handoff"
    PROVIDE_INFO = "provide_info"


class AlternativeRejected(BaseModel):
    """A strategy that was considered and not chosen, with the reason."""

    model_config = ConfigDict(frozen=True)

    strategy: Strategy
    reason: str


class ConversationMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str


class ConversationContext(BaseModel):
    """Read-only evidence for a turn. The engine never mutates it."""

    model_config = ConfigDict(frozen=True)

    lead_id: Optional[str] = None
    call_id: Optional[str] = None
    previous_messages: tuple[ConversationMessage, ...] = Field(default_factory=tuple)
    # Previously extracted fields for this lead, possibly partial
    prior_snapshot: Optional[dict[str, ConfidenceField]] = None


Number = Union[StrictInt, StrictFloat]


class ReasoningPayload(BaseModel):
    """
    Shape the completion service must return.

    Every key is required; numbers must be real JSON numbers. Anything
    else is treated as a service failure by the engine.
    """

    model_config = ConfigDict(extra="ignore")

    extracted: ExtractionResult
    reasoning: str
    strategy: Strategy
    alternatives_rejected: list[AlternativeRejected]
    readiness_score: Number
    next_action: str
    confidence: Number
    response_to_user: str


class ReasoningResult(BaseModel):
    """The auditable decision for one turn."""

    model_config = ConfigDict(frozen=True)

    extracted: ExtractionResult
    reasoning: str
    strategy: Strategy
    alternatives_rejected: tuple[AlternativeRejected, ...] = Field(default_factory=tuple)
    readiness_score: int = Field(ge=0, le=100)
    next_action: str
    confidence: float = Field(ge=0.0, le=1.0)
    response_to_user: str

    @field_validator("readiness_score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return clamp_score(value)
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return clamp_confidence(value)
        return value
