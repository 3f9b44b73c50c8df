"""
Data models for confidence-tagged extraction results.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lead_reasoner.services.scoring import clamp_confidence

# Enumerated fields carry this sentinel instead of null when unknown
UNKNOWN = "unknown"

FIELD_NAMES: tuple[str, ...] = (
    "intent",
    "budget",
    "urgency",
    "location",
    "timeline",
    "motivation",
    "lead_type",
    "property_type",
)

# Low confidence on any of these means the engine must not act
CRITICAL_FIELDS: tuple[str, ...] = ("intent", "budget", "timeline")

INTENT_VALUES = ("buy", "sell", "invest", "rent", "browse", UNKNOWN)
URGENCY_VALUES = ("immediate", "high", "medium", "low", UNKNOWN)
LEAD_TYPE_VALUES = ("buyer", "seller", "investor", "renter")

Scalar = Optional[Union[str, bool, int, float]]


class ConfidenceField(BaseModel):
    """A single extracted attribute with the confidence behind it."""

    model_config = ConfigDict(frozen=True)

    value: Scalar = None
    confidence: float = 0.0
    # Hedging phrases from the source text; explanatory only
    uncertainty_markers: tuple[str, ...] = Field(default_factory=tuple)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("confidence must be a number")
        return clamp_confidence(value)

    @field_validator("uncertainty_markers", mode="before")
    @classmethod
    def _markers_default(cls, value: Any) -> Any:
        return () if value is None else value

    @property
    def is_known(self) -> bool:
        return self.value is not None and self.value != UNKNOWN and self.value != ""

    @classmethod
    def unknown(cls, sentinel: Scalar = None) -> ConfidenceField:
        return cls(value=sentinel, confidence=0.0)


class ExtractionResult(BaseModel):
    """All signals pulled from one reasoning pass. Never updated in place."""

    model_config = ConfigDict(frozen=True)

    intent: ConfidenceField
    budget: ConfidenceField
    urgency: ConfidenceField
    location: ConfidenceField
    timeline: ConfidenceField
    motivation: ConfidenceField
    lead_type: ConfidenceField
    property_type: ConfidenceField = Field(default_factory=ConfidenceField.unknown)
    financing_discussed: bool = False

    @field_validator("property_type", mode="before")
    @classmethod
    def _property_type_default(cls, value: Any) -> Any:
        return ConfidenceField.unknown() if value is None else value

    def get(self, name: str) -> ConfidenceField:
        if name not in FIELD_NAMES:
            raise KeyError(name)
        return getattr(self, name)

    def fields(self) -> dict[str, ConfidenceField]:
        return {name: getattr(self, name) for name in FIELD_NAMES}

    def low_confidence_fields(
        self, threshold: float, names: tuple[str, ...] = CRITICAL_FIELDS
    ) -> list[str]:
        """Names (in order) whose confidence falls below ``threshold``."""
        return [name for name in names if self.get(name).confidence < threshold]

    @classmethod
    def unknown(cls) -> ExtractionResult:
        """Every field absent at zero confidence."""
        return cls(
            intent=ConfidenceField.unknown(UNKNOWN),
            budget=ConfidenceField.unknown(),
            urgency=ConfidenceField.unknown(UNKNOWN),
            location=ConfidenceField.unknown(),
            timeline=ConfidenceField.unknown(),
            motivation=ConfidenceField.unknown(),
            lead_type=ConfidenceField.unknown(),
            property_type=ConfidenceField.unknown(),
        )
