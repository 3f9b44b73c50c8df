"""Shared test fixtures."""

from __future__ import annotations

import os
from typing import Any, Optional

import pytest

# No real services in tests
os.environ["LLM_API_KEY"] = "test-key"
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_SERVICE_KEY"] = ""
os.environ["ENVIRONMENT"] = "development"

from lead_reasoner.schemas.extraction import ExtractionResult
from lead_reasoner.services.completion import CompletionRequest


class StubCompletion:
    """Deterministic stand-in for the completion service."""

    def __init__(
        self,
        payload: Optional[dict[str, Any]] = None,
        text: Optional[str] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self.payload = payload
        self.text = text
        self.error = error
        self.requests: list[CompletionRequest] = []

    async def complete_json(self, request: CompletionRequest) -> dict[str, Any]:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.payload or {}

    async def complete_text(self, request: CompletionRequest) -> str:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.text or ""


class FakeStore:
    """In-memory stand-in for the Supabase-backed LeadStore."""

    def __init__(self) -> None:
        self.leads: dict[str, dict[str, Any]] = {}
        self.reasoning_logs: list[dict[str, Any]] = []
        self.calls: list[dict[str, Any]] = []
        self.appointments: list[dict[str, Any]] = []
        self._next_id = 1

    def _id(self, prefix: str) -> str:
        value = f"{prefix}-{self._next_id}"
        self._next_id += 1
        return value

    async def list_leads(self) -> list[dict[str, Any]]:
        return list(self.leads.values())

    async def get_lead(self, lead_id: str) -> dict[str, Any] | None:
        return self.leads.get(lead_id)

    async def create_lead(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        lead = {"id": self._id("lead"), **payload}
        self.leads[lead["id"]] = lead
        return lead

    async def update_lead(self, lead_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        if lead_id not in self.leads:
            return None
        self.leads[lead_id].update(updates)
        return self.leads[lead_id]

    async def insert_reasoning_log(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        row = {"id": self._id("log"), **payload}
        self.reasoning_logs.append(row)
        return row

    async def list_reasoning_logs(self, lead_id: str) -> list[dict[str, Any]]:
        return [r for r in self.reasoning_logs if r.get("lead_id") == lead_id]

    async def list_calls(self, lead_id: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c.get("lead_id") == lead_id]

    async def get_call_by_vapi_id(self, vapi_call_id: str) -> dict[str, Any] | None:
        return next((c for c in self.calls if c.get("vapi_call_id") == vapi_call_id), None)

    async def create_call(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        row = {"id": self._id("call"), **payload}
        self.calls.append(row)
        return row

    async def update_call(self, call_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        for call in self.calls:
            if call["id"] == call_id:
                call.update(updates)
                return call
        return None

    async def list_appointments(self, lead_id: str | None = None) -> list[dict[str, Any]]:
        return [a for a in self.appointments if lead_id is None or a.get("lead_id") == lead_id]

    async def create_appointment(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        row = {"id": self._id("appt"), **payload}
        self.appointments.append(row)
        return row

    async def update_appointment(self, appointment_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        for appt in self.appointments:
            if appt["id"] == appointment_id:
                appt.update(updates)
                return appt
        return None


def field(value: Any, confidence: float) -> dict[str, Any]:
    return {"value": value, "confidence": confidence, "uncertainty_markers": []}


def extraction_dict(**overrides: dict[str, Any]) -> dict[str, Any]:
    """The high-readiness Austin buyer, with per-field overrides."""
    data: dict[str, Any] = {
        "intent": field("buy", 0.9),
        "budget": field("$500K-$600K", 0.8),
        "urgency": field("high", 0.9),
        "location": field("Austin", 0.8),
        "timeline": field("3 months", 0.8),
        "motivation": field("relocation", 0.7),
        "lead_type": field("buyer", 0.9),
        "property_type": field("single family", 0.6),
        "financing_discussed": False,
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_extraction():
    def _make(**overrides: dict[str, Any]) -> ExtractionResult:
        return ExtractionResult.model_validate(extraction_dict(**overrides))
    return _make


@pytest.fixture
def make_payload():
    """Build a schema-conformant completion payload."""
    def _make(strategy: str = "book_now", **overrides: Any) -> dict[str, Any]:
        extracted = overrides.pop("extracted", None) or extraction_dict()
        payload: dict[str, Any] = {
            "extracted": extracted,
            "reasoning": "Lead stated a clear budget, location and a three month timeline.",
            "strategy": strategy,
            "alternatives_rejected": [
                {"strategy": "nurture", "reason": "lead is actively buying"},
            ],
            "readiness_score": 84,
            "next_action": "Offer two showing slots in Austin this week.",
            "confidence": 0.85,
            "response_to_user": "Austin is a great choice! Shall I line up a couple of showings this week?",
        }
        payload.update(overrides)
        return payload
    return _make


@pytest.fixture
def stub_completion():
    return StubCompletion


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def field_factory():
    return field


@pytest.fixture
def extraction_data():
    return extraction_dict
