"""
Data models for leads, appointments and the HTTP request/response
bodies that wrap the reasoning engine.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from lead_reasoner.schemas.reasoning import ConversationMessage, ReasoningResult


class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    APPOINTMENT_SET = "appointment_set"


class AppointmentStatus(str, Enum):
    PROPOSED = "proposed"
    CONFIRMED = "confirmed"
    RESCHEDULED = "rescheduled"
    CANCELLED = "cancelled"


class LeadCreate(BaseModel):
    name: str = "New Lead"
    phone: Optional[str] = None
    email: Optional[str] = None
    lead_type: str = "buyer"


class LeadUpdate(BaseModel):
    """Partial update; only fields that are set are written."""
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    lead_type: Optional[str] = None
    status: Optional[LeadStatus] = None
    budget_range: Optional[str] = None
    location: Optional[str] = None
    timeline: Optional[str] = None
    motivation: Optional[str] = None
    next_action: Optional[str] = None


class ReasonRequest(BaseModel):
    user_input: str = Field(min_length=1)
    lead_id: Optional[str] = None
    call_id: Optional[str] = None
    conversation_history: list[ConversationMessage] = Field(default_factory=list)


class ReasonResponse(BaseModel):
    success: bool = True
    result: ReasoningResult
    lead_id: Optional[str] = None
    reasoning_log_id: Optional[str] = None


class AppointmentCreate(BaseModel):
    lead_id: str
    date: str
    time_slot: str
    property_address: Optional[str] = None
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    status: Optional[AppointmentStatus] = None
    date: Optional[str] = None
    time_slot: Optional[str] = None


class LeadDetail(BaseModel):
    lead: dict[str, Any]
    reasoning_logs: list[dict[str, Any]] = Field(default_factory=list)
    calls: list[dict[str, Any]] = Field(default_factory=list)
    appointments: list[dict[str, Any]] = Field(default_factory=list)
