"""
API Router — Appointment Endpoints.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from lead_reasoner.db import LeadStore, get_db
from lead_reasoner.logging_config import get_logger
from lead_reasoner.schemas.lead import (
    AppointmentCreate,
    AppointmentStatus,
    AppointmentUpdate,
    LeadStatus,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/appointments", tags=["Appointments"])


async def book_appointment(
    db: LeadStore,
    lead_id: str,
    date: str,
    time_slot: str,
    property_address: str | None = None,
    notes: str | None = None,
) -> dict[str, Any] | None:
    """Insert a proposed appointment and move the lead to appointment_set."""
    appointment = await db.create_appointment({
        "lead_id": lead_id,
        "date": date,
        "time_slot": time_slot,
        "property_address": property_address or "TBD",
        "notes": notes,
        "status": AppointmentStatus.PROPOSED.value,
    })
    if appointment is None:
        return None

    await db.update_lead(lead_id, {
        "status": LeadStatus.APPOINTMENT_SET.value,
        "next_action": f"Showing: {date} at {time_slot}",
    })
    logger.info("appointment_booked", lead_id=lead_id, date=date, time_slot=time_slot)
    return appointment


@router.get("")
async def list_appointments(db: LeadStore = Depends(get_db)) -> dict[str, Any]:
    return {"appointments": await db.list_appointments()}


@router.post("", status_code=201)
async def create_appointment(body: AppointmentCreate, db: LeadStore = Depends(get_db)) -> dict[str, Any]:
    appointment = await book_appointment(
        db,
        lead_id=body.lead_id,
        date=body.date,
        time_slot=body.time_slot,
        property_address=body.property_address,
        notes=body.notes,
    )
    if appointment is None:
        raise HTTPException(status_code=502, detail="Failed to create appointment")
    return {"appointment": appointment}


@router.patch("/{appointment_id}")
async def update_appointment(
    appointment_id: str,
    body: AppointmentUpdate,
    db: LeadStore = Depends(get_db),
) -> dict[str, Any]:
    updates = body.model_dump(mode="json", exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    appointment = await db.update_appointment(appointment_id, updates)
    if appointment is None:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return {"appointment": appointment}
