"""
API Router — Lead Endpoints.

CRUD over lead records plus the on-demand manager summary.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from lead_reasoner.db import LeadStore, get_db
from lead_reasoner.logging_config import get_logger
from lead_reasoner.schemas.lead import LeadCreate, LeadDetail, LeadStatus, LeadUpdate
from lead_reasoner.schemas.summary import ManagerSummary
from lead_reasoner.services.completion import ChatCompletionClient, get_completion_client
from lead_reasoner.services.summaries import generate_manager_summary

logger = get_logger(__name__)
router = APIRouter(prefix="/leads", tags=["Leads"])


@router.get("")
async def list_leads(db: LeadStore = Depends(get_db)) -> dict[str, Any]:
    """All leads, most recently updated first."""
    return {"leads": await db.list_leads()}


@router.post("", status_code=201)
async def create_lead(body: LeadCreate, db: LeadStore = Depends(get_db)) -> dict[str, Any]:
    lead = await db.create_lead({**body.model_dump(), "status": LeadStatus.NEW.value})
    if lead is None:
        raise HTTPException(status_code=502, detail="Failed to create lead")
    logger.info("lead_created", new_lead_id=lead.get("id"))
    return {"lead": lead}


@router.get("/{lead_id}", response_model=LeadDetail)
async def get_lead(lead_id: str, db: LeadStore = Depends(get_db)) -> LeadDetail:
    """A lead with its reasoning history, calls and appointments."""
    lead = await db.get_lead(lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")

    return LeadDetail(
        lead=lead,
        reasoning_logs=await db.list_reasoning_logs(lead_id),
        calls=await db.list_calls(lead_id),
        appointments=await db.list_appointments(lead_id),
    )


@router.patch("/{lead_id}")
async def update_lead(lead_id: str, body: LeadUpdate, db: LeadStore = Depends(get_db)) -> dict[str, Any]:
    updates = body.model_dump(mode="json", exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    lead = await db.update_lead(lead_id, updates)
    if lead is None:
        raise HTTPException(status_code=404, detail="Lead not found")
    return {"lead": lead}


@router.post("/{lead_id}/manager-summary", response_model=ManagerSummary)
async def manager_summary(
    lead_id: str,
    db: LeadStore = Depends(get_db),
    completion: ChatCompletionClient = Depends(get_completion_client),
) -> ManagerSummary:
    """Generate a markdown report on the lead for the sales manager."""
    lead = await db.get_lead(lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")

    return await generate_manager_summary(
        lead,
        await db.list_reasoning_logs(lead_id),
        await db.list_calls(lead_id),
        completion=completion,
    )
