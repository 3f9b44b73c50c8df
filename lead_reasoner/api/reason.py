"""
API Router — Reasoning Endpoint.

Runs one reasoning turn for a lead, stores the audit log, and folds the
result into the lead record.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from lead_reasoner.config import get_settings
from lead_reasoner.db import LeadStore, get_db
from lead_reasoner.logging_config import get_logger, turn_context
from lead_reasoner.schemas.lead import ReasonRequest, ReasonResponse
from lead_reasoner.schemas.reasoning import ConversationContext
from lead_reasoner.services.completion import ChatCompletionClient, get_completion_client
from lead_reasoner.services.lead_updates import (
    build_lead_update,
    build_reasoning_log,
    snapshot_from_lead,
)
from lead_reasoner.services.reasoning_engine import reason

logger = get_logger(__name__)
router = APIRouter(prefix="/reason", tags=["Reasoning"])


@router.post("", response_model=ReasonResponse)
async def reason_about_input(
    body: ReasonRequest,
    db: LeadStore = Depends(get_db),
    completion: ChatCompletionClient = Depends(get_completion_client),
) -> ReasonResponse:
    """Analyze one utterance and persist the decision."""
    with turn_context(body.lead_id, body.call_id):
        return await _run_turn(body, db, completion)


async def _run_turn(
    body: ReasonRequest,
    db: LeadStore,
    completion: ChatCompletionClient,
) -> ReasonResponse:
    settings = get_settings()
    snapshot = None
    if body.lead_id:
        lead = await db.get_lead(body.lead_id)
        if lead:
            snapshot = snapshot_from_lead(lead)

    context = ConversationContext(
        lead_id=body.lead_id,
        call_id=body.call_id,
        previous_messages=tuple(body.conversation_history),
        prior_snapshot=snapshot,
    )
    try:
        result = await reason(body.user_input, context, completion=completion, settings=settings)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    log_entry = await db.insert_reasoning_log(
        build_reasoning_log(result, body.user_input, body.lead_id, body.call_id)
    )
    if log_entry is None:
        logger.warning("reasoning_log_not_stored")

    lead_id = body.lead_id
    update = build_lead_update(result, settings.lead_update_intent_threshold)
    if update is not None:
        if lead_id:
            await db.update_lead(lead_id, update)
        else:
            created = await db.create_lead({**update, "name": "New Lead"})
            if created:
                lead_id = created["id"]
                logger.info("lead_created_from_reasoning", new_lead_id=lead_id)

    return ReasonResponse(
        result=result,
        lead_id=lead_id,
        reasoning_log_id=log_entry.get("id") if log_entry else None,
    )
