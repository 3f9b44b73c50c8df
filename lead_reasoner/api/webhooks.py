"""
API Router — Voice Transport Webhook.

Receives events from the Vapi voice platform. Function calls made by the
voice assistant are answered synchronously (reasoning, booking, slot
lookup); end-of-call reports trigger a call summary that is stored on
the call record. Everything else is acknowledged and logged.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from lead_reasoner.api.appointments import book_appointment
from lead_reasoner.config import get_settings
from lead_reasoner.db import LeadStore, get_db
from lead_reasoner.logging_config import get_logger, turn_context
from lead_reasoner.schemas.reasoning import ConversationContext, ConversationMessage
from lead_reasoner.services.completion import ChatCompletionClient, get_completion_client
from lead_reasoner.services.lead_updates import build_lead_update, build_reasoning_log
from lead_reasoner.services.reasoning_engine import reason
from lead_reasoner.services.summaries import generate_call_summary

logger = get_logger(__name__)
router = APIRouter(prefix="/vapi", tags=["Voice"])

# Office showing hours offered to callers
AVAILABLE_SLOTS = ["9:00 AM", "10:00 AM", "11:00 AM", "1:00 PM", "2:00 PM", "3:00 PM", "4:00 PM"]

ACK = {"received": True}


@router.post("/webhook")
async def vapi_webhook(
    payload: dict[str, Any] = Body(...),
    db: LeadStore = Depends(get_db),
    completion: ChatCompletionClient = Depends(get_completion_client),
) -> dict[str, Any]:
    message = payload.get("message")
    if not isinstance(message, dict):
        return ACK

    message_type = message.get("type")
    if message_type == "function-call":
        return await _handle_function_call(message, db, completion)
    if message_type == "end-of-call-report":
        return await _handle_end_of_call(message, db, completion)
    if message_type == "status-update":
        logger.info("vapi_status_update", vapi_call_id=(message.get("call") or {}).get("id"), status=message.get("status"))
    elif message_type == "transcript":
        logger.debug("vapi_transcript", role=message.get("role"), transcript=message.get("transcript"))
    return ACK


async def _handle_function_call(
    message: dict[str, Any],
    db: LeadStore,
    completion: ChatCompletionClient,
) -> dict[str, Any]:
    function_call = message.get("functionCall")
    if not isinstance(function_call, dict):
        raise HTTPException(status_code=400, detail="No function call data")

    name = function_call.get("name")
    params = function_call.get("parameters") or {}
    if not isinstance(params, dict):
        raise HTTPException(status_code=400, detail="Function parameters must be an object")

    if name == "process_lead_input":
        return await _process_lead_input(params, db, completion)

    if name == "book_appointment":
        lead_id = params.get("lead_id")
        date = params.get("date")
        time_slot = params.get("time_slot")
        if not lead_id or not date or not time_slot:
            raise HTTPException(status_code=400, detail="lead_id, date and time_slot are required")
        appointment = await book_appointment(
            db, lead_id, date, time_slot, property_address=params.get("property_address")
        )
        return {
            "result": {
                "success": appointment is not None,
                "appointment_id": appointment.get("id") if appointment else None,
                "message": f"Appointment proposed for {date} at {time_slot}",
            }
        }

    if name == "get_available_slots":
        return {"result": {"date": params.get("date"), "available_slots": list(AVAILABLE_SLOTS)}}

    raise HTTPException(status_code=400, detail=f"Unknown function: {name}")


async def _process_lead_input(
    params: dict[str, Any],
    db: LeadStore,
    completion: ChatCompletionClient,
) -> dict[str, Any]:
    user_input = params.get("user_input")
    if not isinstance(user_input, str) or not user_input.strip():
        raise HTTPException(status_code=400, detail="user_input is required")

    lead_id = params.get("lead_id")
    call_id = params.get("call_id")
    history = [
        ConversationMessage.model_validate(m)
        for m in params.get("conversation_history") or []
        if isinstance(m, dict)
        and m.get("role") in ("user", "assistant")
        and isinstance(m.get("content"), str)
    ]
    context = ConversationContext(lead_id=lead_id, call_id=call_id, previous_messages=tuple(history))

    settings = get_settings()
    with turn_context(lead_id, call_id):
        result = await reason(user_input, context, completion=completion, settings=settings)
        await db.insert_reasoning_log(build_reasoning_log(result, user_input, lead_id, call_id))

    update = build_lead_update(result, settings.lead_update_intent_threshold)
    if lead_id and update is not None:
        # Voice turns never move the lead status; the agent books explicitly
        update.pop("status", None)
        update.pop("lead_type", None)
        await db.update_lead(lead_id, update)

    return {
        "result": {
            "strategy": result.strategy.value,
            "response": result.response_to_user,
            "readiness_score": result.readiness_score,
            "next_action": result.next_action,
        }
    }


async def _handle_end_of_call(
    message: dict[str, Any],
    db: LeadStore,
    completion: ChatCompletionClient,
) -> dict[str, Any]:
    call = message.get("call")
    if not isinstance(call, dict) or not call.get("id"):
        return ACK

    vapi_call_id = call["id"]
    transcript = message.get("transcript") or ""
    duration = message.get("durationSeconds") or 0

    existing = await db.get_call_by_vapi_id(vapi_call_id)
    lead = None
    if existing and existing.get("lead_id"):
        lead = await db.get_lead(existing["lead_id"])
    insights = await generate_call_summary(transcript, lead or {}, completion=completion)

    record = {
        "transcript": transcript,
        "duration_seconds": duration,
        **insights.model_dump(exclude={"generated"}),
    }
    if existing:
        await db.update_call(existing["id"], record)
    else:
        await db.create_call({"vapi_call_id": vapi_call_id, **record})

    logger.info(
        "call_report_processed",
        vapi_call_id=vapi_call_id,
        summary_generated=insights.generated,
        duration_seconds=duration,
    )
    return ACK
