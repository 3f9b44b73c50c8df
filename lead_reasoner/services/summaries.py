"""
Call and Manager Summary generators.

Single-purpose reasoning passes over a full call transcript or a lead's
history. Same contract as the reasoning engine: one completion call, and
on any failure a clearly labeled placeholder instead of an error so the
caller can still render something and a human can follow up.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Sequence

from pydantic import ValidationError

from lead_reasoner.config import Settings, get_settings
from lead_reasoner.logging_config import get_logger
from lead_reasoner.schemas.summary import CallSummary, ManagerSummary
from lead_reasoner.services.completion import (
    CompletionError,
    CompletionRequest,
    CompletionService,
    get_completion_client,
)

logger = get_logger(__name__)

CALL_SUMMARY_FAILED = "Call summary generation failed."
MANAGER_SUMMARY_FAILED = "Manager summary generation failed. Please review lead data manually."
MANUAL_REVIEW_ACTION = "Review the call transcript manually and follow up with the lead."


CALL_SUMMARY_PROMPT = """You are a real estate call analyst. Analyze the call transcript and produce JSON with exactly these keys:
{
  "summary": "2-3 sentence call summary",
  "objections": ["objections raised by the lead"],
  "competitor_mentions": ["competitors or other agents mentioned"],
  "risk_flags": ["concerns or red flags detected"],
  "action_items": ["specific follow-up actions needed"]
}
Use empty lists when nothing applies."""


MANAGER_SUMMARY_PROMPT = """You are the Lead Intel Analyst for {brokerage_name}. Generate a structured manager summary for a real estate lead.

## REPORT STRUCTURE
- # [Lead Name]: Summary Report
- ## Overview: Type, Score, Status
- ## Qualification Data: Budget, Timeline, Location, Motivation
- ## {agent_name}'s Agent Notes: Key conversation insights and intent depth
- ## Risk Assessment: Potential blockers or objections
- ## Strategic Recommendation: Immediate next steps for the agent

Format using valid Markdown. Be professional, direct and actionable."""


def call_summary_placeholder(cause: str) -> CallSummary:
    return CallSummary(
        summary=CALL_SUMMARY_FAILED,
        risk_flags=[f"Summary generation failed: {cause}"],
        action_items=[MANUAL_REVIEW_ACTION],
        generated=False,
    )


async def generate_call_summary(
    transcript: str,
    lead_data: Optional[dict[str, Any]] = None,
    *,
    completion: CompletionService | None = None,
    settings: Settings | None = None,
) -> CallSummary:
    """
    Summarize a finished call: objections, competitors, risks, action items.

    Never raises; returns ``call_summary_placeholder`` on failure.
    """
    if not transcript or not transcript.strip():
        logger.info("call_summary_skipped", reason="empty_transcript")
        return call_summary_placeholder("no transcript was captured")

    settings = settings or get_settings()
    completion = completion or get_completion_client()

    request = CompletionRequest(
        system_instructions=CALL_SUMMARY_PROMPT,
        user_context=(
            f"Call transcript:\n{transcript}\n\n"
            f"Lead data:\n{json.dumps(lead_data or {}, sort_keys=True, default=str)}"
        ),
        temperature=settings.summary_temperature,
        max_tokens=settings.call_summary_max_tokens,
        json_mode=True,
    )

    try:
        raw = await completion.complete_json(request)
        result = CallSummary.model_validate({**raw, "generated": True})
    except CompletionError as e:
        logger.warning("call_summary_failed", error_kind=e.kind, error=str(e))
        return call_summary_placeholder(str(e))
    except ValidationError as e:
        logger.warning("call_summary_failed", error_kind="schema_violation", error_count=e.error_count())
        return call_summary_placeholder("response did not match the summary schema")
    except Exception as e:
        logger.error("call_summary_failed", error_kind="unexpected", error=str(e))
        return call_summary_placeholder(f"unexpected error: {e}")

    logger.info(
        "call_summary_complete",
        transcript_length=len(transcript),
        objections=len(result.objections),
        risk_flags=len(result.risk_flags),
        action_items=len(result.action_items),
    )
    return result


async def generate_manager_summary(
    lead: dict[str, Any],
    reasoning_logs: Sequence[dict[str, Any]],
    calls: Sequence[dict[str, Any]],
    *,
    completion: CompletionService | None = None,
    settings: Settings | None = None,
) -> ManagerSummary:
    """Markdown report on a lead built from its record, reasoning and call history."""
    settings = settings or get_settings()
    completion = completion or get_completion_client()

    system = (
        MANAGER_SUMMARY_PROMPT
        .replace("{brokerage_name}", settings.brokerage_name)
        .replace("{agent_name}", settings.agent_name)
    )
    request = CompletionRequest(
        system_instructions=system,
        user_context=(
            f"Lead data:\n{json.dumps(lead, indent=2, default=str)}\n\n"
            f"Reasoning history:\n{json.dumps(list(reasoning_logs), indent=2, default=str)}\n\n"
            f"Call history:\n{json.dumps(list(calls), indent=2, default=str)}"
        ),
        temperature=settings.manager_summary_temperature,
        max_tokens=settings.manager_summary_max_tokens,
        json_mode=False,
    )

    try:
        text = await completion.complete_text(request)
    except CompletionError as e:
        logger.warning("manager_summary_failed", error_kind=e.kind, error=str(e), lead_id=lead.get("id"))
        return ManagerSummary(summary=MANAGER_SUMMARY_FAILED, generated=False)
    except Exception as e:
        logger.error("manager_summary_failed", error_kind="unexpected", error=str(e), lead_id=lead.get("id"))
        return ManagerSummary(summary=MANAGER_SUMMARY_FAILED, generated=False)

    logger.info(
        "manager_summary_complete",
        lead_id=lead.get("id"),
        reasoning_logs=len(reasoning_logs),
        calls=len(calls),
    )
    return ManagerSummary(summary=text.strip())
