"""
Data models for post-call and manager summaries.
"""

from pydantic import BaseModel, Field


class CallSummary(BaseModel):
    """Insights pulled from a full call transcript."""
    summary: str
    objections: list[str] = Field(default_factory=list)
    competitor_mentions: list[str] = Field(default_factory=list)
    risk_flags: list[str] = Field(default_factory=list)
    action_items: list[str] = Field(default_factory=list)
    generated: bool = True  # False when this is the failure placeholder


class ManagerSummary(BaseModel):
    """Markdown report on a lead for the sales manager."""
    summary: str
    generated: bool = True
