"""
Application configuration via environment variables.

Uses Pydantic BaseSettings to load and validate all config from env vars
or a .env.local file. Every setting has a sensible default for local
development so the reasoning engine can start with minimal configuration.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment selector."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """
    Central configuration for the Lead Reasoning Engine.

    Values are loaded from environment variables first, falling back
    to a `.env.local` file in the project root. Secrets should NEVER
    be committed.
    """

    model_config = SettingsConfigDict(
        env_file=".env.local",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Environment ──────────────────────────────────────────────
    environment: Environment = Environment.DEVELOPMENT

    # ── Completion Service (OpenAI-compatible chat API) ──────────
    llm_api_key: str = Field(default="", description="API key for the completion service")
    llm_base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="Base URL of an OpenAI-compatible chat completions API",
    )
    llm_model: str = Field(default="llama-3.3-70b-versatile", description="Chat model name")
    llm_timeout_seconds: float = Field(default=30.0, gt=0, le=120, description="Per-request timeout")

    reasoning_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    reasoning_max_tokens: int = Field(default=2000, ge=64, le=8000)
    summary_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    call_summary_max_tokens: int = Field(default=1000, ge=64, le=8000)
    manager_summary_temperature: float = Field(default=0.4, ge=0.0, le=2.0)
    manager_summary_max_tokens: int = Field(default=1500, ge=64, le=8000)

    # ── Agent Persona ────────────────────────────────────────────
    agent_name: str = Field(default="Sarah", description="Name the agent uses with leads")
    brokerage_name: str = Field(default="Premier Realty", description="Brokerage named in reports")
    market_region: str = Field(default="Austin, TX", description="Primary market the agent covers")

    # ── Decision Policy ──────────────────────────────────────────
    rule_engine_authoritative: bool = Field(
        default=True,
        description="Recompute strategy and readiness locally instead of trusting the model's own choice",
    )
    lead_update_intent_threshold: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Minimum intent confidence before a turn creates or updates a lead",
    )

    # ── Supabase ─────────────────────────────────────────────────
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_service_key: str = Field(default="", description="Supabase service-role key")

    # ── HTTP / Logging ───────────────────────────────────────────
    cors_origins: str = Field(default="*", description="Comma-separated allowed origins for the dashboard")
    log_level: str = Field(default="INFO", description="Root log level")

    # ── Derived helpers ──────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def chat_completions_url(self) -> str:
        return f"{self.llm_base_url.rstrip('/')}/chat/completions"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return cached Settings instance.

    Using lru_cache ensures we read env vars exactly once, and every
    module that calls ``get_settings()`` gets the same object.
    """
    return Settings()
