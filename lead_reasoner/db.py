"""
Supabase Database Client.

Singleton wrapper around the Supabase client with typed helpers for the
lead, reasoning-log, call and appointment tables. Callers use it to
persist what the reasoning engine returns; the engine itself never
touches storage.
"""

from __future__ import annotations

from typing import Any, Optional

from supabase import Client, create_client

from lead_reasoner.config import get_settings
from lead_reasoner.logging_config import get_logger

logger = get_logger(__name__)

LEADS = "leads"
REASONING_LOGS = "reasoning_logs"
CALLS = "calls"
APPOINTMENTS = "appointments"


class LeadStore:
    """Wrapper around the official Supabase Python client."""

    _instance: Optional[LeadStore] = None
    _client: Client

    def __new__(cls) -> LeadStore:
        """Singleton pattern to ensure only one client instance."""
        if cls._instance is None:
            instance = super().__new__(cls)
            settings = get_settings()

            if not settings.supabase_url or not settings.supabase_service_key:
                logger.warning(
                    "supabase_credentials_missing",
                    url=bool(settings.supabase_url),
                    key=bool(settings.supabase_service_key),
                )

            try:
                instance._client = create_client(
                    settings.supabase_url,
                    settings.supabase_service_key,
                )
                logger.info("supabase_client_initialized", url=settings.supabase_url)
            except Exception as e:
                logger.error("supabase_client_init_failed", error=str(e))
                raise
            cls._instance = instance

        return cls._instance

    @property
    def client(self) -> Client:
        """Access the raw Supabase client."""
        return self._client

    # -- Leads --

    async def list_leads(self) -> list[dict[str, Any]]:
        try:
            response = (
                self.client.table(LEADS)
                .select("*")
                .order("updated_at", desc=True)
                .execute()
            )
            return response.data or []
        except Exception as e:
            logger.error("list_leads_error", error=str(e))
            return []

    async def get_lead(self, lead_id: str) -> dict[str, Any] | None:
        try:
            response = (
                self.client.table(LEADS)
                .select("*")
                .eq("id", lead_id)
                .single()
                .execute()
            )
            return response.data
        except Exception as e:
            logger.error("get_lead_error", lead_id=lead_id, error=str(e))
            return None

    async def create_lead(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        try:
            response = self.client.table(LEADS).insert(payload).execute()
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("create_lead_error", error=str(e))
            return None

    async def update_lead(self, lead_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        try:
            response = (
                self.client.table(LEADS)
                .update(updates)
                .eq("id", lead_id)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("update_lead_error", lead_id=lead_id, error=str(e))
            return None

    # -- Reasoning logs --

    async def insert_reasoning_log(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        try:
            response = self.client.table(REASONING_LOGS).insert(payload).execute()
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("insert_reasoning_log_error", lead_id=payload.get("lead_id"), error=str(e))
            return None

    async def list_reasoning_logs(self, lead_id: str) -> list[dict[str, Any]]:
        try:
            response = (
                self.client.table(REASONING_LOGS)
                .select("*")
                .eq("lead_id", lead_id)
                .order("created_at", desc=False)
                .execute()
            )
            return response.data or []
        except Exception as e:
            logger.error("list_reasoning_logs_error", lead_id=lead_id, error=str(e))
            return []

    # -- Calls --

    async def list_calls(self, lead_id: str) -> list[dict[str, Any]]:
        try:
            response = (
                self.client.table(CALLS)
                .select("*")
                .eq("lead_id", lead_id)
                .order("created_at", desc=True)
                .execute()
            )
            return response.data or []
        except Exception as e:
            logger.error("list_calls_error", lead_id=lead_id, error=str(e))
            return []

    async def get_call_by_vapi_id(self, vapi_call_id: str) -> dict[str, Any] | None:
        try:
            response = (
                self.client.table(CALLS)
                .select("*")
                .eq("vapi_call_id", vapi_call_id)
                .limit(1)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("get_call_error", vapi_call_id=vapi_call_id, error=str(e))
            return None

    async def create_call(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        try:
            response = self.client.table(CALLS).insert(payload).execute()
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("create_call_error", error=str(e))
            return None

    async def update_call(self, call_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        try:
            response = (
                self.client.table(CALLS)
                .update(updates)
                .eq("id", call_id)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("update_call_error", call_id=call_id, error=str(e))
            return None

    # -- Appointments --

    async def list_appointments(self, lead_id: str | None = None) -> list[dict[str, Any]]:
        try:
            query = self.client.table(APPOINTMENTS).select("*, leads(name, phone, email)")
            if lead_id:
                query = query.eq("lead_id", lead_id)
            response = query.order("date", desc=False).execute()
            return response.data or []
        except Exception as e:
            logger.error("list_appointments_error", lead_id=lead_id, error=str(e))
            return []

    async def create_appointment(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        try:
            response = self.client.table(APPOINTMENTS).insert(payload).execute()
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("create_appointment_error", lead_id=payload.get("lead_id"), error=str(e))
            return None

    async def update_appointment(self, appointment_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        try:
            response = (
                self.client.table(APPOINTMENTS)
                .update(updates)
                .eq("id", appointment_id)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error("update_appointment_error", appointment_id=appointment_id, error=str(e))
            return None


# Global accessor
def get_db() -> LeadStore:
    return LeadStore()
