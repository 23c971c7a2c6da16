"""Supabase-backed node store.

Uses the service key for backend operations (bypasses RLS).
"""
from typing import Optional

import structlog
from supabase import Client, create_client

from flowbuilder.config import get_settings
from flowbuilder.errors import PersistenceError
from flowbuilder.models.graph import BuilderContext, NodeRecord
from flowbuilder.persistence.base import NodeStore

logger = structlog.get_logger()

# Singleton client instance
_supabase_client: Optional[Client] = None


class SupabaseNodeStore(NodeStore):
    """Node store writing to the workflow_nodes and workflows tables."""

    def __init__(
        self,
        client: Client,
        nodes_table: Optional[str] = None,
        workflows_table: Optional[str] = None,
    ):
        settings = get_settings()
        self._client = client
        self.nodes_table = nodes_table or settings.supabase_nodes_table
        self.workflows_table = workflows_table or settings.supabase_workflows_table

    @property
    def client(self) -> Client:
        """Get the underlying Supabase client."""
        return self._client

    async def create_node(self, record: NodeRecord) -> int:
        try:
            result = (
                self._client.table(self.nodes_table)
                .insert(record.model_dump(exclude={"id"}))
                .execute()
            )
        except Exception as e:
            logger.error("supabase_insert_error", table=self.nodes_table, error=str(e))
            raise PersistenceError(f"Supabase insert failed: {e}")

        if not result.data:
            raise PersistenceError("Supabase insert returned no row")
        return int(result.data[0]["id"])

    async def delete_node(self, backend_id: int, context: BuilderContext) -> None:
        try:
            result = (
                self._client.table(self.nodes_table)
                .delete()
                .eq("id", backend_id)
                .eq("workflow_id", context.workflow_id)
                .execute()
            )
        except Exception as e:
            logger.error("supabase_delete_error", table=self.nodes_table, error=str(e))
            raise PersistenceError(f"Supabase delete failed: {e}")

        if not result.data:
            raise PersistenceError(f"Node {backend_id} not found", status_code=404)

    async def list_nodes(self, context: BuilderContext) -> list[NodeRecord]:
        try:
            result = (
                self._client.table(self.nodes_table)
                .select("*")
                .eq("workflow_id", context.workflow_id)
                .order("sort")
                .execute()
            )
        except Exception as e:
            logger.error("supabase_select_error", table=self.nodes_table, error=str(e))
            raise PersistenceError(f"Supabase select failed: {e}")

        return [NodeRecord.model_validate(row) for row in result.data or []]

    async def update_node(
        self,
        backend_id: int,
        fields: dict,
        context: BuilderContext,
    ) -> None:
        try:
            result = (
                self._client.table(self.nodes_table)
                .update(fields)
                .eq("id", backend_id)
                .eq("workflow_id", context.workflow_id)
                .execute()
            )
        except Exception as e:
            logger.error("supabase_update_error", table=self.nodes_table, error=str(e))
            raise PersistenceError(f"Supabase update failed: {e}")

        if not result.data:
            raise PersistenceError(f"Node {backend_id} not found", status_code=404)

    async def save_output(self, context: BuilderContext, output: str) -> None:
        try:
            (
                self._client.table(self.workflows_table)
                .update({"workflow_output": output})
                .eq("id", context.workflow_id)
                .execute()
            )
        except Exception as e:
            logger.error("supabase_update_error", table=self.workflows_table, error=str(e))
            raise PersistenceError(f"Supabase update failed: {e}")

    async def set_published(self, context: BuilderContext, published: bool) -> None:
        try:
            (
                self._client.table(self.workflows_table)
                .update({"is_published": int(published)})
                .eq("id", context.workflow_id)
                .execute()
            )
        except Exception as e:
            logger.error("supabase_update_error", table=self.workflows_table, error=str(e))
            raise PersistenceError(f"Supabase update failed: {e}")


def get_supabase_store() -> SupabaseNodeStore:
    """Get a store around the singleton Supabase client."""
    global _supabase_client

    if _supabase_client is None:
        settings = get_settings()

        if not settings.supabase_url or not settings.supabase_service_key:
            logger.warning(
                "supabase_not_configured",
                has_url=bool(settings.supabase_url),
                has_key=bool(settings.supabase_service_key),
            )
            raise PersistenceError("Supabase is not configured")

        try:
            _supabase_client = create_client(
                settings.supabase_url,
                settings.supabase_service_key,
            )
            logger.info("supabase_client_initialized")
        except Exception as e:
            logger.error("supabase_client_init_error", error=str(e))
            raise PersistenceError(f"Supabase client could not be created: {e}")

    return SupabaseNodeStore(_supabase_client)


def reset_supabase_client():
    """Reset the Supabase client (for testing)."""
    global _supabase_client
    _supabase_client = None
