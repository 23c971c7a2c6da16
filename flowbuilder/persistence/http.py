"""REST client for the workflow backend's node endpoints.

Handles:
- Creating nodes
- Deleting nodes
- Listing the nodes of a workflow
- Updating node fields
- Saving the latest run output on the workflow
"""
from typing import Any, Optional

import httpx
import structlog

from flowbuilder.config import get_settings
from flowbuilder.errors import PersistenceError
from flowbuilder.models.graph import BuilderContext, NodeRecord
from flowbuilder.persistence.base import NodeStore

logger = structlog.get_logger()


class HttpNodeStore(NodeStore):
    """Node store backed by the workflow REST API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.persistence_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.persistence_api_key
        self.timeout = timeout or settings.persistence_timeout
        self._transport = transport

        self.headers = {"Content-Type": "application/json"}
        if self.api_key:
            self.headers["Authorization"] = f"Bearer {self.api_key}"

    async def _request(
        self,
        method: str,
        endpoint: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        """Make an HTTP request to the workflow API."""

        url = f"{self.base_url}{endpoint}"

        async with httpx.AsyncClient(transport=self._transport) as client:
            try:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=self.headers,
                    json=json,
                    params=params,
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                logger.error("workflow_api_error", endpoint=endpoint, error=str(e))
                raise PersistenceError(f"HTTP error: {str(e)}")

        logger.debug(
            "workflow_api_request",
            method=method,
            endpoint=endpoint,
            status_code=response.status_code,
        )

        if response.status_code >= 400:
            try:
                error_body = response.json() if response.content else {}
            except ValueError:
                error_body = {"raw": response.text[:500]}
            raise PersistenceError(
                f"Workflow API error: {response.status_code}",
                status_code=response.status_code,
                response_body=error_body,
            )

        try:
            return response.json() if response.content else {}
        except ValueError:
            raise PersistenceError(
                "Workflow API returned a non-JSON body",
                status_code=response.status_code,
            )

    @staticmethod
    def _context_fields(context: BuilderContext) -> dict:
        return {
            "workflow_id": context.workflow_id,
            "company_id": context.company_id,
            "user_id": context.user_id,
        }

    async def create_node(self, record: NodeRecord) -> int:
        """Create a node and return the id assigned by the backend."""
        logger.info("create_node", uuid=record.uuid, workflow_id=record.workflow_id)

        result = await self._request(
            method="POST",
            endpoint="/workflow/createNode",
            json=record.model_dump(exclude={"id"}),
        )

        body = result.get("data", result) if isinstance(result, dict) else {}
        try:
            backend_id = int(body["id"])
        except (KeyError, TypeError, ValueError):
            raise PersistenceError("createNode response did not contain a node id", response_body=result)

        logger.info("node_created", uuid=record.uuid, backend_id=backend_id)
        return backend_id

    async def delete_node(self, backend_id: int, context: BuilderContext) -> None:
        logger.info("delete_node", backend_id=backend_id, workflow_id=context.workflow_id)

        await self._request(
            method="POST",
            endpoint="/workflow/deleteNode",
            json={"id": backend_id, **self._context_fields(context)},
        )

    async def list_nodes(self, context: BuilderContext) -> list[NodeRecord]:
        """List node records of a workflow.

        The endpoint answers with either a bare list or {"data": [...]}.
        """
        result = await self._request(
            method="GET",
            endpoint="/workflow/getNodes",
            params={
                "company_id": context.company_id,
                "workflow_id": context.workflow_id,
                "is_template": 0,
            },
        )

        items = result.get("data", []) if isinstance(result, dict) else result
        if not isinstance(items, list):
            raise PersistenceError("getNodes response is not a list", response_body=result)

        try:
            return [NodeRecord.model_validate(item) for item in items]
        except ValueError as e:
            raise PersistenceError(f"getNodes returned an invalid record: {e}")

    async def update_node(
        self,
        backend_id: int,
        fields: dict,
        context: BuilderContext,
    ) -> None:
        logger.info("update_node", backend_id=backend_id, fields=sorted(fields))

        await self._request(
            method="POST",
            endpoint="/workflow/updateNode",
            json={"id": backend_id, **self._context_fields(context), **fields},
        )

    async def save_output(self, context: BuilderContext, output: str) -> None:
        await self._request(
            method="POST",
            endpoint="/workflow/updateWorkflow",
            json={
                "id": context.workflow_id,
                "company_id": context.company_id,
                "user_id": context.user_id,
                "workflow_output": output,
            },
        )

    async def set_published(self, context: BuilderContext, published: bool) -> None:
        await self._request(
            method="POST",
            endpoint="/workflow/publishWorkflow",
            json={
                "id": context.workflow_id,
                "company_id": context.company_id,
                "user_id": context.user_id,
                "is_published": int(published),
            },
        )
