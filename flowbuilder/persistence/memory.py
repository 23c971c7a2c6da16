"""In-process node store for local development."""
import itertools

import structlog

from flowbuilder.errors import PersistenceError
from flowbuilder.models.graph import BuilderContext, NodeRecord
from flowbuilder.persistence.base import NodeStore

logger = structlog.get_logger()


class InMemoryNodeStore(NodeStore):
    """Keeps node records in a dict, keyed by workflow id."""

    def __init__(self):
        self._ids = itertools.count(1)
        self._records: dict[int, dict[int, NodeRecord]] = {}
        self.outputs: dict[int, str] = {}
        self.published: dict[int, bool] = {}

    def _workflow(self, workflow_id: int) -> dict[int, NodeRecord]:
        return self._records.setdefault(workflow_id, {})

    async def create_node(self, record: NodeRecord) -> int:
        if record.workflow_id is None:
            raise PersistenceError("workflow_id is required to create a node")
        backend_id = next(self._ids)
        self._workflow(record.workflow_id)[backend_id] = record.model_copy(
            update={"id": backend_id}
        )
        logger.debug("memory_node_created", backend_id=backend_id, uuid=record.uuid)
        return backend_id

    async def delete_node(self, backend_id: int, context: BuilderContext) -> None:
        records = self._workflow(context.workflow_id)
        if backend_id not in records:
            raise PersistenceError(f"Node {backend_id} not found", status_code=404)
        del records[backend_id]

    async def list_nodes(self, context: BuilderContext) -> list[NodeRecord]:
        records = self._workflow(context.workflow_id)
        return [records[key] for key in sorted(records)]

    async def update_node(
        self,
        backend_id: int,
        fields: dict,
        context: BuilderContext,
    ) -> None:
        records = self._workflow(context.workflow_id)
        if backend_id not in records:
            raise PersistenceError(f"Node {backend_id} not found", status_code=404)
        records[backend_id] = records[backend_id].model_copy(update=fields)

    async def save_output(self, context: BuilderContext, output: str) -> None:
        self.outputs[context.workflow_id] = output

    async def set_published(self, context: BuilderContext, published: bool) -> None:
        self.published[context.workflow_id] = published
