"""Graph Mutation Engine.

Adds, deletes and edits builder nodes. Every operation:
1. Checks its preconditions against the current snapshot (no I/O yet)
2. Persists the change through the NodeStore
3. Only then builds and returns a new snapshot

A failed persistence call therefore never leaves a half-applied graph: the
caller keeps the snapshot it passed in. Operations are serialized; a second
request while one is awaiting the backend is rejected, not queued.
"""
from dataclasses import dataclass
from typing import Optional, Union

import structlog

from flowbuilder.config import Settings, get_settings
from flowbuilder.errors import (
    InteractionSuspendedError,
    OperationInProgressError,
    PersistenceError,
    StructuralError,
    ValidationError,
)
from flowbuilder.models.graph import (
    BuilderContext,
    Edge,
    Node,
    NodeConfig,
    NodeKind,
    WorkflowGraph,
)
from flowbuilder.persistence.base import NodeStore
from flowbuilder.workflow.selection import SelectionController

logger = structlog.get_logger()

# Editable config field -> persistence record field
EDITABLE_FIELDS = {
    "title": "node_name",
    "prompt": "prompt",
    "input": "input",
    "background_prompt": "background_prompt",
}


@dataclass
class MutationResult:
    """New snapshot produced by a mutation and the node it touched."""
    graph: WorkflowGraph
    node_id: str


def validate_config_fields(fields: dict) -> dict:
    """Check a node configuration update before anything is persisted."""
    if not fields:
        raise ValidationError("No fields to update")

    unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown node fields: {', '.join(unknown)}")

    for name, value in fields.items():
        if not isinstance(value, str):
            raise ValidationError(f"Field '{name}' must be a string")

    if "title" in fields and not fields["title"].strip():
        raise ValidationError("Node title is required")

    return dict(fields)


class GraphMutationEngine:
    """Applies structural and configuration changes to workflow graphs."""

    def __init__(
        self,
        store: NodeStore,
        selection: SelectionController,
        context: BuilderContext,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.selection = selection
        self.context = context
        self.settings = settings or get_settings()
        self._in_flight: Optional[str] = None

    @property
    def busy(self) -> bool:
        return self._in_flight is not None

    def _ensure_idle(self, operation: str) -> None:
        if self._in_flight is not None:
            logger.warning(
                "mutation_rejected_in_flight",
                operation=operation,
                in_flight=self._in_flight,
            )
            raise OperationInProgressError(
                f"Cannot {operation} while {self._in_flight} is in progress"
            )

    def _ensure_interactive(self) -> None:
        if self.selection.interaction_suspended:
            raise InteractionSuspendedError(self.selection.editing_node_id)

    def _new_node(
        self,
        graph: WorkflowGraph,
        parent_id: Optional[str],
        kind: NodeKind,
    ) -> Node:
        title = self.settings.default_node_title

        if kind == NodeKind.TRIGGER:
            if parent_id is not None:
                raise StructuralError("A trigger cannot have a parent node")
            if not graph.is_empty:
                raise StructuralError("The workflow already has a trigger")
            return Node(
                kind=kind,
                config=NodeConfig(title=title, uses_upstream_input=False, sort_order=0),
            )

        if kind == NodeKind.ACTION:
            if parent_id is None:
                raise StructuralError("An action needs a parent node")
            if not graph.has_node(parent_id):
                raise StructuralError(f"Parent node '{parent_id}' not found")
            return Node(
                kind=kind,
                config=NodeConfig(
                    title=title,
                    uses_upstream_input=True,
                    sort_order=graph.max_sort_order() + 1,
                ),
            )

        raise StructuralError(f"Unsupported node kind: {kind}")

    async def add_node(
        self,
        graph: WorkflowGraph,
        parent_id: Optional[str],
        kind: Union[NodeKind, str],
    ) -> MutationResult:
        """Persist a new node under parent_id and return the new snapshot.

        The first node of a workflow is the trigger and takes no parent;
        a parentless add on an empty graph always creates it.
        Every later node is an action appended below an existing node, with
        a sort order above everything already in the graph.
        """
        self._ensure_idle("add a node")
        self._ensure_interactive()

        try:
            kind = NodeKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown node kind: {kind}") from None
        if parent_id is None and graph.is_empty:
            kind = NodeKind.TRIGGER

        node = self._new_node(graph, parent_id, kind)
        record = node.to_record(
            self.context,
            parent_id,
            ai_model=self.settings.default_ai_model,
            temperature=self.settings.default_temperature,
        )

        self._in_flight = "node creation"
        try:
            backend_id = await self.store.create_node(record)
        except PersistenceError as e:
            logger.error(
                "node_add_failed",
                workflow_id=self.context.workflow_id,
                parent_id=parent_id,
                error=str(e),
            )
            raise
        finally:
            self._in_flight = None

        node = node.model_copy(update={"backend_id": backend_id})
        edges = list(graph.edges)
        if parent_id is not None:
            edges.append(Edge.connect(parent_id, node.id))

        logger.info(
            "node_added",
            workflow_id=self.context.workflow_id,
            node_id=node.id,
            backend_id=backend_id,
            kind=kind.value,
            parent_id=parent_id,
            sort_order=node.config.sort_order,
        )

        return MutationResult(
            graph=WorkflowGraph(nodes=[*graph.nodes, node], edges=edges),
            node_id=node.id,
        )

    async def delete_node(self, graph: WorkflowGraph, node_id: str) -> MutationResult:
        """Delete a node, reattaching its children to its parent.

        The children's new parent is persisted before the node itself is
        deleted. If anything fails, children already moved are pointed back
        at the node and the original snapshot stays in force.
        """
        self._ensure_idle("delete a node")
        self._ensure_interactive()

        node = graph.get_node(node_id)
        if node is None:
            raise StructuralError(f"Node '{node_id}' not found")
        if node.kind == NodeKind.TRIGGER or node.is_entry:
            raise StructuralError("The trigger node cannot be deleted")

        parent = graph.parent_of(node_id)
        if parent is None:
            raise StructuralError(f"Node '{node_id}' has no parent")

        children = graph.children_of(node_id)
        unsaved = [n.id for n in (node, *children) if n.backend_id is None]
        if unsaved:
            raise StructuralError(f"Nodes not persisted yet: {', '.join(unsaved)}")

        self._in_flight = "node deletion"
        try:
            moved: list[Node] = []
            try:
                for child in children:
                    await self.store.update_node(
                        child.backend_id, {"use_input": parent.id}, self.context
                    )
                    moved.append(child)
                await self.store.delete_node(node.backend_id, self.context)
            except PersistenceError as e:
                logger.error(
                    "node_delete_failed",
                    workflow_id=self.context.workflow_id,
                    node_id=node_id,
                    reparented=len(moved),
                    error=str(e),
                )
                await self._restore_parent(moved, node_id)
                raise
        finally:
            self._in_flight = None

        child_ids = {child.id for child in children}
        edges = [
            edge for edge in graph.edges
            if edge.target_node_id != node_id and edge.source_node_id != node_id
        ]
        edges.extend(Edge.connect(parent.id, child.id) for child in children)
        nodes = [n for n in graph.nodes if n.id != node_id]

        logger.info(
            "node_deleted",
            workflow_id=self.context.workflow_id,
            node_id=node_id,
            backend_id=node.backend_id,
            reparented=sorted(child_ids),
        )

        return MutationResult(graph=WorkflowGraph(nodes=nodes, edges=edges), node_id=node_id)

    async def _restore_parent(self, children: list[Node], parent_id: str) -> None:
        for child in children:
            try:
                await self.store.update_node(
                    child.backend_id, {"use_input": parent_id}, self.context
                )
            except PersistenceError as e:
                logger.error(
                    "node_reparent_restore_failed",
                    workflow_id=self.context.workflow_id,
                    node_id=child.id,
                    error=str(e),
                )

    async def update_node(
        self,
        graph: WorkflowGraph,
        node_id: str,
        fields: dict,
    ) -> MutationResult:
        """Persist configuration edits of a node; the tree shape is untouched."""
        self._ensure_idle("update a node")

        node = graph.get_node(node_id)
        if node is None:
            raise StructuralError(f"Node '{node_id}' not found")
        if node.backend_id is None:
            raise StructuralError(f"Node '{node_id}' is not persisted yet")

        changes = validate_config_fields(fields)
        record_fields = {EDITABLE_FIELDS[name]: value for name, value in changes.items()}

        self._in_flight = "node update"
        try:
            await self.store.update_node(node.backend_id, record_fields, self.context)
        except PersistenceError as e:
            logger.error(
                "node_update_failed",
                workflow_id=self.context.workflow_id,
                node_id=node_id,
                error=str(e),
            )
            raise
        finally:
            self._in_flight = None

        updated = node.model_copy(update={"config": node.config.model_copy(update=changes)})
        nodes = [updated if n.id == node_id else n for n in graph.nodes]

        logger.info("node_updated", node_id=node_id, fields=sorted(changes))

        return MutationResult(
            graph=WorkflowGraph(nodes=nodes, edges=list(graph.edges)),
            node_id=node_id,
        )
