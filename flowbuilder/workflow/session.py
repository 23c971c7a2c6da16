"""Builder session - owns the graph of one open workflow.

The session is the only holder of the current snapshot. Gestures coming from
the canvas are routed to the mutation engine; after every successful change
the layout is recomputed from scratch. Runs are refused while a change is still
being persisted, so they always compile a settled snapshot.
"""
from datetime import datetime, timezone
from typing import Literal, Optional, Union

import structlog
from pydantic import BaseModel, Field

from flowbuilder.config import Settings, get_settings
from flowbuilder.errors import (
    OperationInProgressError,
    StructuralError,
    WorkflowBuilderError,
)
from flowbuilder.generation.client import GenerationClient
from flowbuilder.models.graph import (
    BuilderContext,
    Edge,
    Node,
    NodeKind,
    WorkflowGraph,
)
from flowbuilder.models.prompt import PromptList
from flowbuilder.persistence.base import NodeStore
from flowbuilder.workflow.compiler import compile_prompt_list, find_entry_node
from flowbuilder.workflow.layout import apply_layout
from flowbuilder.workflow.mutations import GraphMutationEngine
from flowbuilder.workflow.selection import SelectionController

logger = structlog.get_logger()


class Notification(BaseModel):
    """Message surfaced to the user after a gesture or run."""

    level: Literal["info", "error"]
    message: str
    error_type: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class GraphView(BaseModel):
    """Everything the canvas needs to draw the current state."""

    workflow_id: int
    nodes: list[Node]
    edges: list[Edge]
    editor: dict
    output: str
    running: bool
    busy: bool
    published: bool


class BuilderSession:
    """One user's editing session on one workflow."""

    def __init__(
        self,
        context: BuilderContext,
        store: NodeStore,
        generation: GenerationClient,
        settings: Optional[Settings] = None,
        published: bool = False,
    ):
        self.context = context
        self.store = store
        self.generation = generation
        self.settings = settings or get_settings()
        self.selection = SelectionController()
        self.engine = GraphMutationEngine(store, self.selection, context, self.settings)

        self.graph = WorkflowGraph()
        self.output = ""
        self.notifications: list[Notification] = []
        self.published = published
        self._running = False
        self._publishing = False

    @property
    def running(self) -> bool:
        return self._running

    def _notify(self, level: Literal["info", "error"], message: str, error: Optional[Exception] = None):
        self.notifications.append(
            Notification(
                level=level,
                message=message,
                error_type=type(error).__name__ if error else None,
            )
        )

    def _fail(self, error: WorkflowBuilderError) -> None:
        self._notify("error", str(error), error)

    def _commit(self, graph: WorkflowGraph) -> None:
        self.graph = apply_layout(graph)

    async def load(self) -> WorkflowGraph:
        """Rebuild the graph from the persistence listing."""
        try:
            records = await self.store.list_nodes(self.context)
        except WorkflowBuilderError as e:
            logger.error("session_load_failed", workflow_id=self.context.workflow_id, error=str(e))
            self._fail(e)
            raise

        graph = WorkflowGraph.from_records(records, default_title=self.settings.default_node_title)
        if not graph.is_empty:
            try:
                graph.check_invariants()
            except StructuralError as e:
                logger.warning(
                    "session_graph_invalid",
                    workflow_id=self.context.workflow_id,
                    error=str(e),
                )

        self._commit(graph)
        logger.info(
            "session_loaded",
            workflow_id=self.context.workflow_id,
            node_count=len(self.graph.nodes),
        )
        return self.graph

    def node_clicked(self, node_id: str) -> None:
        """Open the editor of a node."""
        if not self.graph.has_node(node_id):
            error = StructuralError(f"Node '{node_id}' not found")
            self._fail(error)
            raise error
        self.selection.open_editor(node_id)

    def close_editor(self) -> None:
        self.selection.close_editor()

    async def add_requested(
        self,
        parent_id: Optional[str],
        kind: Union[NodeKind, str],
    ) -> Node:
        try:
            result = await self.engine.add_node(self.graph, parent_id, kind)
        except WorkflowBuilderError as e:
            self._fail(e)
            raise
        self._commit(result.graph)
        return self.graph.get_node(result.node_id)

    async def delete_requested(self, node_id: str) -> None:
        try:
            result = await self.engine.delete_node(self.graph, node_id)
        except WorkflowBuilderError as e:
            self._fail(e)
            raise
        self._commit(result.graph)
        self._notify("info", "Node deleted")

    async def save_node_config(self, node_id: str, fields: dict) -> Node:
        """Persist editor changes and close the editor."""
        try:
            result = await self.engine.update_node(self.graph, node_id, fields)
        except WorkflowBuilderError as e:
            self._fail(e)
            raise
        self._commit(result.graph)
        if self.selection.editing_node_id == node_id:
            self.selection.close_editor()
        self._notify("info", "Action details updated successfully")
        return self.graph.get_node(node_id)

    def compile(self, runtime_input: Optional[str] = None) -> PromptList:
        """Compile the current snapshot.

        Without a runtime input the entry node's stored input is used, as a
        test run from the builder does.
        """
        if runtime_input is None:
            runtime_input = find_entry_node(self.graph).config.input
        return compile_prompt_list(self.graph, runtime_input)

    async def run(self, runtime_input: Optional[str] = None) -> str:
        """Compile and execute the workflow, keeping the output on success."""
        if self._running:
            error = OperationInProgressError("A workflow run is already in progress")
            self._fail(error)
            raise error
        if self.engine.busy:
            error = OperationInProgressError("A graph change is still in progress")
            self._fail(error)
            raise error

        self._running = True
        try:
            prompt_list = self.compile(runtime_input)
            result = await self.generation.execute(prompt_list)
            self.output = result.content
            await self.store.save_output(self.context, self.output)
        except WorkflowBuilderError as e:
            logger.error(
                "workflow_run_failed",
                workflow_id=self.context.workflow_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            self._fail(e)
            raise
        finally:
            self._running = False

        logger.info(
            "workflow_run_complete",
            workflow_id=self.context.workflow_id,
            step_count=len(prompt_list.steps),
        )
        self._notify("info", "Workflow executed successfully!")
        return self.output

    async def toggle_published(self) -> bool:
        """Flip the workflow between published and unpublished."""
        if self._running or self._publishing:
            error = OperationInProgressError("Cannot change publishing while the workflow is busy")
            self._fail(error)
            raise error

        target = not self.published
        self._publishing = True
        try:
            await self.store.set_published(self.context, target)
        except WorkflowBuilderError as e:
            logger.error(
                "workflow_publish_failed",
                workflow_id=self.context.workflow_id,
                published=target,
                error=str(e),
            )
            self._fail(e)
            raise
        finally:
            self._publishing = False

        self.published = target
        logger.info("workflow_publish_changed", workflow_id=self.context.workflow_id, published=target)
        self._notify("info", "Workflow published successfully" if target else "Workflow unpublished!")
        return self.published

    def view(self) -> GraphView:
        return GraphView(
            workflow_id=self.context.workflow_id,
            nodes=self.graph.nodes,
            edges=self.graph.edges,
            editor=self.selection.as_dict(),
            output=self.output,
            running=self._running,
            busy=self.engine.busy,
            published=self.published,
        )
