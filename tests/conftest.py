"""Shared fixtures for the builder tests."""
import asyncio
from typing import Optional

import pytest

from flowbuilder.config import Settings
from flowbuilder.errors import PersistenceError, WorkflowBuilderError
from flowbuilder.generation.client import GenerationClient
from flowbuilder.models.graph import (
    BuilderContext,
    Edge,
    Node,
    NodeConfig,
    NodeKind,
    NodeRecord,
    WorkflowGraph,
)
from flowbuilder.models.prompt import GenerationResult, PromptList
from flowbuilder.persistence.memory import InMemoryNodeStore
from flowbuilder.workflow.mutations import GraphMutationEngine
from flowbuilder.workflow.selection import SelectionController


class ControlledNodeStore(InMemoryNodeStore):
    """In-memory store that can fail chosen operations or hold them open."""

    def __init__(self):
        super().__init__()
        self.fail_on: set[str] = set()
        self.gate: Optional[asyncio.Event] = None
        self.calls: list[str] = []

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if self.gate is not None:
            await self.gate.wait()
        if operation in self.fail_on:
            raise PersistenceError(f"{operation} failed", status_code=500)

    async def create_node(self, record: NodeRecord) -> int:
        await self._enter("create")
        return await super().create_node(record)

    async def delete_node(self, backend_id, context):
        await self._enter("delete")
        await super().delete_node(backend_id, context)

    async def list_nodes(self, context):
        await self._enter("list")
        return await super().list_nodes(context)

    async def update_node(self, backend_id, fields, context):
        await self._enter("update")
        await super().update_node(backend_id, fields, context)

    async def save_output(self, context, output):
        await self._enter("save_output")
        await super().save_output(context, output)

    async def set_published(self, context, published):
        await self._enter("publish")
        await super().set_published(context, published)

    def record(self, workflow_id: int, uuid: str) -> NodeRecord:
        for record in self._workflow(workflow_id).values():
            if record.uuid == uuid:
                return record
        raise KeyError(uuid)


class StubGenerationClient(GenerationClient):
    """Generation client returning canned content."""

    def __init__(self, content: str = "generated text"):
        self.content = content
        self.error: Optional[WorkflowBuilderError] = None
        self.gate: Optional[asyncio.Event] = None
        self.calls: list[PromptList] = []

    async def execute(self, prompt_list: PromptList) -> GenerationResult:
        self.calls.append(prompt_list)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return GenerationResult(content=self.content)


@pytest.fixture
def settings():
    return Settings(_env_file=None, persistence_backend="memory")


@pytest.fixture
def context():
    return BuilderContext(workflow_id=42, company_id=7, user_id=3)


@pytest.fixture
def store():
    return ControlledNodeStore()


@pytest.fixture
def generation():
    return StubGenerationClient()


@pytest.fixture
def selection():
    return SelectionController()


@pytest.fixture
def engine(store, selection, context, settings):
    return GraphMutationEngine(store, selection, context, settings)


@pytest.fixture
def build_tree(engine):
    """Build a graph through the engine from (parent index, ...) pairs.

    Index 0 is the trigger; entry i of `parents` is the index of the parent
    of node i + 1. Returns the graph and the node ids in creation order.
    """
    async def _build(parents=(0, 1)):
        result = await engine.add_node(WorkflowGraph(), None, NodeKind.TRIGGER)
        graph, ids = result.graph, [result.node_id]
        for parent_index in parents:
            result = await engine.add_node(graph, ids[parent_index], NodeKind.ACTION)
            graph = result.graph
            ids.append(result.node_id)
        return graph, ids

    return _build


@pytest.fixture
def make_graph():
    """Build a graph directly from (node_id, parent_id, sort_order) triples.

    Nodes without a parent are entry nodes.
    """
    def _make(rows):
        nodes, edges = [], []
        for backend_id, (node_id, parent_id, sort_order) in enumerate(rows, start=1):
            is_root = parent_id is None
            nodes.append(
                Node(
                    id=node_id,
                    backend_id=backend_id,
                    kind=NodeKind.TRIGGER if is_root else NodeKind.ACTION,
                    config=NodeConfig(
                        title=f"Step {node_id}",
                        prompt=f"prompt {node_id}",
                        input=f"input {node_id}",
                        background_prompt=f"background {node_id}",
                        uses_upstream_input=not is_root,
                        sort_order=sort_order,
                    ),
                )
            )
            if parent_id is not None:
                edges.append(Edge.connect(parent_id, node_id))
        return WorkflowGraph(nodes=nodes, edges=edges)

    return _make
