"""Workflow graph model.

The builder graph is a rooted tree of prompt steps. The root (trigger) node
receives the runtime input of a run; every other node is an action fed by
its parent. Traversal helpers are derived from the edge list on every call,
nothing about the tree shape is cached on the nodes themselves.
"""
from enum import Enum
from typing import Iterable, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from flowbuilder.errors import StructuralError

# use_input value the persistence backend stores for the root node
ROOT_USE_INPUT = "0"


class NodeKind(str, Enum):
    """Kinds of workflow nodes."""
    TRIGGER = "trigger"
    ACTION = "action"


class Position(BaseModel):
    """2D position for node layout."""

    x: float = Field(0, description="X coordinate")
    y: float = Field(0, description="Y coordinate")


class NodeConfig(BaseModel):
    """User-editable configuration of a node plus its ordering data."""

    title: str = Field("Generate Text", description="Display name of the step")
    prompt: str = Field("", description="Prompt sent to the generation engine")
    input: str = Field("", description="Input value for the prompt")
    background_prompt: str = Field("", description="Background/system prompt")
    uses_upstream_input: bool = Field(
        True,
        description="False only for the entry node, which receives the runtime input",
    )
    sort_order: int = Field(0, description="Execution precedence")
    position: Position = Field(
        default_factory=Position,
        description="Node position for layout",
    )


class BuilderContext(BaseModel):
    """Identifies the workflow and the user a builder session works for."""

    workflow_id: int
    company_id: Optional[int] = None
    user_id: Optional[int] = None


class NodeRecord(BaseModel):
    """A node as stored by the persistence backend."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = Field(None, description="Backend identifier")
    uuid: str = Field(..., description="Client-side node identifier")
    use_input: str = Field(
        ROOT_USE_INPUT,
        description="uuid of the parent node, '0' for the root",
    )
    node_name: Optional[str] = None
    prompt: Optional[str] = ""
    input: Optional[str] = ""
    background_prompt: Optional[str] = ""
    ai_model: Optional[str] = None
    temperature: Optional[float] = None
    sort: int = 0
    workflow_id: Optional[int] = None
    company_id: Optional[int] = None
    user_id: Optional[int] = None


class Node(BaseModel):
    """A single workflow step."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    backend_id: Optional[int] = None
    kind: NodeKind
    config: NodeConfig = Field(default_factory=NodeConfig)

    @property
    def is_entry(self) -> bool:
        return not self.config.uses_upstream_input

    def to_record(
        self,
        context: BuilderContext,
        parent_id: Optional[str],
        ai_model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> NodeRecord:
        """Build the persistence record for this node."""
        return NodeRecord(
            id=self.backend_id,
            uuid=self.id,
            use_input=parent_id or ROOT_USE_INPUT,
            node_name=self.config.title,
            prompt=self.config.prompt,
            input=self.config.input,
            background_prompt=self.config.background_prompt,
            ai_model=ai_model,
            temperature=temperature,
            sort=self.config.sort_order,
            workflow_id=context.workflow_id,
            company_id=context.company_id,
            user_id=context.user_id,
        )

    @classmethod
    def from_record(cls, record: NodeRecord, default_title: str = "Generate Text") -> "Node":
        is_root = record.use_input == ROOT_USE_INPUT
        return cls(
            id=record.uuid,
            backend_id=record.id,
            kind=NodeKind.TRIGGER if is_root else NodeKind.ACTION,
            config=NodeConfig(
                title=record.node_name or default_title,
                prompt=record.prompt or "",
                input=record.input or "",
                background_prompt=record.background_prompt or "",
                uses_upstream_input=not is_root,
                sort_order=record.sort,
            ),
        )


class Edge(BaseModel):
    """Structural link from a parent node to a child node."""

    id: str
    source_node_id: str
    target_node_id: str

    @classmethod
    def connect(cls, source_node_id: str, target_node_id: str) -> "Edge":
        return cls(
            id=f"e{source_node_id}-{target_node_id}",
            source_node_id=source_node_id,
            target_node_id=target_node_id,
        )


def sibling_key(node: Node) -> tuple[int, str]:
    """Stable ordering key used wherever siblings must be ordered."""
    return (node.config.sort_order, node.id)


class WorkflowGraph(BaseModel):
    """Snapshot of a workflow graph.

    Snapshots are never edited in place by the builder; mutations produce a
    new snapshot so a failed operation can simply drop it.
    """

    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by its ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def has_node(self, node_id: str) -> bool:
        return self.get_node(node_id) is not None

    def incoming_edge(self, node_id: str) -> Optional[Edge]:
        for edge in self.edges:
            if edge.target_node_id == node_id:
                return edge
        return None

    def parent_of(self, node_id: str) -> Optional[Node]:
        """Get the upstream node of a given node, if any."""
        edge = self.incoming_edge(node_id)
        if edge is None:
            return None
        return self.get_node(edge.source_node_id)

    def children_of(self, node_id: str) -> list[Node]:
        """Get the direct downstream nodes, ordered by sort order."""
        child_ids = {
            edge.target_node_id for edge in self.edges
            if edge.source_node_id == node_id
        }
        children = [node for node in self.nodes if node.id in child_ids]
        return sorted(children, key=sibling_key)

    def entry_nodes(self) -> list[Node]:
        """Nodes that receive the runtime input instead of upstream output."""
        return [node for node in self.nodes if node.is_entry]

    def root_of(self) -> Optional[Node]:
        """Get the unique entry node, or None when there is not exactly one."""
        entries = self.entry_nodes()
        if len(entries) != 1:
            return None
        return entries[0]

    def max_sort_order(self) -> Optional[int]:
        if not self.nodes:
            return None
        return max(node.config.sort_order for node in self.nodes)

    def with_positions(self, positions: dict[str, Position]) -> "WorkflowGraph":
        """Return a copy with the given positions applied."""
        nodes = []
        for node in self.nodes:
            position = positions.get(node.id, node.config.position)
            config = node.config.model_copy(update={"position": position.model_copy()})
            nodes.append(node.model_copy(update={"config": config}))
        return WorkflowGraph(nodes=nodes, edges=list(self.edges))

    def check_invariants(self) -> None:
        """Raise StructuralError if the snapshot is not a valid rooted tree."""
        node_ids = [node.id for node in self.nodes]
        if len(node_ids) != len(set(node_ids)):
            raise StructuralError("Duplicate node identifiers in graph")
        if not self.nodes:
            if self.edges:
                raise StructuralError("Edges present in an empty graph")
            return

        known = set(node_ids)
        for edge in self.edges:
            if edge.source_node_id not in known:
                raise StructuralError(f"Edge source '{edge.source_node_id}' not found")
            if edge.target_node_id not in known:
                raise StructuralError(f"Edge target '{edge.target_node_id}' not found")

        entries = self.entry_nodes()
        if len(entries) != 1:
            raise StructuralError(f"Expected exactly one entry node, found {len(entries)}")
        root = entries[0]

        incoming: dict[str, int] = {node_id: 0 for node_id in known}
        for edge in self.edges:
            incoming[edge.target_node_id] += 1

        for node in self.nodes:
            if (node.kind == NodeKind.TRIGGER) != node.is_entry:
                raise StructuralError(
                    f"Node '{node.id}' kind {node.kind.value} does not match its input mode"
                )
            expected = 0 if node.id == root.id else 1
            if incoming[node.id] != expected:
                raise StructuralError(
                    f"Node '{node.id}' has {incoming[node.id]} incoming edges, expected {expected}"
                )

        sort_orders = [node.config.sort_order for node in self.nodes]
        if len(sort_orders) != len(set(sort_orders)):
            raise StructuralError("Sort orders are not unique")

        for edge in self.edges:
            parent = self.get_node(edge.source_node_id)
            child = self.get_node(edge.target_node_id)
            if child.config.sort_order <= parent.config.sort_order:
                raise StructuralError(
                    f"Sort order of '{child.id}' does not follow its parent '{parent.id}'"
                )

        # Every non-root node has one parent, so a node is unreachable
        # from the root only if it sits on a cycle.
        reached = {root.id}
        frontier = [root.id]
        while frontier:
            current = frontier.pop()
            for child in self.children_of(current):
                if child.id not in reached:
                    reached.add(child.id)
                    frontier.append(child.id)
        if reached != known:
            raise StructuralError("Graph contains a cycle")

    @classmethod
    def from_records(
        cls,
        records: Iterable[NodeRecord],
        default_title: str = "Generate Text",
    ) -> "WorkflowGraph":
        """Rebuild a graph from a persistence listing.

        The listing is taken as-is; call check_invariants to find out
        whether it describes a valid tree.
        """
        nodes = []
        edges = []
        for record in records:
            nodes.append(Node.from_record(record, default_title=default_title))
            if record.use_input and record.use_input != ROOT_USE_INPUT:
                edges.append(Edge.connect(record.use_input, record.uuid))
        return cls(nodes=nodes, edges=edges)
