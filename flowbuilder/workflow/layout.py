"""Layered top-to-bottom layout for the builder canvas.

Positions depend only on the tree shape and the sort order of siblings, so
the same graph always lands on the same coordinates no matter how its node
and edge lists are ordered or where the nodes were drawn before.
"""
from collections import deque
from typing import Iterable

from flowbuilder.models.graph import Edge, Node, Position, WorkflowGraph, sibling_key

NODE_WIDTH = 250
NODE_HEIGHT = 80
NODE_SEPARATION = 50
RANK_SEPARATION = 50


def compute_depths(nodes: Iterable[Node], edges: Iterable[Edge]) -> dict[str, int]:
    """Breadth-first depth of every node, in visiting order.

    Nodes without an incoming edge start a tree. Nodes never reached from
    one (possible only in invalid graphs) go one band below the deepest.
    """
    nodes = sorted(nodes, key=sibling_key)
    by_id = {node.id: node for node in nodes}

    children: dict[str, list[Node]] = {node.id: [] for node in nodes}
    has_parent: set[str] = set()
    for edge in edges:
        if edge.source_node_id in by_id and edge.target_node_id in by_id:
            children[edge.source_node_id].append(by_id[edge.target_node_id])
        has_parent.add(edge.target_node_id)

    depths: dict[str, int] = {}
    queue = deque(node for node in nodes if node.id not in has_parent)
    for root in queue:
        depths[root.id] = 0

    while queue:
        current = queue.popleft()
        for child in sorted(children[current.id], key=sibling_key):
            if child.id not in depths:
                depths[child.id] = depths[current.id] + 1
                queue.append(child)

    orphan_depth = max(depths.values(), default=-1) + 1
    for node in nodes:
        if node.id not in depths:
            depths[node.id] = orphan_depth

    return depths


def layout(
    nodes: Iterable[Node],
    edges: Iterable[Edge],
    node_width: int = NODE_WIDTH,
    node_height: int = NODE_HEIGHT,
    node_separation: int = NODE_SEPARATION,
    rank_separation: int = RANK_SEPARATION,
) -> dict[str, Position]:
    """Map every node id to the top-left corner of its box."""
    depths = compute_depths(list(nodes), list(edges))

    bands: dict[int, list[str]] = {}
    for node_id, depth in depths.items():
        bands.setdefault(depth, []).append(node_id)

    x_step = node_width + node_separation
    y_step = node_height + rank_separation

    positions: dict[str, Position] = {}
    for depth, band in bands.items():
        offset = (len(band) - 1) / 2
        for index, node_id in enumerate(band):
            centre_x = (index - offset) * x_step
            positions[node_id] = Position(
                x=centre_x - node_width / 2,
                y=depth * y_step,
            )

    return positions


def apply_layout(graph: WorkflowGraph) -> WorkflowGraph:
    """Return the graph with freshly computed positions."""
    return graph.with_positions(layout(graph.nodes, graph.edges))
