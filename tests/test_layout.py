"""Tests for the canvas layout."""
from flowbuilder.models.graph import Position, WorkflowGraph
from flowbuilder.workflow.layout import (
    NODE_HEIGHT,
    NODE_SEPARATION,
    NODE_WIDTH,
    RANK_SEPARATION,
    apply_layout,
    compute_depths,
    layout,
)

X_STEP = NODE_WIDTH + NODE_SEPARATION
Y_STEP = NODE_HEIGHT + RANK_SEPARATION


def test_chain_is_stacked_vertically(make_graph):
    graph = make_graph([("R", None, 0), ("A", "R", 1), ("B", "A", 2)])

    positions = layout(graph.nodes, graph.edges)

    assert positions["R"] == Position(x=-NODE_WIDTH / 2, y=0)
    assert positions["A"] == Position(x=-NODE_WIDTH / 2, y=Y_STEP)
    assert positions["B"] == Position(x=-NODE_WIDTH / 2, y=2 * Y_STEP)


def test_siblings_spread_in_sort_order(make_graph):
    graph = make_graph([("R", None, 0), ("C", "R", 2), ("A", "R", 1)])

    positions = layout(graph.nodes, graph.edges)

    assert positions["A"].y == positions["C"].y == Y_STEP
    assert positions["A"].x == -X_STEP / 2 - NODE_WIDTH / 2
    assert positions["C"].x == X_STEP / 2 - NODE_WIDTH / 2


def test_nodes_at_same_depth_do_not_overlap(make_graph):
    graph = make_graph([
        ("R", None, 0),
        ("A", "R", 1),
        ("B", "R", 2),
        ("A1", "A", 3),
        ("A2", "A", 4),
        ("B1", "B", 5),
    ])

    positions = layout(graph.nodes, graph.edges)

    band = sorted(positions[node_id].x for node_id in ("A1", "A2", "B1"))
    assert all(right - left >= NODE_WIDTH for left, right in zip(band, band[1:]))
    # Cousins keep the order of their parents
    assert positions["A1"].x < positions["A2"].x < positions["B1"].x


def test_depth_is_edge_count_from_root(make_graph):
    graph = make_graph([("R", None, 0), ("A", "R", 1), ("B", "A", 2), ("C", "R", 3)])

    assert compute_depths(graph.nodes, graph.edges) == {"R": 0, "A": 1, "C": 1, "B": 2}


def test_layout_ignores_list_order(make_graph):
    graph = make_graph([
        ("R", None, 0),
        ("A", "R", 1),
        ("B", "R", 2),
        ("C", "A", 3),
    ])

    shuffled = WorkflowGraph(
        nodes=list(reversed(graph.nodes)),
        edges=list(reversed(graph.edges)),
    )

    assert layout(graph.nodes, graph.edges) == layout(shuffled.nodes, shuffled.edges)


def test_layout_is_idempotent(make_graph):
    graph = make_graph([("R", None, 0), ("A", "R", 1), ("B", "R", 2), ("C", "B", 3)])

    once = apply_layout(graph)
    twice = apply_layout(once)

    assert [n.config.position for n in once.nodes] == [n.config.position for n in twice.nodes]


def test_layout_does_not_touch_input_graph(make_graph):
    graph = make_graph([("R", None, 0), ("A", "R", 1), ("B", "R", 2)])

    apply_layout(graph)

    assert all(node.config.position == Position() for node in graph.nodes)


def test_cycle_nodes_get_their_own_band(make_graph):
    graph = make_graph([("R", None, 0), ("A", "B", 1), ("B", "A", 2)])

    positions = layout(graph.nodes, graph.edges)

    assert positions["R"].y == 0
    assert positions["A"].y == positions["B"].y == Y_STEP
    assert positions["A"].x != positions["B"].x


def test_empty_graph():
    assert layout([], []) == {}
