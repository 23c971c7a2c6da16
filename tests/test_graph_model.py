"""Tests for the workflow graph model."""
import pytest

from flowbuilder.errors import StructuralError
from flowbuilder.models.graph import (
    ROOT_USE_INPUT,
    BuilderContext,
    Edge,
    NodeKind,
    NodeRecord,
    Position,
    WorkflowGraph,
)


class TestTraversal:

    @pytest.fixture
    def graph(self, make_graph):
        return make_graph([
            ("R", None, 0),
            ("A", "R", 1),
            ("C", "R", 3),
            ("B", "A", 2),
        ])

    def test_children_are_ordered_by_sort_order(self, graph):
        assert [node.id for node in graph.children_of("R")] == ["A", "C"]

    def test_parent_of(self, graph):
        assert graph.parent_of("B").id == "A"
        assert graph.parent_of("R") is None

    def test_root_of(self, graph):
        assert graph.root_of().id == "R"

    def test_root_of_is_none_with_two_entries(self, make_graph):
        graph = make_graph([("R", None, 0), ("S", None, 1)])
        assert graph.root_of() is None

    def test_valid_tree_passes_invariants(self, graph):
        graph.check_invariants()

    def test_with_positions_copies_nodes(self, graph):
        moved = graph.with_positions({"A": Position(x=10, y=20)})

        assert moved.get_node("A").config.position == Position(x=10, y=20)
        assert graph.get_node("A").config.position == Position(x=0, y=0)


class TestInvariants:

    def test_two_entry_nodes(self, make_graph):
        graph = make_graph([("R", None, 0), ("S", None, 1)])
        with pytest.raises(StructuralError, match="exactly one entry"):
            graph.check_invariants()

    def test_dangling_edge(self, make_graph):
        graph = make_graph([("R", None, 0), ("A", "R", 1)])
        graph.edges.append(Edge.connect("A", "ghost"))
        with pytest.raises(StructuralError, match="not found"):
            graph.check_invariants()

    def test_node_without_parent_edge(self, make_graph):
        graph = make_graph([("R", None, 0), ("A", "R", 1)])
        graph.edges.clear()
        with pytest.raises(StructuralError, match="incoming edges"):
            graph.check_invariants()

    def test_sort_order_must_increase_downstream(self, make_graph):
        graph = make_graph([("R", None, 0), ("A", "R", 5), ("B", "A", 2)])
        with pytest.raises(StructuralError, match="does not follow"):
            graph.check_invariants()

    def test_duplicate_sort_order(self, make_graph):
        graph = make_graph([("R", None, 0), ("A", "R", 1), ("B", "R", 1)])
        with pytest.raises(StructuralError, match="not unique"):
            graph.check_invariants()

    def test_cycle_detected(self, make_graph):
        graph = make_graph([("R", None, 0), ("A", "B", 1), ("B", "A", 2)])
        with pytest.raises(StructuralError, match="cycle|does not follow"):
            graph.check_invariants()


class TestRecordMapping:

    def test_from_records_builds_tree(self):
        graph = WorkflowGraph.from_records([
            NodeRecord(id=1, uuid="R", use_input="0", node_name="Root", sort=0),
            NodeRecord(id=2, uuid="A", use_input="R", node_name=None, prompt="p", sort=1),
        ])

        root = graph.get_node("R")
        child = graph.get_node("A")
        assert root.kind == NodeKind.TRIGGER
        assert root.config.uses_upstream_input is False
        assert child.kind == NodeKind.ACTION
        assert child.backend_id == 2
        assert child.config.title == "Generate Text"
        assert child.config.prompt == "p"
        assert [(e.source_node_id, e.target_node_id) for e in graph.edges] == [("R", "A")]
        graph.check_invariants()

    def test_to_record_uses_root_marker(self, make_graph):
        graph = make_graph([("R", None, 0), ("A", "R", 1)])
        context = BuilderContext(workflow_id=9, company_id=1, user_id=2)

        root_record = graph.get_node("R").to_record(context, None)
        child_record = graph.get_node("A").to_record(context, "R", ai_model="gpt-4", temperature=7)

        assert root_record.use_input == ROOT_USE_INPUT
        assert child_record.use_input == "R"
        assert child_record.node_name == "Step A"
        assert child_record.sort == 1
        assert child_record.workflow_id == 9
        assert child_record.ai_model == "gpt-4"

    def test_unknown_record_fields_are_ignored(self):
        record = NodeRecord.model_validate(
            {"uuid": "R", "use_input": "0", "sort": 0, "created_at": "2024-01-01"}
        )
        assert record.uuid == "R"
