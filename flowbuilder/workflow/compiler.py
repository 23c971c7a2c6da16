"""Compiler from a builder graph to the prompt pipeline.

The generation engine walks the compiled list front to back. Every action
node runs first, ordered by sort order, producing upstream context. The
entry node runs last and is the one that consumes the runtime input, so it
is always moved to the end of the list with its input replaced.
"""
from typing import Optional

import structlog

from flowbuilder.errors import CompilationError
from flowbuilder.models.graph import ROOT_USE_INPUT, Node, WorkflowGraph, sibling_key
from flowbuilder.models.prompt import PromptList, PromptStep

logger = structlog.get_logger()


def _to_step(node: Node, parent_id: Optional[str], input_value: str) -> PromptStep:
    return PromptStep(
        id=node.id,
        use_input=parent_id or ROOT_USE_INPUT,
        title=node.config.title,
        prompt=node.config.prompt,
        input=input_value,
        background_prompt=node.config.background_prompt,
        sort_order=node.config.sort_order,
    )


def find_entry_node(graph: WorkflowGraph) -> Node:
    """Return the unique entry node or raise CompilationError."""
    entries = graph.entry_nodes()
    if not entries:
        raise CompilationError("no entry point")
    if len(entries) > 1:
        raise CompilationError(
            f"multiple entry points: {', '.join(sorted(node.id for node in entries))}"
        )
    return entries[0]


def compile_prompt_list(graph: WorkflowGraph, runtime_input: str) -> PromptList:
    """Linearize the graph into a prompt list.

    Args:
        graph: Snapshot to compile; it is not modified
        runtime_input: Value handed to the entry node as its input

    Returns:
        PromptList with the entry step last
    """
    entry = find_entry_node(graph)

    upstream = sorted(
        (node for node in graph.nodes if node.id != entry.id),
        key=sibling_key,
    )

    steps = []
    for node in upstream:
        parent = graph.parent_of(node.id)
        if parent is None:
            raise CompilationError(f"node '{node.id}' has no upstream node")
        steps.append(_to_step(node, parent.id, node.config.input))

    steps.append(_to_step(entry, None, runtime_input))

    logger.info(
        "prompt_list_compiled",
        step_count=len(steps),
        entry_node_id=entry.id,
    )

    return PromptList(steps=steps)
