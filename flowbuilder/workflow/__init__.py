"""Workflow builder core: mutations, layout, compilation and sessions."""
from flowbuilder.workflow.compiler import compile_prompt_list, find_entry_node
from flowbuilder.workflow.layout import apply_layout, layout
from flowbuilder.workflow.mutations import GraphMutationEngine, MutationResult
from flowbuilder.workflow.selection import EditorState, SelectionController
from flowbuilder.workflow.session import BuilderSession, GraphView, Notification

__all__ = [
    "compile_prompt_list",
    "find_entry_node",
    "apply_layout",
    "layout",
    "GraphMutationEngine",
    "MutationResult",
    "EditorState",
    "SelectionController",
    "BuilderSession",
    "GraphView",
    "Notification",
]
