"""Pydantic models for the workflow builder."""
from flowbuilder.models.graph import (
    ROOT_USE_INPUT,
    BuilderContext,
    Edge,
    Node,
    NodeConfig,
    NodeKind,
    NodeRecord,
    Position,
    WorkflowGraph,
)
from flowbuilder.models.prompt import (
    GenerationResult,
    PromptList,
    PromptStep,
)

__all__ = [
    "ROOT_USE_INPUT",
    "BuilderContext",
    "Edge",
    "Node",
    "NodeConfig",
    "NodeKind",
    "NodeRecord",
    "Position",
    "WorkflowGraph",
    "GenerationResult",
    "PromptList",
    "PromptStep",
]
