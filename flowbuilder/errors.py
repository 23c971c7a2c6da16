"""Error types raised by the workflow builder core.

Validation and structural errors are raised before any state is touched.
Persistence errors discard the attempted mutation. Compilation errors stop a
run before the generation engine is called, and execution errors leave the
last output as it was.
"""
from typing import Optional


class WorkflowBuilderError(Exception):
    """Base class for all builder errors."""


class ValidationError(WorkflowBuilderError):
    """Missing or invalid node configuration fields."""


class StructuralError(WorkflowBuilderError):
    """A change that would break the workflow tree."""


class InteractionSuspendedError(StructuralError):
    """A structural edit was requested while a node editor is open."""

    def __init__(self, editing_node_id: str):
        super().__init__(
            f"Structural edits are suspended while node '{editing_node_id}' is being edited"
        )
        self.editing_node_id = editing_node_id


class OperationInProgressError(WorkflowBuilderError):
    """Another mutation or run has not settled yet."""


class PersistenceError(WorkflowBuilderError):
    """The persistence backend rejected or failed a call."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[dict] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class CompilationError(WorkflowBuilderError):
    """The graph cannot be turned into a prompt list."""


class ExecutionError(WorkflowBuilderError):
    """The generation engine failed or timed out."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
