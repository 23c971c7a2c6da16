"""Builder API endpoints - canvas gestures and workflow runs."""
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from flowbuilder.errors import (
    CompilationError,
    ExecutionError,
    OperationInProgressError,
    PersistenceError,
    StructuralError,
    ValidationError,
    WorkflowBuilderError,
)
from flowbuilder.generation.client import GenerationClient, get_generation_client
from flowbuilder.models.graph import BuilderContext, Node, NodeKind
from flowbuilder.persistence import NodeStore, get_node_store
from flowbuilder.workflow.session import BuilderSession, GraphView

logger = structlog.get_logger()

router = APIRouter()

# Open sessions by workflow id
_sessions: dict[int, BuilderSession] = {}


class OpenSessionRequest(BaseModel):
    """Request body for opening a builder session."""

    workflow_id: int = Field(..., description="Workflow to edit")
    company_id: Optional[int] = Field(None, description="Owning company")
    user_id: Optional[int] = Field(None, description="Editing user")
    published: bool = Field(False, description="Whether the workflow is currently published")


class AddNodeRequest(BaseModel):
    """Request body for adding a node below a parent."""

    parent_id: Optional[str] = Field(
        None,
        description="Parent node id; omit only for the first (trigger) node",
    )
    kind: NodeKind = Field(NodeKind.ACTION, description="Node kind")


class UpdateNodeRequest(BaseModel):
    """Request body for configuration edits."""

    title: Optional[str] = None
    prompt: Optional[str] = None
    input: Optional[str] = None
    background_prompt: Optional[str] = None


class RunRequest(BaseModel):
    """Request body for a workflow run."""

    input: Optional[str] = Field(
        None,
        description="Runtime input for the entry node; its stored input when omitted",
    )


class RunResponse(BaseModel):
    """Response body for a workflow run."""

    workflow_id: int
    content: str


def get_sessions() -> dict[int, BuilderSession]:
    return _sessions


def _http_error(error: WorkflowBuilderError) -> HTTPException:
    if isinstance(error, (ValidationError, CompilationError)):
        status_code = 422
    elif isinstance(error, (StructuralError, OperationInProgressError)):
        status_code = 409
    elif isinstance(error, (PersistenceError, ExecutionError)):
        status_code = 502
    else:
        status_code = 500
    return HTTPException(
        status_code=status_code,
        detail={"error": type(error).__name__, "message": str(error)},
    )


def _session(workflow_id: int, sessions: dict[int, BuilderSession]) -> BuilderSession:
    session = sessions.get(workflow_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"No open session for workflow {workflow_id}")
    return session


@router.post("/builder/sessions", response_model=GraphView)
async def open_session(
    request: OpenSessionRequest,
    store: NodeStore = Depends(get_node_store),
    generation: GenerationClient = Depends(get_generation_client),
    sessions: dict[int, BuilderSession] = Depends(get_sessions),
) -> GraphView:
    """Open (or reopen) a session and load the workflow graph."""
    logger.info("open_session_request", workflow_id=request.workflow_id)

    session = BuilderSession(
        context=BuilderContext(**request.model_dump(exclude={"published"})),
        store=store,
        generation=generation,
        published=request.published,
    )
    try:
        await session.load()
    except WorkflowBuilderError as e:
        raise _http_error(e)

    sessions[request.workflow_id] = session
    return session.view()


@router.get("/builder/sessions/{workflow_id}", response_model=GraphView)
async def get_session(
    workflow_id: int,
    sessions: dict[int, BuilderSession] = Depends(get_sessions),
) -> GraphView:
    return _session(workflow_id, sessions).view()


@router.delete("/builder/sessions/{workflow_id}")
async def close_session(
    workflow_id: int,
    sessions: dict[int, BuilderSession] = Depends(get_sessions),
) -> dict:
    """End a session; its in-memory graph is discarded."""
    _session(workflow_id, sessions)
    del sessions[workflow_id]
    logger.info("session_closed", workflow_id=workflow_id)
    return {"closed": True}


@router.post("/builder/sessions/{workflow_id}/nodes", response_model=Node)
async def add_node(
    workflow_id: int,
    request: AddNodeRequest,
    sessions: dict[int, BuilderSession] = Depends(get_sessions),
) -> Node:
    session = _session(workflow_id, sessions)
    try:
        return await session.add_requested(request.parent_id, request.kind)
    except WorkflowBuilderError as e:
        raise _http_error(e)


@router.delete("/builder/sessions/{workflow_id}/nodes/{node_id}", response_model=GraphView)
async def delete_node(
    workflow_id: int,
    node_id: str,
    sessions: dict[int, BuilderSession] = Depends(get_sessions),
) -> GraphView:
    session = _session(workflow_id, sessions)
    try:
        await session.delete_requested(node_id)
    except WorkflowBuilderError as e:
        raise _http_error(e)
    return session.view()


@router.post("/builder/sessions/{workflow_id}/nodes/{node_id}/open", response_model=GraphView)
async def open_node_editor(
    workflow_id: int,
    node_id: str,
    sessions: dict[int, BuilderSession] = Depends(get_sessions),
) -> GraphView:
    session = _session(workflow_id, sessions)
    try:
        session.node_clicked(node_id)
    except WorkflowBuilderError as e:
        raise _http_error(e)
    return session.view()


@router.post("/builder/sessions/{workflow_id}/editor/close", response_model=GraphView)
async def close_node_editor(
    workflow_id: int,
    sessions: dict[int, BuilderSession] = Depends(get_sessions),
) -> GraphView:
    session = _session(workflow_id, sessions)
    session.close_editor()
    return session.view()


@router.patch("/builder/sessions/{workflow_id}/nodes/{node_id}", response_model=Node)
async def update_node(
    workflow_id: int,
    node_id: str,
    request: UpdateNodeRequest,
    sessions: dict[int, BuilderSession] = Depends(get_sessions),
) -> Node:
    session = _session(workflow_id, sessions)
    try:
        return await session.save_node_config(node_id, request.model_dump(exclude_none=True))
    except WorkflowBuilderError as e:
        raise _http_error(e)


@router.post("/builder/sessions/{workflow_id}/run", response_model=RunResponse)
async def run_workflow(
    workflow_id: int,
    request: RunRequest,
    sessions: dict[int, BuilderSession] = Depends(get_sessions),
) -> RunResponse:
    """
    Compile the current graph and send it to the generation engine.

    The entry node is evaluated last and receives the runtime input;
    every other node runs before it in sort order.
    """
    session = _session(workflow_id, sessions)
    try:
        content = await session.run(request.input)
    except WorkflowBuilderError as e:
        raise _http_error(e)
    return RunResponse(workflow_id=workflow_id, content=content)


@router.post("/builder/sessions/{workflow_id}/publish", response_model=GraphView)
async def toggle_publish(
    workflow_id: int,
    sessions: dict[int, BuilderSession] = Depends(get_sessions),
) -> GraphView:
    """Publish an unpublished workflow, or unpublish a published one."""
    session = _session(workflow_id, sessions)
    try:
        await session.toggle_published()
    except WorkflowBuilderError as e:
        raise _http_error(e)
    return session.view()
