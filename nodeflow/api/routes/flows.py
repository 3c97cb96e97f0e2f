"""
Flow API Routes.

Endpoints for validating and executing flow snapshots.
"""

from typing import Optional, Tuple
from fastapi import APIRouter, HTTPException
import logging

from nodeflow.api.schemas import (
    ErrorResponse,
    FlowRunRequest,
    FlowRunResponse,
    FlowSnapshot,
    FlowValidationResponse,
)
from nodeflow.engine.context import ExecutionContext, LogObserver
from nodeflow.engine.executor import FlowExecutor
from nodeflow.engine.graph import FlowGraph
from nodeflow.engine.services import LiveOutputListener, NodeServices
from nodeflow.executors.registry import create_default_registry
from nodeflow.storage.memory import StoredRun, run_storage


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/flows", tags=["Flows"])

# Executors used by every run started through the API
registry = create_default_registry()


def resolve_start_node(snapshot: FlowSnapshot, graph: FlowGraph) -> str:
    """
    The explicit start node, or the first Button node.

    Raises:
        HTTPException: 400 if neither exists
    """
    start = snapshot.start_node_id or graph.find_default_start_node()
    if not start:
        raise HTTPException(
            status_code=400,
            detail="Cannot run flow: no start_node_id given and no Button node found",
        )
    return start


async def run_snapshot(
    snapshot: FlowSnapshot,
    start_node_id: str,
    timeout: Optional[float] = None,
    on_log: Optional[LogObserver] = None,
    on_live_output: Optional[LiveOutputListener] = None,
) -> Tuple[ExecutionContext, StoredRun]:
    """
    Execute a snapshot with fresh services and store the result.

    Args:
        snapshot: Nodes and edges to run
        start_node_id: Node to start from
        timeout: Optional run deadline in seconds
        on_log: Optional callback for every log entry
        on_live_output: Optional listener on the live output port

    Returns:
        The finished context and its stored record
    """
    graph = FlowGraph(snapshot.nodes, snapshot.edges)
    warnings = graph.validate(start_node_id)
    for warning in warnings:
        logger.warning(f"Flow warning: {warning}")

    services = NodeServices()
    if on_live_output:
        services.live_output.subscribe(on_live_output)

    executor = FlowExecutor(registry, services, on_log)
    context = await executor.run(graph.nodes, graph.edges, start_node_id, timeout=timeout)

    stored = await run_storage.save(
        context,
        start_node_id=start_node_id,
        live_outputs=services.live_output.snapshot(),
        warnings=warnings,
    )
    logger.info(f"Run {context.run_id} finished with status {context.status.value}")
    return context, stored


@router.post(
    "/validate",
    response_model=FlowValidationResponse,
)
async def validate_flow(snapshot: FlowSnapshot) -> FlowValidationResponse:
    """
    Check a flow without running it.

    Warnings never block a run; they point out dangling sockets, unknown
    node types, cycles and unreachable nodes.
    """
    graph = FlowGraph(snapshot.nodes, snapshot.edges)
    start = snapshot.start_node_id or graph.find_default_start_node()
    warnings = graph.validate(start)

    return FlowValidationResponse(
        valid=not warnings,
        warnings=warnings,
        start_node_id=start,
        mermaid_diagram=graph.to_mermaid(),
    )


@router.post(
    "/run",
    response_model=FlowRunResponse,
    responses={
        400: {"model": ErrorResponse, "description": "No start node"},
    }
)
async def run_flow(request: FlowRunRequest) -> FlowRunResponse:
    """
    Execute a flow and return its full run log.

    A failed run is still a successful request: check ``status`` and the
    log for what went wrong.
    """
    graph = FlowGraph(request.nodes, request.edges)
    start = resolve_start_node(request, graph)

    _, stored = await run_snapshot(request, start, timeout=request.timeout_seconds)
    return FlowRunResponse(**stored.to_dict())
