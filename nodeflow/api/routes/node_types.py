"""
Node Type API Routes.

Endpoints exposing the static socket interface of every node type, so an
editor can draw sockets and check connections.
"""

from fastapi import APIRouter, HTTPException

from nodeflow.api.routes.flows import registry
from nodeflow.api.schemas import ErrorResponse, NodeTypeInfo, NodeTypeListResponse
from nodeflow.engine.node_types import NodeTypeDefinition, get_node_definition, list_node_definitions


router = APIRouter(prefix="/node-types", tags=["Node Types"])


def _to_info(definition: NodeTypeDefinition) -> NodeTypeInfo:
    return NodeTypeInfo(
        **definition.to_dict(),
        has_executor=registry.has(definition.type),
    )


@router.get(
    "/",
    response_model=NodeTypeListResponse,
)
async def list_node_types() -> NodeTypeListResponse:
    """List all node types with their input and output sockets."""
    infos = [_to_info(d) for d in list_node_definitions()]
    return NodeTypeListResponse(node_types=infos, total=len(infos))


@router.get(
    "/{node_type}",
    response_model=NodeTypeInfo,
    responses={404: {"model": ErrorResponse}},
)
async def get_node_type(node_type: str) -> NodeTypeInfo:
    """Get the socket interface of one node type."""
    definition = get_node_definition(node_type)
    if definition is None:
        raise HTTPException(status_code=404, detail=f"Node type '{node_type}' not found")
    return _to_info(definition)
