"""
Pydantic Schemas for API Request/Response Models.

These schemas define the structure of data flowing through the API,
providing automatic validation and documentation.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from nodeflow.engine.context import ExecutionStatus
from nodeflow.engine.models import FlowEdge, FlowNode


# ============================================================
# Node Type Schemas
# ============================================================

class SocketInfo(BaseModel):
    """A socket declared by a node type."""
    name: str
    type: str
    label: str


class NodeTypeInfo(BaseModel):
    """Static interface of a node type."""
    type: str
    label: str
    description: str
    category: str
    inputs: List[SocketInfo]
    outputs: List[SocketInfo]
    default_data: Dict[str, Any]
    has_executor: bool = Field(True, description="Whether the server can execute this type")


class NodeTypeListResponse(BaseModel):
    """Response listing all node types."""
    node_types: List[NodeTypeInfo]
    total: int


# ============================================================
# Flow Schemas
# ============================================================

class FlowSnapshot(BaseModel):
    """Nodes and edges of a flow, as exported by the editor."""
    nodes: List[FlowNode] = Field(..., description="Nodes of the flow")
    edges: List[FlowEdge] = Field(default_factory=list, description="Edges of the flow")
    start_node_id: Optional[str] = Field(
        None,
        description="Node to start from (defaults to the first Button node)",
    )


class FlowRunRequest(FlowSnapshot):
    """Request to run a flow."""
    timeout_seconds: Optional[float] = Field(
        None,
        description="Deadline for the whole run (no deadline if omitted)",
        gt=0,
    )

    class Config:
        json_schema_extra = {
            "example": {
                "nodes": [
                    {"id": "button-1", "type": "buttonNode", "data": {"buttonText": "Go"}},
                    {"id": "if-1", "type": "ifStatementNode", "data": {"operator": ">", "var1": 5, "var2": 3}},
                    {"id": "logger-1", "type": "loggerNode", "data": {"logLabel": "Bigger"}},
                ],
                "edges": [
                    {"source": "button-1", "sourceHandle": "trigger", "target": "if-1"},
                    {"source": "if-1", "sourceHandle": "true", "target": "logger-1", "targetHandle": "logData"},
                ],
                "start_node_id": "button-1",
            }
        }


class FlowValidationResponse(BaseModel):
    """Result of validating a flow."""
    valid: bool = Field(..., description="True if there are no warnings")
    warnings: List[str]
    start_node_id: Optional[str]
    mermaid_diagram: str


# ============================================================
# Run Schemas
# ============================================================

class LogEntryInfo(BaseModel):
    """A single entry in the run log."""
    timestamp: str
    node_id: Optional[str]
    message: str
    data: Any = None


class OutputInfo(BaseModel):
    """A recorded node output."""
    node_id: str
    socket: str
    value: Any = None


class FlowRunResponse(BaseModel):
    """Response after running a flow."""
    run_id: str = Field(..., description="Unique identifier for this run")
    status: ExecutionStatus
    start_node_id: Optional[str]
    logs: List[LogEntryInfo]
    outputs: List[OutputInfo]
    live_outputs: Dict[str, Any]
    warnings: List[str]
    started_at: Optional[str]
    completed_at: Optional[str]
    duration_ms: Optional[float]


class RunListResponse(BaseModel):
    """Response listing runs."""
    runs: List[FlowRunResponse]
    total: int


# ============================================================
# Error Schemas
# ============================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int
