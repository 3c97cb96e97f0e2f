"""
Engine package - Core flow execution components.
"""

from nodeflow.engine.context import ExecutionContext, ExecutionStatus, LogEntry
from nodeflow.engine.errors import (
    FlowExecutionError,
    NodeNotFoundError,
    UnknownNodeTypeError,
    RunTimeoutError,
    RunCancelledError,
)
from nodeflow.engine.models import FlowNode, FlowEdge
from nodeflow.engine.node_types import NodeType, SocketType, Socket, NodeTypeDefinition
from nodeflow.engine.graph import FlowGraph
from nodeflow.engine.services import NodeServices, LiveOutputStore
from nodeflow.engine.executor import FlowExecutor, execute_flow

__all__ = [
    "ExecutionContext",
    "ExecutionStatus",
    "LogEntry",
    "FlowExecutionError",
    "NodeNotFoundError",
    "UnknownNodeTypeError",
    "RunTimeoutError",
    "RunCancelledError",
    "FlowNode",
    "FlowEdge",
    "NodeType",
    "SocketType",
    "Socket",
    "NodeTypeDefinition",
    "FlowGraph",
    "NodeServices",
    "LiveOutputStore",
    "FlowExecutor",
    "execute_flow",
]
