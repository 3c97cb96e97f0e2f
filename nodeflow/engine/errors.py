"""
Errors raised by the flow execution engine.

Executors never raise these for bad input; they are reserved for structural
problems with the graph or the run itself, and are turned into a FAILED run
by the scheduler.
"""

from typing import Optional


class FlowExecutionError(Exception):
    """Base class for engine errors."""


class NodeNotFoundError(FlowExecutionError):
    """A node id referenced during traversal is not in the snapshot."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node {node_id} not found.")


class UnknownNodeTypeError(FlowExecutionError):
    """No executor is registered for a node's type tag."""

    def __init__(self, node_type: Optional[str], node_id: Optional[str] = None):
        self.node_type = node_type
        self.node_id = node_id
        super().__init__(f"No executor for node type {node_type}")


class RunTimeoutError(FlowExecutionError):
    """The run exceeded its deadline."""

    def __init__(self, timeout: float, node_id: Optional[str] = None):
        self.timeout = timeout
        self.node_id = node_id
        where = f" while executing node {node_id}" if node_id else ""
        super().__init__(f"Run deadline of {timeout}s exceeded{where}")


class RunCancelledError(FlowExecutionError):
    """The caller cancelled the run."""

    def __init__(self, node_id: Optional[str] = None):
        self.node_id = node_id
        where = f" at node {node_id}" if node_id else ""
        super().__init__(f"Run cancelled{where}")


class InvalidStatusTransition(FlowExecutionError):
    """An execution status change that the state machine does not allow."""


class ExecutionContextClosed(FlowExecutionError):
    """A write was attempted on a context that already reached a terminal status."""
