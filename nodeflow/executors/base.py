"""
Node Executor interface.

An executor is the behaviour bound to one node type. The scheduler calls
``execute`` once per node per run and follows the edges of every output
socket present in the returned mapping.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence
import math

from nodeflow.engine.context import ExecutionContext
from nodeflow.engine.models import FlowEdge, FlowNode
from nodeflow.engine.services import NodeServices


class NodeExecutor(ABC):
    """
    Base class for node executors.

    Contract for subclasses:
    - Never raise for missing or mistyped input. Substitute a sensible
      default and say so in the run log.
    - Return only the output sockets that fired. A missing key means the
      socket did not fire (conditional branches rely on this).
    - Signal sockets carry ``True``; other sockets carry their payload.
    - Expected failures of external calls become an ``error`` output.
    """

    node_type: str = ""

    @abstractmethod
    async def execute(
        self,
        node: FlowNode,
        context: ExecutionContext,
        services: NodeServices,
        edges: Sequence[FlowEdge],
        all_nodes: Sequence[FlowNode],
    ) -> Dict[str, Any]:
        """
        Run the node.

        Args:
            node: The node being executed
            context: The run's execution context
            services: Shared services (logging hook, live output port)
            edges: All edges of the snapshot
            all_nodes: All nodes of the snapshot

        Returns:
            Mapping of output socket name to value for the sockets that fired
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(node_type='{self.node_type}')"


def to_number(value: Any) -> Optional[float]:
    """
    Coerce a config or input value to a number.

    Booleans count as 0/1 and blank strings as 0. Returns None when the
    value has no finite numeric reading (NaN, infinities and integers too
    large for a float included).
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def to_text(value: Any) -> str:
    """Text form of a value for string operations."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
