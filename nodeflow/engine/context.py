"""
Execution Context for flow runs.

The context is the ledger of a single run: the outputs every node has
produced, an append-only log of everything the engine and the executors
decided, and the run status. A fresh context is created for every run and is
closed for writes once the run reaches a terminal status.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import logging
import uuid

from nodeflow.engine.errors import ExecutionContextClosed, InvalidStatusTransition
from nodeflow.engine.models import FlowEdge, FlowNode


logger = logging.getLogger(__name__)


class ExecutionStatus(str, Enum):
    """Status of a flow run."""
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


_ALLOWED_TRANSITIONS = {
    ExecutionStatus.IDLE: {ExecutionStatus.RUNNING},
    ExecutionStatus.RUNNING: {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED},
    ExecutionStatus.COMPLETED: set(),
    ExecutionStatus.FAILED: set(),
}


@dataclass(frozen=True)
class LogEntry:
    """A single entry in the run log."""
    timestamp: datetime
    message: str
    node_id: Optional[str] = None
    data: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "node_id": self.node_id,
            "message": self.message,
            "data": self.data,
        }


LogObserver = Callable[[LogEntry], None]


class ExecutionContext:
    """
    Mutable state of one flow run.

    Executors read and write the context only through its methods:
    ``set_output``, ``get_output``, ``get_input`` and ``add_log``.

    Usage:
        context = ExecutionContext()
        context.mark_running()
        context.set_output("var-1", "value", 42)
        context.get_input("if-1", "var1", edges, nodes)  # -> 42 if wired
    """

    def __init__(self, run_id: Optional[str] = None, on_log: Optional[LogObserver] = None):
        """
        Initialize an empty context.

        Args:
            run_id: Optional run ID (generated if not provided)
            on_log: Optional callback invoked with every new log entry
        """
        self.run_id = run_id or str(uuid.uuid4())
        self._on_log = on_log
        self._outputs: Dict[Tuple[str, str], Any] = {}
        self._logs: List[LogEntry] = []
        self._status = ExecutionStatus.IDLE
        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None

    # ------------------------------------------------------------
    # Status
    # ------------------------------------------------------------

    @property
    def status(self) -> ExecutionStatus:
        return self._status

    @property
    def is_terminal(self) -> bool:
        return self._status in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)

    def mark_running(self) -> None:
        self._transition(ExecutionStatus.RUNNING)
        self.started_at = datetime.now()

    def mark_completed(self) -> None:
        self._transition(ExecutionStatus.COMPLETED)
        self.completed_at = datetime.now()

    def mark_failed(self) -> None:
        self._transition(ExecutionStatus.FAILED)
        self.completed_at = datetime.now()

    def _transition(self, new_status: ExecutionStatus) -> None:
        if new_status not in _ALLOWED_TRANSITIONS[self._status]:
            raise InvalidStatusTransition(
                f"Cannot move run {self.run_id} from {self._status.value} to {new_status.value}"
            )
        self._status = new_status

    def _ensure_open(self) -> None:
        if self.is_terminal:
            raise ExecutionContextClosed(
                f"Run {self.run_id} already finished with status {self._status.value}"
            )

    # ------------------------------------------------------------
    # Log
    # ------------------------------------------------------------

    @property
    def logs(self) -> Tuple[LogEntry, ...]:
        """The run log, in append order."""
        return tuple(self._logs)

    def add_log(self, message: str, node_id: Optional[str] = None, data: Any = None) -> LogEntry:
        """Append a timestamped entry to the run log."""
        self._ensure_open()
        entry = LogEntry(timestamp=datetime.now(), message=message, node_id=node_id, data=data)
        self._logs.append(entry)
        logger.debug(f"[{self.run_id}]{f' [{node_id}]' if node_id else ''} {message}")

        if self._on_log:
            try:
                self._on_log(entry)
            except Exception as e:
                logger.warning(f"Log observer failed: {e}")

        return entry

    # ------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------

    @property
    def outputs(self) -> Dict[Tuple[str, str], Any]:
        """A copy of the recorded outputs keyed by (node_id, socket_name)."""
        return dict(self._outputs)

    def set_output(self, node_id: str, output_name: str, value: Any) -> None:
        """Record a node output. A later write for the same socket replaces the earlier one."""
        self._ensure_open()
        self._outputs[(node_id, output_name)] = value
        self.add_log(f"Output set for {node_id}_{output_name}", node_id, value)

    def get_output(self, node_id: str, output_name: str) -> Any:
        """Get a recorded output, or None if the socket has not produced a value."""
        return self._outputs.get((node_id, output_name))

    def has_output(self, node_id: str, output_name: str) -> bool:
        return (node_id, output_name) in self._outputs

    def get_input(
        self,
        target_node_id: str,
        input_name: str,
        edges: Sequence[FlowEdge],
        nodes: Optional[Sequence[FlowNode]] = None,
    ) -> Any:
        """
        Resolve the value arriving at an input socket.

        Finds the edge terminating at ``target_node_id.input_name`` and looks
        up the output its source recorded. Every unresolved case returns None
        and leaves a log entry explaining why; this never raises.

        Args:
            target_node_id: Node whose input is being read
            input_name: Input socket name on that node
            edges: All edges of the snapshot
            nodes: All nodes of the snapshot (kept for executor signature symmetry)

        Returns:
            The upstream value, or None if unresolved
        """
        edge = next(
            (e for e in edges if e.target == target_node_id and e.target_handle == input_name),
            None,
        )

        if edge is None:
            self.add_log(f"No input connection found for {target_node_id}.{input_name}", target_node_id)
            return None

        if not edge.source_handle:
            self.add_log(
                f"Input for {target_node_id}.{input_name} has connected edge but no sourceHandle specified.",
                target_node_id,
            )
            return None

        if not self.has_output(edge.source, edge.source_handle):
            self.add_log(
                f"Input {target_node_id}.{input_name} is connected to "
                f"{edge.source}.{edge.source_handle}, which has not produced a value yet.",
                target_node_id,
            )
            return None

        return self.get_output(edge.source, edge.source_handle)

    # ------------------------------------------------------------
    # Export
    # ------------------------------------------------------------

    @property
    def duration_ms(self) -> Optional[float]:
        if not self.started_at:
            return None
        end = self.completed_at or datetime.now()
        return (end - self.started_at).total_seconds() * 1000

    def to_dict(self) -> Dict[str, Any]:
        """Export the run for callers (API responses, storage)."""
        return {
            "run_id": self.run_id,
            "status": self._status.value,
            "logs": [entry.to_dict() for entry in self._logs],
            "outputs": [
                {"node_id": node_id, "socket": socket, "value": value}
                for (node_id, socket), value in self._outputs.items()
            ],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
        }
