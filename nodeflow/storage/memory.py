"""
In-Memory Storage for finished flow runs.

Keeps the exported execution context of every run started through the API
so it can be inspected later. Can be replaced with a database implementation.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
import asyncio
from dataclasses import dataclass, field

from nodeflow.engine.context import ExecutionContext


@dataclass
class StoredRun:
    """A stored flow run."""
    run_id: str
    status: str
    start_node_id: Optional[str]
    logs: List[Dict[str, Any]] = field(default_factory=list)
    outputs: List[Dict[str, Any]] = field(default_factory=list)
    live_outputs: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    duration_ms: Optional[float] = None
    stored_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "start_node_id": self.start_node_id,
            "logs": self.logs,
            "outputs": self.outputs,
            "live_outputs": self.live_outputs,
            "warnings": self.warnings,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "duration_ms": self.duration_ms,
        }


class RunStorage:
    """
    Async-safe in-memory storage for flow runs.
    """

    def __init__(self):
        self._runs: Dict[str, StoredRun] = {}
        self._lock = asyncio.Lock()

    async def save(
        self,
        context: ExecutionContext,
        start_node_id: Optional[str] = None,
        live_outputs: Optional[Dict[str, Any]] = None,
        warnings: Optional[List[str]] = None,
    ) -> StoredRun:
        """
        Store a finished run.

        Args:
            context: The finished execution context
            start_node_id: Node the run started from
            live_outputs: Values recorded on the live output port
            warnings: Graph validation warnings

        Returns:
            The stored run
        """
        exported = context.to_dict()
        async with self._lock:
            stored = StoredRun(
                run_id=context.run_id,
                status=exported["status"],
                start_node_id=start_node_id,
                logs=exported["logs"],
                outputs=exported["outputs"],
                live_outputs=dict(live_outputs or {}),
                warnings=list(warnings or []),
                started_at=exported["started_at"],
                completed_at=exported["completed_at"],
                duration_ms=exported["duration_ms"],
            )
            self._runs[context.run_id] = stored
            return stored

    async def get(self, run_id: str) -> Optional[StoredRun]:
        """Get a run by ID."""
        async with self._lock:
            return self._runs.get(run_id)

    async def list_all(self) -> List[StoredRun]:
        """List all runs, oldest first."""
        async with self._lock:
            return list(self._runs.values())

    async def list_by_status(self, status: str) -> List[StoredRun]:
        """List all runs with the given status."""
        async with self._lock:
            return [r for r in self._runs.values() if r.status == status]

    async def delete(self, run_id: str) -> bool:
        """Delete a run."""
        async with self._lock:
            if run_id in self._runs:
                del self._runs[run_id]
                return True
            return False

    def __len__(self) -> int:
        return len(self._runs)


# Global storage instance
run_storage = RunStorage()
