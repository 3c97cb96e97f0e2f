"""
Services passed to every node executor.

``NodeServices`` is the capability bag the scheduler hands to executors
unchanged. It carries a logging hook and the live output port through which
nodes surface values to an outside observer (a UI, a WebSocket client)
without the engine mediating.
"""

from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field
import logging


logger = logging.getLogger(__name__)


LiveOutputListener = Callable[[str, Any], None]


class LiveOutputStore:
    """
    Latest live output per node, with optional listeners.

    Usage:
        live = LiveOutputStore()
        live.subscribe(lambda node_id, value: print(node_id, value))
        live.record("output-1", "hello")
        live.get("output-1")  # -> "hello"
    """

    def __init__(self):
        self._values: Dict[str, Any] = {}
        self._listeners: List[LiveOutputListener] = []

    def record(self, node_id: str, value: Any) -> None:
        """Record the live output of a node and notify listeners."""
        self._values[node_id] = value
        for listener in list(self._listeners):
            try:
                listener(node_id, value)
            except Exception as e:
                logger.warning(f"Live output listener failed for node {node_id}: {e}")

    def get(self, node_id: str, default: Any = None) -> Any:
        return self._values.get(node_id, default)

    def snapshot(self) -> Dict[str, Any]:
        """A copy of all recorded live outputs."""
        return dict(self._values)

    def subscribe(self, listener: LiveOutputListener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear(self) -> None:
        self._values.clear()

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._values

    def __len__(self) -> int:
        return len(self._values)


def _default_log_message(message: str, node_id: Optional[str] = None) -> None:
    logger.info(f"[NodeService{f' - {node_id}' if node_id else ''}] {message}")


@dataclass
class NodeServices:
    """
    Capabilities shared by all executors of a run.

    Attributes:
        log_message: Logging hook for executors
        live_output: Port for surfacing node values to external observers
    """
    log_message: Callable[[str, Optional[str]], None] = _default_log_message
    live_output: LiveOutputStore = field(default_factory=LiveOutputStore)
