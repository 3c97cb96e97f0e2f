"""
Executor Registry.

Maps node type tags to executor instances. The scheduler resolves every
node's executor through a registry supplied by the caller, so new node types
can be added without touching the engine.
"""

from typing import Any, Callable, Dict, Iterator, List, Optional, Type, Union
import logging

from nodeflow.engine.errors import UnknownNodeTypeError
from nodeflow.engine.node_types import NodeType, get_node_definition
from nodeflow.executors.base import NodeExecutor


logger = logging.getLogger(__name__)


TypeTag = Union[NodeType, str]


def _tag(node_type: TypeTag) -> str:
    return node_type.value if isinstance(node_type, NodeType) else str(node_type)


class ExecutorRegistry:
    """
    Registry of node executors.

    Usage:
        registry = ExecutorRegistry()
        registry.add(NodeType.DELAY, DelayExecutor())

        # Extension with a custom tag
        registry.add("shoutNode", ShoutExecutor())

        executor = registry.resolve("delayNode")
    """

    def __init__(self, executors: Optional[Dict[TypeTag, NodeExecutor]] = None):
        self._executors: Dict[str, NodeExecutor] = {}
        for node_type, executor in (executors or {}).items():
            self.add(node_type, executor)

    def add(self, node_type: TypeTag, executor: NodeExecutor) -> None:
        """
        Bind an executor to a type tag, replacing any previous binding.

        Raises:
            TypeError: If ``executor`` is not a NodeExecutor
        """
        if not isinstance(executor, NodeExecutor):
            raise TypeError(
                f"Executor for '{_tag(node_type)}' must be a NodeExecutor, "
                f"got {type(executor).__name__}"
            )
        tag = _tag(node_type)
        if tag in self._executors:
            logger.debug(f"Replacing executor for node type: {tag}")
        self._executors[tag] = executor
        logger.debug(f"Registered executor: {tag} -> {type(executor).__name__}")

    def register(self, node_type: TypeTag, *args: Any, **kwargs: Any) -> Callable:
        """
        Class decorator that instantiates the executor and registers it.

        Args:
            node_type: Type tag the executor handles
            *args, **kwargs: Constructor arguments

        Returns:
            Decorator returning the class unchanged
        """
        def decorator(cls: Type[NodeExecutor]) -> Type[NodeExecutor]:
            cls.node_type = _tag(node_type)
            self.add(node_type, cls(*args, **kwargs))
            return cls

        return decorator

    def get(self, node_type: Optional[TypeTag]) -> Optional[NodeExecutor]:
        """Get an executor by type tag."""
        if node_type is None:
            return None
        return self._executors.get(_tag(node_type))

    def resolve(self, node_type: Optional[TypeTag], node_id: Optional[str] = None) -> NodeExecutor:
        """
        Get an executor by type tag.

        Raises:
            UnknownNodeTypeError: If no executor handles the tag
        """
        executor = self.get(node_type)
        if executor is None:
            raise UnknownNodeTypeError(
                _tag(node_type) if node_type is not None else None,
                node_id,
            )
        return executor

    def remove(self, node_type: TypeTag) -> bool:
        """Remove an executor from the registry."""
        return self._executors.pop(_tag(node_type), None) is not None

    def copy(self) -> "ExecutorRegistry":
        """A new registry with the same bindings."""
        clone = ExecutorRegistry()
        clone._executors = dict(self._executors)
        return clone

    def list_executors(self) -> List[Dict[str, Any]]:
        """List registered type tags with their executor and static interface."""
        result = []
        for tag, executor in self._executors.items():
            definition = get_node_definition(tag)
            result.append({
                "type": tag,
                "executor": type(executor).__name__,
                "label": definition.label if definition else tag,
                "builtin": definition is not None,
            })
        return result

    def has(self, node_type: TypeTag) -> bool:
        """Check if a type tag has an executor."""
        return _tag(node_type) in self._executors

    def __contains__(self, node_type: TypeTag) -> bool:
        return self.has(node_type)

    def __len__(self) -> int:
        return len(self._executors)

    def __iter__(self) -> Iterator[str]:
        return iter(self._executors)


# Global registry holding the built-in executors
executor_registry = ExecutorRegistry()


def register_executor(node_type: TypeTag, *args: Any, **kwargs: Any) -> Callable:
    """
    Convenience decorator to register an executor in the global registry.

    Usage:
        @register_executor(NodeType.BUTTON)
        class ButtonExecutor(NodeExecutor):
            ...
    """
    return executor_registry.register(node_type, *args, **kwargs)


def get_executor(node_type: TypeTag) -> Optional[NodeExecutor]:
    """Get an executor from the global registry."""
    return executor_registry.get(node_type)


def create_default_registry() -> ExecutorRegistry:
    """
    A fresh registry holding every built-in executor.

    Callers can override bindings on the copy without affecting the
    global registry.
    """
    import nodeflow.executors.builtin  # noqa: F401

    return executor_registry.copy()
