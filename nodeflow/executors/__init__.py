"""
Executors package - Node executor registry and built-in executors.
"""

from nodeflow.executors.base import NodeExecutor
from nodeflow.executors.registry import (
    ExecutorRegistry,
    executor_registry,
    register_executor,
    get_executor,
    create_default_registry,
)

__all__ = [
    "NodeExecutor",
    "ExecutorRegistry",
    "executor_registry",
    "register_executor",
    "get_executor",
    "create_default_registry",
]
