"""
Async Flow Executor.

The scheduler runs a flow snapshot from a start node: a FIFO queue of node
ids, one executor call per node, outputs recorded in the execution context,
and the targets of every fired output socket queued next. Each node runs at
most once per run.
"""

from typing import TYPE_CHECKING, Any, Awaitable, Dict, List, Mapping, Optional, Sequence
import asyncio
import logging
import traceback

from nodeflow.config import settings
from nodeflow.engine.context import ExecutionContext, LogObserver
from nodeflow.engine.errors import NodeNotFoundError, RunCancelledError, RunTimeoutError
from nodeflow.engine.graph import FlowGraph
from nodeflow.engine.models import FlowEdge, FlowNode
from nodeflow.engine.node_types import get_node_definition
from nodeflow.engine.services import NodeServices

if TYPE_CHECKING:
    from nodeflow.executors.registry import ExecutorRegistry


logger = logging.getLogger(__name__)


_UNSET: Any = object()


class FlowExecutor:
    """
    Queue-based flow scheduler.

    Runs are strictly sequential: each node's executor is awaited to the end
    before the next node is dequeued. A node is queued as soon as one of its
    upstream outputs fires, so executors must expect some inputs to be
    unresolved.

    Usage:
        executor = FlowExecutor(create_default_registry())
        context = await executor.run(nodes, edges, "button-1")
        context.status  # ExecutionStatus.COMPLETED
    """

    def __init__(
        self,
        registry: "ExecutorRegistry",
        services: Optional[NodeServices] = None,
        on_log: Optional[LogObserver] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            registry: ExecutorRegistry mapping type tags to executors
            services: Services shared by every run of this executor (a fresh
                NodeServices is created per run if not provided)
            on_log: Optional callback for every log entry (for live streaming)
        """
        self.registry = registry
        self.services = services
        self.on_log = on_log

    def create_execution_context(self, run_id: Optional[str] = None) -> ExecutionContext:
        """A fresh context for one run."""
        return ExecutionContext(run_id=run_id, on_log=self.on_log)

    async def run(
        self,
        nodes: Sequence[FlowNode],
        edges: Sequence[FlowEdge],
        start_node_id: Optional[str],
        *,
        timeout: Optional[float] = _UNSET,
        cancel_event: Optional[asyncio.Event] = None,
        run_id: Optional[str] = None,
    ) -> ExecutionContext:
        """
        Execute the flow from ``start_node_id``.

        Configuration problems and node failures never raise; they end the
        run with status FAILED and an explanation in the log.

        Args:
            nodes: Nodes of the snapshot
            edges: Edges of the snapshot
            start_node_id: Node the run starts from (required)
            timeout: Deadline for the whole run in seconds; None waits forever
                (defaults to settings.RUN_TIMEOUT_SECONDS)
            cancel_event: Setting this event cancels the run
            run_id: Optional run ID (generated if not provided)

        Returns:
            The finished ExecutionContext
        """
        if timeout is _UNSET:
            timeout = settings.RUN_TIMEOUT_SECONDS

        nodes = list(nodes)
        edges = list(edges)
        graph = FlowGraph(nodes, edges)

        # Each run gets its own live outputs unless the caller shares a bag
        services = self.services or NodeServices()
        context = self.create_execution_context(run_id)
        context.mark_running()
        context.add_log("Flow execution started.")
        logger.info(f"Run {context.run_id}: starting at node {start_node_id}")

        if not start_node_id:
            context.add_log(
                "Error: Flow execution requires a startNodeId.",
                None,
                {"nodes": [n.id for n in nodes]},
            )
            context.mark_failed()
            logger.error(f"Run {context.run_id}: no start node given")
            return context

        start_node = graph.get_node(start_node_id)
        if start_node is None:
            context.add_log(
                f"Error: Provided startNodeId '{start_node_id}' not found in nodes list.",
                None,
                {"nodes": [n.id for n in nodes]},
            )
            context.mark_failed()
            logger.error(f"Run {context.run_id}: start node {start_node_id} not found")
            return context

        context.add_log(
            f"Starting execution with node: {start_node.id} ({_describe(start_node)})",
            start_node.id,
        )

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        queue: List[str] = [start_node.id]
        processed: set = set()

        try:
            while queue:
                if cancel_event is not None and cancel_event.is_set():
                    raise RunCancelledError(queue[0])

                current_id = queue.pop(0)

                if current_id in processed:
                    context.add_log(
                        f"Node {current_id} already processed, skipping. (Cycle or multiple paths to node)",
                        current_id,
                    )
                    continue

                node = graph.get_node(current_id)
                if node is None:
                    context.add_log(
                        f"Error: Node with ID {current_id} not found in graph.",
                        None,
                        {"nodeId": current_id},
                    )
                    raise NodeNotFoundError(current_id)

                context.add_log(f"Executing node: {node.id} ({_describe(node)})", node.id)
                logger.info(f"Run {context.run_id}: executing node {node.id} ({node.type})")

                try:
                    executor = self.registry.resolve(node.type, node.id)
                except Exception:
                    context.add_log(f"Error: No executor found for node type: {node.type}", node.id)
                    raise

                outputs = await self._await_node(
                    executor.execute(node, context, services, edges, nodes),
                    node.id,
                    timeout,
                    deadline,
                    cancel_event,
                )

                if not isinstance(outputs, Mapping):
                    raise TypeError(
                        f"Executor for node '{node.id}' must return a mapping of outputs, "
                        f"got {type(outputs).__name__}"
                    )

                processed.add(node.id)
                context.add_log(f"Node {node.id} executed. Outputs:", node.id, dict(outputs))

                for output_name, value in outputs.items():
                    context.set_output(node.id, output_name, value)

                    for edge in graph.outgoing(node.id, output_name):
                        next_id = edge.target
                        if next_id in processed:
                            context.add_log(
                                f"Not re-queueing {next_id}: already executed in this run "
                                f"(edge from {node.id}.{output_name})",
                                node.id,
                            )
                        elif next_id not in queue:
                            context.add_log(
                                f"Queueing next node {next_id} from {node.id}.{output_name}",
                                node.id,
                            )
                            queue.append(next_id)

            context.add_log("Flow execution completed successfully.")
            context.mark_completed()
            logger.info(f"Run {context.run_id}: completed ({len(processed)} nodes)")

        except Exception as e:
            logger.error(f"Run {context.run_id} failed: {e}")
            context.add_log(
                f"Error during flow execution: {e}",
                None,
                {"error": str(e), "type": type(e).__name__},
            )
            stack = "".join(traceback.format_exception(type(e), e, e.__traceback__))
            if stack:
                context.add_log(f"Error Stack: {stack}")
            context.mark_failed()

        return context

    async def _await_node(
        self,
        pending: Awaitable[Dict[str, Any]],
        node_id: str,
        timeout: Optional[float],
        deadline: Optional[float],
        cancel_event: Optional[asyncio.Event],
    ) -> Any:
        """Await one executor, honouring the run deadline and the cancel event."""
        if deadline is None and cancel_event is None:
            return await pending

        loop = asyncio.get_running_loop()
        task = asyncio.ensure_future(pending)
        waiters = {task}

        cancel_waiter = None
        if cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_waiter)

        remaining = max(0.0, deadline - loop.time()) if deadline is not None else None

        try:
            done, _ = await asyncio.wait(waiters, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()
            if not task.done():
                task.cancel()

        if task in done:
            return task.result()

        # Let the cancelled executor unwind before reporting
        await asyncio.gather(task, return_exceptions=True)

        if cancel_event is not None and cancel_event.is_set():
            raise RunCancelledError(node_id)
        raise RunTimeoutError(timeout, node_id)


def _describe(node: FlowNode) -> str:
    definition = get_node_definition(node.type)
    return definition.label if definition else str(node.type)


async def execute_flow(
    nodes: Sequence[FlowNode],
    edges: Sequence[FlowEdge],
    start_node_id: Optional[str],
    registry: Optional["ExecutorRegistry"] = None,
    services: Optional[NodeServices] = None,
    on_log: Optional[LogObserver] = None,
    **run_options: Any,
) -> ExecutionContext:
    """
    Convenience function to execute a flow.

    Args:
        nodes: Nodes of the snapshot
        edges: Edges of the snapshot
        start_node_id: Node the run starts from
        registry: Executor registry (the built-in executors if not provided)
        services: Services for the executors
        on_log: Optional log callback
        **run_options: ``timeout``, ``cancel_event``, ``run_id``

    Returns:
        The finished ExecutionContext
    """
    if registry is None:
        from nodeflow.executors.registry import create_default_registry

        registry = create_default_registry()

    executor = FlowExecutor(registry, services, on_log)
    return await executor.run(nodes, edges, start_node_id, **run_options)
