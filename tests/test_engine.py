"""
Tests for the flow engine core components.
"""

import pytest
import asyncio
from typing import Any, Dict

from nodeflow.config import settings
from nodeflow.engine.context import ExecutionContext, ExecutionStatus
from nodeflow.engine.errors import (
    ExecutionContextClosed,
    InvalidStatusTransition,
    UnknownNodeTypeError,
)
from nodeflow.engine.executor import FlowExecutor, execute_flow
from nodeflow.engine.graph import FlowGraph
from nodeflow.engine.models import FlowEdge, FlowNode
from nodeflow.engine.node_types import NodeType
from nodeflow.engine.services import NodeServices
from nodeflow.executors.base import NodeExecutor
from nodeflow.executors.registry import ExecutorRegistry, create_default_registry, executor_registry


def make_node(node_id: str, node_type: str, **data) -> FlowNode:
    return FlowNode(id=node_id, type=node_type, data=data)


def make_edge(source: str, source_handle, target: str, target_handle=None) -> FlowEdge:
    return FlowEdge(
        source=source,
        sourceHandle=source_handle,
        target=target,
        targetHandle=target_handle,
    )


def messages(context: ExecutionContext):
    return [entry.message for entry in context.logs]


class StepExecutor(NodeExecutor):
    """Records the order nodes run in and fires fixed outputs."""

    def __init__(self, order, outputs=None):
        self.order = order
        self.outputs = {"out": True} if outputs is None else outputs

    async def execute(self, node, context, services, edges, all_nodes) -> Dict[str, Any]:
        self.order.append(node.id)
        return dict(self.outputs)


class ListExecutor(NodeExecutor):
    async def execute(self, node, context, services, edges, all_nodes):
        return ["not", "a", "mapping"]


class ExplodingExecutor(NodeExecutor):
    async def execute(self, node, context, services, edges, all_nodes):
        raise RuntimeError("kaboom")


class LiveRecordingExecutor(NodeExecutor):
    """Records its node id on the live output port and keeps the services it saw."""

    def __init__(self, seen):
        self.seen = seen

    async def execute(self, node, context, services, edges, all_nodes):
        self.seen.append(services)
        services.live_output.record(node.id, node.id)
        return {}


# ============================================================
# Execution Context Tests
# ============================================================

class TestExecutionContext:
    """Tests for ExecutionContext."""

    def test_new_context_is_idle(self):
        context = ExecutionContext()
        assert context.status == ExecutionStatus.IDLE
        assert context.run_id
        assert context.logs == ()
        assert context.outputs == {}

    def test_set_and_get_output(self):
        context = ExecutionContext()
        context.set_output("var-1", "value", 42)

        assert context.get_output("var-1", "value") == 42
        assert context.has_output("var-1", "value")
        assert context.get_output("var-1", "other") is None
        assert "Output set for var-1_value" in messages(context)

    def test_later_write_replaces_earlier(self):
        context = ExecutionContext()
        context.set_output("n", "out", 1)
        context.set_output("n", "out", 2)
        assert context.get_output("n", "out") == 2

    def test_get_input_resolves_connected_value(self):
        context = ExecutionContext()
        context.set_output("a", "value", 0)
        edges = [make_edge("a", "value", "b", "var1")]

        # Falsy values are real values, not "unresolved"
        assert context.get_input("b", "var1", edges) == 0

    def test_get_input_without_connection(self):
        context = ExecutionContext()
        assert context.get_input("b", "var1", []) is None
        assert "No input connection found for b.var1" in messages(context)

    def test_get_input_without_source_handle(self):
        context = ExecutionContext()
        context.set_output("a", "value", 1)
        edges = [make_edge("a", None, "b", "var1")]

        assert context.get_input("b", "var1", edges) is None
        assert any("no sourceHandle specified" in m for m in messages(context))

    def test_get_input_before_upstream_ran(self):
        context = ExecutionContext()
        edges = [make_edge("a", "value", "b", "var1")]

        assert context.get_input("b", "var1", edges) is None
        assert any("has not produced a value yet" in m for m in messages(context))

    def test_status_transitions(self):
        context = ExecutionContext()
        context.mark_running()
        assert context.status == ExecutionStatus.RUNNING
        assert context.started_at is not None

        context.mark_completed()
        assert context.status == ExecutionStatus.COMPLETED
        assert context.is_terminal
        assert context.duration_ms is not None

    def test_invalid_transitions(self):
        context = ExecutionContext()
        with pytest.raises(InvalidStatusTransition):
            context.mark_completed()

        context.mark_running()
        context.mark_failed()
        with pytest.raises(InvalidStatusTransition):
            context.mark_running()

    def test_closed_after_terminal_status(self):
        context = ExecutionContext()
        context.mark_running()
        context.mark_completed()

        with pytest.raises(ExecutionContextClosed):
            context.add_log("too late")
        with pytest.raises(ExecutionContextClosed):
            context.set_output("n", "out", 1)

    def test_log_observer(self):
        seen = []
        context = ExecutionContext(on_log=seen.append)
        context.add_log("hello", "n-1", {"x": 1})

        assert len(seen) == 1
        assert seen[0].message == "hello"
        assert seen[0].node_id == "n-1"
        assert seen[0].data == {"x": 1}

    def test_failing_log_observer_does_not_break_logging(self):
        def broken(entry):
            raise ValueError("observer down")

        context = ExecutionContext(on_log=broken)
        context.add_log("still recorded")
        assert messages(context) == ["still recorded"]

    def test_to_dict(self):
        context = ExecutionContext(run_id="run-1")
        context.mark_running()
        context.set_output("n", "out", "v")
        exported = context.to_dict()

        assert exported["run_id"] == "run-1"
        assert exported["status"] == "RUNNING"
        assert exported["outputs"] == [{"node_id": "n", "socket": "out", "value": "v"}]
        assert exported["logs"][0]["message"] == "Output set for n_out"


# ============================================================
# Graph Tests
# ============================================================

class TestFlowGraph:
    """Tests for FlowGraph."""

    def test_clean_graph_has_no_warnings(self):
        graph = FlowGraph(
            [make_node("button-1", "buttonNode"), make_node("logger-1", "loggerNode")],
            [make_edge("button-1", "trigger", "logger-1", "logData")],
        )
        assert graph.validate() == []

    def test_default_start_node_is_first_button(self):
        graph = FlowGraph(
            [
                make_node("var-1", "variableNode"),
                make_node("button-2", "buttonNode"),
                make_node("button-1", "buttonNode"),
            ],
            [],
        )
        assert graph.find_default_start_node() == "button-2"

    def test_no_button_means_no_default_start(self):
        graph = FlowGraph([make_node("var-1", "variableNode")], [])
        assert graph.find_default_start_node() is None
        assert any("No start node" in w for w in graph.validate())

    def test_empty_graph(self):
        assert FlowGraph([], []).validate() == ["Graph has no nodes"]

    def test_unknown_type_and_bad_sockets(self):
        graph = FlowGraph(
            [make_node("button-1", "buttonNode"), make_node("x-1", "mysteryNode"), make_node("log-1", "loggerNode")],
            [
                make_edge("button-1", "fire", "log-1", "logData"),
                make_edge("button-1", "trigger", "log-1", "nope"),
                make_edge("button-1", "trigger", "x-1"),
            ],
        )
        warnings = graph.validate()

        assert any("unknown type 'mysteryNode'" in w for w in warnings)
        assert any("no output socket 'fire'" in w for w in warnings)
        assert any("no input socket 'nope'" in w for w in warnings)

    def test_dangling_edge_endpoints(self):
        graph = FlowGraph(
            [make_node("button-1", "buttonNode")],
            [make_edge("button-1", "trigger", "ghost", "logData")],
        )
        assert any("Edge target 'ghost'" in w for w in graph.validate())

    def test_cycle_detection(self):
        graph = FlowGraph(
            [make_node("a", "variableNode"), make_node("b", "variableNode"), make_node("c", "variableNode")],
            [make_edge("a", "value", "b", "inputValue"), make_edge("b", "value", "a", "inputValue"),
             make_edge("b", "value", "c", "inputValue")],
        )
        assert graph.find_cycle_nodes() == {"a", "b"}
        assert any("Cycle detected" in w for w in graph.validate("a"))

    def test_self_loop_is_a_cycle(self):
        graph = FlowGraph(
            [make_node("a", "variableNode")],
            [make_edge("a", "value", "a", "inputValue")],
        )
        assert graph.find_cycle_nodes() == {"a"}

    def test_unreachable_nodes(self):
        graph = FlowGraph(
            [make_node("button-1", "buttonNode"), make_node("log-1", "loggerNode")],
            [],
        )
        assert any("not reachable" in w and "log-1" in w for w in graph.validate())

    def test_duplicate_ids_first_wins(self):
        graph = FlowGraph(
            [make_node("n", "buttonNode"), make_node("n", "loggerNode")],
            [],
        )
        assert graph.get_node("n").type == "buttonNode"
        assert any("Duplicate node id 'n'" in w for w in graph.validate())

    def test_from_dict_uses_editor_field_names(self):
        graph = FlowGraph.from_dict({
            "nodes": [{"id": "v", "type": "variableNode", "data": {"value": 3}, "position": {"x": 0, "y": 0}}],
            "edges": [{"id": "e1", "source": "v", "sourceHandle": "value", "target": "o", "targetHandle": "content"}],
        })
        assert graph.get_node("v").get("value") == 3
        assert graph.edges[0].source_handle == "value"
        assert graph.edges[0].target_handle == "content"

    def test_mermaid_generation(self):
        graph = FlowGraph(
            [make_node("button-1", "buttonNode"), make_node("logger-1", "loggerNode")],
            [make_edge("button-1", "trigger", "logger-1", "logData")],
        )
        mermaid = graph.to_mermaid()

        assert mermaid.startswith("graph TD")
        assert 'button_1["Button (button-1)"]' in mermaid
        assert "button_1 -->|trigger -> logData| logger_1" in mermaid


# ============================================================
# Registry Tests
# ============================================================

class TestExecutorRegistry:
    """Tests for ExecutorRegistry."""

    def test_default_registry_covers_every_node_type(self):
        registry = create_default_registry()
        assert len(registry) == len(NodeType)
        for node_type in NodeType:
            assert node_type in registry
            assert registry.has(node_type.value)

    def test_resolve_unknown_type(self):
        registry = ExecutorRegistry()
        with pytest.raises(UnknownNodeTypeError) as exc_info:
            registry.resolve("mysteryNode", "x-1")

        assert exc_info.value.node_type == "mysteryNode"
        assert exc_info.value.node_id == "x-1"

    def test_resolve_missing_type_tag(self):
        with pytest.raises(UnknownNodeTypeError):
            create_default_registry().resolve(None)

    def test_add_rejects_non_executors(self):
        registry = ExecutorRegistry()
        with pytest.raises(TypeError):
            registry.add("fnNode", lambda node: {})

    def test_copy_is_independent(self):
        registry = create_default_registry()
        registry.remove(NodeType.BUTTON)

        assert NodeType.BUTTON not in registry
        assert NodeType.BUTTON in executor_registry

    def test_custom_tag_extension(self):
        registry = create_default_registry()
        registry.add("stepNode", StepExecutor([]))

        assert "stepNode" in registry
        listed = {item["type"]: item for item in registry.list_executors()}
        assert listed["stepNode"]["builtin"] is False
        assert listed["buttonNode"]["builtin"] is True


# ============================================================
# Scheduler Tests
# ============================================================

class TestFlowExecutor:
    """Tests for the queue-based FlowExecutor."""

    @pytest.fixture
    def registry(self):
        return create_default_registry()

    @pytest.mark.asyncio
    async def test_fifo_order(self, registry):
        order = []
        registry.add("stepNode", StepExecutor(order))
        nodes = [make_node(i, "stepNode") for i in ("a", "b", "c", "d")]
        edges = [
            make_edge("a", "out", "b"),
            make_edge("a", "out", "c"),
            make_edge("b", "out", "d"),
        ]

        context = await FlowExecutor(registry).run(nodes, edges, "a")

        assert context.status == ExecutionStatus.COMPLETED
        assert order == ["a", "b", "c", "d"]

    @pytest.mark.asyncio
    async def test_cycle_runs_each_node_once(self, registry):
        order = []
        registry.add("stepNode", StepExecutor(order))
        nodes = [make_node("a", "stepNode"), make_node("b", "stepNode")]
        edges = [make_edge("a", "out", "b"), make_edge("b", "out", "a")]

        context = await FlowExecutor(registry).run(nodes, edges, "a")

        assert context.status == ExecutionStatus.COMPLETED
        assert order == ["a", "b"]
        assert any(m.startswith("Not re-queueing a") for m in messages(context))

    @pytest.mark.asyncio
    async def test_node_queued_once_from_two_paths(self, registry):
        order = []
        registry.add("stepNode", StepExecutor(order))
        nodes = [make_node(i, "stepNode") for i in ("a", "b", "c", "d")]
        edges = [
            make_edge("a", "out", "b"),
            make_edge("a", "out", "c"),
            make_edge("b", "out", "d"),
            make_edge("c", "out", "d"),
        ]

        context = await FlowExecutor(registry).run(nodes, edges, "a")

        assert context.status == ExecutionStatus.COMPLETED
        assert order == ["a", "b", "c", "d"]

    @pytest.mark.asyncio
    async def test_only_fired_sockets_are_followed(self, registry):
        order = []
        registry.add("stepNode", StepExecutor(order))
        registry.add("quietNode", StepExecutor(order, outputs={}))
        nodes = [make_node("a", "quietNode"), make_node("b", "stepNode")]
        edges = [make_edge("a", "out", "b")]

        context = await FlowExecutor(registry).run(nodes, edges, "a")

        assert context.status == ExecutionStatus.COMPLETED
        assert order == ["a"]

    @pytest.mark.asyncio
    async def test_missing_start_node_id(self, registry):
        context = await FlowExecutor(registry).run([make_node("button-1", "buttonNode")], [], None)

        assert context.status == ExecutionStatus.FAILED
        assert "Error: Flow execution requires a startNodeId." in messages(context)

    @pytest.mark.asyncio
    async def test_unknown_start_node_id(self, registry):
        context = await FlowExecutor(registry).run([make_node("button-1", "buttonNode")], [], "ghost")

        assert context.status == ExecutionStatus.FAILED
        assert "Error: Provided startNodeId 'ghost' not found in nodes list." in messages(context)

    @pytest.mark.asyncio
    async def test_unknown_node_type_fails_fast(self, registry):
        nodes = [
            make_node("button-1", "buttonNode"),
            make_node("x-1", "mysteryNode"),
            make_node("logger-1", "loggerNode"),
        ]
        edges = [
            make_edge("button-1", "trigger", "x-1"),
            make_edge("button-1", "trigger", "logger-1", "logData"),
        ]

        context = await FlowExecutor(registry).run(nodes, edges, "button-1")

        assert context.status == ExecutionStatus.FAILED
        assert "Error: No executor found for node type: mysteryNode" in messages(context)
        assert not any(m.startswith("Executing node: logger-1") for m in messages(context))

    @pytest.mark.asyncio
    async def test_if_branching_scenario(self, registry):
        nodes = [
            make_node("button-1", "buttonNode", buttonText="Go"),
            make_node("if-1", "ifStatementNode", operator=">", var1=5, var2=3),
            make_node("logger-true", "loggerNode", logLabel="Bigger"),
            make_node("logger-false", "loggerNode", logLabel="Smaller"),
        ]
        edges = [
            make_edge("button-1", "trigger", "if-1"),
            make_edge("if-1", "true", "logger-true", "logData"),
            make_edge("if-1", "false", "logger-false", "logData"),
        ]

        context = await FlowExecutor(registry).run(nodes, edges, "button-1")

        assert context.status == ExecutionStatus.COMPLETED
        assert context.get_output("if-1", "true") is True
        assert not context.has_output("if-1", "false")
        assert any(m.startswith("Executing node: logger-true") for m in messages(context))
        assert not any(m.startswith("Executing node: logger-false") for m in messages(context))
        assert messages(context)[-1] == "Flow execution completed successfully."

    @pytest.mark.asyncio
    async def test_delay_scenario(self, registry):
        nodes = [
            make_node("button-1", "buttonNode"),
            make_node("delay-1", "delayNode", delayMs=50),
            make_node("logger-1", "loggerNode"),
        ]
        edges = [
            make_edge("button-1", "trigger", "delay-1", "signalIn"),
            make_edge("delay-1", "signalOut", "logger-1", "logData"),
        ]

        context = await FlowExecutor(registry).run(nodes, edges, "button-1")

        assert context.status == ExecutionStatus.COMPLETED
        by_message = {entry.message: entry for entry in context.logs}
        started = by_message["DelayNode 'delay-1': Starting delay of 50ms."]
        logged = by_message["Executing node: logger-1 (Logger)"]
        assert (logged.timestamp - started.timestamp).total_seconds() >= 0.045

    @pytest.mark.asyncio
    async def test_run_timeout(self, registry):
        nodes = [make_node("button-1", "buttonNode"), make_node("delay-1", "delayNode", delayMs=5000)]
        edges = [make_edge("button-1", "trigger", "delay-1", "signalIn")]

        context = await FlowExecutor(registry).run(nodes, edges, "button-1", timeout=0.05)

        assert context.status == ExecutionStatus.FAILED
        assert any("Run deadline of 0.05s exceeded" in m for m in messages(context))

    @pytest.mark.asyncio
    async def test_run_cancelled(self, registry):
        nodes = [make_node("button-1", "buttonNode"), make_node("delay-1", "delayNode", delayMs=5000)]
        edges = [make_edge("button-1", "trigger", "delay-1", "signalIn")]
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, cancel.set)

        context = await FlowExecutor(registry).run(nodes, edges, "button-1", cancel_event=cancel)

        assert context.status == ExecutionStatus.FAILED
        assert any("Run cancelled at node delay-1" in m for m in messages(context))

    @pytest.mark.asyncio
    async def test_non_mapping_result_fails_run(self, registry):
        registry.add("listNode", ListExecutor())
        context = await FlowExecutor(registry).run([make_node("a", "listNode")], [], "a")

        assert context.status == ExecutionStatus.FAILED
        assert any("must return a mapping" in m for m in messages(context))

    @pytest.mark.asyncio
    async def test_executor_exception_fails_run(self, registry):
        registry.add("boomNode", ExplodingExecutor())
        context = await FlowExecutor(registry).run([make_node("a", "boomNode")], [], "a")

        assert context.status == ExecutionStatus.FAILED
        assert "Error during flow execution: kaboom" in messages(context)
        assert any(m.startswith("Error Stack:") for m in messages(context))

    @pytest.mark.asyncio
    async def test_log_streaming(self, registry):
        seen = []
        nodes = [make_node("button-1", "buttonNode")]

        context = await FlowExecutor(registry, on_log=seen.append).run(nodes, [], "button-1")

        assert [e.message for e in seen] == messages(context)

    @pytest.mark.asyncio
    async def test_services_reach_executors(self, registry):
        services = NodeServices()
        nodes = [
            make_node("button-1", "buttonNode"),
            make_node("var-1", "variableNode", value="hello"),
            make_node("out-1", "outputNode"),
        ]
        edges = [
            make_edge("button-1", "trigger", "var-1"),
            make_edge("var-1", "value", "out-1", "content"),
        ]

        context = await FlowExecutor(registry, services).run(nodes, edges, "button-1")

        assert context.status == ExecutionStatus.COMPLETED
        assert services.live_output.get("out-1") == "hello"

    @pytest.mark.asyncio
    async def test_execute_flow_convenience(self):
        context = await execute_flow([make_node("button-1", "buttonNode")], [], "button-1")

        assert context.status == ExecutionStatus.COMPLETED
        assert context.get_output("button-1", "trigger") is True

    @pytest.mark.asyncio
    async def test_each_run_gets_fresh_live_outputs(self, registry):
        seen = []
        registry.add("liveNode", LiveRecordingExecutor(seen))
        executor = FlowExecutor(registry)

        await executor.run([make_node("o1", "liveNode")], [], "o1")
        await executor.run([make_node("o2", "liveNode")], [], "o2")

        assert seen[0] is not seen[1]
        assert seen[0].live_output.snapshot() == {"o1": "o1"}
        assert seen[1].live_output.snapshot() == {"o2": "o2"}

    @pytest.mark.asyncio
    async def test_shared_services_are_kept_across_runs(self, registry):
        seen = []
        registry.add("liveNode", LiveRecordingExecutor(seen))
        services = NodeServices()
        executor = FlowExecutor(registry, services)

        await executor.run([make_node("o1", "liveNode")], [], "o1")
        await executor.run([make_node("o2", "liveNode")], [], "o2")

        assert seen[0] is services and seen[1] is services
        assert services.live_output.snapshot() == {"o1": "o1", "o2": "o2"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("node_type,config", [
        ("randomNode", {"min": "inf"}),
        ("randomNode", {"min": 10 ** 400}),
        ("ifStatementNode", {"operator": [">"], "var1": 1, "var2": 0}),
        ("loggerNode", {"logLevel": {"x": 1}}),
        ("delayNode", {"delayMs": "inf"}),
        ("switchNode", {"status": float("inf")}),
    ])
    async def test_mistyped_config_does_not_fail_run(self, registry, monkeypatch, node_type, config):
        monkeypatch.setattr(settings, "DEFAULT_DELAY_MS", 5)
        nodes = [make_node("button-1", "buttonNode"), make_node("n-1", node_type, **config)]
        edges = [make_edge("button-1", "trigger", "n-1")]

        context = await FlowExecutor(registry).run(nodes, edges, "button-1", timeout=2.0)

        assert context.status == ExecutionStatus.COMPLETED
        assert any(m.startswith("Node n-1 executed.") for m in messages(context))
