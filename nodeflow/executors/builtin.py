"""
Built-in Node Executors.

One executor per built-in node type. Importing this module registers them
all in the global executor registry.
"""

from typing import Any, Callable, Dict, Optional
import asyncio
import logging
import math
import operator
import random

from nodeflow.clients.ai import AiClient, AiCompletion, MockAiClient
from nodeflow.config import settings
from nodeflow.engine.context import ExecutionContext
from nodeflow.engine.models import FlowNode
from nodeflow.engine.node_types import NodeType
from nodeflow.executors.base import NodeExecutor, to_number, to_text
from nodeflow.executors.registry import register_executor


logger = logging.getLogger(__name__)


@register_executor(NodeType.BUTTON)
class ButtonExecutor(NodeExecutor):
    """Start-of-flow trigger. Running it means the button was pressed."""

    async def execute(self, node, context, services, edges, all_nodes) -> Dict[str, Any]:
        button_text = node.get("buttonText") or "Unnamed Button"
        context.add_log(f"ButtonNode '{node.id}' ({button_text}) triggered.", node.id)
        return {"trigger": True}


@register_executor(NodeType.VARIABLE)
class VariableExecutor(NodeExecutor):
    """
    Outputs the configured value, unless the ``inputValue`` socket is
    connected and resolves, in which case the connected value wins.
    """

    async def execute(self, node, context, services, edges, all_nodes) -> Dict[str, Any]:
        name = node.get("name") or "Unnamed"
        output_value = node.get("value")

        connected_value = context.get_input(node.id, "inputValue", edges, all_nodes)
        if connected_value is not None:
            output_value = connected_value
            context.add_log(
                f"VariableNode '{node.id}' ({name}): Using connected input value.",
                node.id,
                {"connectedValue": output_value},
            )
        else:
            context.add_log(
                f"VariableNode '{node.id}' ({name}): Using configured value.",
                node.id,
                {"configuredValue": output_value},
            )

        context.add_log(f"VariableNode '{node.id}' outputting:", node.id, output_value)
        return {"value": output_value}


_EQUALITY_OPERATORS = {"===", "==", "="}
_INEQUALITY_OPERATORS = {"!==", "!=", "≠"}
_ORDERING_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "≥": operator.ge,
    "<=": operator.le,
    "≤": operator.le,
}
_TEXT_OPERATORS: Dict[str, Callable[[str, str], bool]] = {
    "contains": lambda a, b: b in a,
    "startsWith": lambda a, b: a.startswith(b),
    "endsWith": lambda a, b: a.endswith(b),
}


def _strict_equal(a: Any, b: Any) -> bool:
    """Equality without coercion: a boolean never equals a number."""
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return bool(a == b)


@register_executor(NodeType.IF_STATEMENT)
class IfStatementExecutor(NodeExecutor):
    """
    Compares two operands and fires exactly one of the ``true`` / ``false``
    signal outputs.

    Operands come from the ``var1`` / ``var2`` inputs, falling back to the
    node's configuration. Ordering comparisons between incomparable values
    retry on their numeric reading; if that fails too the condition is false.
    """

    async def execute(self, node, context, services, edges, all_nodes) -> Dict[str, Any]:
        operand_a = self._operand(node, "var1", context, edges, all_nodes)
        operand_b = self._operand(node, "var2", context, edges, all_nodes)
        op = node.get("operator")

        context.add_log(
            f"IfStatementNode '{node.id}': Executing with Operand A: {operand_a}, "
            f"Operand B: {operand_b}, Operator: {op}",
            node.id,
            {"operandA": operand_a, "operandB": operand_b, "operator": op},
        )

        if operand_a is None or operand_b is None:
            context.add_log(
                f"IfStatementNode '{node.id}': One or both operands are undefined. "
                f"Evaluation may not be accurate.",
                node.id,
                {"operandA": operand_a, "operandB": operand_b},
            )

        result = self._evaluate(node, context, operand_a, operand_b, op)
        context.add_log(f"IfStatementNode '{node.id}': Condition result is {result}.", node.id, {"result": result})

        if result:
            return {"true": True}
        return {"false": True}

    @staticmethod
    def _operand(node, name, context, edges, all_nodes) -> Any:
        value = context.get_input(node.id, name, edges, all_nodes)
        if value is None:
            value = node.get(name)
        return value

    def _evaluate(self, node: FlowNode, context: ExecutionContext, a: Any, b: Any, op: Any) -> bool:
        # Operators arrive from untyped config; only strings can name one
        name = op if isinstance(op, str) else None

        if name in _EQUALITY_OPERATORS:
            return _strict_equal(a, b)

        if name in _INEQUALITY_OPERATORS:
            return not _strict_equal(a, b)

        if name in _ORDERING_OPERATORS:
            compare = _ORDERING_OPERATORS[name]
            try:
                return bool(compare(a, b))
            except TypeError:
                num_a, num_b = to_number(a), to_number(b)
                if num_a is None or num_b is None:
                    context.add_log(
                        f"IfStatementNode '{node.id}': Cannot compare {a!r} {op} {b!r}. Treating as false.",
                        node.id,
                        {"operandA": a, "operandB": b, "operator": op},
                    )
                    return False
                return bool(compare(num_a, num_b))

        if name in _TEXT_OPERATORS:
            return bool(_TEXT_OPERATORS[name](to_text(a), to_text(b)))

        context.add_log(
            f"IfStatementNode '{node.id}': Unknown operator '{op}'. Defaulting to false.",
            node.id,
            {"operator": op},
        )
        logger.warning(f"Unknown operator '{op}' on node {node.id}")
        return False


def _is_status_on(status: Any) -> bool:
    """``True``, ``"true"`` in any case, or anything numerically equal to 1."""
    if status is True:
        return True
    if isinstance(status, str) and status.strip().lower() == "true":
        return True
    return to_number(status) == 1


@register_executor(NodeType.SWITCH)
class SwitchExecutor(NodeExecutor):
    """Gated pass-through: forwards ``dataIn`` to ``dataOut`` only while ``status`` is on."""

    async def execute(self, node, context, services, edges, all_nodes) -> Dict[str, Any]:
        data_in = context.get_input(node.id, "dataIn", edges, all_nodes)
        status = context.get_input(node.id, "status", edges, all_nodes)
        if status is None:
            status = node.get("status")

        context.add_log(
            f"SwitchNode '{node.id}': Executing with dataIn: {data_in!r}, status: {status}",
            node.id,
            {"dataIn": data_in, "status": status},
        )

        if _is_status_on(status):
            context.add_log(f"SwitchNode '{node.id}': Status is TRUE. Passing dataOut.", node.id, {"dataOut": data_in})
            return {"dataOut": data_in}

        context.add_log(f"SwitchNode '{node.id}': Status is FALSE. Not passing dataOut.", node.id)
        return {}


# Longest delay a browser timer accepts
_MAX_DELAY_MS = 2 ** 31 - 1


@register_executor(NodeType.DELAY)
class DelayExecutor(NodeExecutor):
    """Waits ``delayMs`` milliseconds, then fires ``signalOut``."""

    async def execute(self, node, context, services, edges, all_nodes) -> Dict[str, Any]:
        configured = node.get("delayMs")
        delay_ms = to_number(configured)
        if delay_ms is None or delay_ms <= 0 or delay_ms > _MAX_DELAY_MS:
            delay_ms = settings.DEFAULT_DELAY_MS
            context.add_log(
                f"DelayNode '{node.id}': Invalid 'delayMs' value ({configured}). Defaulting to {delay_ms}ms.",
                node.id,
            )

        context.add_log(f"DelayNode '{node.id}': Starting delay of {delay_ms:g}ms.", node.id, {"delayMs": delay_ms})
        await asyncio.sleep(delay_ms / 1000)
        context.add_log(
            f"DelayNode '{node.id}': Delay finished after {delay_ms:g}ms. Outputting signal.",
            node.id,
        )
        return {"signalOut": True}


@register_executor(NodeType.RANDOM)
class RandomExecutor(NodeExecutor):
    """
    Uniform random integer in the inclusive range ``[min, max]``.

    Reversed bounds are swapped rather than rejected.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    async def execute(self, node, context, services, edges, all_nodes) -> Dict[str, Any]:
        low = to_number(node.get("min"))
        high = to_number(node.get("max"))

        if low is None:
            context.add_log(
                f"RandomNode '{node.id}': Invalid 'min' value ({node.get('min')}). "
                f"Defaulting to {settings.RANDOM_DEFAULT_MIN}.",
                node.id,
            )
            low = float(settings.RANDOM_DEFAULT_MIN)
        if high is None:
            context.add_log(
                f"RandomNode '{node.id}': Invalid 'max' value ({node.get('max')}). "
                f"Defaulting to {settings.RANDOM_DEFAULT_MAX}.",
                node.id,
            )
            high = float(settings.RANDOM_DEFAULT_MAX)

        if low > high:
            context.add_log(
                f"RandomNode '{node.id}': 'min' value ({low:g}) is greater than "
                f"'max' value ({high:g}). Swapping them.",
                node.id,
            )
            low, high = high, low

        lo, hi = math.ceil(low), math.floor(high)
        if lo > hi:
            # No integer inside a fractional range like [1.2, 1.8]
            context.add_log(
                f"RandomNode '{node.id}': No integer between {low:g} and {high:g}. Outputting {low:g}.",
                node.id,
            )
            random_number: Any = low
        else:
            random_number = self.rng.randint(lo, hi)

        context.add_log(
            f"RandomNode '{node.id}': Generated random number {random_number} (Min: {low:g}, Max: {high:g}).",
            node.id,
            {"min": low, "max": high, "randomNumber": random_number},
        )
        return {"randomNumber": random_number}


@register_executor(NodeType.MERGE)
class MergeExecutor(NodeExecutor):
    """Pairs its two input streams; unconnected streams appear as None."""

    async def execute(self, node, context, services, edges, all_nodes) -> Dict[str, Any]:
        stream1 = context.get_input(node.id, "stream1", edges, all_nodes)
        stream2 = context.get_input(node.id, "stream2", edges, all_nodes)

        merged = [stream1, stream2]
        context.add_log(f"MergeNode '{node.id}': Outputting merged array.", node.id, {"merged": merged})
        return {"merged": merged}


_LOG_LEVELS = {
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


@register_executor(NodeType.LOGGER)
class LoggerExecutor(NodeExecutor):
    """Writes its input to the run log and to Python logging. No outputs."""

    async def execute(self, node, context, services, edges, all_nodes) -> Dict[str, Any]:
        log_data = context.get_input(node.id, "logData", edges, all_nodes)
        label = node.get("logLabel") or f"Log from {node.id}"

        level_name = node.get("logLevel") or "info"
        if not isinstance(level_name, str) or level_name not in _LOG_LEVELS:
            context.add_log(
                f"LoggerNode '{node.id}': Unknown log level '{level_name}'. Using 'info'.",
                node.id,
            )
            level_name = "info"

        message = f"{label}:"
        context.add_log(message, node.id, log_data)
        logger.log(_LOG_LEVELS[level_name], f"{message} {log_data!r}")
        return {}


@register_executor(NodeType.OUTPUT)
class OutputExecutor(NodeExecutor):
    """Hands its input to the live output port for display. No outputs."""

    async def execute(self, node, context, services, edges, all_nodes) -> Dict[str, Any]:
        content = context.get_input(node.id, "content", edges, all_nodes)
        context.add_log(f"OutputNode '{node.id}' received content:", node.id, content)
        services.live_output.record(node.id, content)
        return {}


@register_executor(NodeType.AI)
class AiExecutor(NodeExecutor):
    """
    Sends a prompt to the AI client and routes the answer to ``response``
    or ``error``.

    The prompt comes from the ``prompt`` input when it is non-blank, else
    from the node configuration. Client failures never fail the run; they
    become an ``error`` output.
    """

    def __init__(self, client: Optional[AiClient] = None):
        self.client = client or MockAiClient()

    async def execute(self, node, context, services, edges, all_nodes) -> Dict[str, Any]:
        prompt = context.get_input(node.id, "prompt", edges, all_nodes)
        if _is_blank(prompt):
            prompt = node.get("prompt")

        system_prompt = context.get_input(node.id, "systemPrompt", edges, all_nodes)
        if system_prompt is None:
            system_prompt = node.get("systemPrompt")

        model_id = node.get("selectedModelId")

        context.add_log(
            f"AiNode '{node.id}': Executing with Prompt: \"{prompt}\", "
            f"System Prompt: \"{system_prompt}\", Model ID: {model_id}",
            node.id,
            {"prompt": prompt, "systemPrompt": system_prompt, "modelId": model_id},
        )

        if _is_blank(prompt):
            error = "Prompt is required for AI Node."
            context.add_log(f"AiNode '{node.id}': Error - {error}", node.id, {"prompt": prompt})
            return {"error": error}

        try:
            completion = await self.client.generate(
                to_text(prompt),
                to_text(system_prompt) if system_prompt is not None else None,
                model_id,
            )
        except Exception as e:
            context.add_log(
                f"AiNode '{node.id}': Exception during API call.",
                node.id,
                {"error": str(e), "type": type(e).__name__},
            )
            logger.warning(f"AI call failed for node {node.id}: {e}")
            return {"error": str(e) or "An unexpected error occurred"}

        if isinstance(completion, dict):
            completion = AiCompletion(response=completion.get("response"), error=completion.get("error"))

        if completion.error:
            context.add_log(f"AiNode '{node.id}': API returned an error.", node.id, {"error": completion.error})
            return {"error": completion.error}

        context.add_log(f"AiNode '{node.id}': API returned a response.", node.id, {"response": completion.response})
        return {"response": completion.response}


def _is_blank(value: Any) -> bool:
    return value is None or not to_text(value).strip()
