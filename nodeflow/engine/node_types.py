"""
Node Type Definitions.

Every node type has a static interface: the input and output sockets it
declares, plus the default configuration a new instance starts with. The
interface is shared by all nodes of that type and is what edge handles are
checked against.
"""

from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum


class NodeType(str, Enum):
    """Type tags of the built-in nodes."""
    VARIABLE = "variableNode"
    IF_STATEMENT = "ifStatementNode"
    AI = "aiNode"
    SWITCH = "switchNode"
    BUTTON = "buttonNode"
    DELAY = "delayNode"
    MERGE = "mergeNode"
    LOGGER = "loggerNode"
    RANDOM = "randomNode"
    OUTPUT = "outputNode"


class SocketType(str, Enum):
    """Semantic type of a socket."""
    ANY = "any"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    SIGNAL = "signal"  # Carries no payload, only "this path fired"


@dataclass(frozen=True)
class Socket:
    """A named, typed input or output slot on a node type."""
    name: str
    type: SocketType
    label: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "type": self.type.value, "label": self.label}


@dataclass(frozen=True)
class NodeTypeDefinition:
    """
    Static interface of a node type.

    Attributes:
        type: The type tag
        label: Human-readable name
        description: What the node does
        category: Palette category in the editor
        inputs: Declared input sockets
        outputs: Declared output sockets
        default_data: Configuration a new node of this type starts with
    """
    type: str
    label: str
    description: str
    category: str
    inputs: Tuple[Socket, ...] = ()
    outputs: Tuple[Socket, ...] = ()
    default_data: Dict[str, Any] = field(default_factory=dict)

    def input_names(self) -> List[str]:
        return [s.name for s in self.inputs]

    def output_names(self) -> List[str]:
        return [s.name for s in self.outputs]

    def get_input(self, name: str) -> Optional[Socket]:
        return next((s for s in self.inputs if s.name == name), None)

    def get_output(self, name: str) -> Optional[Socket]:
        return next((s for s in self.outputs if s.name == name), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "label": self.label,
            "description": self.description,
            "category": self.category,
            "inputs": [s.to_dict() for s in self.inputs],
            "outputs": [s.to_dict() for s in self.outputs],
            "default_data": dict(self.default_data),
        }


NODE_DEFINITIONS: Dict[str, NodeTypeDefinition] = {
    d.type: d
    for d in (
        NodeTypeDefinition(
            type=NodeType.VARIABLE.value,
            label="Variable",
            description="Stores and outputs a configurable value.",
            category="Input",
            inputs=(Socket("inputValue", SocketType.ANY, "Set Value"),),
            outputs=(Socket("value", SocketType.ANY, "Value"),),
            default_data={"name": "myVariable", "value": "", "valueType": "string"},
        ),
        NodeTypeDefinition(
            type=NodeType.IF_STATEMENT.value,
            label="If Statement",
            description="Compares two inputs and triggers true/false output.",
            category="Logic",
            inputs=(
                Socket("var1", SocketType.ANY, "Operand A"),
                Socket("var2", SocketType.ANY, "Operand B"),
            ),
            outputs=(
                Socket("true", SocketType.SIGNAL, "True"),
                Socket("false", SocketType.SIGNAL, "False"),
            ),
            default_data={"operator": "==="},
        ),
        NodeTypeDefinition(
            type=NodeType.AI.value,
            label="AI Task",
            description="Performs an AI task with a given prompt.",
            category="AI",
            inputs=(
                Socket("prompt", SocketType.STRING, "Prompt"),
                Socket("systemPrompt", SocketType.STRING, "System Prompt (Optional)"),
            ),
            outputs=(
                Socket("response", SocketType.STRING, "Response"),
                Socket("error", SocketType.STRING, "Error (Optional)"),
            ),
            default_data={
                "prompt": "",
                "systemPrompt": "You are a helpful AI assistant.",
                "selectedModelId": None,
            },
        ),
        NodeTypeDefinition(
            type=NodeType.SWITCH.value,
            label="Switch",
            description='Passes data through only if its status is "on".',
            category="Logic",
            inputs=(
                Socket("dataIn", SocketType.ANY, "Input Data"),
                Socket("status", SocketType.BOOLEAN, "Status (On/Off)"),
            ),
            outputs=(Socket("dataOut", SocketType.ANY, "Output Data"),),
        ),
        NodeTypeDefinition(
            type=NodeType.BUTTON.value,
            label="Button",
            description="Triggers the flow when clicked.",
            category="Input",
            outputs=(Socket("trigger", SocketType.SIGNAL, "Trigger"),),
            default_data={"buttonText": "Start Flow"},
        ),
        NodeTypeDefinition(
            type=NodeType.DELAY.value,
            label="Delay",
            description="Adds a specified delay before passing a signal.",
            category="Utility",
            inputs=(Socket("signalIn", SocketType.SIGNAL, "Start Delay"),),
            outputs=(Socket("signalOut", SocketType.SIGNAL, "After Delay"),),
            default_data={"delayMs": 1000},
        ),
        NodeTypeDefinition(
            type=NodeType.MERGE.value,
            label="Merge",
            description="Merges two data streams into one.",
            category="Transform",
            inputs=(
                Socket("stream1", SocketType.ANY, "Stream 1"),
                Socket("stream2", SocketType.ANY, "Stream 2"),
            ),
            outputs=(Socket("merged", SocketType.ANY, "Merged Data"),),
        ),
        NodeTypeDefinition(
            type=NodeType.LOGGER.value,
            label="Logger",
            description="Logs incoming data.",
            category="Output",
            inputs=(Socket("logData", SocketType.ANY, "Data to Log"),),
            default_data={"logLevel": "info", "logLabel": "Log"},
        ),
        NodeTypeDefinition(
            type=NodeType.RANDOM.value,
            label="Random Number",
            description="Outputs a random number within a specified range.",
            category="Input",
            inputs=(Socket("trigger", SocketType.SIGNAL, "Regenerate (Optional)"),),
            outputs=(Socket("randomNumber", SocketType.NUMBER, "Number"),),
            default_data={"min": 0, "max": 100},
        ),
        NodeTypeDefinition(
            type=NodeType.OUTPUT.value,
            label="Output Display",
            description="Renders incoming content (HTML, Markdown, Image, Text).",
            category="Output",
            inputs=(Socket("content", SocketType.ANY, "Content"),),
            default_data={"renderType": "text"},
        ),
    )
}


def get_node_definition(node_type: Optional[str]) -> Optional[NodeTypeDefinition]:
    """Get the static interface for a type tag, or None if the tag is unknown."""
    if node_type is None:
        return None
    return NODE_DEFINITIONS.get(str(getattr(node_type, "value", node_type)))


def list_node_definitions() -> List[NodeTypeDefinition]:
    """List all built-in node type definitions."""
    return list(NODE_DEFINITIONS.values())
