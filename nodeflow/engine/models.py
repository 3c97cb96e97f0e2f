"""
Graph Snapshot Models.

A snapshot is the immutable set of nodes and edges a run executes. The field
aliases match the JSON the React Flow editor produces, so an exported flow
can be posted as-is.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class FlowNode(BaseModel):
    """
    One node instance in the graph.

    Attributes:
        id: Unique identifier of the node within the snapshot
        type: Type tag selecting the executor and the socket interface
        config: Configuration values (the editor calls this ``data``)
    """

    id: str
    type: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict, alias="data")

    class Config:
        frozen = True
        populate_by_name = True
        extra = "ignore"
        json_schema_extra = {
            "example": {
                "id": "if-1",
                "type": "ifStatementNode",
                "data": {"operator": ">", "var1": 5, "var2": 3},
            }
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        return self.config.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class FlowEdge(BaseModel):
    """
    A directed connection from a source node's output socket to a target
    node's input socket.

    Handles are optional on the wire; an edge without a ``source_handle``
    never resolves to a value.
    """

    source: str
    target: str
    source_handle: Optional[str] = Field(None, alias="sourceHandle")
    target_handle: Optional[str] = Field(None, alias="targetHandle")
    id: Optional[str] = None

    class Config:
        frozen = True
        populate_by_name = True
        extra = "ignore"
        json_schema_extra = {
            "example": {
                "source": "button-1",
                "sourceHandle": "trigger",
                "target": "if-1",
                "targetHandle": "var1",
            }
        }

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
