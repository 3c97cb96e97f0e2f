"""
Flow Graph helper.

Wraps a graph snapshot (nodes and edges as sent by the editor) with the
lookups the scheduler and the API need, a non-blocking validator, and a
Mermaid renderer. The snapshot itself is never modified.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Set
import logging

from nodeflow.engine.models import FlowEdge, FlowNode
from nodeflow.engine.node_types import NodeType, get_node_definition


logger = logging.getLogger(__name__)


class FlowGraph:
    """
    Read-only view over a flow snapshot.

    Attributes:
        nodes: Nodes in declaration order
        edges: Edges in declaration order
    """

    def __init__(self, nodes: Iterable[FlowNode], edges: Iterable[FlowEdge]):
        self.nodes: List[FlowNode] = list(nodes)
        self.edges: List[FlowEdge] = list(edges)

        # First declaration wins when ids are duplicated
        self._by_id: Dict[str, FlowNode] = {}
        for node in self.nodes:
            self._by_id.setdefault(node.id, node)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowGraph":
        """Build from editor JSON: ``{"nodes": [...], "edges": [...]}``."""
        return cls(
            [FlowNode.model_validate(n) for n in data.get("nodes", [])],
            [FlowEdge.model_validate(e) for e in data.get("edges", [])],
        )

    # ------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        return self._by_id.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._by_id

    def outgoing(self, node_id: str, handle: Optional[str] = None) -> List[FlowEdge]:
        """Edges leaving a node, optionally restricted to one output socket."""
        return [
            e for e in self.edges
            if e.source == node_id and (handle is None or e.source_handle == handle)
        ]

    def incoming(self, node_id: str, handle: Optional[str] = None) -> List[FlowEdge]:
        """Edges entering a node, optionally restricted to one input socket."""
        return [
            e for e in self.edges
            if e.target == node_id and (handle is None or e.target_handle == handle)
        ]

    def find_default_start_node(self) -> Optional[str]:
        """The first Button node, which is how the editor picks a start point."""
        for node in self.nodes:
            if node.type == NodeType.BUTTON.value:
                return node.id
        return None

    # ------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------

    def reachable_from(self, start: str) -> Set[str]:
        """All node ids reachable from ``start`` along any edge."""
        reachable: Set[str] = set()
        to_visit = [start]

        while to_visit:
            node_id = to_visit.pop()
            if node_id in reachable or node_id not in self._by_id:
                continue
            reachable.add(node_id)
            to_visit.extend(e.target for e in self.outgoing(node_id))

        return reachable

    def find_cycle_nodes(self) -> Set[str]:
        """Node ids that sit on at least one directed cycle."""
        adjacency: Dict[str, List[str]] = {node_id: [] for node_id in self._by_id}
        for e in self.edges:
            if e.source in adjacency and e.target in adjacency:
                adjacency[e.source].append(e.target)

        # Iterative Tarjan SCC
        index_of: Dict[str, int] = {}
        lowlink: Dict[str, int] = {}
        on_stack: Set[str] = set()
        stack: List[str] = []
        in_cycle: Set[str] = set()
        counter = 0

        for root in adjacency:
            if root in index_of:
                continue
            work = [(root, 0)]
            while work:
                node_id, child_idx = work.pop()
                if child_idx == 0:
                    index_of[node_id] = lowlink[node_id] = counter
                    counter += 1
                    stack.append(node_id)
                    on_stack.add(node_id)

                children = adjacency[node_id]
                if child_idx < len(children):
                    work.append((node_id, child_idx + 1))
                    child = children[child_idx]
                    if child not in index_of:
                        work.append((child, 0))
                    elif child in on_stack:
                        lowlink[node_id] = min(lowlink[node_id], index_of[child])
                    continue

                if lowlink[node_id] == index_of[node_id]:
                    component = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node_id:
                            break
                    if len(component) > 1 or node_id in adjacency[node_id]:
                        in_cycle.update(component)

                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node_id])

        return in_cycle

    def validate(self, start_node_id: Optional[str] = None) -> List[str]:
        """
        Check the graph for problems the engine will tolerate at run time.

        Nothing here blocks a run: dangling handles resolve to None and
        cycles execute each node once. The warnings exist so callers can
        show them before running.

        Args:
            start_node_id: Start node used for the reachability check
                (defaults to the first Button node)

        Returns:
            List of warnings (empty if the graph is clean)
        """
        warnings: List[str] = []

        if not self.nodes:
            warnings.append("Graph has no nodes")
            return warnings

        for node in self.nodes:
            if get_node_definition(node.type) is None:
                warnings.append(f"Node '{node.id}' has unknown type '{node.type}'")

        seen: Set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                warnings.append(f"Duplicate node id '{node.id}'; only the first is used")
            seen.add(node.id)

        for e in self.edges:
            source = self.get_node(e.source)
            target = self.get_node(e.target)
            if source is None:
                warnings.append(f"Edge source '{e.source}' is not a node in the graph")
            if target is None:
                warnings.append(f"Edge target '{e.target}' is not a node in the graph")

            source_def = get_node_definition(source.type) if source else None
            if source_def is not None:
                if not e.source_handle:
                    warnings.append(
                        f"Edge {e.source} -> {e.target} has no sourceHandle and will never carry a value"
                    )
                elif source_def.get_output(e.source_handle) is None:
                    warnings.append(
                        f"Node '{e.source}' ({source.type}) has no output socket '{e.source_handle}'"
                    )

            target_def = get_node_definition(target.type) if target else None
            if target_def is not None and e.target_handle and target_def.get_input(e.target_handle) is None:
                warnings.append(
                    f"Node '{e.target}' ({target.type}) has no input socket '{e.target_handle}'"
                )

        cycle = self.find_cycle_nodes()
        if cycle:
            warnings.append(
                f"Cycle detected through nodes {sorted(cycle)}; "
                f"each node runs at most once per run, so the loop will not iterate"
            )

        start = start_node_id or self.find_default_start_node()
        if start is None:
            warnings.append("No start node: select one or add a Button node")
        elif not self.has_node(start):
            warnings.append(f"Start node '{start}' not found in graph")
        else:
            orphans = [n.id for n in self.nodes if n.id not in self.reachable_from(start)]
            if orphans:
                warnings.append(f"Nodes not reachable from '{start}': {orphans}")

        return warnings

    # ------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }

    def to_mermaid(self) -> str:
        """Generate a Mermaid diagram of the graph."""
        lines = ["graph TD"]

        for node in self.nodes:
            definition = get_node_definition(node.type)
            label = definition.label if definition else (node.type or "Unknown")
            lines.append(f'    {_mermaid_id(node.id)}["{label} ({node.id})"]')

        for e in self.edges:
            route = e.source_handle or ""
            if e.target_handle:
                route = f"{route} -> {e.target_handle}"
            if route:
                lines.append(f"    {_mermaid_id(e.source)} -->|{route}| {_mermaid_id(e.target)}")
            else:
                lines.append(f"    {_mermaid_id(e.source)} --> {_mermaid_id(e.target)}")

        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"FlowGraph(nodes={[n.id for n in self.nodes]}, edges={len(self.edges)})"


def _mermaid_id(node_id: str) -> str:
    return "".join(c if c.isalnum() or c == "_" else "_" for c in node_id)
