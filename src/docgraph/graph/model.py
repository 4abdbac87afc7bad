"""Workflow graph definition: nodes, edges and a designated root."""

from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Mapping

from ..status import NodeStatus
from .templates import PromptTemplate, SynthesisTemplate, TaskTemplate, template_from_dict

__all__ = [
    "GraphEdge",
    "GraphNode",
    "GraphValidationError",
    "NodeType",
    "WorkflowGraph",
]


class GraphValidationError(ValueError):
    """Raised when a workflow graph violates its structural invariants."""


class NodeType(str, Enum):
    TASK = "TASK"
    SYNTHESIS = "SYNTHESIS"


@dataclass(frozen=True, slots=True)
class GraphNode:
    """A single unit of generation work."""

    id: str
    label: str
    node_type: NodeType
    template: PromptTemplate
    status: NodeStatus = NodeStatus.PENDING
    is_human_in_loop: bool = False
    use_search: bool = False
    details: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise GraphValidationError("Graph nodes require a non-empty id")
        if self.node_type is NodeType.SYNTHESIS and not isinstance(self.template, SynthesisTemplate):
            raise GraphValidationError(f"Synthesis node '{self.id}' requires a SynthesisTemplate")
        if self.node_type is NodeType.TASK and not isinstance(self.template, TaskTemplate):
            raise GraphValidationError(f"Task node '{self.id}' requires a TaskTemplate")

    def with_status(self, status: NodeStatus) -> "GraphNode":
        return replace(self, status=status)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "node_type": self.node_type.value,
            "status": self.status.value,
            "is_human_in_loop": self.is_human_in_loop,
            "use_search": self.use_search,
            "details": self.details,
            "template": self.template.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "GraphNode":
        return cls(
            id=str(payload["id"]),
            label=str(payload.get("label", payload["id"])),
            node_type=NodeType(payload["node_type"]),
            template=template_from_dict(payload["template"]),
            status=NodeStatus(payload.get("status", NodeStatus.PENDING.value)),
            is_human_in_loop=bool(payload.get("is_human_in_loop", False)),
            use_search=bool(payload.get("use_search", False)),
            details=str(payload.get("details", "")),
        )


@dataclass(frozen=True, slots=True)
class GraphEdge:
    """Directed dependency ``source → target``."""

    id: str
    source: str
    target: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "source": self.source, "target": self.target}


@dataclass(frozen=True, slots=True)
class WorkflowGraph:
    """Node and edge set of one project.

    Topology never changes after construction. Status updates produce a new
    graph value that shares unchanged nodes with the old one.
    """

    nodes: tuple[GraphNode, ...]
    edges: tuple[GraphEdge, ...] = ()
    root_id: str = ""
    _index: dict[str, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "edges", tuple(self.edges))
        if not self.root_id and self.nodes:
            object.__setattr__(self, "root_id", self.nodes[0].id)
        object.__setattr__(self, "_index", {node.id: idx for idx, node in enumerate(self.nodes)})
        self.validate()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def validate(self) -> None:
        if not self.nodes:
            raise GraphValidationError("Workflow graph must contain at least one node")
        if len(self._index) != len(self.nodes):
            counts = Counter(node.id for node in self.nodes)
            duplicates = sorted(node_id for node_id, count in counts.items() if count > 1)
            raise GraphValidationError(f"Duplicate node ids: {', '.join(duplicates)}")
        for edge in self.edges:
            for endpoint in (edge.source, edge.target):
                if endpoint not in self._index:
                    raise GraphValidationError(f"Edge '{edge.id}' references unknown node '{endpoint}'")
        if self.root_id not in self._index:
            raise GraphValidationError(f"Designated root '{self.root_id}' is not a graph node")
        if self.predecessors(self.root_id):
            raise GraphValidationError(f"Designated root '{self.root_id}' must not have predecessors")
        # raises on cycles
        self.topological_order()

    # ------------------------------------------------------------------
    # Lookup & traversal
    # ------------------------------------------------------------------
    @property
    def root(self) -> GraphNode:
        return self.nodes[self._index[self.root_id]]

    def node(self, node_id: str | None) -> GraphNode | None:
        if node_id is None:
            return None
        idx = self._index.get(node_id)
        return self.nodes[idx] if idx is not None else None

    def require(self, node_id: str) -> GraphNode:
        node = self.node(node_id)
        if node is None:
            raise GraphValidationError(f"Node '{node_id}' is not part of the workflow graph")
        return node

    def predecessors(self, node_id: str) -> list[str]:
        return [edge.source for edge in self.edges if edge.target == node_id]

    def successors(self, node_id: str) -> list[str]:
        return [edge.target for edge in self.edges if edge.source == node_id]

    def topological_order(self) -> list[str]:
        indegree = {node.id: 0 for node in self.nodes}
        for edge in self.edges:
            indegree[edge.target] += 1
        queue = deque(node.id for node in self.nodes if indegree[node.id] == 0)
        if not queue:
            raise GraphValidationError("Workflow graph has no node without predecessors")
        order: list[str] = []
        while queue:
            current = queue.popleft()
            order.append(current)
            for target in self.successors(current):
                indegree[target] -= 1
                if indegree[target] == 0:
                    queue.append(target)
        if len(order) != len(self.nodes):
            stuck = [node.id for node in self.nodes if node.id not in order]
            raise GraphValidationError(f"Workflow graph contains a cycle through: {', '.join(stuck)}")
        return order

    # ------------------------------------------------------------------
    # Status rewrites
    # ------------------------------------------------------------------
    def with_node_status(self, node_id: str, status: NodeStatus) -> "WorkflowGraph":
        idx = self._index.get(node_id)
        if idx is None:
            return self
        nodes = list(self.nodes)
        nodes[idx] = nodes[idx].with_status(status)
        return replace(self, nodes=tuple(nodes))

    def with_all_status(self, status: NodeStatus) -> "WorkflowGraph":
        return replace(self, nodes=tuple(node.with_status(status) for node in self.nodes))

    def statuses(self) -> dict[str, NodeStatus]:
        return {node.id: node.status for node in self.nodes}

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        return {
            "root_id": self.root_id,
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "WorkflowGraph":
        nodes = [GraphNode.from_dict(item) for item in payload.get("nodes", [])]
        edges = [
            GraphEdge(id=str(item["id"]), source=str(item["source"]), target=str(item["target"]))
            for item in payload.get("edges", [])
        ]
        return cls(nodes=tuple(nodes), edges=tuple(edges), root_id=str(payload.get("root_id") or ""))

    @classmethod
    def build(
        cls,
        nodes: Iterable[GraphNode],
        links: Iterable[tuple[str, str]],
        *,
        root_id: str | None = None,
    ) -> "WorkflowGraph":
        """Construct a graph from ``(source, target)`` pairs with generated edge ids."""

        edges = tuple(GraphEdge(id=f"e{source}-{target}", source=source, target=target) for source, target in links)
        return cls(nodes=tuple(nodes), edges=edges, root_id=root_id or "")
