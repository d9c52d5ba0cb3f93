"""
Domain-agnostic graph result models.

GraphResult holds the nodes and edges returned by a graph query, each graph
element exactly once. Identifiers are the backend's element ids and are only
meaningful within one query response.
"""

from typing import Any, Dict, List, Optional, Set

import networkx as nx
from pydantic import BaseModel, Field, PrivateAttr

from .values import NodeValue, RelationshipValue


class GraphNode(BaseModel):
    """A node: identifier, labels and property bag."""

    id: str = Field(..., description="Backend element id")
    labels: List[str] = Field(default_factory=list, description="Node labels")
    properties: Dict[str, Any] = Field(default_factory=dict, description="Node properties")

    @classmethod
    def from_value(cls, value: NodeValue) -> "GraphNode":
        return cls(id=value.id, labels=list(value.labels), properties=dict(value.properties))


class GraphEdge(BaseModel):
    """A directed relationship between two nodes."""

    id: str = Field(..., description="Backend element id")
    source: str = Field(..., description="Element id of the start node")
    target: str = Field(..., description="Element id of the end node")
    type: str = Field(..., description="Relationship type")
    properties: Dict[str, Any] = Field(default_factory=dict, description="Relationship properties")

    @classmethod
    def from_value(cls, value: RelationshipValue) -> "GraphEdge":
        return cls(
            id=value.id,
            source=value.start_id,
            target=value.end_id,
            type=value.type,
            properties=dict(value.properties),
        )


class GraphResult(BaseModel):
    """
    Nodes and edges of a subgraph, deduplicated by identifier.

    Elements keep first-seen order. Use add_node/add_edge rather than
    appending to the lists directly so the identifier index stays in sync.
    """

    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)

    _node_index: Dict[str, GraphNode] = PrivateAttr(default_factory=dict)
    _edge_ids: Set[str] = PrivateAttr(default_factory=set)

    def model_post_init(self, __context: Any) -> None:
        for n in self.nodes:
            self._node_index.setdefault(n.id, n)
        self._edge_ids.update(e.id for e in self.edges)

    def add_node(self, value: NodeValue) -> bool:
        """Add a node unless its id is already present. Returns True if added."""
        if value.id in self._node_index:
            return False
        graph_node = GraphNode.from_value(value)
        self.nodes.append(graph_node)
        self._node_index[value.id] = graph_node
        return True

    def add_edge(self, value: RelationshipValue) -> bool:
        """Add an edge unless its id is already present. Returns True if added."""
        if value.id in self._edge_ids:
            return False
        self.edges.append(GraphEdge.from_value(value))
        self._edge_ids.add(value.id)
        return True

    @property
    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    @property
    def edge_ids(self) -> List[str]:
        return [e.id for e in self.edges]

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        return self._node_index.get(node_id)

    def to_networkx(self) -> nx.MultiDiGraph:
        """
        Export as a networkx MultiDiGraph.

        Node attributes are the node properties plus ``labels``; edges are keyed
        by their id and carry the relationship properties plus ``type``. The
        ``labels``/``type`` attributes win over properties of the same name.
        Edge endpoints missing from ``nodes`` are added as bare nodes.
        """
        graph = nx.MultiDiGraph()
        for n in self.nodes:
            graph.add_node(n.id)
            graph.nodes[n.id].update(n.properties)
            graph.nodes[n.id]["labels"] = list(n.labels)
        for e in self.edges:
            graph.add_edge(e.source, e.target, e.id)
            attrs = graph.edges[e.source, e.target, e.id]
            attrs.update(e.properties)
            attrs["type"] = e.type
        return graph


__all__ = ["GraphEdge", "GraphNode", "GraphResult"]
