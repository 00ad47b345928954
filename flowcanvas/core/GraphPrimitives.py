from __future__ import annotations

from collections import defaultdict
from enum import Enum
from logging import getLogger
from typing import Dict, List, NamedTuple, Optional

from .Node import Message, Node, ProcessorNode, SourceNode
from .Types import NodeVariant, Point, Size

logger = getLogger(__name__)


# Edges are immutable value objects; the graph owns the only list of them
# (Arena pattern), nodes never hold references to their connections.
class Edge(NamedTuple):
    id: str
    source_id: str
    target_id: str

    def touches(self, node_id: str) -> bool:
        return self.source_id == node_id or self.target_id == node_id

    def __repr__(self):
        return f"Edge({self.source_id} -> {self.target_id})"


class RejectReason(Enum):
    SELF_LOOP = "self_loop"
    UNKNOWN_NODE = "unknown_node"
    INVALID_SOURCE = "invalid_source"
    INVALID_TARGET = "invalid_target"
    DUPLICATE = "duplicate"


class EdgeResult(NamedTuple):
    """Outcome of an add_edge attempt. Exactly one of the fields is set."""
    edge_id: Optional[str] = None
    rejected: Optional[RejectReason] = None

    @property
    def accepted(self) -> bool:
        return self.rejected is None


def edge_id_for(source_id: str, target_id: str) -> str:
    return f"conn-{source_id}-{target_id}"


class Graph:
    """
    Authoritative store of nodes and edges.

    Every mutator validates its arguments against the current snapshot and
    either applies the whole change or none of it, so no caller can ever
    observe a dangling edge or a node smaller than its minimum size.
    """

    def __init__(self):
        # Insertion order doubles as paint order: later nodes are on top.
        self.nodes: Dict[str, Node] = {}
        self.edges: List[Edge] = []

        self.incoming_edges = defaultdict(list)  # type: Dict[str, List[Edge]]
        self.outgoing_edges = defaultdict(list)  # type: Dict[str, List[Edge]]

        self._next_id = 1

    # --- Nodes ---

    def default_position(self, sequence: int) -> Point:
        return Point(100, 100 + ((sequence * 30) % 300))

    def add_node(self, variant, position: Optional[Point] = None) -> str:
        variant = NodeVariant.parse(variant)
        sequence = self._next_id
        node_id = f"component-{sequence}"
        if position is None:
            position = self.default_position(sequence)

        node = Node.create_node(node_id, variant, Point(*position))
        self.nodes[node_id] = node
        self._next_id += 1

        logger.debug("Added %s node %s at %s", variant.value, node_id, node.position)
        return node_id

    def get_node(self, node_id: str) -> Optional[Node]:
        return self.nodes.get(node_id)

    def get_source(self, node_id: str) -> Optional[SourceNode]:
        node = self.nodes.get(node_id)
        return node if node is not None and node.isSource() else None

    def get_processor(self, node_id: str) -> Optional[ProcessorNode]:
        node = self.nodes.get(node_id)
        return node if node is not None and node.isProcessor() else None

    def delete_node(self, node_id: str) -> bool:
        if node_id not in self.nodes:
            return False

        # Incident edges go first, in the same call, so there is no window in
        # which an edge references a missing node.
        for edge in [e for e in self.edges if e.touches(node_id)]:
            self._unlink(edge)
        del self.nodes[node_id]
        self.incoming_edges.pop(node_id, None)
        self.outgoing_edges.pop(node_id, None)

        logger.debug("Deleted node %s", node_id)
        return True

    def move_node(self, node_id: str, position: Point) -> bool:
        node = self.nodes.get(node_id)
        if node is None:
            return False
        node.move_to(position)
        return True

    def resize_node(self, node_id: str, size: Size) -> Optional[Size]:
        node = self.nodes.get(node_id)
        if node is None:
            return None
        return node.resize_to(size)

    def set_draft(self, node_id: str, text: str) -> bool:
        node = self.get_source(node_id)
        if node is None:
            return False
        node.draft = text
        return True

    def append_message(self, node_id: str, message: Message) -> bool:
        node = self.get_processor(node_id)
        if node is None:
            return False
        node.messages.append(message)
        return True

    # --- Edge Management ---

    def find_edge(self, source_id: str, target_id: str) -> Optional[Edge]:
        for edge in self.outgoing_edges.get(source_id, []):
            if edge.target_id == target_id:
                return edge
        return None

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None

    def can_connect(self, source_id: str, target_id: str) -> Optional[RejectReason]:
        """Return the reason a connection would be refused, or None."""
        if source_id == target_id:
            return RejectReason.SELF_LOOP
        source = self.nodes.get(source_id)
        target = self.nodes.get(target_id)
        if source is None or target is None:
            return RejectReason.UNKNOWN_NODE
        if not source.isSource():
            return RejectReason.INVALID_SOURCE
        if not target.isProcessor():
            return RejectReason.INVALID_TARGET
        if self.find_edge(source_id, target_id) is not None:
            return RejectReason.DUPLICATE
        return None

    def add_edge(self, source_id: str, target_id: str) -> EdgeResult:
        reason = self.can_connect(source_id, target_id)
        if reason is not None:
            logger.debug("Rejected edge %s -> %s: %s", source_id, target_id, reason.value)
            return EdgeResult(rejected=reason)

        edge = Edge(edge_id_for(source_id, target_id), source_id, target_id)
        self.edges.append(edge)
        self.outgoing_edges[source_id].append(edge)
        self.incoming_edges[target_id].append(edge)
        return EdgeResult(edge_id=edge.id)

    def delete_edge(self, edge_id: str) -> bool:
        edge = self.get_edge(edge_id)
        if edge is None:
            return False
        self._unlink(edge)
        return True

    def get_outgoing_edges(self, node_id: str) -> List[Edge]:
        return list(self.outgoing_edges.get(node_id, []))

    def get_incoming_edges(self, node_id: str) -> List[Edge]:
        return list(self.incoming_edges.get(node_id, []))

    def _unlink(self, edge: Edge):
        self.edges.remove(edge)
        outgoing = self.outgoing_edges.get(edge.source_id)
        if outgoing and edge in outgoing:
            outgoing.remove(edge)
        incoming = self.incoming_edges.get(edge.target_id)
        if incoming and edge in incoming:
            incoming.remove(edge)

    def reset(self):
        self.nodes.clear()
        self.edges.clear()
        self.incoming_edges.clear()
        self.outgoing_edges.clear()
        self._next_id = 1
