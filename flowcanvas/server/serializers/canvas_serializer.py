"""
Canvas serializer.

Converts a CanvasSnapshot into JSON-safe dicts matching the wire shape the
canvas UI expects (camelCase keys).
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from flowcanvas.core.Canvas import CanvasSnapshot
from flowcanvas.core.GraphPrimitives import Edge
from flowcanvas.core.Interaction import (
    Connecting,
    DraggingNode,
    InteractionState,
    Panning,
    Resizing,
    input_port_center,
    output_port_center,
)
from flowcanvas.core.Node import Node

# SerializedNode keys: id, type, position, width, height, ports, data
# SerializedEdge keys: id, source, target, path
# SerializedCanvas keys: version, nodes, edges, viewport, interaction


# ── Helpers ───────────────────────────────────────────────────────────────────

def _serialize_node(node: Node) -> Dict[str, Any]:
    if node.isSource():
        data: Dict[str, Any] = {"draft": node.draft}
        ports = {"output": output_port_center(node).to_dict()}
    else:
        data = {
            "messages": [m.to_dict() for m in node.messages],
            "pending": node.pending,
        }
        ports = {"input": input_port_center(node).to_dict()}

    return {
        "id": node.id,
        "type": node.variant.value,
        "position": node.position.to_dict(),
        "width": node.size.width,
        "height": node.size.height,
        "ports": ports,
        "data": data,
    }


def _serialize_edge(edge: Edge, nodes_by_id: Dict[str, Node]) -> Dict[str, Any]:
    source = nodes_by_id.get(edge.source_id)
    target = nodes_by_id.get(edge.target_id)
    path = None
    if source is not None and target is not None:
        path = {
            "from": output_port_center(source).to_dict(),
            "to": input_port_center(target).to_dict(),
        }
    return {"id": edge.id, "source": edge.source_id, "target": edge.target_id, "path": path}


def serialize_interaction(state: InteractionState,
                          nodes_by_id: Optional[Dict[str, Node]] = None) -> Dict[str, Any]:
    result: Dict[str, Any] = {"state": state.kind.name}
    if isinstance(state, DraggingNode):
        result["nodeId"] = state.node_id
        result["grabOffset"] = state.grab_offset.to_dict()
    elif isinstance(state, Panning):
        result["anchor"] = state.anchor.to_dict()
    elif isinstance(state, Connecting):
        result["sourceId"] = state.source_id
        result["pointer"] = state.pointer.to_dict()
        source = (nodes_by_id or {}).get(state.source_id)
        if source is not None:
            # Rubber band from the source port to the live pointer
            result["pendingEdge"] = {
                "from": output_port_center(source).to_dict(),
                "to": state.pointer.to_dict(),
            }
    elif isinstance(state, Resizing):
        result["nodeId"] = state.node_id
        result["anchor"] = state.anchor.to_dict()
        result["initialSize"] = state.initial_size.to_dict()
    return result


# ── Public API ─────────────────────────────────────────────────────────────────

def serialize_snapshot(snapshot: CanvasSnapshot) -> Dict[str, Any]:
    """Serialize *snapshot* into a SerializedCanvas dict."""
    nodes_by_id = {node.id: node for node in snapshot.nodes}
    nodes: List[Dict[str, Any]] = [_serialize_node(node) for node in snapshot.nodes]
    edges: List[Dict[str, Any]] = [_serialize_edge(edge, nodes_by_id) for edge in snapshot.edges]

    return {
        "version": snapshot.version,
        "nodes": nodes,
        "edges": edges,
        "viewport": snapshot.viewport.to_dict(),
        "interaction": serialize_interaction(snapshot.interaction, nodes_by_id),
    }


def serialize_node(node: Node) -> Dict[str, Any]:
    return _serialize_node(node)
