"""
Pointer interaction state machine.

The canvas supports four gestures (drag a node, pan the canvas, resize a
node, rubber-band a new connection). They are mutually exclusive, so rather
than tracking a flag per gesture the controller holds exactly one state value
and every pointer event is a transition from it.

    Idle --down(body)----------> DraggingNode --up--> Idle
    Idle --down(canvas)--------> Panning      --up--> Idle
    Idle --down(output port)---> Connecting   --up--> Idle (+ add_edge on input port)
    Idle --down(resize handle)-> Resizing     --up--> Idle

Points handed to the controller are always in screen space; the viewport
maps them into graph space where node geometry lives.
"""
from __future__ import annotations

from logging import getLogger
from typing import NamedTuple, Optional, Union

from .GraphPrimitives import EdgeResult, Graph
from .Node import Node
from .Types import HitKind, InteractionKind, PointerButton, Point, Size
from .Viewport import Viewport

logger = getLogger(__name__)

# Port/handle geometry in graph units, relative to the node's top-left corner.
PORT_RADIUS = 12.0
PORT_OFFSET_Y = 50.0
RESIZE_HANDLE_SIZE = 16.0


# ── States ────────────────────────────────────────────────────────────────────

class Idle(NamedTuple):
    kind = InteractionKind.IDLE

    def involves(self, node_id: str) -> bool:
        return False


class DraggingNode(NamedTuple):
    node_id: str
    grab_offset: Point
    kind = InteractionKind.DRAGGING_NODE

    def involves(self, node_id: str) -> bool:
        return self.node_id == node_id


class Panning(NamedTuple):
    anchor: Point
    kind = InteractionKind.PANNING

    def involves(self, node_id: str) -> bool:
        return False


class Connecting(NamedTuple):
    source_id: str
    pointer: Point
    kind = InteractionKind.CONNECTING

    def involves(self, node_id: str) -> bool:
        return self.source_id == node_id


class Resizing(NamedTuple):
    node_id: str
    anchor: Point
    initial_size: Size
    kind = InteractionKind.RESIZING

    def involves(self, node_id: str) -> bool:
        return self.node_id == node_id


InteractionState = Union[Idle, DraggingNode, Panning, Connecting, Resizing]

IDLE = Idle()


# ── Hit testing ───────────────────────────────────────────────────────────────

class Hit(NamedTuple):
    kind: HitKind
    node_id: Optional[str] = None


def output_port_center(node: Node) -> Point:
    return Point(node.position.x + node.size.width, node.position.y + PORT_OFFSET_Y)


def input_port_center(node: Node) -> Point:
    return Point(node.position.x, node.position.y + PORT_OFFSET_Y)


def _within_radius(point: Point, center: Point, radius: float) -> bool:
    dx = point.x - center.x
    dy = point.y - center.y
    return dx * dx + dy * dy <= radius * radius


def _inside(point: Point, left: float, top: float, width: float, height: float) -> bool:
    return left <= point.x <= left + width and top <= point.y <= top + height


def hit_test(graph: Graph, point: Point) -> Hit:
    """Resolve what lies under a graph-space point, topmost node first."""
    for node in reversed(list(graph.nodes.values())):
        if node.isSource() and _within_radius(point, output_port_center(node), PORT_RADIUS):
            return Hit(HitKind.OUTPUT_PORT, node.id)
        if node.isProcessor() and _within_radius(point, input_port_center(node), PORT_RADIUS):
            return Hit(HitKind.INPUT_PORT, node.id)

        x, y = node.position
        width, height = node.size
        if _inside(point, x + width - RESIZE_HANDLE_SIZE, y + height - RESIZE_HANDLE_SIZE,
                   RESIZE_HANDLE_SIZE, RESIZE_HANDLE_SIZE):
            return Hit(HitKind.RESIZE_HANDLE, node.id)
        if _inside(point, x, y, width, height):
            return Hit(HitKind.NODE_BODY, node.id)
    return Hit(HitKind.CANVAS)


# ── Controller ────────────────────────────────────────────────────────────────

class InteractionController:
    def __init__(self, graph: Graph, viewport: Viewport):
        self.graph = graph
        self.viewport = viewport
        self.state: InteractionState = IDLE
        # Outcome of the most recent connection attempt, for the caller's
        # benefit only; a rejection is never surfaced as an error.
        self.last_connection: Optional[EdgeResult] = None

    @property
    def kind(self) -> InteractionKind:
        return self.state.kind

    def is_idle(self) -> bool:
        return self.state.kind == InteractionKind.IDLE

    def reset(self):
        self.state = IDLE

    def node_deleted(self, node_id: str) -> bool:
        """Force the machine back to Idle if the deleted node was in use."""
        if self.state.involves(node_id):
            logger.debug("Node %s deleted during %s; resetting", node_id, self.state.kind.name)
            self.state = IDLE
            return True
        return False

    def _ensure_valid(self):
        node_id = getattr(self.state, "node_id", None) or getattr(self.state, "source_id", None)
        if node_id is not None and self.graph.get_node(node_id) is None:
            self.state = IDLE

    # --- Pointer events ---

    def pointer_down(self, point: Point, button: PointerButton = PointerButton.PRIMARY) -> InteractionState:
        self._ensure_valid()
        if button != PointerButton.PRIMARY or not self.is_idle():
            return self.state

        point = Point(*point)
        graph_point = self.viewport.screen_to_graph(point)
        hit = hit_test(self.graph, graph_point)

        if hit.kind == HitKind.OUTPUT_PORT:
            self.state = Connecting(hit.node_id, graph_point)
        elif hit.kind == HitKind.RESIZE_HANDLE:
            node = self.graph.get_node(hit.node_id)
            self.state = Resizing(hit.node_id, point, node.size)
        elif hit.kind in (HitKind.NODE_BODY, HitKind.INPUT_PORT):
            node = self.graph.get_node(hit.node_id)
            self.state = DraggingNode(hit.node_id, graph_point.minus(node.position))
        else:
            self.state = Panning(point)
        return self.state

    def pointer_move(self, point: Point, pressed: bool = True) -> InteractionState:
        self._ensure_valid()
        point = Point(*point)
        state = self.state

        # A release we never saw (pointer left the surface) ends a drag gesture.
        if not pressed and state.kind in (InteractionKind.DRAGGING_NODE,
                                          InteractionKind.PANNING,
                                          InteractionKind.RESIZING):
            self.state = IDLE
            return self.state

        if isinstance(state, DraggingNode):
            graph_point = self.viewport.screen_to_graph(point)
            self.graph.move_node(state.node_id, graph_point.minus(state.grab_offset))
        elif isinstance(state, Panning):
            self.viewport.pan(point.minus(state.anchor))
            self.state = Panning(point)
        elif isinstance(state, Connecting):
            self.state = Connecting(state.source_id, self.viewport.screen_to_graph(point))
        elif isinstance(state, Resizing):
            self.graph.resize_node(state.node_id, state.initial_size.grown(point.minus(state.anchor)))
        return self.state

    def pointer_up(self, point: Point) -> InteractionState:
        self._ensure_valid()
        state = self.state
        self.state = IDLE

        if isinstance(state, Connecting):
            graph_point = self.viewport.screen_to_graph(Point(*point))
            hit = hit_test(self.graph, graph_point)
            if hit.kind == HitKind.INPUT_PORT:
                self.last_connection = self.graph.add_edge(state.source_id, hit.node_id)
            else:
                logger.debug("Connection from %s dropped on %s", state.source_id, hit.kind.name)
        return self.state

    def cancel(self) -> bool:
        """Abandon a pending connection. Other gestures are unaffected."""
        if isinstance(self.state, Connecting):
            self.state = IDLE
            return True
        return False
