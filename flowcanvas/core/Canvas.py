from __future__ import annotations

import copy
from logging import getLogger
from typing import Callable, List, NamedTuple, Optional, Tuple

from .GraphPrimitives import Edge, EdgeResult, Graph
from .Interaction import InteractionController, InteractionState
from .Interface import ICompletionBoundary
from .Node import Node
from .Propagation import PropagationEngine
from .Types import PointerButton, Point, Size
from .Viewport import Viewport

logger = getLogger(__name__)

ChangeListener = Callable[[str, Optional[str]], None]

SUBMIT_KEY = "Enter"


class CanvasSnapshot(NamedTuple):
    """Read-only copy of everything a renderer needs for one frame."""
    version: int
    nodes: Tuple[Node, ...]
    edges: Tuple[Edge, ...]
    viewport: Viewport
    interaction: InteractionState


class Canvas:
    """
    One editing session: a graph, its viewport, the pointer state machine and
    the propagation engine, behind a single set of commands.

    Every command applies its mutation synchronously and then notifies the
    registered change listeners with a short reason string.
    """

    def __init__(self, completion: ICompletionBoundary):
        self.graph = Graph()
        self.viewport = Viewport()
        self.controller = InteractionController(self.graph, self.viewport)
        self.engine = PropagationEngine(self.graph, completion)
        self.engine.on_change = lambda node_id: self._notify("messages", node_id)

        self.version = 0
        self._listeners: List[ChangeListener] = []

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------

    def on_change(self, callback: ChangeListener) -> None:
        self._listeners.append(callback)

    def _notify(self, reason: str, node_id: Optional[str] = None) -> None:
        self.version += 1
        for cb in self._listeners:
            try:
                cb(reason, node_id)
            except Exception:
                logger.exception("Canvas listener failed on %s", reason)

    # ------------------------------------------------------------------
    # Graph commands
    # ------------------------------------------------------------------

    def add_node(self, variant, position: Optional[Point] = None) -> str:
        node_id = self.graph.add_node(variant, position)
        self._notify("node_added", node_id)
        return node_id

    def delete_node(self, node_id: str) -> bool:
        if not self.graph.delete_node(node_id):
            return False
        self.controller.node_deleted(node_id)
        self._notify("node_deleted", node_id)
        return True

    def move_node(self, node_id: str, position: Point) -> bool:
        if not self.graph.move_node(node_id, position):
            return False
        self._notify("node_moved", node_id)
        return True

    def resize_node(self, node_id: str, size: Size) -> Optional[Size]:
        applied = self.graph.resize_node(node_id, size)
        if applied is not None:
            self._notify("node_resized", node_id)
        return applied

    def connect(self, source_id: str, target_id: str) -> EdgeResult:
        result = self.graph.add_edge(source_id, target_id)
        if result.accepted:
            self._notify("edge_added", result.edge_id)
        return result

    def disconnect(self, edge_id: str) -> bool:
        if not self.graph.delete_edge(edge_id):
            return False
        self._notify("edge_deleted", edge_id)
        return True

    def set_draft(self, node_id: str, text: str) -> bool:
        if not self.graph.set_draft(node_id, text):
            return False
        self._notify("draft", node_id)
        return True

    def submit(self, node_id: str) -> List[str]:
        return self.engine.submit(node_id)

    def key_press(self, node_id: str, key: str, shift: bool = False, ctrl: bool = False,
                  alt: bool = False, meta: bool = False) -> bool:
        """Enter without a modifier submits a focused source node."""
        if key != SUBMIT_KEY or shift or ctrl or alt or meta:
            return False
        if self.graph.get_source(node_id) is None:
            return False
        self.submit(node_id)
        return True

    # ------------------------------------------------------------------
    # Pointer and viewport commands
    # ------------------------------------------------------------------

    def pointer_down(self, point: Point, button: PointerButton = PointerButton.PRIMARY) -> InteractionState:
        state = self.controller.pointer_down(point, button)
        self._notify("interaction")
        return state

    def pointer_move(self, point: Point, pressed: bool = True) -> InteractionState:
        state = self.controller.pointer_move(point, pressed)
        self._notify("interaction")
        return state

    def pointer_up(self, point: Point) -> InteractionState:
        edges_before = len(self.graph.edges)
        state = self.controller.pointer_up(point)
        if len(self.graph.edges) != edges_before:
            self._notify("edge_added", self.controller.last_connection.edge_id)
        else:
            self._notify("interaction")
        return state

    def cancel_connection(self) -> bool:
        cancelled = self.controller.cancel()
        if cancelled:
            self._notify("interaction")
        return cancelled

    def zoom_by(self, factor: float) -> float:
        zoom = self.viewport.zoom_by(factor)
        self._notify("viewport")
        return zoom

    def wheel(self, delta_y: float, zoom_modifier: bool) -> bool:
        handled = self.viewport.wheel(delta_y, zoom_modifier)
        if handled:
            self._notify("viewport")
        return handled

    def reset_view(self) -> None:
        self.viewport.reset()
        self._notify("viewport")

    # ------------------------------------------------------------------
    # Render surface
    # ------------------------------------------------------------------

    def snapshot(self) -> CanvasSnapshot:
        return CanvasSnapshot(
            version=self.version,
            nodes=tuple(copy.deepcopy(list(self.graph.nodes.values()))),
            edges=tuple(self.graph.edges),
            viewport=self.viewport.copy(),
            interaction=self.controller.state,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def drain(self) -> None:
        await self.engine.drain()

    async def aclose(self) -> None:
        await self.engine.aclose()
        await self.engine.completion.aclose()
