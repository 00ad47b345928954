"""
CanvasState, the server's single editing session.

Owns the Canvas, wires its change notifications and the propagation engine's
request lifecycle into a TraceEmitter, and optionally seeds a small demo
graph so the UI has something to display on first load.
"""
from __future__ import annotations

import logging
from typing import Optional

from flowcanvas.core.Canvas import Canvas
from flowcanvas.core.Interface import ICompletionBoundary
from flowcanvas.core.Types import NodeVariant, Point
from flowcanvas.server.trace.trace_emitter import TraceEmitter

logger = logging.getLogger(__name__)


class CanvasState:
    """Holds the canvas and the tracer that mirrors its activity."""

    def __init__(self, completion: ICompletionBoundary, tracer: Optional[TraceEmitter] = None,
                 seed_demo: bool = False) -> None:
        self.canvas = Canvas(completion)
        self.tracer = tracer if tracer is not None else TraceEmitter()

        self.canvas.on_change(self._on_canvas_change)
        engine = self.canvas.engine
        engine.on_request_start = self._on_request_start
        engine.on_request_done = self._on_request_done
        engine.on_discarded = self._on_discarded

        if seed_demo:
            self._seed_demo()

    # ── Trace bridges ───────────────────────────────────────────────────────

    def _on_canvas_change(self, reason: str, node_id: Optional[str]) -> None:
        self.tracer.fire({
            "type": "CANVAS_CHANGED",
            "reason": reason,
            "nodeId": node_id,
            "version": self.canvas.version,
        })

    def _on_request_start(self, node_id: str, message_count: int) -> None:
        self.tracer.fire({"type": "COMPLETION_START", "nodeId": node_id, "messageCount": message_count})

    def _on_request_done(self, node_id: str, duration_ms: float, error: Optional[str]) -> None:
        if error:
            self.tracer.fire({
                "type": "COMPLETION_ERROR",
                "nodeId": node_id,
                "error": error,
                "durationMs": round(duration_ms, 1),
            })
        else:
            self.tracer.fire({"type": "COMPLETION_DONE", "nodeId": node_id, "durationMs": round(duration_ms, 1)})

    def _on_discarded(self, node_id: str) -> None:
        self.tracer.fire({"type": "COMPLETION_DISCARDED", "nodeId": node_id})

    # ── Demo graph ──────────────────────────────────────────────────────────

    def _seed_demo(self) -> None:
        canvas = self.canvas
        prompt = canvas.add_node(NodeVariant.SOURCE, Point(80, 120))
        chat = canvas.add_node(NodeVariant.PROCESSOR, Point(480, 80))
        canvas.connect(prompt, chat)
        canvas.set_draft(prompt, "What is a node graph?")
        logger.info("Seeded demo graph: %s -> %s", prompt, chat)

    # ── Lifecycle ───────────────────────────────────────────────────────────

    async def aclose(self) -> None:
        await self.canvas.aclose()
