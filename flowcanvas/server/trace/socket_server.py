"""
Socket.IO server.

Uses python-socketio in ASGI mode so it can wrap FastAPI.
`create_socket_app(fastapi_app, state)` returns the composite ASGI application
to pass to uvicorn.

Inbound events carry raw pointer input (screen coordinates) and feed the
canvas interaction state machine. Outbound events are `trace` (every tracer
event) and `canvas` (a full snapshot after each change).
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Set

import socketio

from flowcanvas.core.Types import Point, PointerButton
from flowcanvas.server.serializers.canvas_serializer import serialize_snapshot
from flowcanvas.server.state import CanvasState

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------

def _point(data: Optional[Dict[str, Any]]) -> Point:
    data = data or {}
    return Point(float(data.get("x", 0.0)), float(data.get("y", 0.0)))


def _button(data: Optional[Dict[str, Any]]) -> PointerButton:
    try:
        return PointerButton(int((data or {}).get("button", 0)))
    except ValueError:
        return PointerButton.SECONDARY


# Emits in flight; the loop only keeps weak references to tasks.
_pending_emits: Set[asyncio.Task] = set()


def _emit_done(task: asyncio.Task) -> None:
    _pending_emits.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.error("Socket emit failed", exc_info=task.exception())


def _schedule(coro) -> Optional[asyncio.Task]:
    """Called from synchronous listeners; schedules *coro* on the running loop."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        coro.close()
        logger.debug("No running event loop; dropping socket emit")
        return None
    task = loop.create_task(coro)
    _pending_emits.add(task)
    task.add_done_callback(_emit_done)
    return task


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_socket_server(state: CanvasState, cors_allowed_origins="*") -> socketio.AsyncServer:
    sio = socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=cors_allowed_origins,
        logger=False,
        engineio_logger=False,
    )
    canvas = state.canvas

    # ── Fan-out: tracer → Socket.IO ─────────────────────────────────────────

    def _on_trace(event: Dict[str, Any]) -> None:
        _schedule(sio.emit("trace", event))
        if event.get("type") == "CANVAS_CHANGED":
            _schedule(sio.emit("canvas", serialize_snapshot(canvas.snapshot())))

    state.tracer.on_trace(_on_trace)

    # ── Lifecycle ───────────────────────────────────────────────────────────

    @sio.event
    async def connect(sid: str, environ: dict, auth: Any = None) -> None:
        logger.debug("Client connected: %s", sid)
        await sio.emit("canvas", serialize_snapshot(canvas.snapshot()), to=sid)

    @sio.event
    async def disconnect(sid: str, *args: Any) -> None:
        # A client vanishing mid-gesture must not leave the canvas stuck.
        if not canvas.controller.is_idle():
            if not canvas.cancel_connection():
                canvas.pointer_move(Point(0, 0), pressed=False)
        logger.debug("Client disconnected: %s", sid)

    # ── Pointer input ───────────────────────────────────────────────────────

    @sio.event
    async def pointer_down(sid: str, data: Dict[str, Any]) -> None:
        canvas.pointer_down(_point(data), _button(data))

    @sio.event
    async def pointer_move(sid: str, data: Dict[str, Any]) -> None:
        canvas.pointer_move(_point(data), bool((data or {}).get("pressed", True)))

    @sio.event
    async def pointer_up(sid: str, data: Dict[str, Any]) -> None:
        canvas.pointer_up(_point(data))

    @sio.event
    async def cancel_connection(sid: str, data: Any = None) -> None:
        canvas.cancel_connection()

    @sio.event
    async def wheel(sid: str, data: Dict[str, Any]) -> None:
        data = data or {}
        modifier = bool(data.get("ctrlKey") or data.get("metaKey"))
        canvas.wheel(float(data.get("deltaY", 0.0)), modifier)

    @sio.event
    async def key_press(sid: str, data: Dict[str, Any]) -> None:
        data = data or {}
        canvas.key_press(
            data.get("nodeId", ""),
            data.get("key", ""),
            shift=bool(data.get("shiftKey")),
            ctrl=bool(data.get("ctrlKey")),
            alt=bool(data.get("altKey")),
            meta=bool(data.get("metaKey")),
        )

    return sio


def create_socket_app(fastapi_app: Any, state: CanvasState, cors_allowed_origins="*") -> socketio.ASGIApp:
    """Wrap *fastapi_app* inside a Socket.IO ASGI application."""
    sio = create_socket_server(state, cors_allowed_origins)
    return socketio.ASGIApp(sio, other_asgi_app=fastapi_app)
