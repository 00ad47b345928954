"""
Canvas REST routes.

All routes are mounted under /api by main.py. Pointer gestures travel over
Socket.IO instead (see trace/socket_server.py); these routes cover the
discrete commands: add/delete nodes, connect, edit drafts, submit, zoom.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel

from flowcanvas.core.Node import Node
from flowcanvas.core.Types import NodeVariant, Point, Size
from flowcanvas.server.serializers.canvas_serializer import serialize_node, serialize_snapshot
from flowcanvas.server.state import CanvasState

router = APIRouter()


def get_state(request: Request) -> CanvasState:
    return request.app.state.canvas_state


def _require_node(state: CanvasState, node_id: str) -> Node:
    node = state.canvas.graph.get_node(node_id)
    if node is None:
        raise HTTPException(status_code=404, detail="Node not found")
    return node


# ── GET /canvas ───────────────────────────────────────────────────────────────

@router.get("/canvas")
async def get_canvas(state: CanvasState = Depends(get_state)) -> Dict[str, Any]:
    return serialize_snapshot(state.canvas.snapshot())


# ── POST /canvas/nodes ────────────────────────────────────────────────────────

class PositionBody(BaseModel):
    x: float
    y: float


class CreateNodeBody(BaseModel):
    type: str
    position: Optional[PositionBody] = None


@router.post("/canvas/nodes", status_code=201)
async def create_node(body: CreateNodeBody, state: CanvasState = Depends(get_state)) -> Dict[str, Any]:
    try:
        variant = NodeVariant.parse(body.type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    position = Point(body.position.x, body.position.y) if body.position else None
    node_id = state.canvas.add_node(variant, position)
    return serialize_node(state.canvas.graph.get_node(node_id))


# ── DELETE /canvas/nodes/:nodeId ──────────────────────────────────────────────

@router.delete("/canvas/nodes/{node_id}", status_code=204)
async def delete_node(node_id: str, state: CanvasState = Depends(get_state)) -> Response:
    if not state.canvas.delete_node(node_id):
        raise HTTPException(status_code=404, detail="Node not found")
    return Response(status_code=204)


# ── PUT /canvas/nodes/:nodeId/position ────────────────────────────────────────

@router.put("/canvas/nodes/{node_id}/position", status_code=204)
async def set_node_position(node_id: str, body: PositionBody,
                            state: CanvasState = Depends(get_state)) -> Response:
    if not state.canvas.move_node(node_id, Point(body.x, body.y)):
        raise HTTPException(status_code=404, detail="Node not found")
    return Response(status_code=204)


# ── PUT /canvas/nodes/:nodeId/size ────────────────────────────────────────────

class SizeBody(BaseModel):
    width: float
    height: float


@router.put("/canvas/nodes/{node_id}/size")
async def set_node_size(node_id: str, body: SizeBody,
                        state: CanvasState = Depends(get_state)) -> Dict[str, float]:
    applied = state.canvas.resize_node(node_id, Size(body.width, body.height))
    if applied is None:
        raise HTTPException(status_code=404, detail="Node not found")
    return applied.to_dict()


# ── PUT /canvas/nodes/:nodeId/draft ───────────────────────────────────────────

class DraftBody(BaseModel):
    value: str


@router.put("/canvas/nodes/{node_id}/draft", status_code=204)
async def set_draft(node_id: str, body: DraftBody, state: CanvasState = Depends(get_state)) -> Response:
    node = _require_node(state, node_id)
    if not node.isSource():
        raise HTTPException(status_code=400, detail="Only source nodes have a draft")
    state.canvas.set_draft(node_id, body.value)
    return Response(status_code=204)


# ── POST /canvas/nodes/:nodeId/submit ─────────────────────────────────────────

@router.post("/canvas/nodes/{node_id}/submit")
async def submit(node_id: str, state: CanvasState = Depends(get_state)) -> Dict[str, Any]:
    node = _require_node(state, node_id)
    if not node.isSource():
        raise HTTPException(status_code=400, detail="Only source nodes can submit")
    delivered = state.canvas.submit(node_id)
    return {"delivered": delivered}


# ── POST /canvas/edges ────────────────────────────────────────────────────────

class EdgeBody(BaseModel):
    source: str
    target: str


@router.post("/canvas/edges")
async def add_edge(body: EdgeBody, state: CanvasState = Depends(get_state)) -> Dict[str, Any]:
    # A refused connection is an ordinary outcome, not an HTTP error.
    result = state.canvas.connect(body.source, body.target)
    if result.accepted:
        return {"connected": True, "edgeId": result.edge_id}
    return {"connected": False, "reason": result.rejected.value}


# ── DELETE /canvas/edges/:edgeId ──────────────────────────────────────────────

@router.delete("/canvas/edges/{edge_id}", status_code=204)
async def delete_edge(edge_id: str, state: CanvasState = Depends(get_state)) -> Response:
    if not state.canvas.disconnect(edge_id):
        raise HTTPException(status_code=404, detail="Edge not found")
    return Response(status_code=204)


# ── POST /canvas/connection/cancel ────────────────────────────────────────────

@router.post("/canvas/connection/cancel")
async def cancel_connection(state: CanvasState = Depends(get_state)) -> Dict[str, bool]:
    return {"cancelled": state.canvas.cancel_connection()}


# ── Viewport ──────────────────────────────────────────────────────────────────

class ZoomBody(BaseModel):
    factor: float


@router.post("/canvas/viewport/zoom")
async def zoom(body: ZoomBody, state: CanvasState = Depends(get_state)) -> Dict[str, Any]:
    state.canvas.zoom_by(body.factor)
    return state.canvas.viewport.to_dict()


@router.post("/canvas/viewport/reset")
async def reset_view(state: CanvasState = Depends(get_state)) -> Dict[str, Any]:
    state.canvas.reset_view()
    return state.canvas.viewport.to_dict()


# ── GET /node-types ───────────────────────────────────────────────────────────

@router.get("/node-types")
async def get_node_types() -> List[str]:
    return [variant.value for variant in Node._node_registry.keys()]
