"""
TraceEvent type definitions.
All events are plain dicts so they can be emitted over Socket.IO without Pydantic overhead.
"""
from typing import Literal, Optional, TypedDict, Union


class CanvasChangedEvent(TypedDict):
    type: Literal["CANVAS_CHANGED"]
    reason: str
    nodeId: Optional[str]
    version: int
    ts: int


class CompletionStartEvent(TypedDict):
    type: Literal["COMPLETION_START"]
    nodeId: str
    messageCount: int
    ts: int


class CompletionDoneEvent(TypedDict):
    type: Literal["COMPLETION_DONE"]
    nodeId: str
    durationMs: float
    ts: int


class CompletionErrorEvent(TypedDict):
    type: Literal["COMPLETION_ERROR"]
    nodeId: str
    error: str
    durationMs: float
    ts: int


class CompletionDiscardedEvent(TypedDict):
    type: Literal["COMPLETION_DISCARDED"]
    nodeId: str
    ts: int


TraceEvent = Union[
    CanvasChangedEvent,
    CompletionStartEvent,
    CompletionDoneEvent,
    CompletionErrorEvent,
    CompletionDiscardedEvent,
]
