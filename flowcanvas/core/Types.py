from __future__ import annotations

from enum import Enum, auto
from typing import NamedTuple


class NodeVariant(Enum):
    SOURCE = "source"
    PROCESSOR = "processor"

    @staticmethod
    def parse(value) -> 'NodeVariant':
        if isinstance(value, NodeVariant):
            return value
        # The original UI called these "input" and "chat" components
        aliases = {"input": NodeVariant.SOURCE, "chat": NodeVariant.PROCESSOR}
        key = str(value).strip().lower()
        if key in aliases:
            return aliases[key]
        try:
            return NodeVariant(key)
        except ValueError:
            raise ValueError(f"Unknown node variant '{value}'") from None


class MessageRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"


class InteractionKind(Enum):
    IDLE = auto()
    DRAGGING_NODE = auto()
    PANNING = auto()
    CONNECTING = auto()
    RESIZING = auto()


class HitKind(Enum):
    CANVAS = auto()
    NODE_BODY = auto()
    OUTPUT_PORT = auto()
    INPUT_PORT = auto()
    RESIZE_HANDLE = auto()


class PointerButton(Enum):
    PRIMARY = 0
    AUXILIARY = 1
    SECONDARY = 2


# Geometry is kept as plain immutable tuples so it can be copied into
# snapshots and compared by value.
class Point(NamedTuple):
    x: float
    y: float

    def plus(self, other: 'Point') -> 'Point':
        return Point(self.x + other.x, self.y + other.y)

    def minus(self, other: 'Point') -> 'Point':
        return Point(self.x - other.x, self.y - other.y)

    def scaled(self, factor: float) -> 'Point':
        return Point(self.x * factor, self.y * factor)

    def to_dict(self):
        return {"x": self.x, "y": self.y}


class Size(NamedTuple):
    width: float
    height: float

    def grown(self, delta: Point) -> 'Size':
        return Size(self.width + delta.x, self.height + delta.y)

    def clamped(self, minimum: 'Size') -> 'Size':
        return Size(max(self.width, minimum.width), max(self.height, minimum.height))

    def to_dict(self):
        return {"width": self.width, "height": self.height}
