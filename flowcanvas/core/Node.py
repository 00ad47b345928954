from __future__ import annotations

import hashlib
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set, Type

from .Types import MessageRole, NodeVariant, Point, Size

# Get a logger for this module
logger = logging.getLogger(__name__)


def message_key(role: MessageRole, content: str) -> str:
    """Content-derived dedup key. Two messages with the same role and text
    share a key even if their ids and timestamps differ."""
    payload = json.dumps([role.value, content], ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Message:
    """A single entry in a processor node's log."""

    def __init__(self,
                 role: MessageRole,
                 content: str,
                 id: Optional[str] = None,
                 timestamp: Optional[str] = None):
        self.role = role
        self.content = content
        self.id = id if id is not None else uuid.uuid4().hex
        self.timestamp = timestamp if timestamp is not None else _now_iso()

    @classmethod
    def user(cls, content: str) -> 'Message':
        return cls(MessageRole.USER, content)

    @classmethod
    def assistant(cls, content: str) -> 'Message':
        return cls(MessageRole.ASSISTANT, content)

    @property
    def key(self) -> str:
        return message_key(self.role, self.content)

    def to_completion_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Message':
        # Older clients sent {sender, text}; normalise both shapes here so the
        # rest of the core only ever sees (role, content).
        role_value = data.get("role", data.get("sender", MessageRole.USER.value))
        content = data.get("content", data.get("text", ""))
        role = MessageRole.USER if role_value == MessageRole.USER.value else MessageRole.ASSISTANT
        return cls(role, str(content), id=data.get("id"), timestamp=data.get("timestamp"))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return (self.id, self.role, self.content) == (other.id, other.role, other.content)

    def __hash__(self):
        return hash((self.id, self.role, self.content))

    def __repr__(self):
        return f"Message({self.role.value}: {self.content!r})"


class Node:
    _node_registry: Dict[NodeVariant, Type['Node']] = {}

    default_size = Size(300, 120)
    min_size = Size(200, 100)

    @classmethod
    def register(cls, variant: NodeVariant) -> Callable[[Type['Node']], Type['Node']]:
        """Decorator to register a node class for a variant."""
        def decorator(subclass: Type['Node']) -> Type['Node']:
            if cls._node_registry.get(variant):
                raise ValueError(f"Node variant '{variant.value}' is already registered.")
            subclass.variant = variant
            cls._node_registry[variant] = subclass
            return subclass
        return decorator

    @classmethod
    def create_node(cls, node_id: str, variant, position: Point) -> 'Node':
        """Factory method to create a node instance for a variant."""
        variant = NodeVariant.parse(variant)
        if variant not in cls._node_registry:
            raise ValueError(f"Unknown node variant '{variant.value}'")
        node_class = cls._node_registry[variant]
        return node_class(node_id, position)

    @classmethod
    def min_size_for(cls, variant: NodeVariant) -> Size:
        return cls._node_registry[variant].min_size

    variant: NodeVariant

    def __init__(self, id: str, position: Point, size: Optional[Size] = None):
        self.id = id
        self.position = Point(*position)
        self.size = (size or self.default_size).clamped(self.min_size)

    def isSource(self) -> bool:
        return False

    def isProcessor(self) -> bool:
        return False

    def move_to(self, position: Point):
        self.position = Point(*position)

    def resize_to(self, size: Size) -> Size:
        self.size = Size(*size).clamped(self.min_size)
        return self.size

    def __repr__(self):
        return f"{type(self).__name__}({self.id})"


@Node.register(NodeVariant.SOURCE)
class SourceNode(Node):
    default_size = Size(300, 120)
    min_size = Size(200, 100)

    def __init__(self, id: str, position: Point, size: Optional[Size] = None):
        super().__init__(id, position, size)
        self.draft = ""

    def isSource(self) -> bool:
        return True


@Node.register(NodeVariant.PROCESSOR)
class ProcessorNode(Node):
    default_size = Size(350, 250)
    min_size = Size(250, 150)

    def __init__(self, id: str, position: Point, size: Optional[Size] = None):
        super().__init__(id, position, size)
        self.messages: List[Message] = []
        # Transient completion bookkeeping, owned by the propagation engine
        self.pending = False
        self.processed_keys: Set[str] = set()

    def isProcessor(self) -> bool:
        return True

    def unanswered_messages(self) -> List[Message]:
        """User entries whose content has not been sent in any request yet."""
        return [m for m in self.messages
                if m.role == MessageRole.USER and m.key not in self.processed_keys]

    def history(self) -> List[Dict[str, str]]:
        return [m.to_completion_dict() for m in self.messages]
