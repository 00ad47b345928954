from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Sequence


class CompletionError(RuntimeError):
    """Raised by completion backends when no usable reply was produced."""


class ICompletionBoundary(ABC):
    """
    The only network-shaped dependency of the core.

    `history` is a processor node's full log in arrival order, as
    [{"role": "user" | "assistant", "content": str}, ...]. A successful call
    returns one or more assistant replies; any raised exception is treated as
    a failure for that node alone.
    """

    @abstractmethod
    async def complete(self, history: Sequence[Dict[str, str]]) -> List[str]:
        pass

    async def aclose(self) -> None:
        pass
