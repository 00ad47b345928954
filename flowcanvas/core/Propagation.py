from __future__ import annotations

import asyncio
import time
from logging import getLogger
from typing import Callable, Dict, List, Optional, Set

from .GraphPrimitives import Graph
from .Interface import CompletionError, ICompletionBoundary
from .Node import Message, ProcessorNode

logger = getLogger(__name__)

ERROR_NOTICE = "Sorry, something went wrong while generating a response."


def error_notice(exc: BaseException) -> str:
    detail = str(exc).strip()
    return f"{ERROR_NOTICE} ({detail})" if detail else ERROR_NOTICE


class PropagationEngine:
    """
    Forwards submitted drafts along edges and keeps processor nodes answered.

    Every change to a processor's log goes through `deliver()` (or the
    resolution path, which uses the same graph entry point) and is followed by
    an explicit `reconcile()` of that node. Reconciliation issues at most one
    completion request per node: `pending` gates concurrent requests and
    `processed_keys` stops the same user content from being sent twice.

    Requests run as tasks on the current event loop. Their results are applied
    back on the same loop, so they never interleave with another mutation.
    """

    def __init__(self, graph: Graph, completion: ICompletionBoundary):
        self.graph = graph
        self.completion = completion
        self._tasks: Dict[str, asyncio.Task] = {}

        # Optional hooks, wired up by the canvas / server.
        self.on_change: Optional[Callable[[str], None]] = None
        self.on_request_start: Optional[Callable[[str, int], None]] = None
        self.on_request_done: Optional[Callable[[str, float, Optional[str]], None]] = None
        self.on_discarded: Optional[Callable[[str], None]] = None

    # --- Submission ---

    def submit(self, source_id: str) -> List[str]:
        """Send a source node's draft to every connected processor.

        Returns the ids of the processors that received the message. Blank
        drafts are ignored and leave the draft untouched.
        """
        source = self.graph.get_source(source_id)
        if source is None:
            logger.debug("Submit ignored: %s is not a source node", source_id)
            return []

        text = source.draft
        if not text.strip():
            return []

        message = Message.user(text)
        delivered = []
        for edge in self.graph.get_outgoing_edges(source_id):
            # Each processor gets its own entry; they share id and timestamp.
            entry = Message(message.role, message.content, id=message.id, timestamp=message.timestamp)
            if self.deliver(edge.target_id, entry):
                delivered.append(edge.target_id)

        self.graph.set_draft(source_id, "")
        self._changed(source_id)
        logger.info("Submitted message from %s to %d processor(s)", source_id, len(delivered))
        return delivered

    def deliver(self, processor_id: str, message: Message) -> bool:
        """Append a message to a processor log and reconcile the node."""
        if not self.graph.append_message(processor_id, message):
            return False
        self._changed(processor_id)
        self.reconcile(processor_id)
        return True

    # --- Reconciliation ---

    def reconcile(self, processor_id: str) -> bool:
        """Issue a completion request for the node if one is owed.

        Returns True when a request was started.
        """
        node = self.graph.get_processor(processor_id)
        if node is None or node.pending:
            return False

        unanswered = node.unanswered_messages()
        if not unanswered:
            return False

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Left unprocessed; the next reconcile inside a loop picks it up.
            logger.warning("No running event loop, completion for %s deferred", processor_id)
            return False

        node.pending = True
        # The request carries the whole log, so every unanswered user entry
        # is answered by this one call.
        marked = {m.key for m in unanswered}
        node.processed_keys.update(marked)

        history = node.history()
        self._tasks[processor_id] = loop.create_task(self._request(node, history, marked))
        if self.on_request_start:
            self.on_request_start(processor_id, len(history))
        self._changed(processor_id)
        return True

    async def _request(self, node: ProcessorNode, history: List[Dict[str, str]], marked: Set[str]):
        processor_id = node.id
        t0 = time.time()
        error: Optional[str] = None
        try:
            replies = await self.completion.complete(history)
            if not replies:
                raise CompletionError("completion returned no content")
            outcome = [Message.assistant(text) for text in replies]
        except asyncio.CancelledError:
            self._forget(processor_id)
            if self.graph.get_node(processor_id) is node:
                # Never answered; a later reconcile may send these again.
                node.pending = False
                node.processed_keys.difference_update(marked)
            raise
        except Exception as exc:
            logger.exception("Completion failed for %s", processor_id)
            error = str(exc) or type(exc).__name__
            outcome = [Message.assistant(error_notice(exc))]

        duration = (time.time() - t0) * 1000
        self._forget(processor_id)
        if self.on_request_done and self.graph.get_node(processor_id) is node:
            self.on_request_done(processor_id, duration, error)
        self._resolve(node, outcome)

    def _resolve(self, node: ProcessorNode, messages: List[Message]) -> bool:
        processor_id = node.id
        # Identity, not just id: a reset graph may hand the same id to a new node.
        if self.graph.get_node(processor_id) is not node:
            logger.debug("Discarding completion for deleted node %s", processor_id)
            if self.on_discarded:
                self.on_discarded(processor_id)
            return False

        node.pending = False
        for message in messages:
            self.graph.append_message(processor_id, message)
        self._changed(processor_id)

        # Anything submitted while the request was in flight is picked up here.
        self.reconcile(processor_id)
        return True

    # --- Task bookkeeping ---

    def _forget(self, processor_id: str):
        task = self._tasks.get(processor_id)
        if task is not None and task is asyncio.current_task():
            del self._tasks[processor_id]

    def in_flight(self, processor_id: str) -> bool:
        return processor_id in self._tasks

    def outstanding(self) -> int:
        return len(self._tasks)

    async def drain(self):
        """Wait until no request is outstanding, including follow-ups."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def aclose(self):
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def _changed(self, node_id: str):
        if self.on_change:
            self.on_change(node_id)
