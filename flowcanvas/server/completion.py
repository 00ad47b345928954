"""
Completion backends for processor nodes.

Each backend turns a processor's message log into assistant replies. They
all speak the core's canonical {role, content} shape; conversion to the
provider's own message types happens here and nowhere else.

Requirements (install via pip):
    openai langchain-openai langchain-core

Environment variable:
    OPENAI_API_KEY  consumed by both the openai client and langchain-openai.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from flowcanvas.core.Interface import CompletionError, ICompletionBoundary
from flowcanvas.server.settings import DEFAULT_SYSTEM_PROMPT, Settings

logger = logging.getLogger(__name__)


class OpenAICompletion(ICompletionBoundary):
    """Chat completion through the official async OpenAI client."""

    def __init__(self,
                 model: str = "gpt-4",
                 system_prompt: str = DEFAULT_SYSTEM_PROMPT,
                 temperature: Optional[float] = None,
                 timeout_seconds: float = 60.0,
                 client=None):
        self.model = model
        self.system_prompt = system_prompt
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds
        self._client = client

    @property
    def client(self):
        if self._client is None:
            import openai
            self._client = openai.AsyncOpenAI()
        return self._client

    async def complete(self, history: Sequence[Dict[str, str]]) -> List[str]:
        messages = [{"role": "system", "content": self.system_prompt}]
        messages.extend({"role": m["role"], "content": m["content"]} for m in history)

        extra = {"temperature": self.temperature} if self.temperature is not None else {}
        response = await asyncio.wait_for(
            self.client.chat.completions.create(model=self.model, messages=messages, **extra),
            timeout=self.timeout_seconds,
        )

        replies = [
            choice.message.content.strip()
            for choice in response.choices
            if choice.message is not None and choice.message.content
        ]
        if not replies:
            raise CompletionError(f"{self.model} returned an empty response")
        return replies

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()


class LangChainCompletion(ICompletionBoundary):
    """Chat completion through langchain-openai's ChatOpenAI."""

    def __init__(self,
                 model: str = "gpt-4",
                 system_prompt: str = DEFAULT_SYSTEM_PROMPT,
                 temperature: Optional[float] = None,
                 timeout_seconds: float = 60.0,
                 llm=None):
        self.model = model
        self.system_prompt = system_prompt
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds
        self._llm = llm

    @property
    def llm(self):
        if self._llm is None:
            from langchain_openai import ChatOpenAI
            kwargs = {"model": self.model}
            if self.temperature is not None:
                kwargs["temperature"] = self.temperature
            self._llm = ChatOpenAI(**kwargs)
        return self._llm

    @staticmethod
    def to_langchain_messages(system_prompt: str, history: Sequence[Dict[str, str]]):
        from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

        messages = [SystemMessage(content=system_prompt)]
        for entry in history:
            if entry["role"] == "user":
                messages.append(HumanMessage(content=entry["content"]))
            else:
                messages.append(AIMessage(content=entry["content"]))
        return messages

    async def complete(self, history: Sequence[Dict[str, str]]) -> List[str]:
        messages = self.to_langchain_messages(self.system_prompt, history)
        response = await asyncio.wait_for(self.llm.ainvoke(messages), timeout=self.timeout_seconds)

        content = response.content
        if isinstance(content, list):
            # Multi-part content: keep the text parts only
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )
        content = (content or "").strip()
        if not content:
            raise CompletionError(f"{self.model} returned an empty response")
        return [content]


class EchoCompletion(ICompletionBoundary):
    """
    Offline backend for development and demos: replies with the latest user
    message. `delay_seconds` simulates network latency.
    """

    def __init__(self, prefix: str = "Echo: ", delay_seconds: float = 0.0):
        self.prefix = prefix
        self.delay_seconds = delay_seconds

    async def complete(self, history: Sequence[Dict[str, str]]) -> List[str]:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        for entry in reversed(history):
            if entry["role"] == "user":
                return [f"{self.prefix}{entry['content']}"]
        raise CompletionError("no user message to echo")


def create_completion(settings: Settings) -> ICompletionBoundary:
    backend = settings.completion_backend
    logger.info("Using %s completion backend (model=%s)", backend, settings.model)
    if backend == "echo":
        return EchoCompletion()
    if backend == "langchain":
        return LangChainCompletion(
            model=settings.model,
            system_prompt=settings.system_prompt,
            temperature=settings.temperature,
            timeout_seconds=settings.request_timeout_seconds,
        )
    if backend == "openai":
        return OpenAICompletion(
            model=settings.model,
            system_prompt=settings.system_prompt,
            temperature=settings.temperature,
            timeout_seconds=settings.request_timeout_seconds,
        )
    raise ValueError(f"Unknown completion backend '{backend}'")
