import asyncio
from types import SimpleNamespace

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from flowcanvas.core.Interface import CompletionError
from flowcanvas.server.completion import (
    EchoCompletion,
    LangChainCompletion,
    OpenAICompletion,
    create_completion,
)
from flowcanvas.server.settings import DEFAULT_SYSTEM_PROMPT, Settings

HISTORY = [
    {"role": "user", "content": "hi"},
    {"role": "assistant", "content": "hello"},
    {"role": "user", "content": "how are you?"},
]


# --- Mocks for Test ---

class FakeCompletions:
    def __init__(self, contents, delay=0.0):
        self.contents = contents
        self.delay = delay
        self.requests = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        choices = [SimpleNamespace(message=SimpleNamespace(content=c)) for c in self.contents]
        return SimpleNamespace(choices=choices)


class FakeOpenAIClient:
    def __init__(self, contents, delay=0.0):
        self.chat = SimpleNamespace(completions=FakeCompletions(contents, delay))
        self.closed = False

    async def close(self):
        self.closed = True


class FakeChatModel:
    def __init__(self, content):
        self.content = content
        self.received = None

    async def ainvoke(self, messages):
        self.received = messages
        return SimpleNamespace(content=self.content)


class TestOpenAICompletion:

    def test_prepends_system_prompt(self):
        client = FakeOpenAIClient(["  I am fine.  "])
        completion = OpenAICompletion(model="gpt-4", client=client)

        replies = asyncio.run(completion.complete(HISTORY))

        assert replies == ["I am fine."]
        request = client.chat.completions.requests[0]
        assert request["model"] == "gpt-4"
        assert request["messages"][0] == {"role": "system", "content": DEFAULT_SYSTEM_PROMPT}
        assert request["messages"][1:] == HISTORY
        assert "temperature" not in request

    def test_temperature_is_forwarded(self):
        client = FakeOpenAIClient(["ok"])
        completion = OpenAICompletion(temperature=0.2, client=client)
        asyncio.run(completion.complete(HISTORY))
        assert client.chat.completions.requests[0]["temperature"] == 0.2

    def test_multiple_choices(self):
        client = FakeOpenAIClient(["one", None, "two"])
        completion = OpenAICompletion(client=client)
        assert asyncio.run(completion.complete(HISTORY)) == ["one", "two"]

    def test_empty_response_raises(self):
        completion = OpenAICompletion(client=FakeOpenAIClient([]))
        with pytest.raises(CompletionError):
            asyncio.run(completion.complete(HISTORY))

    def test_timeout(self):
        completion = OpenAICompletion(client=FakeOpenAIClient(["late"], delay=1.0), timeout_seconds=0.01)
        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(completion.complete(HISTORY))

    def test_aclose_closes_client(self):
        client = FakeOpenAIClient(["ok"])
        completion = OpenAICompletion(client=client)
        asyncio.run(completion.aclose())
        assert client.closed is True


class TestLangChainCompletion:

    def test_message_conversion(self):
        messages = LangChainCompletion.to_langchain_messages("be brief", HISTORY)
        assert [type(m) for m in messages] == [SystemMessage, HumanMessage, AIMessage, HumanMessage]
        assert [m.content for m in messages] == ["be brief", "hi", "hello", "how are you?"]

    def test_complete(self):
        llm = FakeChatModel(" fine, thanks ")
        completion = LangChainCompletion(system_prompt="be brief", llm=llm)

        assert asyncio.run(completion.complete(HISTORY)) == ["fine, thanks"]
        assert isinstance(llm.received[0], SystemMessage)
        assert len(llm.received) == 4

    def test_multipart_content(self):
        llm = FakeChatModel([{"type": "text", "text": "part one, "}, {"type": "text", "text": "part two"}])
        completion = LangChainCompletion(llm=llm)
        assert asyncio.run(completion.complete(HISTORY)) == ["part one, part two"]

    def test_empty_content_raises(self):
        completion = LangChainCompletion(llm=FakeChatModel("   "))
        with pytest.raises(CompletionError):
            asyncio.run(completion.complete(HISTORY))


class TestEchoCompletion:

    def test_echoes_latest_user_message(self):
        assert asyncio.run(EchoCompletion().complete(HISTORY)) == ["Echo: how are you?"]
        assert asyncio.run(EchoCompletion(prefix="> ").complete(HISTORY[:1])) == ["> hi"]

    def test_requires_user_message(self):
        with pytest.raises(CompletionError):
            asyncio.run(EchoCompletion().complete([{"role": "assistant", "content": "x"}]))


class TestCreateCompletion:

    def test_backends(self):
        assert isinstance(create_completion(Settings(completion_backend="echo")), EchoCompletion)
        assert isinstance(create_completion(Settings(completion_backend="langchain")), LangChainCompletion)

        completion = create_completion(Settings(model="gpt-4o-mini", temperature=0.5))
        assert isinstance(completion, OpenAICompletion)
        assert completion.model == "gpt-4o-mini"
        assert completion.temperature == 0.5


class TestSettings:

    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.completion_backend == "openai"
        assert settings.model == "gpt-4"
        assert settings.port == 3001
        assert settings.temperature is None
        assert settings.seed_demo is False
        assert settings.allowed_origins() == ["*"]

    def test_from_env(self):
        settings = Settings.from_env({
            "FLOWCANVAS_COMPLETION_BACKEND": "Echo",
            "FLOWCANVAS_MODEL": "gpt-4o",
            "FLOWCANVAS_TEMPERATURE": "0.3",
            "FLOWCANVAS_PORT": "8080",
            "FLOWCANVAS_LOG_LEVEL": "debug",
            "FLOWCANVAS_SEED_DEMO": "yes",
            "FLOWCANVAS_CORS_ORIGINS": "http://localhost:3000, http://example.com",
        })
        assert settings.completion_backend == "echo"
        assert settings.model == "gpt-4o"
        assert settings.temperature == 0.3
        assert settings.port == 8080
        assert settings.log_level == "DEBUG"
        assert settings.seed_demo is True
        assert settings.allowed_origins() == ["http://localhost:3000", "http://example.com"]

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValueError):
            Settings.from_env({"FLOWCANVAS_COMPLETION_BACKEND": "carrier-pigeon"})

    def test_settings_are_frozen(self):
        settings = Settings()
        with pytest.raises(Exception):
            settings.model = "other"
