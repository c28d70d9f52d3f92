from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from support_agent.completion import CompletionClient
from support_agent.config import Settings
from support_agent.embedding import EmbeddingClient
from support_agent.errors import UpstreamError
from support_agent.openai_client import build_client
from support_agent.schemas import ChatMessage, CompletionOptions


def connection_error():
    return openai.APIConnectionError(request=httpx.Request("POST", "https://openrouter.ai/api/v1"))


def delta_chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class FakeStream:
    def __init__(self, chunks, error=None):
        self.chunks = chunks
        self.error = error
        self.closed = False

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def close(self):
        self.closed = True


@pytest.fixture
def sdk():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    client.embeddings.create = AsyncMock()
    return client


class TestEmbeddingClient:
    @pytest.mark.asyncio
    async def test_embed_returns_first_vector(self, sdk):
        sdk.embeddings.create.return_value = SimpleNamespace(
            data=[SimpleNamespace(embedding=[0.1, 0.2, 0.3])]
        )
        embedder = EmbeddingClient(sdk, "openai/text-embedding-3-small")

        assert await embedder.embed("hello") == [0.1, 0.2, 0.3]
        sdk.embeddings.create.assert_awaited_once_with(
            model="openai/text-embedding-3-small", input="hello"
        )

    @pytest.mark.asyncio
    async def test_embed_is_not_cached(self, sdk):
        sdk.embeddings.create.return_value = SimpleNamespace(data=[SimpleNamespace(embedding=[1.0])])
        embedder = EmbeddingClient(sdk, "m")

        await embedder.embed("same")
        await embedder.embed("same")

        assert sdk.embeddings.create.await_count == 2

    @pytest.mark.asyncio
    async def test_api_failure_becomes_upstream_error(self, sdk):
        sdk.embeddings.create.side_effect = connection_error()
        embedder = EmbeddingClient(sdk, "m")

        with pytest.raises(UpstreamError):
            await embedder.embed("hello")

    @pytest.mark.asyncio
    async def test_empty_response_is_upstream_error(self, sdk):
        sdk.embeddings.create.return_value = SimpleNamespace(data=[])
        with pytest.raises(UpstreamError):
            await EmbeddingClient(sdk, "m").embed("hello")


class TestCompletionClient:
    @pytest.fixture
    def completion(self, sdk):
        return CompletionClient(sdk, "openai/gpt-4o-mini", default_temperature=0.7, default_max_tokens=1024)

    @pytest.mark.asyncio
    async def test_complete_uses_defaults(self, sdk, completion):
        sdk.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="Answer"))]
        )

        text = await completion.complete([ChatMessage(role="user", content="Q")])

        assert text == "Answer"
        sdk.chat.completions.create.assert_awaited_once_with(
            model="openai/gpt-4o-mini",
            messages=[{"role": "user", "content": "Q"}],
            temperature=0.7,
            max_tokens=1024,
        )

    @pytest.mark.asyncio
    async def test_complete_applies_options(self, sdk, completion):
        sdk.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="ok"))]
        )

        await completion.complete(
            [{"role": "system", "content": "S"}],
            CompletionOptions(model="anthropic/claude-3-haiku", temperature=0.0, max_tokens=50),
        )

        kwargs = sdk.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "anthropic/claude-3-haiku"
        assert kwargs["temperature"] == 0.0
        assert kwargs["max_tokens"] == 50

    def test_temperature_outside_range_rejected(self):
        with pytest.raises(ValueError):
            CompletionOptions(temperature=2.5)

    @pytest.mark.asyncio
    async def test_complete_failure_becomes_upstream_error(self, sdk, completion):
        sdk.chat.completions.create.side_effect = connection_error()
        with pytest.raises(UpstreamError):
            await completion.complete([ChatMessage(role="user", content="Q")])

    @pytest.mark.asyncio
    async def test_stream_yields_non_empty_fragments(self, sdk, completion):
        stream = FakeStream([
            delta_chunk("Hel"),
            delta_chunk(None),
            SimpleNamespace(choices=[]),
            delta_chunk("lo"),
        ])
        sdk.chat.completions.create.return_value = stream

        fragments = await completion.stream_complete([ChatMessage(role="user", content="Q")])
        collected = [f async for f in fragments]

        assert collected == ["Hel", "lo"]
        assert stream.closed
        assert sdk.chat.completions.create.await_args.kwargs["stream"] is True

    @pytest.mark.asyncio
    async def test_stream_open_failure_raises_immediately(self, sdk, completion):
        sdk.chat.completions.create.side_effect = connection_error()
        with pytest.raises(UpstreamError):
            await completion.stream_complete([ChatMessage(role="user", content="Q")])

    @pytest.mark.asyncio
    async def test_mid_stream_failure_is_terminal_error(self, sdk, completion):
        stream = FakeStream([delta_chunk("partial")], error=httpx.ReadError("connection reset"))
        sdk.chat.completions.create.return_value = stream

        fragments = await completion.stream_complete([ChatMessage(role="user", content="Q")])
        collected = []
        with pytest.raises(UpstreamError):
            async for fragment in fragments:
                collected.append(fragment)

        assert collected == ["partial"]
        assert stream.closed

    @pytest.mark.asyncio
    async def test_closing_iterator_early_closes_upstream(self, sdk, completion):
        stream = FakeStream([delta_chunk("a"), delta_chunk("b"), delta_chunk("c")])
        sdk.chat.completions.create.return_value = stream

        fragments = await completion.stream_complete([ChatMessage(role="user", content="Q")])
        assert await fragments.__anext__() == "a"
        await fragments.aclose()

        assert stream.closed


class TestBuildClient:
    def test_missing_api_key_fails(self):
        with pytest.raises(RuntimeError):
            build_client(Settings(openrouter_api_key=None))

    def test_attribution_headers_and_no_retries(self):
        client = build_client(
            Settings(
                openrouter_api_key="sk-test",
                app_url="https://support.example.com",
                app_title="Example Support",
            )
        )

        assert str(client.base_url).startswith("https://openrouter.ai/api/v1")
        assert client.max_retries == 0
        assert client.default_headers["HTTP-Referer"] == "https://support.example.com"
        assert client.default_headers["X-Title"] == "Example Support"
