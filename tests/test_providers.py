"""
Tests for external providers.

HTTP providers run against httpx.MockTransport; the LangChain-backed
provider is exercised through a patched ChatOpenAI factory.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from cortex_kg.config.settings import CortexConfig
from cortex_kg.exceptions import ConfigurationError, ParseError, TransientServiceError
from cortex_kg.providers.llm.fallback import FallbackLLMProvider
from cortex_kg.providers.llm.huggingface import SUMMARY_INPUT_CHARS, HuggingFaceProvider
from cortex_kg.providers.llm.openai import OpenAILLMProvider
from cortex_kg.providers.search.duckduckgo import (
    DuckDuckGoSearchProvider,
    parse_results,
    unwrap_redirect,
)
from cortex_kg.providers.search.video import extract_video_id, is_video_url
from cortex_kg.utils.telemetry import UsageCollector, telemetry_collector, telemetry_stage

# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def config() -> CortexConfig:
    """Create a test configuration."""
    return CortexConfig(
        nvidia_api_key="nv-test",
        huggingface_api_key="hf-test",
        hf_chat_models=["model-a", "model-b"],
        hf_max_retries=2,
        hf_max_wait=30.0,
    )


def transport(handler) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


def chat_reply(content: str) -> dict:
    return {"choices": [{"message": {"content": content}}]}


# -----------------------------------------------------------------------------
# HuggingFace
# -----------------------------------------------------------------------------


class TestHuggingFaceProvider:
    """Secondary models with cold-start retries."""

    def test_requires_key(self, config: CortexConfig) -> None:
        config.huggingface_api_key = None
        with pytest.raises(ConfigurationError):
            HuggingFaceProvider(config)

    @pytest.mark.asyncio
    async def test_chat(self, config: CortexConfig) -> None:
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            assert request.headers["Authorization"] == "Bearer hf-test"
            return httpx.Response(200, json=chat_reply("VALIDATED"))

        provider = HuggingFaceProvider(config, transport=transport(handler))
        reply = await provider.chat([{"role": "user", "content": "hi"}], max_tokens=50)

        assert reply == "VALIDATED"
        assert seen[0]["model"] == "model-a"
        assert seen[0]["max_tokens"] == 50
        assert seen[0]["stream"] is False

    @pytest.mark.asyncio
    async def test_loading_wait_is_capped(self, config: CortexConfig) -> None:
        """A 503 with an estimate waits at most hf_max_wait, then retries."""
        responses = [
            httpx.Response(503, json={"estimated_time": 120.0}),
            httpx.Response(200, json=chat_reply("ok")),
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        provider = HuggingFaceProvider(config, transport=transport(handler))
        with patch("cortex_kg.providers.llm.huggingface.asyncio.sleep", new=AsyncMock()) as sleep:
            reply = await provider.chat([{"role": "user", "content": "hi"}])

        assert reply == "ok"
        sleep.assert_awaited_once_with(30.0)

    @pytest.mark.asyncio
    async def test_falls_through_models(self, config: CortexConfig) -> None:
        """A model that keeps failing hands over to the next one."""
        models: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            model = json.loads(request.content)["model"]
            models.append(model)
            if model == "model-a":
                return httpx.Response(500, text="boom")
            return httpx.Response(200, json=chat_reply("from b"))

        provider = HuggingFaceProvider(config, transport=transport(handler))
        reply = await provider.chat([{"role": "user", "content": "hi"}])

        assert reply == "from b"
        assert models == ["model-a", "model-b"]

    @pytest.mark.asyncio
    async def test_still_loading_after_retries(self, config: CortexConfig) -> None:
        """503 on every attempt of every model surfaces as a transient error."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, json={})

        provider = HuggingFaceProvider(config, transport=transport(handler))
        with patch("cortex_kg.providers.llm.huggingface.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(TransientServiceError) as exc_info:
                await provider.chat([{"role": "user", "content": "hi"}])

        assert exc_info.value.status_code == 503
        # Two waits per model, default wait when no estimate is given
        assert sleep.await_count == 4
        sleep.assert_awaited_with(config.hf_default_wait)

    @pytest.mark.asyncio
    async def test_transport_errors_retry(self, config: CortexConfig) -> None:
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json=chat_reply("finally"))

        provider = HuggingFaceProvider(config, transport=transport(handler))
        with patch("cortex_kg.providers.llm.huggingface.asyncio.sleep", new=AsyncMock()) as sleep:
            reply = await provider.chat([{"role": "user", "content": "hi"}])

        assert reply == "finally"
        assert sleep.await_count == 2
        sleep.assert_awaited_with(config.hf_transport_retry_delay)

    @pytest.mark.asyncio
    async def test_empty_reply_is_parse_error(self, config: CortexConfig) -> None:
        config.hf_chat_models = ["model-a"]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=chat_reply(""))

        provider = HuggingFaceProvider(config, transport=transport(handler))
        with pytest.raises(ParseError):
            await provider.chat([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_summarize(self, config: CortexConfig) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"summary_text": "Short."}])

        provider = HuggingFaceProvider(config, transport=transport(handler))
        summary = await provider.summarize("x" * 10000)

        assert summary == "Short."
        assert seen[0].url.path.endswith(f"/models/{config.hf_summarization_model}")
        assert len(json.loads(seen[0].content)["inputs"]) == SUMMARY_INPUT_CHARS

    @pytest.mark.asyncio
    async def test_usage_recorded(self, config: CortexConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"summary_text": "Short."}])

        provider = HuggingFaceProvider(config, transport=transport(handler))
        collector = UsageCollector()
        with telemetry_collector(collector), telemetry_stage("consensus_summary"):
            await provider.summarize("text")

        [record] = collector.records
        assert record.provider == "huggingface"
        assert record.operation == "summarize"
        assert record.stage == "consensus_summary"
        assert record.ok


# -----------------------------------------------------------------------------
# Primary models
# -----------------------------------------------------------------------------


class TestOpenAILLMProvider:
    """LangChain ChatOpenAI wrapper."""

    def test_requires_key(self) -> None:
        with pytest.raises(ConfigurationError):
            OpenAILLMProvider(None, "some-model")

    @pytest.mark.asyncio
    async def test_chat_converts_messages(self) -> None:
        client = MagicMock()
        client.ainvoke = AsyncMock(return_value=MagicMock(content="answer", usage_metadata=None))

        with patch(
            "cortex_kg.providers.llm.openai._get_chat_openai", return_value=client
        ) as factory:
            provider = OpenAILLMProvider("key", "model-x", base_url="https://llm.example/v1")
            reply = await provider.chat(
                [
                    {"role": "system", "content": "be brief"},
                    {"role": "user", "content": "hi"},
                    {"role": "assistant", "content": "hello"},
                ],
                temperature=0.2,
                max_tokens=64,
            )

        assert reply == "answer"
        kwargs = factory.call_args.kwargs
        assert kwargs["model"] == "model-x"
        assert kwargs["base_url"] == "https://llm.example/v1"
        assert kwargs["temperature"] == 0.2
        sent = client.ainvoke.await_args.args[0]
        assert [type(m).__name__ for m in sent] == ["SystemMessage", "HumanMessage", "AIMessage"]

    def test_from_config(self, config: CortexConfig) -> None:
        provider = OpenAILLMProvider.from_config(config)
        assert provider.model_name == config.llm_model
        assert provider.with_model("other").model_name == "other"


class TestFallbackLLMProvider:
    """Primary -> fallback chain."""

    @staticmethod
    def make_llm(name: str, reply: str | Exception) -> MagicMock:
        llm = MagicMock()
        llm.model_name = name
        if isinstance(reply, Exception):
            llm.chat = AsyncMock(side_effect=reply)
        else:
            llm.chat = AsyncMock(return_value=reply)
        return llm

    @pytest.mark.asyncio
    async def test_primary_answers(self) -> None:
        primary = self.make_llm("primary", "from primary")
        fallback = self.make_llm("fallback", "from fallback")

        chain = FallbackLLMProvider([primary, fallback])

        assert await chain.chat([{"role": "user", "content": "q"}]) == "from primary"
        fallback.chat.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fallback_on_failure(self) -> None:
        chain = FallbackLLMProvider(
            [self.make_llm("primary", RuntimeError("500")), self.make_llm("fallback", "ok")]
        )
        assert await chain.chat([{"role": "user", "content": "q"}]) == "ok"

    @pytest.mark.asyncio
    async def test_all_fail(self) -> None:
        chain = FallbackLLMProvider(
            [self.make_llm("a", RuntimeError("first")), self.make_llm("b", RuntimeError("last"))]
        )
        with pytest.raises(RuntimeError, match="last"):
            await chain.chat([{"role": "user", "content": "q"}])

    @pytest.mark.asyncio
    async def test_stream_falls_back_before_output(self) -> None:
        async def broken(*args, **kwargs):
            raise RuntimeError("stream down")
            yield  # pragma: no cover

        async def working(*args, **kwargs):
            for chunk in ["Hel", "lo"]:
                yield chunk

        primary, fallback = MagicMock(), MagicMock()
        primary.model_name, fallback.model_name = "primary", "fallback"
        primary.stream = broken
        fallback.stream = working

        chain = FallbackLLMProvider([primary, fallback])
        chunks = [c async for c in chain.stream([{"role": "user", "content": "q"}])]

        assert chunks == ["Hel", "lo"]

    def test_needs_a_provider(self) -> None:
        with pytest.raises(ValueError):
            FallbackLLMProvider([])

    def test_from_config_chain(self, config: CortexConfig) -> None:
        chain = FallbackLLMProvider.from_config(config)
        assert [p.model_name for p in chain.providers] == [
            config.llm_model,
            config.llm_fallback_model,
        ]


# -----------------------------------------------------------------------------
# Web search
# -----------------------------------------------------------------------------

RESULTS_HTML = """
<html><body>
  <div class="result">
    <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fparis&amp;rut=abc">Paris travel guide</a>
    <a class="result__snippet">Everything about Paris.</a>
  </div>
  <div class="result">
    <a class="result__a" href="https://duckduckgo.com/y.js?ad=1">Sponsored</a>
  </div>
  <div class="result">
    <a class="result__a" href="https://www.youtube.com/watch?v=abcdefghijk">Paris in 4K</a>
    <div class="result__snippet">A walk through Paris.</div>
  </div>
</body></html>
"""

FALLBACK_HTML = """
<html><body>
  <a href="https://duckduckgo.com/about">About DuckDuckGo</a>
  <a href="https://example.org/article">A long article title</a>
  <a href="https://example.org/x">Tiny</a>
  <a href="/relative">Relative link title</a>
</body></html>
"""


class TestDuckDuckGo:
    """HTML search parsing and transport."""

    def test_unwrap_redirect(self) -> None:
        url = "//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fa%3Fb%3D1&rut=x"
        assert unwrap_redirect(url) == "https://example.com/a?b=1"
        assert unwrap_redirect("https://example.com") == "https://example.com"

    def test_parse_result_blocks(self) -> None:
        results = parse_results(RESULTS_HTML, max_results=5)

        assert [r.title for r in results] == ["Paris travel guide", "Paris in 4K"]
        assert results[0].url == "https://example.com/paris"
        assert results[0].snippet == "Everything about Paris."
        assert results[1].snippet == "A walk through Paris."

    def test_parse_respects_max_results(self) -> None:
        assert len(parse_results(RESULTS_HTML, max_results=1)) == 1

    def test_parse_fallback_anchors(self) -> None:
        """Without result blocks, external anchors with real titles are used."""
        results = parse_results(FALLBACK_HTML, max_results=5)
        assert [r.url for r in results] == ["https://example.org/article"]

    @pytest.mark.asyncio
    async def test_search(self, config: CortexConfig) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text=RESULTS_HTML)

        provider = DuckDuckGoSearchProvider(config, transport=transport(handler))
        results = await provider.search("paris travel", max_results=2)

        assert len(results) == 2
        assert seen[0].url.params["q"] == "paris travel"

    @pytest.mark.asyncio
    async def test_non_200_raises(self, config: CortexConfig) -> None:
        provider = DuckDuckGoSearchProvider(
            config, transport=transport(lambda request: httpx.Response(429))
        )
        with patch("cortex_kg.providers.search.duckduckgo.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(TransientServiceError) as exc_info:
                await provider.search("paris")
        assert exc_info.value.status_code == 429
        assert sleep.await_count == config.search_max_retries

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, config: CortexConfig) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(403)

        provider = DuckDuckGoSearchProvider(config, transport=transport(handler))
        with patch("cortex_kg.providers.search.duckduckgo.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(TransientServiceError):
                await provider.search("paris")
        assert len(calls) == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, config: CortexConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        provider = DuckDuckGoSearchProvider(config, transport=transport(handler))
        with patch("cortex_kg.providers.search.duckduckgo.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(TransientServiceError):
                await provider.search("paris")
        assert sleep.await_count == config.search_max_retries

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, config: CortexConfig) -> None:
        """One transport failure and one 503 are retried before results arrive."""
        attempts: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            if len(attempts) == 1:
                raise httpx.ConnectError("reset", request=request)
            if len(attempts) == 2:
                return httpx.Response(503)
            return httpx.Response(200, text=RESULTS_HTML)

        provider = DuckDuckGoSearchProvider(config, transport=transport(handler))
        with patch("cortex_kg.providers.search.duckduckgo.asyncio.sleep", new=AsyncMock()) as sleep:
            results = await provider.search("paris travel", max_results=2)

        assert len(results) == 2
        assert len(attempts) == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_retry_delay_is_capped(self) -> None:
        config = CortexConfig(
            search_max_retries=4, search_retry_delay=3.0, search_max_retry_delay=5.0
        )
        provider = DuckDuckGoSearchProvider(
            config, transport=transport(lambda request: httpx.Response(502))
        )
        with patch("cortex_kg.providers.search.duckduckgo.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(TransientServiceError):
                await provider.search("paris")
        assert [c.args[0] for c in sleep.await_args_list] == [3.0, 5.0, 5.0, 5.0]


class TestVideoIds:
    """Video id extraction."""

    @pytest.mark.parametrize(
        "url,video_id",
        [
            ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", "dQw4w9WgXcQ"),
            ("https://www.youtube.com/watch?list=PL1&v=dQw4w9WgXcQ&t=10", "dQw4w9WgXcQ"),
            ("https://youtu.be/dQw4w9WgXcQ", "dQw4w9WgXcQ"),
            ("https://www.youtube.com/embed/dQw4w9WgXcQ", "dQw4w9WgXcQ"),
            ("https://www.youtube.com/v/dQw4w9WgXcQ", "dQw4w9WgXcQ"),
            ("https://www.youtube.com/channel/UC123", None),
            ("https://example.com/watch?v=dQw4w9WgXcQ", None),
        ],
    )
    def test_extract_video_id(self, url: str, video_id: str | None) -> None:
        assert extract_video_id(url) == video_id

    def test_is_video_url(self) -> None:
        assert is_video_url("https://youtu.be/dQw4w9WgXcQ")
        assert not is_video_url("https://www.youtube.com/@someone")
