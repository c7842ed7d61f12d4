"""Tests for LLM providers. litellm is patched; no network access."""

from __future__ import annotations

from types import SimpleNamespace

import litellm
import pytest

from clawloop.llm import LiteLLMProvider, MockProvider, create_provider
from clawloop.models.config import AgentConfig
from clawloop.models.message import ChatMessage, LLMResponse, ToolDefinition


def _completion(content=None, tool_calls=None, prompt_tokens=12, completion_tokens=7):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason="stop")],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


def _tool_call(call_id, name, arguments):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


class TestCreateProvider:
    def test_mock_env(self, monkeypatch):
        monkeypatch.setenv("CLAWLOOP_MOCK_LLM", "1")
        assert isinstance(create_provider("anthropic/claude-sonnet-4-5"), MockProvider)

    def test_litellm_by_default(self, monkeypatch):
        monkeypatch.delenv("CLAWLOOP_MOCK_LLM", raising=False)
        provider = create_provider("openai/gpt-4o", max_tokens=100)
        assert isinstance(provider, LiteLLMProvider)
        assert provider.model == "openai/gpt-4o"
        assert provider.provider_name == "openai"

    async def test_agent_config_sets_call_parameters(self, monkeypatch):
        monkeypatch.delenv("CLAWLOOP_MOCK_LLM", raising=False)
        captured = {}

        async def fake_acompletion(**kwargs):
            captured.update(kwargs)
            return _completion(content="ok")

        monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
        config = AgentConfig(max_tokens=256, temperature=0.7)
        await create_provider("openai/gpt-4o", config).chat([ChatMessage.user("hi")])
        assert (captured["max_tokens"], captured["temperature"]) == (256, 0.7)

    def test_explicit_kwargs_override_config(self, monkeypatch):
        monkeypatch.delenv("CLAWLOOP_MOCK_LLM", raising=False)
        provider = create_provider("openai/gpt-4o", AgentConfig(max_tokens=256), max_tokens=64)
        kwargs = provider._call_kwargs([], [], stream=False)
        assert kwargs["max_tokens"] == 64


class TestLiteLLMProvider:
    async def test_chat_success(self, monkeypatch):
        captured = {}

        async def fake_acompletion(**kwargs):
            captured.update(kwargs)
            return _completion(
                content="",
                tool_calls=[_tool_call("c1", "read", '{"path": "a.py"}')],
            )

        monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
        provider = LiteLLMProvider(
            "anthropic/claude-sonnet-4-5", extra_headers={"anthropic-beta": "x"}
        )
        tool = ToolDefinition(name="read", description="Read")
        response = await provider.chat([ChatMessage.user("hi")], [tool])

        assert response.success
        assert response.tool_calls[0].arguments == {"path": "a.py"}
        assert (response.input_tokens, response.output_tokens) == (12, 7)
        assert captured["messages"] == [{"role": "user", "content": "hi"}]
        assert captured["tools"][0]["function"]["name"] == "read"
        assert captured["extra_headers"] == {"anthropic-beta": "x"}
        assert "stream" not in captured

    async def test_chat_exception_becomes_failure(self, monkeypatch):
        async def fake_acompletion(**kwargs):
            raise RuntimeError("401 unauthorized")

        monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
        response = await LiteLLMProvider("openai/gpt-4o").chat([ChatMessage.user("hi")])
        assert not response.success
        assert "401 unauthorized" in response.error

    async def test_chat_stream_forwards_deltas(self, monkeypatch):
        def chunk(text, usage=None):
            delta = SimpleNamespace(content=text)
            return SimpleNamespace(choices=[SimpleNamespace(delta=delta)], usage=usage)

        async def stream():
            yield chunk("Hel")
            yield chunk("lo")
            yield SimpleNamespace(
                choices=[],
                usage=SimpleNamespace(prompt_tokens=5, completion_tokens=2),
            )

        async def fake_acompletion(**kwargs):
            assert kwargs["stream"] is True
            return stream()

        monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
        provider = LiteLLMProvider("openai/gpt-4o")
        received: list[str] = []

        async def on_chunk(text):
            received.append(text)

        assert await provider.chat_stream([ChatMessage.user("hi")], [], on_chunk) is True
        assert received == ["Hel", "lo"]
        assert provider.last_stream_usage.total == 7

    async def test_chat_stream_not_established(self, monkeypatch):
        async def fake_acompletion(**kwargs):
            raise ConnectionError("refused")

        monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
        ok = await LiteLLMProvider("openai/gpt-4o").chat_stream(
            [ChatMessage.user("hi")], [], lambda text: None
        )
        assert ok is False


class TestMockProvider:
    async def test_echo(self):
        provider = MockProvider()
        response = await provider.chat([ChatMessage.user("ping")])
        assert response.success
        assert "ping" in response.content
        assert response.input_tokens > 0
        assert provider.call_count == 1

    async def test_scripted_then_exhausted(self):
        provider = MockProvider([LLMResponse(content="one", success=True)])
        assert (await provider.chat([])).content == "one"
        assert not (await provider.chat([])).success

    async def test_stream_reassembles_content(self):
        provider = MockProvider([LLMResponse(content="a b  c", success=True)])
        chunks: list[str] = []
        assert await provider.chat_stream([], [], chunks.append)
        assert "".join(chunks) == "a b  c"

    @pytest.mark.parametrize("content", ["", "single"])
    async def test_stream_edge_cases(self, content):
        provider = MockProvider([LLMResponse(content=content, success=True)])
        chunks: list[str] = []
        await provider.chat_stream([], [], chunks.append)
        assert "".join(chunks) == content
