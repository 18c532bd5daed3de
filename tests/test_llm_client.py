"""Tests for the completion providers."""

import json
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from devpilot.errors import TransientProviderError
from devpilot.llm.client import AnthropicProvider, DeepSeekProvider, get_provider


def _ok(content: str = "Hello from DeepSeek") -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _provider(handler, **kwargs) -> DeepSeekProvider:
    return DeepSeekProvider(
        "sk-test",
        base_url="https://api.example.test/v1",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


# ---------------------------------------------------------------------------
# DeepSeek
# ---------------------------------------------------------------------------


class TestDeepSeekProvider:
    async def test_returns_first_choice(self):
        provider = _provider(lambda request: httpx.Response(200, json=_ok("hi there")))
        result = await provider.complete("system", [{"role": "user", "content": "hi"}])
        assert result == "hi there"

    async def test_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_ok())

        provider = _provider(handler, model="deepseek-chat")
        await provider.complete(
            "be helpful",
            [{"role": "user", "content": "hi"}],
            max_tokens=50,
            temperature=0.3,
        )

        assert seen["url"] == "https://api.example.test/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        body = seen["body"]
        assert body["model"] == "deepseek-chat"
        assert body["messages"][0] == {"role": "system", "content": "be helpful"}
        assert body["messages"][1] == {"role": "user", "content": "hi"}
        assert body["max_tokens"] == 50
        assert body["temperature"] == 0.3

    async def test_model_override(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["model"] = json.loads(request.content)["model"]
            return httpx.Response(200, json=_ok())

        provider = _provider(handler)
        await provider.complete("s", [], model=provider.code_model)
        assert seen["model"] == "deepseek-coder"

    @pytest.mark.parametrize("status", [401, 429, 500, 503])
    async def test_non_success_status(self, status):
        provider = _provider(lambda request: httpx.Response(status, text="nope"))
        with pytest.raises(TransientProviderError) as excinfo:
            await provider.complete("s", [{"role": "user", "content": "hi"}])
        assert excinfo.value.status_code == status
        assert excinfo.value.provider == "deepseek"

    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        provider = _provider(handler, timeout=5)
        with pytest.raises(TransientProviderError, match="timed out after 5s"):
            await provider.complete("s", [{"role": "user", "content": "hi"}])

    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        provider = _provider(handler)
        with pytest.raises(TransientProviderError, match="network error"):
            await provider.complete("s", [{"role": "user", "content": "hi"}])

    async def test_unexpected_shape(self):
        provider = _provider(lambda request: httpx.Response(200, json={"choices": []}))
        with pytest.raises(TransientProviderError, match="unexpected response shape"):
            await provider.complete("s", [{"role": "user", "content": "hi"}])

    async def test_non_json_body(self):
        provider = _provider(lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(TransientProviderError):
            await provider.complete("s", [{"role": "user", "content": "hi"}])


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------


class TestAnthropicProvider:
    def _provider(self, create: AsyncMock) -> AnthropicProvider:
        provider = AnthropicProvider("sk-ant-test", model="claude-test")
        provider._client = MagicMock()
        provider._client.messages.create = create
        return provider

    async def test_joins_text_blocks(self):
        text = MagicMock(type="text", text="Hello")
        tool = MagicMock(type="tool_use")
        more = MagicMock(type="text", text=" world")
        create = AsyncMock(return_value=MagicMock(content=[text, tool, more]))
        provider = self._provider(create)

        result = await provider.complete("system", [{"role": "user", "content": "hi"}], max_tokens=10)

        assert result == "Hello world"
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["system"] == "system"
        assert kwargs["max_tokens"] == 10

    async def test_status_error(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        response = httpx.Response(429, request=request)
        create = AsyncMock(side_effect=anthropic.RateLimitError("slow down", response=response, body=None))
        provider = self._provider(create)

        with pytest.raises(TransientProviderError) as excinfo:
            await provider.complete("s", [{"role": "user", "content": "hi"}])
        assert excinfo.value.status_code == 429

    async def test_connection_error(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        create = AsyncMock(side_effect=anthropic.APIConnectionError(request=request))
        provider = self._provider(create)

        with pytest.raises(TransientProviderError):
            await provider.complete("s", [{"role": "user", "content": "hi"}])


# ---------------------------------------------------------------------------
# get_provider
# ---------------------------------------------------------------------------


class TestGetProvider:
    def test_none_without_key(self, monkeypatch):
        monkeypatch.setattr("devpilot.config.settings.deepseek_api_key", "")
        monkeypatch.setattr("devpilot.config.settings.llm_provider", "deepseek")
        assert get_provider() is None

    def test_deepseek_by_default(self, monkeypatch):
        monkeypatch.setattr("devpilot.config.settings.deepseek_api_key", "sk-test")
        monkeypatch.setattr("devpilot.config.settings.llm_provider", "deepseek")
        provider = get_provider()
        assert isinstance(provider, DeepSeekProvider)
        assert get_provider() is provider

    def test_anthropic_when_selected(self, monkeypatch):
        monkeypatch.setattr("devpilot.config.settings.anthropic_api_key", "sk-ant-test")
        monkeypatch.setattr("devpilot.config.settings.llm_provider", "anthropic")
        assert isinstance(get_provider(), AnthropicProvider)
