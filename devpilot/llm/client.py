"""Completion providers: a single-shot chat completion behind one interface."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import anthropic
import httpx

from devpilot.config import settings
from devpilot.errors import TransientProviderError

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.7


class CompletionProvider(Protocol):
    """Black-box text completion."""

    name: str
    code_model: str | None

    async def complete(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        model: str | None = None,
    ) -> str: ...


class DeepSeekProvider:
    """OpenAI-compatible ``/chat/completions`` over httpx."""

    name = "deepseek"

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = (base_url or settings.deepseek_base_url).rstrip("/")
        self.model = model or settings.deepseek_chat_model
        self.code_model = settings.deepseek_coder_model
        self._timeout = timeout or settings.provider_timeout_seconds
        self._transport = transport

    async def complete(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        model: str | None = None,
    ) -> str:
        payload: dict[str, Any] = {
            "model": model or self.model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(f"{self._base_url}/chat/completions", json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransientProviderError(self.name, f"timed out after {self._timeout:.0f}s") from exc
        except httpx.HTTPError as exc:
            raise TransientProviderError(self.name, f"network error: {exc}") from exc

        if resp.status_code != 200:
            logger.warning("DeepSeek returned %d: %s", resp.status_code, resp.text[:200])
            raise TransientProviderError(self.name, "non-success response", status_code=resp.status_code)

        try:
            return resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise TransientProviderError(self.name, "unexpected response shape") from exc


class AnthropicProvider:
    """Claude via the Anthropic SDK."""

    name = "anthropic"

    def __init__(self, api_key: str, model: str | None = None, timeout: float | None = None) -> None:
        self.model = model or settings.anthropic_model
        self.code_model = self.model
        self._client = anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=timeout or settings.provider_timeout_seconds,
        )

    async def complete(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        model: str | None = None,
    ) -> str:
        try:
            response = await self._client.messages.create(
                model=model or self.model,
                system=system_prompt,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except anthropic.APIStatusError as exc:
            raise TransientProviderError(self.name, exc.message, status_code=exc.status_code) from exc
        except anthropic.APIError as exc:
            raise TransientProviderError(self.name, str(exc)) from exc
        return "".join(block.text for block in response.content if block.type == "text")


_provider: CompletionProvider | None = None


def get_provider() -> CompletionProvider | None:
    """Lazily build the configured provider. None when no API key is set."""
    global _provider  # noqa: PLW0603
    if _provider is None and settings.has_provider_key():
        if settings.llm_provider == "anthropic":
            _provider = AnthropicProvider(settings.anthropic_api_key)
        else:
            _provider = DeepSeekProvider(settings.deepseek_api_key)
        logger.info("Completion provider: %s", _provider.name)
    return _provider


def _reset_provider() -> None:
    """Drop the cached provider (for testing)."""
    global _provider  # noqa: PLW0603
    _provider = None
