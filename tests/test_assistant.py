"""Tests for the Assistant service."""

from unittest.mock import AsyncMock

import pytest

from devpilot.apply import LocalFileTarget
from devpilot.assistant import Assistant
from devpilot.errors import ProviderNotConfiguredError, TransientProviderError


class FakeProvider:
    """Completion provider that returns canned text."""

    name = "fake"
    code_model = "fake-coder"

    def __init__(self, reply: str = "canned reply") -> None:
        self.complete = AsyncMock(return_value=reply)


DIRECTIVE_REPLY = """PROBLEM: Server never listens.
SOLUTION: Add app.listen.

FILES_TO_MODIFY:
- FILE: server.js
  CONTENT: const app = require('express')();
app.listen(3000);
"""


@pytest.fixture()
def workspace(tmp_path):
    return tmp_path / "workspace"


def _assistant(store, workspace, provider=None) -> Assistant:
    return Assistant(store=store, provider=provider, target=LocalFileTarget(workspace))


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


async def test_chat_without_provider_uses_fallback(store, workspace) -> None:
    assistant = _assistant(store, workspace)

    reply = await assistant.chat("hello there", session_id="s1")

    assert reply.source == "fallback"
    assert reply.response.startswith("[fallback]")
    assert "hello there" in reply.response
    assert reply.message_count == 2
    record = await store.load("s1")
    assert [m.role for m in record.messages] == ["user", "assistant"]
    assert record.messages[1].metadata == {"source": "fallback"}


async def test_chat_with_provider(store, workspace) -> None:
    provider = FakeProvider("use a debounce")
    assistant = _assistant(store, workspace, provider)

    reply = await assistant.chat("how do I throttle input?", session_id="s1")

    assert reply.response == "use a debounce"
    assert reply.source == "fake"
    args, kwargs = provider.complete.call_args
    assert args[1] == [{"role": "user", "content": "how do I throttle input?"}]
    assert kwargs["max_tokens"] == 1000


async def test_chat_includes_recent_history(store, workspace) -> None:
    provider = FakeProvider("second answer")
    assistant = _assistant(store, workspace, provider)
    await store.append_turn("s1", "first question", "first answer")

    await assistant.chat("follow up", session_id="s1")

    content = provider.complete.call_args.args[1][0]["content"]
    assert "User: first question" in content
    assert "AI: first answer" in content
    assert content.endswith("Current message: follow up")


async def test_chat_provider_failure_falls_back(store, workspace) -> None:
    provider = FakeProvider()
    provider.complete.side_effect = TransientProviderError("fake", "timed out after 30s")
    assistant = _assistant(store, workspace, provider)

    reply = await assistant.chat("hello", session_id="s1")

    assert reply.source == "fallback"
    assert "trouble connecting" in reply.response
    assert len((await store.load("s1")).messages) == 2


async def test_chat_keyed_by_repository(store, workspace) -> None:
    assistant = _assistant(store, workspace, FakeProvider())

    reply = await assistant.chat("hi", session_id="s1", repository="owner/repo")

    assert reply.repository == "owner/repo"
    record = await store.load("owner/repo")
    assert record.repository == "owner/repo"
    assert (await store.load("s1")).messages == []


async def test_chat_requires_message(store, workspace) -> None:
    with pytest.raises(ValueError, match="Message is required"):
        await _assistant(store, workspace).chat("   ")


# ---------------------------------------------------------------------------
# Fix
# ---------------------------------------------------------------------------


async def test_fix_analyze_does_not_write(store, workspace) -> None:
    provider = FakeProvider(DIRECTIVE_REPLY)
    assistant = _assistant(store, workspace, provider)

    report = await assistant.fix("TypeError: app.listen is not a function", session_id="s1")

    assert report.solution == DIRECTIVE_REPLY
    assert report.applied is False
    assert not workspace.exists()
    assert provider.complete.call_args.kwargs["model"] == "fake-coder"
    assert (await store.stats())["total_error_fixes"] == 1


async def test_fix_and_apply_writes_files(store, workspace) -> None:
    assistant = _assistant(store, workspace, FakeProvider(DIRECTIVE_REPLY))

    report = await assistant.fix("server does not start", action="fix_and_apply")

    assert report.applied is True
    assert report.files_changed == ["server.js"]
    assert report.fixed_code == "const app = require('express')();\napp.listen(3000);"
    assert (workspace / "server.js").read_text("utf-8") == report.fixed_code


async def test_auto_fix_with_nothing_to_apply(store, workspace) -> None:
    prose = "Restart the dev server and clear node_modules."
    assistant = _assistant(store, workspace, FakeProvider(prose))

    report = await assistant.fix("weird crash", action="auto_fix")

    assert report.applied is False
    assert report.files_changed == []
    assert report.solution == prose
    assert not workspace.exists()


async def test_fix_repairs_config_file(store, workspace) -> None:
    reply = 'The trailing comma breaks it. Use:\n```json\n{"version": 2, "builds": [],}\n```'
    assistant = _assistant(store, workspace, FakeProvider(reply))

    report = await assistant.fix("vercel.json: Unexpected token }", action="fix_and_apply")

    assert report.files_changed == ["vercel.json"]
    assert not (workspace / "fix0.js").exists()
    assert (workspace / "vercel.json").read_text("utf-8") == '{\n  "version": 2,\n  "builds": []\n}\n'


async def test_fix_uses_caller_file_path(store, workspace) -> None:
    reply = "```js\nexport const add = (a, b) => a + b;\n```"
    assistant = _assistant(store, workspace, FakeProvider(reply))

    report = await assistant.fix("add is not exported", action="auto_fix", file_path="src/math.js")

    assert report.files_changed == ["src/math.js"]
    assert (workspace / "src" / "math.js").exists()


async def test_fix_with_custom_target(store, workspace) -> None:
    target = AsyncMock()
    target.write.return_value = "https://github.com/owner/repo/commit/1"
    assistant = _assistant(store, workspace, FakeProvider(DIRECTIVE_REPLY))

    report = await assistant.fix("boom", action="fix_and_apply", target=target)

    assert report.files_changed == ["server.js"]
    target.write.assert_awaited_once()
    assert not workspace.exists()


async def test_fix_requires_provider(store, workspace) -> None:
    with pytest.raises(ProviderNotConfiguredError):
        await _assistant(store, workspace).fix("TypeError")


async def test_fix_propagates_provider_failure(store, workspace) -> None:
    provider = FakeProvider()
    provider.complete.side_effect = TransientProviderError("fake", "non-success response", status_code=503)

    with pytest.raises(TransientProviderError):
        await _assistant(store, workspace, provider).fix("TypeError")
    assert (await store.stats())["total_error_fixes"] == 0


async def test_fix_rejects_unknown_action(store, workspace) -> None:
    with pytest.raises(ValueError, match="Unknown action"):
        await _assistant(store, workspace, FakeProvider()).fix("TypeError", action="delete_everything")


async def test_fix_requires_error(store, workspace) -> None:
    with pytest.raises(ValueError, match="Error description is required"):
        await _assistant(store, workspace, FakeProvider()).fix("")


# ---------------------------------------------------------------------------
# Code generation
# ---------------------------------------------------------------------------


async def test_generate_code_returns_raw_text(store, workspace) -> None:
    provider = FakeProvider("```ts\nexport const debounce = () => {};\n```")
    assistant = _assistant(store, workspace, provider)

    code = await assistant.generate_code("debounce helper", language="typescript", session_id="s1")

    assert code == "```ts\nexport const debounce = () => {};\n```"
    args, kwargs = provider.complete.call_args
    assert "typescript" in args[0]
    assert args[1] == [{"role": "user", "content": "debounce helper"}]
    assert kwargs["model"] == "fake-coder"
    assert kwargs["temperature"] == 0.3
    assert kwargs["max_tokens"] == 2000
    assert (await store.stats())["total_code_history"] == 1
    assert not workspace.exists()


async def test_generate_code_for_repository(store, workspace) -> None:
    provider = FakeProvider("code")
    assistant = _assistant(store, workspace, provider)

    await assistant.generate_code("add a route", repository="owner/repo")

    args, kwargs = provider.complete.call_args
    assert "owner/repo" in args[0]
    assert kwargs["temperature"] == 0.7


async def test_generate_code_with_preset(store, workspace) -> None:
    provider = FakeProvider("faster code")
    assistant = _assistant(store, workspace, provider)

    await assistant.generate_code("for (var i in a) s += a[i]", preset="optimize")

    content = provider.complete.call_args.args[1][0]["content"]
    assert content.startswith("Optimize this code")
    assert "for (var i in a) s += a[i]" in content


async def test_generate_code_unknown_preset(store, workspace) -> None:
    provider = FakeProvider()
    with pytest.raises(ValueError, match="Unknown preset"):
        await _assistant(store, workspace, provider).generate_code("x", preset="rewrite")
    provider.complete.assert_not_awaited()


async def test_generate_code_requires_provider(store, workspace) -> None:
    with pytest.raises(ProviderNotConfiguredError):
        await _assistant(store, workspace).generate_code("debounce helper")


async def test_generate_code_requires_prompt(store, workspace) -> None:
    with pytest.raises(ValueError, match="Prompt is required"):
        await _assistant(store, workspace, FakeProvider()).generate_code("  ")


# ---------------------------------------------------------------------------
# Web app generation
# ---------------------------------------------------------------------------


async def test_create_webapp_writes_index(store, workspace) -> None:
    reply = (
        "SOLUTION: A timer.\n\nFILES_TO_MODIFY:\n- FILE: public/index.html\n"
        "  CONTENT: <!DOCTYPE html>\n<html><body>timer</body></html>\n"
    )
    assistant = _assistant(store, workspace, FakeProvider(reply))

    report = await assistant.create_webapp("pomodoro timer", session_id="s1")

    assert report.created is True
    assert report.files_created == ["public/index.html"]
    assert "timer" in (workspace / "public" / "index.html").read_text("utf-8")
    assert (await store.stats())["total_code_history"] == 1


async def test_create_webapp_from_bare_html_block(store, workspace) -> None:
    reply = "```html\n<!DOCTYPE html>\n<html><body>todo</body></html>\n```"
    assistant = _assistant(store, workspace, FakeProvider(reply))

    report = await assistant.create_webapp("todo list")

    assert report.files_created == ["public/index.html"]


async def test_create_webapp_requires_idea(store, workspace) -> None:
    with pytest.raises(ValueError, match="App idea is required"):
        await _assistant(store, workspace, FakeProvider()).create_webapp("")


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------


async def test_clear_one_and_all(store, workspace) -> None:
    assistant = _assistant(store, workspace)
    await assistant.chat("a", session_id="s1")
    await assistant.chat("b", session_id="s2")

    assert await assistant.clear("s1") == 1
    assert await assistant.clear("s1") == 0
    assert await assistant.clear() == 1


async def test_memory_stats(store, workspace) -> None:
    assistant = _assistant(store, workspace)
    await assistant.chat("a", session_id="s1")

    stats = await assistant.memory_stats("s1")

    assert stats["total_conversations"] == 1
    assert len(stats["conversation"]["messages"]) == 2


def test_from_settings_uses_shared_store(store, monkeypatch) -> None:
    monkeypatch.setattr("devpilot.config.settings.deepseek_api_key", "")
    monkeypatch.setattr("devpilot.config.settings.llm_provider", "deepseek")
    assistant = Assistant.from_settings()
    assert assistant.store is store
    assert assistant.provider is None
