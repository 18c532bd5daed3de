"""Assistant service: chat turns, error fixes, code and app generation.

Ties the conversation store, the completion provider, the response
extractor, and an apply target together. HTTP or CLI front ends call
into this layer; it holds no transport concerns of its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from devpilot.apply import LocalFileTarget, apply_files
from devpilot.config import settings
from devpilot.errors import ProviderNotConfiguredError, TransientProviderError
from devpilot.extraction import ExtractionContext, ResponseCodeExtractor
from devpilot.llm.client import get_provider
from devpilot.llm.prompt import (
    ANALYZE_SYSTEM_PROMPT,
    FIX_SYSTEM_PROMPT,
    WEBAPP_SYSTEM_PROMPT,
    chat_system_prompt,
    code_system_prompt,
    code_user_prompt,
    contextual_prompt,
    fix_user_prompt,
    webapp_user_prompt,
)
from devpilot.memory.models import CodeHistoryEntry, ErrorFix
from devpilot.memory.store import ConversationStore

if TYPE_CHECKING:
    from devpilot.apply import ApplyTarget
    from devpilot.llm.client import CompletionProvider

logger = logging.getLogger(__name__)

FIX_ACTIONS = ("analyze", "auto_fix", "fix_and_apply")
APPLY_ACTIONS = ("auto_fix", "fix_and_apply")

NO_PROVIDER_FALLBACK = (
    '[fallback] I received your message: "{message}"\n\n'
    "To enable full AI features, configure an API key for the completion provider."
)
PROVIDER_FAILED_FALLBACK = (
    "[fallback] I'm having trouble connecting to the AI service right now. "
    'Here\'s what I can help with based on your message: "{message}"\n\n'
    "Please try again or rephrase your question."
)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class ChatReply:
    response: str
    source: str
    session_id: str
    message_count: int
    repository: str | None = None
    timestamp: str = field(default_factory=_now_iso)


@dataclass
class FixReport:
    """Outcome of a fix request. ``solution`` is always the raw model text."""

    solution: str
    action: str
    applied: bool = False
    files_changed: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)
    fixed_code: str | None = None
    timestamp: str = field(default_factory=_now_iso)


@dataclass
class WebAppReport:
    solution: str
    created: bool = False
    files_created: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)
    timestamp: str = field(default_factory=_now_iso)


class Assistant:
    """Orchestrates one request at a time against the shared store."""

    def __init__(
        self,
        store: ConversationStore,
        provider: CompletionProvider | None,
        extractor: ResponseCodeExtractor | None = None,
        target: ApplyTarget | None = None,
    ) -> None:
        self.store = store
        self.provider = provider
        self.extractor = extractor or ResponseCodeExtractor()
        self.target = target or LocalFileTarget()

    @classmethod
    def from_settings(cls) -> Assistant:
        return cls(store=ConversationStore.get(), provider=get_provider())

    def _require_provider(self) -> CompletionProvider:
        if self.provider is None:
            raise ProviderNotConfiguredError(settings.llm_provider)
        return self.provider

    # -- Chat ------------------------------------------------------------------

    async def chat(
        self,
        message: str,
        session_id: str = "default",
        repository: str | None = None,
    ) -> ChatReply:
        """Answer *message* using recent history, then record the turn.

        The conversation is keyed by *repository* when given, else by
        *session_id*. Provider trouble yields a labeled fallback reply.
        """
        if not message or not message.strip():
            msg = "Message is required"
            raise ValueError(msg)

        key = repository or session_id
        history = await self.store.recent_context(key, settings.chat_context_messages)

        if self.provider is None:
            response = NO_PROVIDER_FALLBACK.format(message=message)
            source = "fallback"
        else:
            try:
                response = await self.provider.complete(
                    chat_system_prompt(repository),
                    [{"role": "user", "content": contextual_prompt(message, history)}],
                    max_tokens=1000,
                    temperature=0.7,
                )
                source = self.provider.name
            except TransientProviderError as exc:
                logger.warning("Chat provider call failed: %s", exc)
                response = PROVIDER_FAILED_FALLBACK.format(message=message)
                source = "fallback"

        record = await self.store.append_turn(
            key,
            message,
            response,
            repository=repository,
            metadata={"source": source},
        )
        return ChatReply(
            response=response,
            source=source,
            session_id=session_id,
            message_count=len(record.messages),
            repository=repository,
        )

    # -- Fix -------------------------------------------------------------------

    async def fix(
        self,
        error: str,
        description: str | None = None,
        action: str = "analyze",
        file_path: str | None = None,
        session_id: str = "default",
        target: ApplyTarget | None = None,
    ) -> FixReport:
        """Ask for a fix and, for apply actions, write the extracted files.

        Raises ProviderNotConfiguredError without a provider and lets
        TransientProviderError through so the caller can retry.
        """
        if not error or not error.strip():
            msg = "Error description is required"
            raise ValueError(msg)
        if action not in FIX_ACTIONS:
            msg = f"Unknown action {action!r}. Expected one of {FIX_ACTIONS}."
            raise ValueError(msg)

        provider = self._require_provider()
        wants_apply = action in APPLY_ACTIONS
        solution = await provider.complete(
            FIX_SYSTEM_PROMPT if wants_apply else ANALYZE_SYSTEM_PROMPT,
            [{"role": "user", "content": fix_user_prompt(error, description, file_path, apply=wants_apply)}],
            max_tokens=2000,
            temperature=0.3,
            model=provider.code_model,
        )

        await self.store.record_error_fix(
            session_id,
            ErrorFix(error=error, solution=solution, action=action, file_path=file_path, session_id=session_id),
        )

        report = FixReport(solution=solution, action=action)
        if not wants_apply:
            return report

        context = ExtractionContext(file_path=file_path, error_text=f"{error}\n{description or ''}")
        files = self.extractor.extract(solution, context)
        if not files:
            logger.info("Fix for %r produced no applicable files", error[:80])
            return report

        result = await apply_files(files, target or self.target)
        written = [f for f in files if f.path in result.written]
        report.applied = result.applied
        report.files_changed = result.written
        report.failed = result.failed
        report.fixed_code = written[-1].content if written else None
        return report

    # -- Generation ------------------------------------------------------------

    async def generate_code(
        self,
        prompt: str,
        language: str = "javascript",
        preset: str | None = None,
        repository: str | None = None,
        session_id: str = "default",
    ) -> str:
        """Generate *language* code for *prompt* and return the model's text as-is.

        *preset* wraps the prompt in one of ``CODE_PRESETS``. With a
        *repository* the request is framed for that repository and sampled
        a little more freely.
        """
        if not prompt or not prompt.strip():
            msg = "Prompt is required"
            raise ValueError(msg)
        user_prompt = code_user_prompt(prompt, preset)

        provider = self._require_provider()
        code = await provider.complete(
            code_system_prompt(language, repository),
            [{"role": "user", "content": user_prompt}],
            max_tokens=2000,
            temperature=0.7 if repository else 0.3,
            model=provider.code_model,
        )

        await self.store.record_code_history(
            repository or session_id,
            CodeHistoryEntry(
                kind="code_generation",
                prompt=prompt,
                solution=code,
                session_id=session_id,
            ),
        )
        return code

    async def create_webapp(
        self,
        idea: str,
        description: str = "",
        session_id: str = "default",
        target: ApplyTarget | None = None,
    ) -> WebAppReport:
        """Generate a single-page web app and write its files."""
        if not idea or not idea.strip():
            msg = "App idea is required"
            raise ValueError(msg)

        provider = self._require_provider()
        solution = await provider.complete(
            WEBAPP_SYSTEM_PROMPT,
            [{"role": "user", "content": webapp_user_prompt(idea, description)}],
            max_tokens=4000,
            temperature=0.7,
            model=provider.code_model,
        )

        files = self.extractor.extract(solution)
        result = await apply_files(files, target or self.target)

        await self.store.record_code_history(
            session_id,
            CodeHistoryEntry(
                kind="webapp_creation",
                prompt=idea,
                solution=solution,
                files=result.written,
                session_id=session_id,
            ),
        )
        return WebAppReport(
            solution=solution,
            created=result.applied,
            files_created=result.written,
            failed=result.failed,
        )

    # -- Memory ----------------------------------------------------------------

    async def memory_stats(self, key: str | None = None) -> dict[str, Any]:
        return await self.store.stats(key)

    async def clear(self, key: str | None = None) -> int:
        """Clear one conversation (returns 0 or 1) or all of them."""
        if key is None:
            return await self.store.clear_all()
        return 1 if await self.store.clear(key) else 0
