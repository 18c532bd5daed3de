"""ConversationStore: JSON-on-disk conversation memory.

Supports two layouts controlled by ``MEMORY_LAYOUT``:
- shared (default): one document (``memory_dir/memory_file``) holds every
  conversation, keyed by session id.
- per_key: one document per conversation key, with a filename derived from
  the key (typically a repository full name like ``owner/repo``).

History is a soft cache. Read and parse failures degrade to an empty
record and are logged; they never reach the caller.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from devpilot.config import settings
from devpilot.errors import MalformedPersistedState
from devpilot.fileio import atomic_write_text
from devpilot.memory.locks import FileLockMap
from devpilot.memory.models import (
    CodeHistoryEntry,
    ConversationRecord,
    ErrorFix,
    MemoryDocument,
    Message,
)

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

LAYOUTS = ("shared", "per_key")
ROLES = ("user", "assistant")

_UNSAFE_KEY_CHARS_RE = re.compile(r"[^a-z0-9\-_/.]")
_SLASH_RUN_RE = re.compile(r"/{2,}")


def key_to_filename(key: str, prefix: str = "memory_") -> str:
    """Derive a safe, flat filename for a conversation key.

    ``"Owner/My Repo"`` becomes ``"memory_owner__my_repo.json"``.
    """
    name = _UNSAFE_KEY_CHARS_RE.sub("_", key.lower())
    name = _SLASH_RUN_RE.sub("/", name).strip("/")
    parts = ["_" if part in (".", "..") else part for part in name.split("/")]
    name = "__".join(parts) or "_"
    return f"{prefix}{name}.json"


def _read_document(path: Path) -> MemoryDocument:
    if not path.exists():
        return MemoryDocument()
    raw = path.read_text("utf-8")
    try:
        return MemoryDocument.model_validate_json(raw)
    except ValidationError as exc:
        raise MalformedPersistedState(str(path), f"{exc.error_count()} validation error(s)") from exc


def _write_document(path: Path, document: MemoryDocument) -> None:
    atomic_write_text(path, document.model_dump_json(indent=2))


class ConversationStore:
    """Persists per-key message history with one writer per file at a time.

    Singleton accessed via ``ConversationStore.get()``.  Pass an explicit
    *root* for test isolation (e.g. ``tmp_path / "memory"``).
    """

    _instance: ConversationStore | None = None

    def __init__(
        self,
        root: Path | None = None,
        *,
        layout: str | None = None,
        max_messages: int | None = None,
        max_log_entries: int | None = None,
        lock_timeout: float | None = None,
        poll_interval: float | None = None,
        on_persist_error: Callable[[Path, Exception], None] | None = None,
    ) -> None:
        self.layout = layout or settings.memory_layout
        if self.layout not in LAYOUTS:
            msg = f"Unknown memory layout {self.layout!r}. Expected one of {LAYOUTS}."
            raise ValueError(msg)
        self._root = Path(root or settings.memory_dir)
        self.max_messages = max_messages or settings.memory_max_messages
        self.max_log_entries = max_log_entries or settings.memory_max_log_entries
        self._locks = FileLockMap(
            timeout=lock_timeout or settings.memory_lock_timeout_seconds,
            poll_interval=poll_interval or settings.memory_lock_poll_seconds,
        )
        self._on_persist_error = on_persist_error
        # Documents whose last save failed; they win over disk until saved.
        self._unsaved: dict[Path, MemoryDocument] = {}

    @classmethod
    def get(cls) -> ConversationStore:
        """Return the shared ConversationStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    @property
    def root(self) -> Path:
        return self._root

    @property
    def locks(self) -> FileLockMap:
        return self._locks

    # -- Paths -----------------------------------------------------------------

    def path_for(self, key: str) -> Path:
        """Backing file that holds *key*'s record."""
        if self.layout == "per_key":
            return self._root / key_to_filename(key, settings.memory_file_prefix)
        return self._root / settings.memory_file

    def _document_paths(self) -> list[Path]:
        if self.layout == "per_key":
            return sorted(self._root.glob(f"{settings.memory_file_prefix}*.json"))
        return [self._root / settings.memory_file]

    # -- Document I/O ----------------------------------------------------------

    async def _load_document(self, path: Path) -> MemoryDocument:
        unsaved = self._unsaved.get(path)
        if unsaved is not None:
            return unsaved.model_copy(deep=True)
        try:
            return await asyncio.to_thread(_read_document, path)
        except MalformedPersistedState as exc:
            logger.warning("%s; treating as empty", exc)
        except (OSError, UnicodeDecodeError):
            logger.exception("Failed to read memory document %s", path)
        return MemoryDocument()

    async def _save_document(self, path: Path, document: MemoryDocument) -> bool:
        try:
            await asyncio.to_thread(_write_document, path, document)
        except (OSError, ValueError) as exc:
            logger.exception("Failed to persist memory document %s", path)
            self._unsaved[path] = document.model_copy(deep=True)
            if self._on_persist_error is not None:
                self._on_persist_error(path, exc)
            return False
        self._unsaved.pop(path, None)
        return True

    def _trim_logs(self, document: MemoryDocument) -> None:
        document.error_fixes = document.error_fixes[-self.max_log_entries :]
        document.code_history = document.code_history[-self.max_log_entries :]

    # -- Read ------------------------------------------------------------------

    async def load(self, key: str) -> ConversationRecord:
        """Return *key*'s record, or an empty one if there is no usable history."""
        document = await self._load_document(self.path_for(key))
        record = document.conversations.get(key)
        if record is None:
            return ConversationRecord(key=key)
        return record

    async def recent_context(self, key: str, n: int) -> list[Message]:
        """Return the last *n* messages for *key* in conversational order."""
        record = await self.load(key)
        return record.recent(n)

    async def stats(self, key: str | None = None) -> dict[str, Any]:
        """Totals across the store, plus *key*'s record when given."""
        conversations = 0
        error_fixes = 0
        code_history = 0
        for path in self._document_paths():
            document = await self._load_document(path)
            conversations += len(document.conversations)
            error_fixes += len(document.error_fixes)
            code_history += len(document.code_history)

        result: dict[str, Any] = {
            "total_conversations": conversations,
            "total_error_fixes": error_fixes,
            "total_code_history": code_history,
        }
        if key is not None:
            document = await self._load_document(self.path_for(key))
            record = document.conversations.get(key)
            result["conversation"] = record.model_dump() if record else None
        return result

    # -- Write -----------------------------------------------------------------

    async def append(
        self,
        key: str,
        role: str,
        content: str,
        metadata: dict[str, Any] | None = None,
        *,
        repository: str | None = None,
    ) -> ConversationRecord:
        """Append one message to *key*'s history and persist it."""
        message = self._make_message(role, content, metadata)
        return await self._append_messages(key, [message], repository)

    async def append_turn(
        self,
        key: str,
        user_content: str,
        assistant_content: str,
        *,
        repository: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ConversationRecord:
        """Append a user message and the assistant's reply under one lock."""
        messages = [
            self._make_message("user", user_content, None),
            self._make_message("assistant", assistant_content, metadata),
        ]
        return await self._append_messages(key, messages, repository)

    async def save(self, record: ConversationRecord) -> ConversationRecord:
        """Replace *record.key*'s stored record wholesale (trimmed to the cap)."""
        stored = record.model_copy(deep=True)
        stored.trim(self.max_messages)
        path = self.path_for(record.key)
        async with self._locks.lock(path, owner=f"save:{record.key}"):
            document = await self._load_document(path)
            document.conversations[record.key] = stored
            await self._save_document(path, document)
        return stored

    async def clear(self, key: str) -> bool:
        """Remove *key*'s record. Returns False if there was nothing to clear."""
        path = self.path_for(key)
        async with self._locks.lock(path, owner=f"clear:{key}"):
            document = await self._load_document(path)
            if document.conversations.pop(key, None) is None:
                return False
            await self._save_document(path, document)
        logger.info("Cleared conversation %s", key)
        return True

    async def clear_all(self) -> int:
        """Remove every conversation. Returns how many were removed."""
        removed = 0
        for path in self._document_paths():
            async with self._locks.lock(path, owner="clear_all"):
                document = await self._load_document(path)
                removed += len(document.conversations)
                document.conversations = {}
                await self._save_document(path, document)
        logger.info("Cleared %d conversation(s)", removed)
        return removed

    async def record_error_fix(self, key: str, fix: ErrorFix) -> None:
        """Append to the error-fix log of the document holding *key*."""
        path = self.path_for(key)
        async with self._locks.lock(path, owner=f"error_fix:{key}"):
            document = await self._load_document(path)
            document.error_fixes.append(fix)
            self._trim_logs(document)
            await self._save_document(path, document)

    async def record_code_history(self, key: str, entry: CodeHistoryEntry) -> None:
        """Append to the code-history log of the document holding *key*."""
        path = self.path_for(key)
        async with self._locks.lock(path, owner=f"code_history:{key}"):
            document = await self._load_document(path)
            document.code_history.append(entry)
            self._trim_logs(document)
            await self._save_document(path, document)

    # -- Internal helpers ------------------------------------------------------

    @staticmethod
    def _make_message(role: str, content: str, metadata: dict[str, Any] | None) -> Message:
        if role not in ROLES:
            msg = f"Invalid role {role!r}. Expected one of {ROLES}."
            raise ValueError(msg)
        return Message(role=role, content=content, metadata=metadata or {})

    async def _append_messages(
        self,
        key: str,
        messages: list[Message],
        repository: str | None,
    ) -> ConversationRecord:
        path = self.path_for(key)
        async with self._locks.lock(path, owner=f"append:{key}"):
            document = await self._load_document(path)
            record = document.conversations.get(key)
            if record is None:
                record = ConversationRecord(key=key)
                document.conversations[key] = record
            record.messages.extend(messages)
            record.total_conversations += len(messages)
            record.trim(self.max_messages)
            record.last_updated = datetime.now(UTC).isoformat()
            if repository is not None:
                record.repository = repository
            await self._save_document(path, document)
        logger.debug("Appended %d message(s) to %s", len(messages), key)
        return record.model_copy(deep=True)
