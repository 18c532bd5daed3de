"""Data models for persisted conversation memory."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

Role = Literal["user", "assistant"]


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class Message(BaseModel):
    """A single conversation message."""

    role: Role
    content: str
    timestamp: str = Field(default_factory=utc_now_iso)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ConversationRecord(BaseModel):
    """Message history for one conversation key."""

    key: str
    messages: list[Message] = Field(default_factory=list)
    created: str = Field(default_factory=utc_now_iso)
    last_updated: str = Field(default_factory=utc_now_iso)
    total_conversations: int = 0
    repository: str | None = None

    def trim(self, max_messages: int) -> None:
        """Keep only the most recent *max_messages* messages."""
        if len(self.messages) > max_messages:
            self.messages = self.messages[-max_messages:]

    def recent(self, n: int) -> list[Message]:
        if n <= 0:
            return []
        return list(self.messages[-n:])


class ErrorFix(BaseModel):
    """A fix suggested by the model for a reported error."""

    timestamp: str = Field(default_factory=utc_now_iso)
    error: str
    solution: str
    action: str = "analyze"
    file_path: str | None = None
    session_id: str = "default"


class CodeHistoryEntry(BaseModel):
    """A generation run that produced files (e.g. a web app)."""

    timestamp: str = Field(default_factory=utc_now_iso)
    kind: str
    prompt: str
    solution: str = ""
    files: list[str] = Field(default_factory=list)
    session_id: str = "default"


class MemoryDocument(BaseModel):
    """Durable form of one store file."""

    conversations: dict[str, ConversationRecord] = Field(default_factory=dict)
    error_fixes: list[ErrorFix] = Field(default_factory=list)
    code_history: list[CodeHistoryEntry] = Field(default_factory=list)
