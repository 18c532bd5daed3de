"""Persisted conversation memory."""

from devpilot.memory.locks import FileLockMap, LockToken
from devpilot.memory.models import (
    CodeHistoryEntry,
    ConversationRecord,
    ErrorFix,
    MemoryDocument,
    Message,
)
from devpilot.memory.store import ConversationStore, key_to_filename

__all__ = [
    "CodeHistoryEntry",
    "ConversationRecord",
    "ConversationStore",
    "ErrorFix",
    "FileLockMap",
    "LockToken",
    "MemoryDocument",
    "Message",
    "key_to_filename",
]
