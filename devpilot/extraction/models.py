"""Types produced by the response code extractor."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

_DRIVE_RE = re.compile(r"^[A-Za-z]:")
_WRAPPING_CHARS = "`'\"*"


class Origin(StrEnum):
    """Which strategy produced an extracted file. Diagnostic only."""

    EXPLICIT = "explicit"
    HEURISTIC = "heuristic"
    REPAIRED = "repaired"


@dataclass(frozen=True)
class ExtractedFile:
    """One file write derived from a model response."""

    path: str
    content: str
    origin: Origin


@dataclass
class ExtractionContext:
    """What the caller knows about the request that produced the response."""

    file_path: str | None = None
    error_text: str = ""


def sanitize_path(raw: str) -> str | None:
    """Normalize a model-supplied path to a safe relative POSIX path.

    Drops wrapping quotes/backticks, drive letters, leading slashes, and
    ``.``/``..`` segments. Returns None if nothing usable is left.
    """
    path = raw.strip().strip(_WRAPPING_CHARS).strip()
    path = path.replace("\\", "/")
    path = _DRIVE_RE.sub("", path)
    parts = [part.strip() for part in path.split("/")]
    parts = [part for part in parts if part not in ("", ".", "..")]
    if not parts:
        return None
    return "/".join(parts)
