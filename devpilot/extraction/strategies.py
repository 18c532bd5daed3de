"""Extraction strategies, tried in fixed priority order by the extractor.

- DirectiveStrategy: an explicit ``FILES_TO_MODIFY:`` section with
  ``- FILE:`` / ``CONTENT:`` entries.
- FencedBlockStrategy: triple-backtick blocks named by content sniffing.
- StructuredDataRepairStrategy: a JSON config recovered from loosely
  formatted model output, only when the request is about such a file.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from devpilot.extraction.models import ExtractedFile, ExtractionContext, Origin
from devpilot.extraction.rules import DEFAULT_RULES, HeuristicRule, match_rule

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[ \t]*(?P<lang>[\w.+#-]*)[^\n`]*\n?(?P<body>.*?)```", re.DOTALL)
_DIRECTIVE_HEADER_RE = re.compile(r"FILES_TO_MODIFY\s*:", re.IGNORECASE)
_DIRECTIVE_ENTRY_RE = re.compile(
    r"^[ \t]*-[ \t]*FILE:[ \t]*(?P<path>[^\n]+?)\s+CONTENT:[ \t]*(?P<body>.*?)"
    r"(?=^[ \t]*-[ \t]*FILE:|\Z)",
    re.DOTALL | re.MULTILINE,
)
_REPAIR_TRIGGER_RE = re.compile(r"json|vercel|parse|tsconfig|manifest", re.IGNORECASE)
_JSON_LANGS = frozenset({"json", "jsonc", "json5"})

# A JSON string literal is matched first so comment markers and commas
# inside strings are left alone.
_STRING = r'("(?:\\.|[^"\\])*")'
_COMMENT_RE = re.compile(_STRING + r"|//[^\n]*|/\*.*?\*/", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(_STRING + r"|,(?=\s*[}\]])")


@dataclass(frozen=True)
class FencedBlock:
    lang: str
    code: str
    start: int
    end: int


def find_fenced_blocks(text: str) -> list[FencedBlock]:
    """All fenced blocks in *text*, fence markers and language tag removed."""
    return [
        FencedBlock(
            lang=match.group("lang").lower(),
            code=match.group("body").strip(),
            start=match.start(),
            end=match.end(),
        )
        for match in _FENCE_RE.finditer(text)
    ]


def unwrap_fence(body: str) -> str:
    """Return the code of the first fenced block in *body*, or the stripped body.

    Prose around the fence (an explanation after the last entry, a lead-in
    to the next one) is dropped with the fence markers.
    """
    for block in find_fenced_blocks(body):
        if block.code:
            return block.code
    return body.strip()


def find_brace_fragment(text: str) -> str | None:
    """Return the first balanced top-level ``{...}`` fragment in *text*."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        start = text.find("{", start + 1)
    return None


def normalize_json(text: str) -> str:
    """Remove comments and trailing commas, leaving string literals intact."""
    text = _COMMENT_RE.sub(lambda m: m.group(1) or "", text)
    text = _TRAILING_COMMA_RE.sub(lambda m: m.group(1) or "", text)
    return text.strip()


def parse_json_candidate(text: str) -> dict | list | None:
    """Parse *text* as a loose JSON object or array. None if it is not one."""
    try:
        value = json.loads(normalize_json(text))
    except json.JSONDecodeError as exc:
        logger.debug("Skipping JSON candidate: %s", exc)
        return None
    if not isinstance(value, dict | list):
        return None
    return value


class ExtractionStrategy(ABC):
    """One way of turning a model response into file writes."""

    name: str = ""
    # Fallback strategies only run when no explicit directive was found.
    fallback: bool = True

    @abstractmethod
    def extract(self, text: str, context: ExtractionContext) -> list[ExtractedFile]:
        """Return the files found in *text*. Must not raise on odd input."""
        ...


class DirectiveStrategy(ExtractionStrategy):
    """Parse the ``FILES_TO_MODIFY:`` section the prompts ask the model for."""

    name = "directive"
    fallback = False

    def extract(self, text: str, context: ExtractionContext) -> list[ExtractedFile]:
        header = _DIRECTIVE_HEADER_RE.search(text)
        if header is None:
            return []

        section = text[header.end() :]
        files: list[ExtractedFile] = []
        for match in _DIRECTIVE_ENTRY_RE.finditer(section):
            path = match.group("path").strip()
            content = unwrap_fence(match.group("body"))
            if not path or not content:
                logger.debug("Skipping directive entry with empty path or content")
                continue
            files.append(ExtractedFile(path=path, content=content, origin=Origin.EXPLICIT))

        return files


class FencedBlockStrategy(ExtractionStrategy):
    """Name each fenced block with the rule table, then the caller's path, then ``fix<N>.js``.

    JSON blocks are left to structured data repair when the request is about a config file.
    """

    name = "fenced_block"

    def __init__(self, rules: tuple[HeuristicRule, ...] = DEFAULT_RULES) -> None:
        self.rules = rules

    def resolve_target(self, code: str, context: ExtractionContext, fallback_index: int) -> tuple[str, bool]:
        """Return (target, used_fallback_name)."""
        rule = match_rule(code, self.rules)
        if rule is not None:
            return rule.target, False
        if context.file_path:
            return context.file_path, False
        return f"fix{fallback_index}.js", True

    def extract(self, text: str, context: ExtractionContext) -> list[ExtractedFile]:
        files: list[ExtractedFile] = []
        fallback_index = 0
        leave_json = StructuredDataRepairStrategy.applies_to(context)
        for block in find_fenced_blocks(text):
            if not block.code:
                continue
            if leave_json and parse_json_candidate(block.code) is not None:
                logger.debug("Leaving JSON block to structured data repair")
                continue
            target, used_fallback = self.resolve_target(block.code, context, fallback_index)
            if used_fallback:
                fallback_index += 1
            files.append(ExtractedFile(path=target, content=block.code, origin=Origin.HEURISTIC))
        return files


class StructuredDataRepairStrategy(ExtractionStrategy):
    """Recover a JSON config file when the error is about one."""

    name = "structured_data_repair"

    @staticmethod
    def applies_to(context: ExtractionContext) -> bool:
        return bool(context.error_text) and _REPAIR_TRIGGER_RE.search(context.error_text) is not None

    @staticmethod
    def target_for(error_text: str) -> str:
        lowered = error_text.lower()
        if "package" in lowered:
            return "package.json"
        if "tsconfig" in lowered:
            return "tsconfig.json"
        return "vercel.json"

    @staticmethod
    def candidates(text: str) -> list[str]:
        blocks = find_fenced_blocks(text)
        tagged = [b.code for b in blocks if b.lang in _JSON_LANGS]
        untagged = [b.code for b in blocks if b.lang not in _JSON_LANGS]
        result = tagged + untagged
        fragment = find_brace_fragment(text)
        if fragment is not None:
            result.append(fragment)
        return result

    def extract(self, text: str, context: ExtractionContext) -> list[ExtractedFile]:
        if not self.applies_to(context):
            return []

        for candidate in self.candidates(text):
            value = parse_json_candidate(candidate)
            if value is None:
                continue
            target = self.target_for(context.error_text)
            content = json.dumps(value, indent=2) + "\n"
            return [ExtractedFile(path=target, content=content, origin=Origin.REPAIRED)]

        return []
