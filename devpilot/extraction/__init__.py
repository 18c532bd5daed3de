"""Extraction of file writes from model responses."""

from devpilot.extraction.extractor import ResponseCodeExtractor, default_strategies
from devpilot.extraction.models import ExtractedFile, ExtractionContext, Origin, sanitize_path
from devpilot.extraction.rules import DEFAULT_RULES, HeuristicRule, match_rule
from devpilot.extraction.strategies import (
    DirectiveStrategy,
    ExtractionStrategy,
    FencedBlockStrategy,
    StructuredDataRepairStrategy,
)

__all__ = [
    "DEFAULT_RULES",
    "DirectiveStrategy",
    "ExtractedFile",
    "ExtractionContext",
    "ExtractionStrategy",
    "FencedBlockStrategy",
    "HeuristicRule",
    "Origin",
    "ResponseCodeExtractor",
    "StructuredDataRepairStrategy",
    "default_strategies",
    "match_rule",
    "sanitize_path",
]
