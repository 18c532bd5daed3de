"""ResponseCodeExtractor: turn a free-form model response into file writes."""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING

from devpilot.extraction.models import ExtractedFile, ExtractionContext, Origin, sanitize_path
from devpilot.extraction.rules import DEFAULT_RULES, HeuristicRule
from devpilot.extraction.strategies import (
    DirectiveStrategy,
    ExtractionStrategy,
    FencedBlockStrategy,
    StructuredDataRepairStrategy,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


def default_strategies(rules: tuple[HeuristicRule, ...] = DEFAULT_RULES) -> list[ExtractionStrategy]:
    return [DirectiveStrategy(), FencedBlockStrategy(rules), StructuredDataRepairStrategy()]


class ResponseCodeExtractor:
    """Runs the extraction strategies in priority order.

    The first file claimed for a path wins, so an explicit directive beats
    any heuristic and heuristics are resolved in scan order. Fallback
    strategies are skipped once an explicit directive has produced a file.
    Malformed model output never raises; the worst case is an empty list.
    """

    def __init__(self, strategies: Sequence[ExtractionStrategy] | None = None) -> None:
        self.strategies = list(strategies) if strategies is not None else default_strategies()

    def extract(self, response: str, context: ExtractionContext | None = None) -> list[ExtractedFile]:
        context = context or ExtractionContext()
        if not response or not response.strip():
            return []

        claimed: dict[str, ExtractedFile] = {}
        for strategy in self.strategies:
            if strategy.fallback and any(f.origin is Origin.EXPLICIT for f in claimed.values()):
                continue
            try:
                found = strategy.extract(response, context)
            except Exception:
                logger.exception("Extraction strategy %s failed", strategy.name)
                continue

            for file in found:
                path = sanitize_path(file.path)
                if path is None:
                    logger.debug("Dropping %s entry with unusable path %r", strategy.name, file.path)
                    continue
                if path in claimed:
                    logger.debug("%s: %s already claimed by %s", strategy.name, path, claimed[path].origin)
                    continue
                claimed[path] = dataclasses.replace(file, path=path)

        files = list(claimed.values())
        if files:
            logger.info("Extracted %d file(s): %s", len(files), ", ".join(f.path for f in files))
        else:
            logger.info("No files could be extracted from the response")
        return files
