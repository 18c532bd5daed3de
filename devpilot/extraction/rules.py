"""Ordered content-sniffing rules that name a file for an unlabeled code block."""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class HeuristicRule:
    """If *pattern* matches a block's code, the block targets *target*."""

    name: str
    pattern: re.Pattern[str]
    target: str

    def matches(self, code: str) -> bool:
        return self.pattern.search(code) is not None


DEFAULT_RULES: tuple[HeuristicRule, ...] = (
    HeuristicRule(
        name="html_document",
        pattern=re.compile(r"<!DOCTYPE\s+html|<html[\s>]", re.IGNORECASE),
        target="public/index.html",
    ),
    HeuristicRule(
        name="web_server",
        pattern=re.compile(
            r"\bapp\.listen\s*\("
            r"|\bexpress\s*\(\s*\)"
            r"|require\(\s*['\"]express['\"]\s*\)"
            r"|from\s+['\"]express['\"]"
            r"|\bcreateServer\s*\("
        ),
        target="server.js",
    ),
    HeuristicRule(
        name="css_rules",
        pattern=re.compile(
            r"^[ \t]*(?:(?:body|html|:root)\b|[.#][A-Za-z_][\w-]*)[ \t\w.#:,>+~\[\]-]*\{",
            re.MULTILINE,
        ),
        target="public/style.css",
    ),
    HeuristicRule(
        name="package_manifest",
        pattern=re.compile(r"\"(?:scripts|dependencies)\"\s*:"),
        target="package.json",
    ),
)


def match_rule(code: str, rules: tuple[HeuristicRule, ...] = DEFAULT_RULES) -> HeuristicRule | None:
    """Return the first rule that matches *code*, or None."""
    for rule in rules:
        if rule.matches(code):
            return rule
    return None
