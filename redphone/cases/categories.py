"""Canonical case category keys shared by drafting, compliance and routing."""

from __future__ import annotations

import re

CATEGORY_ALIASES = {
    "pricing": "pricing",
    "pricing & discounts": "pricing",
    "deal structure": "dealStructure",
    "deal structure & terms": "dealStructure",
    "commercial terms": "dealStructure",
    "technical": "technical",
    "technical requirements": "technical",
    "legal": "legal",
    "legal & compliance": "legal",
    "compliance": "legal",
    "competitive": "competitive",
    "competitive situations": "competitive",
    "pilot": "pilotProgram",
    "pilot program": "pilotProgram",
    "pilot programs": "pilotProgram",
    "customer success": "customerSuccess",
    "system issues": "systemIssues",
    "general": "general",
}

_WORD_PATTERN = re.compile(r"[A-Za-z0-9]+")


def normalise_category(category: str | None) -> str:
    """Map display names such as ``"Deal Structure"`` to ``dealStructure``.

    Keys that are already canonical are returned unchanged; unknown names
    are camel-cased word by word.
    """

    if not category or not category.strip():
        return "general"
    raw = category.strip()
    alias = CATEGORY_ALIASES.get(raw.lower())
    if alias:
        return alias
    if raw in CATEGORY_ALIASES.values():
        return raw
    words = _WORD_PATTERN.findall(raw)
    if not words:
        return "general"
    head, *tail = words
    return head.lower() + "".join(word.capitalize() for word in tail)
