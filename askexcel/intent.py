"""Keyword router that maps an instruction to a built-in script."""
from __future__ import annotations

from dataclasses import dataclass

from askexcel.scripts import SCRIPTS, Intent


def _contains_any(text: str, tokens: tuple[str, ...]) -> bool:
    return any(token in text for token in tokens)


@dataclass(frozen=True)
class IntentRule:
    """One row of the routing table.

    ``requires`` is a conjunction of keyword groups; a group is satisfied when
    any of its keywords occurs in the lowered instruction. ``excludes`` lists
    keywords that must not occur.
    """

    intent: Intent
    requires: tuple[tuple[str, ...], ...]
    excludes: tuple[str, ...] = ()

    def matches(self, lowered: str) -> bool:
        if _contains_any(lowered, self.excludes):
            return False
        return all(_contains_any(lowered, group) for group in self.requires)


# Evaluated top to bottom; the first satisfied rule wins.
RULES: tuple[IntentRule, ...] = (
    IntentRule(Intent.CONNECTION_TEST, (("test",), ("connection",))),
    IntentRule(Intent.BOLD_HEADER, (("bold",), ("row 1", "first row", "header"))),
    IntentRule(Intent.BOLD_SELECTION, (("bold",), ("selection",))),
    IntentRule(Intent.FINANCIAL_STYLE, (("financial",), ("style",))),
    IntentRule(Intent.FINANCIAL_STYLE, (("blue",), ("input", "constant"))),
    IntentRule(Intent.BORDERS, (("border",),), excludes=("selection",)),
    IntentRule(Intent.BORDERS_SELECTION, (("border",), ("selection",))),
    # "autofit" satisfies both groups on its own.
    IntentRule(Intent.AUTOFIT, (("auto",), ("fit",))),
    IntentRule(Intent.CURRENCY, (("currency", "dollar"),)),
    IntentRule(Intent.PERCENT, (("percent",),)),
    IntentRule(Intent.READ_SELECTION, (("read",), ("selection",))),
    IntentRule(Intent.CLEAR_SELECTION, (("clear",), ("selection",))),
    IntentRule(Intent.FREEZE_TOP_ROW, (("freeze",), ("row", "top"))),
    IntentRule(Intent.UNFREEZE, (("unfreeze",),)),
)


def match_intent(instruction: str | None) -> Intent | None:
    """Return the first intent whose rule matches, or ``None``."""
    lowered = (instruction or "").lower()
    if not lowered.strip():
        return None
    for rule in RULES:
        if rule.matches(lowered):
            return rule.intent
    return None


def find_builtin_script(instruction: str | None) -> str | None:
    intent = match_intent(instruction)
    if intent is None:
        return None
    return SCRIPTS[intent]


__all__ = ["IntentRule", "RULES", "find_builtin_script", "match_intent"]
