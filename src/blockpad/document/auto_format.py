"""Markdown-style auto-formatting.

As the user types, a plain block whose content starts with a markdown
trigger (``# ``, ``- ``, ``[ ] `` ...) is promoted to the matching block
type and the trigger is trimmed from its content.

The rule table is priority ordered; the first matching rule wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from .blocks_models import BlockType


@dataclass(frozen=True)
class Conversion:
    """Result of a fired auto-format rule."""

    target: BlockType
    content: str
    checked: bool = False


@dataclass(frozen=True)
class AutoFormatRule:
    """One trigger: a matcher, the target type and the content transform."""

    name: str
    target: BlockType
    matches: Callable[[str], bool]
    transform: Callable[[str], str]
    checked: bool = False


def _prefix(*prefixes: str) -> Callable[[str], bool]:
    return lambda text: text.startswith(prefixes)


def _drop(count: int) -> Callable[[str], str]:
    return lambda text: text[count:]


_NUMBERED = re.compile(r"^\d+\. ")


def _drop_through_first_space(text: str) -> str:
    _, _, rest = text.partition(" ")
    return rest


RULES: tuple[AutoFormatRule, ...] = (
    AutoFormatRule("heading_1", BlockType.HEADING_1, _prefix("# "), _drop(2)),
    AutoFormatRule("heading_2", BlockType.HEADING_2, _prefix("## "), _drop(3)),
    AutoFormatRule("heading_3", BlockType.HEADING_3, _prefix("### "), _drop(4)),
    AutoFormatRule("bulleted_list", BlockType.BULLETED_LIST, _prefix("- ", "* "), _drop(2)),
    AutoFormatRule(
        "numbered_list",
        BlockType.NUMBERED_LIST,
        lambda text: _NUMBERED.match(text) is not None,
        _drop_through_first_space,
    ),
    AutoFormatRule("quote", BlockType.QUOTE, _prefix("> "), _drop(2)),
    AutoFormatRule("code", BlockType.CODE, _prefix("```"), _drop(3)),
    AutoFormatRule("todo", BlockType.CHECK_LIST, _prefix("[ ] "), _drop(4)),
    AutoFormatRule("todo_checked", BlockType.CHECK_LIST, _prefix("[x] "), _drop(4), checked=True),
    AutoFormatRule(
        "divider",
        BlockType.DIVIDER,
        lambda text: text in ("---", "***"),
        lambda _text: "",
    ),
)

# Shorter content can't hold any trigger.
MIN_TRIGGER_LENGTH = 2


def match_rule(content: str) -> AutoFormatRule | None:
    """Return the first rule whose trigger matches, ignoring the current type."""
    if len(content) < MIN_TRIGGER_LENGTH:
        return None
    for rule in RULES:
        if rule.matches(content):
            return rule
    return None


def recognize(current_type: BlockType, content: str) -> Conversion | None:
    """Decide whether typing ``content`` into a block promotes it.

    Only the highest-priority matching rule is considered, and it only fires
    when its target differs from ``current_type``. Running this again on a
    fired result never fires a second time for the same trigger.

    Args:
        current_type: The block's type before the edit.
        content: The full block content after the edit.

    Returns:
        The conversion to apply, or None.
    """
    rule = match_rule(content)
    if rule is None or rule.target is current_type:
        return None
    return Conversion(target=rule.target, content=rule.transform(content), checked=rule.checked)
