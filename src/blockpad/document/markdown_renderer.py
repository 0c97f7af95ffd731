"""Render blocks to Markdown.

This module converts Block objects back to Markdown text for export.
Each block becomes one line (or a fence for code), prefixed with two
spaces per indent level.
"""

from __future__ import annotations

from typing import Callable, Iterable

from ..config import EDITOR
from .blocks_models import Block, BlockType, require_all_types

CALLOUT_MARKER = "\U0001F4A1"  # light bulb


def render_markdown(blocks: Iterable[Block]) -> str:
    """Render a list of blocks to Markdown.

    Args:
        blocks: Blocks to render; they are emitted in ``order``.

    Returns:
        Markdown text, one block per line, joined by newlines.
    """
    ordered = sorted(blocks, key=lambda b: b.order)
    return "\n".join(render_block(block) for block in ordered)


def render_block(block: Block) -> str:
    """Render a single block, including its indentation."""
    rendered = _RENDERERS[block.type](block)
    if block.indent_level <= 0:
        return rendered
    indent = " " * (EDITOR.INDENT_WIDTH * block.indent_level)
    return "\n".join(f"{indent}{line}" for line in rendered.split("\n"))


def _render_text(block: Block) -> str:
    return block.content


def _render_heading(block: Block) -> str:
    level = block.type.heading_level or 1
    return f"{'#' * level} {block.content}"


def _render_bulleted_list(block: Block) -> str:
    return f"- {block.content}"


def _render_numbered_list(block: Block) -> str:
    return f"1. {block.content}"


def _render_todo(block: Block) -> str:
    checkbox = "[x]" if block.metadata.is_checked else "[ ]"
    return f"- {checkbox} {block.content}"


def _render_code(block: Block) -> str:
    language = block.metadata.language or ""
    return f"```{language}\n{block.content}\n```"


def _render_quote(block: Block) -> str:
    return f"> {block.content}"


def _render_divider(block: Block) -> str:
    return "---"


def _render_callout(block: Block) -> str:
    return f"> **{CALLOUT_MARKER} {block.content}**"


def _render_image(block: Block) -> str:
    url = block.metadata.image_url
    if not url:
        return block.content
    caption = block.metadata.image_caption or block.content
    return f"![{caption}]({url})"


_RENDERERS: dict[BlockType, Callable[[Block], str]] = {
    BlockType.TEXT: _render_text,
    BlockType.HEADING_1: _render_heading,
    BlockType.HEADING_2: _render_heading,
    BlockType.HEADING_3: _render_heading,
    BlockType.HEADING_4: _render_heading,
    BlockType.HEADING_5: _render_heading,
    BlockType.HEADING_6: _render_heading,
    BlockType.BULLETED_LIST: _render_bulleted_list,
    BlockType.NUMBERED_LIST: _render_numbered_list,
    BlockType.CHECK_LIST: _render_todo,
    BlockType.CODE: _render_code,
    BlockType.QUOTE: _render_quote,
    BlockType.DIVIDER: _render_divider,
    BlockType.CALLOUT: _render_callout,
    # Toggle children are ordinary indented blocks, so only the summary line.
    BlockType.TOGGLE: _render_text,
    BlockType.IMAGE: _render_image,
    BlockType.FILE: _render_text,
    BlockType.TABLE: _render_text,
}

require_all_types(_RENDERERS, "markdown renderers")

