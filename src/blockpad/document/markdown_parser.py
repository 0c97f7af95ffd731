"""Parse Markdown into blocks.

Two entry points:

- ``from_markdown``: best-effort, line-oriented inverse of
  ``render_markdown``. One line (or fence) becomes one block; leading
  spaces become the indent level. It is built on the auto-format rule
  table and is lossy for markdown it did not produce.
- ``parse_commonmark``: full CommonMark parse using the mistletoe library,
  used when migrating legacy flat-markdown entries. Nested lists map to
  indent levels and inline markup is flattened to plain text.
"""

from __future__ import annotations

import re
from typing import Any

from mistletoe import Document
from mistletoe.block_token import (
    BlockCode,
    CodeFence,
    Heading,
    List,
    ListItem,
    Paragraph,
    Quote,
    SetextHeading,
    ThematicBreak,
)
from mistletoe.span_token import LineBreak, RawText

from ..config import EDITOR
from ..settings import settings
from .auto_format import recognize
from .blocks_models import Block, BlockMetadata, BlockType
from .markdown_renderer import CALLOUT_MARKER

_HEADING = re.compile(r"^(#{1,6})(?:\s+(.*))?$")
_TODO_ITEM = re.compile(r"^[-*] \[([ xX])\](?: (.*))?$")
_CALLOUT = re.compile(r"^> \*\*" + CALLOUT_MARKER + r" ?(.*)\*\*$")
_IMAGE = re.compile(r"^!\[(.*?)\]\((.+?)\)$")
_CHECKBOX = re.compile(r"^\[([xX ])\]\s*(.*)$", re.DOTALL)
_DIVIDERS = frozenset({"---", "***", "___"})
_FENCE = "```"


# =============================================================================
# Line-oriented import
# =============================================================================


def from_markdown(markdown: str, *, callout_icon: str | None = None) -> list[Block]:
    """Parse Markdown text into an ordered block list.

    Args:
        markdown: Markdown text, typically produced by ``render_markdown``.
        callout_icon: Icon for imported callouts; defaults to the settings value.

    Returns:
        Blocks with contiguous ``order`` starting at 0. Input that yields no
        blocks becomes a single text block holding the stripped text.
    """
    icon = callout_icon or settings.default_callout_icon
    lines = markdown.splitlines()
    blocks: list[Block] = []

    i = 0
    while i < len(lines):
        line = lines[i]
        if not line.strip():
            i += 1
            continue

        width, stripped = _split_indent(line)
        level = min(EDITOR.MAX_INDENT_LEVEL, width // EDITOR.INDENT_WIDTH)

        if stripped.startswith(_FENCE):
            block, i = _parse_fence(lines, i, width)
        else:
            block = _parse_line(stripped, icon)
            i += 1

        block.indent_level = level
        block.order = len(blocks)
        blocks.append(block)

    if not blocks:
        blocks.append(Block.new(BlockType.TEXT, markdown.strip()))

    return blocks


def _split_indent(line: str) -> tuple[int, str]:
    """Return (indent width in spaces, line without leading whitespace)."""
    stripped = line.lstrip(" \t")
    lead = line[: len(line) - len(stripped)]
    width = sum(EDITOR.INDENT_WIDTH if ch == "\t" else 1 for ch in lead)
    return width, stripped


def _parse_fence(lines: list[str], start: int, width: int) -> tuple[Block, int]:
    """Collect a fenced code block. Returns the block and the next line index."""
    _, opener = _split_indent(lines[start])
    language = opener[len(_FENCE):].strip() or None

    code_lines: list[str] = []
    i = start + 1
    while i < len(lines):
        _, candidate = _split_indent(lines[i])
        if candidate.startswith(_FENCE):
            i += 1
            break
        code_lines.append(_dedent(lines[i], width))
        i += 1

    block = Block.new(
        BlockType.CODE,
        "\n".join(code_lines),
        metadata=BlockMetadata(language=language),
    )
    return block, i


def _dedent(line: str, width: int) -> str:
    """Remove up to ``width`` leading spaces."""
    count = 0
    while count < width and count < len(line) and line[count] == " ":
        count += 1
    return line[count:]


def _parse_line(stripped: str, callout_icon: str) -> Block:
    """Convert one unindented, non-fence line into a block."""
    heading = _HEADING.match(stripped)
    if heading:
        level = len(heading.group(1))
        return Block.new(BlockType.heading(level), heading.group(2) or "")

    todo = _TODO_ITEM.match(stripped)
    if todo:
        checked = todo.group(1).lower() == "x"
        return Block.new(
            BlockType.CHECK_LIST,
            todo.group(2) or "",
            metadata=BlockMetadata(is_checked=checked),
        )

    callout = _CALLOUT.match(stripped)
    if callout:
        return Block.new(
            BlockType.CALLOUT,
            callout.group(1),
            metadata=BlockMetadata(callout_icon=callout_icon),
        )

    image = _IMAGE.match(stripped)
    if image:
        caption, url = image.group(1), image.group(2)
        return Block.new(
            BlockType.IMAGE,
            caption,
            metadata=BlockMetadata(image_url=url, image_caption=caption or None),
        )

    if stripped in _DIVIDERS:
        return Block.new(BlockType.DIVIDER)

    conversion = recognize(BlockType.TEXT, stripped)
    if conversion is None:
        return Block.new(BlockType.TEXT, stripped)

    metadata = BlockMetadata(is_checked=conversion.checked)
    return Block.new(conversion.target, conversion.content, metadata=metadata)


# =============================================================================
# CommonMark import (legacy migration)
# =============================================================================


def parse_commonmark(markdown: str) -> list[Block]:
    """Parse arbitrary CommonMark into an ordered block list.

    Args:
        markdown: The Markdown text to parse.

    Returns:
        Blocks with contiguous ``order`` starting at 0; empty for blank input.
    """
    doc = Document(markdown)
    blocks: list[Block] = []

    for token in doc.children or []:
        blocks.extend(_convert_token(token, depth=0))

    for position, block in enumerate(blocks):
        block.order = position

    return blocks


def _convert_token(token: Any, depth: int) -> list[Block]:
    """Convert a mistletoe block token to blocks."""
    if isinstance(token, (Heading, SetextHeading)):
        return [_with_indent(_convert_heading(token), depth)]
    elif isinstance(token, Paragraph):
        return [_with_indent(_convert_paragraph(token), depth)]
    elif isinstance(token, (BlockCode, CodeFence)):
        return [_with_indent(_convert_code(token), depth)]
    elif isinstance(token, List):
        return _convert_list(token, depth)
    elif isinstance(token, Quote):
        return [_with_indent(_convert_quote(token), depth)]
    elif isinstance(token, ThematicBreak):
        return [_with_indent(Block.new(BlockType.DIVIDER), depth)]
    else:
        # Unknown token type - try to extract text
        text = _extract_text(token)
        if text.strip():
            return [_with_indent(Block.new(BlockType.TEXT, text), depth)]
    return []


def _with_indent(block: Block, depth: int) -> Block:
    block.indent_level = min(EDITOR.MAX_INDENT_LEVEL, depth)
    return block


def _convert_heading(token: Heading | SetextHeading) -> Block:
    level = min(max(token.level, 1), EDITOR.MAX_HEADING_LEVEL)
    return Block.new(BlockType.heading(level), _extract_text(token))


def _convert_paragraph(token: Paragraph) -> Block:
    """Convert a paragraph token, detecting a leading checkbox."""
    text = _extract_text(token)
    checkbox = _CHECKBOX.match(text)
    if checkbox:
        return Block.new(
            BlockType.CHECK_LIST,
            checkbox.group(2),
            metadata=BlockMetadata(is_checked=checkbox.group(1).lower() == "x"),
        )
    return Block.new(BlockType.TEXT, text)


def _convert_code(token: BlockCode | CodeFence) -> Block:
    language = None
    if isinstance(token, CodeFence) and token.language:
        language = token.language
    content = _extract_text(token).rstrip("\n")
    return Block.new(BlockType.CODE, content, metadata=BlockMetadata(language=language))


def _convert_quote(token: Quote) -> Block:
    """Convert a block quote; a leading light bulb marks a callout."""
    parts = [_extract_text(child) for child in token.children or []]
    text = "\n".join(p for p in parts if p)
    if text.startswith(CALLOUT_MARKER):
        return Block.new(
            BlockType.CALLOUT,
            text[len(CALLOUT_MARKER):].lstrip(),
            metadata=BlockMetadata(callout_icon=settings.default_callout_icon),
        )
    return Block.new(BlockType.QUOTE, text)


def _convert_list(token: List, depth: int) -> list[Block]:
    """Convert a list token into list item blocks; nested lists indent."""
    is_ordered = token.start is not None
    blocks: list[Block] = []

    for item in token.children or []:
        if not isinstance(item, ListItem):
            continue

        nested = [child for child in item.children or [] if isinstance(child, List)]
        text = "\n".join(
            _extract_text(child)
            for child in item.children or []
            if not isinstance(child, List)
        )

        checkbox = _CHECKBOX.match(text)
        if checkbox:
            block = Block.new(
                BlockType.CHECK_LIST,
                checkbox.group(2),
                metadata=BlockMetadata(is_checked=checkbox.group(1).lower() == "x"),
            )
        else:
            block_type = BlockType.NUMBERED_LIST if is_ordered else BlockType.BULLETED_LIST
            block = Block.new(block_type, text)

        blocks.append(_with_indent(block, depth))
        for child_list in nested:
            blocks.extend(_convert_list(child_list, depth + 1))

    return blocks


def _extract_text(token: Any) -> str:
    """Extract plain text from a token, dropping inline markup."""
    if isinstance(token, RawText):
        return token.content
    if isinstance(token, LineBreak):
        return " " if getattr(token, "soft", False) else "\n"
    children = getattr(token, "children", None)
    if children:
        return "".join(_extract_text(child) for child in children)
    return ""
