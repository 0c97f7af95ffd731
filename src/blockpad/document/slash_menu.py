"""Slash-command block type picker.

Typing ``/`` in a block opens a searchable menu of block types. Filtering
is a pure function of the query over a static catalog; the menu state only
tracks the query and the highlighted row.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .blocks_models import BlockType


@dataclass(frozen=True)
class SlashMenuItem:
    """One selectable entry in the slash menu."""

    name: str
    description: str
    icon: str
    block_type: BlockType
    keywords: tuple[str, ...] = ()

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on name, description or keywords."""
        q = query.lower()
        return (
            q in self.name.lower()
            or q in self.description.lower()
            or any(q in keyword.lower() for keyword in self.keywords)
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "block_type": self.block_type.value,
            "category": self.block_type.category.value,
            "keywords": list(self.keywords),
        }


CATALOG: tuple[SlashMenuItem, ...] = (
    SlashMenuItem(
        "Text", "Plain text paragraph", "text.alignleft",
        BlockType.TEXT, ("text", "paragraph", "p"),
    ),
    SlashMenuItem(
        "Heading 1", "Large section heading", "textformat.size.larger",
        BlockType.HEADING_1, ("heading", "h1", "title", "large"),
    ),
    SlashMenuItem(
        "Heading 2", "Medium section heading", "textformat.size",
        BlockType.HEADING_2, ("heading", "h2", "subtitle", "medium"),
    ),
    SlashMenuItem(
        "Heading 3", "Small section heading", "textformat",
        BlockType.HEADING_3, ("heading", "h3", "small"),
    ),
    SlashMenuItem(
        "Bulleted List", "Create a simple bulleted list", "list.bullet",
        BlockType.BULLETED_LIST, ("bullet", "list", "ul", "unordered"),
    ),
    SlashMenuItem(
        "Numbered List", "Create a list with numbering", "list.number",
        BlockType.NUMBERED_LIST, ("number", "list", "ol", "ordered"),
    ),
    SlashMenuItem(
        "Checklist", "Track tasks with checkboxes", "checklist",
        BlockType.CHECK_LIST, ("todo", "task", "checkbox", "check"),
    ),
    SlashMenuItem(
        "Quote", "Capture a quote", "quote.opening",
        BlockType.QUOTE, ("quote", "blockquote", "citation"),
    ),
    SlashMenuItem(
        "Code", "Code block with syntax highlighting", "chevron.left.forwardslash.chevron.right",
        BlockType.CODE, ("code", "pre", "programming"),
    ),
    SlashMenuItem(
        "Callout", "Make a note stand out", "exclamationmark.bubble",
        BlockType.CALLOUT, ("callout", "note", "info", "tip"),
    ),
    SlashMenuItem(
        "Toggle", "Collapsible section", "chevron.right",
        BlockType.TOGGLE, ("toggle", "collapse", "details"),
    ),
    SlashMenuItem(
        "Divider", "Horizontal divider line", "minus",
        BlockType.DIVIDER, ("divider", "separator", "line", "hr"),
    ),
)


def filter_items(query: str, catalog: tuple[SlashMenuItem, ...] = CATALOG) -> list[SlashMenuItem]:
    """Return catalog entries matching ``query`` in canonical order.

    An empty query returns the whole catalog.
    """
    if not query:
        return list(catalog)
    return [item for item in catalog if item.matches(query)]


@dataclass
class SlashMenuState:
    """Live state of an open slash menu."""

    block_id: str
    query: str = ""
    selected_index: int = 0
    results: list[SlashMenuItem] = field(default_factory=lambda: list(CATALOG))

    def set_query(self, query: str) -> None:
        """Refilter; the highlight always returns to the first row."""
        self.query = query
        self.results = filter_items(query)
        self.selected_index = 0

    def move_selection(self, delta: int) -> None:
        """Move the highlight, clamped to the filtered results."""
        self.select(self.selected_index + delta)

    def select(self, index: int) -> None:
        if not self.results:
            self.selected_index = 0
            return
        self.selected_index = max(0, min(len(self.results) - 1, index))

    @property
    def selected(self) -> SlashMenuItem | None:
        if not self.results:
            return None
        return self.results[self.selected_index]

    def confirm(self) -> BlockType | None:
        """Resolve the highlighted entry, or None when nothing matches."""
        item = self.selected
        return item.block_type if item else None

    def to_dict(self) -> dict[str, object]:
        return {
            "block_id": self.block_id,
            "query": self.query,
            "selected_index": self.selected_index,
            "results": [item.to_dict() for item in self.results],
        }
