from __future__ import annotations
from dataclasses import dataclass, field


@dataclass(frozen=True, order=True)
class Position:
    line: int  # zero based
    character: int


@dataclass(frozen=True)
class Range:
    start: Position
    end: Position

    @property
    def is_empty(self) -> bool:
        return self.start == self.end


@dataclass(frozen=True)
class TextLine:
    line_number: int
    text: str
    range: Range


@dataclass
class Heading:
    level: int
    keyword: str | None = None
    priority: str | None = None  # single letter, e.g. "A"
    title: str = ""  # without tags
    tags: list[str] = field(default_factory=list)

    @property
    def stars(self) -> str:
        return "*" * self.level


@dataclass
class ListItem:
    indent: int
    marker: str  # "-", "+", "*" or "N."
    content: str
    ordered: bool = False
    has_checkbox: bool = False
    checkbox_state: str | None = None  # " ", "X" or "-"


@dataclass(frozen=True)
class PropertyDrawer:
    start_line: int
    end_line: int


@dataclass
class PropertyEntry:
    indent: str
    key: str
    value: str


@dataclass(frozen=True)
class Link:
    kind: str  # "bracket" | "http" | "file"
    target: str
    start_col: int
    end_col: int
    description: str | None = None


@dataclass(frozen=True)
class LinkTarget:
    kind: str  # "file" | "id" | "headline" | "http" | "other"
    path: str | None = None
    file: str | None = None
    headline: str | None = None
    id: str | None = None


@dataclass
class TableRow:
    cells: list[str]

    @property
    def column_count(self) -> int:
        return len(self.cells)


@dataclass(frozen=True)
class CellSpan:
    index: int
    start: int  # column just after the opening "|"
    end: int  # column of the closing "|"


# Context kinds
HEADING = "heading"
LIST_ITEM = "list-item"
CHECKBOX = "checkbox"
TABLE = "table"
CODE_BLOCK = "code-block"
CODE_BLOCK_HEADER = "code-block-header"
PROPERTY_DRAWER = "property-drawer"
PROPERTY_DRAWER_HEADER = "property-drawer-header"
PROPERTY_DRAWER_END = "property-drawer-end"
PROPERTY_ITEM = "property-item"
TEXT = "text"

CONTEXT_KINDS = (
    HEADING,
    LIST_ITEM,
    CHECKBOX,
    TABLE,
    CODE_BLOCK,
    CODE_BLOCK_HEADER,
    PROPERTY_DRAWER,
    PROPERTY_DRAWER_HEADER,
    PROPERTY_DRAWER_END,
    PROPERTY_ITEM,
    TEXT,
)


@dataclass
class Context:
    kind: str
    line: int  # for nested list content: the owning item's line
    level: int | None = None
    keyword: str | None = None
    priority: str | None = None
    title: str | None = None
    tags: list[str] = field(default_factory=list)
    indent: int | None = None
    marker: str | None = None
    content: str | None = None
    ordered: bool = False
    checkbox_state: str | None = None
    property_key: str | None = None
    property_value: str | None = None
    block_name: str | None = None
    nested: bool = False

    @property
    def is_list(self) -> bool:
        return self.kind in (LIST_ITEM, CHECKBOX)

    @property
    def is_property(self) -> bool:
        return self.kind in (
            PROPERTY_DRAWER,
            PROPERTY_DRAWER_HEADER,
            PROPERTY_DRAWER_END,
            PROPERTY_ITEM,
        )


@dataclass(frozen=True)
class TextEdit:
    range: Range
    new_text: str

    @classmethod
    def insert(cls, pos: Position, text: str) -> "TextEdit":
        return cls(Range(pos, pos), text)

    @classmethod
    def replace(cls, rng: Range, text: str) -> "TextEdit":
        return cls(rng, text)

    @classmethod
    def delete(cls, rng: Range) -> "TextEdit":
        return cls(rng, "")


@dataclass(frozen=True)
class FoldRange:
    start_line: int
    end_line: int
    kind: str  # "subtree" | "list" | "block" | "drawer"


@dataclass
class EditPlan:
    """Everything one command wants the host to do, computed up front."""

    edits: list[TextEdit] = field(default_factory=list)
    cursor: Position | None = None
    fold: FoldRange | None = None
    fallback: str | None = None  # host default action, e.g. "tab"
    message: str | None = None
    value: str | None = None  # result of a query-like command, e.g. an ID

    @property
    def is_noop(self) -> bool:
        return (
            not self.edits
            and self.cursor is None
            and self.fold is None
            and self.fallback is None
        )
