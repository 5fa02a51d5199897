"""
Classify the structural element under a cursor.

``analyze_context`` is a pure function of ``(document, position, config)``:
nothing is cached between calls and it never raises. The checks run in a
fixed order and the first one that matches wins.
"""

import logging

from .config import OrgConfig
from .core import model, scan
from .core.model import Context, ListItem, Position
from .core.ports import TextDocument
from .core.scan import ScanResult, is_blank
from .grammar import blocks, properties, tables
from .grammar.headings import is_heading_line, parse_heading
from .grammar.lists import indent_of, parse_list_item

logger = logging.getLogger(__name__)


def list_context(item: ListItem, line: int, nested: bool = False) -> Context:
    return Context(
        kind=model.CHECKBOX if item.has_checkbox else model.LIST_ITEM,
        line=line,
        indent=item.indent,
        marker=item.marker,
        content=item.content,
        ordered=item.ordered,
        checkbox_state=item.checkbox_state,
        nested=nested,
    )


def is_structural_line(text: str) -> bool:
    """Lines that carry their own classification and are never list content."""
    return (
        is_heading_line(text)
        or parse_list_item(text) is not None
        or tables.is_table_line(text)
        or properties.is_property_line(text)
        or blocks.is_fence_line(text)
    )


def find_list_ancestor(
    doc: TextDocument, line: int, indent: int, blank_limit: int = 2
) -> ScanResult:
    """
    Walk up from ``line`` looking for the list item that owns it.

    Exits:
      ancestor  - a less indented item; ``found`` is its line
      dedent    - that item exists but plain text in between sits at or left
                  of its indent, so the paragraph already left the item
      sibling   - an item at ``indent`` or deeper
      heading   - crossed a heading
      blank-run - ``blank_limit`` consecutive blank lines
      start     - top of the document
    """
    blanks = 0
    floor = indent
    for n in range(line - 1, -1, -1):
        text = doc.line_at(n).text
        if is_blank(text):
            blanks += 1
            if blanks >= blank_limit:
                return ScanResult(scan.BLANK_RUN, n)
            continue
        blanks = 0

        if is_heading_line(text):
            return ScanResult(scan.HEADING, n)

        item = parse_list_item(text)
        if item is None:
            floor = min(floor, indent_of(text))
            continue
        if item.indent >= indent:
            return ScanResult(scan.SIBLING, n)
        if floor <= item.indent:
            return ScanResult(scan.DEDENT, n)
        return ScanResult(scan.ANCESTOR, n, n)
    return ScanResult(scan.START, -1)


def is_in_property_drawer(
    doc: TextDocument, line: int, scan_limit: int = properties.SCAN_LIMIT
) -> bool:
    """
    True when ``line`` sits inside a terminated ``:PROPERTIES:`` drawer.

    A heading closes any open start, and a start without its ``:END:``
    before the next heading is not a drawer.
    """
    start = None
    for n in range(0, min(line, doc.line_count - 1) + 1):
        text = doc.line_at(n).text
        if is_heading_line(text) or properties.is_drawer_end(text):
            start = None
        elif properties.is_drawer_start(text):
            start = n
    if start is None:
        return False
    end = properties.find_drawer_end(doc, start, scan_limit)
    return end is not None and end >= line


def is_in_code_block(doc: TextDocument, line: int) -> str | None:
    """Name of the terminated block whose interior holds ``line``, or None."""
    open_name = None
    for n in range(0, min(line, doc.line_count)):
        text = doc.line_at(n).text
        if open_name is None:
            name = blocks.block_begin(text)
            # unterminated fences open nothing
            if name and blocks.find_block_end(doc, n) is not None:
                open_name = name
        elif blocks.block_end(text) == open_name:
            open_name = None
    return open_name


def clamp(doc: TextDocument, pos: Position) -> Position:
    line = min(max(pos.line, 0), max(doc.line_count - 1, 0))
    length = len(doc.line_at(line).text)
    return Position(line, min(max(pos.character, 0), length))


def analyze_context(
    doc: TextDocument, pos: Position, config: OrgConfig | None = None
) -> Context:
    config = config or OrgConfig()
    line = clamp(doc, pos).line
    text = doc.line_at(line).text

    heading = parse_heading(text, config.keywords)
    if heading:
        return Context(
            kind=model.HEADING,
            line=line,
            level=heading.level,
            keyword=heading.keyword,
            priority=heading.priority,
            title=heading.title,
            tags=list(heading.tags),
            content=heading.title,
        )

    name = blocks.block_begin(text)
    if name:
        return Context(kind=model.CODE_BLOCK_HEADER, line=line, block_name=name)

    item = parse_list_item(text)
    if item:
        return list_context(item, line)

    if not is_blank(text) and not is_structural_line(text):
        result = find_list_ancestor(doc, line, indent_of(text), config.blank_limit)
        logger.debug("List ancestor scan from line %d: %s", line, result)
        if result.exit == scan.ANCESTOR:
            owner = parse_list_item(doc.line_at(result.found).text)
            if owner:
                return list_context(owner, result.found, nested=True)

    if tables.is_table_line(text):
        return Context(kind=model.TABLE, line=line)

    if properties.is_drawer_start(text):
        return Context(kind=model.PROPERTY_DRAWER_HEADER, line=line)
    if properties.is_drawer_end(text):
        return Context(kind=model.PROPERTY_DRAWER_END, line=line)
    entry = properties.parse_property(text)
    if entry:
        return Context(
            kind=model.PROPERTY_ITEM,
            line=line,
            property_key=entry.key,
            property_value=entry.value,
        )

    if is_in_property_drawer(doc, line, config.properties.scan_limit):
        return Context(kind=model.PROPERTY_DRAWER, line=line)

    name = is_in_code_block(doc, line)
    if name:
        return Context(kind=model.CODE_BLOCK, line=line, block_name=name)

    return Context(kind=model.TEXT, line=line)
