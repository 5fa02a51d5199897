"""List grammar: items, item boundaries, sibling runs and ordered renumbering."""

import re

from ..core import scan
from ..core.model import ListItem, Position, Range, TextEdit
from ..core.ports import TextDocument
from ..core.scan import ScanResult, is_blank
from .headings import is_heading_line

LIST_RE = re.compile(r"^(\s*)([-+*]|\d+\.)\s+(.*)$")
LIST_START_RE = re.compile(r"^(\s*)([-+*]|\d+\.)\s+")
CHECKBOX_RE = re.compile(r"^\[([ X-])\](?:\s+(.*)|$)")
ORDERED_RE = re.compile(r"^(\d+)\.$")
INDENT_RE = re.compile(r"^(\s*)")

CHECKBOX_CYCLE = {" ": "X", "X": "-", "-": " "}


def parse_list_item(line: str) -> ListItem | None:
    m = LIST_RE.match(line)
    if not m:
        return None
    marker = m.group(2)
    content = m.group(3)
    checkbox = CHECKBOX_RE.match(content)
    return ListItem(
        indent=len(m.group(1)),
        marker=marker,
        content=(checkbox.group(2) or "") if checkbox else content,
        ordered=bool(ORDERED_RE.match(marker)),
        has_checkbox=bool(checkbox),
        checkbox_state=checkbox.group(1) if checkbox else None,
    )


def is_list_line(line: str) -> bool:
    return bool(LIST_START_RE.match(line))


def leading_whitespace(line: str) -> str:
    m = INDENT_RE.match(line)
    return m.group(1) if m else ""


def indent_of(line: str) -> int:
    return len(leading_whitespace(line))


def get_next_marker(marker: str) -> str:
    """``N.`` becomes ``N+1.``; bullets are returned unchanged."""
    m = ORDERED_RE.match(marker)
    if m:
        return f"{int(m.group(1)) + 1}."
    return marker


def ordinal_marker(index: int) -> str:
    """Marker for the item at zero based ``index`` of an ordered run."""
    return f"{index + 1}."


def next_checkbox_state(state: str | None) -> str:
    return CHECKBOX_CYCLE.get(state or " ", "X")


def build_list_item_line(
    indent: int,
    marker: str,
    content: str,
    has_checkbox: bool = False,
    checkbox_state: str | None = " ",
) -> str:
    prefix = " " * indent
    if has_checkbox:
        return f"{prefix}{marker} [{checkbox_state or ' '}] {content}"
    return f"{prefix}{marker} {content}"


def build_list_item(item: ListItem) -> str:
    return build_list_item_line(
        item.indent, item.marker, item.content, item.has_checkbox, item.checkbox_state
    )


def find_list_item_end(doc: TextDocument, line: int, indent: int) -> int:
    """
    Last line belonging to the item at ``line``, nested content included.

    Blank lines are skipped. The item ends before the first line that is a
    heading, a list item at ``indent`` or less, or a plain line at ``indent``
    or less; the last non-blank line seen is returned. When the document runs
    out first, the document's last line is the boundary.
    """
    last = line
    for n in range(line + 1, doc.line_count):
        text = doc.line_at(n).text
        if is_blank(text):
            continue
        if is_heading_line(text) or indent_of(text) <= indent:
            return last
        last = n
    return doc.line_count - 1


def has_sub_items(doc: TextDocument, line: int, indent: int) -> bool:
    """True when the first non-blank line after ``line`` is indented deeper."""
    for n in range(line + 1, doc.line_count):
        text = doc.line_at(n).text
        if is_blank(text):
            continue
        return indent_of(text) > indent
    return False


def _run_boundary(text: str, indent: int) -> str | None:
    """Exit reason if ``text`` (non-blank) closes a sibling run at ``indent``."""
    if is_heading_line(text):
        return scan.HEADING
    item = parse_list_item(text)
    if item is None:
        return scan.DEDENT if indent_of(text) <= indent else None
    if item.indent < indent:
        return scan.LOWER_ITEM
    return None


def scan_run_start(
    doc: TextDocument, line: int, indent: int, blank_limit: int = 2
) -> ScanResult:
    """
    Walk up from ``line`` to the first sibling of the run at ``indent``.

    ``found`` is the topmost item at exactly ``indent``; ``line`` itself when
    nothing above qualifies.
    """
    first = line
    blanks = 0
    for n in range(line - 1, -1, -1):
        text = doc.line_at(n).text
        if is_blank(text):
            blanks += 1
            if blanks >= blank_limit:
                return ScanResult(scan.BLANK_RUN, n, first)
            continue
        blanks = 0
        reason = _run_boundary(text, indent)
        if reason:
            return ScanResult(reason, n, first)
        item = parse_list_item(text)
        if item is not None and item.indent == indent:
            first = n
    return ScanResult(scan.START, -1, first)


def find_first_item_at_level(
    doc: TextDocument, line: int, indent: int, blank_limit: int = 2
) -> int:
    return scan_run_start(doc, line, indent, blank_limit).found


def find_items_at_level(
    doc: TextDocument, first_line: int, indent: int, blank_limit: int = 2
) -> list[tuple[int, ListItem]]:
    """Every sibling at ``indent`` from ``first_line`` down to the end of the run."""
    items: list[tuple[int, ListItem]] = []
    blanks = 0
    for n in range(first_line, doc.line_count):
        text = doc.line_at(n).text
        if is_blank(text):
            blanks += 1
            if blanks >= blank_limit:
                break
            continue
        blanks = 0
        item = parse_list_item(text)
        if n != first_line and _run_boundary(text, indent):
            break
        if item is not None and item.indent == indent:
            items.append((n, item))
    return items


def renumber_items(
    items: list[tuple[int, ListItem]], insert_index: int = -1
) -> list[tuple[int, ListItem, str]]:
    """
    New markers for a sibling run, computed before any edit is made.

    With ``insert_index >= 0`` a new item is about to occupy that slot: items
    before it get ``1..k`` and items from it on get ``k+2..``. With -1 the run
    is simply numbered ``1..n``. Unordered items are left out.
    """
    out = []
    for i, (line, item) in enumerate(items):
        if not item.ordered:
            continue
        if insert_index >= 0 and i >= insert_index:
            new_marker = ordinal_marker(i + 1)
        else:
            new_marker = ordinal_marker(i)
        out.append((line, item, new_marker))
    return out


def renumber_edits(
    items: list[tuple[int, ListItem]], insert_index: int = -1
) -> list[TextEdit]:
    """Marker replacements for the items whose number actually changes."""
    edits = []
    for line, item, new_marker in renumber_items(items, insert_index):
        if new_marker == item.marker:
            continue
        start = Position(line, item.indent)
        end = Position(line, item.indent + len(item.marker))
        edits.append(TextEdit.replace(Range(start, end), new_marker))
    return edits


def sibling_run(
    doc: TextDocument, line: int, indent: int, blank_limit: int = 2
) -> list[tuple[int, ListItem]]:
    first = find_first_item_at_level(doc, line, indent, blank_limit)
    return find_items_at_level(doc, first, indent, blank_limit)
