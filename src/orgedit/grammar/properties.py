"""Property drawer grammar: locating, reading and writing ``:KEY: value`` entries."""

import re

from ..core.model import Position, PropertyDrawer, PropertyEntry, TextEdit
from ..core.ports import IdGenerator, TextDocument
from .headings import is_heading_line
from .planning import find_planning_line

PROPERTY_RE = re.compile(r"^(\s*):(\w+):\s*(.*)$")
PROPERTY_START_RE = re.compile(r"^\s*:\w+:\s*")
INDENT_RE = re.compile(r"^(\s*)")

DEFAULT_INDENT = "  "
SCAN_LIMIT = 50


def parse_property(line: str) -> PropertyEntry | None:
    m = PROPERTY_RE.match(line)
    if not m:
        return None
    return PropertyEntry(indent=m.group(1), key=m.group(2), value=m.group(3))


def is_drawer_start(line: str) -> bool:
    return line.strip() == ":PROPERTIES:"


def is_drawer_end(line: str) -> bool:
    return line.strip() == ":END:"


def is_property_line(line: str) -> bool:
    return bool(PROPERTY_START_RE.match(line))


def parse_indent(line: str) -> str:
    m = INDENT_RE.match(line)
    return m.group(1) if m else ""


def find_property_drawer(
    doc: TextDocument, heading_line: int, scan_limit: int = SCAN_LIMIT
) -> PropertyDrawer | None:
    """
    Drawer directly under the heading at ``heading_line``.

    Only the lines before the next heading, and at most ``scan_limit`` lines
    past the heading, are looked at. Both markers must be found, in order.
    """
    start = None
    stop = min(heading_line + scan_limit, doc.line_count)
    for n in range(heading_line + 1, stop):
        text = doc.line_at(n).text
        if is_heading_line(text):
            break
        if is_drawer_start(text):
            start = n
            continue
        if is_drawer_end(text) and start is not None:
            return PropertyDrawer(start, n)
    return None


def find_property_in_drawer(
    doc: TextDocument, drawer: PropertyDrawer, key: str
) -> int | None:
    key = key.upper()
    for n in range(drawer.start_line + 1, drawer.end_line):
        entry = parse_property(doc.line_at(n).text)
        if entry and entry.key.upper() == key:
            return n
    return None


def read_properties(
    doc: TextDocument, drawer: PropertyDrawer
) -> list[tuple[int, PropertyEntry]]:
    """Entries of a drawer in document order, with their line numbers."""
    out = []
    for n in range(drawer.start_line + 1, drawer.end_line):
        entry = parse_property(doc.line_at(n).text)
        if entry:
            out.append((n, entry))
    return out


def property_indent(
    doc: TextDocument, drawer: PropertyDrawer, default: str = DEFAULT_INDENT
) -> str:
    """Indentation of the first entry, used as the style for new ones."""
    for _n, entry in read_properties(doc, drawer):
        return entry.indent
    return default


def build_property_line(key: str, value: str, indent: str = DEFAULT_INDENT) -> str:
    return f"{indent}:{key.upper()}: {value}"


def build_property_drawer(
    properties: list[tuple[str, str]], indent: str = DEFAULT_INDENT
) -> list[str]:
    lines = [f"{indent}:PROPERTIES:"]
    lines.extend(build_property_line(k, v, indent) for k, v in properties)
    lines.append(f"{indent}:END:")
    return lines


def get_property(
    doc: TextDocument, heading_line: int, key: str, scan_limit: int = SCAN_LIMIT
) -> str | None:
    drawer = find_property_drawer(doc, heading_line, scan_limit)
    if drawer is None:
        return None
    n = find_property_in_drawer(doc, drawer, key)
    if n is None:
        return None
    entry = parse_property(doc.line_at(n).text)
    return entry.value.strip() if entry else None


def _new_drawer_edit(doc: TextDocument, heading_line: int, lines: list[str]) -> TextEdit:
    """Insert a new drawer below the heading and its planning line."""
    anchor = find_planning_line(doc, heading_line)
    if anchor is None:
        anchor = heading_line
    return TextEdit.insert(doc.line_at(anchor).range.end, "\n" + "\n".join(lines))


def set_property_edits(
    doc: TextDocument,
    heading_line: int,
    key: str,
    value: str,
    idgen: IdGenerator,
    indent: str = DEFAULT_INDENT,
    scan_limit: int = SCAN_LIMIT,
) -> list[TextEdit]:
    """
    Edits writing ``key`` under the heading at ``heading_line``.

    An existing entry is replaced in place. A missing entry goes right before
    ``:END:``. Without a drawer a new one is created holding a fresh ``ID``
    and the entry (just the ``ID`` when that is the key being set).
    """
    key = key.upper()
    drawer = find_property_drawer(doc, heading_line, scan_limit)

    if drawer is not None:
        n = find_property_in_drawer(doc, drawer, key)
        if n is not None:
            line = doc.line_at(n)
            entry = parse_property(line.text)
            new_line = build_property_line(key, value, entry.indent if entry else indent)
            return [TextEdit.replace(line.range, new_line)]

        new_line = build_property_line(key, value, property_indent(doc, drawer, indent))
        return [TextEdit.insert(Position(drawer.end_line, 0), new_line + "\n")]

    entries = [("ID", value)] if key == "ID" else [("ID", idgen.new_id()), (key, value)]
    heading = doc.line_at(heading_line)
    lines = build_property_drawer(entries, parse_indent(heading.text) + indent)
    return [_new_drawer_edit(doc, heading_line, lines)]


def find_id_in_document(doc: TextDocument, id: str) -> int | None:
    """Line of the first ``:ID: <id>`` entry, matched case-insensitively on the key."""
    pattern = re.compile(rf"^\s*:ID:\s+{re.escape(id)}\s*$", re.IGNORECASE)
    for n in range(doc.line_count):
        if pattern.match(doc.line_at(n).text):
            return n
    return None


def get_or_generate_id(
    doc: TextDocument,
    heading_line: int,
    idgen: IdGenerator,
    scan_limit: int = SCAN_LIMIT,
) -> tuple[str, bool]:
    """Existing ID of the heading, or a new one with ``needs_insert`` set."""
    existing = get_property(doc, heading_line, "ID", scan_limit)
    if existing:
        return existing, False
    return idgen.new_id(), True


def insert_id_edits(
    doc: TextDocument,
    heading_line: int,
    id: str,
    indent: str = DEFAULT_INDENT,
    scan_limit: int = SCAN_LIMIT,
) -> list[TextEdit]:
    """Edits adding ``:ID: id`` to the heading's drawer, creating it if needed."""
    drawer = find_property_drawer(doc, heading_line, scan_limit)
    if drawer is not None:
        line = build_property_line("ID", id, property_indent(doc, drawer, indent))
        return [TextEdit.insert(Position(drawer.end_line, 0), line + "\n")]

    heading = doc.line_at(heading_line)
    lines = build_property_drawer([("ID", id)], parse_indent(heading.text) + indent)
    return [_new_drawer_edit(doc, heading_line, lines)]


def find_drawer_end(
    doc: TextDocument, start_line: int, scan_limit: int = SCAN_LIMIT
) -> int | None:
    """``:END:`` closing the drawer opened at ``start_line``."""
    stop = min(start_line + scan_limit, doc.line_count)
    for n in range(start_line + 1, stop):
        text = doc.line_at(n).text
        if is_heading_line(text):
            return None
        if is_drawer_end(text):
            return n
    return None
