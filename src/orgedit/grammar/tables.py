"""Table grammar: rows, separator rows and cell navigation."""

import re

from ..core.model import CellSpan, Position, TableRow
from ..core.ports import TextDocument

TABLE_RE = re.compile(r"^\s*\|.*\|\s*$")
SEPARATOR_RE = re.compile(r"^\s*\|[-+|]+\|\s*$")


def is_table_line(line: str) -> bool:
    return bool(TABLE_RE.match(line))


def is_separator_line(line: str) -> bool:
    return bool(SEPARATOR_RE.match(line))


def parse_table_row(line: str) -> TableRow | None:
    if not is_table_line(line):
        return None
    cells = [c.strip() for c in line.strip().split("|")[1:-1]]
    return TableRow(cells)


def build_table_row(cells: list[str]) -> str:
    return "| " + " | ".join(cells) + " |"


def create_empty_row(columns: int) -> str:
    return "|" + " |" * columns


def create_separator_row(columns: int) -> str:
    return "|" + "---|" * columns


def column_count(line: str) -> int:
    row = parse_table_row(line)
    return row.column_count if row else 0


def _skip_spaces(line: str, col: int, stop: int) -> int:
    while col < stop and line[col] == " ":
        col += 1
    return col


def find_cell_position(line: str, col: int) -> CellSpan | None:
    """Cell containing column ``col``; the opening and closing pipes are outside it."""
    if not is_table_line(line):
        return None

    index = -1
    start = 0
    for i, ch in enumerate(line):
        if ch != "|":
            continue
        if index >= 0 and start <= col < i:
            return CellSpan(index, start, i)
        index += 1
        start = i + 1
    return None


def find_next_cell(line: str, col: int) -> int | None:
    """Content start of the cell after ``col``, or None when it is the last one."""
    pipe = line.find("|", col)
    if pipe == -1:
        return None
    start = _skip_spaces(line, pipe + 1, len(line))
    if start >= len(line) or "|" not in line[start:]:
        return None
    return start


def find_previous_cell(line: str, col: int) -> int | None:
    """Content start of the cell before the one holding ``col``."""
    before = line[:col]
    pipe = before.rfind("|")
    if pipe <= 0:
        return None
    start = before.rfind("|", 0, pipe)
    if start == -1:
        return None
    return _skip_spaces(line, start + 1, pipe)


def _first_cell(line: str) -> int | None:
    pipe = line.find("|")
    if pipe == -1:
        return None
    return _skip_spaces(line, pipe + 1, len(line))


def _last_cell(line: str) -> int | None:
    last = line.rfind("|")
    if last <= 0:
        return None
    start = line.rfind("|", 0, last)
    if start == -1:
        return None
    return _skip_spaces(line, start + 1, last)


def next_cell_position(doc: TextDocument, pos: Position) -> Position | None:
    """Next cell, moving to the first cell of the following row when needed."""
    text = doc.line_at(pos.line).text
    col = find_next_cell(text, pos.character)
    if col is not None:
        return Position(pos.line, col)

    if pos.line + 1 < doc.line_count:
        below = doc.line_at(pos.line + 1).text
        if is_table_line(below):
            col = _first_cell(below)
            if col is not None:
                return Position(pos.line + 1, col)
    return None


def previous_cell_position(doc: TextDocument, pos: Position) -> Position | None:
    """Previous cell, moving to the last cell of the preceding row when needed."""
    text = doc.line_at(pos.line).text
    col = find_previous_cell(text, pos.character)
    if col is not None:
        return Position(pos.line, col)

    if pos.line > 0:
        above = doc.line_at(pos.line - 1).text
        if is_table_line(above):
            col = _last_cell(above)
            if col is not None:
                return Position(pos.line - 1, col)
    return None
