"""
Planning lines and timestamps.

A planning line sits directly under a heading and holds ``SCHEDULED:``,
``DEADLINE:`` and ``CLOSED:`` entries::

    * TODO Write report
      SCHEDULED: <2024-01-15 Mon> DEADLINE: <2024-01-20 Sat>
"""

import re
from datetime import date, datetime

from ..core.model import Range, TextEdit
from ..core.ports import TextDocument

SCHEDULED = "SCHEDULED"
DEADLINE = "DEADLINE"
CLOSED = "CLOSED"
KINDS = (SCHEDULED, DEADLINE, CLOSED)

PLANNING_RE = re.compile(r"^\s*(?:SCHEDULED|DEADLINE|CLOSED):")
ENTRY_RE = re.compile(r"(SCHEDULED|DEADLINE|CLOSED):\s*([<\[][^>\]]*[>\]])")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# locale independent day names
DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def is_planning_line(line: str) -> bool:
    return bool(PLANNING_RE.match(line))


def parse_planning(line: str) -> dict[str, str]:
    """Entries of a planning line as ``{kind: timestamp}``."""
    if not is_planning_line(line):
        return {}
    return {m.group(1): m.group(2) for m in ENTRY_RE.finditer(line)}


def parse_date(text: str) -> date:
    """Parse ``YYYY-MM-DD``; raises ValueError for anything else."""
    if not DATE_RE.match(text.strip()):
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {text!r}")
    return date.fromisoformat(text.strip())


def format_date(value: date) -> str:
    return f"{value.isoformat()} {DAY_NAMES[value.weekday()]}"


def active_timestamp(value: date) -> str:
    """``<2024-01-15 Mon>``"""
    return f"<{format_date(value)}>"


def inactive_timestamp(moment: datetime) -> str:
    """``[2024-01-15 Mon 10:30]``"""
    return f"[{format_date(moment.date())} {moment:%H:%M}]"


def find_planning_line(doc: TextDocument, heading_line: int) -> int | None:
    n = heading_line + 1
    if n < doc.line_count and is_planning_line(doc.line_at(n).text):
        return n
    return None


def set_planning_edits(
    doc: TextDocument,
    heading_line: int,
    kind: str,
    timestamp: str,
    indent: str = "  ",
) -> list[TextEdit]:
    """
    Edits writing ``KIND: timestamp`` for the heading at ``heading_line``.

    An existing entry of that kind is replaced in place, another planning
    line gets the entry appended, and otherwise a new planning line is added
    right below the heading.
    """
    entry = f"{kind}: {timestamp}"
    n = find_planning_line(doc, heading_line)
    if n is None:
        heading = doc.line_at(heading_line)
        return [TextEdit.insert(heading.range.end, f"\n{indent}{entry}")]

    line = doc.line_at(n)
    pattern = re.compile(rf"{kind}:\s*[<\[][^>\]]*[>\]]")
    if pattern.search(line.text):
        new_text = pattern.sub(lambda _m: entry, line.text, count=1)
    else:
        new_text = f"{line.text.rstrip()} {entry}"
    return [TextEdit.replace(line.range, new_text)]


def remove_planning_edits(
    doc: TextDocument, heading_line: int, kind: str
) -> list[TextEdit]:
    """Drop the ``kind`` entry; a planning line left empty is removed whole."""
    n = find_planning_line(doc, heading_line)
    if n is None:
        return []
    line = doc.line_at(n)
    pattern = re.compile(rf"\s*{kind}:\s*[<\[][^>\]]*[>\]]")
    if not pattern.search(line.text):
        return []
    rest = pattern.sub("", line.text, count=1)
    if rest.strip():
        indent = line.text[: len(line.text) - len(line.text.lstrip())]
        return [TextEdit.replace(line.range, indent + rest.strip())]
    prev = doc.line_at(n - 1).range.end
    return [TextEdit.delete(Range(prev, line.range.end))]
