"""Heading grammar: parsing, building, subtree boundaries and promote/demote."""

import re
from functools import lru_cache
from typing import Sequence

from ..core.model import Heading, Position, Range, TextEdit
from ..core.ports import TextDocument
from .keywords import DEFAULT_KEYWORDS, KeywordSet, parse_keywords

# a KeywordSet, a sequence string like "TODO | DONE", or keyword names
Keywords = KeywordSet | str | Sequence[str] | None

STARS_RE = re.compile(r"^(\*+)\s")
TAGS_RE = re.compile(r"^(.+?)\s+(:[^\s:]+(?::[^\s:]+)*:)\s*$")


def _names(keywords: Keywords) -> tuple[str, ...]:
    if keywords is None:
        return DEFAULT_KEYWORDS.names
    if isinstance(keywords, KeywordSet):
        return keywords.names
    if isinstance(keywords, str):
        return parse_keywords(keywords).names
    return tuple(keywords)


@lru_cache(maxsize=32)
def _heading_re(names: tuple[str, ...]) -> re.Pattern[str]:
    kw = "|".join(re.escape(n) for n in names if n)
    kw_group = rf"(?:({kw})\s+)?" if kw else "()"
    return re.compile(rf"^(\*+)\s+{kw_group}(?:\[#([A-Z])\]\s+)?(.*)$")


def split_tags(title: str) -> tuple[str, list[str]]:
    """Split a trailing ``:tag1:tag2:`` group off a title."""
    pure = title.strip()
    m = TAGS_RE.match(pure)
    if not m:
        return pure, []
    tags = [t for t in m.group(2)[1:-1].split(":") if t]
    return m.group(1).strip(), tags


def parse_heading(line: str, keywords: Keywords = None) -> Heading | None:
    """
    Parse a heading line.

    Returns None when the line is not a heading. A star run must be followed
    by whitespace: ``"*bold*"`` is not a heading, ``"* "`` is an empty one.
    """
    m = _heading_re(_names(keywords)).match(line)
    if not m:
        return None
    title, tags = split_tags(m.group(4) or "")
    return Heading(
        level=len(m.group(1)),
        keyword=m.group(2) or None,
        priority=m.group(3) or None,
        title=title,
        tags=tags,
    )


def title_start(line: str, keywords: Keywords = None) -> int:
    """Column where the title begins, past the stars, keyword and priority."""
    m = _heading_re(_names(keywords)).match(line)
    return m.start(4) if m else 0


def heading_level(line: str) -> int:
    """Star run length of a heading line, 0 for anything else."""
    m = STARS_RE.match(line)
    return len(m.group(1)) if m else 0


def is_heading_line(line: str) -> bool:
    return heading_level(line) > 0


def build_heading_line(
    level: int,
    title: str,
    keyword: str | None = None,
    priority: str | None = None,
    tags: Sequence[str] | None = None,
) -> str:
    line = "*" * max(level, 1)
    if keyword:
        line += f" {keyword}"
    if priority:
        line += f" [#{priority}]"
    line += f" {title}"
    if tags:
        line += f" :{':'.join(tags)}:"
    return line


def build_heading(heading: Heading) -> str:
    return build_heading_line(
        heading.level, heading.title, heading.keyword, heading.priority, heading.tags
    )


def display_name(heading: Heading) -> str:
    """Outline label: keyword, title and tags."""
    name = heading.title
    if heading.keyword:
        name = f"{heading.keyword} {name}"
    if heading.tags:
        name += f" :{':'.join(heading.tags)}:"
    return name


def find_next_heading(doc: TextDocument, line: int, level: int) -> int:
    """Line of the next heading at ``level`` or shallower after ``line``, else -1."""
    for n in range(line + 1, doc.line_count):
        found = heading_level(doc.line_at(n).text)
        if 0 < found <= level:
            return n
    return -1


def find_subtree_end(doc: TextDocument, line: int) -> int:
    """
    Last line of the subtree headed at ``line``.

    The subtree runs up to, not including, the next heading whose level is
    less than or equal to the anchor's. A non-heading line is returned as is.
    """
    level = heading_level(doc.line_at(line).text)
    if level == 0:
        return line
    nxt = find_next_heading(doc, line, level)
    if nxt == -1:
        return doc.line_count - 1
    return nxt - 1


def find_current_heading(
    doc: TextDocument, line: int, keywords: Keywords = None
) -> tuple[int, Heading] | None:
    """The heading on ``line`` or the nearest heading whose subtree contains it."""
    heading = parse_heading(doc.line_at(line).text, keywords)
    if heading:
        return line, heading

    for n in range(line - 1, -1, -1):
        heading = parse_heading(doc.line_at(n).text, keywords)
        if heading:
            nxt = find_next_heading(doc, n, heading.level)
            if nxt == -1 or line < nxt:
                return n, heading
    return None


def shift_subtree(doc: TextDocument, line: int, delta: int) -> list[TextEdit]:
    """
    Replace the star run of every heading in the subtree at ``line``.

    Levels move by ``delta`` with a floor of 1; relative depth is kept. Only
    headings whose level actually changes get an edit. Everything after the
    star run is left untouched.
    """
    if heading_level(doc.line_at(line).text) == 0:
        return []
    end = find_subtree_end(doc, line)

    edits = []
    for n in range(line, end + 1):
        level = heading_level(doc.line_at(n).text)
        if level == 0:
            continue
        new_level = max(1, level + delta)
        if new_level != level:
            edits.append(
                TextEdit.replace(
                    Range(Position(n, 0), Position(n, level)), "*" * new_level
                )
            )
    return edits


def promote_subtree(doc: TextDocument, line: int) -> list[TextEdit]:
    """One level up. A level 1 anchor stays where it is."""
    level = heading_level(doc.line_at(line).text)
    if level <= 1:
        return []
    return shift_subtree(doc, line, -1)


def demote_subtree(doc: TextDocument, line: int) -> list[TextEdit]:
    return shift_subtree(doc, line, +1)


def _rebuild(line: str, keywords: Keywords, **changes) -> str:
    heading = parse_heading(line, keywords)
    if heading is None:
        return line
    for key, value in changes.items():
        setattr(heading, key, value)
    return build_heading(heading)


def update_todo_state(line: str, state: str | None, keywords: Keywords = None) -> str:
    return _rebuild(line, keywords, keyword=state or None)


def update_priority(line: str, priority: str | None, keywords: Keywords = None) -> str:
    return _rebuild(line, keywords, priority=priority or None)


def update_tags(line: str, tags: Sequence[str], keywords: Keywords = None) -> str:
    return _rebuild(line, keywords, tags=list(tags))
