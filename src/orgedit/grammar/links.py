"""Link grammar: bracket, bare url and ``file:`` links, and target classification."""

import re
from typing import Iterable

from ..core.model import Link, LinkTarget
from ..core.ports import TextDocument
from .headings import Keywords, parse_heading
from .properties import find_id_in_document

BRACKET_RE = re.compile(r"\[\[([^\]]+)\](?:\[([^\]]*)\])?\]")
HTTP_RE = re.compile(r"(https?://[^\s\]]+)")
FILE_RE = re.compile(r"file:([^\s\]]+)")


def parse_bracket_links(line: str) -> list[Link]:
    return [
        Link("bracket", m.group(1), m.start(), m.end(), m.group(2))
        for m in BRACKET_RE.finditer(line)
    ]


def parse_http_links(line: str) -> list[Link]:
    return [Link("http", m.group(1), m.start(), m.end()) for m in HTTP_RE.finditer(line)]


def parse_file_links(line: str) -> list[Link]:
    return [Link("file", m.group(1), m.start(), m.end()) for m in FILE_RE.finditer(line)]


def _inside(link: Link, spans: list[Link]) -> bool:
    return any(s.start_col <= link.start_col and link.end_col <= s.end_col for s in spans)


def parse_links(line: str) -> list[Link]:
    """
    All links on a line, ordered by start column.

    A url or ``file:`` link written as the target of a bracket link is only
    reported once, as the bracket link.
    """
    brackets = parse_bracket_links(line)
    links = list(brackets)
    for link in parse_http_links(line) + parse_file_links(line):
        if not _inside(link, brackets):
            links.append(link)
    links.sort(key=lambda l: l.start_col)
    return links


def link_at(line: str, col: int) -> Link | None:
    """Link under column ``col``; both ends are inclusive."""
    for link in parse_links(line):
        if link.start_col <= col <= link.end_col:
            return link
    return None


def build_bracket_link(target: str, description: str | None = None) -> str:
    if description:
        return f"[[{target}][{description}]]"
    return f"[[{target}]]"


def _anchor_target(file: str | None, anchor: str) -> LinkTarget:
    if anchor.startswith("*"):
        return LinkTarget("headline", file=file, headline=anchor[1:])
    if anchor.startswith("#"):
        return LinkTarget("id", file=file, id=anchor[1:])
    return LinkTarget("headline", file=file, headline=anchor)


def parse_link_target(target: str) -> LinkTarget:
    """
    Classify a link target.

    ``http(s)://`` urls, ``file:`` paths, ``#id``, ``file.org::*Headline``,
    ``file.org::#id``, ``*Headline``, bare paths (anything with ``.org`` or a
    slash) and finally ``other``.
    """
    if target.startswith(("http://", "https://")):
        return LinkTarget("http", path=target)

    if target.startswith("file:"):
        path = target[len("file:"):]
        if "::" in path:
            file, _, anchor = path.partition("::")
            return _anchor_target(file, anchor)
        return LinkTarget("file", path=path)

    if target.startswith("#"):
        return LinkTarget("id", id=target[1:])

    if "::" in target:
        file, _, anchor = target.partition("::")
        return _anchor_target(file or None, anchor)

    if target.startswith("*"):
        return LinkTarget("headline", headline=target[1:])

    if ".org" in target or "/" in target:
        return LinkTarget("file", path=target)

    return LinkTarget("other", path=target)


def resolve_in_document(
    doc: TextDocument, target: LinkTarget, keywords: Keywords = None
) -> int | None:
    """
    Line a headline or id target points at inside ``doc``.

    Headlines compare against the title without keyword, priority or tags.
    Targets naming another file are not resolved here.
    """
    if target.kind == "id" and target.id:
        return find_id_in_document(doc, target.id)

    if target.kind == "headline" and target.headline is not None:
        wanted = target.headline.strip()
        for n in range(doc.line_count):
            heading = parse_heading(doc.line_at(n).text, keywords)
            if heading and heading.title == wanted:
                return n
    return None


def collect_links(
    doc: TextDocument, keywords: Keywords = None, lines: Iterable[int] | None = None
) -> list[tuple[int, Link, LinkTarget, int | None]]:
    """
    Every link on ``lines`` (default: all) as ``(line, link, target, resolved)``.

    ``resolved`` is the line the target points at when it lives in ``doc``.
    """
    out = []
    for n in lines if lines is not None else range(doc.line_count):
        for link in parse_links(doc.line_at(n).text):
            target = parse_link_target(link.target)
            resolved = None if target.file else resolve_in_document(doc, target, keywords)
            out.append((n, link, target, resolved))
    return out
