"""Utilities for locating structural elements with precise line and character positions."""

import json
import sys
from pathlib import Path
from typing import Any

from .analyzer import analyze_context
from .config import OrgConfig
from .core import model
from .core.document import TextBuffer
from .core.model import Context, Position
from .grammar import blocks, properties, tables
from .grammar.headings import find_subtree_end
from .grammar.lists import find_list_item_end


def _table_extent(doc: TextBuffer, line: int) -> tuple[int, int]:
    start = end = line
    while start > 0 and tables.is_table_line(doc.line_at(start - 1).text):
        start -= 1
    while end + 1 < doc.line_count and tables.is_table_line(doc.line_at(end + 1).text):
        end += 1
    return start, end


def _drawer_extent(doc: TextBuffer, line: int, scan_limit: int) -> tuple[int, int]:
    start = line
    while start >= 0 and not properties.is_drawer_start(doc.line_at(start).text):
        start -= 1
    if start < 0:
        return line, line
    end = properties.find_drawer_end(doc, start, scan_limit)
    if end is None or end < line:
        return line, line
    return start, end


def _block_extent(doc: TextBuffer, line: int) -> tuple[int, int]:
    start = line
    while start >= 0 and blocks.block_begin(doc.line_at(start).text) is None:
        start -= 1
    if start < 0:
        return line, line
    end = blocks.find_block_end(doc, start)
    if end is None or end < line:
        return line, line
    return start, end


def element_extent(doc: TextBuffer, ctx: Context, config: OrgConfig) -> tuple[int, int]:
    """First and last line (0-based, inclusive) of the element described by ``ctx``."""
    if ctx.kind == model.HEADING:
        return ctx.line, find_subtree_end(doc, ctx.line)
    if ctx.is_list:
        return ctx.line, find_list_item_end(doc, ctx.line, ctx.indent or 0)
    if ctx.kind == model.TABLE:
        return _table_extent(doc, ctx.line)
    if ctx.is_property:
        return _drawer_extent(doc, ctx.line, config.properties.scan_limit)
    if ctx.kind in (model.CODE_BLOCK, model.CODE_BLOCK_HEADER):
        return _block_extent(doc, ctx.line)
    return ctx.line, ctx.line


def locate_element(
    doc: TextBuffer,
    line: int,
    config: OrgConfig | None = None,
    format_type: str = "json",
) -> dict[str, Any] | str:
    """
    Get precise location information for the element on ``line`` (0-based).

    Args:
        doc: The document
        line: Line to look at
        config: Keyword set and limits
        format_type: Output format ("json" or "tsv")

    Returns:
        Location information as dict (for JSON) or TSV string
    """
    config = config or OrgConfig()
    ctx = analyze_context(doc, Position(line, 0), config)
    start_line, end_line = element_extent(doc, ctx, config)

    start = doc.offset_at(Position(start_line, 0))
    end = doc.offset_at(doc.line_at(end_line).range.end)

    if format_type == "tsv":
        return f"{ctx.kind}\t{start}\t{end}\t{start_line + 1}\t{end_line + 1}"

    return {
        "kind": ctx.kind,
        "range": {"start": start, "end": end},
        "lines": {"start": start_line + 1, "end": end_line + 1},
    }


def cmd_locate(args: Any, rt: Any) -> int:
    """
    Locate command handler.

    Args:
        args: Parsed command-line arguments
        rt: Runtime instance

    Returns:
        Exit code
    """
    path = Path(args.file)
    if not path.exists():
        print(f"File {path} not found", file=sys.stderr)
        return 1

    doc = TextBuffer(path.read_text(encoding="utf-8"))
    if not 1 <= args.line <= doc.line_count:
        print(f"Line {args.line} is outside {path} (1..{doc.line_count})", file=sys.stderr)
        return 1

    format_type = getattr(args, "format", "json")
    location = locate_element(doc, args.line - 1, rt.config, format_type)

    if format_type == "json":
        location["path"] = str(path.absolute())
        print(json.dumps(location, indent=2))
    else:
        print(f"{path.absolute()}\t{location}")

    return 0
