"""``#+BEGIN_<NAME>`` ... ``#+END_<NAME>`` blocks."""

import re

from ..core.ports import TextDocument

BEGIN_RE = re.compile(r"^\s*#\+BEGIN_(\w+)", re.IGNORECASE)
END_RE = re.compile(r"^\s*#\+END_(\w+)", re.IGNORECASE)


def block_begin(line: str) -> str | None:
    """Upper-cased block name when ``line`` opens a block."""
    m = BEGIN_RE.match(line)
    return m.group(1).upper() if m else None


def block_end(line: str) -> str | None:
    m = END_RE.match(line)
    return m.group(1).upper() if m else None


def is_fence_line(line: str) -> bool:
    return bool(BEGIN_RE.match(line) or END_RE.match(line))


def find_block_end(doc: TextDocument, line: int) -> int | None:
    """Line of the ``#+END_`` matching the block opened at ``line``."""
    name = block_begin(doc.line_at(line).text)
    if name is None:
        return None
    for n in range(line + 1, doc.line_count):
        if block_end(doc.line_at(n).text) == name:
            return n
    return None
