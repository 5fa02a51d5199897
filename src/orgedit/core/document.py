"""In-memory text buffer implementing the host document and edit protocols."""

import logging
from typing import Sequence

from .model import Position, Range, TextEdit, TextLine
from .ports import EditApplier, TextDocument

logger = logging.getLogger(__name__)


class TextBuffer(TextDocument, EditApplier):
    """
    Line addressable buffer. Lines are split on "\\n" only, so a trailing
    newline yields a final empty line, matching how editors count lines.
    """

    def __init__(self, text: str = ""):
        self._lines = text.split("\n")

    @classmethod
    def from_lines(cls, lines: Sequence[str]) -> "TextBuffer":
        return cls("\n".join(lines))

    @property
    def line_count(self) -> int:
        return len(self._lines)

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    def line_at(self, line: int) -> TextLine:
        text = self._lines[line]
        return TextLine(
            line_number=line,
            text=text,
            range=Range(Position(line, 0), Position(line, len(text))),
        )

    def get_text(self) -> str:
        return "\n".join(self._lines)

    def offset_at(self, pos: Position) -> int:
        """
        Convert a position to a character offset.

        Lines are clamped into the buffer and characters into their line.
        """
        line = min(max(pos.line, 0), len(self._lines) - 1)
        character = min(max(pos.character, 0), len(self._lines[line]))
        return sum(len(ln) + 1 for ln in self._lines[:line]) + character

    def position_at(self, offset: int) -> Position:
        offset = max(offset, 0)
        for i, ln in enumerate(self._lines):
            if offset <= len(ln):
                return Position(i, offset)
            offset -= len(ln) + 1
        last = len(self._lines) - 1
        return Position(last, len(self._lines[last]))

    def _valid(self, pos: Position) -> bool:
        return 0 <= pos.line < len(self._lines) and 0 <= pos.character <= len(
            self._lines[pos.line]
        )

    def edited_text(self, edits: Sequence[TextEdit]) -> str | None:
        """
        Compute the text after applying ``edits`` without touching the buffer.

        Every range refers to the current snapshot. Inserts at the same
        position keep their batch order. Returns None when a range is out of
        bounds or two edits overlap.
        """
        spans = []
        for seq, edit in enumerate(edits):
            if not (self._valid(edit.range.start) and self._valid(edit.range.end)):
                return None
            start = self.offset_at(edit.range.start)
            end = self.offset_at(edit.range.end)
            if end < start:
                return None
            spans.append((start, end, seq, edit.new_text))
        spans.sort(key=lambda s: (s[0], s[2]))

        text = self.get_text()
        out = []
        cursor = 0
        for start, end, _seq, new_text in spans:
            if start < cursor:
                return None
            out.append(text[cursor:start])
            out.append(new_text)
            cursor = end
        out.append(text[cursor:])
        return "".join(out)

    def apply_edits(self, edits: Sequence[TextEdit]) -> bool:
        new_text = self.edited_text(edits)
        if new_text is None:
            logger.warning("Rejected edit batch of %d edits", len(edits))
            return False
        self._lines = new_text.split("\n")
        return True
