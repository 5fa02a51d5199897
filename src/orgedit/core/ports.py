from typing import Protocol, Sequence

from .model import TextEdit, TextLine


class TextDocument(Protocol):
    """
    Read-only, line addressable snapshot of the host's buffer.
    """

    @property
    def line_count(self) -> int:
        pass

    def line_at(self, line: int) -> TextLine:
        pass

    def get_text(self) -> str:
        pass


class EditApplier(Protocol):
    """
    Applies one ordered batch of edits computed against a single snapshot.
    All or nothing; returns False when the batch was rejected.
    """

    def apply_edits(self, edits: Sequence[TextEdit]) -> bool:
        pass


class IdGenerator(Protocol):
    def new_id(self) -> str:
        pass
