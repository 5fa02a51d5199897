import os
import tempfile
from pathlib import Path
from typing import Sequence

from ..core.document import TextBuffer
from ..core.model import TextEdit
from ..core.ports import EditApplier


def write_atomic(path: Path, contents: str) -> None:
    """Write through a temp file in the same directory, then replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(contents)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


class FsHost(EditApplier):
    """A file on disk as an edit host: edits land in memory, then on disk."""

    def __init__(self, path: Path):
        self.path = path
        self.buffer = TextBuffer(path.read_text(encoding="utf-8"))

    @property
    def doc(self) -> TextBuffer:
        return self.buffer

    def apply_edits(self, edits: Sequence[TextEdit]) -> bool:
        if not self.buffer.apply_edits(edits):
            return False
        self.save()
        return True

    def save(self) -> None:
        write_atomic(self.path, self.buffer.get_text())
