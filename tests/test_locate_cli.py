"""Tests for orgedit locate."""

import json
import subprocess
import tempfile
from pathlib import Path

from orgedit.core.document import TextBuffer
from orgedit.locate import locate_element


def test_locate_heading_subtree():
    """Test locating a heading returns its whole subtree."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "notes.org"
        path.write_text("* A\nbody\n* B\n")

        result = subprocess.run(
            ["orgedit", "locate", str(path), "1"],
            capture_output=True,
            text=True,
        )

        assert result.returncode == 0
        data = json.loads(result.stdout)
        assert data["kind"] == "heading"
        assert data["lines"] == {"start": 1, "end": 2}
        assert data["range"] == {"start": 0, "end": 8}
        assert data["path"].endswith("notes.org")


def test_locate_tsv():
    """Test TSV output."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "notes.org"
        path.write_text("- a\n  - b\n- c\n")

        result = subprocess.run(
            ["orgedit", "locate", str(path), "1", "--format", "tsv"],
            capture_output=True,
            text=True,
        )

        assert result.returncode == 0
        fields = result.stdout.strip().split("\t")
        assert fields[1:] == ["list-item", "0", "9", "1", "2"]


def test_locate_line_out_of_range():
    """Test that lines outside the document fail."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "notes.org"
        path.write_text("* A")

        result = subprocess.run(
            ["orgedit", "locate", str(path), "5"],
            capture_output=True,
            text=True,
        )

        assert result.returncode == 1
        assert "outside" in result.stderr


def test_locate_element_extents():
    """Test extents of tables, drawers and blocks."""
    doc = TextBuffer(
        "* H\n:PROPERTIES:\n:ID: x\n:END:\n| a |\n| b |\n#+BEGIN_SRC\ncode\n#+END_SRC"
    )

    assert locate_element(doc, 2)["lines"] == {"start": 2, "end": 4}
    assert locate_element(doc, 5)["lines"] == {"start": 5, "end": 6}
    assert locate_element(doc, 7)["lines"] == {"start": 7, "end": 9}

    block = locate_element(doc, 6)
    assert block["kind"] == "code-block-header"
    assert block["lines"] == {"start": 7, "end": 9}


def test_unterminated_block_is_a_single_line():
    """Test that a #+BEGIN_ without its #+END_ does not swallow the document."""
    doc = TextBuffer("#+BEGIN_SRC\ncode\n* H\nbody")

    header = locate_element(doc, 1)
    assert header["kind"] == "code-block-header"
    assert header["lines"] == {"start": 1, "end": 1}
    assert locate_element(doc, 2)["kind"] == "text"
