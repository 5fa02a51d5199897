"""Line scan results with named exit reasons.

Every backward/forward scan in the grammars reports why it stopped, so the
many termination rules can be asserted on directly in tests.
"""

from dataclasses import dataclass

# Exit reasons
ANCESTOR = "ancestor"  # found a less indented list item owning the line
SIBLING = "sibling"  # found a list item at the same or deeper indent
HEADING = "heading"  # crossed a heading
BLANK_RUN = "blank-run"  # too many consecutive blank lines
DEDENT = "dedent"  # a non-list line at or left of the boundary indent
LOWER_ITEM = "lower-item"  # a list item with smaller indent
START = "start"  # ran off the top of the document


@dataclass(frozen=True)
class ScanResult:
    exit: str
    line: int  # line that triggered the exit, -1 when the document ran out
    found: int = -1  # line of interest collected before exiting


def is_blank(text: str) -> bool:
    return text.strip() == ""
