"""Heading keyword sets (the TODO/DONE state sequence)."""

import re
from dataclasses import dataclass

DEFAULT_SEQUENCE = "TODO NEXT WAITING | DONE CANCELLED"

_KEYWORD_RE = re.compile(r"(\w+)(\([^)]*\))?")


@dataclass(frozen=True)
class Keyword:
    keyword: str
    done: bool = False
    needs_timestamp: bool = False
    needs_note: bool = False


@dataclass(frozen=True)
class KeywordSet:
    """Ordered, immutable keyword set. Active states come before done states."""

    keywords: tuple[Keyword, ...]

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(k.keyword for k in self.keywords)

    @property
    def todo(self) -> tuple[str, ...]:
        return tuple(k.keyword for k in self.keywords if not k.done)

    @property
    def done(self) -> tuple[str, ...]:
        return tuple(k.keyword for k in self.keywords if k.done)

    def get(self, name: str) -> Keyword | None:
        for k in self.keywords:
            if k.keyword == name:
                return k
        return None

    def is_valid(self, name: str) -> bool:
        return self.get(name) is not None

    def is_done(self, name: str | None) -> bool:
        k = self.get(name) if name else None
        return bool(k and k.done)

    def default_todo(self) -> str:
        todo = self.todo
        return todo[0] if todo else (self.names[0] if self.names else "TODO")

    def next_state(self, current: str | None, forward: bool = True) -> str | None:
        """
        Cycle through the states with "no keyword" as the wrap point:
        None -> first -> ... -> last -> None (reversed when not forward).
        """
        cycle: list[str | None] = [None, *self.names]
        try:
            i = cycle.index(current)
        except ValueError:
            i = 0
        step = 1 if forward else -1
        return cycle[(i + step) % len(cycle)]


def parse_keywords(sequence: str) -> KeywordSet:
    """
    Parse a keyword sequence such as ``"TODO NEXT | DONE(@/!) CANCELLED"``.

    Words after ``|`` are done states. A parenthesized suffix marks logging:
    ``@`` asks for a note, ``!`` for a timestamp. An empty sequence falls back to
    the default sequence; without ``|`` the last word is the done state.
    """
    if not sequence.strip():
        sequence = DEFAULT_SEQUENCE

    if "|" in sequence:
        todo_part, done_part = (s.strip() for s in sequence.split("|", 1))
    else:
        words = sequence.split()
        todo_part, done_part = " ".join(words[:-1]), words[-1] if words else ""

    keywords: list[Keyword] = []
    for section, done in ((todo_part, False), (done_part, True)):
        for m in _KEYWORD_RE.finditer(section):
            flags = m.group(2) or ""
            keywords.append(
                Keyword(
                    keyword=m.group(1),
                    done=done,
                    needs_timestamp="!" in flags,
                    needs_note="@" in flags,
                )
            )
    return KeywordSet(tuple(keywords))


DEFAULT_KEYWORDS = parse_keywords(DEFAULT_SEQUENCE)
