"""Tests for the link grammar."""

from orgedit.core.document import TextBuffer
from orgedit.grammar.links import (
    build_bracket_link,
    collect_links,
    link_at,
    parse_link_target,
    parse_links,
    resolve_in_document,
)


def test_parse_links_on_line():
    """Test all three link kinds ordered by column."""
    line = "See [[https://x.org][X]] and https://y.com or file:notes.org"
    links = parse_links(line)

    assert [link.kind for link in links] == ["bracket", "http", "file"]
    assert links[0].target == "https://x.org"
    assert links[0].description == "X"
    assert links[1].target == "https://y.com"
    assert links[2].target == "notes.org"


def test_bracket_targets_not_reported_twice():
    """Test that urls inside bracket links are only the bracket link."""
    links = parse_links("[[file:a.org]] [[https://b.com]]")
    assert [link.kind for link in links] == ["bracket", "bracket"]


def test_link_at():
    """Test finding the link under a column, ends inclusive."""
    line = "go [[target]] now"
    assert link_at(line, 3).target == "target"
    assert link_at(line, 13).target == "target"
    assert link_at(line, 0) is None


def test_build_bracket_link():
    """Test building bracket links."""
    assert build_bracket_link("a.org") == "[[a.org]]"
    assert build_bracket_link("a.org", "A") == "[[a.org][A]]"


def test_parse_link_target():
    """Test target classification."""
    assert parse_link_target("https://a.com").kind == "http"

    target = parse_link_target("file:x.org")
    assert (target.kind, target.path) == ("file", "x.org")

    target = parse_link_target("file:x.org::*Heading")
    assert (target.kind, target.file, target.headline) == ("headline", "x.org", "Heading")

    target = parse_link_target("#abc")
    assert (target.kind, target.id) == ("id", "abc")

    target = parse_link_target("x.org::#id1")
    assert (target.kind, target.file, target.id) == ("id", "x.org", "id1")

    target = parse_link_target("*Local")
    assert (target.kind, target.file, target.headline) == ("headline", None, "Local")

    assert parse_link_target("dir/a.txt").kind == "file"
    assert parse_link_target("word").kind == "other"


def test_resolve_in_document():
    """Test resolving headline and id targets to lines."""
    doc = TextBuffer("* TODO Target :t:\n:PROPERTIES:\n:ID: abc\n:END:\n* Other")

    assert resolve_in_document(doc, parse_link_target("*Target")) == 0
    assert resolve_in_document(doc, parse_link_target("#abc")) == 2
    assert resolve_in_document(doc, parse_link_target("*Missing")) is None
    assert resolve_in_document(doc, parse_link_target("https://a.com")) is None


def test_collect_links():
    """Test collecting links with their resolution."""
    doc = TextBuffer("* Other\n[[*Other]] and [[file:far.org::*Other]]")
    found = collect_links(doc)

    assert [(n, link.target, resolved) for n, link, _t, resolved in found] == [
        (1, "*Other", 0),
        (1, "file:far.org::*Other", None),
    ]
    assert collect_links(doc, lines=[0]) == []
