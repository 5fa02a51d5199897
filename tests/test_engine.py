"""Tests for structural edit commands."""

from datetime import datetime

import pytest

from orgedit.config import KeywordConfig, OrgConfig
from orgedit.core.document import TextBuffer
from orgedit.core.model import EditPlan, FoldRange, Position, Range, TextEdit
from orgedit.engine import StructuralEditEngine


class FixedId:
    def new_id(self) -> str:
        return "fixed-id"


def run(text, line, character, action, engine=None, **options):
    """Run an action and apply it, returning (new text, plan)."""
    engine = engine or StructuralEditEngine(idgen=FixedId())
    doc = TextBuffer(text)
    plan = engine.run(action, doc, Position(line, character), **options)
    assert engine.apply(plan, doc)
    return doc.get_text(), plan


# Headings


def test_meta_return_at_heading_end_inserts_after_subtree():
    """Test that a new sibling heading lands after the whole subtree."""
    text, plan = run("* H1\nbody\n** sub\n* H2", 0, 4, "meta-return")
    assert text == "* H1\nbody\n** sub\n* \n* H2"
    assert plan.cursor == Position(3, 2)


def test_meta_return_skips_trailing_blank_lines():
    """Test that the new heading goes above blank lines ending the subtree."""
    text, _ = run("* A\ntext\n\n* B", 0, 3, "meta-return")
    assert text == "* A\ntext\n* \n\n* B"


def test_meta_return_at_heading_start_inserts_above():
    """Test inserting a heading above when the cursor is at column 0."""
    text, plan = run("** H", 0, 0, "meta-return")
    assert text == "** \n** H"
    assert plan.cursor == Position(0, 3)


def test_meta_return_splits_heading():
    """Test splitting a heading in the middle of its title."""
    text, plan = run("* Hello world", 0, 7, "meta-return")
    assert text == "* Hello\n* world"
    assert plan.cursor == Position(1, 2)


def test_split_heading_with_body():
    """Test that the split off title goes after the subtree."""
    text, _ = run("* Hello world\nbody", 0, 7, "split")
    assert text == "* Hello\nbody\n* world"


def test_split_inside_stars_keeps_heading_intact():
    """Test that a cut inside the star run or keyword moves to the title start."""
    text, plan = run("** Hello", 0, 1, "split")
    assert text == "** \n** Hello"
    assert plan.cursor == Position(1, 3)

    text, _ = run("* TODO Task", 0, 3, "split")
    assert text == "* TODO \n* Task"


def test_smart_return_on_heading():
    """Test that smart return ignores the cursor column."""
    text, _ = run("* Hello world\nbody", 0, 2, "smart-return")
    assert text == "* Hello world\nbody\n* "


def test_promote_demote_subtree():
    """Test demote then promote restores the outline."""
    original = "* H1\n** H2\nContent\n*** H3\nmore\n* H4"
    demoted, plan = run(original, 1, 3, "demote")
    assert demoted == "* H1\n*** H2\nContent\n**** H3\nmore\n* H4"
    assert plan.cursor == Position(1, 4)

    promoted, _ = run(demoted, 1, 4, "promote")
    assert promoted == original


def test_promote_level_one_reports():
    """Test that promoting a top level heading changes nothing."""
    text, plan = run("* Top\n** Child", 0, 0, "promote")
    assert text == "* Top\n** Child"
    assert plan.edits == []
    assert plan.message


# Lists


def test_meta_return_at_item_end():
    """Test inserting a sibling right after the item line."""
    text, plan = run("- a\n- b", 0, 3, "meta-return")
    assert text == "- a\n- \n- b"
    assert plan.cursor == Position(1, 2)


def test_meta_return_renumbers_ordered_run():
    """Test that numbering is 1..k+1 and items outside the run are untouched."""
    text, plan = run("1. a\n2. b\n3. c\n\n* H\n1. other", 0, 4, "meta-return")
    assert text == "1. a\n2. \n3. b\n4. c\n\n* H\n1. other"
    assert plan.cursor == Position(1, 3)


def test_meta_return_renumbers_across_nested_items():
    """Test renumbering skips deeper items in the middle of the run."""
    text, _ = run("1. a\n   - x\n2. b", 2, 4, "meta-return")
    assert text == "1. a\n   - x\n2. b\n3. "


def test_meta_return_splits_item():
    """Test splitting an item moves the rest into a new sibling."""
    text, plan = run("- hello world", 0, 7, "meta-return")
    assert text == "- hello\n- world"
    assert plan.cursor == Position(1, 2)


def test_split_ordered_item_renumbers():
    """Test that splitting an ordered item renumbers the following ones."""
    text, _ = run("1. one two\n2. three", 0, 6, "split")
    assert text == "1. one\n2. two\n3. three"


def test_meta_return_before_item_content():
    """Test inserting a sibling above when the cursor is before the content."""
    text, plan = run("- a", 0, 0, "meta-return")
    assert text == "- \n- a"
    assert plan.cursor == Position(0, 2)


def test_meta_return_on_checkbox_starts_unchecked():
    """Test that new checkbox items are unchecked."""
    text, _ = run("- [X] done", 0, 10, "meta-return")
    assert text == "- [X] done\n- [ ] "


def test_meta_return_in_nested_content():
    """Test that the new sibling goes after the item's content."""
    text, plan = run("- a\n  more text\n- b", 1, 11, "meta-return")
    assert text == "- a\n  more text\n- \n- b"
    assert plan.cursor == Position(2, 2)


def test_smart_return_respects_sub_items():
    """Test that smart return inserts after the whole item."""
    text, _ = run("- a\n  - child\n- b", 0, 1, "smart-return")
    assert text == "- a\n  - child\n- \n- b"


def test_indent_and_outdent_item():
    """Test demote and promote on list items."""
    text, plan = run("- a\n- b", 1, 2, "demote")
    assert text == "- a\n  - b"
    assert plan.cursor == Position(1, 4)

    text, _ = run(text, 1, 4, "promote")
    assert text == "- a\n- b"

    text, plan = run("- a", 0, 0, "shift-tab")
    assert text == "- a"
    assert plan.message


# Tab


def test_tab_folds_heading():
    """Test folding a subtree."""
    _, plan = run("* A\ntext\n* B", 0, 0, "tab")
    assert plan.fold == FoldRange(0, 1, "subtree")
    assert plan.edits == []


def test_tab_on_empty_heading():
    """Test that a heading without a body has nothing to fold."""
    _, plan = run("* A\n* B", 0, 0, "tab")
    assert plan.fold is None
    assert plan.message


def test_tab_on_list():
    """Test folding items with children and indenting the others."""
    _, plan = run("- a\n  - b\n- c", 0, 0, "tab")
    assert plan.fold == FoldRange(0, 1, "list")

    text, _ = run("- a\n  - b\n- c", 2, 0, "tab")
    assert text == "- a\n  - b\n  - c"


def test_tab_moves_between_cells():
    """Test table navigation."""
    _, plan = run("| a | b |\n| c | d |", 0, 2, "tab")
    assert plan.cursor == Position(0, 6)

    _, plan = run("| a | b |\n| c | d |", 0, 6, "tab")
    assert plan.cursor == Position(1, 2)

    _, plan = run("| a | b |\n| c | d |", 1, 2, "shift-tab")
    assert plan.cursor == Position(0, 6)


def test_tab_folds_drawer_and_block():
    """Test folding drawers and blocks from their header line."""
    _, plan = run("* H\n:PROPERTIES:\n:ID: x\n:END:", 1, 0, "tab")
    assert plan.fold == FoldRange(1, 3, "drawer")

    _, plan = run("#+BEGIN_SRC\ncode\n#+END_SRC", 0, 0, "tab")
    assert plan.fold == FoldRange(0, 2, "block")


def test_tab_falls_back_on_text():
    """Test that plain text leaves the keystroke to the host."""
    _, plan = run("just text", 0, 2, "tab")
    assert plan.fallback == "tab"
    _, plan = run("just text", 0, 2, "shift-tab")
    assert plan.fallback == "outdent"


# Other elements


def test_meta_return_on_table_adds_row():
    """Test inserting an empty row."""
    text, plan = run("| a | b |", 0, 3, "meta-return")
    assert text == "| a | b |\n| | |"
    assert plan.cursor == Position(1, 1)


def test_meta_return_in_drawer_adds_entry():
    """Test starting a new property entry."""
    text, plan = run("* H\n  :PROPERTIES:\n  :ID: x\n  :END:", 2, 5, "meta-return")
    assert text == "* H\n  :PROPERTIES:\n  :ID: x\n  :\n  :END:"
    assert plan.cursor == Position(3, 3)


def test_meta_return_in_code_block_keeps_indent():
    """Test that a newline in a block keeps the indentation."""
    text, plan = run("#+BEGIN_SRC\n    x\n#+END_SRC", 1, 5, "meta-return")
    assert text == "#+BEGIN_SRC\n    x\n    \n#+END_SRC"
    assert plan.cursor == Position(2, 4)


def test_meta_return_in_text():
    """Test heading insertion inside a subtree and plain newlines outside."""
    text, _ = run("** A\nsome text", 1, 9, "meta-return")
    assert text == "** A\nsome text\n** "

    text, _ = run("* A\n", 1, 0, "meta-return")
    assert text == "* A\n* "

    text, plan = run("hello", 0, 2, "meta-return")
    assert text == "he\nllo"
    assert plan.cursor == Position(1, 0)

    text, _ = run("", 0, 0, "meta-return")
    assert text == "* "


# Heading metadata


def test_ctrl_c_ctrl_c_cycles_checkbox():
    """Test checkbox states cycle in place."""
    text, _ = run("- [ ] task", 0, 0, "ctrl-c-ctrl-c")
    assert text == "- [X] task"
    text, _ = run(text, 0, 0, "ctrl-c-ctrl-c")
    assert text == "- [-] task"


def test_ctrl_c_ctrl_c_cycles_keyword():
    """Test that on a heading it advances the keyword."""
    text, _ = run("* TODO x", 0, 0, "ctrl-c-ctrl-c")
    assert text == "* NEXT x"


def test_cycle_todo_wraps_to_none():
    """Test the keyword cycle wraps through no keyword."""
    text, _ = run("* DONE x", 0, 0, "cycle-todo")
    assert text == "* CANCELLED x"
    text, _ = run(text, 0, 0, "cycle-todo")
    assert text == "* x"


def test_set_todo_from_body():
    """Test that the owning heading is updated from a body line."""
    text, plan = run("* Task\nbody", 1, 0, "set-todo", state="DONE")
    assert text == "* DONE Task\nbody"
    assert plan.message == "State set to DONE"


def test_set_todo_rejects_unknown_keyword():
    """Test keyword validation."""
    engine = StructuralEditEngine()
    with pytest.raises(ValueError):
        engine.run("set-todo", TextBuffer("* Task"), Position(0, 0), state="BOGUS")


def test_priority_cycle():
    """Test raising and lowering priorities."""
    text, _ = run("* Task", 0, 0, "priority-up")
    assert text == "* [#C] Task"
    text, _ = run("* [#A] Task", 0, 0, "priority-up")
    assert text == "* Task"
    text, _ = run("* Task", 0, 0, "priority-down")
    assert text == "* [#A] Task"


def test_set_tags():
    """Test replacing tags, trimming colons."""
    text, _ = run("* Task :old:", 0, 0, "set-tags", tags=["a", ":b:", " "])
    assert text == "* Task :a:b:"


def test_insert_todo_heading():
    """Test inserting a TODO heading after the subtree or on a blank line."""
    text, plan = run("* A\nbody", 0, 0, "insert-todo-heading")
    assert text == "* A\nbody\n* TODO "
    assert plan.cursor == Position(2, 7)

    text, _ = run("** A\n", 1, 0, "insert-todo-heading")
    assert text == "** A\n** TODO "


def test_set_property_through_engine():
    """Test writing a property creates the drawer."""
    text, plan = run("* H\nbody", 1, 0, "set-property", key="owner", value="me")
    assert text == "* H\n  :PROPERTIES:\n  :ID: fixed-id\n  :OWNER: me\n  :END:\nbody"
    assert plan.message == "Updated property OWNER"


def test_set_property_rejects_bad_key():
    """Test property key validation."""
    engine = StructuralEditEngine()
    with pytest.raises(ValueError):
        engine.run("set-property", TextBuffer("* H"), Position(0, 0), key="bad key", value="x")


def test_get_or_create_id():
    """Test returning an existing ID and creating a missing one."""
    _, plan = run("* H\n:PROPERTIES:\n:ID: abc\n:END:", 0, 0, "get-or-create-id")
    assert plan.value == "abc"
    assert plan.edits == []

    text, plan = run("* H", 0, 0, "get-or-create-id")
    assert plan.value == "fixed-id"
    assert text == "* H\n  :PROPERTIES:\n  :ID: fixed-id\n  :END:"


NOW = datetime(2024, 1, 15, 10, 30)
LOGGING = OrgConfig(
    keywords_config=KeywordConfig("TODO NEXT(!) | DONE(!) CANCELLED(@)")
)


def logging_engine():
    return StructuralEditEngine(config=LOGGING, idgen=FixedId(), clock=lambda: NOW)


def test_done_with_timestamp_adds_closed():
    """Test that a '!' done state writes CLOSED in the same batch."""
    text, plan = run(
        "* TODO Task\nbody", 1, 0, "set-todo", engine=logging_engine(), state="DONE"
    )
    assert text == "* DONE Task\n  CLOSED: [2024-01-15 Mon 10:30]\nbody"
    assert len(plan.edits) == 2


def test_closed_joins_existing_planning_line():
    """Test that CLOSED is appended to a planning line already there."""
    text, _ = run(
        "* TODO Task\n  SCHEDULED: <2024-01-20 Sat>\nbody",
        0,
        0,
        "set-todo",
        engine=logging_engine(),
        state="DONE",
    )
    assert text == (
        "* DONE Task\n  SCHEDULED: <2024-01-20 Sat> CLOSED: [2024-01-15 Mon 10:30]\nbody"
    )


def test_active_state_with_timestamp_logs_transition():
    """Test the STATE line for a '!' active state."""
    text, _ = run("* TODO Task", 0, 0, "set-todo", engine=logging_engine(), state="NEXT")
    assert text == "* NEXT Task\n  STATE: [2024-01-15 Mon 10:30] TODO -> NEXT"

    text, _ = run("* Task", 0, 0, "set-todo", engine=logging_engine(), state="NEXT")
    assert text == "* NEXT Task\n  STATE: [2024-01-15 Mon 10:30] none -> NEXT"


def test_reopening_drops_closed():
    """Test that leaving a done state removes CLOSED and an emptied planning line."""
    text, _ = run(
        "* DONE Task\n  CLOSED: [2024-01-15 Mon 10:30]\nbody",
        0,
        0,
        "set-todo",
        engine=logging_engine(),
        state="TODO",
    )
    assert text == "* TODO Task\nbody"

    text, _ = run(
        "* DONE Task\n  SCHEDULED: <2024-01-20 Sat> CLOSED: [2024-01-15 Mon 10:30]",
        0,
        0,
        "set-todo",
        engine=logging_engine(),
        state="TODO",
    )
    assert text == "* TODO Task\n  SCHEDULED: <2024-01-20 Sat>"


def test_note_state_adds_note():
    """Test that an '@' state records the note and nothing without one."""
    engine = logging_engine()
    text, _ = run(
        "* TODO Task", 0, 0, "set-todo", engine=engine, state="CANCELLED", note="blocked"
    )
    assert text == "* CANCELLED Task\n  - Note: blocked"

    text, _ = run("* TODO Task", 0, 0, "set-todo", engine=engine, state="CANCELLED")
    assert text == "* CANCELLED Task"


def test_default_keywords_log_nothing():
    """Test that unflagged keywords only rewrite the heading."""
    _, plan = run("* TODO Task", 0, 0, "set-todo", state="DONE", note="ignored")
    assert len(plan.edits) == 1


def test_set_scheduled_inserts_planning_line():
    """Test adding a SCHEDULED entry below the heading from a body line."""
    text, plan = run("* Task\nbody", 1, 0, "set-scheduled", date="2024-01-20")
    assert text == "* Task\n  SCHEDULED: <2024-01-20 Sat>\nbody"
    assert plan.message == "SCHEDULED set to <2024-01-20 Sat>"


def test_set_planning_updates_in_place():
    """Test replacing an entry and appending the other kind."""
    original = "* Task\n  SCHEDULED: <2024-01-01 Mon>\nbody"
    text, _ = run(original, 0, 0, "set-scheduled", date="2024-01-20")
    assert text == "* Task\n  SCHEDULED: <2024-01-20 Sat>\nbody"

    text, _ = run(original, 0, 0, "set-deadline", date="2024-01-22")
    assert text == "* Task\n  SCHEDULED: <2024-01-01 Mon> DEADLINE: <2024-01-22 Mon>\nbody"


def test_set_planning_defaults_to_today():
    """Test that the clock supplies the date when none is given."""
    text, _ = run("* Task", 0, 0, "set-deadline", engine=logging_engine())
    assert text == "* Task\n  DEADLINE: <2024-01-15 Mon>"


def test_set_planning_rejects_bad_dates():
    """Test date validation."""
    engine = StructuralEditEngine()
    for date in ("2024-13-01", "tomorrow", "2024-1-5"):
        with pytest.raises(ValueError):
            engine.run("set-scheduled", TextBuffer("* Task"), Position(0, 0), date=date)
    with pytest.raises(ValueError):
        engine.set_planning(TextBuffer("* Task"), Position(0, 0), "CLOSED", "2024-01-01")


def test_planning_line_stays_above_drawer():
    """Test that planning lines and drawers keep their order."""
    text, _ = run(
        "* Task\n  :PROPERTIES:\n  :ID: a\n  :END:", 0, 0, "set-scheduled", date="2024-01-20"
    )
    assert text == "* Task\n  SCHEDULED: <2024-01-20 Sat>\n  :PROPERTIES:\n  :ID: a\n  :END:"

    text, _ = run(
        "* Task\n  SCHEDULED: <2024-01-20 Sat>", 0, 0, "set-property", key="owner", value="me"
    )
    assert text == (
        "* Task\n  SCHEDULED: <2024-01-20 Sat>\n"
        "  :PROPERTIES:\n  :ID: fixed-id\n  :OWNER: me\n  :END:"
    )


UNTERMINATED = "* A\n:PROPERTIES:\nplain\n* B\nbody under B"


def test_meta_return_after_unterminated_drawer():
    """Test that body text under the next heading gets a heading, not a property."""
    text, plan = run(UNTERMINATED, 4, 12, "meta-return")
    assert text == UNTERMINATED + "\n* "
    assert plan.cursor == Position(5, 2)

    text, _ = run(UNTERMINATED, 2, 5, "meta-return")
    assert text == "* A\n:PROPERTIES:\nplain\n* \n* B\nbody under B"


def test_set_property_with_unterminated_drawer():
    """Test that an unterminated drawer is ignored and a real one is added."""
    text, _ = run(UNTERMINATED, 0, 0, "set-property", key="owner", value="me")
    assert text == (
        "* A\n  :PROPERTIES:\n  :ID: fixed-id\n  :OWNER: me\n  :END:\n"
        ":PROPERTIES:\nplain\n* B\nbody under B"
    )


def test_heading_commands_without_heading():
    """Test that heading commands are no-ops outside any heading."""
    text, plan = run("loose text", 0, 0, "cycle-todo")
    assert text == "loose text"
    assert plan.message == "No heading at cursor"


# Dispatch


def test_unknown_action():
    """Test that unknown actions raise."""
    engine = StructuralEditEngine()
    with pytest.raises(ValueError, match="Unknown action"):
        engine.run("explode", TextBuffer(""), Position(0, 0))


def test_run_clamps_position():
    """Test that positions past the end are clamped into the document."""
    text, _ = run("- a", 50, 50, "meta-return")
    assert text == "- a\n- "


def test_run_ignores_unrelated_options():
    """Test that options an action does not take are dropped."""
    text, _ = run("* H", 0, 0, "demote", state="DONE", key="x")
    assert text == "** H"


def test_apply_rejects_overlapping_batch():
    """Test that an overlapping batch leaves the document untouched."""
    engine = StructuralEditEngine()
    doc = TextBuffer("abcdef")
    plan = EditPlan(
        edits=[
            TextEdit.replace(Range(Position(0, 0), Position(0, 4)), "x"),
            TextEdit.replace(Range(Position(0, 2), Position(0, 6)), "y"),
        ]
    )
    assert engine.apply(plan, doc) is False
    assert doc.get_text() == "abcdef"
    assert engine.apply(EditPlan(), doc) is True
    assert EditPlan().is_noop
