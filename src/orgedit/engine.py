"""
Structural edit commands.

Every command classifies the cursor, computes the complete batch of edits
against that one snapshot and returns it as an ``EditPlan``. Nothing touches
the document until ``apply`` hands the whole batch to the host.
"""

import logging
import re
from datetime import datetime
from typing import Callable

from .adapters.idgen import UuidId
from .analyzer import analyze_context, clamp
from .config import OrgConfig
from .core import model
from .core.model import Context, EditPlan, FoldRange, Position, Range, TextEdit
from .core.ports import EditApplier, IdGenerator, TextDocument
from .core.scan import is_blank
from .grammar import blocks, planning, properties, tables
from .grammar.headings import (
    demote_subtree,
    find_current_heading,
    find_subtree_end,
    promote_subtree,
    title_start,
    update_priority,
    update_tags,
    update_todo_state,
)
from .grammar.lists import (
    LIST_RE,
    build_list_item_line,
    find_list_item_end,
    has_sub_items,
    leading_whitespace,
    next_checkbox_state,
    ordinal_marker,
    renumber_edits,
    sibling_run,
)

logger = logging.getLogger(__name__)

KEY_RE = re.compile(r"^\w+$")

# CLI/API action name -> engine method
ACTIONS = {
    "meta-return": "meta_return",
    "smart-return": "smart_return",
    "split": "split",
    "promote": "promote",
    "demote": "demote",
    "tab": "smart_tab",
    "shift-tab": "smart_shift_tab",
    "ctrl-c-ctrl-c": "ctrl_c_ctrl_c",
    "insert-todo-heading": "insert_todo_heading",
    "set-todo": "set_todo_state",
    "cycle-todo": "cycle_todo",
    "priority-up": "priority_up",
    "priority-down": "priority_down",
    "set-tags": "set_tags",
    "set-scheduled": "set_scheduled",
    "set-deadline": "set_deadline",
    "set-property": "set_property",
    "get-or-create-id": "get_or_create_id",
}

# Keyword options each action accepts
ACTION_OPTIONS = {
    "set-todo": ("state", "note"),
    "set-tags": ("tags",),
    "set-scheduled": ("date",),
    "set-deadline": ("date",),
    "set-property": ("key", "value"),
}


def insert_after(doc: TextDocument, line: int, text: str) -> TextEdit:
    """Insert ``text`` as a new line right after ``line``."""
    return TextEdit.insert(doc.line_at(line).range.end, "\n" + text)


def replace_line(doc: TextDocument, line: int, text: str) -> TextEdit:
    return TextEdit.replace(doc.line_at(line).range, text)


def content_end(doc: TextDocument, start: int, end: int) -> int:
    """``end`` moved up past trailing blank lines, never above ``start``."""
    while end > start and is_blank(doc.line_at(end).text):
        end -= 1
    return end


def split_edits(
    doc: TextDocument, pos: Position, anchor: int, new_line: str
) -> list[TextEdit]:
    """
    Cut the line at ``pos`` and add ``new_line`` after ``anchor``.

    When the anchor is the cut line itself both happen in one replacement.
    """
    line = doc.line_at(pos.line)
    cut = Range(pos, line.range.end)
    if anchor == pos.line:
        return [TextEdit.replace(cut, "\n" + new_line)]
    edits = [insert_after(doc, anchor, new_line)]
    if not cut.is_empty:
        edits.insert(0, TextEdit.delete(cut))
    return edits


class StructuralEditEngine:
    def __init__(
        self,
        config: OrgConfig | None = None,
        idgen: IdGenerator | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.config = config or OrgConfig()
        self.idgen = idgen or UuidId()
        self.clock = clock or datetime.now

    @property
    def keywords(self):
        return self.config.keywords

    @property
    def blank_limit(self) -> int:
        return self.config.blank_limit

    def analyze(self, doc: TextDocument, pos: Position) -> Context:
        return analyze_context(doc, pos, self.config)

    # Dispatch

    def run(self, action: str, doc: TextDocument, pos: Position, **options) -> EditPlan:
        """Run a command by its action name (``meta-return``, ``tab``, ...)."""
        name = ACTIONS.get(action)
        if name is None:
            raise ValueError(f"Unknown action: {action}")
        accepted = ACTION_OPTIONS.get(action, ())
        kwargs = {k: v for k, v in options.items() if k in accepted and v is not None}
        plan = getattr(self, name)(doc, clamp(doc, pos), **kwargs)
        logger.debug(
            "%s at %d:%d -> %d edits, cursor=%s, fold=%s, fallback=%s",
            action,
            pos.line,
            pos.character,
            len(plan.edits),
            plan.cursor,
            plan.fold,
            plan.fallback,
        )
        return plan

    def apply(self, plan: EditPlan, host: EditApplier) -> bool:
        """Hand the plan's edits to the host as one batch."""
        if not plan.edits:
            return True
        ok = host.apply_edits(plan.edits)
        if not ok:
            logger.warning("Host rejected a batch of %d edits", len(plan.edits))
        return ok

    # Headings

    def _new_heading_after_subtree(
        self, doc: TextDocument, line: int, level: int, title: str = ""
    ) -> EditPlan:
        end = content_end(doc, line, find_subtree_end(doc, line))
        new_line = f"{'*' * level} {title}"
        return EditPlan(
            edits=[insert_after(doc, end, new_line)],
            cursor=Position(end + 1, level + 1),
        )

    def _split_heading(self, doc: TextDocument, pos: Position, level: int) -> EditPlan:
        text = doc.line_at(pos.line).text
        pos = Position(pos.line, max(pos.character, title_start(text, self.keywords)))
        rest = text[pos.character:].strip()
        end = content_end(doc, pos.line, find_subtree_end(doc, pos.line))
        new_line = f"{'*' * level} {rest}"
        return EditPlan(
            edits=split_edits(doc, pos, end, new_line),
            cursor=Position(end + 1, level + 1),
        )

    # Lists

    def _item_content_start(self, text: str) -> int:
        m = LIST_RE.match(text)
        if not m:
            return 0
        start = m.start(3)
        box = re.match(r"\[[ X-]\](?:\s+|$)", text[start:])
        return start + box.end() if box else start

    def _sibling_line(self, ctx: Context, marker: str, content: str = "") -> str:
        return build_list_item_line(
            ctx.indent or 0,
            marker,
            content,
            ctx.kind == model.CHECKBOX,
            " ",
        )

    def _insert_item(
        self, doc: TextDocument, ctx: Context, anchor: int, before: bool = False
    ) -> EditPlan:
        """
        New empty sibling after ``anchor`` (or before the item when ``before``),
        renumbering the ordered run around it.
        """
        run = sibling_run(doc, ctx.line, ctx.indent or 0, self.blank_limit)
        if before:
            index = sum(1 for n, _ in run if n < ctx.line)
        else:
            index = sum(1 for n, _ in run if n <= anchor)
        marker = ordinal_marker(index) if ctx.ordered else ctx.marker or "-"
        new_line = self._sibling_line(ctx, marker)

        if before:
            edits = [TextEdit.insert(Position(ctx.line, 0), new_line + "\n")]
            cursor = Position(ctx.line, len(new_line))
        else:
            edits = [insert_after(doc, anchor, new_line)]
            cursor = Position(anchor + 1, len(new_line))
        if ctx.ordered:
            edits.extend(renumber_edits(run, index))
        return EditPlan(edits=edits, cursor=cursor)

    def _item_end(self, doc: TextDocument, ctx: Context) -> int:
        end = find_list_item_end(doc, ctx.line, ctx.indent or 0)
        return content_end(doc, ctx.line, end)

    def _split_item(self, doc: TextDocument, pos: Position, ctx: Context) -> EditPlan:
        text = doc.line_at(pos.line).text
        if pos.line == ctx.line:
            pos = Position(pos.line, max(pos.character, self._item_content_start(text)))
            anchor = pos.line
        else:
            anchor = self._item_end(doc, ctx)
        rest = text[pos.character:].strip()

        run = sibling_run(doc, ctx.line, ctx.indent or 0, self.blank_limit)
        index = sum(1 for n, _ in run if n <= ctx.line)
        marker = ordinal_marker(index) if ctx.ordered else ctx.marker or "-"
        new_line = self._sibling_line(ctx, marker, rest)

        edits = split_edits(doc, pos, anchor, new_line)
        if ctx.ordered:
            edits.extend(renumber_edits(run, index))
        return EditPlan(
            edits=edits, cursor=Position(anchor + 1, len(new_line) - len(rest))
        )

    def _shift_item(self, doc: TextDocument, pos: Position, ctx: Context, delta: int) -> EditPlan:
        line = ctx.line
        indent = ctx.indent or 0
        character = pos.character if pos.line == line else None
        if delta > 0:
            edit = TextEdit.insert(Position(line, 0), " " * delta)
        else:
            removed = min(-delta, indent)
            if removed == 0:
                return EditPlan(message="Item is already at the left margin")
            delta = -removed
            edit = TextEdit.delete(Range(Position(line, 0), Position(line, removed)))
        cursor = None
        if character is not None:
            cursor = Position(line, max(0, character + delta))
        return EditPlan(edits=[edit], cursor=cursor)

    # Return family

    def meta_return(self, doc: TextDocument, pos: Position) -> EditPlan:
        """Insert the element that naturally follows the one under the cursor."""
        ctx = self.analyze(doc, pos)
        text = doc.line_at(pos.line).text
        at_beginning = text[: pos.character].strip() == ""
        at_end = text[pos.character:].strip() == ""

        if ctx.kind == model.HEADING:
            level = ctx.level or 1
            if pos.character == 0:
                new_line = f"{'*' * level} "
                return EditPlan(
                    edits=[TextEdit.insert(Position(pos.line, 0), new_line + "\n")],
                    cursor=Position(pos.line, len(new_line)),
                )
            if at_end:
                return self._new_heading_after_subtree(doc, pos.line, level)
            return self._split_heading(doc, pos, level)

        if ctx.is_list:
            if ctx.nested:
                if at_end:
                    return self._insert_item(doc, ctx, self._item_end(doc, ctx))
                return self._split_item(doc, pos, ctx)
            if at_end:
                return self._insert_item(doc, ctx, ctx.line)
            if pos.character <= self._item_content_start(text):
                return self._insert_item(doc, ctx, ctx.line, before=True)
            return self._split_item(doc, pos, ctx)

        if ctx.kind == model.TABLE:
            ws = leading_whitespace(text)
            row = ws + tables.create_empty_row(tables.column_count(text))
            return EditPlan(
                edits=[insert_after(doc, pos.line, row)],
                cursor=Position(pos.line + 1, len(ws) + 1),
            )

        if ctx.kind in (
            model.PROPERTY_DRAWER_HEADER,
            model.PROPERTY_ITEM,
            model.PROPERTY_DRAWER,
        ):
            indent = properties.parse_indent(text) or self.config.properties.indent
            return EditPlan(
                edits=[insert_after(doc, pos.line, f"{indent}:")],
                cursor=Position(pos.line + 1, len(indent) + 1),
            )

        if ctx.kind in (model.CODE_BLOCK, model.CODE_BLOCK_HEADER):
            ws = leading_whitespace(text)
            return EditPlan(
                edits=[insert_after(doc, pos.line, ws)],
                cursor=Position(pos.line + 1, len(ws)),
            )

        if ctx.kind == model.TEXT:
            found = find_current_heading(doc, pos.line, self.keywords)
            if found is not None:
                stars = "*" * found[1].level
                if is_blank(text):
                    return EditPlan(
                        edits=[replace_line(doc, pos.line, f"{stars} ")],
                        cursor=Position(pos.line, len(stars) + 1),
                    )
                return EditPlan(
                    edits=[insert_after(doc, pos.line, f"{stars} ")],
                    cursor=Position(pos.line + 1, len(stars) + 1),
                )
            if at_beginning and is_blank(text):
                return EditPlan(
                    edits=[TextEdit.insert(pos, "* ")],
                    cursor=Position(pos.line, pos.character + 2),
                )

        return self.newline(doc, pos)

    def smart_return(self, doc: TextDocument, pos: Position) -> EditPlan:
        """Like ``meta_return`` but always lands after the whole element."""
        ctx = self.analyze(doc, pos)
        if ctx.kind == model.HEADING:
            return self._new_heading_after_subtree(doc, ctx.line, ctx.level or 1)
        if ctx.is_list:
            return self._insert_item(doc, ctx, self._item_end(doc, ctx))
        return self.meta_return(doc, pos)

    def split(self, doc: TextDocument, pos: Position) -> EditPlan:
        """Move the rest of the line into a new sibling heading or item."""
        ctx = self.analyze(doc, pos)
        if ctx.kind == model.HEADING:
            return self._split_heading(doc, pos, ctx.level or 1)
        if ctx.is_list:
            return self._split_item(doc, pos, ctx)
        return EditPlan()

    def newline(self, doc: TextDocument, pos: Position) -> EditPlan:
        return EditPlan(
            edits=[TextEdit.insert(pos, "\n")], cursor=Position(pos.line + 1, 0)
        )

    # Structure

    def promote(self, doc: TextDocument, pos: Position) -> EditPlan:
        ctx = self.analyze(doc, pos)
        if ctx.kind == model.HEADING:
            edits = promote_subtree(doc, ctx.line)
            if not edits:
                return EditPlan(message="Cannot promote a level 1 heading")
            return EditPlan(edits=edits, cursor=Position(pos.line, max(0, pos.character - 1)))
        if ctx.is_list:
            return self._shift_item(doc, pos, ctx, -self.config.lists.indent)
        return EditPlan()

    def demote(self, doc: TextDocument, pos: Position) -> EditPlan:
        ctx = self.analyze(doc, pos)
        if ctx.kind == model.HEADING:
            return EditPlan(
                edits=demote_subtree(doc, ctx.line),
                cursor=Position(pos.line, pos.character + 1),
            )
        if ctx.is_list:
            return self._shift_item(doc, pos, ctx, self.config.lists.indent)
        return EditPlan()

    def smart_tab(self, doc: TextDocument, pos: Position) -> EditPlan:
        """Fold, indent or move to the next cell depending on the element."""
        ctx = self.analyze(doc, pos)

        if ctx.kind == model.HEADING:
            end = find_subtree_end(doc, ctx.line)
            if end == ctx.line:
                return EditPlan(message="Nothing to fold")
            return EditPlan(fold=FoldRange(ctx.line, end, "subtree"))

        if ctx.is_list:
            indent = ctx.indent or 0
            if has_sub_items(doc, ctx.line, indent):
                end = find_list_item_end(doc, ctx.line, indent)
                return EditPlan(fold=FoldRange(ctx.line, end, "list"))
            return self._shift_item(doc, pos, ctx, self.config.lists.indent)

        if ctx.kind == model.TABLE:
            return EditPlan(cursor=tables.next_cell_position(doc, pos))

        if ctx.kind == model.PROPERTY_DRAWER_HEADER:
            end = properties.find_drawer_end(
                doc, ctx.line, self.config.properties.scan_limit
            )
            if end is not None:
                return EditPlan(fold=FoldRange(ctx.line, end, "drawer"))
            return EditPlan(fallback="tab")

        if ctx.kind == model.CODE_BLOCK_HEADER:
            end = blocks.find_block_end(doc, ctx.line)
            if end is not None:
                return EditPlan(fold=FoldRange(ctx.line, end, "block"))

        return EditPlan(fallback="tab")

    def smart_shift_tab(self, doc: TextDocument, pos: Position) -> EditPlan:
        ctx = self.analyze(doc, pos)
        if ctx.is_list:
            return self._shift_item(doc, pos, ctx, -self.config.lists.indent)
        if ctx.kind == model.TABLE:
            return EditPlan(cursor=tables.previous_cell_position(doc, pos))
        return EditPlan(fallback="outdent")

    def ctrl_c_ctrl_c(self, doc: TextDocument, pos: Position) -> EditPlan:
        """Toggle the thing under the cursor: a checkbox or a heading keyword."""
        ctx = self.analyze(doc, pos)
        if ctx.kind == model.CHECKBOX:
            text = doc.line_at(ctx.line).text
            m = LIST_RE.match(text)
            col = m.start(3) + 1
            state = next_checkbox_state(ctx.checkbox_state)
            rng = Range(Position(ctx.line, col), Position(ctx.line, col + 1))
            return EditPlan(edits=[TextEdit.replace(rng, state)])
        if ctx.kind == model.HEADING:
            return self.cycle_todo(doc, pos)
        return EditPlan()

    # Heading metadata

    def _current_heading(self, doc: TextDocument, pos: Position):
        return find_current_heading(doc, pos.line, self.keywords)

    def insert_todo_heading(self, doc: TextDocument, pos: Position) -> EditPlan:
        found = self._current_heading(doc, pos)
        level = found[1].level if found else 1
        new_line = f"{'*' * level} {self.keywords.default_todo()} "
        text = doc.line_at(pos.line).text

        if is_blank(text):
            return EditPlan(
                edits=[replace_line(doc, pos.line, new_line)],
                cursor=Position(pos.line, len(new_line)),
            )
        if found and found[0] == pos.line:
            end = content_end(doc, pos.line, find_subtree_end(doc, pos.line))
        else:
            end = pos.line
        return EditPlan(
            edits=[insert_after(doc, end, new_line)],
            cursor=Position(end + 1, len(new_line)),
        )

    def _state_log_edits(
        self,
        doc: TextDocument,
        line: int,
        old: str | None,
        new: str | None,
        note: str | None = None,
    ) -> list[TextEdit]:
        indent = self.config.properties.indent
        keyword = self.keywords.get(new) if new else None
        edits: list[TextEdit] = []
        log: list[str] = []

        if self.keywords.is_done(old) and not self.keywords.is_done(new):
            edits.extend(planning.remove_planning_edits(doc, line, planning.CLOSED))
        if keyword and keyword.needs_timestamp:
            stamp = planning.inactive_timestamp(self.clock())
            if keyword.done:
                edits.extend(
                    planning.set_planning_edits(doc, line, planning.CLOSED, stamp, indent)
                )
            else:
                log.append(f"{indent}STATE: {stamp} {old or 'none'} -> {new}")
        if keyword and keyword.needs_note and note:
            log.append(f"{indent}- Note: {note}")

        if log:
            anchor = planning.find_planning_line(doc, line)
            edits.append(insert_after(doc, line if anchor is None else anchor, "\n".join(log)))
        return edits

    def set_todo_state(
        self,
        doc: TextDocument,
        pos: Position,
        state: str | None = None,
        note: str | None = None,
    ) -> EditPlan:
        """
        Set or clear the keyword of the current heading.

        A keyword flagged ``!`` logs the change in the same batch: done states
        get a ``CLOSED:`` planning entry, others a ``STATE:`` line. A keyword
        flagged ``@`` adds ``note`` below it. Leaving a done state drops
        ``CLOSED:``.
        """
        if state and not self.keywords.is_valid(state):
            raise ValueError(f"Unknown keyword: {state}")
        found = self._current_heading(doc, pos)
        if found is None:
            return EditPlan(message="No heading at cursor")
        line, heading = found
        text = doc.line_at(line).text
        edits = [replace_line(doc, line, update_todo_state(text, state, self.keywords))]
        if (state or None) != heading.keyword:
            edits.extend(self._state_log_edits(doc, line, heading.keyword, state, note))
        return EditPlan(edits=edits, message=f"State set to {state or 'none'}")

    def cycle_todo(self, doc: TextDocument, pos: Position, forward: bool = True) -> EditPlan:
        found = self._current_heading(doc, pos)
        if found is None:
            return EditPlan(message="No heading at cursor")
        _line, heading = found
        return self.set_todo_state(
            doc, pos, self.keywords.next_state(heading.keyword, forward)
        )

    def cycle_priority(self, doc: TextDocument, pos: Position, up: bool = True) -> EditPlan:
        """Step through none, lowest ... highest; ``up`` raises the priority."""
        found = self._current_heading(doc, pos)
        if found is None:
            return EditPlan(message="No heading at cursor")
        line, heading = found

        cycle: list[str | None] = [None, *reversed(self.config.priorities.letters)]
        try:
            i = cycle.index(heading.priority)
        except ValueError:
            i = 0
        priority = cycle[(i + (1 if up else -1)) % len(cycle)]

        text = doc.line_at(line).text
        return EditPlan(
            edits=[replace_line(doc, line, update_priority(text, priority, self.keywords))],
            message=f"Priority set to {priority or 'none'}",
        )

    def priority_up(self, doc: TextDocument, pos: Position) -> EditPlan:
        return self.cycle_priority(doc, pos, up=True)

    def priority_down(self, doc: TextDocument, pos: Position) -> EditPlan:
        return self.cycle_priority(doc, pos, up=False)

    def set_tags(
        self, doc: TextDocument, pos: Position, tags: list[str] | None = None
    ) -> EditPlan:
        found = self._current_heading(doc, pos)
        if found is None:
            return EditPlan(message="No heading at cursor")
        line, _heading = found
        cleaned = [t.strip().strip(":") for t in tags or [] if t.strip().strip(":")]
        text = doc.line_at(line).text
        return EditPlan(
            edits=[replace_line(doc, line, update_tags(text, cleaned, self.keywords))],
            message=f"Tags set to {':'.join(cleaned) or 'none'}",
        )

    def set_planning(
        self,
        doc: TextDocument,
        pos: Position,
        kind: str = planning.SCHEDULED,
        date: str | None = None,
    ) -> EditPlan:
        """Add or update the heading's ``SCHEDULED:`` or ``DEADLINE:`` entry (today by default)."""
        kind = kind.upper()
        if kind not in (planning.SCHEDULED, planning.DEADLINE):
            raise ValueError(f"Unknown planning kind: {kind}")
        day = planning.parse_date(date) if date else self.clock().date()
        found = self._current_heading(doc, pos)
        if found is None:
            return EditPlan(message="No heading at cursor")
        line, _heading = found
        stamp = planning.active_timestamp(day)
        edits = planning.set_planning_edits(
            doc, line, kind, stamp, self.config.properties.indent
        )
        return EditPlan(edits=edits, message=f"{kind} set to {stamp}")

    def set_scheduled(
        self, doc: TextDocument, pos: Position, date: str | None = None
    ) -> EditPlan:
        return self.set_planning(doc, pos, planning.SCHEDULED, date)

    def set_deadline(
        self, doc: TextDocument, pos: Position, date: str | None = None
    ) -> EditPlan:
        return self.set_planning(doc, pos, planning.DEADLINE, date)

    # Properties

    def set_property(
        self, doc: TextDocument, pos: Position, key: str = "", value: str = ""
    ) -> EditPlan:
        if not KEY_RE.match(key or ""):
            raise ValueError(f"Invalid property key: {key!r}")
        found = self._current_heading(doc, pos)
        if found is None:
            return EditPlan(message="No heading at cursor")
        line, _heading = found
        edits = properties.set_property_edits(
            doc,
            line,
            key,
            value,
            self.idgen,
            indent=self.config.properties.indent,
            scan_limit=self.config.properties.scan_limit,
        )
        return EditPlan(edits=edits, message=f"Updated property {key.upper()}")

    def get_or_create_id(self, doc: TextDocument, pos: Position) -> EditPlan:
        """The heading's ``ID``, adding a fresh one when it has none."""
        found = self._current_heading(doc, pos)
        if found is None:
            return EditPlan(message="No heading at cursor")
        line, _heading = found
        scan_limit = self.config.properties.scan_limit
        id, needs_insert = properties.get_or_generate_id(doc, line, self.idgen, scan_limit)
        if not needs_insert:
            return EditPlan(value=id)
        edits = properties.insert_id_edits(
            doc, line, id, indent=self.config.properties.indent, scan_limit=scan_limit
        )
        return EditPlan(edits=edits, value=id, message=f"Created ID {id}")
