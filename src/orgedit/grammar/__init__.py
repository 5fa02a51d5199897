"""Line grammars for headings, lists, tables, property drawers, planning lines, blocks and links."""

from .headings import build_heading_line, find_subtree_end, parse_heading
from .keywords import DEFAULT_KEYWORDS, KeywordSet, parse_keywords
from .links import parse_link_target, parse_links
from .lists import build_list_item_line, find_list_item_end, parse_list_item
from .planning import parse_planning
from .properties import find_property_drawer, parse_property
from .tables import is_table_line, parse_table_row

__all__ = [
    "DEFAULT_KEYWORDS",
    "KeywordSet",
    "build_heading_line",
    "build_list_item_line",
    "find_list_item_end",
    "find_property_drawer",
    "find_subtree_end",
    "is_table_line",
    "parse_heading",
    "parse_keywords",
    "parse_link_target",
    "parse_links",
    "parse_list_item",
    "parse_planning",
    "parse_property",
    "parse_table_row",
]
