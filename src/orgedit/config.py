"""Configuration loader for orgedit.toml."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from .grammar.keywords import DEFAULT_SEQUENCE, KeywordSet, parse_keywords

CONFIG_NAME = "orgedit.toml"
ID_STYLES = ("uuid", "hex")


@dataclass
class KeywordConfig:
    """Heading keyword sequence."""
    sequence: str = DEFAULT_SEQUENCE


@dataclass
class PriorityConfig:
    """Priority letter range, highest first."""
    highest: str = "A"
    lowest: str = "C"

    @property
    def letters(self) -> list[str]:
        return [chr(c) for c in range(ord(self.highest), ord(self.lowest) + 1)]


@dataclass
class ListConfig:
    """List editing configuration."""
    indent: int = 2
    blank_lines_end_item: int = 2


@dataclass
class PropertyConfig:
    """Property drawer configuration."""
    indent: str = "  "
    scan_limit: int = 50


@dataclass
class IdConfig:
    """ID generation configuration."""
    style: str = "uuid"
    bytes: int = 6


@dataclass
class OrgConfig:
    """Complete orgedit configuration."""
    keywords_config: KeywordConfig = field(default_factory=KeywordConfig)
    priorities: PriorityConfig = field(default_factory=PriorityConfig)
    lists: ListConfig = field(default_factory=ListConfig)
    properties: PropertyConfig = field(default_factory=PropertyConfig)
    id: IdConfig = field(default_factory=IdConfig)
    source: Path | None = None

    def __post_init__(self):
        self._keywords = parse_keywords(self.keywords_config.sequence)

    @property
    def keywords(self) -> KeywordSet:
        return self._keywords

    @property
    def blank_limit(self) -> int:
        return self.lists.blank_lines_end_item


def _find_config(config_path: Path | None, document_path: Path | None) -> Path | None:
    search_paths = []
    if config_path:
        search_paths.append(config_path)
    search_paths.append(Path.cwd() / CONFIG_NAME)
    if document_path:
        search_paths.append(document_path.parent / CONFIG_NAME)

    for path in search_paths:
        if path.exists():
            return path
    return None


def config_from_dict(data: dict[str, Any], source: Path | None = None) -> OrgConfig:
    """Build an OrgConfig from parsed TOML data, filling in defaults."""
    keyword_data = data.get("keywords", {})
    keyword_config = KeywordConfig(
        sequence=keyword_data.get("sequence", DEFAULT_SEQUENCE)
    )

    priority_data = data.get("priorities", {})
    priority_config = PriorityConfig(
        highest=str(priority_data.get("highest", "A")).upper(),
        lowest=str(priority_data.get("lowest", "C")).upper(),
    )
    if priority_config.highest > priority_config.lowest:
        raise ValueError(
            f"Invalid priority range: {priority_config.highest}..{priority_config.lowest}"
        )

    list_data = data.get("lists", {})
    list_config = ListConfig(
        indent=int(list_data.get("indent", 2)),
        blank_lines_end_item=max(1, int(list_data.get("blank_lines_end_item", 2))),
    )

    property_data = data.get("properties", {})
    property_config = PropertyConfig(
        indent=property_data.get("indent", "  "),
        scan_limit=int(property_data.get("scan_limit", 50)),
    )

    id_data = data.get("ids", {})
    id_config = IdConfig(
        style=id_data.get("style", "uuid"),
        bytes=int(id_data.get("bytes", 6)),
    )
    if id_config.style not in ID_STYLES:
        raise ValueError(f"Unknown id style: {id_config.style}")

    return OrgConfig(
        keywords_config=keyword_config,
        priorities=priority_config,
        lists=list_config,
        properties=property_config,
        id=id_config,
        source=source,
    )


def load_config(
    config_path: Path | None = None, document_path: Path | None = None
) -> OrgConfig:
    """
    Load configuration from orgedit.toml.

    Search order:
    1. config_path (if provided)
    2. cwd/orgedit.toml
    3. orgedit.toml next to document_path

    Args:
        config_path: Explicit path to config file
        document_path: Document being edited, for the fallback search

    Returns:
        OrgConfig with resolved settings
    """
    path = _find_config(config_path, document_path)
    if path is None:
        return OrgConfig()

    with open(path, "rb") as f:
        toml_data = tomllib.load(f)
    return config_from_dict(toml_data, source=path)
