import io
from typing import Any

import yaml

from ..core.model import PropertyEntry


class YamlProperties:
    """Drawer entries to a YAML mapping and back. Keys come out upper-cased."""

    def encode(self, entries: list[PropertyEntry]) -> str:
        if not entries:
            return ""
        data = {e.key.upper(): e.value for e in entries}
        buf = io.StringIO()
        yaml.safe_dump(data, buf, sort_keys=False, allow_unicode=True)
        return buf.getvalue()

    def decode(self, text: str) -> list[tuple[str, str]]:
        data = yaml.safe_load(io.StringIO(text)) or {}
        if not isinstance(data, dict):
            raise ValueError("Property YAML must be a mapping")
        return [(str(k).upper(), self._scalar(v)) for k, v in data.items()]

    def _scalar(self, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "t" if value else "nil"
        if isinstance(value, (list, tuple)):
            return " ".join(self._scalar(v) for v in value)
        return str(value)


def dump_yaml(data: Any) -> str:
    """Plain YAML rendering for CLI output."""
    buf = io.StringIO()
    yaml.safe_dump(data, buf, sort_keys=False, allow_unicode=True)
    return buf.getvalue()
