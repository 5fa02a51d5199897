"""Runtime wiring helper for CLI and API applications."""

from dataclasses import dataclass
from pathlib import Path

from .adapters.idgen import make_idgen
from .adapters.yaml_codec import YamlProperties
from .config import OrgConfig, load_config
from .core.ports import IdGenerator
from .engine import StructuralEditEngine


@dataclass
class Runtime:
    """Container for all wired components."""
    engine: StructuralEditEngine
    idgen: IdGenerator
    codec: YamlProperties
    config: OrgConfig


def build_runtime(
    config_path: Path | None = None,
    document_path: Path | None = None,
) -> Runtime:
    """Build and wire all components for editing one document."""
    config = load_config(config_path=config_path, document_path=document_path)

    idgen = make_idgen(config.id.style, config.id.bytes)
    engine = StructuralEditEngine(config, idgen)

    return Runtime(
        engine=engine,
        idgen=idgen,
        codec=YamlProperties(),
        config=config,
    )
