import secrets
import uuid

from ..core.ports import IdGenerator


class UuidId(IdGenerator):
    """Random version 4 UUIDs, the usual shape of ``:ID:`` entries."""

    def new_id(self) -> str:
        return str(uuid.uuid4())


class HexId(IdGenerator):
    def __init__(self, nbytes: int = 6):  # 6 bytes -> 12 hex chars
        self.nbytes = nbytes

    def new_id(self) -> str:
        return secrets.token_hex(self.nbytes)


def make_idgen(style: str = "uuid", nbytes: int = 6) -> IdGenerator:
    if style == "uuid":
        return UuidId()
    if style == "hex":
        return HexId(nbytes)
    raise ValueError(f"Unknown id style: {style}")
