from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable

SNAPSHOT_SEPARATORS = (",", ":")


def _require_int(value: Any, *, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer")
    return value


@dataclass(frozen=True)
class Token:
    """Collectible coin minted at cell (i, j) with a per-cell serial number.

    Provenance is permanent: a token keeps its (i, j) after it is deposited
    into a cache at a different cell.
    """

    i: int
    j: int
    serial: int

    def __post_init__(self) -> None:
        _require_int(self.i, field_name="token.i")
        _require_int(self.j, field_name="token.j")
        serial = _require_int(self.serial, field_name="token.serial")
        if serial < 0:
            raise ValueError("token.serial must be >= 0")

    def label(self) -> str:
        return f"{self.i}:{self.j}#{self.serial}"

    def to_dict(self) -> dict[str, int]:
        return {"i": self.i, "j": self.j, "serial": self.serial}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Token":
        if not isinstance(data, dict):
            raise ValueError("token must be an object")
        missing = {"i", "j", "serial"} - set(data.keys())
        if missing:
            raise ValueError(f"token missing fields: {sorted(missing)}")
        return cls(i=data["i"], j=data["j"], serial=data["serial"])


def tokens_to_list(tokens: Iterable[Token]) -> list[dict[str, int]]:
    return [token.to_dict() for token in tokens]


def tokens_from_list(payload: Any, *, field_name: str = "tokens") -> list[Token]:
    if not isinstance(payload, list):
        raise ValueError(f"{field_name} must be a list")
    return [Token.from_dict(row) for row in payload]


def encode_tokens(tokens: Iterable[Token]) -> str:
    """Serialize a token sequence, bottom of the stack first."""
    return json.dumps(tokens_to_list(tokens), separators=SNAPSHOT_SEPARATORS)


def decode_tokens(snapshot: str) -> list[Token]:
    if not isinstance(snapshot, str):
        raise ValueError("cache snapshot must be a string")
    try:
        payload = json.loads(snapshot)
    except json.JSONDecodeError as exc:
        raise ValueError(f"cache snapshot is not valid JSON: {exc}") from exc
    return tokens_from_list(payload, field_name="cache snapshot")
