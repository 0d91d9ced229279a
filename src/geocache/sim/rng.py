from __future__ import annotations

import hashlib
import random
from typing import Iterable


def luck_seed_text(parts: Iterable[object]) -> str:
    """Comma-joined string form of a seed list, e.g. ``(3, 5, "initialValue") -> "3,5,initialValue"``."""
    return ",".join(str(part) for part in parts)


def derive_luck_seed(seed_text: str) -> int:
    digest = hashlib.sha256(seed_text.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=False)


def luck(seed_text: str) -> float:
    """Deterministic value in ``[0, 1)`` derived only from ``seed_text``."""
    return random.Random(derive_luck_seed(seed_text)).random()
