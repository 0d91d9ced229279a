from __future__ import annotations

import hashlib
import json

from geocache.sim.session import SessionState


def session_hash(state: SessionState) -> str:
    encoded = json.dumps(
        state.to_dict(),
        sort_keys=True,
        separators=(",", ":"),
    ).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()
