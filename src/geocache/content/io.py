from __future__ import annotations

import json
import logging
from typing import Any

from geocache.content.schema import validate_session_payload
from geocache.content.storage import KeyValueStore
from geocache.sim.config import SESSION_STORAGE_KEY
from geocache.sim.session import SessionState
from geocache.sim.tokens import decode_tokens

logger = logging.getLogger(__name__)

SESSION_JSON_SEPARATORS = (",", ":")


def _session_payload(state: SessionState) -> dict[str, Any]:
    payload = state.to_dict()
    validate_session_payload(payload)
    return payload


def encode_session(state: SessionState) -> str:
    return json.dumps(_session_payload(state), separators=SESSION_JSON_SEPARATORS)


def decode_session(text: str) -> SessionState:
    """Parse a stored session blob; raises ``ValueError`` on any defect."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"session blob is not valid JSON: {exc}") from exc
    validate_session_payload(payload)
    for index, row in enumerate(payload["caches"]):
        try:
            decode_tokens(row["value"])
        except ValueError as exc:
            raise ValueError(f"caches[{index}] holds an invalid snapshot: {exc}") from exc
    return SessionState.from_dict(payload)


def save_session(store: KeyValueStore, state: SessionState, *, key: str = SESSION_STORAGE_KEY) -> bool:
    """Overwrite the stored session with a full checkpoint of ``state``.

    Returns ``False`` when the state fails validation or the store cannot be
    written; the in-memory state is left untouched either way.
    """
    try:
        blob = encode_session(state)
    except ValueError as exc:
        logger.error("session for key %r failed validation and was not saved: %s", key, exc)
        return False
    try:
        store.set_item(key, blob)
    except OSError as exc:
        logger.warning("session save failed for key %r: %s", key, exc)
        return False
    return True


def load_session(store: KeyValueStore, *, key: str = SESSION_STORAGE_KEY) -> SessionState | None:
    """Return the stored session, or ``None`` when it is absent or malformed."""
    try:
        blob = store.get_item(key)
    except OSError as exc:
        logger.warning("session load failed for key %r: %s", key, exc)
        return None
    if blob is None:
        return None
    try:
        return decode_session(blob)
    except (ValueError, KeyError, TypeError, OverflowError, RecursionError) as exc:
        logger.info("ignoring malformed session under key %r: %s", key, exc)
        return None


def clear_session(store: KeyValueStore, *, key: str = SESSION_STORAGE_KEY) -> None:
    store.remove_item(key)
