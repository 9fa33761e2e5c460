"""Keybox storage blob.

The parsed keys are flattened into one JSON object stored in a single
secure-settings slot:

    {"EC.PRIV": "...", "EC.CERT_1": "...", "EC.CERT_2": "...", "RSA.PRIV": "..."}
"""

from __future__ import annotations

import json
import logging
from typing import Sequence

from device.store import KeyValueStore
from spoof.errors import ParseError
from spoof.models import KeyRecord

logger = logging.getLogger(__name__)


def blob_keys(record: KeyRecord) -> dict[str, str]:
    """Flatten one record into its `<ALG>.PRIV` / `<ALG>.CERT_<n>` entries."""
    prefix = record.algorithm.value
    entries = {f"{prefix}.PRIV": record.private_key}
    for index, certificate in enumerate(record.certificates, start=1):
        entries[f"{prefix}.CERT_{index}"] = certificate
    return entries


def serialize_keybox(records: Sequence[KeyRecord]) -> str:
    """Serialize key records into the compact JSON blob.

    Records sharing an algorithm cannot coexist under one prefix. The later
    record replaces the earlier one's whole entry group, so certificates of
    the earlier chain never leak into the later one.

    Args:
        records: Parsed key records in document order.

    Returns:
        Compact JSON text. The same records always give the same text.
    """
    groups: dict[str, dict[str, str]] = {}
    for record in records:
        prefix = record.algorithm.value
        if prefix in groups:
            logger.warning(
                "Multiple %s keys in keybox; keeping the last one", prefix
            )
        groups[prefix] = blob_keys(record)

    blob: dict[str, str] = {}
    for entries in groups.values():
        blob.update(entries)
    return json.dumps(blob, separators=(",", ":"), ensure_ascii=False)


def save_keybox_blob(store: KeyValueStore, setting: str, blob: str) -> None:
    """Replace the stored blob unconditionally."""
    with store.lock:
        store.set(setting, blob)


def clear_keybox_blob(store: KeyValueStore, setting: str) -> None:
    with store.lock:
        store.set(setting, None)


def load_keybox_blob(store: KeyValueStore, setting: str) -> dict[str, str] | None:
    """Read the stored blob back, or None when the slot is empty.

    Raises:
        ParseError: If the slot holds something other than a JSON object.
    """
    raw = store.get(setting)
    if not raw:
        return None
    try:
        blob = json.loads(raw)
    except ValueError as exc:
        raise ParseError(f"Stored keybox data is not valid JSON: {exc}") from exc
    if not isinstance(blob, dict):
        raise ParseError("Stored keybox data is not a JSON object")
    return {str(k): str(v) for k, v in blob.items()}
