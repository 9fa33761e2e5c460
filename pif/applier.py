"""Applying PIF property profiles to the property store.

A profile lands in the store as three artifacts that must agree:

- one property per field, `<prefix><SHORT>`
- the active key set, the comma-joined short keys in import order
- a SHA-256 digest over the sorted short keys and their stored values

Writes are staged first and published in one set_many() call, which is a
single swap on stores that support it. The digest is computed from what
the store holds after publishing and written last; a digest failure is
logged and leaves the published properties in place.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Callable, Iterable, Mapping

from device.store import KeyValueStore
from pif.aliases import MODEL_KEY, short_key
from spoof.errors import DigestError, StoreError
from spoof.models import AppliedProfile, PropertiesConfig

logger = logging.getLogger(__name__)

UNKNOWN_MODEL = "Unknown model"


def coerce_value(value: Any) -> str:
    """Render a JSON value as property text.

    Strings pass through; other scalars use their JSON spelling and nested
    structures become compact JSON.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return json.dumps(value)


def compute_digest(keys: Iterable[str], lookup: Callable[[str], str | None]) -> str:
    """Hash the profile as key+value pairs in sorted key order.

    Args:
        keys: Short keys of the profile. Order does not matter.
        lookup: Returns the stored value for a short key (None reads as "").

    Returns:
        Lowercase hex SHA-256 digest.

    Raises:
        DigestError: If the concatenated text cannot be encoded.
    """
    buffer = "".join(key + (lookup(key) or "") for key in sorted(keys))
    try:
        data = buffer.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise DigestError(f"Profile text cannot be hashed: {exc}") from exc
    return hashlib.sha256(data).hexdigest()


class ProfileApplier:
    """Writes property profiles into a store.

    Applies to the same store are serialized on the store's lock, so two
    concurrent imports never interleave their key sets.

    Args:
        store: System property store.
        properties: Property names for fields, key set and digest.
    """

    def __init__(self, store: KeyValueStore, properties: PropertiesConfig) -> None:
        self.store: KeyValueStore = store
        self.properties: PropertiesConfig = properties

    def apply(self, profile: Mapping[str, Any]) -> AppliedProfile:
        """Apply a long-name profile.

        Args:
            profile: Field name -> value, processed in iteration order.
                     Unknown field names are stored under their own name.

        Returns:
            AppliedProfile with the short keys, their values and the digest.

        Raises:
            StoreError: If publishing the properties fails.
        """
        prefix = self.properties.prefix
        keys: list[str] = []
        values: dict[str, str] = {}
        staged: dict[str, str | None] = {}

        for name, raw_value in profile.items():
            key = short_key(name)
            value = coerce_value(raw_value)
            staged[prefix + key] = value
            values[key] = value
            keys.append(key)

        staged[self.properties.keys_property] = ",".join(keys)

        with self.store.lock:
            self.store.set_many(staged)
            if not self.store.atomic:
                logger.debug("Published %d properties without a transaction", len(staged))
            digest = self._write_digest(keys)

        logger.info("Applied profile keys: %s", ",".join(keys))
        return AppliedProfile(
            keys=keys,
            values=values,
            digest=digest,
            model=values.get(MODEL_KEY, UNKNOWN_MODEL),
        )

    def _write_digest(self, keys: list[str]) -> str | None:
        prefix = self.properties.prefix
        try:
            digest = compute_digest(keys, lambda key: self.store.get(prefix + key))
            self.store.set(self.properties.digest_property, digest)
        except (DigestError, StoreError) as exc:
            logger.error("Error computing hash: %s", exc)
            return None
        return digest
