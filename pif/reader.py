"""Reading the active PIF profile back for display."""

from __future__ import annotations

import json

from device.store import KeyValueStore
from pif.aliases import long_key
from spoof.models import PropertiesConfig


def read_active(store: KeyValueStore, properties: PropertiesConfig) -> dict[str, str] | None:
    """Rebuild the long-name profile from the stored short keys.

    Returns:
        Long field name -> stored value ("" when missing), in active key
        set order, or None when no profile is active.
    """
    keys = store.get(properties.keys_property)
    if not keys:
        return None

    profile: dict[str, str] = {}
    for key in keys.split(","):
        profile[long_key(key)] = store.get(properties.prefix + key) or ""
    return profile


def format_properties(profile: dict[str, str]) -> str:
    """Pretty-print a profile as 4-space indented JSON."""
    return json.dumps(profile, indent=4, ensure_ascii=False)
