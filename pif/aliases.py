"""Canonical short keys for PIF profile fields.

Profiles name fields by their Build.* long names; the property store uses
compact codes. Names outside the table map to themselves in both
directions.
"""

from __future__ import annotations

LONG_TO_SHORT: dict[str, str] = {
    "MANUFACTURER": "MF",
    "MODEL": "MD",
    "FINGERPRINT": "FP",
    "PRODUCT": "PR",
    "DEVICE": "DV",
    "SECURITY_PATCH": "SP",
    "DEVICE_INITIAL_SDK_INT": "ISDK",
}

SHORT_TO_LONG: dict[str, str] = {short: long for long, short in LONG_TO_SHORT.items()}

MODEL_KEY = LONG_TO_SHORT["MODEL"]


def short_key(long_name: str) -> str:
    return LONG_TO_SHORT.get(long_name, long_name)


def long_key(short: str) -> str:
    return SHORT_TO_LONG.get(short, short)
