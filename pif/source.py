"""Loading PIF profiles from local files and URLs."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import requests

from spoof.errors import IoError, NetworkError, ParseError

logger = logging.getLogger(__name__)


def parse_profile(text: str) -> dict[str, Any]:
    """Decode a profile document, which must be a JSON object.

    Raises:
        ParseError: If the text is not a JSON object.
    """
    try:
        profile = json.loads(text, parse_constant=_reject_constant)
    except ValueError as exc:
        raise ParseError(f"Invalid profile JSON: {exc}") from exc
    if not isinstance(profile, dict):
        raise ParseError("Profile JSON must be an object")
    return profile


def load_profile(path: Path) -> dict[str, Any]:
    """Read a profile from a local JSON file.

    Raises:
        IoError: If the file cannot be read.
        ParseError: If it does not hold a JSON object.
    """
    try:
        text = path.read_bytes().decode("utf-8", errors="replace")
    except OSError as exc:
        raise IoError(f"Failed to read {path}: {exc}") from exc
    return parse_profile(text)


def fetch_profile(url: str, timeout: int) -> dict[str, Any]:
    """Download a profile with a single GET request.

    Raises:
        NetworkError: If the request fails or returns an error status.
        ParseError: If the body is not a JSON object.
    """
    logger.info("Downloading profile from %s", url)
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise NetworkError(f"Error downloading {url}: {exc}") from exc

    resp.encoding = "utf-8"
    return parse_profile(resp.text)


def _reject_constant(name: str) -> Any:
    raise ParseError(f"Invalid profile JSON: {name} is not a JSON number")
