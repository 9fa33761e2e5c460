"""Command handlers for keybox and PIF profile management.

Each handler runs one user action end to end and reports the outcome as a
Notice. Pipeline failures are caught here and never reach the caller as
exceptions; the CLI only has to render the notice.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Mapping

from device.adb import AdbPropertyStore, AdbSecureSettingsStore, AdbShell
from device.store import JsonFileStore, KeyValueStore, MemoryStore
from keybox.blob import clear_keybox_blob, load_keybox_blob
from keybox.importer import KeyboxImporter
from pif.applier import ProfileApplier
from pif.reader import read_active
from pif.source import fetch_profile, load_profile
from spoof.errors import (
    EmptyResultError,
    FileTypeError,
    IoError,
    NetworkError,
    ParseError,
    SpoofError,
    StoreError,
)
from spoof.models import Config, Notice, NoticeLevel, StoreConfig

logger = logging.getLogger(__name__)

MSG_KEYBOX_LOADED = "Keybox data loaded"
MSG_KEYBOX_CLEARED = "Keybox data cleared"
MSG_KEYBOX_EMPTY = "No keybox data stored"
MSG_KEYBOX_INVALID_FILE = "Invalid file, please select an XML keybox"
MSG_KEYBOX_INVALID_XML = "Invalid keybox XML"
MSG_KEYBOX_READ_FAILED = "Failed to read keybox file"
MSG_STORE_FAILED = "Failed to write to the device"
MSG_SPOOFING_SUCCESS = "Spoofing applied for {model}"
MSG_SPOOFING_FAILURE = "Failed to update spoofing properties"
MSG_PROFILE_INVALID = "Invalid PIF JSON"
MSG_PROFILE_READ_FAILED = "Failed to read PIF JSON file"
MSG_PROPERTIES_MISSING = "Error loading spoofing properties"
MSG_GMS_SPOOF = "GMS spoofing {state}"


def open_stores(config: StoreConfig) -> tuple[KeyValueStore, KeyValueStore]:
    """Build the (secure settings, system properties) stores for a backend.

    Local backends keep both scopes in one store; their key names never
    overlap.
    """
    if config.backend == "adb":
        shell = AdbShell(serial=config.serial, su=config.su)
        return AdbSecureSettingsStore(shell), AdbPropertyStore(shell)
    if config.backend == "file":
        store: KeyValueStore = JsonFileStore(config.path)
    else:
        store = MemoryStore()
    return store, store


class SpoofController:
    """Entry points for every keybox and PIF action.

    Args:
        config: Property names, keybox slot and remote source settings.
        settings_store: Store standing in for Settings.Secure.
        property_store: Store standing in for system properties.
    """

    def __init__(
        self,
        config: Config,
        settings_store: KeyValueStore,
        property_store: KeyValueStore,
    ) -> None:
        self.config: Config = config
        self.settings_store: KeyValueStore = settings_store
        self.property_store: KeyValueStore = property_store
        self.keybox_importer = KeyboxImporter(settings_store, config.keybox.setting)
        self.applier = ProfileApplier(property_store, config.properties)
        self._executor: ThreadPoolExecutor | None = None

    @classmethod
    def from_config(cls, config: Config) -> SpoofController:
        settings_store, property_store = open_stores(config.store)
        return cls(config, settings_store, property_store)

    # ── Keybox ───────────────────────────────────────────────

    def import_keybox(self, path: Path, content_type: str | None = None) -> Notice:
        try:
            result = self.keybox_importer.import_file(path, content_type)
        except FileTypeError as exc:
            return _error(MSG_KEYBOX_INVALID_FILE, exc)
        except StoreError as exc:
            return _error(MSG_STORE_FAILED, exc)
        except IoError as exc:
            return _error(MSG_KEYBOX_READ_FAILED, exc)
        except (ParseError, EmptyResultError) as exc:
            return _error(MSG_KEYBOX_INVALID_XML, exc)

        algorithms = ", ".join(record.algorithm.value for record in result.records)
        return Notice(
            level=NoticeLevel.SUCCESS,
            message=MSG_KEYBOX_LOADED,
            detail=algorithms,
            payload=result.blob,
        )

    def clear_keybox(self) -> Notice:
        try:
            clear_keybox_blob(self.settings_store, self.config.keybox.setting)
        except StoreError as exc:
            return _error(MSG_STORE_FAILED, exc)
        return Notice(level=NoticeLevel.SUCCESS, message=MSG_KEYBOX_CLEARED)

    def show_keybox(self) -> Notice:
        try:
            blob = load_keybox_blob(self.settings_store, self.config.keybox.setting)
        except SpoofError as exc:
            return _error(MSG_KEYBOX_EMPTY, exc)
        if blob is None:
            return Notice(level=NoticeLevel.ERROR, message=MSG_KEYBOX_EMPTY)
        return Notice(level=NoticeLevel.SUCCESS, message=MSG_KEYBOX_LOADED, payload=blob)

    # ── PIF profile ──────────────────────────────────────────

    def apply_profile(self, profile: Mapping[str, Any]) -> Notice:
        try:
            applied = self.applier.apply(profile)
        except StoreError as exc:
            return _error(MSG_SPOOFING_FAILURE, exc)
        return Notice(
            level=NoticeLevel.SUCCESS,
            message=MSG_SPOOFING_SUCCESS.format(model=applied.model),
            detail=applied.digest,
            payload=applied,
        )

    def import_pif_file(self, path: Path) -> Notice:
        try:
            profile = load_profile(path)
        except IoError as exc:
            return _error(MSG_PROFILE_READ_FAILED, exc)
        except ParseError as exc:
            return _error(MSG_PROFILE_INVALID, exc)
        return self.apply_profile(profile)

    def update_from_url(self, url: str | None = None) -> Notice:
        """Fetch a profile and apply it on the calling thread."""
        target = url or self.config.remote.url
        try:
            profile = fetch_profile(target, self.config.remote.timeout)
        except (NetworkError, ParseError) as exc:
            return _error(MSG_SPOOFING_FAILURE, exc)
        return self.apply_profile(profile)

    def submit_remote_update(self, url: str | None = None) -> Future[Notice]:
        """Run update_from_url() on the background worker."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pif-update")
        return self._executor.submit(self.update_from_url, url)

    def show_properties(self) -> Notice:
        try:
            profile = read_active(self.property_store, self.config.properties)
        except StoreError as exc:
            return _error(MSG_PROPERTIES_MISSING, exc)
        if profile is None:
            return Notice(level=NoticeLevel.ERROR, message=MSG_PROPERTIES_MISSING)
        return Notice(level=NoticeLevel.SUCCESS, message="Active PIF properties", payload=profile)

    # ── GMS spoof switch ─────────────────────────────────────

    def set_gms_spoof(self, enabled: bool) -> Notice:
        value = "true" if enabled else "false"
        try:
            with self.property_store.lock:
                self.property_store.set(self.config.properties.gms_property, value)
        except StoreError as exc:
            return _error(MSG_STORE_FAILED, exc)
        state = "enabled" if enabled else "disabled"
        return Notice(level=NoticeLevel.SUCCESS, message=MSG_GMS_SPOOF.format(state=state))

    def gms_spoof_state(self) -> Notice:
        try:
            value = self.property_store.get(self.config.properties.gms_property)
        except StoreError as exc:
            return _error(MSG_STORE_FAILED, exc)
        enabled = (value or "").lower() in ("1", "true", "y", "yes", "on")
        state = "enabled" if enabled else "disabled"
        return Notice(
            level=NoticeLevel.SUCCESS,
            message=MSG_GMS_SPOOF.format(state=state),
            payload=enabled,
        )

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None


def _error(message: str, exc: Exception) -> Notice:
    logger.error("%s: %s", message, exc)
    return Notice(level=NoticeLevel.ERROR, message=message, detail=str(exc))
