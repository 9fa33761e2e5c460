"""Pydantic models for spoofkit.

Defines the data contracts shared by the importers and the CLI:
- KeyRecord / KeyboxDocument: parsed keybox XML
- AppliedProfile: outcome of applying a PIF property profile
- Notice: user-facing result of a command (replaces a toast)
- Config: YAML configuration schema
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator


class KeyAlgorithm(str, Enum):
    """Signing algorithms a keybox may carry, named by their blob prefix."""

    EC = "EC"
    RSA = "RSA"


class KeyRecord(BaseModel):
    """One <Key> block that passed the algorithm and PEM format gates."""

    algorithm: KeyAlgorithm
    private_key: str
    certificates: list[str] = Field(default_factory=list)


class KeyboxDocument(BaseModel):
    """All valid key records found in a single keybox XML buffer.

    declared_count mirrors <NumberOfKeyboxes> when it held an integer. It is
    informational only and never checked against the record count.
    """

    records: list[KeyRecord] = Field(default_factory=list)
    declared_count: int | None = None


class ImportedKeybox(BaseModel):
    """Result of importing a keybox file into the store."""

    records: list[KeyRecord]
    blob: str


class AppliedProfile(BaseModel):
    """Result of applying a property profile.

    keys holds the short keys in processing order, exactly as written to the
    active key set. digest is None when it could not be computed or stored.
    """

    keys: list[str]
    values: dict[str, str] = Field(default_factory=dict)
    digest: str | None = None
    model: str = "Unknown model"


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class Notice(BaseModel):
    """User-facing outcome of a command handler."""

    level: NoticeLevel
    message: str
    detail: str | None = None
    payload: Any = None

    @property
    def ok(self) -> bool:
        return self.level == NoticeLevel.SUCCESS


class StoreConfig(BaseModel):
    """Which key/value store backs secure settings and system properties.

    - adb: a connected device, through getprop/setprop and `settings`
    - file: a local JSON file
    - memory: process-local, mostly useful for tests
    """

    backend: Literal["adb", "file", "memory"] = "adb"
    path: Path = Field(default_factory=lambda: Path.home() / ".spoofkit" / "store.json")
    serial: str | None = None
    su: bool = False

    @field_validator("path", mode="before")
    @classmethod
    def _expand_user(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Path(value).expanduser()
        return value


class PropertiesConfig(BaseModel):
    """System property names used for the applied profile."""

    prefix: str = "persist.sys.propshooks_"
    keys_property: str = "persist.sys.propshooks_keys"
    digest_property: str = "persist.sys.propshooks_data_hash"
    gms_property: str = "persist.sys.pixelprops.gms"


class KeyboxConfig(BaseModel):
    setting: str = "keybox_data"


class RemoteConfig(BaseModel):
    url: str = "https://raw.githubusercontent.com/Project-Legacy-UI/Update/refs/heads/13/pif.json"
    timeout: int = Field(default=30, gt=0)


class Config(BaseModel):
    """Top-level configuration loaded from YAML.

    Sections:
    - store: backend selection and connection details
    - properties: system property names for the applied profile
    - keybox: secure-settings slot for the keybox blob
    - remote: default profile URL and request timeout
    """

    store: StoreConfig = Field(default_factory=StoreConfig)
    properties: PropertiesConfig = Field(default_factory=PropertiesConfig)
    keybox: KeyboxConfig = Field(default_factory=KeyboxConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML configuration file.

        Returns:
            Parsed Config instance.

        Raises:
            FileNotFoundError: If the config file doesn't exist.
            yaml.YAMLError: If the YAML is malformed.
        """
        content = path.read_text(encoding="utf-8")
        raw = yaml.safe_load(content)
        if raw is None:
            return cls()
        return cls.model_validate(raw)

    @classmethod
    def default(cls) -> Config:
        """Return the default configuration.

        Tries to load from config/default.yaml relative to the project root.
        Falls back to built-in defaults if the file doesn't exist.
        """
        default_path = Path(__file__).parent.parent / "config" / "default.yaml"
        if default_path.exists():
            return cls.from_yaml(default_path)
        return cls()
