"""Device-backed stores reached over adb.

System properties go through getprop/setprop and secure settings through
the `settings` shell command. Each call is a separate `adb shell`
invocation, so set_many() on these stores is not atomic: a failure midway
leaves the earlier keys written.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess

from device.store import KeyValueStore
from spoof.errors import StoreError

logger = logging.getLogger(__name__)


class AdbShell:
    """Runs shell commands on a connected device.

    Args:
        serial: Device serial passed as `adb -s`. None uses the only
                connected device.
        su: Wrap each command in `su -c` (needed for persist.* properties
            on most builds).
    """

    def __init__(self, serial: str | None = None, su: bool = False) -> None:
        self.serial: str | None = serial
        self.su: bool = su

    def command(self, shell_command: str) -> list[str]:
        """Build the adb argument vector for a device shell command."""
        if self.su:
            shell_command = f"su -c {shlex.quote(shell_command)}"
        args = ["adb"]
        if self.serial:
            args += ["-s", self.serial]
        args += ["shell", shell_command]
        return args

    def run(self, shell_command: str) -> str:
        """Run a device shell command and return its stdout.

        Raises:
            StoreError: If adb is missing or the command fails.
        """
        if shutil.which("adb") is None:
            raise StoreError("adb not found in PATH; install Android platform-tools or use --backend file")
        args = self.command(shell_command)
        logger.debug("adb: %s", shell_command)
        try:
            result = subprocess.run(args, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            raise StoreError(
                f"Device command failed ({exc.returncode}): {stderr or shell_command}"
            ) from exc
        return result.stdout


class AdbPropertyStore(KeyValueStore):
    """System properties on the device.

    Properties cannot be deleted, so setting None writes an empty value,
    which getprop reports the same way as an unset property.
    """

    def __init__(self, shell: AdbShell) -> None:
        super().__init__()
        self.shell: AdbShell = shell

    def get(self, key: str) -> str | None:
        out = self.shell.run(f"getprop {shlex.quote(key)}").strip()
        return out or None

    def set(self, key: str, value: str | None) -> None:
        self.shell.run(f"setprop {shlex.quote(key)} {shlex.quote(value or '')}")


class AdbSecureSettingsStore(KeyValueStore):
    """Settings.Secure entries on the device."""

    def __init__(self, shell: AdbShell) -> None:
        super().__init__()
        self.shell: AdbShell = shell

    def get(self, key: str) -> str | None:
        out = self.shell.run(f"settings get secure {shlex.quote(key)}").strip()
        # `settings get` prints the literal "null" for missing entries
        if not out or out == "null":
            return None
        return out

    def set(self, key: str, value: str | None) -> None:
        if value is None:
            self.shell.run(f"settings delete secure {shlex.quote(key)}")
        else:
            self.shell.run(f"settings put secure {shlex.quote(key)} {shlex.quote(value)}")
