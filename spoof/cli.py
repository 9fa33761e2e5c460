"""spoofkit CLI — Click-based command interface.

Provides commands for managing attestation spoofing data on a device:
- keybox import/clear/show: keybox XML in the keybox_data secure setting
- pif import/update/show: PIF property profiles in persist.sys.propshooks_*
- gms: the GMS spoofing switch
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from spoof.handlers import SpoofController
from spoof.models import AppliedProfile, Config, Notice
from spoof.renderer import print_applied, print_keybox, print_notice, print_properties

__version__ = "0.1.0"

console = Console()
err_console = Console(stderr=True)


@click.group()
@click.version_option(version=__version__, prog_name="spoofkit")
@click.option("--config", "config_path", type=click.Path(exists=True, path_type=Path), help="Path to YAML config file.")
@click.option("--backend", type=click.Choice(["adb", "file", "memory"]), help="Store backend (overrides config).")
@click.option("--store-path", type=click.Path(path_type=Path), help="JSON store path for the file backend.")
@click.option("--serial", help="adb device serial.")
@click.option("--su/--no-su", default=None, help="Run device commands through su.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    backend: str | None,
    store_path: Path | None,
    serial: str | None,
    su: bool | None,
    verbose: bool,
) -> None:
    """spoofkit — keybox and PIF profile import for Android attestation spoofing.

    Parses keybox XML into the keybox_data blob, applies PIF JSON profiles
    as short-keyed system properties with an integrity digest, and shows
    what is currently stored.
    """
    _setup_logging(verbose)

    config = _load_config(config_path)
    if backend is not None:
        config.store.backend = backend  # type: ignore[assignment]
    if store_path is not None:
        config.store.path = store_path
    if serial is not None:
        config.store.serial = serial
    if su is not None:
        config.store.su = su

    controller = SpoofController.from_config(config)
    ctx.obj = controller
    ctx.meta["verbose"] = verbose
    ctx.call_on_close(controller.close)


# ── Keybox subgroup ──────────────────────────────────────────

@cli.group()
def keybox() -> None:
    """Keybox XML stored in secure settings."""


@keybox.command("import")
@click.argument("xml_file", type=click.Path(path_type=Path))
@click.option("--content-type", help="MIME type of the file when its name lacks .xml.")
@click.pass_context
def keybox_import(ctx: click.Context, xml_file: Path, content_type: str | None) -> None:
    """Parse XML_FILE and store its keys as the keybox blob."""
    controller: SpoofController = ctx.obj
    _finish(ctx, controller.import_keybox(xml_file, content_type))


@keybox.command("clear")
@click.pass_context
def keybox_clear(ctx: click.Context) -> None:
    """Remove the stored keybox blob."""
    controller: SpoofController = ctx.obj
    _finish(ctx, controller.clear_keybox())


@keybox.command("show")
@click.pass_context
def keybox_show(ctx: click.Context) -> None:
    """List the entries of the stored keybox blob."""
    controller: SpoofController = ctx.obj
    notice = controller.show_keybox()
    if notice.ok:
        print_keybox(notice.payload, console=console)
    else:
        _finish(ctx, notice)


# ── PIF subgroup ─────────────────────────────────────────────

@cli.group()
def pif() -> None:
    """PIF property profiles stored as system properties."""


@pif.command("import")
@click.argument("json_file", type=click.Path(path_type=Path))
@click.pass_context
def pif_import(ctx: click.Context, json_file: Path) -> None:
    """Apply the PIF profile in JSON_FILE."""
    controller: SpoofController = ctx.obj
    _finish(ctx, controller.import_pif_file(json_file))


@pif.command("update")
@click.option("--url", help="Profile URL (defaults to the configured remote).")
@click.pass_context
def pif_update(ctx: click.Context, url: str | None) -> None:
    """Download a PIF profile and apply it."""
    controller: SpoofController = ctx.obj
    target = url or controller.config.remote.url
    future = controller.submit_remote_update(url)
    with console.status(f"[cyan]Downloading {target}...[/cyan]"):
        notice = future.result()
    _finish(ctx, notice)


@pif.command("show")
@click.pass_context
def pif_show(ctx: click.Context) -> None:
    """Show the active PIF profile with its long field names."""
    controller: SpoofController = ctx.obj
    notice = controller.show_properties()
    if notice.ok:
        print_properties(notice.payload, console=console)
    else:
        _finish(ctx, notice)


# ── GMS switch ───────────────────────────────────────────────

@cli.command()
@click.argument("state", required=False, type=click.Choice(["on", "off"]))
@click.pass_context
def gms(ctx: click.Context, state: str | None) -> None:
    """Turn GMS spoofing on or off; without STATE, show the current state."""
    controller: SpoofController = ctx.obj
    if state is None:
        _finish(ctx, controller.gms_spoof_state())
    else:
        _finish(ctx, controller.set_gms_spoof(state == "on"))


# ── Helper functions ─────────────────────────────────────────

def _load_config(config_path: Path | None) -> Config:
    """Load configuration from a file or use defaults."""
    if config_path is not None:
        return Config.from_yaml(config_path)
    return Config.default()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _finish(ctx: click.Context, notice: Notice) -> None:
    """Print a notice and exit non-zero when it reports a failure."""
    verbose = bool(ctx.meta.get("verbose"))
    print_notice(notice, console=console, verbose=verbose)
    if isinstance(notice.payload, AppliedProfile) and verbose:
        print_applied(notice.payload, console=console)
    if not notice.ok:
        sys.exit(1)


if __name__ == "__main__":
    cli()
