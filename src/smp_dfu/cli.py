"""
SMP DFU CLI

Command-line interface for inspecting an MCUboot device and previewing the
operations an upgrade would perform.
"""

import sys
import json
import logging
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.logging import RichHandler

from smp_dfu.protocol import SerialSMPTransport, SMPClient, SMPError
from smp_dfu.firmware_image import FirmwareImageError, load_firmware_image
from smp_dfu.models import PRIMARY_SLOT, ImageSet, UpgradeSettings
from smp_dfu.core.parsing import (
    parse_upgrade_mode as _parse_upgrade_mode_core,
    parse_image_target as _parse_image_target_core,
    parse_cache_target as _parse_cache_target_core,
)
from smp_dfu.core import (
    MessageLevel,
    PlanResult,
    TaskQueue,
    WarningItem,
    probe_capabilities,
    validate,
)

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    handlers=[RichHandler(rich_tracebacks=True)],
)
logger = logging.getLogger("smp_dfu")

# Setup Rich console
console = Console()

app = typer.Typer(help="SMP DFU - MCUboot firmware upgrade planner")


def print_header(text: str) -> None:
    """Print fancy header."""
    console.print(Panel(text, expand=False, style="bold blue"))


def print_success(text: str) -> None:
    """Print success message."""
    console.print(f"✓ {text}", style="green")


def print_warning(text: str) -> None:
    """Print warning message."""
    console.print(f"⚠️  {text}", style="yellow")


def print_error(text: str) -> None:
    """Print error message."""
    console.print(f"❌ {text}", style="red")


def print_structured_warning(warning: WarningItem, verbose: bool = False) -> None:
    """Print a structured warning with optional remediation."""
    if warning.level == MessageLevel.ERROR:
        style = "red"
        icon = "❌"
    elif warning.level == MessageLevel.WARN:
        style = "yellow"
        icon = "⚠️"
    else:
        style = "blue"
        icon = "ℹ️"

    title = f"{warning.title}: {warning.detail}" if warning.detail else warning.title
    console.print(f"{icon} [{warning.code.value}] {title}", style=style, markup=False)
    if verbose and warning.remediation:
        console.print(f"   → {warning.remediation}", style="cyan")


def parse_upgrade_mode(value: str):
    """Parse upgrade mode, converting ValueError to typer.BadParameter."""
    try:
        return _parse_upgrade_mode_core(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def parse_image_target(value: str):
    """Parse `[INDEX[:SLOT]=]PATH`, converting ValueError to typer.BadParameter."""
    try:
        return _parse_image_target_core(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def parse_cache_target(value: str):
    """Parse `PARTITION=PATH`, converting ValueError to typer.BadParameter."""
    try:
        return _parse_cache_target_core(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def build_image_set(images: List[str], cache: Optional[List[str]] = None) -> ImageSet:
    """
    Load image files into an ImageSet.

    Raises:
        typer.BadParameter: If an argument is malformed or an image cannot be parsed
    """
    image_set = ImageSet()
    for value in images:
        image_index, slot, path = parse_image_target(value)
        try:
            image = load_firmware_image(path)
            image_set.add_image(image, image_index=image_index, slot=slot)
        except (FileNotFoundError, FirmwareImageError, ValueError) as e:
            raise typer.BadParameter(f"{path}: {e}")
    for value in cache or []:
        partition_id, path = parse_cache_target(value)
        try:
            with open(path, "rb") as f:
                image_set.add_cache_image(partition_id, f.read())
        except OSError as e:
            raise typer.BadParameter(f"{path}: {e}")
    logger.debug(f"Loaded {len(image_set)} image(s) for image indices {image_set.image_indices()}")
    return image_set


def _set_verbose(verbose: bool) -> None:
    if verbose:
        logger.setLevel(logging.DEBUG)


@app.command()
def ports() -> None:
    """List available serial ports."""
    print_header("Available Serial Ports")

    import serial.tools.list_ports

    ports_list = list(serial.tools.list_ports.comports())

    if not ports_list:
        print_warning("No serial ports found")
        return

    table = Table(title="Serial Ports")
    table.add_column("Port", style="cyan")
    table.add_column("Device", style="magenta")
    table.add_column("Description", style="green")

    for port in ports_list:
        table.add_row(port.device, port.name or "-", port.description or "-")

    console.print(table)


@app.command()
def probe(
    port: str = typer.Option(..., "--port", "-p", help="Serial port"),
    baud: int = typer.Option(115200, "--baud", "-b", help="Baud rate"),
    timeout: float = typer.Option(5.0, "--timeout", help="Response timeout in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Query the bootloader name and mode."""
    _set_verbose(verbose)
    print_header("Bootloader Capabilities")

    try:
        with SerialSMPTransport(port, baudrate=baud, timeout=timeout) as transport:
            caps = probe_capabilities(SMPClient(transport))
    except SMPError as e:
        print_error(f"Probe failed: {e}")
        sys.exit(1)

    table = Table(title="Bootloader")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Bootloader", caps.bootloader or "Unknown")
    table.add_row("Mode", caps.mode_label)
    table.add_row("No swap (Direct XIP)", str(caps.no_swap))
    table.add_row("Revert supported", str(caps.allow_revert))
    table.add_row("No downgrade", str(caps.no_downgrade))
    console.print(table)

    if caps.is_fallback:
        print_warning("Mode not reported, legacy swap behaviour will be assumed")


@app.command()
def slots(
    port: str = typer.Option(..., "--port", "-p", help="Serial port"),
    baud: int = typer.Option(115200, "--baud", "-b", help="Baud rate"),
    timeout: float = typer.Option(5.0, "--timeout", help="Response timeout in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """List image slots reported by the device."""
    _set_verbose(verbose)
    print_header("Image Slots")

    try:
        with SerialSMPTransport(port, baudrate=baud, timeout=timeout) as transport:
            records = SMPClient(transport).list_images()
    except SMPError as e:
        print_error(f"Image state query failed: {e}")
        sys.exit(1)

    if not records:
        print_warning("Device reported no image information")
        return

    table = Table(title="Slots")
    table.add_column("Image", style="cyan")
    table.add_column("Slot", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Hash", style="magenta")
    table.add_column("Flags", style="yellow")

    for record in records:
        table.add_row(
            str(record.image_index),
            f"{record.slot} (primary)" if record.slot == PRIMARY_SLOT else str(record.slot),
            record.version or "-",
            record.hash.hex()[:16] or "-",
            record.flags,
        )

    console.print(table)


@app.command()
def plan(
    images: List[str] = typer.Argument(..., help="Images as [INDEX[:SLOT]=]PATH"),
    port: str = typer.Option(..., "--port", "-p", help="Serial port"),
    baud: int = typer.Option(115200, "--baud", "-b", help="Baud rate"),
    timeout: float = typer.Option(5.0, "--timeout", help="Response timeout in seconds"),
    mode: str = typer.Option("test-and-confirm", "--mode", "-m", help="none, test, confirm, test-and-confirm"),
    erase_settings: bool = typer.Option(False, "--erase-settings", help="Erase application settings before reset"),
    cache: Optional[List[str]] = typer.Option(None, "--cache", help="Cache image as PARTITION=PATH"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON for scripting"),
    summary: bool = typer.Option(False, "--summary", "-s", help="Plain text summary for logs"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging and remediation hints"),
) -> None:
    """Show the operations an upgrade would perform, in execution order."""
    _set_verbose(verbose)
    upgrade_mode = parse_upgrade_mode(mode)
    image_set = build_image_set(images, cache)
    settings = UpgradeSettings(erase_app_settings=erase_settings, upgrade_mode=upgrade_mode)

    try:
        with SerialSMPTransport(port, baudrate=baud, timeout=timeout) as transport:
            queue = TaskQueue(SMPClient(transport), settings)
            result = validate(queue, image_set)
    except SMPError as e:
        print_error(f"Planning failed: {e}")
        sys.exit(1)

    if output_json:
        data = result.to_dict()
        data["execution_order"] = [op.describe() for op in queue.pending()]
        console.print_json(json.dumps(data))
        if not result.ok:
            sys.exit(1)
        return

    if summary:
        console.print(result.to_summary(), markup=False, highlight=False)
        if not result.ok:
            sys.exit(1)
        return

    print_header(f"Upgrade Plan ({upgrade_mode.value})")
    render_plan(result, queue, verbose=verbose)
    if not result.ok:
        sys.exit(1)


def render_plan(result: PlanResult, queue: TaskQueue, verbose: bool = False) -> None:
    """Print capabilities, ordered operations and warnings of a plan."""
    caps = result.capabilities
    console.print(
        f"Bootloader: {caps.bootloader or 'Unknown'} ({caps.mode_label}), "
        f"no_swap={caps.no_swap}, allow_revert={caps.allow_revert}",
        markup=False,
    )

    for warning in result.warnings:
        print_structured_warning(warning, verbose=verbose)

    if not result.ok:
        for err in result.errors:
            print_error(err)
        return

    if result.images:
        images_table = Table(title="Images")
        images_table.add_column("Image", style="cyan")
        images_table.add_column("Slot", style="cyan")
        images_table.add_column("Version", style="green")
        images_table.add_column("Size", style="green")
        images_table.add_column("Hash", style="magenta")
        for target in result.images:
            version = getattr(target.image, "version", None)
            images_table.add_row(
                str(target.image_index),
                str(target.slot),
                str(version) if version else "-",
                f"{target.image.size:,}",
                target.hash.hex()[:16],
            )
        console.print(images_table)

    ordered = queue.pending()
    if not ordered:
        print_success("Device already runs the requested firmware, nothing to do")
        return

    table = Table(title="Operations")
    table.add_column("#", style="dim")
    table.add_column("Operation", style="cyan")
    table.add_column("State", style="magenta")
    table.add_column("Details", style="green")
    for i, op in enumerate(ordered, 1):
        table.add_row(str(i), op.name, op.state.value, op.describe())
    console.print(table)
    print_success(f"{len(ordered)} operation(s) planned")


def main() -> None:
    """Main entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(0)
    except Exception as e:
        console.print(f"\n[red bold]Fatal error:[/red bold] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
