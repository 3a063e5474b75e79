"""Thin CLI wrapper for ubuntu_isogen.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from ubuntu_isogen import __version__
from ubuntu_isogen.config import Settings, get_settings, print_settings_json
from ubuntu_isogen.errors import IsoGenError

app = typer.Typer(
    name="ubuntu-isogen",
    help="Ubuntu ISO Generator - build autoinstall ISOs for unattended installs",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"ubuntu-isogen version {__version__}")
        raise typer.Exit()


def _configure_logging(
    settings: Settings, verbose: bool = False, quiet: bool = False
) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level)
    if quiet:
        level = max(level, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _print_json(text: str) -> None:
    # No wrapping or markup, output must stay parseable
    console.print(text, soft_wrap=True, markup=False, highlight=False)


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]{escape(message)}[/red]")
    return typer.Exit(code=1)


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Ubuntu ISO Generator - build autoinstall ISOs for unattended installs."""


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        _print_json(print_settings_json(settings))
    else:
        timeout_display = (
            str(settings.command_timeout) if settings.command_timeout else "(none)"
        )
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Paths:[/bold]")
        console.print(f"  Project root:        {settings.project_root}")
        console.print(f"  Staging directory:   {settings.staging_root}")
        console.print(f"  Images directory:    {settings.images_dir}")
        console.print()
        console.print("[bold]Tooling:[/bold]")
        console.print(f"  xorriso binary:      {settings.xorriso_binary}")
        console.print(f"  Default version:     {settings.default_ubuntu_version}")
        console.print(f"  Log level:           {settings.log_level}")
        console.print()
        console.print("[bold]Timeouts (seconds):[/bold]")
        console.print(f"  Download timeout:    {settings.download_timeout}")
        console.print(f"  Command timeout:     {timeout_display}")


@app.command()
def tools(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Check that xorriso is installed."""
    from ubuntu_isogen.errors import ToolingUnavailableError
    from ubuntu_isogen.iso.runner import SubprocessRunner
    from ubuntu_isogen.iso.tools import ToolDetector

    settings = get_settings()
    detector = ToolDetector(
        binary=settings.xorriso_binary,
        runner=SubprocessRunner(timeout=settings.command_timeout),
    )

    try:
        path = detector.detect()
        version = detector.version()
    except ToolingUnavailableError as e:
        if json_output:
            _print_json(
                json.dumps(
                    {
                        "available": False,
                        "error": e.message,
                        "instructions": e.instructions,
                    },
                    indent=2,
                )
            )
        else:
            console.print(f"[red]✗ {e.message}[/red]")
            console.print(e.instructions)
        raise typer.Exit(code=1) from None

    if json_output:
        _print_json(
            json.dumps({"available": True, "path": path, "version": version}, indent=2)
        )
    else:
        console.print(f"[green]✓ xorriso found: {path}[/green]")
        console.print(f"  {version}")


@app.command()
def validate(
    project_root: Annotated[
        Path | None,
        typer.Option("--project-root", help="Directory holding config.env"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output issues as JSON"),
    ] = False,
) -> None:
    """Validate secrets.env and config.env, reporting every issue."""
    from ubuntu_isogen.profile import validate_project
    from ubuntu_isogen.types import Severity

    settings = get_settings()
    _configure_logging(settings, quiet=json_output)
    result = validate_project(project_root or settings.project_root)

    if json_output:
        output = {
            "valid": not result.has_errors,
            "error_count": result.error_count,
            "warning_count": result.warning_count,
            "issues": [issue.model_dump(mode="json") for issue in result.issues],
        }
        _print_json(json.dumps(output, indent=2))
        if result.has_errors:
            raise typer.Exit(code=1)
        return

    for issue in result.issues:
        if issue.severity == Severity.ERROR:
            console.print(
                f"[red]\\[ERROR] {escape(str(issue))}[/red]", soft_wrap=True
            )
        else:
            console.print(
                f"[yellow]\\[WARNING] {escape(str(issue))}[/yellow]", soft_wrap=True
            )

    if result.has_errors:
        raise _fail(f"Validation failed with {result.error_count} error(s)")

    if not result.issues:
        console.print("[green]✓ All configuration files are valid[/green]")
    else:
        console.print()
        console.print(
            f"[green]✓ Validation passed with {result.warning_count} warning(s)[/green]"
        )


@app.command()
def generate(
    output_dir: Annotated[
        Path | None,
        typer.Option(
            "--output-dir",
            "-o",
            help="Directory to write nocloud/ into (default: the staging directory)",
        ),
    ] = None,
    storage: Annotated[
        str,
        typer.Option("--storage", "-s", help="Storage layout (lvm, direct, zfs)"),
    ] = "lvm",
    timezone: Annotated[
        str,
        typer.Option("--timezone", help="Timezone of the installed system"),
    ] = "UTC",
    locale: Annotated[
        str,
        typer.Option("--locale", help="Locale of the installed system"),
    ] = "en_US.UTF-8",
    project_root: Annotated[
        Path | None,
        typer.Option("--project-root", help="Directory holding config.env"),
    ] = None,
    stdout: Annotated[
        bool,
        typer.Option("--stdout", help="Print user-data instead of writing files"),
    ] = False,
) -> None:
    """Generate the autoinstall NoCloud documents without building an ISO."""
    from ubuntu_isogen.iso.autoinstall import AutoinstallGenerator
    from ubuntu_isogen.iso.builder import inject_configuration
    from ubuntu_isogen.iso.options import SUPPORTED_LAYOUTS, ImageOptions
    from ubuntu_isogen.profile import read_profile

    settings = get_settings()
    _configure_logging(settings)
    root = project_root or settings.project_root

    if storage not in SUPPORTED_LAYOUTS:
        raise _fail(
            f"unsupported storage layout: {storage} "
            f"(supported: {', '.join(SUPPORTED_LAYOUTS)})"
        )

    options = ImageOptions(
        ubuntu_version=settings.default_ubuntu_version,
        storage_layout=storage,
        timezone=timezone,
        locale=locale,
    )

    try:
        profile = read_profile(root)
        profile.validate()
        generator = AutoinstallGenerator()
        user_data = generator.generate(profile, options)
        meta_data = generator.generate_meta_data()

        if stdout:
            typer.echo(user_data.decode("utf-8"), nl=False)
            return

        target = output_dir or root / settings.staging_dir_name
        nocloud_dir = inject_configuration(target, user_data, meta_data)
    except IsoGenError as e:
        raise _fail(f"Failed to generate configuration: {e}") from None

    console.print(f"[green]✓ Autoinstall configuration written to {nocloud_dir}[/green]")


@app.command("build-iso")
def build_iso(
    source: Annotated[Path, typer.Argument(help="Source Ubuntu live-server ISO")],
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Output ISO path (default: <source dir>/ubuntu-autoinstall.iso)",
        ),
    ] = None,
    ubuntu_version: Annotated[
        str | None,
        typer.Option(
            "--ubuntu-version",
            "-u",
            help="Ubuntu version (22.04, 24.04); detected from the file name if omitted",
        ),
    ] = None,
    storage: Annotated[
        str,
        typer.Option("--storage", "-s", help="Storage layout (lvm, direct, zfs)"),
    ] = "lvm",
    timezone: Annotated[
        str,
        typer.Option("--timezone", help="Timezone of the installed system"),
    ] = "UTC",
    locale: Annotated[
        str,
        typer.Option("--locale", help="Locale of the installed system"),
    ] = "en_US.UTF-8",
    project_root: Annotated[
        Path | None,
        typer.Option("--project-root", help="Directory holding config.env"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show xorriso commands and output"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output result as JSON"),
    ] = False,
) -> None:
    """Build a bootable ISO with embedded autoinstall configuration.

    Validates and reads the user profile from cloud-init/secrets.env and
    config.env in the project root, then extracts SOURCE, injects the
    NoCloud documents, patches GRUB and repacks the ISO.
    """
    from ubuntu_isogen.iso.builder import ImageBuilder
    from ubuntu_isogen.iso.options import ImageOptions
    from ubuntu_isogen.profile import (
        detect_ubuntu_version,
        read_profile,
        validate_project,
    )

    settings = get_settings()
    if project_root is not None:
        settings = settings.model_copy(update={"project_root": project_root})
    _configure_logging(settings, verbose=verbose, quiet=json_output)

    version = ubuntu_version or detect_ubuntu_version(
        source, default=settings.default_ubuntu_version
    )
    builder = ImageBuilder.from_settings(settings)

    options = ImageOptions(
        source_iso=source,
        output_path=output or "",
        ubuntu_version=version,
        storage_layout=storage,
        timezone=timezone,
        locale=locale,
    )

    cancel_event = threading.Event()
    try:
        validation = validate_project(settings.project_root)
        validation.raise_for_errors()
        if not json_output:
            for issue in validation.warnings:
                console.print(
                    f"[yellow]Warning: {escape(str(issue))}[/yellow]", soft_wrap=True
                )
        profile = read_profile(settings.project_root)
        if not json_output:
            console.print(
                f"[blue]Building Ubuntu {version} autoinstall ISO from {source}...[/blue]"
            )
        result = builder.build(profile, options, cancel_event=cancel_event)
    except KeyboardInterrupt:
        cancel_event.set()
        raise _fail("Build interrupted") from None
    except IsoGenError as e:
        if json_output:
            _print_json(
                json.dumps(
                    {
                        "success": False,
                        "error_code": e.code,
                        "error_message": e.message,
                        "stage": e.stage.value if e.stage else None,
                    },
                    indent=2,
                )
            )
            raise typer.Exit(code=1) from None
        raise _fail(f"Failed to build ISO: {e}") from None

    if json_output:
        output_data = {
            "success": True,
            "output_path": str(result.output_path),
            "size_bytes": result.size_bytes,
            "volume_id": result.volume_id,
            "boot_modes": [m.value for m in result.boot_modes],
            "boot_config": str(result.boot_config),
            "duration_seconds": result.duration,
            "warnings": result.warnings,
        }
        _print_json(json.dumps(output_data, indent=2))
        return

    console.print(f"[green]✓ Bootable ISO created: {result.output_path}[/green]")
    console.print(f"  Volume ID: {result.volume_id}")
    console.print(f"  Boot modes: {', '.join(m.value for m in result.boot_modes)}")
    console.print(f"  Size: {result.size_bytes} bytes")
    for warning in result.warnings:
        console.print(f"  [yellow]Warning: {warning}[/yellow]")
    console.print()
    console.print("To write to USB:")
    console.print(
        f"  sudo dd if={result.output_path} of=/dev/sdX bs=4M status=progress"
    )


images_app = typer.Typer(help="Manage source Ubuntu ISOs")
app.add_typer(images_app, name="images")


@images_app.command("list")
def images_list(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List known Ubuntu live-server ISOs and whether they are downloaded."""
    from ubuntu_isogen.images import list_source_images

    settings = get_settings()
    images = list_source_images()

    if json_output:
        output = [
            {
                "version": image.version,
                "codename": image.codename,
                "filename": image.filename,
                "url": image.url(),
                "downloaded": (settings.images_dir / image.filename).is_file(),
            }
            for image in images
        ]
        _print_json(json.dumps(output, indent=2))
        return

    console.print(f"[bold]Found {len(images)} source image(s):[/bold]")
    console.print()
    for image in images:
        local = settings.images_dir / image.filename
        status = "[green]downloaded[/green]" if local.is_file() else "[dim]not downloaded[/dim]"
        console.print(f"  [bold]{image.version}[/bold] ({image.codename}) {status}")
        console.print(f"    File: {image.filename} {image.size}")
        console.print(f"    URL: {image.url()}")
        console.print()


@images_app.command("fetch")
def images_fetch(
    version: Annotated[str, typer.Argument(help="Ubuntu version (22.04, 24.04)")],
    dest: Annotated[
        Path | None,
        typer.Option("--dest", "-d", help="Download directory (default: images_dir)"),
    ] = None,
    no_verify: Annotated[
        bool,
        typer.Option("--no-verify", help="Skip SHA256 checksum verification"),
    ] = False,
) -> None:
    """Download an Ubuntu live-server ISO."""
    import httpx

    from ubuntu_isogen.images.fetch import DownloadError, VerificationError, download_iso

    settings = get_settings()
    _configure_logging(settings)
    dest_dir = dest or settings.images_dir

    try:
        console.print(f"[blue]Fetching Ubuntu {version} live-server ISO...[/blue]")
        with httpx.Client(follow_redirects=True) as client:
            result = download_iso(
                client,
                version,
                dest_dir,
                verify_checksum=not no_verify,
                timeout=settings.download_timeout,
            )
    except VerificationError as e:
        raise _fail(f"Verification failed: {e}") from None
    except DownloadError as e:
        raise _fail(f"Download failed: {e}") from None
    except IsoGenError as e:
        raise _fail(str(e)) from None

    if result.reused:
        console.print(f"[green]✓ Already downloaded: {result.path}[/green]")
    else:
        console.print(f"[green]✓ Downloaded: {result.path}[/green]")
    if result.verified:
        console.print(f"  Checksum: {result.checksum[:16]}...")
    else:
        console.print("  [yellow]Checksum not verified[/yellow]")


if __name__ == "__main__":
    app()
