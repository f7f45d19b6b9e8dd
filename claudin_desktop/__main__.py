"""CLI entry point for the ClaudIn desktop bootstrap."""

import sys

import click
from rich.console import Console
from rich.table import Table as RichTable

from claudin_desktop.bootstrap import DesktopBootstrap
from claudin_desktop.config import Config
from claudin_desktop.exceptions import ConfigurationError
from claudin_desktop.logging_setup import LOG_FILE_NAME, setup_logging
from claudin_desktop.models import CommandResult, RuntimeMode
from claudin_desktop.paths import platform_home_dir

console = Console()


def _report(result: CommandResult, success_message: str) -> None:
    if result.success:
        console.print(f"[bold green]{success_message}[/bold green]")
        return
    console.print(f"[red]Error:[/red] {result.error}")
    sys.exit(1)


@click.group()
@click.option("--config", "-c", default=None, help="Path to config file")
@click.option(
    "--mode",
    type=click.Choice([m.value for m in RuntimeMode]),
    default=None,
    help="Override runtime mode (default: detect)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx, config, mode, verbose):
    """ClaudIn desktop bootstrap - backend launch and extension setup."""
    ctx.ensure_object(dict)
    cfg = Config.load(config)
    if mode:
        cfg.runtime.mode = RuntimeMode(mode)

    log_file = None
    home = platform_home_dir()
    if cfg.app.log_to_file and home is not None:
        log_file = home / cfg.app.namespace / LOG_FILE_NAME
    setup_logging("DEBUG" if verbose else cfg.app.log_level, log_file)

    try:
        ctx.obj["bootstrap"] = DesktopBootstrap.from_environment(cfg)
    except ConfigurationError as exc:
        console.print(f"[red]Setup failed:[/red] {exc}")
        sys.exit(2)
    ctx.call_on_close(lambda: ctx.obj["bootstrap"].shutdown())


@cli.command()
@click.pass_context
def paths(ctx):
    """Show resolved backend, extension and config locations."""
    bootstrap = ctx.obj["bootstrap"]

    table = RichTable(title=f"Resolved paths ({bootstrap.mode.value})")
    table.add_column("Location", style="cyan")
    table.add_column("Path", style="green")
    for name, value in bootstrap.paths.as_dict().items():
        table.add_row(name.replace("_", " "), value)
    console.print(table)


@cli.command()
@click.pass_context
def status(ctx):
    """Show extension and first-run setup state."""
    bootstrap = ctx.obj["bootstrap"]
    setup = bootstrap.is_setup_complete()

    table = RichTable(title="Bootstrap Status")
    table.add_column("Check", style="cyan")
    table.add_column("State", style="green")
    table.add_row("Extension extracted", "yes" if bootstrap.is_extension_extracted() else "no")
    table.add_row("Extension path", bootstrap.get_extension_path())
    table.add_row(
        "Setup complete",
        ("yes" if setup.data else "no") if setup.success else f"[red]{setup.error}[/red]",
    )
    console.print(table)


@cli.command()
@click.option("--force", is_flag=True, help="Remove and re-extract the extension")
@click.pass_context
def extract(ctx, force):
    """Extract the bundled extension into the user directory."""
    bootstrap = ctx.obj["bootstrap"]
    with console.status("[bold green]Extracting extension..."):
        result = bootstrap.submit(bootstrap.extract_extension, force=force).result()
    _report(result, "Extension ready")
    console.print(f"Extension files: [blue]{result.data}[/blue]")


@cli.command("open-folder")
@click.pass_context
def open_folder(ctx):
    """Open the extracted extension folder in the file manager."""
    _report(ctx.obj["bootstrap"].open_extension_folder(), "Opened extension folder")


@cli.command("open-extensions")
@click.pass_context
def open_extensions(ctx):
    """Open Chrome's extensions page."""
    _report(ctx.obj["bootstrap"].open_chrome_extensions_page(), "Opened Chrome extensions")


@cli.command("open-url")
@click.argument("url")
@click.pass_context
def open_url(ctx, url):
    """Open URL in Chrome (falls back to another browser)."""
    _report(ctx.obj["bootstrap"].open_url(url), f"Opened {url}")


@cli.command("mark-setup")
@click.pass_context
def mark_setup(ctx):
    """Record that first-run setup has been completed."""
    _report(ctx.obj["bootstrap"].mark_setup_complete(), "Setup marked complete")


@cli.command("start-backend")
@click.option("--wait/--no-wait", default=False, help="Wait for the backend to answer")
@click.pass_context
def start_backend(ctx, wait):
    """Launch the backend server detached."""
    bootstrap = ctx.obj["bootstrap"]
    result = bootstrap.start().result()
    _report(result, f"Backend started (PID {result.data.pid})" if result.success else "")

    if wait:
        with console.status("[bold green]Waiting for backend..."):
            ready = bootstrap.wait_for_backend()
        _report(ready, f"Backend ready at {ready.data}")


if __name__ == "__main__":
    cli()
