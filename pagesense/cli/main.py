"""
PageSense CLI - Capture pages and inspect extraction dumps.
"""

import json
import logging
import time

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from pagesense.core.exceptions import PageSenseError

console = Console()

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_element_table(selector_map, max_rows: int = 50) -> Table:
    """Rich table of indexed elements: index, tag, new flag and viewport centre."""
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Index", style="dim", width=6, justify="right")
    table.add_column("Tag", style="green")
    table.add_column("Attributes", style="yellow", max_width=50)
    table.add_column("New", justify="center")
    table.add_column("Centre", justify="right")

    indices = sorted(selector_map)
    for index in indices[:max_rows]:
        node = selector_map[index]
        attrs = " ".join(
            f'{k}="{v}"' for k, v in node.attributes.items() if k in ("id", "name", "type", "aria-label")
        )
        if node.is_new is None:
            new = "[dim]-[/dim]"
        else:
            new = "[green]yes[/green]" if node.is_new else "no"
        if node.viewport_coordinates:
            center = node.viewport_coordinates.center
            centre = f"({round(center.x)}, {round(center.y)})"
        else:
            centre = "[dim]n/a[/dim]"
        table.add_row(str(index), node.tag, attrs, new, centre)

    if len(indices) > max_rows:
        table.add_row("...", f"+{len(indices) - max_rows} more", "", "", "")
    return table


@click.group()
@click.version_option(version="0.1.0", prog_name="pagesense")
def cli():
    """PageSense - DOM snapshots and change detection

    Capture the interactive structure of a page and see what changes
    between captures.
    """
    pass


@cli.command()
@click.argument('url')
@click.option('--count', default=1, type=int, help='Number of captures to take')
@click.option('--interval', default=2.0, type=float, help='Seconds to wait between captures')
@click.option('--headless/--headed', default=False, help='Run browser in headless mode')
@click.option('--max-elements', default=None, type=int,
              help='Maximum entries per history section (default: config value)')
@click.option('--report-dir', default=None, help='Write JSON capture records to this directory')
@click.option('--log-level', default='WARNING', envvar='PAGESENSE_LOG_LEVEL',
              type=click.Choice(LOG_LEVELS, case_sensitive=False), help='Logging level')
def capture(url, count, interval, headless, max_elements, report_dir, log_level):
    """
    Open a URL and capture it one or more times.

    Each capture prints the indexed elements and what appeared or
    disappeared since the previous capture.

    \b
    Examples:

        pagesense capture "https://example.com"

        pagesense capture "https://example.com" --count 5 --interval 3 --report-dir ./runs
    """
    configure_logging(log_level)

    console.print(Panel.fit(
        f"[bold blue]PageSense[/bold blue]\n"
        f"[dim]DOM snapshots and change detection[/dim]",
        border_style="blue"
    ))
    console.print(f"\n[bold]Target:[/bold] {url}")
    console.print(f"[bold]Captures:[/bold] {count}")
    console.print()

    from pagesense.core.browser_bridge import SeleniumBridge
    from pagesense.core.coordinator import CaptureConfig, CaptureCoordinator
    from pagesense.core.driver_factory import create_driver
    from pagesense.reporters.capture_recorder import CaptureRecorder

    try:
        config = CaptureConfig.from_env()
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise SystemExit(1)
    if max_elements is not None:
        config.history_max_elements = max_elements

    recorder = CaptureRecorder(output_dir=report_dir) if report_dir else None

    driver = None
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Starting browser...", total=None)
            driver = create_driver(headless=headless)
            progress.update(task, description=f"Loading {url}...")
            driver.get(url)

        coordinator = CaptureCoordinator(SeleniumBridge(driver), config=config)
        for number in range(1, count + 1):
            if number > 1:
                time.sleep(interval)

            result = coordinator.capture()
            snapshot = result.snapshot
            console.print(
                f"[bold]Capture {number}/{count}:[/bold] {snapshot.title or snapshot.url} "
                f"[dim]({len(result.selector_map)} indexed, {result.new_elements} new)[/dim]"
            )
            console.print(build_element_table(result.selector_map))

            if result.history_text:
                console.print(Panel(result.history_text, title="Changes", border_style="magenta"))
            else:
                console.print("[dim]No changes since last capture[/dim]")
            console.print()

            if recorder:
                recorder.record(result)

        if recorder:
            summary = recorder.write_summary()
            console.print(f"[dim]Report: {summary}[/dim]")

    except PageSenseError as e:
        console.print(f"[red]Capture failed: {e}[/red]")
        raise SystemExit(1)
    finally:
        if driver is not None:
            driver.quit()


@cli.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--log-level', default='WARNING', envvar='PAGESENSE_LOG_LEVEL',
              type=click.Choice(LOG_LEVELS, case_sensitive=False), help='Logging level')
def inspect(file, log_level):
    """
    Build a tree from a saved extraction dump.

    FILE is a JSON document of the form {"rootId": ..., "map": {...}}
    as returned by the extraction script. No browser is needed.

    Example:

        pagesense inspect ./dom_dump.json
    """
    configure_logging(log_level)

    from pagesense.layers.sense.identity import ElementIdentityProcessor
    from pagesense.layers.sense.tree_builder import DomTreeBuilder

    try:
        with open(file, "r", encoding="utf-8") as f:
            data = json.load(f)
        built = DomTreeBuilder().build_from_result(data)
    except (ValueError, PageSenseError) as e:
        console.print(f"[red]Cannot inspect {file}: {e}[/red]")
        raise SystemExit(1)

    nodes = list(built.dom_tree.iter_subtree())
    clickable = ElementIdentityProcessor.clickable_elements(built.dom_tree)

    summary = Table(show_header=False, box=None)
    summary.add_row("[bold]Root:[/bold]", f"<{built.dom_tree.tag}>")
    summary.add_row("[bold]Nodes:[/bold]", str(len(nodes)))
    summary.add_row("[bold]Text nodes:[/bold]", str(sum(1 for n in nodes if n.is_text)))
    summary.add_row("[bold]Indexed:[/bold]", str(len(built.selector_map)))
    summary.add_row("[bold]Clickable:[/bold]", str(len(clickable)))
    console.print(summary)
    console.print()
    console.print(build_element_table(built.selector_map))


@cli.command()
def version():
    """Show version information."""
    from pagesense import __version__
    console.print(f"PageSense v{__version__}")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()
