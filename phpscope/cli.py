"""phpscope CLI - resolve PHP namespaces and class names across a codebase."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import click

from phpscope.config import AnalysisConfig, AnalysisResult
from phpscope.errors import PhpscopeError
from phpscope.graph.unit_registry import UnitRegistry
from phpscope.output import write_output
from phpscope.phases.declarations import UnitBuilder
from phpscope.phases.parsing import ParseCache
from phpscope.pipeline import run_pipeline


def _configure_logging(verbose: bool, quiet: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
def cli() -> None:
    """phpscope - Resolve namespaces, aliases and class names in PHP code."""
    pass


def _run_with_progress(config: AnalysisConfig) -> AnalysisResult:
    """Run the checks with Rich progress display."""
    from rich.console import Console
    from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
    from rich.table import Table

    console = Console()

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Checking files...", total=None)

        def on_file(done, total, path):
            progress.update(task, completed=done, total=total, description=Path(path).name)

        result = run_pipeline(config, progress_callback=on_file)

    stats = result.stats
    cache_stats = stats.get("cache", {})

    table = Table(title=f"phpscope: {Path(config.repo_path).name}", show_edge=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Files", str(stats.get("files", 0)))
    table.add_row("Checked", str(stats.get("checked", 0)))
    table.add_row("Failed", str(stats.get("failed", 0)))
    table.add_row("Classes", str(stats.get("classes", 0)))
    table.add_row("Namespaces", str(stats.get("namespaces", 0)))
    table.add_row("Cache hits", str(cache_stats.get("hits", 0)))
    table.add_row("Cache misses", str(cache_stats.get("misses", 0)))

    duration = result.metadata.get("analysis_duration_ms", 0)
    table.add_row("Duration", f"{duration:.1f}ms")

    console.print(table)

    if result.errors:
        error_table = Table(title="Errors", show_edge=False)
        error_table.add_column("File", style="bold")
        error_table.add_column("Line", justify="right")
        error_table.add_column("Message")
        for err in result.errors:
            error_table.add_row(err["file"], str(err["line"] or ""), err["message"] or "")
        console.print(error_table)

    return result


@cli.command("check")
@click.argument("path", type=click.Path(exists=True))
@click.option("-o", "--output", "output_path", default=None, help="Output JSON file path")
@click.option("--cache-dir", default=None, envvar="PHPSCOPE_CACHE_DIR", help="Parse cache directory")
@click.option("--no-cache", is_flag=True, help="Keep the parse cache in memory only")
@click.option("--cache-max-entries", default=10_000, type=int, help="Maximum parse cache entries")
@click.option("-w", "--workers", default=None, type=int, help="Worker threads (default: CPU count)")
@click.option("--exclude", multiple=True, help="Additional glob patterns to exclude")
@click.option("--skip-output-check", multiple=True, help="Glob of files exempt from dynamic output checks")
@click.option("--deadline", default=None, type=float, help="Abandon remaining files after N seconds")
@click.option("--verbose", is_flag=True, help="Show debug logging")
@click.option("--quiet", is_flag=True, help="Suppress all output except errors")
def check_cmd(
    path: str,
    output_path: str | None,
    cache_dir: str | None,
    no_cache: bool,
    cache_max_entries: int,
    workers: int | None,
    exclude: tuple[str, ...],
    skip_output_check: tuple[str, ...],
    deadline: float | None,
    verbose: bool,
    quiet: bool,
) -> None:
    """Check every PHP file under PATH and report resolved declarations."""
    _configure_logging(verbose, quiet)
    repo_path = Path(path).resolve()

    if output_path is None:
        output_path = f"{repo_path.stem}.phpscope.json"

    config = AnalysisConfig(
        repo_path=str(repo_path),
        output_path=output_path,
        cache_dir=None if no_cache else cache_dir,
        cache_max_entries=cache_max_entries,
        workers=workers or os.cpu_count() or 1,
        exclude_patterns=list(exclude),
        skip_output_check_patterns=list(skip_output_check),
        deadline=deadline,
        verbose=verbose,
        quiet=quiet,
    )

    if quiet:
        result = run_pipeline(config)
    else:
        result = _run_with_progress(config)

    write_output(result, output_path)

    if not quiet:
        from rich.console import Console
        Console().print(f"[green]Output written to:[/green] {output_path}")

    if result.errors:
        sys.exit(1)


@cli.command("resolve")
@click.argument("name")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--cache-dir", default=None, envvar="PHPSCOPE_CACHE_DIR", help="Parse cache directory")
def resolve_cmd(name: str, file: str, cache_dir: str | None) -> None:
    """Print the fully-qualified form of NAME as seen from FILE."""
    _configure_logging(False, True)
    registry = UnitRegistry(builder=UnitBuilder(ParseCache(cache_dir=cache_dir)))
    try:
        resolved = registry.resolve_in_file(name, str(Path(file).resolve()))
    except PhpscopeError as e:
        raise click.ClickException(str(e)) from e
    click.echo(resolved)


@cli.group("cache")
def cache_group() -> None:
    """Manage the on-disk parse cache."""
    pass


@cache_group.command("prune")
@click.argument("cache_dir", type=click.Path(exists=True, file_okay=False))
@click.option("--max-entries", default=10_000, type=int, help="Entries to keep")
@click.option("--max-age", default=None, type=float, help="Drop entries not used for N seconds")
def prune_cmd(cache_dir: str, max_entries: int, max_age: float | None) -> None:
    """Evict least recently used entries from CACHE_DIR."""
    cache = ParseCache(cache_dir=cache_dir, max_entries=max_entries, max_age=max_age)
    removed = cache.prune()
    click.echo(f"Removed {removed} entries, {len(cache)} remaining")


if __name__ == "__main__":
    cli()
