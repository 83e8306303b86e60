"""Command-line entry point for the gallery builder."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from thumbgallery.cache import Cache
from thumbgallery.config_utils import DEFAULT_OUTPUT_DIR_NAME, build_config
from thumbgallery.errors import GalleryError, TransformError
from thumbgallery.logging_utils import configure_logging
from thumbgallery.pipeline import build_gallery
from thumbgallery.progress import ConsoleProgress

app = typer.Typer(
    help="Generates static HTML galleries of video and image collections."
)
console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)


@app.command()
def build(
    source: Path = typer.Argument(
        Path("."), help="The source directory to scan for content."
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help=f"Output directory for the gallery HTML (default: ./{DEFAULT_OUTPUT_DIR_NAME}).",
    ),
    copy_files: Optional[bool] = typer.Option(
        None,
        "--copy-files/--no-copy-files",
        "-c/-C",
        help="Copy source files into the output directory.",
    ),
    transform: Optional[str] = typer.Option(
        None,
        "--transform",
        help="Plugin (module:object or path.py) run on each file instead of copying.",
    ),
    width: Optional[int] = typer.Option(
        None, "--width", "-w", help="Thumbnail width, in pixels (default: 300)."
    ),
    height: Optional[int] = typer.Option(
        None, "--height", help="Thumbnail height, in pixels (default: 300)."
    ),
    template: Optional[Path] = typer.Option(
        None, "--template", "-t", help="Path of the gallery template directory."
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", help="YAML file with default build settings."
    ),
    seed: Optional[int] = typer.Option(
        None, "--seed", help="Seed for directory preview sampling."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable info logging."),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging."),
) -> None:
    """Build or update the gallery for SOURCE."""
    if debug:
        log_level = logging.DEBUG
    elif verbose:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING
    configure_logging(level=log_level, console=err_console)

    if transform and copy_files is None:
        copy_files = True

    try:
        config = build_config(
            {
                "source": source,
                "output": output,
                "copy_files": copy_files,
                "transform": transform,
                "width": width,
                "height": height,
                "template": template,
                "seed": seed,
            },
            config_file,
        )
        with ConsoleProgress(err_console) as progress:
            report = build_gallery(config, progress)
    except (
        GalleryError,
        TransformError,
        yaml.YAMLError,
        OSError,
        ValueError,
        TypeError,
    ) as exc:
        logger.error("Gallery build failed: %s", exc)
        typer.secho(f"Error: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    for line in report.summary_lines():
        typer.echo(line)
    for error in report.errors.errors:
        typer.secho(f"  {error.stage}: {error.path}: {error.message}", fg=typer.colors.YELLOW)
    typer.secho("Done!", fg=typer.colors.GREEN)


@app.command("cache-info")
def cache_info(
    output: Path = typer.Argument(
        Path(DEFAULT_OUTPUT_DIR_NAME), help="Gallery output directory."
    ),
    cache_filename: str = typer.Option(
        ".cache", "--cache-file", help="Cache filename inside the output directory."
    ),
) -> None:
    """Show what the build cache currently knows."""
    try:
        cache = Cache(output / cache_filename).load()
    except GalleryError as exc:
        typer.secho(f"Error: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    table = Table(title=f"Cache {cache.cache_path}")
    table.add_column("Fact")
    table.add_column("Entries", justify="right")
    for name, count in sorted(cache.fact_counts().items()):
        table.add_row(name, str(count))
    console.print(table)
    last_run = datetime.fromtimestamp(cache.last_run / 1000).isoformat(timespec="seconds")
    console.print(f"{len(cache)} identifier(s); last run {last_run}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
