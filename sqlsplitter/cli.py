"""Command line interface for sqlsplitter."""

from pathlib import Path
from typing import TYPE_CHECKING, Optional

import rich_click as click
from rich.console import Console

from sqlsplitter.__metadata__ import __version__
from sqlsplitter.config import DEFAULT_CONCURRENCY, DEFAULT_MAX_SIZE_KB, OversizedPolicy, SplitterConfig
from sqlsplitter.exceptions import InputError, InvalidConfigurationError, SQLSplitterError
from sqlsplitter.splitter import SplitResult, split_file
from sqlsplitter.utils.logging import configure_logging

if TYPE_CHECKING:
    from sqlsplitter.progress import ProgressSnapshot

__all__ = ("EXIT_FAILURE", "EXIT_USAGE", "main")

EXIT_FAILURE = 1
EXIT_USAGE = 2


def _split_with_progress(config: SplitterConfig, console: Console) -> SplitResult:
    from rich.progress import BarColumn, DownloadColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TextColumn("{task.fields[chunks]} files"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"Splitting {config.input_path.name}", total=None, chunks=0)

        def report(snapshot: "ProgressSnapshot") -> None:
            progress.update(
                task, completed=snapshot.bytes_written, total=snapshot.total_bytes, chunks=snapshot.chunks_written
            )

        return split_file(config, reporter=report)


@click.command(
    name="sqlsplitter",
    help="Split large SQL files into smaller ones while preserving statement integrity.",
    context_settings={"help_option_names": ["-h", "--help"], "auto_envvar_prefix": "SQLSPLITTER"},
)
@click.option(
    "-i",
    "--input",
    "input_path",
    help="SQL file to split.",
    type=click.Path(path_type=Path, dir_okay=True),
    required=True,
)
@click.option(
    "-o",
    "--output",
    "output_dir",
    help="Directory for the split files; created if missing.",
    type=click.Path(path_type=Path, file_okay=False),
    required=True,
)
@click.option(
    "-m",
    "--max-size",
    "max_size",
    help="Maximum size of each split file in kilobytes.",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_SIZE_KB,
    show_default=True,
)
@click.option(
    "-c",
    "--concurrency",
    help="Number of concurrent write operations.",
    type=click.IntRange(min=1),
    default=DEFAULT_CONCURRENCY,
    show_default=True,
)
@click.option(
    "--oversized",
    help="What to do with a single statement larger than --max-size.",
    type=click.Choice([policy.value for policy in OversizedPolicy]),
    default=OversizedPolicy.ALLOW.value,
    show_default=True,
)
@click.option(
    "--backslash-escapes",
    help="Treat backslash as an escape character inside quoted strings (MySQL style).",
    is_flag=True,
    default=False,
)
@click.option("--prefix", help="File name prefix of the split files.", type=str, default="split_", show_default=True)
@click.option("--suffix", help="File name suffix of the split files.", type=str, default=".sql", show_default=True)
@click.option(
    "--keep-partial", help="Keep partially written files when a write fails.", is_flag=True, default=False
)
@click.option(
    "--log-level",
    help="Logging level.",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
@click.option(
    "--log-format",
    help="Log output format.",
    type=click.Choice(["simple", "structured"]),
    default="simple",
    show_default=True,
)
@click.option(
    "--log-file", help="Also write structured logs to this file.", type=click.Path(path_type=Path), default=None
)
@click.option("--no-progress", help="Do not display a progress bar.", is_flag=True, default=False)
@click.version_option(__version__, "--version", prog_name="sqlsplitter")
@click.pass_context
def main(
    ctx: click.Context,
    input_path: Path,
    output_dir: Path,
    max_size: int,
    concurrency: int,
    oversized: str,
    backslash_escapes: bool,
    prefix: str,
    suffix: str,
    keep_partial: bool,
    log_level: str,
    log_format: str,
    log_file: Optional[Path],
    no_progress: bool,
) -> None:
    """Split a SQL script into size-bounded files without breaking statements."""
    configure_logging(level=log_level, format_style=log_format, log_file=log_file)
    console = Console()
    error_console = Console(stderr=True)

    try:
        config = SplitterConfig(
            input_path=input_path,
            output_dir=output_dir,
            max_size_kb=max_size,
            concurrency=concurrency,
            oversized=OversizedPolicy(oversized),
            backslash_escapes=backslash_escapes,
            prefix=prefix,
            suffix=suffix,
            keep_partial=keep_partial,
        )
        console.print("Starting to split SQL file...")
        result = split_file(config) if no_progress else _split_with_progress(config, console)
    except (InvalidConfigurationError, InputError) as exc:
        error_console.print(f"[red]Error: {exc}[/]")
        ctx.exit(EXIT_USAGE)
    except SQLSplitterError as exc:
        error_console.print(f"[red]Error splitting file: {exc}[/]")
        ctx.exit(EXIT_FAILURE)

    console.print(f"[green]Successfully split SQL file into {result.file_count} files[/]")
    if result.oversized_chunks:
        console.print(
            f"[yellow]{result.oversized_chunks} statements exceeded the {max_size} KB limit "
            "and were written to their own files[/]"
        )
    console.print(f"Time taken: {result.elapsed:.2f}s")
