import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn

from advreplace.services.jobs import ProgressCallback

# stdout is reserved for CSV output
console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)],
    )


@contextmanager
def progress_bar(description: str) -> Iterator[ProgressCallback]:
    """Yields an on_progress callback driving a rich progress bar."""
    with Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        TextColumn("{task.fields[step]}", style="dim"),
        console=console,
    ) as progress:
        task = progress.add_task(description, total=100, step="")

        def on_progress(percent: float, message: str) -> None:
            progress.update(task, completed=percent, step=message)

        yield on_progress


def print_output(path: Path) -> None:
    """Copy a finished result file to stdout."""
    with open(path, encoding="utf-8") as fp:
        for line in fp:
            sys.stdout.write(line)


def error(message: str) -> int:
    console.print(f"❌ {message}", style="bold red")
    return 1
