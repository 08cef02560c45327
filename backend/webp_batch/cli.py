"""
Command line interface
Runs the conversion endpoint and drives batch conversions against it headlessly.
"""
import asyncio
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from webp_batch import __version__
from webp_batch.batch import BatchOrchestrator, DirectorySink, JobStatus, Notice, NoticeLevel, SourceFile
from webp_batch.client import ConverterClient
from webp_batch.config import CONVERTER_URL, HOST, OUTPUT_DIR, PORT

app = typer.Typer(
    name="webp-batch",
    help="Batch convert images to WebP through the conversion endpoint.",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()

_NOTICE_STYLES = {
    NoticeLevel.INFO: "cyan",
    NoticeLevel.SUCCESS: "green",
    NoticeLevel.ERROR: "red",
}
_STATUS_STYLES = {
    JobStatus.PENDING: "dim",
    JobStatus.CONVERTING: "blue",
    JobStatus.COMPLETED: "green",
    JobStatus.ERROR: "red",
}


def format_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"


def print_notice(notice: Notice) -> None:
    console.print(f"[{_NOTICE_STYLES[notice.level]}]{notice.message}[/]")


def items_table(orchestrator: BatchOrchestrator) -> Table:
    table = Table(title=f"Files ({len(orchestrator)})")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("File")
    table.add_column("Size", justify="right")
    table.add_column("Status")
    table.add_column("Output")
    for item in orchestrator.items:
        style = _STATUS_STYLES[item.status]
        if item.status is JobStatus.COMPLETED:
            output = f"{item.output_filename} ({format_size(item.result.size)})"
        elif item.status is JobStatus.ERROR:
            output = f"[red]{item.error}[/]"
        elif item.status is JobStatus.CONVERTING:
            output = f"{item.progress}%"
        else:
            output = ""
        table.add_row(
            item.id,
            item.name,
            format_size(item.source.size),
            f"[{style}]{item.status.value}[/]",
            output,
        )
    return table


def load_sources(paths: list[Path]) -> tuple[list[SourceFile], list[str]]:
    """Read files from disk. Unreadable paths are returned as messages instead of raising."""
    sources, problems = [], []
    for path in paths:
        try:
            sources.append(SourceFile.from_path(path))
        except OSError as e:
            problems.append(f"{path}: {e.strerror or e}")
    return sources, problems


@dataclass
class CommandResult:
    ok: bool
    message: str = ""
    quit: bool = False


SHELL_HELP = """Commands:
  add <files...>     add images to the batch
  list               show the batch
  convert-all        convert pending and failed files one by one
  download <id>      save one converted file
  download-all       save all converted files (zip when more than one)
  remove <id>        remove a file from the batch
  clear              remove every file
  help               show this help
  quit               leave the shell"""


class ShellSession:
    """One interactive batch session: parses command lines and runs them on an orchestrator."""

    def __init__(self, orchestrator: BatchOrchestrator):
        self.orchestrator = orchestrator

    async def execute(self, line: str) -> CommandResult:
        try:
            parts = shlex.split(line)
        except ValueError as e:
            return CommandResult(False, f"Could not parse command: {e}")
        if not parts:
            return CommandResult(True)
        command, args = parts[0].lower(), parts[1:]
        handler = getattr(self, "cmd_" + command.replace("-", "_"), None)
        if handler is None:
            return CommandResult(False, f"Unknown command: {command}. Type 'help' for a list.")
        return await handler(args)

    async def cmd_help(self, args: list[str]) -> CommandResult:
        return CommandResult(True, SHELL_HELP)

    async def cmd_quit(self, args: list[str]) -> CommandResult:
        return CommandResult(True, quit=True)

    cmd_exit = cmd_quit

    async def cmd_list(self, args: list[str]) -> CommandResult:
        console.print(items_table(self.orchestrator))
        return CommandResult(True)

    async def cmd_add(self, args: list[str]) -> CommandResult:
        if not args:
            return CommandResult(False, "Usage: add <files...>")
        sources, problems = load_sources([Path(a).expanduser() for a in args])
        accepted = self.orchestrator.add_files(sources)
        rejected = len(self.orchestrator.last_rejections) + len(problems)
        message = "\n".join(problems + [f"{accepted} added, {rejected} rejected"])
        return CommandResult(accepted > 0 and rejected == 0, message)

    async def cmd_convert_all(self, args: list[str]) -> CommandResult:
        if not await self.orchestrator.convert_all():
            return CommandResult(False, self.orchestrator.last_refusal.message)
        counts = self.orchestrator.counts()
        return CommandResult(
            counts[JobStatus.ERROR.value] == 0,
            f"{counts[JobStatus.COMPLETED.value]} completed, {counts[JobStatus.ERROR.value]} failed",
        )

    async def cmd_download(self, args: list[str]) -> CommandResult:
        if len(args) != 1:
            return CommandResult(False, "Usage: download <id>")
        item = self.orchestrator.get(args[0])
        if item is None:
            return CommandResult(False, f"No file with id {args[0]}")
        if item.result is None:
            return CommandResult(False, f"{item.name} has not been converted")
        location = self.orchestrator.download_item(item)
        if location is None:
            return CommandResult(False, f"Could not save {item.output_filename}")
        return CommandResult(True, f"Saved {location}")

    async def cmd_download_all(self, args: list[str]) -> CommandResult:
        location = await self.orchestrator.download_all()
        if location is None:
            return CommandResult(False, "Nothing was saved")
        return CommandResult(True, f"Saved {location}")

    async def cmd_remove(self, args: list[str]) -> CommandResult:
        if len(args) != 1:
            return CommandResult(False, "Usage: remove <id>")
        if self.orchestrator.get(args[0]) is None:
            return CommandResult(False, f"No file with id {args[0]}")
        if not self.orchestrator.remove_item(args[0]):
            return CommandResult(False, self.orchestrator.last_refusal.message)
        return CommandResult(True, f"Removed {args[0]}")

    async def cmd_clear(self, args: list[str]) -> CommandResult:
        if not self.orchestrator.clear_all():
            return CommandResult(False, self.orchestrator.last_refusal.message)
        return CommandResult(True, "Cleared")


def version_callback(value: bool):
    if value:
        console.print(f"webp-batch {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-v", callback=version_callback, is_eager=True, help="Show version"),
    ] = None,
):
    """Batch image to WebP converter."""


@app.command()
def serve(
    host: Annotated[str, typer.Option(help="Bind address")] = HOST,
    port: Annotated[int, typer.Option(help="Bind port")] = PORT,
    reload: Annotated[bool, typer.Option(help="Reload on code changes")] = False,
):
    """Run the conversion endpoint."""
    import uvicorn

    uvicorn.run("webp_batch.main:app", host=host, port=port, reload=reload)


async def _run_batch(files: list[Path], output_dir: Path, url: str, as_zip: bool) -> int:
    sources, problems = load_sources(files)
    for problem in problems:
        console.print(f"[red]{problem}[/]")
    async with ConverterClient(base_url=url) as client:
        orchestrator = BatchOrchestrator(client, sink=DirectorySink(output_dir))
        orchestrator.on_notice(print_notice)
        orchestrator.add_files(sources)
        failed = bool(problems or orchestrator.last_rejections)
        if not len(orchestrator):
            return 1
        with console.status("Converting...") as status:

            def show_progress(item):
                if item.is_converting:
                    status.update(f"Converting {item.name} {item.progress}%")

            orchestrator.on_change(show_progress)
            await orchestrator.convert_all()
        console.print(items_table(orchestrator))
        if as_zip:
            await orchestrator.download_all()
        else:
            for item in orchestrator.completed_items():
                orchestrator.download_item(item)
        if orchestrator.counts()[JobStatus.ERROR.value]:
            failed = True
        orchestrator.clear_all()
    return 1 if failed else 0


@app.command()
def convert(
    files: Annotated[list[Path], typer.Argument(help="Images to convert")],
    output_dir: Annotated[Path, typer.Option("-o", "--output-dir", help="Where converted files are saved")] = OUTPUT_DIR,
    url: Annotated[str, typer.Option("--url", help="Conversion endpoint base URL")] = CONVERTER_URL,
    as_zip: Annotated[bool, typer.Option("--zip/--no-zip", help="Save several results as one zip archive")] = True,
):
    """
    Convert files in one go: add, convert all, download all

    Examples:
      webp-batch convert photos/*.jpg -o out/
      webp-batch convert a.png b.gif --no-zip
    """
    code = asyncio.run(_run_batch(files, output_dir, url, as_zip))
    raise typer.Exit(code)


async def _run_shell(url: str, output_dir: Path) -> None:
    async with ConverterClient(base_url=url) as client:
        orchestrator = BatchOrchestrator(client, sink=DirectorySink(output_dir))
        orchestrator.on_notice(print_notice)
        session = ShellSession(orchestrator)
        console.print(f"webp-batch shell, converting via {url}. Type 'help' for commands.")
        while True:
            try:
                line = await asyncio.to_thread(console.input, "[bold]webp>[/] ")
            except (EOFError, KeyboardInterrupt):
                break
            result = await session.execute(line)
            if result.message:
                console.print(result.message if result.ok else f"[red]{result.message}[/]")
            if result.quit:
                break
        orchestrator.clear_all()


@app.command()
def shell(
    url: Annotated[str, typer.Option("--url", help="Conversion endpoint base URL")] = CONVERTER_URL,
    output_dir: Annotated[Path, typer.Option("-o", "--output-dir", help="Where downloads are saved")] = OUTPUT_DIR,
):
    """Interactive batch session."""
    asyncio.run(_run_shell(url, output_dir))


if __name__ == "__main__":
    app()
