"""tracewire CLI - typer application entry point."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from tracewire.components import CommitLog
from tracewire.config import TracewireConfig
from tracewire.diagnostics import configure_logging, get_logger
from tracewire.errors import ConfigurationError, TracewireAPIError
from tracewire.writer import LogSpool, LogWriter, LogWriterConfig
from tracewire.writer.spool import default_spool_root

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="tracewire",
    help="tracewire: inspect, push and replay LLM observability logs.",
    no_args_is_help=True,
)
spool_app = typer.Typer(help="Manage batches spooled to disk after failed deliveries.", no_args_is_help=True)
app.add_typer(spool_app, name="spool")

console = Console()
log = get_logger(__name__)

RepoOption = Annotated[
    str,
    typer.Option("--repo", "-r", help="Log repository id.", envvar="TRACEWIRE_LOG_REPO_ID"),
]
ApiKeyOption = Annotated[
    str | None,
    typer.Option("--api-key", help="API key (default: TRACEWIRE_API_KEY).", envvar="TRACEWIRE_API_KEY"),
]
BaseUrlOption = Annotated[
    str | None,
    typer.Option("--base-url", help="Backend URL (default: TRACEWIRE_BASE_URL)."),
]
SpoolDirOption = Annotated[
    Path | None,
    typer.Option("--spool-dir", help="Spool root directory (default: system temp dir)."),
]


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_file: Annotated[
        bool,
        typer.Option("--log", help="Also write diagnostics to ./logs/tracewire-debug.jsonl."),
    ] = False,
) -> None:
    """tracewire: inspect, push and replay LLM observability logs."""
    configure_logging(verbosity=verbose, log_to_file=log_file, log_dir=Path("logs") if log_file else None)


def _load_entries(file: Path) -> list[CommitLog]:
    """Parse a file of serialized entries, one per line."""
    if not file.exists():
        console.print(f"[red]Error:[/red] File '{file}' not found")
        raise typer.Exit(1)

    entries: list[CommitLog] = []
    for lineno, line in enumerate(file.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            entries.append(CommitLog.deserialize(line))
        except ValueError as e:
            console.print(f"[red]Error:[/red] {file}:{lineno}: {e}")
            raise typer.Exit(1) from None
    return entries


def _resolve_config(api_key: str | None, base_url: str | None) -> TracewireConfig:
    try:
        config = TracewireConfig.load(api_key=api_key, base_url=base_url)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    if not config.api_key:
        console.print("[red]Error:[/red] No API key. Pass --api-key or set TRACEWIRE_API_KEY.")
        raise typer.Exit(1)
    return config


@app.command()
def version() -> None:
    """Show version information."""
    from tracewire import __version__

    console.print(f"tracewire v{__version__}")


@app.command()
def inspect(
    file: Annotated[Path, typer.Argument(help="File of serialized commit entries.")],
    entity: Annotated[
        str | None,
        typer.Option("--entity", "-e", help="Only show entries for this entity kind."),
    ] = None,
) -> None:
    """Show the entries in a log file as a table."""
    entries = _load_entries(file)
    if entity:
        entries = [e for e in entries if e.entity.value == entity]

    table = Table(title=f"{file.name} ({len(entries)} entries)")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Entity", style="cyan")
    table.add_column("Id")
    table.add_column("Action", style="green")
    table.add_column("Data", overflow="fold")
    for index, entry in enumerate(entries, start=1):
        data = entry.data_json()
        table.add_row(str(index), entry.entity.value, entry.entity_id, entry.action, data[:120])
    console.print(table)


@app.command()
def push(
    file: Annotated[Path, typer.Argument(help="File of serialized commit entries.")],
    repo: RepoOption,
    api_key: ApiKeyOption = None,
    base_url: BaseUrlOption = None,
) -> None:
    """Send a file of serialized entries to a log repository."""
    from tracewire.log_line import LogLine

    entries = _load_entries(file)
    if not entries:
        console.print("[yellow]Nothing to push.[/yellow]")
        return
    config = _resolve_config(api_key, base_url)

    try:
        asyncio.run(LogLine.push(config.api_key or "", repo, entries, config.base_url))
    except TracewireAPIError as e:
        console.print(f"[red]Error:[/red] Push failed: {e}")
        raise typer.Exit(1) from None

    console.print(f"[green]Pushed[/green] {len(entries)} entries to [bold]{repo}[/bold]")


@spool_app.command("list")
def spool_list(
    repo: Annotated[
        str | None,
        typer.Option("--repo", "-r", help="Only show this repository.", envvar="TRACEWIRE_LOG_REPO_ID"),
    ] = None,
    spool_dir: SpoolDirOption = None,
) -> None:
    """List spooled batch files."""
    root = spool_dir or default_spool_root()
    if repo:
        repositories = [repo]
    elif root.is_dir():
        repositories = sorted(p.name for p in root.iterdir() if p.is_dir())
    else:
        repositories = []

    table = Table(title=f"Spool: {root}")
    table.add_column("Repository", style="cyan")
    table.add_column("File")
    table.add_column("Entries", justify="right")
    table.add_column("Bytes", justify="right")
    count = 0
    for repository in repositories:
        spool = LogSpool(repository, root)
        for path in spool.files():
            content = spool.read(path)
            table.add_row(repository, path.name, str(len(content.splitlines())), str(path.stat().st_size))
            count += 1

    if count == 0:
        console.print("[dim]No spooled files.[/dim]")
        return
    console.print(table)


@spool_app.command("flush")
def spool_flush(
    repo: RepoOption,
    api_key: ApiKeyOption = None,
    base_url: BaseUrlOption = None,
    spool_dir: SpoolDirOption = None,
) -> None:
    """Re-send spooled batches for a repository now."""
    config = _resolve_config(api_key, base_url)
    writer = LogWriter(
        LogWriterConfig(
            base_url=config.base_url,
            api_key=config.api_key or "",
            repository_id=repo,
            auto_flush=False,
            spool_dir=spool_dir,
            max_retries=config.max_retries,
            timeout=config.timeout,
        )
    )
    pending = len(writer.spool.files())
    if pending == 0:
        console.print("[dim]No spooled files.[/dim]")
        return

    async def _flush() -> int:
        try:
            return await writer.flush_spool()
        finally:
            await writer.cleanup()

    delivered = asyncio.run(_flush())
    log.info("spool_flush_command", repository_id=repo, delivered=delivered, pending=pending)
    if delivered < pending:
        console.print(f"[yellow]Delivered {delivered} of {pending} spooled files.[/yellow]")
        raise typer.Exit(1)
    console.print(f"[green]Delivered[/green] {delivered} spooled files for [bold]{repo}[/bold]")
