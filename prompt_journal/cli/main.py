"""
CLI interface for Prompt Journal.

Provides command-line access to the journal, its backups and export/import.
"""

import asyncio
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from prompt_journal.cli.presenter import ConsolePresenter
from prompt_journal.config.loader import JournalConfig, default_config, load_journal_config
from prompt_journal.core.metadata import track_model, update_timestamps
from prompt_journal.core.token_counter import detect_codeish, estimate_tokens
from prompt_journal.storage.backup import BackupManager
from prompt_journal.storage.errors import JournalError
from prompt_journal.storage.repository import PromptRepository
from prompt_journal.storage.store import SQLiteKeyValueStore
from prompt_journal.storage.transfer import ImportOptions, TransferPipeline

app = typer.Typer()
console = Console()
presenter = ConsolePresenter(console)

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

# Failures reported to the user instead of crashing with a traceback.
_HANDLED_ERRORS = (JournalError, ValueError, OSError)


@dataclass
class Journal:
    """Services wired to one configured store."""
    config: JournalConfig
    repository: PromptRepository
    backups: BackupManager
    transfer: TransferPipeline


def open_journal(config: JournalConfig) -> Journal:
    """Build the repository, backup manager and transfer pipeline for a config."""
    store = SQLiteKeyValueStore(config.storage.db_path)
    backups = BackupManager(
        store,
        collection_key=config.storage.collection_key,
        prefix=config.storage.backup_prefix
    )
    repository = PromptRepository(store, config.storage.collection_key, backups=backups)
    return Journal(
        config=config,
        repository=repository,
        backups=backups,
        transfer=TransferPipeline(repository, backups)
    )


def _stderr_sink(message) -> None:
    sys.stderr.write(str(message))


def _fail(error: Exception) -> None:
    presenter.notify(str(error), "error")
    sys.exit(EXIT_CODE_FAIL)


def _journal(ctx: typer.Context) -> Journal:
    try:
        return open_journal(ctx.obj)
    except _HANDLED_ERRORS as e:
        _fail(e)


def _apply_retention(journal: Journal) -> None:
    journal.backups.prune(journal.config.storage.backup_retention)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML journal configuration"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging"
    )
):
    """Prompt Journal CLI."""
    logger.remove()
    logger.add(_stderr_sink, level="DEBUG" if verbose else "WARNING")

    try:
        ctx.obj = load_journal_config(config_path) if config_path else default_config()
    except Exception as e:
        _fail(e)

    if ctx.invoked_subcommand is None:
        console.print("Prompt Journal - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the journal database."""
    journal = _journal(ctx)
    presenter.notify(f"Journal initialized at {journal.config.storage.db_path}", "success")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def add(
    ctx: typer.Context,
    model: str = typer.Argument(..., help="Model the prompt was written for"),
    text: Optional[str] = typer.Option(None, "--text", "-t", help="Prompt text"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read prompt text from a file"),
    title: Optional[str] = typer.Option(None, "--title", help="Short title for the prompt"),
    rating: Optional[float] = typer.Option(None, "--rating", "-r", help="Rating for the prompt"),
    code: Optional[bool] = typer.Option(
        None,
        "--code/--no-code",
        help="Treat the content as code (detected automatically when omitted)"
    )
):
    """Save a new prompt with its token estimate."""
    if (text is None) == (file is None):
        _fail(ValueError("Provide exactly one of --text or --file"))

    journal = _journal(ctx)
    try:
        content = text if text is not None else file.read_text(encoding="utf-8")
        record = track_model(model, content, is_code=code)
        record["content"] = content
        if title is not None:
            record["title"] = title
        if rating is not None:
            record["rating"] = rating
        saved = journal.repository.save(record)
    except _HANDLED_ERRORS as e:
        _fail(e)

    token_estimate = saved.token_estimate
    presenter.notify(
        f"Saved {saved.id} (~{token_estimate.min}-{token_estimate.max} tokens, "
        f"{token_estimate.confidence.value} confidence)",
        "success"
    )


@app.command("list")
def list_prompts(ctx: typer.Context):
    """List saved prompts."""
    journal = _journal(ctx)
    try:
        entries = journal.repository.get_all()
    except _HANDLED_ERRORS as e:
        _fail(e)

    if not entries:
        console.print("[dim]No prompts saved yet.[/]")
        return

    table = Table(title="Prompt Journal")
    table.add_column("ID", no_wrap=True)
    table.add_column("Model", no_wrap=True)
    table.add_column("Created")
    table.add_column("Tokens", justify="right")
    table.add_column("Confidence")
    table.add_column("Rating", justify="right")
    for entry in entries:
        table.add_row(
            escape(entry.id),
            escape(entry.model),
            entry.created_at,
            f"{entry.token_estimate.min}-{entry.token_estimate.max}",
            entry.token_estimate.confidence.value,
            "" if entry.rating is None else f"{entry.rating:g}"
        )
    console.print(table)


@app.command()
def show(ctx: typer.Context, prompt_id: str = typer.Argument(..., help="Prompt id")):
    """Show one prompt as JSON."""
    journal = _journal(ctx)
    try:
        entry = journal.repository.get(prompt_id)
    except _HANDLED_ERRORS as e:
        _fail(e)
    console.print_json(json.dumps(entry.to_dict()))


@app.command()
def rate(
    ctx: typer.Context,
    prompt_id: str = typer.Argument(..., help="Prompt id"),
    rating: float = typer.Argument(..., help="New rating")
):
    """Rate a prompt and bump its updated timestamp."""
    journal = _journal(ctx)
    try:
        record = journal.repository.get(prompt_id).to_dict()
        record["rating"] = rating
        journal.repository.save(update_timestamps(record))
    except _HANDLED_ERRORS as e:
        _fail(e)
    presenter.notify(f"Rated {prompt_id}: {rating:g}", "success")


@app.command()
def estimate(
    text: str = typer.Argument(..., help="Text to estimate"),
    code: Optional[bool] = typer.Option(
        None,
        "--code/--no-code",
        help="Treat the text as code (detected automatically when omitted)"
    )
):
    """Estimate the token range for a piece of text."""
    is_code = detect_codeish(text) if code is None else code
    result = estimate_tokens(text, is_code)
    console.print(
        f"Tokens: {result.min}-{result.max} "
        f"({result.confidence.value} confidence{', code' if is_code else ''})"
    )


@app.command()
def delete(ctx: typer.Context, prompt_id: str = typer.Argument(..., help="Prompt id")):
    """Delete a prompt (a backup is taken first)."""
    journal = _journal(ctx)
    try:
        backup_key = journal.repository.delete_by_id(prompt_id)
        _apply_retention(journal)
    except _HANDLED_ERRORS as e:
        _fail(e)
    presenter.notify(f"Deleted {prompt_id}", "success")
    console.print(f"Backup: {escape(backup_key)}")


@app.command("export")
def export_prompts(
    ctx: typer.Context,
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output-dir",
        "-o",
        help="Directory for the export file (defaults to the configured directory)"
    )
):
    """Export every prompt to a versioned JSON file."""
    journal = _journal(ctx)
    try:
        document = journal.transfer.export()
        path = presenter.deliver_export(
            document,
            output_dir or journal.config.export.directory
        )
    except _HANDLED_ERRORS as e:
        _fail(e)

    stats = document.stats
    presenter.notify(f"Exported {stats.total_prompts} prompts", "success")
    console.print(f"File: {escape(str(path))}")
    if stats.average_rating is not None:
        console.print(f"Average rating: {stats.average_rating:.2f}")
    if stats.most_used_model is not None:
        console.print(f"Most used model: {escape(stats.most_used_model)}")


@app.command("import")
def import_prompts(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Export file to import"),
    replace_all: bool = typer.Option(
        False,
        "--replace-all",
        help="Replace the whole journal with the file's prompts"
    ),
    replace_duplicates: Optional[bool] = typer.Option(
        None,
        "--replace-duplicates/--skip-duplicates",
        help="What to do with prompts whose id already exists (asks when omitted)"
    )
):
    """Import prompts from an export file (a backup is taken first)."""
    journal = _journal(ctx)
    options = ImportOptions(
        replace_all=replace_all,
        replace_duplicates=replace_duplicates,
        on_duplicate_choice=presenter.ask_replace_duplicates
    )
    try:
        result = asyncio.run(journal.transfer.import_file(file, options))
        _apply_retention(journal)
    except _HANDLED_ERRORS as e:
        _fail(e)

    presenter.notify(
        f"Imported {result.imported}, replaced {result.replaced}, skipped {result.skipped}",
        "success"
    )
    console.print(f"Backup: {escape(result.backup_key)}")


@app.command()
def backups(ctx: typer.Context):
    """List backups, newest first."""
    journal = _journal(ctx)
    items = journal.backups.list()
    if not items:
        console.print("[dim]No backups.[/]")
        return

    table = Table(title="Backups")
    table.add_column("Key", no_wrap=True)
    table.add_column("Timestamp")
    for item in items:
        table.add_row(escape(item.key), item.timestamp)
    console.print(table)


@app.command()
def restore(ctx: typer.Context, key: str = typer.Argument(..., help="Backup key")):
    """Replace the journal with a backup."""
    journal = _journal(ctx)
    try:
        journal.backups.restore(key)
    except _HANDLED_ERRORS as e:
        _fail(e)
    presenter.notify(f"Restored {key}", "success")


@app.command("delete-backup")
def delete_backup(ctx: typer.Context, key: str = typer.Argument(..., help="Backup key")):
    """Delete a backup."""
    journal = _journal(ctx)
    journal.backups.delete(key)
    presenter.notify(f"Deleted backup {key}", "success")


@app.command()
def clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation")
):
    """Remove every prompt. Backups are kept."""
    journal = _journal(ctx)
    if not yes and not presenter.confirm("Remove every prompt from the journal?"):
        console.print("Aborted.")
        return
    journal.repository.clear()
    presenter.notify("Journal cleared", "success")


if __name__ == "__main__":
    app()
