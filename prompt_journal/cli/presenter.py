"""
Console presentation for the CLI.

Holds every user-facing side effect: notifications, confirmation prompts and
writing export documents to disk. The storage layer never calls into here.
"""

import asyncio
from pathlib import Path
from typing import Optional, Union

import typer
from rich.console import Console
from rich.markup import escape

from prompt_journal.storage.transfer import ExportDocument

_NOTIFY_STYLES = {
    "success": "[green]✓[/] ",
    "info": "",
    "warning": "[yellow]Warning:[/] ",
    "error": "[red]Error:[/] ",
}


class ConsolePresenter:
    """Notifications, prompts and export delivery on a rich console."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def notify(self, message: str, kind: str = "info") -> None:
        """Print a one-line notification."""
        if kind not in _NOTIFY_STYLES:
            raise ValueError(f"Unknown notification kind: {kind}")
        self.console.print(f"{_NOTIFY_STYLES[kind]}{escape(message)}")

    def confirm(self, message: str, default: bool = False) -> bool:
        """Ask a yes/no question."""
        return typer.confirm(message, default=default)

    async def ask_replace_duplicates(self, conflict_count: int) -> bool:
        """Ask once whether every conflicting prompt should be replaced.

        The blocking prompt runs in a worker thread.
        """
        noun = "prompt" if conflict_count == 1 else "prompts"
        return await asyncio.to_thread(
            self.confirm,
            f"{conflict_count} imported {noun} already exist. Replace all of them?"
        )

    def deliver_export(self, document: ExportDocument, directory: Union[str, Path]) -> Path:
        """Write an export document into a directory.

        Returns:
            Path of the written file
        """
        target_dir = Path(directory)
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / document.filename
        path.write_text(document.to_json(), encoding="utf-8")
        return path
