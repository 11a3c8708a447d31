"""
Tests for console presentation.
"""
import asyncio
import inspect
import io
import json
import os
import tempfile
from unittest.mock import patch

import pytest
from rich.console import Console

from prompt_journal.cli.presenter import ConsolePresenter
from prompt_journal.storage.transfer import ExportDocument, compute_stats


class TestConsolePresenter:
    """Test notifications, prompts and export delivery."""

    def setup_method(self):
        self.output = io.StringIO()
        self.presenter = ConsolePresenter(Console(file=self.output, width=120))

    def test_success_notification(self):
        self.presenter.notify("Saved p_1", "success")

        assert "✓ Saved p_1" in self.output.getvalue()

    def test_error_notification_is_escaped(self):
        """Markup-looking text is printed literally."""
        self.presenter.notify("bad [red]value[/red]", "error")

        assert "Error: bad [red]value[/red]" in self.output.getvalue()

    def test_unknown_kind(self):
        with pytest.raises(ValueError, match="Unknown notification kind"):
            self.presenter.notify("hi", "fatal")

    def test_ask_replace_duplicates(self):
        with patch("prompt_journal.cli.presenter.typer.confirm", return_value=True) as confirm:
            assert asyncio.run(self.presenter.ask_replace_duplicates(3)) is True

        message = confirm.call_args[0][0]
        assert "3 imported prompts already exist" in message

    def test_ask_replace_duplicates_is_awaitable(self):
        """The import pipeline awaits the answer like any async callback."""
        with patch("prompt_journal.cli.presenter.typer.confirm", return_value=False):
            decision = self.presenter.ask_replace_duplicates(1)
            assert inspect.isawaitable(decision)
            assert asyncio.run(decision) is False

    def test_deliver_export(self):
        document = ExportDocument(
            version="1.0.0",
            exported_at="2024-01-01T12:00:00.000Z",
            stats=compute_stats([]),
            prompts=[]
        )
        with tempfile.TemporaryDirectory() as temp_dir:
            path = self.presenter.deliver_export(document, os.path.join(temp_dir, "out"))

            assert path.name == "prompt-journal-export-2024-01-01T12-00-00-000Z.json"
            assert json.loads(path.read_text(encoding="utf-8")) == document.to_dict()
