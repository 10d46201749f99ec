# utils.py
from __future__ import annotations

import asyncio
import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from shutil import which
from typing import List, Optional, Sequence

import click

from fileprompt.errors import ClipboardError

logger = logging.getLogger(__name__)

SETTINGS_FILE = ".fileprompt.json"

# Tried in order; the first one found on PATH wins.
CLIPBOARD_COMMANDS: Sequence[List[str]] = (
    ["wl-copy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
    ["pbcopy"],
    ["clip.exe"],
)


class OutputSink(ABC):
    """Where a finished Markdown document goes."""

    @abstractmethod
    async def write(self, text: str) -> None:
        ...


class ClipboardSink(OutputSink):
    """Pipes the document into a clipboard tool (wl-copy, xclip, xsel, pbcopy or clip.exe)."""

    def __init__(self, command: List[str]):
        self.command = command

    async def write(self, text: str) -> None:
        try:
            await asyncio.to_thread(
                subprocess.run, self.command, input=text.encode("utf-8"), check=True
            )
        except (OSError, subprocess.CalledProcessError) as e:
            raise ClipboardError(f"{self.command[0]} failed: {e}") from e
        logger.debug("Wrote %d characters with %s", len(text), self.command[0])


class StdoutSink(OutputSink):
    async def write(self, text: str) -> None:
        click.echo(text)


def find_clipboard_command() -> Optional[List[str]]:
    for command in CLIPBOARD_COMMANDS:
        if which(command[0]):
            return list(command)
    return None


def select_sink(to_stdout: bool = False) -> OutputSink:
    """
    Pick the output sink once at startup.

    Falls back to stdout, with a warning, when no clipboard tool is installed.
    """
    if to_stdout:
        return StdoutSink()
    command = find_clipboard_command()
    if command is None:
        click.secho("[No clipboard tool found: install wl-clipboard, xclip or xsel. Writing to stdout]",
                    fg="yellow", err=True)
        return StdoutSink()
    return ClipboardSink(command)


def find_workspace_root(start: Path) -> Path:
    """Nearest ancestor of `start` holding a .git directory or a settings file, else `start`."""
    start = start.resolve()
    for parent in (start, *start.parents):
        if (parent / ".git").exists() or (parent / SETTINGS_FILE).is_file():
            return parent
    return start
