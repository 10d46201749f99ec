import asyncio
from typing import List, Optional, Sequence

import questionary

from fileprompt.fs import LocalFileSystem
from fileprompt.gitignore import IgnoreFilter
from fileprompt.models import Stack
from fileprompt.renderer import display_path
from fileprompt.traversal import gather_files
from .base import Picker

NEW_STACK = "Create new stack"


class QuestionaryPicker(Picker):
    """
    Interactive picker that presents a checkbox-based terminal UI
    for users to choose which of the selected files to include.
    """
    def pick(self, paths: Sequence[str], ignore_filter: IgnoreFilter) -> List[str]:
        records = asyncio.run(gather_files(paths, ignore_filter, LocalFileSystem()))
        by_label = {display_path(r.path, ignore_filter.root): r.path for r in records}

        selected = questionary.checkbox(
            "Select files to include:",
            choices=[questionary.Choice(label, checked=True) for label in sorted(by_label)],
        ).ask()
        if selected is None:
            # User aborted
            return []
        return [by_label[label] for label in selected]


def choose_stack(stacks: Sequence[Stack], allow_new: bool = False, message: str = "Choose a stack:") -> Optional[str]:
    """Name of the chosen stack, NEW_STACK when creating one, or None if the user aborted."""
    choices = [NEW_STACK] if allow_new else []
    choices += [questionary.Choice(f"{s.name} ({len(s.paths)} paths)", value=s.name) for s in stacks]
    if not choices:
        return None
    return questionary.select(message, choices=choices).ask()


def ask_stack_name() -> Optional[str]:
    name = questionary.text("Stack name:", validate=lambda text: bool(text.strip()) or "Name cannot be empty").ask()
    return name.strip() if name else None


def choose_ignored(entries: Sequence[str]) -> Optional[str]:
    if not entries:
        return None
    return questionary.select("Remove which path from the ignore list?", choices=list(entries)).ask()
