"""Named, saved selections ("stacks") that can be copied again later."""

from __future__ import annotations

import logging
import os
from typing import Iterable, List, Optional, Sequence

from fileprompt.errors import NothingToCopyError, StackNotFoundError
from fileprompt.models import HistoryEntry, Stack
from fileprompt.settings import SettingsStore

logger = logging.getLogger(__name__)


def _find(stacks: Sequence[Stack], name: str) -> Optional[Stack]:
    return next((stack for stack in stacks if stack.name == name), None)


def list_stacks(store: SettingsStore) -> List[Stack]:
    return list(store.load().saved_stacks)


def get_stack(store: SettingsStore, name: str) -> Stack:
    stack = _find(store.load().saved_stacks, name)
    if stack is None:
        raise StackNotFoundError(name)
    return stack


def add_to_stack(store: SettingsStore, name: str, paths: Iterable[str]) -> Stack:
    """
    Append `paths` to the stack called `name`, creating it if needed.

    Paths already in the stack are skipped; the stack keeps first-seen order.
    """
    settings = store.load()
    stack = _find(settings.saved_stacks, name)
    if stack is None:
        stack = Stack(name=name)
        settings.saved_stacks.append(stack)
    for path in paths:
        if path not in stack.paths:
            stack.paths.append(path)
    store.save(settings)
    logger.info("Stack '%s' now holds %d path(s)", name, len(stack.paths))
    return stack


def remove_stack(store: SettingsStore, name: str) -> None:
    settings = store.load()
    stack = _find(settings.saved_stacks, name)
    if stack is None:
        raise StackNotFoundError(name)
    settings.saved_stacks.remove(stack)
    store.save(settings)


def existing_paths(stack: Stack) -> List[str]:
    """Paths of `stack` that still exist; raises NothingToCopyError when none are left."""
    present = [path for path in stack.paths if os.path.exists(path)]
    dropped = len(stack.paths) - len(present)
    if dropped:
        logger.info("Dropped %d missing path(s) from stack '%s'", dropped, stack.name)
    if not present:
        raise NothingToCopyError(f"Stack '{stack.name}' has nothing left to copy")
    return present


def match_stack(entry: HistoryEntry, stacks: Iterable[Stack]) -> Optional[Stack]:
    """The saved stack holding the same paths as `entry`, compared as sorted lists."""
    wanted = sorted(entry.paths)
    return next((stack for stack in stacks if sorted(stack.paths) == wanted), None)
