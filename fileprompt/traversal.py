"""Expand a selection of files and directories into the set of files to copy."""

from __future__ import annotations

import logging
from typing import Iterable, Set

from fileprompt.errors import TraversalError
from fileprompt.fs import FileSystem, gather_all
from fileprompt.gitignore import GIT_DIR, IgnoreFilter
from fileprompt.models import FileRecord

logger = logging.getLogger(__name__)


async def gather_files(selection: Iterable[str], ignore_filter: IgnoreFilter, fs: FileSystem) -> Set[FileRecord]:
    """
    Return a FileRecord for every non-excluded file reachable from `selection`.

    Directories are walked recursively; excluded children are pruned before
    descending. Any read failure aborts the whole walk with TraversalError and
    cancels the reads still in flight.
    """
    records: Set[FileRecord] = set()
    await gather_all(_visit(path, ignore_filter, fs, records) for path in selection)
    logger.debug("Traversal collected %d file(s)", len(records))
    return records


async def _visit(path: str, ignore_filter: IgnoreFilter, fs: FileSystem, out: Set[FileRecord]) -> None:
    try:
        st = await fs.stat(path)
    except OSError as e:
        raise TraversalError(path, e) from e

    if ignore_filter(path, is_dir=st.is_dir):
        logger.debug("Excluded %s", path)
        return
    if not st.is_dir:
        out.add(FileRecord(path=path, size=st.size, mtime_ns=st.mtime_ns))
        return

    try:
        entries = await fs.list_dir(path)
    except OSError as e:
        raise TraversalError(path, e) from e

    children = [
        entry.path for entry in entries
        if entry.name != GIT_DIR and not ignore_filter(entry.path, is_dir=entry.is_dir)
    ]
    await gather_all(_visit(child, ignore_filter, fs, out) for child in children)
