"""Poll-based change detection for `fileprompt watch`.

Stat signatures of pattern files, the settings file and the selected tree are
compared on every tick. Pattern or settings changes invalidate the ignore
filter; any change submits the selection again.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, Set, Tuple

from fileprompt.gitignore import GIT_DIR, discover_pattern_files
from fileprompt.models import SelectionRequest
from fileprompt.orchestrator import Orchestrator
from fileprompt.utils import SETTINGS_FILE

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 1.0

StatSignature = Tuple[str, int, int]


def _update_digest(digest, token: str) -> None:
    """Append a token plus separator byte to a hash digest."""
    digest.update(token.encode("utf-8", errors="surrogateescape"))
    digest.update(b"\0")


def path_stat_signature(path: Path) -> StatSignature:
    """Return a stable stat tuple describing ``path`` existence and metadata."""
    try:
        st = path.stat()
    except FileNotFoundError:
        return ("missing", 0, 0)
    except OSError:
        return ("error", 0, 0)
    return ("ok", st.st_mtime_ns, st.st_size)


def pattern_signatures(root: Path) -> Dict[Path, StatSignature]:
    """Stat signature of every pattern file under ``root``."""
    return {path: path_stat_signature(path) for path in discover_pattern_files(root)}


def selection_signature(paths: Iterable[str]) -> str:
    """Digest over the names, sizes and mtimes of everything under ``paths``."""
    digest = hashlib.sha1()
    for top in paths:
        if not os.path.isdir(top):
            _update_digest(digest, f"{top}:{path_stat_signature(Path(top))}")
            continue
        for dirpath, dirnames, filenames in os.walk(top):
            dirnames[:] = sorted(d for d in dirnames if d != GIT_DIR)
            for name in sorted(filenames):
                full = os.path.join(dirpath, name)
                _update_digest(digest, f"{full}:{path_stat_signature(Path(full))}")
    return digest.hexdigest()


def changed_pattern_files(before: Dict[Path, StatSignature], after: Dict[Path, StatSignature]) -> Set[Path]:
    """Pattern files that were created, modified or deleted between two snapshots."""
    return {path for path in before.keys() | after.keys() if before.get(path) != after.get(path)}


class SelectionWatcher:
    """Resubmits one selection to an orchestrator whenever the files behind it change."""

    def __init__(self, orchestrator: Orchestrator, request: SelectionRequest, interval: float = DEFAULT_INTERVAL):
        self.orchestrator = orchestrator
        self.request = request
        self.interval = interval
        self.root = Path(request.root)
        self._patterns: Dict[Path, StatSignature] = {}
        self._settings: StatSignature = ("missing", 0, 0)
        self._content = ""

    async def snapshot(self) -> None:
        self._patterns = await asyncio.to_thread(pattern_signatures, self.root)
        self._settings = path_stat_signature(self.root / SETTINGS_FILE)
        self._content = await asyncio.to_thread(selection_signature, self.request.paths)

    async def poll(self) -> bool:
        """Compare against the last snapshot, invalidate caches, and resubmit on change."""
        patterns = await asyncio.to_thread(pattern_signatures, self.root)
        settings = path_stat_signature(self.root / SETTINGS_FILE)
        content = await asyncio.to_thread(selection_signature, self.request.paths)

        changed = False
        for path in changed_pattern_files(self._patterns, patterns):
            self.orchestrator.filter_cache.notify_pattern_file_changed(path)
            changed = True
        if settings != self._settings:
            logger.info("Settings changed, invalidating ignore filter for %s", self.root)
            self.orchestrator.filter_cache.invalidate(self.root)
            changed = True
        if content != self._content:
            changed = True

        self._patterns, self._settings, self._content = patterns, settings, content
        if changed:
            self.orchestrator.submit(self.request)
        return changed

    async def run(self, stop: asyncio.Event) -> None:
        await self.snapshot()
        self.orchestrator.submit(self.request)
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                await self.poll()
        await self.orchestrator.wait_idle()
