"""

this is a module for
honouring .gitignore files, the extension
denylist and the explicit ignore list

"""


# gitignore.py
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

import pathspec  # pip install pathspec

from fileprompt.errors import TraversalError
from fileprompt.models import Settings
from fileprompt.utils import SETTINGS_FILE

logger = logging.getLogger(__name__)

PATTERN_FILE = ".gitignore"
GIT_DIR = ".git"

# Hard-coded excludes that *always* apply
HARDCODED = [GIT_DIR, PATTERN_FILE, "/" + SETTINGS_FILE]


def discover_pattern_files(root: Path) -> List[Path]:
    """Return every .gitignore under `root`, root first, then in sorted path order."""
    found: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d != GIT_DIR)
        if PATTERN_FILE in filenames:
            found.append(Path(dirpath) / PATTERN_FILE)
    return found


def _load_patterns(files: Iterable[Path]) -> List[str]:
    lines: List[str] = []
    for pattern_file in files:
        try:
            with pattern_file.open(encoding="utf-8", errors="replace") as fh:
                lines.extend(ln.rstrip("\r\n") for ln in fh if ln.strip() and not ln.startswith("#"))
        except OSError as e:
            raise TraversalError(str(pattern_file), e) from e
    return lines


def _normalise_extension(ext: str) -> str:
    ext = ext.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


def relative_posix(path: str, root: Path) -> Optional[str]:
    """`path` relative to `root` with forward slashes, or None when outside it."""
    rel = os.path.relpath(path, root)
    if rel == os.curdir:
        return ""
    if rel == os.pardir or rel.startswith(os.pardir + os.sep):
        return None
    return Path(rel).as_posix()


class IgnoreFilter:
    """Callable that answers: *should this path be excluded?*

    Pure function of (path, filter): nothing is mutated after construction.
    """

    def __init__(
        self,
        root: Path,
        patterns: Iterable[str] = (),
        extensions: Iterable[str] = (),
        explicit: Iterable[str] = (),
    ):
        self.root = root
        self.patterns = list(patterns)
        self.hardcoded = pathspec.PathSpec.from_lines("gitwildmatch", HARDCODED)
        self.spec = pathspec.GitIgnoreSpec.from_lines(self.patterns)
        self.extensions: FrozenSet[str] = frozenset(_normalise_extension(e) for e in extensions if e.strip())
        self.explicit: Tuple[str, ...] = tuple(e.strip().strip("/") for e in explicit if e.strip().strip("/"))

    @classmethod
    def build(cls, root: Path, settings: Settings) -> "IgnoreFilter":
        """Compile the filter for `root`.

        Undecodable bytes in a pattern file are replaced; a pattern file that
        cannot be opened raises `TraversalError`.
        """
        files = discover_pattern_files(root) if settings.respect_gitignore else []
        logger.debug("Building ignore filter for %s from %d pattern file(s)", root, len(files))
        return cls(
            root,
            patterns=_load_patterns(files),
            extensions=settings.ignored_extensions,
            explicit=settings.extra_ignored_files,
        )

    def __call__(self, path: str, is_dir: bool = False) -> bool:
        """Return True if the path should be *excluded*."""
        rel = relative_posix(path, self.root)
        # outside the workspace only the hard-coded and extension rules apply
        candidate = rel if rel is not None else Path(path).as_posix().lstrip("/")

        if candidate and self.hardcoded.match_file(candidate):
            return True
        if not is_dir and os.path.splitext(path)[1].lower() in self.extensions:
            return True
        if not rel:
            return False
        if self.is_explicitly_ignored(rel):
            return True
        return self.spec.match_file(rel + "/" if is_dir else rel)

    def is_explicitly_ignored(self, rel: str) -> bool:
        return any(rel == entry or rel.startswith(entry + "/") for entry in self.explicit)


def is_excluded(path: str, ignore_filter: IgnoreFilter, is_dir: bool = False) -> bool:
    return ignore_filter(path, is_dir=is_dir)


class IgnoreFilterCache:
    """One compiled `IgnoreFilter` per workspace root, dropped on pattern or settings change.

    Each filter is stored with the settings it was built from; asking for the
    same root with different settings rebuilds it.
    """

    def __init__(self):
        self._filters: Dict[Path, Tuple[Settings, IgnoreFilter]] = {}

    def get(self, root: Path, settings: Settings) -> IgnoreFilter:
        root = root.resolve()
        cached = self._filters.get(root)
        if cached is not None and cached[0] == settings:
            return cached[1]
        if cached is not None:
            logger.debug("Settings differ from the cached filter for %s, rebuilding", root)
        ignore_filter = IgnoreFilter.build(root, settings)
        self._filters[root] = (settings.model_copy(deep=True), ignore_filter)
        return ignore_filter

    def invalidate(self, root: Optional[Path] = None) -> None:
        if root is None:
            self._filters.clear()
        else:
            self._filters.pop(root.resolve(), None)

    def notify_pattern_file_changed(self, path: Path) -> None:
        """Drop the filter of every cached root that contains `path`."""
        path = path.resolve()
        for root in list(self._filters):
            if path == root or root in path.parents:
                logger.info("Pattern file %s changed, invalidating ignore filter for %s", path, root)
                del self._filters[root]

    def __contains__(self, root: Path) -> bool:
        return root.resolve() in self._filters
