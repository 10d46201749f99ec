"""Fenced Markdown sections for every copied file, reusing unchanged files from a cache."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from fileprompt.errors import TraversalError
from fileprompt.fs import FileSystem, gather_all
from fileprompt.renderer import display_path
from fileprompt.tokens import TokenCounter, WhitespaceTokenCounter

logger = logging.getLogger(__name__)

_LANG_BY_EXT: Dict[str, str] = {
    ".js": "javascript", ".jsx": "javascript", ".cjs": "javascript", ".mjs": "javascript",
    ".ts": "typescript", ".tsx": "typescript",
    ".json": "json",
    ".md": "markdown",
    ".py": "python",
    ".rb": "ruby",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".kt": "kotlin",
    ".c": "c", ".h": "c",
    ".cpp": "cpp", ".cc": "cpp", ".hpp": "cpp",
    ".cs": "csharp",
    ".php": "php",
    ".swift": "swift",
    ".sh": "bash", ".bash": "bash", ".zsh": "bash",
    ".ps1": "powershell",
    ".sql": "sql",
    ".html": "html", ".htm": "html",
    ".css": "css", ".scss": "scss",
    ".xml": "xml",
    ".yml": "yaml", ".yaml": "yaml",
    ".toml": "toml",
    ".ini": "ini", ".cfg": "ini",
    ".txt": "text",
}

_LANG_BY_NAME: Dict[str, str] = {
    "dockerfile": "dockerfile",
    "makefile": "makefile",
}

_BACKTICK_RUN = re.compile(r"`{3,}")


def _detect_lang(path: str) -> str:
    """Language tag for a fenced block, or "" when the file type is unknown."""
    name = os.path.basename(path).lower()
    for prefix, lang in _LANG_BY_NAME.items():
        if name == prefix or name.startswith(prefix + "."):
            return lang
    return _LANG_BY_EXT.get(os.path.splitext(name)[1], "")


def _build_fence(content: str, lang: str) -> Tuple[str, str]:
    """Opening and closing fences one backtick longer than any run inside `content`."""
    longest = max((len(m.group(0)) for m in _BACKTICK_RUN.finditer(content)), default=2)
    fence = "`" * max(3, longest + 1)
    return f"{fence}{lang}", fence


@dataclass(frozen=True)
class Segment:
    path: str
    text: str
    tokens: int


@dataclass(frozen=True)
class CacheEntry:
    size: int
    mtime_ns: int
    segment: Segment


class ContentCache:
    """Rendered segments keyed by absolute path, valid while (size, mtime) are unchanged."""

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    def lookup(self, path: str, size: int, mtime_ns: int) -> Optional[Segment]:
        entry = self._entries.get(path)
        if entry is not None and entry.size == size and entry.mtime_ns == mtime_ns:
            return entry.segment
        return None

    def store(self, path: str, size: int, mtime_ns: int, segment: Segment) -> None:
        self._entries[path] = CacheEntry(size, mtime_ns, segment)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class MarkdownAssembler:
    def __init__(self, cache: ContentCache, fs: FileSystem, counter: Optional[TokenCounter] = None):
        self.cache = cache
        self.fs = fs
        self.counter = counter or WhitespaceTokenCounter()

    async def build_segments(self, paths: Iterable[str], root: Path) -> List[Segment]:
        return await gather_all(self._segment(path, root) for path in paths)

    async def assemble(self, paths: Iterable[str], root: Path) -> str:
        """Return every file as a fenced section, in input order, separated by blank lines."""
        return join_segments(await self.build_segments(paths, root))

    async def _segment(self, path: str, root: Path) -> Segment:
        try:
            st = await self.fs.stat(path)
            cached = self.cache.lookup(path, st.size, st.mtime_ns)
            if cached is not None:
                logger.debug("Content cache hit for %s", path)
                return cached
            content = await self.fs.read_text(path)
        except OSError as e:
            raise TraversalError(path, e) from e

        rel = display_path(path, root)
        open_fence, close_fence = _build_fence(content, _detect_lang(rel))
        text = f"## File: `{rel}`\n{open_fence}\n{content}\n{close_fence}\n"
        segment = Segment(path=path, text=text, tokens=self.counter.count(content))
        self.cache.store(path, st.size, st.mtime_ns, segment)
        return segment


def join_segments(segments: Iterable[Segment]) -> str:
    return "\n".join(segment.text for segment in segments)
