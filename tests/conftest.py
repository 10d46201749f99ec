import asyncio
from pathlib import Path

import pytest

from fileprompt.fs import LocalFileSystem
from fileprompt.models import Settings
from fileprompt.utils import OutputSink


class CountingFileSystem(LocalFileSystem):
    """Local filesystem that remembers which files were read."""

    def __init__(self):
        self.reads = []

    async def read_text(self, path: str) -> str:
        self.reads.append(path)
        return await super().read_text(path)


class MemorySink(OutputSink):
    def __init__(self):
        self.documents = []

    async def write(self, text: str) -> None:
        self.documents.append(text)


class GateSink(OutputSink):
    """Blocks every write until `release` is set and tracks overlapping writes."""

    def __init__(self):
        self.documents = []
        self.active = 0
        self.max_active = 0
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def write(self, text: str) -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.entered.set()
        await self.release.wait()
        self.documents.append(text)
        self.active -= 1


def write(root: Path, relpath: str, content: str) -> Path:
    p = root / relpath
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")
    return p


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """
    keep.js, ignore.log, sub/nested.txt, ignoreDir/bad.js, extra.txt
    and a .gitignore ignoring ignoreDir/ and ignore.log
    """
    root = tmp_path.resolve()
    write(root, "keep.js", 'console.log("hi");')
    write(root, "ignore.log", "ignore")
    write(root, "sub/nested.txt", "inside")
    write(root, "ignoreDir/bad.js", "bad")
    write(root, "extra.txt", "extra")
    write(root, ".gitignore", "ignoreDir/\nignore.log\n")
    return root


@pytest.fixture
def settings() -> Settings:
    return Settings(ignored_extensions=[".log"], extra_ignored_files=["extra.txt"])
