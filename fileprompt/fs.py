"""Filesystem capabilities consumed by the copy pipeline.

Stages only ever list, stat and read through a ``FileSystem`` so tests can swap
in an in-memory tree and count reads.
"""

from __future__ import annotations

import asyncio
import os
from abc import ABC, abstractmethod
from typing import Awaitable, Iterable, List, NamedTuple, TypeVar

T = TypeVar("T")


class DirEntry(NamedTuple):
    name: str
    path: str
    is_dir: bool


class StatResult(NamedTuple):
    size: int
    mtime_ns: int
    is_dir: bool


class FileSystem(ABC):
    """Async list/stat/read primitives. Implementations raise ``OSError`` on failure."""

    @abstractmethod
    async def list_dir(self, path: str) -> List[DirEntry]:
        ...

    @abstractmethod
    async def stat(self, path: str) -> StatResult:
        ...

    @abstractmethod
    async def read_text(self, path: str) -> str:
        ...


def _scan(path: str) -> List[DirEntry]:
    with os.scandir(path) as it:
        return [DirEntry(e.name, e.path, e.is_dir(follow_symlinks=True)) for e in it]


def _stat(path: str) -> StatResult:
    st = os.stat(path)
    return StatResult(int(st.st_size), int(st.st_mtime_ns), os.path.isdir(path))


def _read(path: str) -> str:
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return f.read()


class LocalFileSystem(FileSystem):
    """Runs the blocking ``os`` calls off the event loop with ``asyncio.to_thread``."""

    async def list_dir(self, path: str) -> List[DirEntry]:
        return await asyncio.to_thread(_scan, path)

    async def stat(self, path: str) -> StatResult:
        return await asyncio.to_thread(_stat, path)

    async def read_text(self, path: str) -> str:
        return await asyncio.to_thread(_read, path)


async def gather_all(aws: Iterable[Awaitable[T]]) -> List[T]:
    """Like ``asyncio.gather``, but the first failure cancels the siblings.

    Unfinished tasks are cancelled and awaited before the error is re-raised,
    so nothing from a failed fan-out keeps running afterwards. Results come
    back in input order.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    if not tasks:
        return []
    try:
        _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)

    failures = [task.exception() for task in tasks if not task.cancelled() and task.exception() is not None]
    if failures:
        raise failures[0]
    return [task.result() for task in tasks]
