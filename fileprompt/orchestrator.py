"""
Runs copy jobs one at a time.

The orchestrator owns the long-lived state of a session: the ignore-filter
cache, the content cache and the history ring buffer. Jobs submitted while one
is running go into a single pending slot; a newer submission replaces the
older one, so at most one job ever waits.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Deque, List, Optional

from fileprompt.assembler import ContentCache, MarkdownAssembler, join_segments
from fileprompt.errors import FilePromptError, NothingToCopyError
from fileprompt.fs import FileSystem, LocalFileSystem
from fileprompt.gitignore import IgnoreFilterCache
from fileprompt.models import HistoryEntry, JobOutcome, JobResult, SelectionRequest, Settings
from fileprompt.renderer import display_path, render
from fileprompt.settings import SettingsStore
from fileprompt.tokens import TokenCounter, WhitespaceTokenCounter
from fileprompt.traversal import gather_files
from fileprompt.utils import OutputSink

logger = logging.getLogger(__name__)

HISTORY_SIZE = 10
PREVIEW_LINES = 5


class State(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


def compose_document(tree: str, sections: str, total_tokens: int) -> str:
    return f"**Total tokens:** {total_tokens}\n\n# File Tree\n\n{tree}\n\n{sections}"


def _load_settings(root: Path) -> Settings:
    return SettingsStore(root).load()


class Orchestrator:
    def __init__(
        self,
        sink: OutputSink,
        fs: Optional[FileSystem] = None,
        counter: Optional[TokenCounter] = None,
        settings_for: Callable[[Path], Settings] = _load_settings,
        reporter: Callable[[JobOutcome], None] = lambda outcome: None,
        history_size: int = HISTORY_SIZE,
    ):
        self.sink = sink
        self.fs = fs or LocalFileSystem()
        self.settings_for = settings_for
        self.reporter = reporter
        self.filter_cache = IgnoreFilterCache()
        self.content_cache = ContentCache()
        self.assembler = MarkdownAssembler(self.content_cache, self.fs, counter or WhitespaceTokenCounter())
        self.history: Deque[HistoryEntry] = deque(maxlen=history_size)
        self.state = State.IDLE
        self._pending: Optional[SelectionRequest] = None
        self._task: Optional["asyncio.Task[List[JobOutcome]]"] = None

    @property
    def pending(self) -> Optional[SelectionRequest]:
        return self._pending

    def submit(self, request: SelectionRequest) -> Optional["asyncio.Task[List[JobOutcome]]"]:
        """
        Start `request` now, or park it if a job is already running.

        Returns the task draining the queue when a new run starts, otherwise
        None. Never waits for the running job.
        """
        if self.state is State.RUNNING:
            if self._pending is not None:
                logger.debug("Discarding superseded request for %d path(s)", len(self._pending.paths))
            self._pending = request
            return None
        self.state = State.RUNNING
        self._task = asyncio.get_running_loop().create_task(self._drain(request))
        return self._task

    async def run(self, request: SelectionRequest) -> JobOutcome:
        """Submit `request` and wait for the job that ran last."""
        task = self.submit(request)
        if task is None:
            task = self._task
        outcomes = await task
        return outcomes[-1]

    async def wait_idle(self) -> None:
        if self._task is not None:
            await self._task

    async def _drain(self, request: SelectionRequest) -> List[JobOutcome]:
        outcomes: List[JobOutcome] = []
        try:
            while True:
                outcome = await self._execute(request)
                outcomes.append(outcome)
                self.reporter(outcome)
                # let the host breathe before the next job
                await asyncio.sleep(0)
                if self._pending is None:
                    break
                request, self._pending = self._pending, None
        finally:
            # a cancelled drain must not leave a request for the next one to replay
            self._pending = None
            self.state = State.IDLE
        return outcomes

    async def _execute(self, request: SelectionRequest) -> JobOutcome:
        started = time.perf_counter()
        try:
            result = await self._pipeline(request, started)
        except FilePromptError as e:
            logger.warning("Copy job failed: %s", e)
            return JobOutcome(request=request, error=e)
        except Exception as e:
            logger.exception("Copy job crashed")
            return JobOutcome(request=request, error=e)

        preview = "\n".join(result.tree.splitlines()[:PREVIEW_LINES])
        self.history.append(HistoryEntry(timestamp=datetime.now(), paths=request.paths, preview=preview))
        logger.info("Copied %d file(s), %d bytes, %d tokens in %.2fs",
                    result.files, result.total_bytes, result.total_tokens, result.duration)
        return JobOutcome(request=request, result=result)

    async def _pipeline(self, request: SelectionRequest, started: float) -> JobResult:
        root = Path(request.root)
        settings = self.settings_for(root)
        ignore_filter = await asyncio.to_thread(self.filter_cache.get, root, settings)

        records = await gather_files(request.paths, ignore_filter, self.fs)
        if not records:
            raise NothingToCopyError("Nothing left to copy after applying ignore rules")
        ordered = sorted(records, key=lambda record: display_path(record.path, root))

        sections = asyncio.ensure_future(self.assembler.build_segments([r.path for r in ordered], root))
        try:
            tree, total_bytes = render(ordered, root)
        except Exception:
            sections.cancel()
            raise
        segments = await sections

        total_tokens = sum(segment.tokens for segment in segments)
        document = compose_document(tree, join_segments(segments), total_tokens)
        await self.sink.write(document)

        return JobResult(
            request=request,
            files=len(ordered),
            total_bytes=total_bytes,
            total_tokens=total_tokens,
            tree=tree,
            duration=time.perf_counter() - started,
            document=document,
        )
