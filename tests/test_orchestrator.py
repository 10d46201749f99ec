import json

import pytest

from conftest import GateSink, MemorySink, write
from fileprompt.errors import NothingToCopyError, TraversalError
from fileprompt.models import SelectionRequest, Settings
from fileprompt.orchestrator import Orchestrator, State
from fileprompt.tokens import WhitespaceTokenCounter


def request(root, *rels):
    return SelectionRequest(root=str(root), paths=tuple(str(root / rel) for rel in rels))


@pytest.fixture
def configured(workspace):
    (workspace / ".fileprompt.json").write_text(
        json.dumps({"ignoredExtensions": [".log"], "extraIgnoredFiles": ["extra.txt"]}), encoding="utf-8"
    )
    return workspace


@pytest.mark.asyncio
async def test_document_layout(configured):
    sink = MemorySink()
    orchestrator = Orchestrator(sink=sink, counter=WhitespaceTokenCounter())

    outcome = await orchestrator.run(request(configured, "."))

    assert outcome.ok
    (document,) = sink.documents
    assert document.startswith("**Total tokens:** 2\n\n# File Tree\n\n")
    assert "📄 keep.js (18 B)" in document
    assert "nested.txt" in document
    for excluded in ("ignore.log", "bad.js", "extra.txt"):
        assert excluded not in document
    assert document.index("## File: `keep.js`") < document.index("## File: `sub/nested.txt`")
    assert outcome.result.files == 2
    assert outcome.result.total_bytes == 18 + 6


@pytest.mark.asyncio
async def test_latest_request_supersedes_pending_one(configured):
    sink = GateSink()
    orchestrator = Orchestrator(sink=sink, counter=WhitespaceTokenCounter())
    first, second, third = (request(configured, p) for p in ("keep.js", "sub", "."))

    task = orchestrator.submit(first)
    await sink.entered.wait()

    assert orchestrator.state is State.RUNNING
    assert orchestrator.submit(second) is None
    assert orchestrator.submit(third) is None
    assert orchestrator.pending == third

    sink.release.set()
    outcomes = await task

    assert [o.request for o in outcomes] == [first, third]
    assert sink.max_active == 1
    assert len(sink.documents) == 2
    assert orchestrator.state is State.IDLE
    assert orchestrator.pending is None


@pytest.mark.asyncio
async def test_failure_still_runs_pending_request(configured):
    sink = MemorySink()
    orchestrator = Orchestrator(sink=sink, counter=WhitespaceTokenCounter())
    broken = request(configured, "vanished.txt")
    good = request(configured, "keep.js")

    task = orchestrator.submit(broken)
    orchestrator.submit(good)
    failed, succeeded = await task

    assert isinstance(failed.error, TraversalError)
    assert succeeded.ok
    assert len(sink.documents) == 1
    assert [entry.paths for entry in orchestrator.history] == [good.paths]
    assert orchestrator.state is State.IDLE


@pytest.mark.asyncio
async def test_failed_job_leaves_no_history_or_output(configured):
    sink = MemorySink()
    orchestrator = Orchestrator(sink=sink)

    outcome = await orchestrator.run(request(configured, "ignoreDir"))

    assert isinstance(outcome.error, NothingToCopyError)
    assert sink.documents == []
    assert len(orchestrator.history) == 0


@pytest.mark.asyncio
async def test_history_is_a_bounded_ring_buffer(configured):
    orchestrator = Orchestrator(sink=MemorySink(), history_size=2)

    for rel in ("keep.js", "sub", "."):
        await orchestrator.run(request(configured, rel))

    assert [entry.paths for entry in orchestrator.history] == [
        (str(configured / "sub"),),
        (str(configured / "."),),
    ]
    assert "nested.txt" in orchestrator.history[-1].preview


@pytest.mark.asyncio
async def test_reporter_sees_every_outcome(configured):
    seen = []
    orchestrator = Orchestrator(sink=MemorySink(), reporter=seen.append)

    await orchestrator.run(request(configured, "keep.js"))
    await orchestrator.run(request(configured, "nope"))

    assert [o.ok for o in seen] == [True, False]


@pytest.mark.asyncio
async def test_filter_is_cached_until_invalidated(configured):
    orchestrator = Orchestrator(sink=MemorySink())
    await orchestrator.run(request(configured, "."))

    write(configured, ".gitignore", "sub/\n")
    outcome = await orchestrator.run(request(configured, "."))
    assert "nested.txt" in outcome.result.document

    orchestrator.filter_cache.notify_pattern_file_changed(configured / ".gitignore")
    outcome = await orchestrator.run(request(configured, "."))
    assert "nested.txt" not in outcome.result.document
    assert "bad.js" in outcome.result.document


@pytest.mark.asyncio
async def test_unexpected_error_becomes_outcome_and_pending_still_runs(configured):
    calls = []

    def flaky_settings(root):
        calls.append(root)
        if len(calls) == 1:
            raise RuntimeError("settings backend went away")
        return Settings(ignored_extensions=[".log"], extra_ignored_files=["extra.txt"])

    sink = MemorySink()
    orchestrator = Orchestrator(sink=sink, counter=WhitespaceTokenCounter(), settings_for=flaky_settings)
    good = request(configured, "keep.js")

    task = orchestrator.submit(good)
    orchestrator.submit(good)
    crashed, succeeded = await task

    assert isinstance(crashed.error, RuntimeError)
    assert succeeded.ok
    assert len(sink.documents) == 1
    assert orchestrator.pending is None
    assert orchestrator.state is State.IDLE


@pytest.mark.asyncio
async def test_undecodable_gitignore_does_not_break_the_job(configured):
    (configured / ".gitignore").write_bytes(b"ignoreDir/\n\xff\xfe bad\n")
    sink = MemorySink()
    orchestrator = Orchestrator(sink=sink, counter=WhitespaceTokenCounter())

    outcome = await orchestrator.run(request(configured, "."))

    assert outcome.ok
    assert "bad.js" not in sink.documents[0]


@pytest.mark.asyncio
async def test_unreadable_gitignore_fails_every_queued_job_cleanly(configured):
    gitignore = configured / ".gitignore"
    gitignore.unlink()
    gitignore.symlink_to(configured / "no-such-target")
    sink = MemorySink()
    orchestrator = Orchestrator(sink=sink)
    good = request(configured, "keep.js")

    task = orchestrator.submit(good)
    orchestrator.submit(good)
    outcomes = await task

    assert [type(o.error) for o in outcomes] == [TraversalError, TraversalError]
    assert sink.documents == []
    assert orchestrator.pending is None
    assert orchestrator.state is State.IDLE
