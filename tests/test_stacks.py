import json
from datetime import datetime

import pytest

from fileprompt import stacks
from fileprompt.errors import NothingToCopyError, SettingsError, StackNotFoundError, WorkspaceError
from fileprompt.models import HistoryEntry, Stack
from fileprompt.settings import SettingsStore


@pytest.fixture
def store(workspace):
    return SettingsStore(workspace)


def test_missing_settings_file_means_defaults(store):
    settings = store.load()

    assert settings.respect_gitignore is True
    assert settings.saved_stacks == []


def test_settings_round_trip_uses_camel_case_keys(store, workspace):
    stacks.add_to_stack(store, "Stack1", [str(workspace / "keep.js")])

    data = json.loads((workspace / ".fileprompt.json").read_text(encoding="utf-8"))

    assert data["savedStacks"] == [{"name": "Stack1", "paths": [str(workspace / "keep.js")]}]
    assert data["respectGitignore"] is True


def test_invalid_settings_raise_settings_error(store, workspace):
    (workspace / ".fileprompt.json").write_text('{"savedStacks": "nope"}', encoding="utf-8")

    with pytest.raises(SettingsError):
        store.load()


def test_add_and_remove_ignored_path(store, workspace):
    assert store.add_ignored_path(workspace / "sub" / "nested.txt") == "sub/nested.txt"
    store.add_ignored_path(workspace / "sub" / "nested.txt")
    assert store.ignored_paths() == ["sub/nested.txt"]

    assert store.remove_ignored_path("sub/nested.txt")
    assert store.ignored_paths() == []
    assert not store.remove_ignored_path("sub/nested.txt")


def test_ignoring_a_path_outside_the_workspace_fails(store, tmp_path_factory):
    outside = tmp_path_factory.mktemp("elsewhere") / "x.txt"
    outside.write_text("x")

    with pytest.raises(WorkspaceError):
        store.add_ignored_path(outside)


def test_saving_notifies_listener(workspace):
    calls = []
    store = SettingsStore(workspace, on_change=lambda: calls.append(1))

    store.add_ignored_path(workspace / "keep.js")

    assert calls == [1]


def test_create_stack_with_selection(store, workspace):
    file = str(workspace / "keep.js")

    stack = stacks.add_to_stack(store, "Stack1", [file])

    assert stack == Stack(name="Stack1", paths=[file])
    assert stacks.list_stacks(store) == [stack]


def test_add_to_existing_stack_ignores_duplicates(store, workspace):
    file1, file2 = str(workspace / "keep.js"), str(workspace / "extra.txt")
    stacks.add_to_stack(store, "Stack1", [file1])

    stack = stacks.add_to_stack(store, "Stack1", [file1, file2])

    assert stack.paths == [file1, file2]
    assert len(stacks.list_stacks(store)) == 1


def test_remove_stack(store, workspace):
    stacks.add_to_stack(store, "a", [str(workspace / "keep.js")])
    stacks.add_to_stack(store, "b", [str(workspace / "sub")])

    stacks.remove_stack(store, "a")

    assert [s.name for s in stacks.list_stacks(store)] == ["b"]
    with pytest.raises(StackNotFoundError):
        stacks.remove_stack(store, "a")


def test_unknown_stack(store):
    with pytest.raises(StackNotFoundError, match="ghost"):
        stacks.get_stack(store, "ghost")


def test_missing_paths_are_dropped(workspace):
    keep = str(workspace / "keep.js")
    stack = Stack(name="s", paths=[str(workspace / "deleted.py"), keep])

    assert stacks.existing_paths(stack) == [keep]


def test_stack_with_nothing_left(workspace):
    stack = Stack(name="s", paths=[str(workspace / "deleted.py")])

    with pytest.raises(NothingToCopyError, match="nothing left to copy"):
        stacks.existing_paths(stack)


def test_history_matches_stack_regardless_of_order():
    entry = HistoryEntry(timestamp=datetime.now(), paths=("/w/b", "/w/a"), preview="")
    saved = [Stack(name="other", paths=["/w/a"]), Stack(name="same", paths=["/w/a", "/w/b"])]

    assert stacks.match_stack(entry, saved).name == "same"
    assert stacks.match_stack(entry, saved[:1]) is None
