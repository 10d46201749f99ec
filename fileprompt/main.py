# main.py
import asyncio
import functools
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence

import click

from fileprompt.errors import FilePromptError, WorkspaceError
from fileprompt.gitignore import IgnoreFilter
from fileprompt.models import HistoryEntry, JobOutcome, SelectionRequest, Stack
from fileprompt.orchestrator import Orchestrator
from fileprompt.picker.questionary import NEW_STACK, QuestionaryPicker, ask_stack_name, choose_ignored, choose_stack
from fileprompt.renderer import format_size
from fileprompt.settings import SettingsStore
from fileprompt import stacks as stack_ops
from fileprompt.tokens import select_token_counter
from fileprompt.utils import find_workspace_root, select_sink
from fileprompt.watch import DEFAULT_INTERVAL, SelectionWatcher

logger = logging.getLogger(__name__)

PATHS = click.Path(exists=True, path_type=Path)


@dataclass
class App:
    root: Path
    store: SettingsStore


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING if verbosity == 0 else logging.INFO if verbosity == 1 else logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s - %(levelname)s - %(message)s")


def handle_errors(fn):
    """Turn any FilePromptError into a single user-facing error line."""
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except FilePromptError as e:
            raise click.ClickException(str(e)) from e
    return wrapper


def _report(outcome: JobOutcome, show_errors: bool = False) -> None:
    if outcome.ok:
        result = outcome.result
        click.secho(
            f"[Copied {result.files} file(s), {format_size(result.total_bytes)}, "
            f"{result.total_tokens} tokens in {result.duration:.2f}s]",
            fg="green", err=True,
        )
    elif show_errors:
        click.secho(f"[Copy failed: {outcome.error}]", fg="red", err=True)


def _make_orchestrator(app: App, to_stdout: bool, show_errors: bool = False) -> Orchestrator:
    settings = app.store.load()
    return Orchestrator(
        sink=select_sink(to_stdout),
        counter=select_token_counter(settings.tokenizer),
        reporter=functools.partial(_report, show_errors=show_errors),
    )


def _request(app: App, paths: Iterable[str]) -> SelectionRequest:
    return SelectionRequest(root=str(app.root), paths=tuple(paths))


def _run_copy(app: App, paths: Sequence[str], to_stdout: bool) -> None:
    if not paths:
        raise WorkspaceError("Nothing selected to copy")
    orchestrator = _make_orchestrator(app, to_stdout)
    outcome = asyncio.run(orchestrator.run(_request(app, paths)))
    if isinstance(outcome.error, FilePromptError):
        raise outcome.error
    if outcome.error is not None:
        raise FilePromptError(f"Copy failed: {outcome.error}") from outcome.error


def _format_history(history: Iterable[HistoryEntry], saved: Sequence[Stack]) -> List[str]:
    lines = []
    for entry in history:
        stack = stack_ops.match_stack(entry, saved)
        label = f" [stack: {stack.name}]" if stack else ""
        lines.append(f"{entry.timestamp:%H:%M:%S} {len(entry.paths)} path(s){label}")
        lines.extend(f"    {line}" for line in entry.preview.splitlines())
    return lines


@click.group()
@click.option("-v", "--verbose", count=True, help="Log more (-v info, -vv debug).")
@click.option("-w", "--workspace", type=click.Path(exists=True, file_okay=False, path_type=Path),
              default=None, help="Workspace root. Defaults to the nearest enclosing git repository.")
@click.pass_context
def cli(ctx, verbose, workspace):
    """
    Copies a Markdown rendering of files and folders to the clipboard:
    a directory tree with sizes, followed by every file in a fenced code block.

    Features:
    - .gitignore, extension and explicit-path exclusion
    - Saved selections ("stacks")
    - Watch mode that re-copies on change
    """
    _configure_logging(verbose)
    root = workspace.resolve() if workspace else find_workspace_root(Path.cwd())
    ctx.obj = App(root=root, store=SettingsStore(root))


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=PATHS)
@click.option("-i", "--interactive", is_flag=True, help="Pick the files to include from a checklist.")
@click.option("--stdout", "to_stdout", is_flag=True, help="Print the document instead of copying it.")
@click.pass_obj
@handle_errors
def copy(app: App, paths, interactive, to_stdout):
    """Copy the tree and contents of PATHS."""
    selection = [str(p.resolve()) for p in paths]
    if interactive:
        selection = QuestionaryPicker().pick(selection, IgnoreFilter.build(app.root, app.store.load()))
    _run_copy(app, selection, to_stdout)


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=PATHS)
@click.option("--interval", type=float, default=DEFAULT_INTERVAL, show_default=True,
              help="Seconds between change checks.")
@click.option("--stdout", "to_stdout", is_flag=True, help="Print each document instead of copying it.")
@click.pass_obj
@handle_errors
def watch(app: App, paths, interval, to_stdout):
    """Copy PATHS, then copy again whenever they or the ignore rules change."""
    orchestrator = _make_orchestrator(app, to_stdout, show_errors=True)
    watcher = SelectionWatcher(orchestrator, _request(app, (str(p.resolve()) for p in paths)), interval)
    click.secho(f"[Watching {len(paths)} path(s), Ctrl+C to stop]", err=True)
    try:
        asyncio.run(watcher.run(asyncio.Event()))
    except KeyboardInterrupt:
        pass
    for line in _format_history(orchestrator.history, app.store.load().saved_stacks):
        click.echo(line, err=True)


# --- ignore list ---

@cli.group()
def ignore():
    """Manage the explicit ignore list of the workspace."""


@ignore.command("add")
@click.argument("path", type=PATHS)
@click.pass_obj
@handle_errors
def ignore_add(app: App, path):
    rel = app.store.add_ignored_path(path)
    click.echo(f"Ignoring {rel}")


@ignore.command("remove")
@click.argument("path", required=False)
@click.pass_obj
@handle_errors
def ignore_remove(app: App, path):
    """Stop ignoring PATH (workspace-relative). Prompts when PATH is omitted."""
    if path is None:
        path = choose_ignored(app.store.ignored_paths())
        if path is None:
            raise WorkspaceError("Nothing selected to remove")
    elif Path(path).exists():
        path = app.store.workspace_relative(Path(path))
    if not app.store.remove_ignored_path(path):
        raise WorkspaceError(f"{path} is not in the ignore list")
    click.echo(f"No longer ignoring {path}")


@ignore.command("list")
@click.pass_obj
@handle_errors
def ignore_list(app: App):
    for rel in app.store.ignored_paths():
        click.echo(rel)


# --- stacks ---

@cli.group()
def stack():
    """Save selections under a name and copy them again later."""


@stack.command("add")
@click.argument("paths", nargs=-1, required=True, type=PATHS)
@click.option("-n", "--name", default=None, help="Stack to add to; created when missing.")
@click.pass_obj
@handle_errors
def stack_add(app: App, paths, name):
    if name is None:
        name = choose_stack(stack_ops.list_stacks(app.store), allow_new=True, message="Add to which stack?")
        if name == NEW_STACK:
            name = ask_stack_name()
        if not name:
            raise WorkspaceError("No stack chosen")
    saved = stack_ops.add_to_stack(app.store, name, [str(p.resolve()) for p in paths])
    click.echo(f"Stack '{saved.name}' holds {len(saved.paths)} path(s)")


@stack.command("list")
@click.pass_obj
@handle_errors
def stack_list(app: App):
    for saved in stack_ops.list_stacks(app.store):
        click.echo(f"{saved.name} ({len(saved.paths)} paths)")
        for path in saved.paths:
            click.echo(f"    {path}")


def _stack_name(app: App, name, message: str) -> str:
    if name is not None:
        return name
    name = choose_stack(stack_ops.list_stacks(app.store), message=message)
    if name is None:
        raise WorkspaceError("No stack chosen")
    return name


@stack.command("copy")
@click.argument("name", required=False)
@click.option("--stdout", "to_stdout", is_flag=True, help="Print the document instead of copying it.")
@click.pass_obj
@handle_errors
def stack_copy(app: App, name, to_stdout):
    """Copy every path of stack NAME that still exists."""
    saved = stack_ops.get_stack(app.store, _stack_name(app, name, "Copy which stack?"))
    _run_copy(app, stack_ops.existing_paths(saved), to_stdout)


@stack.command("remove")
@click.argument("name", required=False)
@click.pass_obj
@handle_errors
def stack_remove(app: App, name):
    name = _stack_name(app, name, "Remove which stack?")
    stack_ops.remove_stack(app.store, name)
    click.echo(f"Removed stack '{name}'")


if __name__ == "__main__":
    cli()
