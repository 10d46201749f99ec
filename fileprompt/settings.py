"""Workspace settings persisted as JSON next to the code being copied.

Keys mirror the editor configuration this tool grew out of: ``respectGitignore``,
``ignoredExtensions``, ``extraIgnoredFiles`` and ``savedStacks``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List

from pydantic import ValidationError

from fileprompt.errors import SettingsError, WorkspaceError
from fileprompt.gitignore import relative_posix
from fileprompt.models import Settings
from fileprompt.utils import SETTINGS_FILE

logger = logging.getLogger(__name__)


class SettingsStore:
    """Loads and saves ``<root>/.fileprompt.json``; a missing file means defaults."""

    def __init__(self, root: Path, on_change: Callable[[], None] = lambda: None):
        self.root = root
        self.path = root / SETTINGS_FILE
        self.on_change = on_change

    def load(self) -> Settings:
        if not self.path.is_file():
            return Settings()
        try:
            return Settings.model_validate_json(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            raise SettingsError(f"Cannot read {self.path}: {e}") from e
        except ValidationError as e:
            raise SettingsError(f"Invalid settings in {self.path}: {e.error_count()} error(s)\n{e}") from e

    def save(self, settings: Settings) -> None:
        try:
            self.path.write_text(settings.model_dump_json(by_alias=True, indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            raise SettingsError(f"Cannot write {self.path}: {e}") from e
        logger.debug("Saved settings to %s", self.path)
        self.on_change()

    # --- explicit ignore list ---

    def workspace_relative(self, path: Path) -> str:
        rel = relative_posix(str(path.resolve()), self.root)
        if not rel:
            raise WorkspaceError(f"{path} is not inside the workspace {self.root}")
        return rel

    def add_ignored_path(self, path: Path) -> str:
        """Append `path` (stored workspace-relative) to extraIgnoredFiles unless already present."""
        rel = self.workspace_relative(path)
        settings = self.load()
        if rel not in settings.extra_ignored_files:
            settings.extra_ignored_files.append(rel)
            self.save(settings)
        return rel

    def remove_ignored_path(self, rel: str) -> bool:
        settings = self.load()
        if rel not in settings.extra_ignored_files:
            return False
        settings.extra_ignored_files.remove(rel)
        self.save(settings)
        return True

    def ignored_paths(self) -> List[str]:
        return list(self.load().extra_ignored_files)
