class FilePromptError(Exception):
    """Base class for errors surfaced to the user as a single message."""


class WorkspaceError(FilePromptError):
    """No usable workspace or selection for the requested operation."""


class TraversalError(FilePromptError):
    """A directory or file could not be read while building a copy job."""

    def __init__(self, path: str, cause: Exception):
        self.path = path
        self.cause = cause
        detail = cause.strerror if isinstance(cause, OSError) and cause.strerror else str(cause)
        super().__init__(f"Cannot read {path}: {detail}")


class SettingsError(FilePromptError):
    """The workspace settings file is unreadable or invalid."""


class StackNotFoundError(FilePromptError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No saved stack named '{name}'")


class NothingToCopyError(FilePromptError):
    """Every path of a selection disappeared before it could be copied."""


class ClipboardError(FilePromptError):
    """The clipboard tool failed to accept the document."""
