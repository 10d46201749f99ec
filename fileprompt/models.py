"""
where we store the
pydantic data structures
shared by the copy pipeline

"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class NodeType(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


class FileRecord(BaseModel):
    """Stat snapshot of one file taken during traversal."""
    model_config = ConfigDict(frozen=True)

    path: str
    size: int
    mtime_ns: int


class FileLeaf(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    record: FileRecord
    node_type: NodeType = NodeType.FILE


class DirectoryNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    children: Dict[str, "TreeNode"] = {}
    node_type: NodeType = NodeType.DIRECTORY


TreeNode = Union[DirectoryNode, FileLeaf]
DirectoryNode.model_rebuild()


class SelectionRequest(BaseModel):
    """Ordered absolute paths of one copy job plus the workspace they belong to."""
    model_config = ConfigDict(frozen=True)

    root: str
    paths: Tuple[str, ...]


class Stack(BaseModel):
    name: str
    paths: List[str] = []


class TokenizerChoice(str, Enum):
    AUTO = "auto"
    TIKTOKEN = "tiktoken"
    WHITESPACE = "whitespace"


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    respect_gitignore: bool = Field(True, alias="respectGitignore")
    ignored_extensions: List[str] = Field(default_factory=list, alias="ignoredExtensions")
    extra_ignored_files: List[str] = Field(default_factory=list, alias="extraIgnoredFiles")
    saved_stacks: List[Stack] = Field(default_factory=list, alias="savedStacks")
    tokenizer: TokenizerChoice = TokenizerChoice.AUTO


class HistoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    paths: Tuple[str, ...]
    preview: str


class JobResult(BaseModel):
    request: SelectionRequest
    files: int
    total_bytes: int
    total_tokens: int
    tree: str
    duration: float
    document: str


class JobOutcome(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    request: SelectionRequest
    result: Optional[JobResult] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None
