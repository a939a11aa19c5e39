"""Repository tree data models."""

import posixpath
from enum import Enum
from typing import Annotated

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

DEFAULT_BRANCH = "main"
MAX_PATH_LENGTH = 4096
MAX_BATCH_SIZE = 100
MAX_FILE_SIZE = 10 * 1024 * 1024

OWNER_PATTERN = r"^[A-Za-z0-9-]{1,39}$"
REPO_PATTERN = r"^[A-Za-z0-9._-]{1,100}$"
BRANCH_PATTERN = r"^[A-Za-z0-9._/-]{1,255}$"


def normalize_path(value: str) -> str:
    """
    Check a repository-relative path and return it without a trailing slash.

    The empty string stands for the repository root.
    """
    if len(value) > MAX_PATH_LENGTH:
        raise ValueError(f"Path must be at most {MAX_PATH_LENGTH} characters")
    if value.startswith("/"):
        raise ValueError("Path must not start with '/'")
    if "\0" in value:
        raise ValueError("Path must not contain null bytes")
    if value.endswith("/"):
        value = value[:-1]
    if not value:
        return value
    segments = value.split("/")
    if any(segment == ".." for segment in segments):
        raise ValueError("Path traversal not allowed")
    if any(segment == "" for segment in segments):
        raise ValueError("Path must not contain empty segments")
    return value


def _require_non_empty(value: str) -> str:
    if not value:
        raise ValueError("Path cannot be empty")
    return value


RepoPath = Annotated[str, AfterValidator(normalize_path), AfterValidator(_require_non_empty)]
OptionalRepoPath = Annotated[str, AfterValidator(normalize_path)]


def parent_of(path: str) -> str:
    """Parent directory of path ('' for top-level entries)."""
    return posixpath.dirname(path)


def join_path(directory: str, name: str) -> str:
    """Join a directory (possibly the root '') and a relative name."""
    return f"{directory}/{name}" if directory else name


class EntryKind(str, Enum):
    """Tree entry kind."""

    FILE = "file"
    DIRECTORY = "dir"


class RepositoryCoordinate(BaseModel):
    """A branch (or other ref) of one repository."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(pattern=OWNER_PATTERN)
    repo: str = Field(pattern=REPO_PATTERN)
    ref: str = Field(default=DEFAULT_BRANCH, pattern=BRANCH_PATTERN)

    @field_validator("ref")
    @classmethod
    def _no_dot_dot(cls, value: str) -> str:
        if ".." in value:
            raise ValueError("Invalid ref - cannot contain '..'")
        return value

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}@{self.ref}"


class TreeEntry(BaseModel):
    """A file or directory at a ref."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: RepoPath
    content_id: str = Field(
        default="",
        max_length=100,
        validation_alias=AliasChoices("content_id", "contentId", "sha"),
    )
    kind: EntryKind = Field(
        default=EntryKind.FILE,
        validation_alias=AliasChoices("kind", "type"),
    )
    mode: str | None = None

    @property
    def name(self) -> str:
        return posixpath.basename(self.path)

    @property
    def parent(self) -> str:
        return parent_of(self.path)

    @property
    def is_dir(self) -> bool:
        return self.kind == EntryKind.DIRECTORY


class TreeListing(BaseModel):
    """Recursive listing of a ref."""

    entries: list[TreeEntry] = Field(default_factory=list)
    truncated: bool = False

    @property
    def files(self) -> list[TreeEntry]:
        return [entry for entry in self.entries if entry.kind == EntryKind.FILE]


class FolderListing(BaseModel):
    """All folder paths of a ref."""

    folders: list[str] = Field(default_factory=list)
    truncated: bool = False


class MoveRequest(BaseModel):
    """Move one or more files and folders under a destination folder."""

    items: list[TreeEntry] = Field(min_length=1, max_length=MAX_BATCH_SIZE)
    destination: OptionalRepoPath = ""
    coordinate: RepositoryCoordinate

    @model_validator(mode="after")
    def _files_need_content_id(self) -> "MoveRequest":
        for item in self.items:
            if item.kind == EntryKind.FILE and not item.content_id:
                raise ValueError(f"content_id required for file {item.path}")
        return self


class DeleteRequest(BaseModel):
    """Delete one file or one folder."""

    path: RepoPath
    kind: EntryKind = EntryKind.FILE
    content_id: str | None = Field(default=None, max_length=100)
    coordinate: RepositoryCoordinate

    @model_validator(mode="after")
    def _file_needs_content_id(self) -> "DeleteRequest":
        if self.kind == EntryKind.FILE and not self.content_id:
            raise ValueError("content_id required to delete a file")
        return self


class RenameRequest(BaseModel):
    """Rename a file within its folder."""

    path: RepoPath
    new_path: RepoPath
    content_id: str = Field(min_length=1, max_length=100)
    coordinate: RepositoryCoordinate

    @model_validator(mode="after")
    def _same_folder(self) -> "RenameRequest":
        if self.new_path == self.path:
            raise ValueError("New name must differ from the current name")
        if parent_of(self.new_path) != parent_of(self.path):
            raise ValueError("Rename must keep the item in the same folder")
        return self


class MoveStatus(str, Enum):
    """Per-item move result."""

    MOVED = "moved"
    SKIPPED = "skipped"
    FAILED = "failed"


class MoveOutcome(BaseModel):
    """Result of moving one file."""

    source_path: str
    dest_path: str
    status: MoveStatus
    detail: str | None = None


class MoveSummary(BaseModel):
    """Outcomes of a move batch, in execution order."""

    outcomes: list[MoveOutcome] = Field(default_factory=list)

    def _count(self, status: MoveStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def moved(self) -> int:
        return self._count(MoveStatus.MOVED)

    @property
    def skipped(self) -> int:
        return self._count(MoveStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(MoveStatus.FAILED)

    def to_response(self) -> dict:
        details = []
        for outcome in self.outcomes:
            detail = {"src": outcome.source_path, "dest": outcome.dest_path, "status": outcome.status.value}
            if outcome.detail:
                detail["detail"] = outcome.detail
            details.append(detail)
        return {
            "moved": self.moved,
            "skipped": self.skipped,
            "failed": self.failed,
            "details": details,
        }


class OperationResult(BaseModel):
    """Result of a single-item operation."""

    success: bool
    error: str | None = None


class FileView(BaseModel):
    """File content for viewing or editing."""

    path: str
    content_id: str
    size: int
    content: str
    binary: bool = False


class SaveFileRequest(BaseModel):
    """Create a file, or update it when content_id is given."""

    path: RepoPath
    content: bytes = Field(max_length=MAX_FILE_SIZE)
    content_id: str | None = Field(default=None, max_length=100)
    message: str | None = Field(default=None, min_length=1, max_length=500)
    coordinate: RepositoryCoordinate


class PullRequestRequest(BaseModel):
    """Open a pull request between two branches of one repository."""

    coordinate: RepositoryCoordinate
    title: str = Field(min_length=1, max_length=256)
    head: str = Field(pattern=BRANCH_PATTERN)
    base: str = Field(pattern=BRANCH_PATTERN)
    body: str = Field(default="", max_length=10000)

    @model_validator(mode="after")
    def _distinct_branches(self) -> "PullRequestRequest":
        if self.head == self.base:
            raise ValueError("head and base must be different branches")
        return self


class BrowseRequest(BaseModel):
    """List a folder ('' is the repository root)."""

    path: OptionalRepoPath = ""
    coordinate: RepositoryCoordinate


class FileRequest(BaseModel):
    """Read one file."""

    path: RepoPath
    coordinate: RepositoryCoordinate


class UploadFile(BaseModel):
    """One file of an upload batch."""

    path: RepoPath
    content: bytes = Field(max_length=MAX_FILE_SIZE)


class UploadRequest(BaseModel):
    """Create up to MAX_BATCH_SIZE new files."""

    files: list[UploadFile] = Field(min_length=1, max_length=MAX_BATCH_SIZE)
    message: str | None = Field(default=None, min_length=1, max_length=500)
    coordinate: RepositoryCoordinate


class UploadResult(BaseModel):
    """Result of uploading one file."""

    path: str
    success: bool
    error: str | None = None


class UploadSummary(BaseModel):
    """Per-file upload results, in request order."""

    results: list[UploadResult] = Field(default_factory=list)

    @property
    def successful(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.successful

    def to_response(self) -> dict:
        return {
            "success": True,
            "results": [result.model_dump(exclude_none=True) for result in self.results],
            "summary": {
                "total": len(self.results),
                "successful": self.successful,
                "failed": self.failed,
            },
        }


class ReadmeView(BaseModel):
    """Decoded README of a repository."""

    name: str
    path: str
    content: str


class RepositoryNameRequest(BaseModel):
    """Repository name to check for availability."""

    name: str = Field(pattern=REPO_PATTERN)


class RepositoryNameCheck(BaseModel):
    """Whether a repository name is already taken by the user."""

    name: str
    exists: bool

    @property
    def available(self) -> bool:
        return not self.exists

    @property
    def message(self) -> str:
        if self.exists:
            return f'Repository "{self.name}" already exists'
        return f'Repository name "{self.name}" is available'
