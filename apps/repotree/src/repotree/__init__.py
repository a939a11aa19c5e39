"""Move, rename and delete files and folders in GitHub repositories."""

from .deleter import DirectoryDeleter
from .errors import (
    DirectoryDeleteError,
    RelocationError,
    RepoTreeError,
    RequestValidationError,
    TreeTruncatedError,
)
from .models import (
    DeleteRequest,
    EntryKind,
    MoveOutcome,
    MoveRequest,
    MoveStatus,
    MoveSummary,
    OperationResult,
    ReadmeView,
    RenameRequest,
    RepositoryCoordinate,
    RepositoryNameCheck,
    TreeEntry,
    TreeListing,
    UploadFile,
    UploadResult,
    UploadSummary,
)
from .mover import MoveOrchestrator
from .protocols import RepositoryHost
from .reader import TreeReader
from .relocator import Relocator
from .service import RepositoryManager

__all__ = [
    "RepositoryManager",
    "RepositoryHost",
    "TreeReader",
    "Relocator",
    "MoveOrchestrator",
    "DirectoryDeleter",
    "RepositoryCoordinate",
    "TreeEntry",
    "TreeListing",
    "EntryKind",
    "MoveRequest",
    "DeleteRequest",
    "RenameRequest",
    "MoveStatus",
    "MoveOutcome",
    "MoveSummary",
    "OperationResult",
    "UploadFile",
    "UploadResult",
    "UploadSummary",
    "ReadmeView",
    "RepositoryNameCheck",
    "RepoTreeError",
    "RequestValidationError",
    "RelocationError",
    "DirectoryDeleteError",
    "TreeTruncatedError",
]
