"""Engine errors and user-facing failure messages."""

import logging

from gh import (
    ConflictError,
    ForbiddenError,
    GitHubAPIError,
    NotFoundError,
    RateLimitedError,
    UnauthorizedError,
    UnprocessableError,
    UpstreamUnavailableError,
)

logger = logging.getLogger(__name__)

FAILURE_MESSAGES = {
    "not_found": "Resource not found. The repository or file may have been deleted.",
    "conflict": "Conflict detected. The resource may have been modified. Please refresh and try again.",
    "unauthorized": "Authentication failed. Please reconnect your GitHub account.",
    "forbidden": "Insufficient permissions. Please check your GitHub access settings.",
    "invalid": "Invalid data provided. Please check your input and try again.",
    "rate_limited": "Rate limit exceeded. Please wait a moment and try again.",
    "unavailable": "GitHub service temporarily unavailable. Please try again shortly.",
    "validation": "Invalid request.",
    "truncated": "The repository is too large to rewrite in a single commit.",
    "unknown": "Operation failed. Please try again.",
}

# Order matters: RateLimitedError must win over its 403 siblings.
_API_CATEGORIES: list[tuple[type[GitHubAPIError], str]] = [
    (RateLimitedError, "rate_limited"),
    (NotFoundError, "not_found"),
    (ConflictError, "conflict"),
    (UnauthorizedError, "unauthorized"),
    (ForbiddenError, "forbidden"),
    (UnprocessableError, "invalid"),
    (UpstreamUnavailableError, "unavailable"),
]


class RepoTreeError(Exception):
    """Base error for tree operations."""

    category = "unknown"


class RequestValidationError(RepoTreeError):
    """Malformed or structurally invalid request, detected before any mutation."""

    category = "validation"

    def __init__(self, message: str, details: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class TreeTruncatedError(RepoTreeError):
    """Recursive tree listing was cut short by GitHub."""

    category = "truncated"


class RelocationError(RepoTreeError):
    """One step of moving a single file failed."""

    def __init__(self, source_path: str, dest_path: str, stage: str, cause: Exception):
        super().__init__(f"Failed to move {source_path} to {dest_path} at {stage}: {cause}")
        self.source_path = source_path
        self.dest_path = dest_path
        self.stage = stage
        self.cause = cause

    @property
    def duplicated(self) -> bool:
        """True when the destination was written but the source is still present."""
        return self.stage == "delete"


class DirectoryDeleteError(RepoTreeError):
    """Directory delete aborted before the branch was updated."""

    def __init__(self, path: str, stage: str, cause: Exception):
        super().__init__(f"Failed to delete directory {path} at {stage}: {cause}")
        self.path = path
        self.stage = stage
        self.cause = cause


def failure_category(exc: BaseException) -> str:
    """Map an error to its cause category."""
    if isinstance(exc, (RelocationError, DirectoryDeleteError)):
        return failure_category(exc.cause)
    if isinstance(exc, RepoTreeError):
        return exc.category
    for error_type, category in _API_CATEGORIES:
        if isinstance(exc, error_type):
            return category
    return "unknown"


def describe_failure(exc: BaseException) -> str:
    """
    Human-readable failure message safe to show to users.

    The full error goes to the log only.
    """
    category = failure_category(exc)
    logger.error("Operation failed (%s): %s", category, exc)
    message = FAILURE_MESSAGES[category]
    if isinstance(exc, RelocationError) and exc.duplicated:
        message = f"{message} The file was copied to {exc.dest_path} but {exc.source_path} still exists."
    return message
