"""GitHub API client utilities."""

from .client import GitHubClient, get_token
from .exceptions import (
    ConflictError,
    ForbiddenError,
    GitHubAPIError,
    NotFoundError,
    RateLimitedError,
    UnauthorizedError,
    UnprocessableError,
    UpstreamUnavailableError,
)
from .models import (
    Branch,
    GitCommit,
    GitHubContent,
    GitHubDirectory,
    GitHubFile,
    GitTree,
    GitTreeEntry,
    PullRequest,
    Repository,
)

__all__ = [
    "GitHubClient",
    "get_token",
    "GitHubAPIError",
    "NotFoundError",
    "ConflictError",
    "UnauthorizedError",
    "ForbiddenError",
    "RateLimitedError",
    "UnprocessableError",
    "UpstreamUnavailableError",
    "GitHubContent",
    "GitHubFile",
    "GitHubDirectory",
    "GitTree",
    "GitTreeEntry",
    "GitCommit",
    "Branch",
    "PullRequest",
    "Repository",
]
