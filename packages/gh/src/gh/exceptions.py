"""GitHub API exceptions."""

import logging

import httpx

logger = logging.getLogger(__name__)


class GitHubAPIError(Exception):
    """Base error for a failed GitHub API call."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFoundError(GitHubAPIError):
    """Repository, ref or path does not exist."""


class ConflictError(GitHubAPIError):
    """Content id mismatch or concurrent ref change."""


class UnauthorizedError(GitHubAPIError):
    """Token missing, invalid or expired."""


class ForbiddenError(GitHubAPIError):
    """Token lacks the required permission."""


class RateLimitedError(GitHubAPIError):
    """API rate limit exceeded."""

    def __init__(self, message: str, status_code: int | None = None, reset_at: int | None = None):
        super().__init__(message, status_code)
        self.reset_at = reset_at


class UnprocessableError(GitHubAPIError):
    """Request was well-formed but rejected by validation."""


class UpstreamUnavailableError(GitHubAPIError):
    """GitHub is unreachable or returned a server error."""


def error_for_response(response: httpx.Response) -> GitHubAPIError:
    """
    Build the exception matching a failed response.

    The raw body is logged here and never copied into the exception message.
    """
    status = response.status_code
    method = response.request.method
    url = response.request.url.path
    logger.debug("GitHub error body (%s %s, status=%d): %s", method, url, status, response.text)

    if status == 401:
        return UnauthorizedError("Invalid or expired GitHub token", status)
    if status == 403:
        if response.headers.get("X-RateLimit-Remaining") == "0":
            reset = response.headers.get("X-RateLimit-Reset")
            return RateLimitedError(
                "GitHub API rate limit exceeded",
                status,
                reset_at=int(reset) if reset and reset.isdigit() else None,
            )
        return ForbiddenError("GitHub API forbidden", status)
    if status == 404:
        return NotFoundError(f"Not found: {method} {url}", status)
    if status == 409:
        return ConflictError(f"Conflict: {method} {url}", status)
    if status == 422:
        return UnprocessableError(f"Unprocessable request: {method} {url}", status)
    if status == 429:
        return RateLimitedError("GitHub API rate limit exceeded", status)
    if status >= 500:
        return UpstreamUnavailableError(f"GitHub server error {status}", status)
    return GitHubAPIError(f"GitHub API error {status}", status)
