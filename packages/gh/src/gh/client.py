"""GitHub API client."""

import base64
import logging
import os
import subprocess
from typing import Any
from urllib.parse import quote

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

from .exceptions import (
    ConflictError,
    NotFoundError,
    UnprocessableError,
    UpstreamUnavailableError,
    error_for_response,
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

logger = logging.getLogger(__name__)

# Retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_MIN_WAIT = 1  # seconds
DEFAULT_MAX_WAIT = 10  # seconds
DEFAULT_BRANCH = "main"

# Retryable exceptions
RETRYABLE_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
    httpx.NetworkError,
    UpstreamUnavailableError,
)

# Only reads are retried; a mutating call is sent at most once.
RETRYABLE_METHODS = frozenset({"GET", "HEAD"})


def get_token_from_gh_cli() -> str | None:
    """
    Get GitHub token from gh cli.

    Returns:
        Token string or None if gh cli not available/authenticated
    """
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0 and result.stdout.strip():
            logger.info("Using token from gh cli")
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.debug("gh cli not available: %s", e)
    return None


def get_token(token: str | None = None, use_gh_cli: bool = False) -> str | None:
    """
    Get GitHub token from various sources.

    Priority:
    1. Explicitly provided token
    2. Environment variable GH_TOKEN / GITHUB_TOKEN
    3. gh cli (`gh auth token`) - only if use_gh_cli=True

    Args:
        token: Explicitly provided token
        use_gh_cli: Whether to use gh cli credentials (requires user consent)

    Returns:
        GitHub token or None
    """
    if token:
        logger.debug("Using explicitly provided token")
        return token

    env_token = os.environ.get("GH_TOKEN") or os.environ.get("GITHUB_TOKEN")
    if env_token:
        logger.info("Using token from environment variable")
        return env_token

    if use_gh_cli:
        return get_token_from_gh_cli()

    return None


def create_retry_decorator(max_retries: int = DEFAULT_MAX_RETRIES):
    """Create a retry decorator with specified max retries."""
    return retry(
        retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential(multiplier=1, min=DEFAULT_MIN_WAIT, max=DEFAULT_MAX_WAIT),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def _quote_path(path: str) -> str:
    return quote(path.strip("/"), safe="/")


class GitHubClient:
    """GitHub REST API client with retry support for reads."""

    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        use_gh_cli: bool = False,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize GitHub client.

        Args:
            token: GitHub personal access token (optional)
            base_url: Custom base URL (defaults to GitHub API)
            timeout: Request timeout in seconds
            use_gh_cli: Use gh cli credentials (requires user consent)
            max_retries: Maximum number of attempts for GET requests (default: 3)
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.transport = transport
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "repotree-github-client",
        }

        resolved_token = get_token(token, use_gh_cli=use_gh_cli)

        if resolved_token:
            self.headers["Authorization"] = f"token {resolved_token}"
            logger.debug("GitHub client initialized with token")
        else:
            logger.warning("GitHub client initialized without token (rate limited, read-only)")
        logger.info("GitHub client ready, base_url=%s, max_retries=%d", self.base_url, max_retries)

    def _request(
        self, method: str, endpoint: str, **kwargs: Any
    ) -> httpx.Response:
        """Make HTTP request to GitHub API, retrying transient failures of reads."""
        url = f"{self.base_url}{endpoint}"
        attempts = self.max_retries if method in RETRYABLE_METHODS else 1

        @create_retry_decorator(attempts)
        def do_request() -> httpx.Response:
            logger.debug("Request: %s %s", method, url)
            with httpx.Client(
                timeout=self.timeout, headers=self.headers, transport=self.transport
            ) as client:
                response = client.request(method, url, **kwargs)
                logger.debug(
                    "Response: %s %s (status=%d)",
                    method,
                    endpoint,
                    response.status_code,
                )
                if response.is_error:
                    error = error_for_response(response)
                    if isinstance(error, UpstreamUnavailableError):
                        logger.warning("Server error %d on %s %s", response.status_code, method, endpoint)
                    raise error
                return response

        try:
            return do_request()
        except httpx.TransportError as e:
            logger.error("Network failure on %s %s: %s", method, endpoint, e)
            raise UpstreamUnavailableError(f"Network failure: {type(e).__name__}") from e

    # ------------------------------------------------------------------
    # Contents API
    # ------------------------------------------------------------------

    def _fetch_contents(self, owner: str, repo: str, path: str, ref: str) -> Any:
        """Raw contents API payload: a dict for a file, a list for a directory."""
        endpoint = f"/repos/{owner}/{repo}/contents/{_quote_path(path)}"
        params = {"ref": ref} if ref else {}
        logger.info("Fetching contents: %s/%s path=%s ref=%s", owner, repo, path, ref)
        response = self._request("GET", endpoint, params=params)
        return response.json()

    def get_contents(
        self, owner: str, repo: str, path: str = "", ref: str = DEFAULT_BRANCH
    ) -> list[GitHubContent]:
        """
        Get repository contents.

        Args:
            owner: Repository owner
            repo: Repository name
            path: Path in repository (empty for root)
            ref: Branch/tag/commit (default: main)

        Returns:
            List of GitHubContent items
        """
        data = self._fetch_contents(owner, repo, path, ref)

        # Handle single file response
        if isinstance(data, dict):
            logger.debug("Single file response: %s", data.get("name"))
            return [GitHubContent(**data)]

        # Handle directory listing
        logger.debug("Directory listing: %d items", len(data))
        return [GitHubContent(**item) for item in data]

    def get_file_item(
        self, owner: str, repo: str, path: str, ref: str = DEFAULT_BRANCH
    ) -> GitHubContent:
        """
        Get the contents entry of a single file.

        Raises:
            NotFoundError: If the path does not exist or is not a file
        """
        data = self._fetch_contents(owner, repo, path, ref)
        # A directory answers with a list, even when it holds a single file
        if not isinstance(data, dict) or data.get("type") != "file":
            logger.error("Path is not a file: %s", path)
            raise NotFoundError(f"Path is not a file: {path}", 404)
        return GitHubContent(**data)

    def read_file(
        self, owner: str, repo: str, path: str, ref: str = DEFAULT_BRANCH
    ) -> GitHubFile:
        """
        Get file content as raw bytes.

        Args:
            owner: Repository owner
            repo: Repository name
            path: File path in repository
            ref: Branch/tag/commit (default: main)

        Returns:
            GitHubFile with decoded content

        Raises:
            NotFoundError: If the path does not exist or is not a file
        """
        logger.info("Fetching file content: %s/%s path=%s", owner, repo, path)
        item = self.get_file_item(owner, repo, path, ref)
        if item.encoding == "base64" and item.content is not None:
            data = base64.b64decode(item.content)
        else:
            # Files over 1MB come back without inline content
            logger.debug("No inline content for %s, fetching blob %s", path, item.sha)
            data = self.get_blob(owner, repo, item.sha)

        logger.debug("File content fetched: %s (%d bytes)", path, len(data))
        return GitHubFile(
            name=item.name,
            path=item.path,
            sha=item.sha,
            size=item.size,
            html_url=item.html_url,
            content=data,
        )

    def get_file_sha(
        self, owner: str, repo: str, path: str, ref: str = DEFAULT_BRANCH
    ) -> str | None:
        """Return the blob sha of the file at path, or None if no file is there."""
        try:
            return self.get_file_item(owner, repo, path, ref).sha
        except NotFoundError:
            logger.debug("No existing file at %s", path)
            return None

    def write_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: bytes,
        message: str,
        branch: str = DEFAULT_BRANCH,
        sha: str | None = None,
    ) -> str:
        """
        Create or update a file.

        Args:
            owner: Repository owner
            repo: Repository name
            path: File path in repository
            content: Raw file content
            message: Commit message
            branch: Target branch
            sha: Blob sha of the file being replaced (required for updates)

        Returns:
            Blob sha of the written content
        """
        endpoint = f"/repos/{owner}/{repo}/contents/{_quote_path(path)}"
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": branch,
        }
        if sha:
            body["sha"] = sha
        logger.info("%s file: %s/%s path=%s branch=%s", "Updating" if sha else "Creating", owner, repo, path, branch)
        response = self._request("PUT", endpoint, json=body)
        return response.json()["content"]["sha"]

    def delete_file(
        self,
        owner: str,
        repo: str,
        path: str,
        sha: str,
        message: str,
        branch: str = DEFAULT_BRANCH,
    ) -> None:
        """Delete a file; sha must match the file's current blob sha."""
        endpoint = f"/repos/{owner}/{repo}/contents/{_quote_path(path)}"
        logger.info("Deleting file: %s/%s path=%s branch=%s", owner, repo, path, branch)
        self._request(
            "DELETE",
            endpoint,
            json={"message": message, "sha": sha, "branch": branch},
        )

    def get_directory_tree(
        self,
        owner: str,
        repo: str,
        path: str = "",
        ref: str = DEFAULT_BRANCH,
        recursive: bool = False,
    ) -> GitHubDirectory:
        """
        Get directory tree through the contents API, one request per directory.

        Args:
            owner: Repository owner
            repo: Repository name
            path: Directory path (empty for root)
            ref: Branch/tag/commit (default: main)
            recursive: Whether to recursively fetch subdirectories

        Returns:
            GitHubDirectory with all items
        """
        logger.info(
            "Fetching directory tree: %s/%s path=%s recursive=%s",
            owner, repo, path, recursive
        )
        items: list[GitHubContent] = []
        contents = self.get_contents(owner, repo, path, ref)

        for item in contents:
            items.append(item)
            if recursive and item.type == "dir":
                logger.debug("Recursing into directory: %s", item.path)
                subdir = self.get_directory_tree(
                    owner, repo, item.path, ref, recursive=True
                )
                items.extend(subdir.items)

        logger.debug("Directory tree fetched: %s (%d items)", path, len(items))
        return GitHubDirectory(path=path, items=items)

    # ------------------------------------------------------------------
    # Git data API
    # ------------------------------------------------------------------

    def get_blob(self, owner: str, repo: str, sha: str) -> bytes:
        """Get raw blob content by sha."""
        response = self._request("GET", f"/repos/{owner}/{repo}/git/blobs/{sha}")
        data = response.json()
        if data.get("encoding") == "base64":
            return base64.b64decode(data.get("content") or "")
        return (data.get("content") or "").encode("utf-8")

    def get_tree(
        self, owner: str, repo: str, tree_ish: str, recursive: bool = False
    ) -> GitTree:
        """
        Get a git tree.

        Args:
            owner: Repository owner
            repo: Repository name
            tree_ish: Tree sha, commit sha or branch name
            recursive: Flatten all nested entries into one listing

        Returns:
            GitTree; `truncated` is set when GitHub cut the listing short
        """
        params = {"recursive": "1"} if recursive else {}
        logger.info("Fetching tree: %s/%s %s recursive=%s", owner, repo, tree_ish, recursive)
        response = self._request(
            "GET", f"/repos/{owner}/{repo}/git/trees/{tree_ish}", params=params
        )
        tree = GitTree(**response.json())
        if tree.truncated:
            logger.warning("Tree listing truncated: %s/%s %s", owner, repo, tree_ish)
        logger.debug("Tree fetched: %d entries", len(tree.tree))
        return tree

    def get_branch_tip(self, owner: str, repo: str, branch: str) -> str:
        """Return the commit sha the branch points to."""
        response = self._request("GET", f"/repos/{owner}/{repo}/git/ref/heads/{branch}")
        sha = response.json()["object"]["sha"]
        logger.debug("Branch %s tip: %s", branch, sha)
        return sha

    def get_commit(self, owner: str, repo: str, sha: str) -> GitCommit:
        """Get a commit's tree and parents."""
        response = self._request("GET", f"/repos/{owner}/{repo}/git/commits/{sha}")
        data = response.json()
        return GitCommit(
            sha=data["sha"],
            tree_sha=data["tree"]["sha"],
            parents=[parent["sha"] for parent in data.get("parents", [])],
            message=data.get("message", ""),
        )

    def create_tree(self, owner: str, repo: str, entries: list[GitTreeEntry]) -> str:
        """
        Create a tree object from a complete entry list.

        No base tree is sent: any path missing from `entries` is absent from
        the new tree.
        """
        payload = [
            entry.model_dump(include={"path", "mode", "type", "sha"}) for entry in entries
        ]
        logger.info("Creating tree: %s/%s (%d entries)", owner, repo, len(payload))
        response = self._request("POST", f"/repos/{owner}/{repo}/git/trees", json={"tree": payload})
        return response.json()["sha"]

    def create_commit(
        self, owner: str, repo: str, tree_sha: str, parents: list[str], message: str
    ) -> str:
        """Create a commit object and return its sha."""
        logger.info("Creating commit: %s/%s tree=%s parents=%s", owner, repo, tree_sha, parents)
        response = self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            json={"message": message, "tree": tree_sha, "parents": parents},
        )
        return response.json()["sha"]

    def update_branch_ref(self, owner: str, repo: str, branch: str, sha: str) -> None:
        """
        Fast-forward a branch to sha.

        Raises:
            ConflictError: If the branch moved and the update is not a fast forward
        """
        logger.info("Updating ref heads/%s -> %s", branch, sha)
        try:
            self._request(
                "PATCH",
                f"/repos/{owner}/{repo}/git/refs/heads/{branch}",
                json={"sha": sha, "force": False},
            )
        except UnprocessableError as e:
            # GitHub answers 422 "Update is not a fast forward" when the branch moved
            raise ConflictError(f"Branch {branch} changed concurrently", e.status_code) from e

    # ------------------------------------------------------------------
    # Branches and pull requests
    # ------------------------------------------------------------------

    def list_branches(self, owner: str, repo: str) -> list[Branch]:
        """List branches (first 100)."""
        logger.info("Listing branches: %s/%s", owner, repo)
        response = self._request(
            "GET", f"/repos/{owner}/{repo}/branches", params={"per_page": 100}
        )
        return [
            Branch(name=item["name"], sha=item["commit"]["sha"], protected=item.get("protected", False))
            for item in response.json()
        ]

    def create_pull_request(
        self, owner: str, repo: str, title: str, head: str, base: str, body: str = ""
    ) -> PullRequest:
        """Open a pull request from head into base."""
        logger.info("Creating PR for %s/%s: %s -> %s", owner, repo, head, base)
        response = self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={"title": title, "head": head, "base": base, "body": body},
        )
        return PullRequest(**response.json())

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    def get_authenticated_user(self) -> str:
        """Login of the token's owner."""
        response = self._request("GET", "/user")
        return response.json()["login"]

    def list_repositories(self, sort: str = "updated") -> list[Repository]:
        """List repositories of the authenticated user (first 100)."""
        logger.info("Listing repositories sorted by %s", sort)
        response = self._request("GET", "/user/repos", params={"sort": sort, "per_page": 100})
        repositories = [
            Repository(
                name=item["name"],
                full_name=item["full_name"],
                owner=item["owner"]["login"],
                private=item.get("private", False),
                description=item.get("description"),
                default_branch=item.get("default_branch") or DEFAULT_BRANCH,
                html_url=item.get("html_url"),
                updated_at=item.get("updated_at"),
            )
            for item in response.json()
        ]
        logger.debug("Found %d repositories", len(repositories))
        return repositories

    def repository_exists(self, owner: str, repo: str) -> bool:
        """True when owner/repo exists and is visible to the token."""
        try:
            self._request("GET", f"/repos/{owner}/{repo}")
        except NotFoundError:
            return False
        return True

    def get_readme(self, owner: str, repo: str, ref: str | None = None) -> GitHubFile | None:
        """The repository's preferred README, or None if it has none."""
        params = {"ref": ref} if ref else {}
        try:
            response = self._request("GET", f"/repos/{owner}/{repo}/readme", params=params)
        except NotFoundError:
            logger.info("No README in %s/%s", owner, repo)
            return None
        item = GitHubContent(**response.json())
        data = base64.b64decode(item.content) if item.encoding == "base64" and item.content else b""
        return GitHubFile(
            name=item.name,
            path=item.path,
            sha=item.sha,
            size=item.size,
            html_url=item.html_url,
            content=data,
        )
