"""Repository host protocol interface."""

from typing import Protocol, runtime_checkable

from gh import (
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


@runtime_checkable
class RepositoryHost(Protocol):
    """Calls the tree engine issues against the remote repository host.

    `gh.GitHubClient` implements this; tests use an in-memory fake. Every
    method raises a `gh.GitHubAPIError` subclass on failure.
    """

    def get_contents(self, owner: str, repo: str, path: str = "", ref: str = "main") -> list[GitHubContent]:
        """Direct children of a directory, or the single file at path."""
        ...

    def get_directory_tree(
        self, owner: str, repo: str, path: str = "", ref: str = "main", recursive: bool = False
    ) -> GitHubDirectory:
        """Directory listing built from per-directory content requests."""
        ...

    def read_file(self, owner: str, repo: str, path: str, ref: str = "main") -> GitHubFile:
        """File content and blob sha; NotFoundError if absent."""
        ...

    def get_file_sha(self, owner: str, repo: str, path: str, ref: str = "main") -> str | None:
        """Blob sha of the file at path, or None."""
        ...

    def write_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: bytes,
        message: str,
        branch: str = "main",
        sha: str | None = None,
    ) -> str:
        """Create (sha None) or update a file; returns the new blob sha."""
        ...

    def delete_file(self, owner: str, repo: str, path: str, sha: str, message: str, branch: str = "main") -> None:
        """Delete a file whose current blob sha is sha."""
        ...

    def get_tree(self, owner: str, repo: str, tree_ish: str, recursive: bool = False) -> GitTree:
        """Tree listing, flagged when truncated."""
        ...

    def get_branch_tip(self, owner: str, repo: str, branch: str) -> str:
        """Commit sha of the branch."""
        ...

    def get_commit(self, owner: str, repo: str, sha: str) -> GitCommit:
        """Commit tree and parents."""
        ...

    def create_tree(self, owner: str, repo: str, entries: list[GitTreeEntry]) -> str:
        """New tree holding exactly entries; returns its sha."""
        ...

    def create_commit(self, owner: str, repo: str, tree_sha: str, parents: list[str], message: str) -> str:
        """New commit; returns its sha."""
        ...

    def update_branch_ref(self, owner: str, repo: str, branch: str, sha: str) -> None:
        """Fast-forward branch to sha; ConflictError if it moved."""
        ...

    def list_branches(self, owner: str, repo: str) -> list[Branch]:
        """Branches of the repository."""
        ...

    def create_pull_request(
        self, owner: str, repo: str, title: str, head: str, base: str, body: str = ""
    ) -> PullRequest:
        """Open a pull request."""
        ...

    def get_authenticated_user(self) -> str:
        """Login of the token's owner."""
        ...

    def list_repositories(self, sort: str = "updated") -> list[Repository]:
        """Repositories of the authenticated user."""
        ...

    def repository_exists(self, owner: str, repo: str) -> bool:
        """True when the repository exists."""
        ...

    def get_readme(self, owner: str, repo: str, ref: str | None = None) -> GitHubFile | None:
        """Preferred README, or None."""
        ...
