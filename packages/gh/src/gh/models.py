"""GitHub API data models."""

from typing import Literal
from pydantic import BaseModel, Field


class GitHubContent(BaseModel):
    """GitHub content item (file or directory)."""

    name: str
    path: str
    sha: str
    size: int = 0
    url: str | None = None
    html_url: str | None = None
    git_url: str | None = None
    download_url: str | None = None
    type: Literal["file", "dir", "symlink", "submodule"]
    content: str | None = None  # Base64 encoded content for files
    encoding: str | None = None  # "base64", or "none" for files over 1MB


class GitHubFile(BaseModel):
    """GitHub file with decoded content."""

    name: str
    path: str
    sha: str
    size: int
    html_url: str | None = None
    content: bytes


class GitTreeEntry(BaseModel):
    """Entry of a git tree object."""

    path: str
    mode: str = "100644"
    type: Literal["blob", "tree", "commit"]
    sha: str
    size: int | None = None


class GitTree(BaseModel):
    """Git tree listing."""

    sha: str
    tree: list[GitTreeEntry] = Field(default_factory=list)
    truncated: bool = False


class GitCommit(BaseModel):
    """Git commit object (the parts we use)."""

    sha: str
    tree_sha: str
    parents: list[str] = Field(default_factory=list)
    message: str = ""


class Branch(BaseModel):
    """Branch name and tip."""

    name: str
    sha: str
    protected: bool = False


class PullRequest(BaseModel):
    """Created pull request."""

    number: int
    html_url: str
    title: str
    state: str = "open"


class GitHubDirectory(BaseModel):
    """GitHub directory listing."""

    path: str
    items: list[GitHubContent] = Field(default_factory=list)


class Repository(BaseModel):
    """Repository summary from a listing."""

    name: str
    full_name: str
    owner: str
    private: bool = False
    description: str | None = None
    default_branch: str = "main"
    html_url: str | None = None
    updated_at: str | None = None
