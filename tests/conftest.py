"""Shared fixtures: an in-memory repository host with call recording."""

import base64
import functools
import hashlib
import posixpath
import threading

import pytest

from gh import (
    Branch,
    ConflictError,
    GitCommit,
    GitHubContent,
    GitHubDirectory,
    GitHubFile,
    GitTree,
    GitTreeEntry,
    NotFoundError,
    PullRequest,
    Repository,
    UnprocessableError,
)
from repotree import RepositoryCoordinate

MUTATING = {"write_file", "delete_file", "create_tree", "create_commit", "update_branch_ref"}


def blob_sha(content: bytes) -> str:
    return hashlib.sha1(b"blob %d\0" % len(content) + content).hexdigest()


def _digest(*parts: object) -> str:
    return hashlib.sha1(repr(parts).encode()).hexdigest()


def _synchronized(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.lock:
            return method(self, *args, **kwargs)

    return wrapper


class FakeHost:
    """A single-repository git host kept in memory.

    Files live in tree snapshots; every contents-API write or delete makes a
    commit, like GitHub does. `fail(method, exc, path=...)` makes the next
    matching call raise instead of running.
    """

    def __init__(self, files: dict[str, bytes] | None = None, branch: str = "main"):
        self.blobs: dict[str, bytes] = {}
        self.trees: dict[str, dict[str, GitTreeEntry]] = {}
        self.commits: dict[str, GitCommit] = {}
        self.branches: dict[str, str] = {}
        self.calls: list[tuple[str, str | None]] = []
        self.failures: dict[tuple[str, str | None], Exception] = {}
        self.truncated = False
        self.pull_requests: list[PullRequest] = []
        self.login = "octocat"
        self.repositories: list[Repository] = [
            Repository(name="hello-world", full_name="octocat/hello-world", owner="octocat"),
        ]
        self.lock = threading.RLock()

        entries = {path: self._blob_entry(path, content) for path, content in (files or {}).items()}
        tree_sha = self._store_tree(entries)
        root = GitCommit(sha=_digest("root", tree_sha), tree_sha=tree_sha, parents=[], message="initial")
        self.commits[root.sha] = root
        self.branches[branch] = root.sha

    # ---------------------------------------------------------------- helpers

    def fail(self, method: str, exc: Exception, path: str | None = None) -> None:
        self.failures[(method, path)] = exc

    def _call(self, method: str, path: str | None = None) -> None:
        self.calls.append((method, path))
        for key in ((method, path), (method, None)):
            if key in self.failures:
                raise self.failures.pop(key)

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def mutating_calls(self) -> list[tuple[str, str | None]]:
        return [call for call in self.calls if call[0] in MUTATING]

    def _blob_entry(self, path: str, content: bytes, mode: str = "100644") -> GitTreeEntry:
        sha = blob_sha(content)
        self.blobs[sha] = content
        return GitTreeEntry(path=path, mode=mode, type="blob", sha=sha, size=len(content))

    def _store_tree(self, entries: dict[str, GitTreeEntry]) -> str:
        sha = _digest(sorted((e.path, e.mode, e.type, e.sha) for e in entries.values()))
        self.trees[sha] = dict(entries)
        return sha

    def files(self, ref: str = "main") -> dict[str, GitTreeEntry]:
        return self.trees[self.commits[self.branches[ref]].tree_sha]

    def content(self, path: str, ref: str = "main") -> bytes:
        return self.blobs[self.files(ref)[path].sha]

    def _resolve_tree(self, tree_ish: str) -> dict[str, GitTreeEntry]:
        if tree_ish in self.branches:
            return self.files(tree_ish)
        if tree_ish in self.trees:
            return self.trees[tree_ish]
        raise NotFoundError(f"No tree {tree_ish}", 404)

    def _branch_files(self, ref: str) -> dict[str, GitTreeEntry]:
        if ref not in self.branches:
            raise NotFoundError(f"No ref {ref}", 404)
        return self.files(ref)

    def _commit_files(self, branch: str, entries: dict[str, GitTreeEntry], message: str) -> None:
        tree_sha = self._store_tree(entries)
        parent = self.branches[branch]
        commit = GitCommit(sha=_digest(tree_sha, parent, message), tree_sha=tree_sha, parents=[parent], message=message)
        self.commits[commit.sha] = commit
        self.branches[branch] = commit.sha

    @staticmethod
    def _directories(paths) -> set[str]:
        dirs = set()
        for path in paths:
            parent = posixpath.dirname(path)
            while parent:
                dirs.add(parent)
                parent = posixpath.dirname(parent)
        return dirs

    def _content_item(self, entry: GitTreeEntry, with_content: bool = False) -> GitHubContent:
        data = self.blobs[entry.sha]
        return GitHubContent(
            name=posixpath.basename(entry.path),
            path=entry.path,
            sha=entry.sha,
            size=len(data),
            type="file",
            content=base64.b64encode(data).decode() if with_content else None,
            encoding="base64" if with_content else None,
        )

    # ---------------------------------------------------------------- contents API

    @_synchronized
    def get_contents(self, owner, repo, path="", ref="main"):
        self._call("get_contents", path)
        files = self._branch_files(ref)
        if path in files:
            return [self._content_item(files[path], with_content=True)]
        prefix = f"{path}/" if path else ""
        below = [p for p in files if p.startswith(prefix)]
        if path and not below:
            raise NotFoundError(f"No path {path}", 404)
        items = []
        for child in sorted({p[len(prefix):].split("/")[0] for p in below}):
            child_path = prefix + child
            if child_path in files:
                items.append(self._content_item(files[child_path]))
            else:
                items.append(GitHubContent(name=child, path=child_path, sha=_digest("dir", child_path), type="dir"))
        return items

    @_synchronized
    def get_directory_tree(self, owner, repo, path="", ref="main", recursive=False):
        self._call("get_directory_tree", path)
        items = []
        pending = [path]
        while pending:
            current = pending.pop(0)
            for item in self.get_contents(owner, repo, current, ref):
                items.append(item)
                if recursive and item.type == "dir":
                    pending.append(item.path)
        return GitHubDirectory(path=path, items=items)

    @_synchronized
    def read_file(self, owner, repo, path, ref="main"):
        self._call("read_file", path)
        files = self._branch_files(ref)
        if path not in files:
            raise NotFoundError(f"No file {path}", 404)
        entry = files[path]
        data = self.blobs[entry.sha]
        return GitHubFile(name=posixpath.basename(path), path=path, sha=entry.sha, size=len(data), content=data)

    @_synchronized
    def get_file_sha(self, owner, repo, path, ref="main"):
        self._call("get_file_sha", path)
        entry = self._branch_files(ref).get(path)
        return entry.sha if entry else None

    @_synchronized
    def write_file(self, owner, repo, path, content, message, branch="main", sha=None):
        self._call("write_file", path)
        files = dict(self._branch_files(branch))
        existing = files.get(path)
        if path in self._directories(files):
            raise UnprocessableError(f"{path} is a directory", 422)
        if existing and sha is None:
            raise UnprocessableError("sha wasn't supplied", 422)
        if existing and sha != existing.sha:
            raise ConflictError(f"{path} does not match {sha}", 409)
        if not existing and sha is not None:
            raise ConflictError(f"{path} does not exist", 409)
        files[path] = self._blob_entry(path, content, existing.mode if existing else "100644")
        self._commit_files(branch, files, message)
        return files[path].sha

    @_synchronized
    def delete_file(self, owner, repo, path, sha, message, branch="main"):
        self._call("delete_file", path)
        files = dict(self._branch_files(branch))
        if path not in files:
            raise NotFoundError(f"No file {path}", 404)
        if files[path].sha != sha:
            raise ConflictError(f"{path} does not match {sha}", 409)
        del files[path]
        self._commit_files(branch, files, message)

    # ---------------------------------------------------------------- git data API

    @_synchronized
    def get_tree(self, owner, repo, tree_ish, recursive=False):
        self._call("get_tree", tree_ish)
        files = self._resolve_tree(tree_ish)
        entries = list(files.values())
        entries += [
            GitTreeEntry(path=d, mode="040000", type="tree", sha=_digest("tree", d))
            for d in self._directories(files)
        ]
        if not recursive:
            entries = [e for e in entries if "/" not in e.path]
        entries.sort(key=lambda e: e.path)
        return GitTree(sha=_digest("listing", tree_ish), tree=entries, truncated=self.truncated)

    @_synchronized
    def get_branch_tip(self, owner, repo, branch):
        self._call("get_branch_tip", branch)
        if branch not in self.branches:
            raise NotFoundError(f"No branch {branch}", 404)
        return self.branches[branch]

    @_synchronized
    def get_commit(self, owner, repo, sha):
        self._call("get_commit", sha)
        if sha not in self.commits:
            raise NotFoundError(f"No commit {sha}", 404)
        return self.commits[sha]

    @_synchronized
    def create_tree(self, owner, repo, entries):
        self._call("create_tree", None)
        for entry in entries:
            if entry.type == "blob" and entry.sha not in self.blobs:
                raise UnprocessableError(f"Unknown blob {entry.sha}", 422)
        return self._store_tree({entry.path: entry for entry in entries})

    @_synchronized
    def create_commit(self, owner, repo, tree_sha, parents, message):
        self._call("create_commit", tree_sha)
        if tree_sha not in self.trees:
            raise UnprocessableError(f"Unknown tree {tree_sha}", 422)
        commit = GitCommit(sha=_digest(tree_sha, tuple(parents), message), tree_sha=tree_sha, parents=parents, message=message)
        self.commits[commit.sha] = commit
        return commit.sha

    @_synchronized
    def update_branch_ref(self, owner, repo, branch, sha):
        self._call("update_branch_ref", branch)
        if self.branches[branch] not in self.commits[sha].parents:
            raise ConflictError(f"Branch {branch} changed concurrently", 422)
        self.branches[branch] = sha

    @_synchronized
    def list_branches(self, owner, repo):
        self._call("list_branches", None)
        return [Branch(name=name, sha=sha) for name, sha in self.branches.items()]

    @_synchronized
    def create_pull_request(self, owner, repo, title, head, base, body=""):
        self._call("create_pull_request", None)
        if head not in self.branches or base not in self.branches:
            raise UnprocessableError("Unknown branch", 422)
        pr = PullRequest(
            number=len(self.pull_requests) + 1,
            html_url=f"https://github.com/{owner}/{repo}/pull/{len(self.pull_requests) + 1}",
            title=title,
        )
        self.pull_requests.append(pr)
        return pr

    # ---------------------------------------------------------------- repositories

    @_synchronized
    def get_authenticated_user(self):
        self._call("get_authenticated_user", None)
        return self.login

    @_synchronized
    def list_repositories(self, sort="updated"):
        self._call("list_repositories", sort)
        return list(self.repositories)

    @_synchronized
    def repository_exists(self, owner, repo):
        self._call("repository_exists", repo)
        return any(r.owner == owner and r.name == repo for r in self.repositories)

    @_synchronized
    def get_readme(self, owner, repo, ref=None):
        self._call("get_readme", None)
        files = self._branch_files(ref or "main")
        for path in sorted(files):
            if "/" not in path and path.lower().startswith("readme"):
                data = self.blobs[files[path].sha]
                return GitHubFile(name=path, path=path, sha=files[path].sha, size=len(data), content=data)
        return None


@pytest.fixture
def coordinate():
    return RepositoryCoordinate(owner="octocat", repo="hello-world", ref="main")


@pytest.fixture
def host():
    """Repository with a small nested layout."""
    return FakeHost(
        {
            "readme.md": b"# hello\n",
            "src/utils/a.js": b"export const a = 1;\n",
            "src/utils/nested/b.js": b"export const b = 2;\n",
            "src/main.js": b"import './utils/a.js';\n",
            "docs/old/a.md": b"old docs\n",
            "docs/new/b.md": b"new docs\n",
        }
    )
