"""Repository management operations exposed to callers."""

import base64
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from gh import Branch, GitHubAPIError, GitHubClient, PullRequest, Repository

from .deleter import DirectoryDeleter
from .errors import (
    DirectoryDeleteError,
    RelocationError,
    RequestValidationError,
    describe_failure,
)
from .models import (
    DEFAULT_BRANCH,
    BrowseRequest,
    DeleteRequest,
    EntryKind,
    FileRequest,
    FileView,
    FolderListing,
    MoveRequest,
    MoveSummary,
    OperationResult,
    PullRequestRequest,
    ReadmeView,
    RenameRequest,
    RepositoryCoordinate,
    RepositoryNameCheck,
    RepositoryNameRequest,
    SaveFileRequest,
    TreeEntry,
    UploadFile,
    UploadRequest,
    UploadResult,
    UploadSummary,
)
from .mover import MoveOrchestrator
from .protocols import RepositoryHost
from .reader import TreeReader
from .relocator import Relocator

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def build_request(model: type[ModelT], **data: Any) -> ModelT:
    """Validate caller input, raising RequestValidationError with per-field details."""
    try:
        return model(**data)
    except ValidationError as e:
        details = [
            f"{'.'.join(str(part) for part in error['loc']) or model.__name__}: {error['msg']}"
            for error in e.errors()
        ]
        logger.warning("Invalid %s: %s", model.__name__, "; ".join(details))
        raise RequestValidationError("Invalid input", details) from e


def _coordinate(owner: str, repo: str, branch: str) -> dict[str, str]:
    return {"owner": owner, "repo": repo, "ref": branch}


class RepositoryManager:
    """Browse and reorganize the contents of one user's GitHub repositories."""

    def __init__(
        self,
        token: str | None = None,
        use_gh_cli: bool = False,
        max_retries: int = 3,
        base_url: str | None = None,
        timeout: float = 30.0,
        concurrency: int = 1,
        host: RepositoryHost | None = None,
    ):
        """
        Initialize the manager.

        Args:
            token: GitHub token (falls back to GH_TOKEN / GITHUB_TOKEN)
            use_gh_cli: Use gh cli credentials (requires user consent)
            max_retries: Attempts for read requests
            base_url: GitHub API base URL
            timeout: Request timeout in seconds
            concurrency: Parallel file relocations for independent batches
            host: Repository host to use instead of a GitHubClient
        """
        self.host = host or GitHubClient(
            token=token,
            base_url=base_url,
            timeout=timeout,
            use_gh_cli=use_gh_cli,
            max_retries=max_retries,
        )
        self.concurrency = max(1, concurrency)
        self.reader = TreeReader(self.host)
        self.relocator = Relocator(self.host)
        self.mover = MoveOrchestrator(
            self.host, concurrency=concurrency, reader=self.reader, relocator=self.relocator
        )
        self.deleter = DirectoryDeleter(self.host)

    # ============ Browsing ============

    def list_directory(
        self, owner: str, repo: str, path: str = "", branch: str = DEFAULT_BRANCH
    ) -> list[TreeEntry]:
        """Direct children of a folder."""
        request = build_request(BrowseRequest, path=path, coordinate=_coordinate(owner, repo, branch))
        return self.reader.list_directory(request.coordinate, request.path)

    def list_folders(self, owner: str, repo: str, branch: str = DEFAULT_BRANCH) -> FolderListing:
        """Every folder of the branch, for choosing a move destination."""
        coordinate = build_request(RepositoryCoordinate, **_coordinate(owner, repo, branch))
        listing = self.reader.list_folders(coordinate)
        if listing.truncated:
            logger.warning("Folder list for %s is incomplete (tree truncated)", coordinate)
        return listing

    def list_branches(self, owner: str, repo: str) -> list[Branch]:
        coordinate = build_request(RepositoryCoordinate, owner=owner, repo=repo)
        return self.host.list_branches(coordinate.owner, coordinate.repo)

    def view_file(self, owner: str, repo: str, path: str, branch: str = DEFAULT_BRANCH) -> FileView:
        """File content as text, or base64 when it is not valid UTF-8."""
        request = build_request(FileRequest, path=path, coordinate=_coordinate(owner, repo, branch))
        coordinate = request.coordinate
        file = self.host.read_file(coordinate.owner, coordinate.repo, request.path, coordinate.ref)
        try:
            text, binary = file.content.decode("utf-8"), False
        except UnicodeDecodeError:
            text, binary = base64.b64encode(file.content).decode("ascii"), True
        return FileView(path=file.path, content_id=file.sha, size=file.size, content=text, binary=binary)

    # ============ Editing ============

    def save_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: bytes | str,
        branch: str = DEFAULT_BRANCH,
        content_id: str | None = None,
        message: str | None = None,
    ) -> OperationResult:
        """Create a file, or update it when content_id is given."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        request = build_request(
            SaveFileRequest,
            path=path,
            content=content,
            content_id=content_id,
            message=message,
            coordinate=_coordinate(owner, repo, branch),
        )
        coordinate = request.coordinate
        default_message = f"Update {request.path}" if request.content_id else f"Create {request.path}"
        try:
            self.host.write_file(
                coordinate.owner,
                coordinate.repo,
                request.path,
                request.content,
                request.message or default_message,
                coordinate.ref,
                sha=request.content_id,
            )
        except GitHubAPIError as e:
            return OperationResult(success=False, error=describe_failure(e))
        logger.info("Saved %s on %s", request.path, coordinate)
        return OperationResult(success=True)

    def upload_files(
        self,
        owner: str,
        repo: str,
        files: list[dict[str, Any] | UploadFile],
        branch: str = DEFAULT_BRANCH,
        message: str | None = None,
    ) -> UploadSummary:
        """
        Create new files, each in its own commit.

        Every file succeeds or fails on its own; existing paths fail because
        no content id is sent.

        Raises:
            RequestValidationError: For malformed input, before any upload
        """
        request = build_request(
            UploadRequest,
            files=files,
            message=message,
            coordinate=_coordinate(owner, repo, branch),
        )
        coordinate = request.coordinate
        logger.info("Uploading %d files to %s", len(request.files), coordinate)

        def upload(file: UploadFile) -> UploadResult:
            try:
                self.host.write_file(
                    coordinate.owner,
                    coordinate.repo,
                    file.path,
                    file.content,
                    request.message or f"Upload {file.path}",
                    coordinate.ref,
                )
            except Exception as e:
                return UploadResult(path=file.path, success=False, error=describe_failure(e))
            logger.debug("Uploaded %s", file.path)
            return UploadResult(path=file.path, success=True)

        paths = [file.path for file in request.files]
        if self.concurrency > 1 and len(set(paths)) == len(paths):
            with ThreadPoolExecutor(max_workers=self.concurrency) as pool:
                results = list(pool.map(upload, request.files))
        else:
            results = [upload(file) for file in request.files]

        summary = UploadSummary(results=results)
        logger.info("Upload complete: %d/%d successful", summary.successful, len(results))
        return summary

    # ============ Tree mutations ============

    def move(
        self,
        owner: str,
        repo: str,
        items: list[dict[str, Any] | TreeEntry],
        destination: str = "",
        branch: str = DEFAULT_BRANCH,
    ) -> MoveSummary:
        """
        Move files and folders under destination ('' is the repository root).

        Raises:
            RequestValidationError: For malformed input or a folder moved into itself
        """
        request = build_request(
            MoveRequest,
            items=items,
            destination=destination,
            coordinate=_coordinate(owner, repo, branch),
        )
        return self.mover.move(request)

    def rename(
        self,
        owner: str,
        repo: str,
        path: str,
        new_path: str,
        content_id: str,
        branch: str = DEFAULT_BRANCH,
    ) -> OperationResult:
        """Rename a file within its folder."""
        request = build_request(
            RenameRequest,
            path=path,
            new_path=new_path,
            content_id=content_id,
            coordinate=_coordinate(owner, repo, branch),
        )
        try:
            self.relocator.relocate(request.coordinate, request.path, request.content_id, request.new_path)
        except RelocationError as e:
            return OperationResult(success=False, error=describe_failure(e))
        logger.info("Renamed %s to %s", request.path, request.new_path)
        return OperationResult(success=True)

    def delete(
        self,
        owner: str,
        repo: str,
        path: str,
        branch: str = DEFAULT_BRANCH,
        kind: EntryKind | str = EntryKind.FILE,
        content_id: str | None = None,
    ) -> OperationResult:
        """Delete a file (content_id required) or a whole folder."""
        request = build_request(
            DeleteRequest,
            path=path,
            kind=kind,
            content_id=content_id,
            coordinate=_coordinate(owner, repo, branch),
        )
        try:
            if request.kind == EntryKind.DIRECTORY:
                self.deleter.delete_directory(request.coordinate, request.path)
            else:
                self.deleter.delete_file(request.coordinate, request.path, request.content_id)
        except (GitHubAPIError, DirectoryDeleteError) as e:
            return OperationResult(success=False, error=describe_failure(e))
        return OperationResult(success=True)

    def delete_file(
        self, owner: str, repo: str, path: str, content_id: str, branch: str = DEFAULT_BRANCH
    ) -> OperationResult:
        return self.delete(owner, repo, path, branch, kind=EntryKind.FILE, content_id=content_id)

    def delete_directory(
        self, owner: str, repo: str, path: str, branch: str = DEFAULT_BRANCH
    ) -> OperationResult:
        return self.delete(owner, repo, path, branch, kind=EntryKind.DIRECTORY)

    # ============ Pull requests ============

    def create_pull_request(
        self, owner: str, repo: str, title: str, head: str, base: str = DEFAULT_BRANCH, body: str = ""
    ) -> PullRequest:
        request = build_request(
            PullRequestRequest,
            coordinate=_coordinate(owner, repo, base),
            title=title,
            head=head,
            base=base,
            body=body,
        )
        coordinate = request.coordinate
        pr = self.host.create_pull_request(
            coordinate.owner, coordinate.repo, request.title, request.head, request.base, request.body
        )
        logger.info("Created PR #%d: %s", pr.number, pr.html_url)
        return pr

    # ============ Repositories ============

    def list_repositories(self) -> list[Repository]:
        """Repositories of the authenticated user, most recently updated first."""
        return self.host.list_repositories(sort="updated")

    def get_readme(self, owner: str, repo: str) -> ReadmeView | None:
        """README text of a repository, or None when it has none."""
        coordinate = build_request(RepositoryCoordinate, owner=owner, repo=repo)
        readme = self.host.get_readme(coordinate.owner, coordinate.repo)
        if readme is None:
            return None
        return ReadmeView(
            name=readme.name,
            path=readme.path,
            content=readme.content.decode("utf-8", errors="replace"),
        )

    def check_repo_name(self, name: str) -> RepositoryNameCheck:
        """Whether the authenticated user already owns a repository called name."""
        request = build_request(RepositoryNameRequest, name=name)
        owner = self.host.get_authenticated_user()
        exists = self.host.repository_exists(owner, request.name)
        logger.info("Repository %s/%s %s", owner, request.name, "exists" if exists else "is available")
        return RepositoryNameCheck(name=request.name, exists=exists)
