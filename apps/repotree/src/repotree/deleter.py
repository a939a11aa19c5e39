"""Deletion of files and whole folders."""

import logging

from gh import GitHubAPIError, GitTreeEntry, NotFoundError

from .errors import DirectoryDeleteError, TreeTruncatedError
from .models import RepositoryCoordinate
from .protocols import RepositoryHost

logger = logging.getLogger(__name__)


def without_prefix(entries: list[GitTreeEntry], path: str) -> list[GitTreeEntry]:
    """
    Entries to keep when deleting path.

    Drops path itself and everything below it, and all tree entries (GitHub
    derives directories from the remaining paths). Kept entries are returned
    unchanged, so their blob shas are reused and nothing is uploaded again.
    """
    prefix = path + "/"
    return [
        entry
        for entry in entries
        if entry.type != "tree" and entry.path != path and not entry.path.startswith(prefix)
    ]


class DirectoryDeleter:
    """Deletes files through the contents API and folders by rewriting the tree."""

    def __init__(self, host: RepositoryHost):
        self.host = host

    def delete_file(self, coordinate: RepositoryCoordinate, path: str, content_id: str) -> None:
        """Delete one file; content_id must match its current blob sha."""
        logger.info("Deleting file %s on %s", path, coordinate)
        self.host.delete_file(
            coordinate.owner, coordinate.repo, path, content_id, f"Delete {path}", coordinate.ref
        )

    def delete_directory(self, coordinate: RepositoryCoordinate, path: str) -> str:
        """
        Delete a folder and everything in it with a single commit.

        The branch ref is updated only after the new tree and commit exist, so
        any earlier failure leaves the branch untouched.

        Args:
            coordinate: Repository and branch
            path: Folder to delete

        Returns:
            Sha of the new commit

        Raises:
            DirectoryDeleteError: If any step fails; `stage` names the step
        """
        owner, repo, branch = coordinate.owner, coordinate.repo, coordinate.ref
        logger.info("Deleting directory %s on %s", path, coordinate)

        stage = "resolve_ref"
        try:
            tip = self.host.get_branch_tip(owner, repo, branch)

            stage = "read_commit"
            commit = self.host.get_commit(owner, repo, tip)

            stage = "read_tree"
            tree = self.host.get_tree(owner, repo, commit.tree_sha, recursive=True)
            if tree.truncated:
                # A tree built from a partial listing would silently drop files
                raise TreeTruncatedError(f"Tree {commit.tree_sha} listing is truncated")

            stage = "filter"
            kept = without_prefix(tree.tree, path)
            removed = sum(1 for entry in tree.tree if entry.type != "tree") - len(kept)
            if removed == 0:
                raise NotFoundError(f"Directory not found: {path}", 404)
            logger.debug("Removing %d files under %s, keeping %d", removed, path, len(kept))

            stage = "create_tree"
            new_tree = self.host.create_tree(owner, repo, kept)

            stage = "create_commit"
            new_commit = self.host.create_commit(
                owner, repo, new_tree, [tip], f"Delete directory {path}"
            )

            stage = "update_ref"
            self.host.update_branch_ref(owner, repo, branch, new_commit)
        except (GitHubAPIError, TreeTruncatedError) as e:
            logger.error("Directory delete of %s failed at %s: %s", path, stage, e)
            raise DirectoryDeleteError(path, stage, e) from e

        logger.info("Directory %s deleted in commit %s", path, new_commit)
        return new_commit
