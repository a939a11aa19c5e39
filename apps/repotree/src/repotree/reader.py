"""Tree reader: resolves paths and subtrees to entries at a ref."""

import logging

from gh import GitHubContent, GitTreeEntry, NotFoundError

from .models import EntryKind, FolderListing, RepositoryCoordinate, TreeEntry, TreeListing
from .protocols import RepositoryHost

logger = logging.getLogger(__name__)

SYMLINK_MODE = "120000"

# Submodules have no content to move and are skipped.
_CONTENT_KINDS = {
    "file": EntryKind.FILE,
    "dir": EntryKind.DIRECTORY,
}
_TREE_KINDS = {
    "blob": EntryKind.FILE,
    "tree": EntryKind.DIRECTORY,
}


def _from_content(item: GitHubContent) -> TreeEntry | None:
    if item.type == "symlink":
        return TreeEntry(path=item.path, content_id=item.sha, kind=EntryKind.FILE, mode=SYMLINK_MODE)
    kind = _CONTENT_KINDS.get(item.type)
    if kind is None:
        logger.debug("Skipping %s entry: %s", item.type, item.path)
        return None
    return TreeEntry(path=item.path, content_id=item.sha, kind=kind)


def _from_tree(item: GitTreeEntry) -> TreeEntry | None:
    kind = _TREE_KINDS.get(item.type)
    if kind is None:
        logger.debug("Skipping %s entry: %s", item.type, item.path)
        return None
    return TreeEntry(path=item.path, content_id=item.sha, kind=kind, mode=item.mode)


class TreeReader:
    """Read-only views of a repository tree. Errors propagate; nothing is retried here."""

    def __init__(self, host: RepositoryHost):
        self.host = host

    def list_directory(self, coordinate: RepositoryCoordinate, path: str = "") -> list[TreeEntry]:
        """
        List the direct children of a directory.

        Args:
            coordinate: Repository and ref
            path: Directory path (empty for root)

        Returns:
            Entries in host order

        Raises:
            NotFoundError: If the ref or path does not exist
        """
        logger.info("Listing %s:%s", coordinate, path or "/")
        contents = self.host.get_contents(coordinate.owner, coordinate.repo, path, coordinate.ref)
        entries = [entry for entry in map(_from_content, contents) if entry is not None]
        logger.debug("Listed %d entries under %s", len(entries), path or "/")
        return entries

    def list_tree(self, coordinate: RepositoryCoordinate) -> TreeListing:
        """Every entry of the ref, flattened. Check `truncated` before trusting absence."""
        logger.info("Listing full tree of %s", coordinate)
        tree = self.host.get_tree(coordinate.owner, coordinate.repo, coordinate.ref, recursive=True)
        entries = [entry for entry in map(_from_tree, tree.tree) if entry is not None]
        if tree.truncated:
            logger.warning("Tree listing of %s is truncated (%d entries)", coordinate, len(entries))
        return TreeListing(entries=entries, truncated=tree.truncated)

    def list_folders(self, coordinate: RepositoryCoordinate) -> FolderListing:
        """Sorted folder paths of the ref; empty when the ref does not exist."""
        try:
            listing = self.list_tree(coordinate)
        except NotFoundError:
            logger.info("No tree for %s, returning no folders", coordinate)
            return FolderListing()
        folders = sorted(entry.path for entry in listing.entries if entry.is_dir)
        logger.info("Found %d folders in %s", len(folders), coordinate)
        return FolderListing(folders=folders, truncated=listing.truncated)

    def files_under(self, coordinate: RepositoryCoordinate, dir_path: str) -> list[TreeEntry]:
        """
        Every file transitively under a directory.

        Uses one recursive tree request. If GitHub truncates it, the subtree is
        walked directory by directory so no file is missed.
        """
        listing = self.list_tree(coordinate)
        if listing.truncated:
            logger.warning("Falling back to directory walk for %s", dir_path)
            return self._walk(coordinate, dir_path)

        prefix = dir_path + "/"
        files = [entry for entry in listing.files if entry.path.startswith(prefix)]
        if not files and not any(entry.path == dir_path and entry.is_dir for entry in listing.entries):
            raise NotFoundError(f"Directory not found: {dir_path}", 404)
        logger.debug("Found %d files under %s", len(files), dir_path)
        return files

    def _walk(self, coordinate: RepositoryCoordinate, dir_path: str) -> list[TreeEntry]:
        directory = self.host.get_directory_tree(
            coordinate.owner, coordinate.repo, dir_path, coordinate.ref, recursive=True
        )
        entries = [entry for entry in map(_from_content, directory.items) if entry is not None]
        return [entry for entry in entries if entry.kind == EntryKind.FILE]
