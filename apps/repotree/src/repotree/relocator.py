"""Single-file relocation: copy to the new path, then delete the old one."""

import logging

from .errors import RelocationError
from .models import MoveStatus, RepositoryCoordinate
from .protocols import RepositoryHost

logger = logging.getLogger(__name__)


class Relocator:
    """Moves one file at a time.

    Steps always run in the order read, lookup, write, delete. The source is
    deleted only after the write is confirmed, so a failure part way through
    leaves the file duplicated, never lost.
    """

    def __init__(self, host: RepositoryHost):
        self.host = host

    def relocate(
        self,
        coordinate: RepositoryCoordinate,
        source_path: str,
        source_content_id: str,
        dest_path: str,
    ) -> MoveStatus:
        """
        Move a file from source_path to dest_path on the coordinate's branch.

        Args:
            coordinate: Repository and branch
            source_path: Current file path
            source_content_id: Blob sha the caller saw; guards the delete
            dest_path: New file path

        Returns:
            MoveStatus.MOVED, or MoveStatus.SKIPPED when the paths are equal

        Raises:
            RelocationError: If any step fails; `stage` names the step
        """
        if source_path == dest_path:
            logger.info("Skipping no-op move for %s", source_path)
            return MoveStatus.SKIPPED

        owner, repo, branch = coordinate.owner, coordinate.repo, coordinate.ref
        logger.info("Moving %s -> %s on %s", source_path, dest_path, coordinate)

        try:
            source = self.host.read_file(owner, repo, source_path, branch)
        except Exception as e:
            logger.error("Failed to read %s: %s", source_path, e)
            raise RelocationError(source_path, dest_path, "read", e) from e

        try:
            existing_sha = self.host.get_file_sha(owner, repo, dest_path, branch)
        except Exception as e:
            logger.error("Failed to look up %s: %s", dest_path, e)
            raise RelocationError(source_path, dest_path, "lookup", e) from e
        if existing_sha:
            logger.debug("Destination %s exists (%s), updating in place", dest_path, existing_sha)

        try:
            self.host.write_file(
                owner,
                repo,
                dest_path,
                source.content,
                f"Move {source_path} to {dest_path}",
                branch,
                sha=existing_sha,
            )
        except Exception as e:
            logger.error("Failed to write %s, source left untouched: %s", dest_path, e)
            raise RelocationError(source_path, dest_path, "write", e) from e

        try:
            self.host.delete_file(
                owner,
                repo,
                source_path,
                source_content_id,
                f"Delete old file {source_path}",
                branch,
            )
        except Exception as e:
            logger.error("Copied to %s but failed to delete %s (duplicated): %s", dest_path, source_path, e)
            raise RelocationError(source_path, dest_path, "delete", e) from e

        logger.debug("Moved %s -> %s", source_path, dest_path)
        return MoveStatus.MOVED
