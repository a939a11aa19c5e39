"""Move orchestration for batches of files and folders."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from .errors import RelocationError, RequestValidationError, describe_failure
from .models import (
    EntryKind,
    MoveOutcome,
    MoveRequest,
    MoveStatus,
    MoveSummary,
    RepositoryCoordinate,
    TreeEntry,
    join_path,
)
from .protocols import RepositoryHost
from .reader import TreeReader
from .relocator import Relocator

logger = logging.getLogger(__name__)

# None is a file whose mode the caller did not state
MOVABLE_MODES = {None, "100644"}
UNSUPPORTED_MODE_MESSAGE = (
    "Files with mode {mode} cannot be moved without changing their type. The file was left in place."
)


@dataclass(frozen=True)
class PlannedMove:
    """One file relocation decided before any mutation."""

    source_path: str
    source_content_id: str
    dest_path: str


class MoveOrchestrator:
    """Expands folder moves into file relocations and runs them.

    A batch is validated as a whole, then every folder is enumerated, and
    only then are files relocated. Each file succeeds or fails on its own.
    """

    def __init__(
        self,
        host: RepositoryHost,
        concurrency: int = 1,
        reader: TreeReader | None = None,
        relocator: Relocator | None = None,
    ):
        self.reader = reader or TreeReader(host)
        self.relocator = relocator or Relocator(host)
        self.concurrency = max(1, concurrency)

    def validate(self, request: MoveRequest) -> None:
        """Reject folders moved onto themselves or into their own descendants."""
        destination = request.destination
        for item in request.items:
            if item.kind != EntryKind.DIRECTORY:
                continue
            if destination == item.path or destination.startswith(item.path + "/"):
                logger.error("Invalid move: %s into %s", item.path, destination)
                raise RequestValidationError(
                    f'Cannot move folder "{item.path}" into itself or its descendant "{destination}"'
                )

    def move(self, request: MoveRequest) -> MoveSummary:
        """
        Move every item of the request under its destination folder.

        Raises:
            RequestValidationError: Before any host call, for self-referential folder moves
        """
        self.validate(request)
        logger.info("Moving %d items to %s on %s", len(request.items), request.destination or "/", request.coordinate)

        plan = self._plan(request.coordinate, request.items, request.destination)
        outcomes = self._execute(request.coordinate, plan)
        summary = MoveSummary(outcomes=outcomes)

        logger.info(
            "Move complete: %d moved, %d skipped, %d failed",
            summary.moved, summary.skipped, summary.failed,
        )
        return summary

    def move_directory(
        self, dir_path: str, destination_parent: str, coordinate: RepositoryCoordinate
    ) -> list[MoveOutcome]:
        """Move one folder, keeping its name and inner structure, under destination_parent."""
        request = MoveRequest(
            items=[TreeEntry(path=dir_path, kind=EntryKind.DIRECTORY)],
            destination=destination_parent,
            coordinate=coordinate,
        )
        return self.move(request).outcomes

    def _plan(
        self, coordinate: RepositoryCoordinate, items: list[TreeEntry], destination: str
    ) -> list[PlannedMove | MoveOutcome]:
        plan: list[PlannedMove | MoveOutcome] = []
        for item in items:
            if item.kind == EntryKind.FILE:
                plan.append(self._plan_file(item, join_path(destination, item.name)))
                continue

            in_place = destination == item.parent
            target_dir = join_path(destination, item.name)
            try:
                files = self.reader.files_under(coordinate, item.path)
            except Exception as e:
                if in_place:
                    logger.info("Skipping directory already in destination: %s", item.path)
                    plan.append(
                        MoveOutcome(source_path=item.path, dest_path=item.path, status=MoveStatus.SKIPPED)
                    )
                    continue
                logger.error("Failed to list %s: %s", item.path, e)
                plan.append(
                    MoveOutcome(
                        source_path=item.path,
                        dest_path=target_dir,
                        status=MoveStatus.FAILED,
                        detail=describe_failure(e),
                    )
                )
                continue

            logger.info("Moving directory %s with %d files to %s", item.path, len(files), target_dir)
            for entry in files:
                relative = entry.path[len(item.path) + 1:]
                plan.append(self._plan_file(entry, f"{target_dir}/{relative}"))
        return plan

    @staticmethod
    def _plan_file(entry: TreeEntry, dest_path: str) -> PlannedMove | MoveOutcome:
        # The contents API writes regular files only
        if entry.path != dest_path and entry.mode not in MOVABLE_MODES:
            logger.warning("Not moving %s: mode %s would be lost", entry.path, entry.mode)
            return MoveOutcome(
                source_path=entry.path,
                dest_path=dest_path,
                status=MoveStatus.FAILED,
                detail=UNSUPPORTED_MODE_MESSAGE.format(mode=entry.mode),
            )
        return PlannedMove(entry.path, entry.content_id, dest_path)

    def _execute(
        self, coordinate: RepositoryCoordinate, plan: list[PlannedMove | MoveOutcome]
    ) -> list[MoveOutcome]:
        def run(step: PlannedMove | MoveOutcome) -> MoveOutcome:
            if isinstance(step, MoveOutcome):
                return step
            return self._relocate(coordinate, step)

        if self.concurrency > 1 and _independent(plan):
            logger.debug("Relocating %d files with %d workers", len(plan), self.concurrency)
            with ThreadPoolExecutor(max_workers=self.concurrency) as pool:
                return list(pool.map(run, plan))
        return [run(step) for step in plan]

    def _relocate(self, coordinate: RepositoryCoordinate, step: PlannedMove) -> MoveOutcome:
        try:
            status = self.relocator.relocate(
                coordinate, step.source_path, step.source_content_id, step.dest_path
            )
        except RelocationError as e:
            return MoveOutcome(
                source_path=step.source_path,
                dest_path=step.dest_path,
                status=MoveStatus.FAILED,
                detail=describe_failure(e),
            )
        return MoveOutcome(source_path=step.source_path, dest_path=step.dest_path, status=status)


def _independent(plan: list[PlannedMove | MoveOutcome]) -> bool:
    """True when no path is touched by more than one planned move."""
    seen: set[str] = set()
    for step in plan:
        if not isinstance(step, PlannedMove) or step.source_path == step.dest_path:
            continue
        for path in (step.source_path, step.dest_path):
            if path in seen:
                return False
            seen.add(path)
    return True
