"""
Turns scanned batches into moves and catalog mutations.

Phase A reconciles the curated (sorted) tree into the catalog and seeds the
target directory index. Phase B classifies each incoming hash group:

    non-media          -> NoImages
    bytes differ       -> Conflicts (whole group, nothing registered)
    extra copies       -> Trashbin (all but the first file)
    known, same bytes  -> Trashbin
    known, other bytes -> Conflicts
    target dir marked  -> Duplicates (pending review)
    otherwise          -> Storage/camera/day, registered

Phase B never marks target directories: only curated placements seed the
index, so repeated imports into a fresh directory keep registering.
"""
import logging
from pathlib import Path
from typing import Dict, List, Optional

from . import config
from .cancel import CancelToken
from .catalog import Catalog
from .exceptions import FileCompareError, FileOperationError
from .models import Action, Record, RunStats, StorageLayout
from .organization.mover import FileMover
from .organization.rules import DestinationPlanner
from .reporting import ProgressReporter
from .scanning.compare import files_equal, group_equal


class Reconciler:
    def __init__(self,
                 catalog: Catalog,
                 layout: StorageLayout,
                 mover: Optional[FileMover] = None,
                 planner: Optional[DestinationPlanner] = None,
                 reporter: Optional[ProgressReporter] = None,
                 stats: Optional[RunStats] = None,
                 cancel: Optional[CancelToken] = None,
                 sorted_duplicate_policy: str = config.DEFAULT_SORTED_DUPLICATE_POLICY):
        if sorted_duplicate_policy not in config.SORTED_DUPLICATE_POLICIES:
            raise ValueError(f"unknown sorted duplicate policy: {sorted_duplicate_policy}")
        self.catalog = catalog
        self.layout = layout
        self.mover = mover or FileMover()
        self.planner = planner or DestinationPlanner()
        self.reporter = reporter or ProgressReporter()
        self.stats = stats or RunStats()
        self.cancel = cancel
        self.sorted_duplicate_policy = sorted_duplicate_policy
        self.actions: List[Action] = []

    @property
    def cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.cancelled

    # --- Phase A ---

    def reconcile_sorted(self, groups: Dict[str, List[Record]]) -> bool:
        """
        Merges curated files into the catalog. Nothing is moved.
        Returns False when cancelled before every group was handled.
        """
        self.reporter.start('sorted', len(groups))
        for hash_value, records in groups.items():
            if self.cancelled:
                return False
            if hash_value == config.EMPTY_HASH:
                for rec in records:
                    logging.error(f"Not a media file in sorted tree: {rec.paths[0]}")
                self.reporter.update(self.stats)
                continue

            for rec in records:
                self._reconcile_sorted_record(hash_value, rec)
            self.reporter.update(self.stats)
        return True

    def _reconcile_sorted_record(self, hash_value: str, rec: Record):
        new_path = rec.paths[0]
        existing = self.catalog.lookup(hash_value)
        self.catalog.mark_target_dir(rec.target_dir(), hash_value, new_path)

        if existing is None:
            logging.info(f"Register: {new_path}")
            self.catalog.register(Record(
                hash=hash_value,
                paths=[new_path],
                camera=rec.camera,
                timestamp=rec.timestamp,
                sorted=True,
            ))
            self.stats.sorted_registered += 1
            return

        if not self.catalog.has_copy_on_disk(hash_value):
            # Every catalogued copy was moved away, most likely into Sorted by hand
            stale = self.catalog.relocate(hash_value, new_path)
            logging.warning(f"Catalogued copy missing, now tracked at {new_path}: {', '.join(stale)}")
            self.stats.sorted_registered += 1
            return

        reference = self.catalog.reference_path(hash_value)
        try:
            equal = files_equal(reference, new_path)
        except FileCompareError as e:
            logging.error(f"Error processing sorted: {e}")
            self.stats.errors += 1
            return

        if not equal:
            self.stats.sorted_conflicts += 1
            logging.warning(f"Hash conflict: {reference}, {new_path}")
            return

        self.stats.sorted_duplicates += 1
        if self.sorted_duplicate_policy == 'merge':
            logging.info(f"Duplicate merged: {reference}, {new_path}")
            self.catalog.merge_duplicate(hash_value, new_path, sorted_copy=True)
        else:
            logging.warning(f"Duplicate: {reference}, {new_path}")

    # --- Phase B ---

    def classify_incoming(self, groups: Dict[str, List[Record]]) -> bool:
        """
        Classifies every incoming group. Groups are independent; a group is
        always handled completely once started.
        Returns False when cancelled before every group was handled.
        """
        self.reporter.start('incoming', len(groups))
        for hash_value, records in groups.items():
            if self.cancelled:
                return False
            self.classify_group(hash_value, records)
            self.reporter.update(self.stats)
        return True

    def classify_group(self, hash_value: str, records: List[Record]):
        if hash_value == config.EMPTY_HASH:
            for rec in records:
                logging.info(f"Not an image: {rec.paths[0]}")
                self.stats.unclassifiable += 1
                self._deposit('unclassifiable', rec, self.layout.no_media)
            return

        sources = [rec.paths[0] for rec in records]
        try:
            consistent = group_equal(*sources)
        except FileCompareError as e:
            logging.error(f"Error comparing incoming: {e}")
            self.stats.errors += 1
            return

        if not consistent:
            logging.warning("Conflict detected:")
            for rec in records:
                logging.warning(f"\t{rec.paths[0]}")
                self.stats.conflicts += 1
                self._deposit('conflict', rec, self.layout.conflicts, note="hash conflict within batch")
            return

        head, rest = records[0], records[1:]
        if rest:
            logging.info(f"Duplicates with {head.paths[0]}:")
        for rec in rest:
            logging.info(f"\t{rec.paths[0]}")
            self.stats.removed += 1
            self._deposit('trash', rec, self.layout.trash, note=f"copy of {head.paths[0]}")

        if hash_value in self.catalog:
            self._classify_known(hash_value, head)
            return

        target_dir = head.target_dir()
        if self.catalog.is_target_dir_marked(target_dir):
            sources = ", ".join(self.catalog.target_dir_sources(target_dir))
            logging.info(
                f"Folder {target_dir} already found at {sources}\n"
                f"\tpotential duplicate {head.paths[0]}"
            )
            self.stats.duplicates += 1
            self._deposit('duplicate', head, self.layout.duplicates, note=f"target folder {target_dir} exists")
            return

        self._register_new(hash_value, head)

    def _classify_known(self, hash_value: str, head: Record):
        reference = self.catalog.reference_path(hash_value)
        try:
            equal = files_equal(reference, head.paths[0])
        except FileCompareError as e:
            logging.error(f"Error processing incoming: {e}")
            self.stats.errors += 1
            return

        if equal:
            logging.info(f"Duplicate:\n\tcurrently moving {head.paths[0]}\n\tpreviously moved {reference}")
            self.stats.removed += 1
            self._deposit('trash', head, self.layout.trash, note=f"copy of {reference}")
        else:
            logging.warning(f"Conflict:\n\tcurrently moving {head.paths[0]}\n\tpreviously moved {reference}")
            self.stats.conflicts += 1
            self._deposit('conflict', head, self.layout.conflicts, note=f"hash conflict with {reference}")

    def _register_new(self, hash_value: str, head: Record):
        dest = self.planner.storage_destination(self.layout.storage, head)
        logging.info(f"New file {dest}")
        if not self._move('new', head, dest):
            return
        self.catalog.register(Record(
            hash=hash_value,
            paths=[str(dest)],
            camera=head.camera,
            timestamp=head.timestamp,
            sorted=False,
        ))
        self.stats.registered += 1

    # --- Moves ---

    def _deposit(self, kind: str, rec: Record, bucket: Path, note: str = "") -> bool:
        """Moves a file into a bucket keeping its path relative to the scanned root."""
        rel_path = rec.rel_path or Path(rec.paths[0]).name
        dest = self.planner.deposit_destination(bucket, rel_path)
        return self._move(kind, rec, dest, note)

    def _move(self, kind: str, rec: Record, dest: Path, note: str = "") -> bool:
        action = Action(kind=kind, source=rec.paths[0], destination=str(dest), note=note)
        self.actions.append(action)
        try:
            self.mover.move(Path(rec.paths[0]), dest)
        except FileOperationError as e:
            logging.error(f"Error moving: {e}")
            action.note = f"{note}; failed: {e}" if note else f"failed: {e}"
            self.stats.errors += 1
            return False
        action.done = not self.mover.dry_run
        return True
