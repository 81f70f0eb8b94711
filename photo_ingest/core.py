import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List

from . import config
from .cancel import CancelToken, ShutdownListener
from .catalog import Catalog
from .classifier import Reconciler
from .exceptions import FileOperationError
from .metadata.extract import MetadataExtractor
from .models import Action, RunStats, StorageLayout
from .organization.mover import FileMover
from .reporting import ProgressReporter, ActionReport, log_summary
from .scanning.filesystem import DiskScanner, ScanResult


@dataclass
class RunResult:
    stats: RunStats
    actions: List[Action] = field(default_factory=list)
    cancelled: bool = False
    saved: bool = False


class PhotoIngestApp:
    def __init__(self,
                 storage_root: Path,
                 catalog_path: Optional[Path] = None,
                 extractor: Optional[MetadataExtractor] = None,
                 reporter: Optional[ProgressReporter] = None,
                 cancel: Optional[CancelToken] = None,
                 sorted_duplicate_policy: str = config.DEFAULT_SORTED_DUPLICATE_POLICY,
                 dry_run: bool = False,
                 show_progress: bool = False):
        self.layout = StorageLayout(storage_root, catalog_path)
        self.extractor = extractor or MetadataExtractor()
        self.reporter = reporter or ProgressReporter()
        self.cancel = cancel or CancelToken()
        self.sorted_duplicate_policy = sorted_duplicate_policy
        self.dry_run = dry_run
        self.show_progress = show_progress

    def run(self, handle_signals: bool = False, report_csv: Optional[Path] = None) -> RunResult:
        """
        Executes one ingest run.
        1. Load the catalog (CorruptCatalogError aborts before anything moves)
        2. Scan Incoming and Sorted
        3. Phase A: reconcile Sorted into the catalog
        4. Phase B: classify Incoming
        5. Save the catalog, also when cancelled or failing midway
        """
        catalog = Catalog.load(self.layout.catalog_file)
        stats = RunStats()
        reconciler = Reconciler(
            catalog,
            self.layout,
            mover=FileMover(dry_run=self.dry_run),
            reporter=self.reporter,
            stats=stats,
            cancel=self.cancel,
            sorted_duplicate_policy=self.sorted_duplicate_policy,
        )
        result = RunResult(stats=stats, actions=reconciler.actions)

        listener = ShutdownListener(self.cancel) if handle_signals else nullcontext()
        try:
            with listener:
                self._process(catalog, reconciler, stats)
        finally:
            self.reporter.close()
            result.cancelled = self.cancel.cancelled
            result.saved = self._save(catalog)

        if report_csv:
            ActionReport(report_csv).write(result.actions)
        log_summary(stats, result.cancelled)
        return result

    def _process(self, catalog: Catalog, reconciler: Reconciler, stats: RunStats):
        scanner = DiskScanner(self.extractor, show_progress=self.show_progress)

        incoming = scanner.scan(self.layout.incoming, cancel=self.cancel)
        self._log_scan_errors("incoming", incoming)
        stats.scanned = incoming.total

        sorted_scan = scanner.scan(self.layout.sorted, catalog.sorted_paths, cancel=self.cancel)
        self._log_scan_errors("sorted", sorted_scan)
        stats.known = sorted_scan.total

        stats.errors += len(incoming.errors) + len(sorted_scan.errors)

        # Phase B relies on the directory index seeded by Phase A
        if not reconciler.reconcile_sorted(sorted_scan.groups):
            return
        reconciler.classify_incoming(incoming.groups)

    def _save(self, catalog: Catalog) -> bool:
        if self.dry_run:
            logging.info("[DRY RUN] Catalog not saved")
            return False
        try:
            catalog.save(self.layout.catalog_file)
        except FileOperationError as e:
            logging.error(f"Error saving catalog: {e}")
            return False
        return True

    @staticmethod
    def _log_scan_errors(label: str, scan: ScanResult):
        for path, err in scan.errors.items():
            logging.error(f"Error reading {label} {path}: {err}")
