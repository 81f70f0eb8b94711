import csv
import logging
from pathlib import Path
from typing import Iterable, Optional

from tqdm import tqdm

from .models import Action, RunStats


class ProgressReporter:
    """
    Observer the engine calls after each unit of work. The base class is silent.
    """

    def start(self, phase: str, total: int):
        pass

    def update(self, stats: RunStats):
        pass

    def close(self):
        pass


class TqdmReporter(ProgressReporter):
    """Console progress bar per phase, with the phase counters as postfix."""

    PHASE_COUNTERS = {
        'sorted': ('sorted_registered', 'sorted_duplicates', 'sorted_conflicts'),
        'incoming': ('registered', 'removed', 'duplicates', 'conflicts', 'unclassifiable'),
    }

    def __init__(self):
        self.bar: Optional[tqdm] = None
        self.phase = None

    def start(self, phase: str, total: int):
        self.close()
        self.phase = phase
        self.bar = tqdm(total=total, desc=f"Reconciling {phase}", unit="group")

    def update(self, stats: RunStats):
        if self.bar is None:
            return
        counters = stats.as_dict()
        keys = self.PHASE_COUNTERS.get(self.phase, ())
        self.bar.set_postfix({k: counters[k] for k in keys}, refresh=False)
        self.bar.update(1)

    def close(self):
        if self.bar is not None:
            self.bar.close()
            self.bar = None


def log_summary(stats: RunStats, cancelled: bool = False):
    s = stats
    logging.info(
        f"Sorted:   scanned {s.known}, registered {s.sorted_registered}, "
        f"duplicates {s.sorted_duplicates}, conflicts {s.sorted_conflicts}"
    )
    logging.info(
        f"Incoming: scanned {s.scanned}, new {s.registered}, removed {s.removed}, "
        f"duplicates {s.duplicates}, conflicts {s.conflicts}, not media {s.unclassifiable}"
    )
    if s.errors:
        logging.warning(f"{s.errors} files could not be processed and were left in place")
    if cancelled:
        logging.warning("Run was cancelled before all files were processed")


class ActionReport:
    """Writes the moves of a run as CSV."""

    HEADERS = ["Action", "Source Path", "Destination Path", "Moved", "Notes"]

    def __init__(self, output_csv: Path):
        self.output_csv = output_csv

    def write(self, actions: Iterable[Action]) -> int:
        count = 0
        self.output_csv.parent.mkdir(parents=True, exist_ok=True)
        with open(self.output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(self.HEADERS)
            for action in actions:
                writer.writerow([
                    action.kind,
                    action.source,
                    action.destination,
                    "yes" if action.done else "no",
                    action.note,
                ])
                count += 1
        logging.info(f"Report complete: {count} actions written to {self.output_csv}")
        return count
