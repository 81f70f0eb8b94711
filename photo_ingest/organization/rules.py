from collections import defaultdict
from pathlib import Path, PurePosixPath

from ..models import Record


class DestinationPlanner:
    """
    Computes where files go. Names are checked against the disk and against
    names already handed out in this run, so a dry run (where nothing lands
    on disk) still plans distinct names.
    """

    def __init__(self):
        self.used_names = defaultdict(set)

    def storage_destination(self, storage_root: Path, record: Record) -> Path:
        """
        camera/YYYY-MM-DD/HH-MM-SS[-N].ext with the smallest free N.
        """
        folder = storage_root / record.target_dir()
        dup = 0
        while not self._is_free(folder, record.target_file(dup)):
            dup += 1
        return self._reserve(folder, record.target_file(dup))

    def deposit_destination(self, bucket_root: Path, rel_path: str) -> Path:
        """
        Keeps the relative sub-path below the bucket. Never points at an
        existing file: an occupied name gets a -N suffix before the extension.
        """
        rel = PurePosixPath(rel_path)
        folder = bucket_root.joinpath(*rel.parent.parts)
        candidate = rel.name
        counter = 1
        while not self._is_free(folder, candidate):
            candidate = f"{rel.stem}-{counter}{rel.suffix}"
            counter += 1
        return self._reserve(folder, candidate)

    def _is_free(self, folder: Path, name: str) -> bool:
        if name in self.used_names[folder]:
            return False
        return not (folder / name).exists()

    def _reserve(self, folder: Path, name: str) -> Path:
        self.used_names[folder].add(name)
        return folder / name
