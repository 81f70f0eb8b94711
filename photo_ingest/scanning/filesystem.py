import os
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Set, Optional, Dict, List

from tqdm import tqdm

from .. import config
from ..cancel import CancelToken
from ..exceptions import NotMediaError
from ..models import Record
from ..metadata.extract import MetadataExtractor
from .hasher import FileHasher


@dataclass
class ScanResult:
    """Records grouped by content hash. Non-media files share the empty hash."""
    groups: Dict[str, List[Record]] = field(default_factory=lambda: defaultdict(list))
    total: int = 0
    errors: Dict[str, Exception] = field(default_factory=dict)
    cancelled: bool = False


class DiskScanner:
    def __init__(self,
                 extractor: Optional[MetadataExtractor] = None,
                 hasher: Optional[FileHasher] = None,
                 show_progress: bool = False):
        self.metadata = extractor or MetadataExtractor()
        self.hasher = hasher or FileHasher()
        self.show_progress = show_progress

    def scan(self,
             root: Path,
             already_visited: Optional[Set[str]] = None,
             cancel: Optional[CancelToken] = None) -> ScanResult:
        """
        Lists every file under root (except already visited ones), then
        extracts metadata and hashes each of them.

        Per-file failures end up in `errors` and the file is skipped.
        On cancellation the partial result is returned with `cancelled` set.
        """
        already_visited = already_visited or set()
        result = ScanResult()

        if not root.is_dir():
            logging.info(f"Nothing to scan, {root} does not exist")
            return result

        logging.info(f"Listing {root}...")
        files = []
        for path in self._iter_files(root, result, cancel):
            if str(path) not in already_visited:
                files.append(path)

        if self._cancelled(cancel, result):
            return result

        logging.info(f"Found {len(files)} new entries in {root}, scanning...")
        for path in tqdm(files, desc=f"Scanning {root.name}", disable=not self.show_progress):
            if self._cancelled(cancel, result):
                break
            record = self._process_single_file(root, path, result)
            if record is not None:
                result.groups[record.hash].append(record)
                result.total += 1

        return result

    def _process_single_file(self, root: Path, path: Path, result: ScanResult) -> Optional[Record]:
        rel_path = path.relative_to(root).as_posix()
        try:
            camera, timestamp = self.metadata.extract(path)
        except NotMediaError:
            # Not media: never hashed, grouped under the empty hash
            return Record(hash=config.EMPTY_HASH, paths=[str(path)], rel_path=rel_path)
        except Exception as e:
            logging.error(f"Failed to read metadata of {path}: {e}")
            result.errors[str(path)] = e
            return None

        try:
            file_hash = self.hasher.compute_hash(path)
        except Exception as e:
            logging.error(f"Failed to hash {path}: {e}")
            result.errors[str(path)] = e
            return None

        return Record(
            hash=file_hash,
            paths=[str(path)],
            camera=camera,
            timestamp=timestamp,
            rel_path=rel_path,
        )

    def _iter_files(self, root: Path, result: ScanResult,
                    cancel: Optional[CancelToken]) -> Iterator[Path]:
        """Depth-first walker using os.scandir for speed."""
        stack = [root]
        while stack:
            if self._cancelled(cancel, result):
                return
            current = stack.pop()

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                logging.warning(f"Cannot list {current}: {e}")
                result.errors[str(current)] = e
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            for e in entries:
                if self._cancelled(cancel, result):
                    return
                if e.is_dir(follow_symlinks=False):
                    dirs.append(Path(e.path))
                elif e.is_file():
                    # File symlinks are followed, directory symlinks are not
                    yield Path(e.path)
                elif e.is_symlink() and not e.is_dir():
                    logging.warning(f"Broken link {e.path}")
                    result.errors[e.path] = FileNotFoundError(f"broken link: {e.path}")

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)

    @staticmethod
    def _cancelled(cancel: Optional[CancelToken], result: ScanResult) -> bool:
        if cancel is not None and cancel.cancelled:
            result.cancelled = True
        return result.cancelled
