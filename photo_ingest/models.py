from dataclasses import dataclass, field, asdict
from datetime import datetime
from pathlib import Path, PurePath
from typing import List, Optional

from . import config


@dataclass
class Record:
    """
    One content identity known to the engine.

    `paths` holds byte-identical copies; the first entry is canonical.
    `rel_path` is only set on freshly scanned records (path below the
    scanned root) and is never persisted.
    """
    hash: str
    paths: List[str] = field(default_factory=list)
    camera: str = config.UNKNOWN_CAMERA
    timestamp: Optional[datetime] = None
    sorted: bool = False
    rel_path: Optional[str] = None

    @property
    def canonical_path(self) -> Optional[str]:
        return self.paths[0] if self.paths else None

    @property
    def ext(self) -> str:
        name = self.rel_path or self.canonical_path or ""
        return PurePath(name).suffix

    def target_dir(self) -> str:
        """Destination directory relative to Storage: camera/YYYY-MM-DD."""
        return config.TARGET_DIR_PATTERN.format(camera=self.camera, ts=self.timestamp)

    def target_file(self, dup: int = 0) -> str:
        """Destination file name; dup > 0 adds a numeric suffix."""
        stem = config.TARGET_FILE_PATTERN.format(ts=self.timestamp)
        if dup:
            stem = f"{stem}-{dup}"
        return f"{stem}{self.ext}"


@dataclass
class Action:
    """A filesystem move decided by the reconciler."""
    kind: str               # new/trash/duplicate/conflict/unclassifiable
    source: str
    destination: str
    note: str = ""
    done: bool = False


@dataclass
class RunStats:
    """Counters exposed to progress reporters."""
    scanned: int = 0
    known: int = 0
    registered: int = 0
    removed: int = 0
    duplicates: int = 0
    conflicts: int = 0
    unclassifiable: int = 0
    sorted_registered: int = 0
    sorted_duplicates: int = 0
    sorted_conflicts: int = 0
    errors: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class StorageLayout:
    """The fixed folder layout under the storage root."""
    root: Path
    catalog_file: Optional[Path] = None

    def __post_init__(self):
        if self.catalog_file is None:
            self.catalog_file = self.root / config.CATALOG_FILE

    @property
    def incoming(self) -> Path:
        return self.root / config.INCOMING_FOLDER

    @property
    def storage(self) -> Path:
        return self.root / config.STORAGE_FOLDER

    @property
    def sorted(self) -> Path:
        return self.root / config.SORTED_FOLDER

    @property
    def conflicts(self) -> Path:
        return self.root / config.CONFLICT_FOLDER

    @property
    def duplicates(self) -> Path:
        return self.root / config.DUPLICATE_FOLDER

    @property
    def trash(self) -> Path:
        return self.root / config.TRASHBIN_FOLDER

    @property
    def no_media(self) -> Path:
        return self.root / config.NO_MEDIA_FOLDER
