"""
The persistent catalog: content hash -> Record, plus two derived indices.

  by_target_dir  camera/day directory -> hashes already resolved there
  sorted_paths   paths known to live in the curated tree

Only by_hash is persisted; the indices are rebuilt on load. The catalog is
owned by a single run and is not thread-safe.
"""
import logging
import os
import sqlite3
from pathlib import Path
from typing import Dict, Set, Optional, List

from . import config
from .database.db import DBManager
from .database.ops import CatalogOps
from .exceptions import CorruptCatalogError, DuplicateRegistrationError, FileOperationError
from .models import Record


class Catalog:
    def __init__(self):
        self.by_hash: Dict[str, Record] = {}
        self.by_target_dir: Dict[str, Set[str]] = {}
        self.sorted_paths: Set[str] = set()
        # Which record paths put a directory into by_target_dir (diagnostics only)
        self._dir_sources: Dict[str, Set[str]] = {}

    def __len__(self):
        return len(self.by_hash)

    def __contains__(self, hash_value: str) -> bool:
        return hash_value in self.by_hash

    # --- Lifecycle ---

    @classmethod
    def load(cls, path: Path) -> "Catalog":
        """
        Loads a saved catalog. A missing file is an empty catalog; anything
        unreadable raises CorruptCatalogError and nothing is loaded.
        """
        catalog = cls()
        if not path.exists():
            logging.info(f"No catalog at {path}, starting empty")
            return catalog

        try:
            with DBManager(path, create=False) as conn:
                ops = CatalogOps(conn)
                if not ops.has_schema():
                    raise CorruptCatalogError(f"{path} is not a photo catalog")
                records = ops.fetch_records()
        except sqlite3.DatabaseError as e:
            raise CorruptCatalogError(f"cannot read catalog {path}: {e}") from e
        except ValueError as e:
            raise CorruptCatalogError(f"bad value in catalog {path}: {e}") from e

        for rec in records:
            rec.paths = [p for p in rec.paths if p]
            if not rec.paths:
                logging.warning(f"Dropping catalog entry {rec.hash} without paths")
                continue
            catalog.by_hash[rec.hash] = rec

        catalog.rebuild_indices()
        logging.info(f"Loaded {len(catalog)} catalog entries")
        return catalog

    def save(self, path: Path):
        """Writes by_hash in one transaction. Raises FileOperationError on failure."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with DBManager(path) as conn:
                CatalogOps(conn).replace_records(self.by_hash.values())
        except (sqlite3.Error, OSError) as e:
            raise FileOperationError(f"save catalog {path}: {e}") from e
        logging.info(f"Saved {len(self)} catalog entries to {path}")

    def rebuild_indices(self):
        """Only curated (sorted) records seed the target directory index."""
        self.by_target_dir.clear()
        self._dir_sources.clear()
        self.sorted_paths.clear()
        for rec in self.by_hash.values():
            if not rec.sorted:
                continue
            self.sorted_paths.update(rec.paths)
            for p in rec.paths:
                self.mark_target_dir(rec.target_dir(), rec.hash, p)

    # --- Mutations ---

    def register(self, record: Record):
        """Adds a new record. Callers must check the hash is unknown first."""
        if record.hash == config.EMPTY_HASH:
            raise DuplicateRegistrationError("cannot register a file without content hash")
        if record.hash in self.by_hash:
            raise DuplicateRegistrationError(f"hash {record.hash} is already registered")
        self.by_hash[record.hash] = record
        if record.sorted:
            self.sorted_paths.update(record.paths)

    def merge_duplicate(self, hash_value: str, new_path: str, sorted_copy: bool = False):
        """Appends a byte-identical copy to an existing record."""
        rec = self.by_hash[hash_value]
        if new_path not in rec.paths:
            rec.paths.append(new_path)
        if sorted_copy:
            rec.sorted = True
            self.sorted_paths.update(rec.paths)

    def relocate(self, hash_value: str, new_path: str) -> List[str]:
        """
        Points a record whose copies all vanished at a curated file.
        Returns the stale paths that were dropped.
        """
        rec = self.by_hash[hash_value]
        stale = rec.paths
        self.sorted_paths.difference_update(stale)
        rec.paths = [new_path]
        rec.sorted = True
        self.sorted_paths.add(new_path)
        return stale

    def mark_target_dir(self, target_dir: str, hash_value: str, source_path: Optional[str] = None):
        self.by_target_dir.setdefault(target_dir, set()).add(hash_value)
        if source_path:
            self._dir_sources.setdefault(target_dir, set()).add(source_path)

    # --- Queries ---

    def lookup(self, hash_value: str) -> Optional[Record]:
        return self.by_hash.get(hash_value)

    def index_target_dir(self, target_dir: str) -> Set[str]:
        return set(self.by_target_dir.get(target_dir, ()))

    def is_target_dir_marked(self, target_dir: str) -> bool:
        return target_dir in self.by_target_dir

    def target_dir_sources(self, target_dir: str) -> List[str]:
        return sorted(self._dir_sources.get(target_dir, ()))

    def has_copy_on_disk(self, hash_value: str) -> bool:
        rec = self.by_hash.get(hash_value)
        return rec is not None and any(os.path.exists(p) for p in rec.paths)

    def reference_path(self, hash_value: str) -> Optional[str]:
        """
        The copy to byte-compare against: the canonical path, or the first
        copy still on disk if the canonical one was moved away by hand.
        """
        rec = self.by_hash.get(hash_value)
        if rec is None or not rec.paths:
            return None
        for p in rec.paths:
            if os.path.exists(p):
                return p
        return rec.canonical_path
