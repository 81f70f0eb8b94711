import sqlite3
from datetime import datetime
from typing import Iterable, List, Optional, Dict, Any

from ..models import Record
from .schema import TABLES


class CatalogOps:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def has_schema(self) -> bool:
        cur = self.conn.cursor()
        cur.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        names = {row[0] for row in cur.fetchall()}
        return all(t in names for t in TABLES)

    def fetch_records(self) -> List[Record]:
        """
        Reads every record with its ordered path list.
        Raises ValueError on an unparsable timestamp.
        """
        cur = self.conn.cursor()
        cur.execute("SELECT hash, camera, timestamp, sorted FROM records ORDER BY hash")
        records: Dict[str, Record] = {}
        for hash_value, camera, ts_str, is_sorted in cur.fetchall():
            records[hash_value] = Record(
                hash=hash_value,
                camera=camera,
                timestamp=datetime.fromisoformat(ts_str),
                sorted=bool(is_sorted),
            )

        cur.execute("SELECT hash, path FROM record_paths ORDER BY hash, position")
        for hash_value, path in cur.fetchall():
            rec = records.get(hash_value)
            if rec is not None:
                rec.paths.append(path)

        return list(records.values())

    def replace_records(self, records: Iterable[Record]):
        """Rewrites the whole catalog inside a single transaction."""
        with self.conn:
            self.conn.execute("DELETE FROM record_paths")
            self.conn.execute("DELETE FROM records")
            for rec in records:
                self.conn.execute(
                    "INSERT INTO records (hash, camera, timestamp, sorted) VALUES (?, ?, ?, ?)",
                    (rec.hash, rec.camera, rec.timestamp.isoformat(), int(rec.sorted)),
                )
                self.conn.executemany(
                    "INSERT INTO record_paths (hash, position, path) VALUES (?, ?, ?)",
                    [(rec.hash, pos, p) for pos, p in enumerate(rec.paths)],
                )

    # --- Queries (used by catalog_query) ---

    def stats(self) -> Dict[str, Any]:
        cur = self.conn.cursor()
        cur.execute("SELECT COUNT(*), COALESCE(SUM(sorted), 0) FROM records")
        total, sorted_count = cur.fetchone()
        cur.execute("SELECT COUNT(*) FROM record_paths")
        (paths,) = cur.fetchone()
        cur.execute("SELECT COUNT(*) FROM (SELECT hash FROM record_paths GROUP BY hash HAVING COUNT(*) > 1)")
        (multi,) = cur.fetchone()
        return {
            'records': total,
            'sorted': sorted_count,
            'paths': paths,
            'with_copies': multi,
        }

    def find_hash_by_path(self, path: str) -> Optional[str]:
        cur = self.conn.cursor()
        cur.execute("SELECT hash FROM record_paths WHERE path = ?", (path,))
        row = cur.fetchone()
        return row[0] if row else None

    def fetch_record(self, hash_value: str) -> Optional[Record]:
        cur = self.conn.cursor()
        cur.execute("SELECT camera, timestamp, sorted FROM records WHERE hash = ?", (hash_value,))
        row = cur.fetchone()
        if not row:
            return None
        camera, ts_str, is_sorted = row
        cur.execute("SELECT path FROM record_paths WHERE hash = ? ORDER BY position", (hash_value,))
        return Record(
            hash=hash_value,
            paths=[r[0] for r in cur.fetchall()],
            camera=camera,
            timestamp=datetime.fromisoformat(ts_str),
            sorted=bool(is_sorted),
        )

    def count_by_camera(self, camera: Optional[str] = None) -> List[tuple]:
        cur = self.conn.cursor()
        if camera:
            cur.execute("""
                SELECT substr(timestamp, 1, 10) AS day, COUNT(*)
                FROM records WHERE camera = ?
                GROUP BY day ORDER BY day
            """, (camera,))
        else:
            cur.execute("SELECT camera, COUNT(*) FROM records GROUP BY camera ORDER BY camera")
        return cur.fetchall()
