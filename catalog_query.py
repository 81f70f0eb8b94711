#!/usr/bin/env python

import argparse
import sqlite3
from pathlib import Path
from typing import Optional

from photo_ingest.database.ops import CatalogOps


def connect_db(db_path: Path) -> sqlite3.Connection:
    if not db_path.exists():
        raise SystemExit(f"DB not found: {db_path}")
    return sqlite3.connect(db_path)


def show_stats(ops: CatalogOps):
    s = ops.stats()
    print("Catalog:")
    print(f"  records:        {s['records']}")
    print(f"  sorted:         {s['sorted']}")
    print(f"  paths:          {s['paths']}")
    print(f"  with copies:    {s['with_copies']}")


def show_record(ops: CatalogOps, hash_value: str):
    rec = ops.fetch_record(hash_value)
    if rec is None:
        print(f"No record with hash={hash_value}")
        return

    print("Record:")
    print(f"  hash:          {rec.hash}")
    print(f"  camera:        {rec.camera}")
    print(f"  capture_time:  {rec.timestamp.isoformat()}")
    print(f"  sorted:        {'yes' if rec.sorted else 'no'}")
    print(f"  target_dir:    {rec.target_dir()}")
    print("  paths:")
    for i, p in enumerate(rec.paths):
        marker = "*" if i == 0 else " "
        print(f"   {marker} {p}")


def resolve_hash_from_path(ops: CatalogOps, path: Path) -> Optional[str]:
    for cand in (str(path), path.as_posix()):
        found = ops.find_hash_by_path(cand)
        if found:
            return found
    return None


def list_cameras(ops: CatalogOps, camera: Optional[str] = None):
    rows = ops.count_by_camera(camera)
    if not rows:
        print("No records found.")
        return

    label = "day" if camera else "camera"
    print(f"{label.ljust(30)} | records")
    print("-------------------------------+--------")
    for key, count in rows:
        print(f"{str(key).ljust(30)} | {count:7d}")


def parse_args():
    p = argparse.ArgumentParser(description="Query helper for the photo ingest catalog.")
    p.add_argument("--db", required=True, help="Path to photo_catalog.db (typically under your storage root)")
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--stats", action="store_true", help="Show catalog totals")
    group.add_argument("--hash", help="Show a record by content hash")
    group.add_argument("--path", help="Show the record holding this path")
    group.add_argument("--cameras", action="store_true", help="Count records per camera")
    group.add_argument("--camera", help="Count records per day for one camera")
    return p.parse_args()


def main():
    args = parse_args()
    db_path = Path(args.db).resolve()
    conn = connect_db(db_path)
    ops = CatalogOps(conn)

    try:
        if args.stats:
            show_stats(ops)
        elif args.hash:
            show_record(ops, args.hash)
        elif args.path:
            path = Path(args.path).resolve()
            hash_value = resolve_hash_from_path(ops, path)
            if hash_value is None:
                print(f"No record found for path: {path}")
            else:
                show_record(ops, hash_value)
        elif args.cameras:
            list_cameras(ops)
        elif args.camera:
            list_cameras(ops, args.camera)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
