"""
Database schema definitions.

Only the hash -> record mapping is stored. The target directory index and
the set of sorted paths are derived from it on load.
"""
import sqlite3
import logging

CURRENT_SCHEMA_VERSION = 1

TABLES = ("schema_version", "records", "record_paths")


def init_schema(conn: sqlite3.Connection):
    """
    Applies the core schema to the database.
    Idempotent: safe to run on every startup.
    """
    with conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
        """)

        cur = conn.cursor()
        cur.execute("SELECT version FROM schema_version")
        if not cur.fetchone():
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (CURRENT_SCHEMA_VERSION,))

        # One row per content identity
        conn.execute("""
        CREATE TABLE IF NOT EXISTS records (
            hash            TEXT PRIMARY KEY,     -- SHA-256 hex digest
            camera          TEXT NOT NULL,
            timestamp       TEXT NOT NULL,        -- ISO-8601 capture time
            sorted          INTEGER NOT NULL DEFAULT 0
        );
        """)

        # Byte-identical copies, position 0 is canonical
        conn.execute("""
        CREATE TABLE IF NOT EXISTS record_paths (
            hash            TEXT NOT NULL,
            position        INTEGER NOT NULL,
            path            TEXT NOT NULL,
            PRIMARY KEY (hash, position),
            FOREIGN KEY(hash) REFERENCES records(hash) ON DELETE CASCADE
        );
        """)

        conn.execute("CREATE INDEX IF NOT EXISTS idx_record_paths_path ON record_paths(path);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_records_camera ON records(camera);")

    logging.debug("Database schema initialized.")
