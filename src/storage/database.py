"""
Local store for submitted meter readings.

Rows are identified only by the storage-assigned rowid. Writes from the
capture flow go through submit(), which never blocks the caller and never
retries: failures are logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sqlite3
import threading
import time
from typing import Any, Dict, List, Optional, Set

from models.extraction import ExtractionResult

# Schema version - increment when schema changes
EXPECTED_SCHEMA_VERSION = 1


class ReadingStore:
    """
    SQLite persistence for meter records.

    Schema:
    - schema_meta: tracks schema version
    - meter_records: reading, unit, meter_number, notes, confidence, created_at
    """

    def __init__(self, local_database_path: str):
        """
        Args:
            local_database_path: Path to the SQLite database file.
        """
        self.local_database_path = local_database_path
        self.conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        self._pending: Set[asyncio.Future] = set()

        db_dir = os.path.dirname(local_database_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        logging.info(f"Reading store initialized at {local_database_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection (shared with worker threads)."""
        if self.conn is None:
            self.conn = sqlite3.connect(self.local_database_path, check_same_thread=False)
        return self.conn

    def _get_schema_version(self) -> Optional[int]:
        try:
            cursor = self._get_connection().cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_meta'"
            )
            if cursor.fetchone() is None:
                return None
            cursor.execute("SELECT schema_version FROM schema_meta LIMIT 1")
            row = cursor.fetchone()
            return row[0] if row else None
        except sqlite3.Error:
            return None

    def _create_schema(self) -> None:
        cursor = self._get_connection().cursor()
        cursor.execute("DROP TABLE IF EXISTS schema_meta")
        cursor.execute("""
            CREATE TABLE schema_meta (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                schema_version INTEGER NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS meter_records (
                id INTEGER PRIMARY KEY,
                created_at INTEGER NOT NULL,
                reading TEXT,
                unit TEXT,
                meter_number TEXT,
                notes TEXT NOT NULL DEFAULT '',
                confidence TEXT
            )
        """)
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_meter_records_created_at ON meter_records(created_at)"
        )
        cursor.execute(
            "INSERT INTO schema_meta (id, schema_version) VALUES (1, ?)",
            (EXPECTED_SCHEMA_VERSION,)
        )
        self._get_connection().commit()
        logging.info(f"Created schema version {EXPECTED_SCHEMA_VERSION}")

    def initialize(self) -> None:
        """Create the schema if it is missing or out of date."""
        with self._lock:
            try:
                current_version = self._get_schema_version()
                if current_version != EXPECTED_SCHEMA_VERSION:
                    if current_version is not None:
                        logging.warning(
                            f"Schema version mismatch: found {current_version}, "
                            f"expected {EXPECTED_SCHEMA_VERSION}. Recreating schema."
                        )
                    self._create_schema()
            except sqlite3.Error as e:
                logging.error(f"Database initialization error: {e}")
                raise

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def insert(self, result: ExtractionResult) -> int:
        """
        Insert one record.

        Returns:
            Storage-assigned row id.

        Raises:
            sqlite3.Error: on any database failure.
        """
        record = result.to_record()
        with self._lock:
            cursor = self._get_connection().cursor()
            cursor.execute(
                """
                INSERT INTO meter_records (created_at, reading, unit, meter_number, notes, confidence)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    int(time.time() * 1000),
                    record["reading"],
                    record["unit"],
                    record["meter_number"],
                    record["notes"] or "",
                    result.confidence.value,
                ),
            )
            self._get_connection().commit()
            row_id = cursor.lastrowid
        logging.info(f"Meter record stored: id={row_id}, reading={record['reading']}")
        return row_id

    def _insert_logged(self, result: ExtractionResult) -> Optional[int]:
        try:
            return self.insert(result)
        except sqlite3.Error as e:
            logging.error(f"Failed to store meter record: {e}")
            return None

    def submit(self, result: ExtractionResult) -> Optional[asyncio.Future]:
        """
        Fire-and-forget insert.

        Inside a running event loop the write happens on a worker thread and
        the returned future can be awaited (tests do); callers normally
        ignore it. Without a loop the write happens inline.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._insert_logged(result)
            return None

        future = loop.create_task(asyncio.to_thread(self._insert_logged, result))
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)
        return future

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def get_recent_records(self, limit: int = 50) -> List[Dict[str, Any]]:
        with self._lock:
            try:
                cursor = self._get_connection().cursor()
                cursor.execute(
                    """
                    SELECT id, created_at, reading, unit, meter_number, notes, confidence
                    FROM meter_records ORDER BY id DESC LIMIT ?
                    """,
                    (limit,),
                )
                columns = [c[0] for c in cursor.description]
                return [dict(zip(columns, row)) for row in cursor.fetchall()]
            except sqlite3.Error as e:
                logging.error(f"Error reading meter records: {e}")
                return []

    def close(self) -> None:
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None
