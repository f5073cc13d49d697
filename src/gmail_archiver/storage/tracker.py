"""SQLite-based transfer state for content-addressed deduplication across runs."""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import sqlite3
from datetime import UTC, datetime
from pathlib import Path

logger = logging.getLogger(__name__)

# Status state machine: imported → labeled; failed is re-imported on the next run
VALID_STATUSES = {"imported", "labeled", "failed"}


def content_hash(raw: str) -> str:
    """sha256 of a raw message with line endings and trailing whitespace normalized.

    Args:
        raw: base64url-encoded RFC 2822 payload as returned by the Gmail API.
    """
    try:
        data = base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4))
    except (binascii.Error, ValueError):
        data = raw.encode("utf-8")
    normalized = data.replace(b"\r\n", b"\n").rstrip()
    return hashlib.sha256(normalized).hexdigest()


class TransferTracker:
    """Tracks which messages already reached the archive account.

    Tables:
    - messages: one row per content hash with source/destination IDs and status
    - transfer_runs: audit log of transfer runs
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Open database connection and ensure schema exists."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> TransferTracker:
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._conn

    def _create_tables(self) -> None:
        """Create tables if they don't exist."""
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS messages (
                content_hash TEXT PRIMARY KEY,
                source_message_id TEXT NOT NULL,
                dest_message_id TEXT DEFAULT '',
                status TEXT NOT NULL,
                error_message TEXT DEFAULT '',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_messages_status ON messages(status);
            CREATE INDEX IF NOT EXISTS idx_messages_source ON messages(source_message_id);

            CREATE TABLE IF NOT EXISTS transfer_runs (
                run_id INTEGER PRIMARY KEY AUTOINCREMENT,
                source_email TEXT NOT NULL,
                archive_email TEXT NOT NULL,
                dry_run INTEGER NOT NULL DEFAULT 0,
                started_at TEXT NOT NULL,
                completed_at TEXT,
                emails_processed INTEGER DEFAULT 0,
                emails_transferred INTEGER DEFAULT 0,
                emails_skipped INTEGER DEFAULT 0,
                emails_failed INTEGER DEFAULT 0
            );
        """)

    def get_message(self, content_hash: str) -> dict | None:
        """Get the record for a content hash, if any."""
        row = self.conn.execute(
            "SELECT * FROM messages WHERE content_hash = ?", (content_hash,)
        ).fetchone()
        return dict(row) if row else None

    def record_imported(
        self, content_hash: str, source_message_id: str, dest_message_id: str
    ) -> None:
        """Record that a message now exists in the archive account, unlabeled."""
        now = datetime.now(UTC).isoformat()
        self.conn.execute(
            """INSERT INTO messages
               (content_hash, source_message_id, dest_message_id, status,
                error_message, created_at, updated_at)
               VALUES (?, ?, ?, 'imported', '', ?, ?)
               ON CONFLICT(content_hash) DO UPDATE SET
                   source_message_id = excluded.source_message_id,
                   dest_message_id = excluded.dest_message_id,
                   status = 'imported',
                   error_message = '',
                   updated_at = excluded.updated_at""",
            (content_hash, source_message_id, dest_message_id, now, now),
        )
        self.conn.commit()

    def mark_labeled(self, content_hash: str) -> None:
        """Mark an imported message as fully labeled."""
        now = datetime.now(UTC).isoformat()
        self.conn.execute(
            "UPDATE messages SET status = 'labeled', error_message = '', updated_at = ? "
            "WHERE content_hash = ?",
            (now, content_hash),
        )
        self.conn.commit()

    def record_failure(self, content_hash: str, source_message_id: str, error: str) -> None:
        """Record a failed transfer.

        An already-imported message keeps its 'imported' status so the next run
        only re-applies labels.
        """
        now = datetime.now(UTC).isoformat()
        self.conn.execute(
            """INSERT INTO messages
               (content_hash, source_message_id, status, error_message,
                created_at, updated_at)
               VALUES (?, ?, 'failed', ?, ?, ?)
               ON CONFLICT(content_hash) DO UPDATE SET
                   status = CASE WHEN messages.status = 'imported'
                                 THEN 'imported' ELSE 'failed' END,
                   error_message = excluded.error_message,
                   updated_at = excluded.updated_at""",
            (content_hash, source_message_id, error, now, now),
        )
        self.conn.commit()

    def count_by_status(self) -> dict[str, int]:
        """Get count of messages grouped by status."""
        rows = self.conn.execute(
            "SELECT status, COUNT(*) as cnt FROM messages GROUP BY status"
        ).fetchall()
        return {row["status"]: row["cnt"] for row in rows}

    def start_run(self, source_email: str, archive_email: str, *, dry_run: bool) -> int:
        """Record the start of a transfer run. Returns the run_id."""
        now = datetime.now(UTC).isoformat()
        cursor = self.conn.execute(
            "INSERT INTO transfer_runs (source_email, archive_email, dry_run, started_at) "
            "VALUES (?, ?, ?, ?)",
            (source_email, archive_email, int(dry_run), now),
        )
        self.conn.commit()
        return cursor.lastrowid or 0

    def complete_run(
        self,
        run_id: int,
        emails_processed: int = 0,
        emails_transferred: int = 0,
        emails_skipped: int = 0,
        emails_failed: int = 0,
    ) -> None:
        """Record the completion of a transfer run."""
        now = datetime.now(UTC).isoformat()
        self.conn.execute(
            """UPDATE transfer_runs SET
               completed_at = ?, emails_processed = ?, emails_transferred = ?,
               emails_skipped = ?, emails_failed = ?
               WHERE run_id = ?""",
            (now, emails_processed, emails_transferred, emails_skipped, emails_failed, run_id),
        )
        self.conn.commit()

    def recent_runs(self, limit: int = 5) -> list[dict]:
        """Most recent runs first."""
        rows = self.conn.execute(
            "SELECT * FROM transfer_runs ORDER BY run_id DESC LIMIT ?", (limit,)
        ).fetchall()
        return [dict(row) for row in rows]
