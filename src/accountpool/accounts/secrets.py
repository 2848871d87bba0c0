"""Per-account API key storage, kept out of the account rows."""

from __future__ import annotations

import os
import sqlite3
import threading
from pathlib import Path
from typing import Optional

_DEFAULT_DB_PATH = Path.home() / ".accountpool" / "accounts.db"

_CREATE_TABLE = """\
CREATE TABLE IF NOT EXISTS account_secrets (
    account_id  TEXT PRIMARY KEY,
    secret      TEXT NOT NULL
)
"""


class SecretsStore:
    """Thread-safe, connection-per-call SQLite store for account secrets.

    The database file is chmod'ed to 0600 on creation where the platform
    supports it.
    """

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self.db_path = Path(db_path or _DEFAULT_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path), check_same_thread=False)

    def _init_db(self) -> None:
        with self._lock:
            conn = self._connect()
            try:
                conn.execute(_CREATE_TABLE)
                conn.commit()
            finally:
                conn.close()
            try:
                os.chmod(self.db_path, 0o600)
            except OSError:
                pass  # not supported on every filesystem

    def set_secret(self, account_id: str, secret: str) -> None:
        with self._lock:
            conn = self._connect()
            try:
                conn.execute(
                    "INSERT OR REPLACE INTO account_secrets (account_id, secret) VALUES (?, ?)",
                    (account_id, secret),
                )
                conn.commit()
            finally:
                conn.close()

    def secret(self, account_id: str) -> Optional[str]:
        """Return the stored secret, or ``None`` when absent or empty."""
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT secret FROM account_secrets WHERE account_id = ?",
                (account_id,),
            ).fetchone()
        finally:
            conn.close()
        if row is None or not row[0]:
            return None
        return row[0]

    def delete_secret(self, account_id: str) -> bool:
        with self._lock:
            conn = self._connect()
            try:
                cur = conn.execute(
                    "DELETE FROM account_secrets WHERE account_id = ?", (account_id,)
                )
                conn.commit()
                return cur.rowcount > 0
            finally:
                conn.close()
