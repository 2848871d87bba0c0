"""SQLite-backed append-only usage ledger."""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from accountpool.accounts.models import from_iso, to_iso
from accountpool.providers.kinds import ProviderKind
from accountpool.usage.models import Period, UsageEntry, UsageTotals, period_bounds

_DEFAULT_DB_PATH = Path.home() / ".accountpool" / "ledger.db"

_CREATE_TABLE = """\
CREATE TABLE IF NOT EXISTS usage_ledger (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp           TEXT    NOT NULL,
    account_id          TEXT    NOT NULL,
    provider            TEXT    NOT NULL,
    input_tokens        INTEGER NOT NULL,
    output_tokens       INTEGER NOT NULL,
    estimated_cost_usd  REAL    NOT NULL
)
"""

_CREATE_INDEX = """\
CREATE INDEX IF NOT EXISTS idx_usage_ledger_account_ts
ON usage_ledger (account_id, timestamp)
"""


def _where(
    account_id: Optional[str] = None,
    provider: Optional[ProviderKind] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> tuple[str, list[object]]:
    clauses: list[str] = []
    params: list[object] = []
    if account_id is not None:
        clauses.append("account_id = ?")
        params.append(account_id)
    if provider is not None:
        clauses.append("provider = ?")
        params.append(provider.value)
    if start is not None:
        clauses.append("timestamp >= ?")
        params.append(to_iso(start))
    if end is not None:
        clauses.append("timestamp < ?")
        params.append(to_iso(end))
    where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
    return where, params


class UsageLedger:
    """Thread-safe, connection-per-call SQLite ledger of usage entries.

    Timestamps are stored as fixed-width UTC ISO strings, so lexicographic
    order is chronological and window filters are plain string comparisons.
    Every total is a single aggregate statement, which SQLite evaluates
    against one consistent snapshot: a concurrent append is either fully
    counted or not at all.
    """

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self.db_path = Path(db_path or _DEFAULT_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_db()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path), check_same_thread=False, timeout=30.0)

    def _init_db(self) -> None:
        with self._lock:
            conn = self._connect()
            try:
                conn.execute(_CREATE_TABLE)
                conn.execute(_CREATE_INDEX)
                conn.commit()
            finally:
                conn.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def append(self, entry: UsageEntry) -> None:
        """Insert a single usage entry."""
        if not entry.account_id:
            raise ValueError("Usage entry is missing account_id")
        if entry.provider is None:
            raise ValueError("Usage entry is missing provider")

        with self._lock:
            conn = self._connect()
            try:
                conn.execute(
                    "INSERT INTO usage_ledger "
                    "(timestamp, account_id, provider, input_tokens, "
                    "output_tokens, estimated_cost_usd) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        to_iso(entry.timestamp),
                        entry.account_id,
                        entry.provider.value,
                        int(entry.input_tokens),
                        int(entry.output_tokens),
                        float(entry.estimated_cost_usd),
                    ),
                )
                conn.commit()
            finally:
                conn.close()

    def totals(
        self,
        account_id: str,
        period: Period,
        now: Optional[datetime] = None,
    ) -> UsageTotals:
        """Summed cost and tokens (input + output) for the window around *now*."""
        start, end = period_bounds(period, now)
        where, params = _where(account_id=account_id, start=start, end=end)
        sql = (
            "SELECT COALESCE(SUM(estimated_cost_usd), 0.0), "
            f"COALESCE(SUM(input_tokens + output_tokens), 0) FROM usage_ledger{where}"
        )

        conn = self._connect()
        try:
            cost, tokens = conn.execute(sql, params).fetchone()
        finally:
            conn.close()
        return UsageTotals(cost=float(cost), tokens=int(tokens))

    def totals_by_provider(
        self,
        period: Period,
        now: Optional[datetime] = None,
    ) -> dict[ProviderKind, UsageTotals]:
        """Window totals grouped by provider. Providers with no usage are omitted."""
        start, end = period_bounds(period, now)
        where, params = _where(start=start, end=end)
        sql = (
            "SELECT provider, COALESCE(SUM(estimated_cost_usd), 0.0), "
            "COALESCE(SUM(input_tokens + output_tokens), 0) "
            f"FROM usage_ledger{where} GROUP BY provider"
        )

        conn = self._connect()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return {
            ProviderKind(r[0]): UsageTotals(cost=float(r[1]), tokens=int(r[2]))
            for r in rows
        }

    def query(
        self,
        account_id: Optional[str] = None,
        provider: Optional[ProviderKind] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[UsageEntry]:
        """Return matching entries, oldest first."""
        where, params = _where(account_id, provider, start, end)
        sql = (
            "SELECT account_id, provider, input_tokens, output_tokens, "
            f"estimated_cost_usd, timestamp FROM usage_ledger{where} ORDER BY timestamp, id"
        )

        conn = self._connect()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()

        return [
            UsageEntry(
                account_id=r[0],
                provider=ProviderKind(r[1]),
                input_tokens=r[2],
                output_tokens=r[3],
                estimated_cost_usd=r[4],
                timestamp=from_iso(r[5]),
            )
            for r in rows
        ]

    def purge_before(self, timestamp: datetime) -> int:
        """Maintenance only: delete entries older than *timestamp*. Return number deleted."""
        with self._lock:
            conn = self._connect()
            try:
                cur = conn.execute(
                    "DELETE FROM usage_ledger WHERE timestamp < ?", (to_iso(timestamp),)
                )
                conn.commit()
                return cur.rowcount
            finally:
                conn.close()
