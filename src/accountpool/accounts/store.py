"""SQLite-backed account persistence. Follows the UsageLedger pattern."""

from __future__ import annotations

import json
import shutil
import sqlite3
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from accountpool._logging import get_logger
from accountpool.accounts.models import (
    Account,
    AccountHealth,
    QuotaPolicy,
    to_iso,
    utcnow,
)
from accountpool.accounts.secrets import SecretsStore
from accountpool.providers.kinds import ProviderKind
from accountpool.providers.profiles import ensure_profile

if TYPE_CHECKING:
    from accountpool.auth.status import AuthStatus

logger = get_logger("AccountPool.AccountStore")

_DEFAULT_DB_PATH = Path.home() / ".accountpool" / "accounts.db"
_DEFAULT_PROFILES_DIR = Path.home() / ".accountpool" / "profiles"

_CREATE_TABLE = """\
CREATE TABLE IF NOT EXISTS accounts (
    id          TEXT PRIMARY KEY,
    provider    TEXT NOT NULL,
    priority    INTEGER NOT NULL,
    created_at  TEXT NOT NULL,
    data        TEXT NOT NULL,
    health      TEXT NOT NULL
)
"""

_SELECT = "SELECT data, health FROM accounts"
_ORDER = " ORDER BY priority, created_at"


class AccountStore:
    """Thread-safe SQLite storage for accounts.

    Pattern: one lock, connection-per-call, auto-create schema.

    Health lives in its own column so that the router's health writes
    (``update_health``) never clobber identity, quota or auth fields
    edited concurrently through ``update``: last writer wins per column.
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        profiles_dir: Optional[Path] = None,
        secrets: Optional[SecretsStore] = None,
    ) -> None:
        self.db_path = Path(db_path or _DEFAULT_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.profiles_dir = Path(profiles_dir or _DEFAULT_PROFILES_DIR)
        self.secrets = secrets or SecretsStore(self.db_path)
        self._lock = threading.Lock()
        self._init_db()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

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

    @staticmethod
    def _row_to_account(row: tuple) -> Account:
        data = json.loads(row[0])
        data["health"] = json.loads(row[1])
        return Account.from_dict(data)

    def _fetch(self, where: str = "", params: tuple = ()) -> list[Account]:
        conn = self._connect()
        try:
            rows = conn.execute(_SELECT + where + _ORDER, params).fetchall()
        finally:
            conn.close()
        return [self._row_to_account(r) for r in rows]

    def _insert(self, account: Account) -> None:
        data = account.to_dict()
        health = data.pop("health")
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO accounts "
                "(id, provider, priority, created_at, data, health) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    account.id,
                    account.provider.value,
                    account.priority,
                    to_iso(account.created_at),
                    json.dumps(data),
                    json.dumps(health),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def accounts(self, provider: ProviderKind) -> list[Account]:
        """All accounts of *provider*, by priority then creation time."""
        return self._fetch(" WHERE provider = ?", (provider.value,))

    def all_accounts(self) -> list[Account]:
        return self._fetch()

    def get(self, account_id: str) -> Optional[Account]:
        accounts = self._fetch(" WHERE id = ?", (account_id,))
        return accounts[0] if accounts else None

    def secret(self, account_id: str) -> Optional[str]:
        return self.secrets.secret(account_id)

    # ------------------------------------------------------------------
    # Mutation API
    # ------------------------------------------------------------------

    def add_account(
        self,
        provider: ProviderKind,
        label: str = "",
        api_key: Optional[str] = None,
        quota: Optional[QuotaPolicy] = None,
    ) -> Account:
        """Create an account at the end of *provider*'s priority order."""
        with self._lock:
            existing = self.accounts(provider)
            next_priority = max((a.priority for a in existing), default=-1) + 1
            account = Account(
                provider=provider,
                label=label or f"{provider.display_name} {next_priority + 1}",
                priority=next_priority,
                quota=quota or QuotaPolicy(),
            )
            account.profile_path = ensure_profile(
                self.profiles_dir, provider, account.id
            )
            self._insert(account)
        if api_key:
            self.secrets.set_secret(account.id, api_key)
        logger.info(f"Added {provider.value} account '{account.label}' ({account.id})")
        return account

    def update(self, account: Account) -> bool:
        """Persist every field of *account* except health.

        Health is written only through ``update_health``, so a stale copy
        never undoes the router's bookkeeping. Returns False for unknown ids.
        """
        account.updated_at = utcnow()
        data = account.to_dict()
        data.pop("health")
        with self._lock:
            conn = self._connect()
            try:
                cur = conn.execute(
                    "UPDATE accounts SET provider = ?, priority = ?, created_at = ?, "
                    "data = ? WHERE id = ?",
                    (
                        account.provider.value,
                        account.priority,
                        to_iso(account.created_at),
                        json.dumps(data),
                        account.id,
                    ),
                )
                conn.commit()
                return cur.rowcount > 0
            finally:
                conn.close()

    def update_health(self, account_id: str, health: AccountHealth) -> bool:
        """Write only the health column. Returns False for unknown ids."""
        with self._lock:
            conn = self._connect()
            try:
                cur = conn.execute(
                    "UPDATE accounts SET health = ? WHERE id = ?",
                    (json.dumps(health.to_dict()), account_id),
                )
                conn.commit()
                return cur.rowcount > 0
            finally:
                conn.close()

    def update_auth_status(self, account_id: str, status: AuthStatus) -> None:
        """Record the outcome of an auth probe on the account."""
        account = self.get(account_id)
        if account is None:
            return
        account.last_auth_check_at = utcnow()
        if status.is_logged_in:
            account.last_auth_method = status.method
            account.last_auth_error = None
        elif status.message:
            account.last_auth_error = status.message
        else:
            account.last_auth_error = None
        self.update(account)

    def set_enabled(self, account_id: str, enabled: bool) -> bool:
        account = self.get(account_id)
        if account is None:
            return False
        account.is_enabled = enabled
        return self.update(account)

    def set_secret(self, account_id: str, secret: str) -> None:
        self.secrets.set_secret(account_id, secret)

    def delete(self, account_id: str, remove_profile: bool = False) -> bool:
        """Delete an account and its secret. Returns True if it existed."""
        account = self.get(account_id)
        with self._lock:
            conn = self._connect()
            try:
                cur = conn.execute("DELETE FROM accounts WHERE id = ?", (account_id,))
                conn.commit()
                deleted = cur.rowcount > 0
            finally:
                conn.close()
        self.secrets.delete_secret(account_id)
        if deleted and remove_profile and account is not None and account.profile_path:
            shutil.rmtree(account.profile_path, ignore_errors=True)
        return deleted

    def reset_health(self, provider: ProviderKind) -> int:
        """Administrative reset: every account of *provider* back to healthy."""
        accounts = self.accounts(provider)
        for account in accounts:
            self.update_health(account.id, AccountHealth())
        logger.info(f"Reset health of {len(accounts)} {provider.value} account(s)")
        return len(accounts)
