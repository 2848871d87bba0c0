from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pytest
import yaml

from accountpool.accounts.models import Account, AuthMethod
from accountpool.accounts.store import AccountStore
from accountpool.auth.probe import AuthProbe
from accountpool.auth.status import AuthStatus
from accountpool.config import ConfigLoader
from accountpool.routing.router import AccountRouter
from accountpool.usage.ledger import UsageLedger


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 6, 11, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class StaticAuthProbe(AuthProbe):
    """Reports every account logged in unless told otherwise."""

    def __init__(self):
        self.statuses: dict[str, AuthStatus] = {}
        self.raise_for: set[str] = set()
        self.calls: list[tuple[str, Optional[str]]] = []

    def set(self, account_id: str, status: AuthStatus) -> None:
        self.statuses[account_id] = status

    def detect(self, account: Account, executable_override: Optional[str] = None) -> AuthStatus:
        self.calls.append((account.id, executable_override))
        if account.id in self.raise_for:
            raise RuntimeError("probe exploded")
        return self.statuses.get(account.id, AuthStatus.logged_in(AuthMethod.OAUTH))


@pytest.fixture
def config(tmp_path: Path):
    """Create a minimal, valid config file in a temporary directory."""
    config_content = {
        "system": {"log_level": "INFO"},
        "storage": {"data_dir": str(tmp_path / "data")},
        "providers": {"codex": {"path": "/opt/bin/codex"}},
        "router": {"rate_limit_floor_seconds": 30, "default_cooldown_seconds": 120},
    }
    config_path = tmp_path / "accountpool.yaml"
    with open(config_path, "w") as f:
        yaml.dump(config_content, f)

    return ConfigLoader(config_path=str(config_path))


@pytest.fixture
def config_empty():
    """A ConfigLoader with no actual config."""
    return ConfigLoader(allow_missing=True)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def probe():
    return StaticAuthProbe()


@pytest.fixture
def store(tmp_path: Path):
    return AccountStore(db_path=tmp_path / "accounts.db", profiles_dir=tmp_path / "profiles")


@pytest.fixture
def ledger(tmp_path: Path):
    return UsageLedger(db_path=tmp_path / "ledger.db")


@pytest.fixture
def router(store, ledger, probe, clock):
    return AccountRouter(store, ledger, probe, clock=clock)
