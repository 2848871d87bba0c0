"""Structured per-provider usage and health summaries for display surfaces."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional

from accountpool._logging import get_logger
from accountpool.accounts.models import Account, to_iso
from accountpool.accounts.store import AccountStore
from accountpool.auth.probe import AuthProbe
from accountpool.auth.status import AuthStatus
from accountpool.providers.kinds import ProviderKind
from accountpool.routing.router import AccountRouter
from accountpool.usage.ledger import UsageLedger
from accountpool.usage.models import Period

logger = get_logger("AccountPool.Dashboard")


@dataclass
class AccountRow:
    id: str
    provider: ProviderKind
    label: str
    is_enabled: bool
    is_active_now: bool
    auth_status: str
    health_status: str
    day_cost: float = 0.0
    week_cost: float = 0.0
    month_cost: float = 0.0
    day_tokens: int = 0
    week_tokens: int = 0
    month_tokens: int = 0
    last_error: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["provider"] = self.provider.value
        return data


@dataclass
class ProviderSection:
    provider: ProviderKind
    active_account_id: Optional[str] = None
    last_failover_reason: Optional[str] = None
    last_switch_at: Optional[datetime] = None
    rows: list[AccountRow] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "provider": self.provider.value,
            "active_account_id": self.active_account_id,
            "last_failover_reason": self.last_failover_reason,
            "last_switch_at": to_iso(self.last_switch_at),
            "rows": [r.to_dict() for r in self.rows],
        }


@dataclass
class DashboardTotals:
    account_count: int = 0
    active_count: int = 0
    exhausted_count: int = 0
    total_day_cost: float = 0.0
    total_day_tokens: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class UsageDashboard:
    """Builds dashboard data from the store, the ledger and the router's state.

    Nothing here mutates health or routing state; it only reads.
    """

    def __init__(
        self,
        store: AccountStore,
        ledger: UsageLedger,
        router: AccountRouter,
        probe: AuthProbe,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._router = router
        self._probe = probe

    def _auth(self, account: Account, override: Optional[str]) -> AuthStatus:
        try:
            return self._probe.detect(account, override)
        except Exception as exc:
            logger.debug(f"Auth probe raised for account {account.id}: {exc}")
            return AuthStatus.error(str(exc))

    def provider_summary(
        self, provider: ProviderKind, now: Optional[datetime] = None
    ) -> ProviderSection:
        state = self._router.snapshot(provider)
        override = self._router.executable_override(provider)
        now = now or datetime.now().astimezone()

        rows: list[AccountRow] = []
        for account in self._store.accounts(provider):
            day = self._ledger.totals(account.id, Period.DAY, now)
            week = self._ledger.totals(account.id, Period.WEEK, now)
            month = self._ledger.totals(account.id, Period.MONTH, now)
            rows.append(
                AccountRow(
                    id=account.id,
                    provider=provider,
                    label=account.label,
                    is_enabled=account.is_enabled,
                    is_active_now=state.active_account_id == account.id,
                    auth_status=self._auth(account, override).label(),
                    health_status=account.health.state(now).label,
                    day_cost=day.cost,
                    week_cost=week.cost,
                    month_cost=month.cost,
                    day_tokens=day.tokens,
                    week_tokens=week.tokens,
                    month_tokens=month.tokens,
                    last_error=account.last_auth_error or account.health.last_error_code,
                )
            )

        return ProviderSection(
            provider=provider,
            active_account_id=state.active_account_id,
            last_failover_reason=state.last_failover_reason,
            last_switch_at=state.last_switch_at,
            rows=rows,
        )

    def sections(self, now: Optional[datetime] = None) -> list[ProviderSection]:
        return [self.provider_summary(p, now) for p in ProviderKind]

    def total_summary(self, now: Optional[datetime] = None) -> DashboardTotals:
        active_ids = self._router.active_accounts
        totals = DashboardTotals()
        for account in self._store.all_accounts():
            totals.account_count += 1
            if account.health.is_exhausted_locally:
                totals.exhausted_count += 1
            if active_ids.get(account.provider) == account.id:
                totals.active_count += 1
            day = self._ledger.totals(account.id, Period.DAY, now)
            totals.total_day_cost += day.cost
            totals.total_day_tokens += day.tokens
        return totals
