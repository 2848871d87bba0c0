"""Account selection, failover and outcome bookkeeping per provider pool."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Optional

from accountpool._logging import get_logger
from accountpool.accounts.models import (
    LOCAL_LIMIT_REACHED,
    Account,
    Availability,
    ClassifiedFailure,
    ExhaustionSource,
    to_iso,
    utcnow,
)
from accountpool.accounts.store import AccountStore
from accountpool.auth.probe import AuthProbe
from accountpool.providers.kinds import ProviderKind
from accountpool.usage.ledger import UsageLedger
from accountpool.usage.models import UsageEntry
from accountpool.usage.quota import QuotaEvaluator

if TYPE_CHECKING:
    from accountpool.config import ConfigLoader

logger = get_logger("AccountPool.Router")

NO_ACCOUNT_AVAILABLE = "No account available"


@dataclass(frozen=True)
class RouterState:
    """Read-only view of one provider's transient routing state."""

    provider: ProviderKind
    cursor: int = 0
    active_account_id: Optional[str] = None
    last_failover_reason: Optional[str] = None
    last_switch_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "provider": self.provider.value,
            "cursor": self.cursor,
            "active_account_id": self.active_account_id,
            "last_failover_reason": self.last_failover_reason,
            "last_switch_at": to_iso(self.last_switch_at),
        }


@dataclass
class _PoolState:
    cursor: int = 0
    active_account_id: Optional[str] = None
    last_failover_reason: Optional[str] = None
    last_switch_at: Optional[datetime] = None


class AccountRouter:
    """Chooses which account of a provider runs the next unit of work.

    Selection is two-phase. Login checks go through the auth probe outside
    any lock, since they may spawn a subprocess. Everything else (health
    and quota filtering, ordering, the round-robin cursor, active-account
    bookkeeping) runs under the provider's lock against a fresh read of the
    store. Health read-modify-writes in ``mark_usage`` and
    ``mark_provider_error`` hold the same lock, so different providers never
    contend while one provider's bookkeeping stays serial.

    Routing state is in memory only and starts empty on every process start.
    """

    def __init__(
        self,
        store: AccountStore,
        ledger: UsageLedger,
        probe: AuthProbe,
        config: Optional[ConfigLoader] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._probe = probe
        self._config = config
        self._clock = clock or utcnow
        self._quota = QuotaEvaluator(ledger)

        router_cfg = config.get_router_config() if config is not None else {}
        self._rate_limit_floor = int(router_cfg.get("rate_limit_floor_seconds", 30))
        self._default_cooldown = int(router_cfg.get("default_cooldown_seconds", 120))

        self._locks: dict[ProviderKind, threading.RLock] = {
            p: threading.RLock() for p in ProviderKind
        }
        self._state: dict[ProviderKind, _PoolState] = {
            p: _PoolState() for p in ProviderKind
        }

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    def executable_override(self, provider: ProviderKind) -> Optional[str]:
        if self._config is None:
            return None
        return self._config.get_executable_override(provider)

    def _logged_in_ids(self, provider: ProviderKind) -> set[str]:
        """Probe the accounts of *provider* that pass the health checks.

        Disabled, exhausted and cooling-down accounts are skipped without a
        probe; ``_eligible`` repeats those checks under the lock. Probe
        failures count as logged out.
        """
        override = self.executable_override(provider)
        now = self._clock()
        logged_in: set[str] = set()
        for account in self._store.accounts(provider):
            if not self._passes_health(account, now):
                continue
            try:
                status = self._probe.detect(account, override)
            except Exception as exc:
                logger.warning(
                    f"Auth probe raised for {provider.value} account {account.id}: {exc}"
                )
                continue
            if status.is_logged_in:
                logged_in.add(account.id)
            else:
                logger.debug(
                    f"{provider.value} account {account.id} not usable: {status.label()}"
                )
        return logged_in

    @staticmethod
    def _passes_health(account: Account, now: datetime) -> bool:
        if not account.is_enabled:
            return False
        health = account.health
        if health.is_exhausted_locally:
            return False
        return health.cooldown_until is None or health.cooldown_until <= now

    def _eligible(
        self, provider: ProviderKind, logged_in: set[str], now: datetime
    ) -> list[Account]:
        """Ordered eligible accounts. Caller holds the provider lock."""
        candidates: list[Account] = []
        for account in sorted(self._store.accounts(provider), key=Account.sort_key):
            if not self._passes_health(account, now):
                continue
            if account.id not in logged_in:
                continue
            if self._quota.exceeds_policy(account, now):
                continue
            candidates.append(account)
        return candidates

    def eligible_accounts(self, provider: ProviderKind) -> list[Account]:
        """The accounts that could be selected right now, in selection order."""
        logged_in = self._logged_in_ids(provider)
        with self._locks[provider]:
            return self._eligible(provider, logged_in, self._clock())

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_account(self, provider: ProviderKind) -> Optional[Account]:
        """Round-robin over the eligible accounts. None when there are none."""
        logged_in = self._logged_in_ids(provider)
        with self._locks[provider]:
            candidates = self._eligible(provider, logged_in, self._clock())
            if not candidates:
                logger.info(f"No eligible {provider.value} account")
                return None
            state = self._state[provider]
            index = state.cursor % len(candidates)
            state.cursor = (index + 1) % len(candidates)
            selected = candidates[index]
            self.mark_account_selected(selected.id, provider)
        logger.info(
            f"Selected {provider.value} account '{selected.label}' ({selected.id})"
        )
        return selected

    def next_available_account(
        self, after_account_id: str, provider: ProviderKind
    ) -> Optional[Account]:
        """The eligible account after *after_account_id*, wrapping around.

        If that account is no longer eligible the first eligible account is
        returned. The provider's failover reason is carried forward.
        """
        logged_in = self._logged_in_ids(provider)
        with self._locks[provider]:
            candidates = self._eligible(provider, logged_in, self._clock())
            if not candidates:
                logger.info(f"No {provider.value} account left to fail over to")
                return None
            ids = [a.id for a in candidates]
            if after_account_id in ids:
                selected = candidates[(ids.index(after_account_id) + 1) % len(candidates)]
            else:
                selected = candidates[0]
            reason = self._state[provider].last_failover_reason
            self.mark_account_selected(selected.id, provider, reason)
        logger.info(
            f"Failing over {provider.value} from {after_account_id} to "
            f"'{selected.label}' ({selected.id}), reason: {reason or 'none'}"
        )
        return selected

    def current_availability(self, provider: ProviderKind) -> Availability:
        if self.eligible_accounts(provider):
            return Availability.available()
        return Availability.all_exhausted(NO_ACCOUNT_AVAILABLE)

    def mark_account_selected(
        self, account_id: str, provider: ProviderKind, reason: Optional[str] = None
    ) -> None:
        """Record *account_id* as active. A non-empty *reason* replaces the failover reason."""
        with self._locks[provider]:
            state = self._state[provider]
            state.active_account_id = account_id
            state.last_switch_at = self._clock()
            if reason:
                state.last_failover_reason = reason

    # ------------------------------------------------------------------
    # Outcome reporting
    # ------------------------------------------------------------------

    def mark_usage(
        self,
        account_id: str,
        provider: ProviderKind,
        input_tokens: int,
        output_tokens: int,
        estimated_cost: float,
    ) -> Optional[Account]:
        """Record a successful unit of work and refresh the account's health.

        The ledger entry is written even for unknown accounts. Returns the
        updated account, or None if no account with that id and provider
        exists.
        """
        with self._locks[provider]:
            now = self._clock()
            self._ledger.append(
                UsageEntry(
                    account_id=account_id,
                    provider=provider,
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    estimated_cost_usd=estimated_cost,
                    timestamp=now,
                )
            )

            account = self._store.get(account_id)
            if account is None or account.provider is not provider:
                return None

            health = account.health
            health.record_success()
            quota = self._quota.check(account, now)
            if not quota.allowed:
                health.mark_exhausted(ExhaustionSource.LOCAL_QUOTA)
                health.last_error_code = LOCAL_LIMIT_REACHED
                logger.warning(
                    f"{provider.value} account '{account.label}' ({account.id}) "
                    f"exhausted locally: {quota.reason}"
                )
            elif health.clear_local_exhaustion():
                logger.info(
                    f"{provider.value} account '{account.label}' ({account.id}) "
                    "back within quota"
                )
            self._store.update_health(account.id, health)
        return account

    def mark_provider_error(
        self,
        account_id: str,
        provider: ProviderKind,
        failure: ClassifiedFailure,
    ) -> Optional[Account]:
        """Record a classified failure. Does not fail over by itself."""
        with self._locks[provider]:
            account = self._store.get(account_id)
            if account is None or account.provider is not provider:
                return None

            health = account.health
            health.record_failure(failure.normalized_code)
            if failure.is_quota_exhaustion:
                health.mark_exhausted(ExhaustionSource.PROVIDER)
                logger.warning(
                    f"{provider.value} account '{account.label}' ({account.id}) "
                    f"exhausted by provider: {failure.normalized_code}"
                )
            if failure.is_rate_limited:
                seconds = max(
                    self._rate_limit_floor,
                    failure.retry_after_seconds or self._default_cooldown,
                )
                health.start_cooldown(self._clock() + timedelta(seconds=seconds))
                logger.warning(
                    f"{provider.value} account '{account.label}' ({account.id}) "
                    f"rate limited, cooling down for {seconds}s"
                )
            if not failure.should_failover:
                logger.warning(
                    f"{provider.value} account '{account.label}' ({account.id}) "
                    f"error: {failure.normalized_code}"
                )
            self._state[provider].last_failover_reason = failure.normalized_code
            self._store.update_health(account.id, health)
        return account

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    def snapshot(self, provider: ProviderKind) -> RouterState:
        with self._locks[provider]:
            state = self._state[provider]
            return RouterState(
                provider=provider,
                cursor=state.cursor,
                active_account_id=state.active_account_id,
                last_failover_reason=state.last_failover_reason,
                last_switch_at=state.last_switch_at,
            )

    def _collect(self, attr: str) -> dict:
        values = {}
        for provider in ProviderKind:
            value = getattr(self.snapshot(provider), attr)
            if value is not None:
                values[provider] = value
        return values

    @property
    def round_robin_index(self) -> dict[ProviderKind, int]:
        return self._collect("cursor")

    @property
    def active_accounts(self) -> dict[ProviderKind, str]:
        return self._collect("active_account_id")

    @property
    def last_failover_reasons(self) -> dict[ProviderKind, str]:
        return self._collect("last_failover_reason")

    @property
    def last_switch_times(self) -> dict[ProviderKind, datetime]:
        return self._collect("last_switch_at")
