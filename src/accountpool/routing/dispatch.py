"""Runs a unit of work on a provider pool with automatic account failover."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from accountpool._logging import get_logger
from accountpool.accounts.models import Account
from accountpool.accounts.store import AccountStore
from accountpool.errors import AllAccountsExhaustedError
from accountpool.providers.kinds import ProviderKind
from accountpool.providers.profiles import environment_overrides
from accountpool.routing.classifier import classify_error
from accountpool.routing.router import AccountRouter
from accountpool.usage.pricing import PricingCatalog

logger = get_logger("AccountPool.Dispatch")


@dataclass
class WorkOutcome:
    """What a successful unit of work reports back."""

    input_tokens: int = 0
    output_tokens: int = 0
    model: Optional[str] = None
    result: Any = None


@dataclass
class DispatchResult:
    account: Account
    outcome: WorkOutcome
    estimated_cost: float
    attempted: list[str] = field(default_factory=list)

    @property
    def result(self) -> Any:
        return self.outcome.result


WorkFn = Callable[[Account, dict[str, str]], WorkOutcome]


class AccountDispatcher:
    """Selects an account, runs *work* with it, and reports the outcome.

    A failure classified as quota exhaustion or rate limiting moves on to
    the next eligible account; any other failure propagates unchanged. No
    account is tried twice within one ``execute`` call.
    """

    def __init__(
        self,
        router: AccountRouter,
        store: AccountStore,
        pricing: Optional[PricingCatalog] = None,
    ) -> None:
        self._router = router
        self._store = store
        self._pricing = pricing or PricingCatalog()

    def execute(
        self,
        provider: ProviderKind,
        work: WorkFn,
        *,
        model: Optional[str] = None,
    ) -> DispatchResult:
        attempted: list[str] = []
        last_exc: Optional[Exception] = None
        account = self._router.select_account(provider)

        while account is not None and account.id not in attempted:
            attempted.append(account.id)
            env = environment_overrides(
                provider, account.profile_path, self._store.secret(account.id)
            )

            try:
                outcome = work(account, env)
            except Exception as exc:
                failure = classify_error(provider, str(exc) or type(exc).__name__)
                self._router.mark_provider_error(account.id, provider, failure)
                if not failure.should_failover:
                    raise
                logger.warning(
                    f"{provider.value} account '{account.label}' failed with "
                    f"{failure.normalized_code}; trying the next account"
                )
                last_exc = exc
                account = self._router.next_available_account(account.id, provider)
                continue

            cost = self._pricing.estimated_cost(
                outcome.input_tokens,
                outcome.output_tokens,
                outcome.model or model or provider.provider_id,
            )
            self._router.mark_usage(
                account.id,
                provider,
                outcome.input_tokens,
                outcome.output_tokens,
                cost,
            )
            return DispatchResult(
                account=account,
                outcome=outcome,
                estimated_cost=cost,
                attempted=attempted,
            )

        raise AllAccountsExhaustedError(
            provider, attempted, str(last_exc) if last_exc else ""
        ) from last_exc
