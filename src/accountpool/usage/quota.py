"""Per-account quota enforcement against the usage ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from accountpool.accounts.models import Account
from accountpool.usage.ledger import UsageLedger
from accountpool.usage.models import Period, UsageTotals

# (period, cost-limit attribute, token-limit attribute)
_WINDOWS: tuple[tuple[Period, str, str], ...] = (
    (Period.DAY, "daily_limit_usd", "daily_token_limit"),
    (Period.WEEK, "weekly_limit_usd", "weekly_token_limit"),
    (Period.MONTH, "monthly_limit_usd", "monthly_token_limit"),
)


@dataclass
class QuotaStatus:
    """Result of a quota check."""

    allowed: bool
    reason: str = ""
    totals: dict[Period, UsageTotals] = field(default_factory=dict)


class QuotaEvaluator:
    """Checks an account's window totals against its configured limits.

    Limits are inclusive: reaching a limit counts as exceeding it, so an
    account is within policy only while every total is strictly below its
    limit. Unset limits never exclude, and their windows are not queried.
    """

    def __init__(self, ledger: UsageLedger) -> None:
        self._ledger = ledger

    def check(self, account: Account, now: Optional[datetime] = None) -> QuotaStatus:
        quota = account.quota
        totals: dict[Period, UsageTotals] = {}

        for period, cost_attr, token_attr in _WINDOWS:
            cost_limit = getattr(quota, cost_attr)
            token_limit = getattr(quota, token_attr)
            if cost_limit is None and token_limit is None:
                continue

            window = self._ledger.totals(account.id, period, now)
            totals[period] = window

            if cost_limit is not None and window.cost >= cost_limit:
                return QuotaStatus(
                    allowed=False,
                    reason=(
                        f"{period.value.capitalize()} cost limit reached "
                        f"(${window.cost:.2f}/${cost_limit:.2f})"
                    ),
                    totals=totals,
                )
            if token_limit is not None and window.tokens >= token_limit:
                return QuotaStatus(
                    allowed=False,
                    reason=(
                        f"{period.value.capitalize()} token limit reached "
                        f"({window.tokens}/{token_limit})"
                    ),
                    totals=totals,
                )

        return QuotaStatus(allowed=True, totals=totals)

    def exceeds_policy(self, account: Account, now: Optional[datetime] = None) -> bool:
        return not self.check(account, now).allowed
