"""Tests for QuotaEvaluator."""

from datetime import datetime, timedelta, timezone

import pytest

from accountpool.accounts.models import Account, QuotaPolicy
from accountpool.providers.kinds import ProviderKind
from accountpool.usage.models import Period, UsageEntry
from accountpool.usage.quota import QuotaEvaluator

NOW = datetime(2025, 6, 11, 12, 0, tzinfo=timezone.utc)


def _account(**limits) -> Account:
    return Account(provider=ProviderKind.CODEX, label="q", quota=QuotaPolicy(**limits))


def _spend(ledger, account, tokens=0, cost=0.0, when=NOW):
    ledger.append(
        UsageEntry(
            account_id=account.id,
            provider=account.provider,
            input_tokens=tokens,
            output_tokens=0,
            estimated_cost_usd=cost,
            timestamp=when,
        )
    )


def test_unlimited_never_exceeds(ledger):
    account = _account()
    _spend(ledger, account, tokens=10**9, cost=10**6)
    status = QuotaEvaluator(ledger).check(account, NOW)
    assert status.allowed
    assert status.totals == {}


def test_cost_limit_is_inclusive(ledger):
    account = _account(daily_limit_usd=1.0)
    evaluator = QuotaEvaluator(ledger)
    _spend(ledger, account, cost=0.5)
    assert not evaluator.exceeds_policy(account, NOW)
    _spend(ledger, account, cost=0.5)
    assert evaluator.exceeds_policy(account, NOW)


def test_token_limit_is_inclusive(ledger):
    account = _account(weekly_token_limit=1000)
    evaluator = QuotaEvaluator(ledger)
    _spend(ledger, account, tokens=999)
    assert not evaluator.exceeds_policy(account, NOW)
    _spend(ledger, account, tokens=1)
    status = evaluator.check(account, NOW)
    assert not status.allowed
    assert "Week token limit" in status.reason
    assert status.totals[Period.WEEK].tokens == 1000


def test_usage_outside_window_ignored(ledger):
    account = _account(daily_limit_usd=1.0, monthly_limit_usd=5.0)
    _spend(ledger, account, cost=2.0, when=NOW - timedelta(days=2))
    evaluator = QuotaEvaluator(ledger)
    status = evaluator.check(account, NOW)
    # The older spend may or may not share the month with NOW; the day is clean.
    assert status.totals[Period.DAY].cost == 0.0
    assert status.allowed


def test_monthly_cost(ledger):
    account = _account(monthly_limit_usd=3.0)
    _spend(ledger, account, cost=3.0)
    status = QuotaEvaluator(ledger).check(account, NOW)
    assert not status.allowed
    assert status.reason.startswith("Month cost limit reached")
    assert status.totals[Period.MONTH].cost == pytest.approx(3.0)
