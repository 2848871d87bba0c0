"""Tests for AccountDispatcher's failover loop."""

import pytest

from accountpool.errors import AllAccountsExhaustedError
from accountpool.providers.kinds import ProviderKind
from accountpool.routing.dispatch import AccountDispatcher, WorkOutcome
from accountpool.usage.models import Period
from accountpool.usage.pricing import PricingCatalog

CODEX = ProviderKind.CODEX


@pytest.fixture
def dispatcher(router, store):
    return AccountDispatcher(router, store, PricingCatalog())


class TestExecute:
    def test_success_records_usage(self, dispatcher, store, ledger, clock):
        a = store.add_account(CODEX, "one", api_key="sk-one")
        seen = {}

        def work(account, env):
            seen.update(env)
            return WorkOutcome(input_tokens=1_000_000, output_tokens=0, model="gpt-4o-mini", result="ok")

        result = dispatcher.execute(CODEX, work)

        assert result.account.id == a.id
        assert result.result == "ok"
        assert result.attempted == [a.id]
        assert result.estimated_cost == pytest.approx(0.15)
        assert seen == {"CODEX_HOME": a.profile_path, "OPENAI_API_KEY": "sk-one"}

        totals = ledger.totals(a.id, Period.DAY, clock.now)
        assert totals.tokens == 1_000_000
        assert totals.cost == pytest.approx(0.15)

    def test_fallback_model_for_pricing(self, dispatcher, store):
        store.add_account(CODEX, "one")
        result = dispatcher.execute(
            CODEX,
            lambda account, env: WorkOutcome(input_tokens=1_000_000),
            model="gpt-4o",
        )
        assert result.estimated_cost == pytest.approx(5.0)

    def test_quota_error_fails_over(self, dispatcher, store, router):
        a = store.add_account(CODEX, "one")
        b = store.add_account(CODEX, "two")

        def work(account, env):
            if account.id == a.id:
                raise RuntimeError("You exceeded your current quota")
            return WorkOutcome(input_tokens=10, output_tokens=5, result=account.id)

        result = dispatcher.execute(CODEX, work)

        assert result.result == b.id
        assert result.attempted == [a.id, b.id]
        assert store.get(a.id).health.is_exhausted_locally
        assert router.last_failover_reasons[CODEX] == "codex-cli:quota_exhausted"
        assert router.active_accounts[CODEX] == b.id

    def test_other_errors_propagate(self, dispatcher, store):
        a = store.add_account(CODEX, "one")
        store.add_account(CODEX, "two")

        def work(account, env):
            raise ValueError("bad input")

        with pytest.raises(ValueError, match="bad input"):
            dispatcher.execute(CODEX, work)
        health = store.get(a.id).health
        assert health.consecutive_failures == 1
        assert health.last_error_code == "codex-cli:generic_error"

    def test_all_accounts_exhausted(self, dispatcher, store):
        a = store.add_account(CODEX, "one")
        b = store.add_account(CODEX, "two")
        calls = []

        def work(account, env):
            calls.append(account.id)
            raise RuntimeError("429 Too Many Requests")

        with pytest.raises(AllAccountsExhaustedError) as excinfo:
            dispatcher.execute(CODEX, work)

        err = excinfo.value
        assert calls == [a.id, b.id]
        assert err.attempts == [a.id, b.id]
        assert err.provider is CODEX
        assert "429" in err.last_error
        assert isinstance(err.__cause__, RuntimeError)

    def test_empty_pool(self, dispatcher):
        with pytest.raises(AllAccountsExhaustedError) as excinfo:
            dispatcher.execute(CODEX, lambda account, env: WorkOutcome())
        assert excinfo.value.attempts == []
        assert "Codex CLI" in str(excinfo.value)

    def test_failed_attempt_does_not_refresh_switch(self, dispatcher, store, router, clock):
        a = store.add_account(CODEX, "one")
        selected_at = clock.now

        def work(account, env):
            clock.advance(10)
            raise RuntimeError("rate limit, retry after 60")

        with pytest.raises(AllAccountsExhaustedError):
            dispatcher.execute(CODEX, work)

        state = router.snapshot(CODEX)
        assert state.active_account_id == a.id
        assert state.last_switch_at == selected_at
        assert state.last_failover_reason == "codex-cli:rate_limited"
