"""Wires stores, probe, router and dispatcher together from a ConfigLoader."""

from __future__ import annotations

from dataclasses import dataclass

from accountpool.accounts.store import AccountStore
from accountpool.auth.login import LoginCoordinator
from accountpool.auth.probe import AuthProbe, CachedAuthProbe, CLIAuthProbe
from accountpool.config import ConfigLoader
from accountpool.routing.dashboard import UsageDashboard
from accountpool.routing.dispatch import AccountDispatcher
from accountpool.routing.router import AccountRouter
from accountpool.usage.ledger import UsageLedger
from accountpool.usage.pricing import PricingCatalog


@dataclass
class PoolContext:
    config: ConfigLoader
    store: AccountStore
    ledger: UsageLedger
    probe: AuthProbe
    router: AccountRouter
    pricing: PricingCatalog
    dispatcher: AccountDispatcher
    dashboard: UsageDashboard
    login: LoginCoordinator


def build_context(config: ConfigLoader) -> PoolContext:
    """Instantiate every component from *config*."""
    store = AccountStore(
        db_path=config.get_accounts_db_path(),
        profiles_dir=config.get_profiles_dir(),
    )
    ledger = UsageLedger(db_path=config.get_ledger_db_path())

    router_cfg = config.get_router_config()
    probe = CachedAuthProbe(
        CLIAuthProbe(store.secrets, timeout=config.get_probe_timeout()),
        ttl=float(router_cfg["probe_cache_ttl_seconds"]),
    )

    router = AccountRouter(store, ledger, probe, config=config)
    pricing = PricingCatalog.from_config(config.get_pricing_overrides())

    return PoolContext(
        config=config,
        store=store,
        ledger=ledger,
        probe=probe,
        router=router,
        pricing=pricing,
        dispatcher=AccountDispatcher(router, store, pricing),
        dashboard=UsageDashboard(store, ledger, router, probe),
        login=LoginCoordinator(store.secrets, probe),
    )
