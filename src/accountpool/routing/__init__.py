"""Account selection, failover, error classification and dashboard data."""

from accountpool.routing.classifier import classify_error
from accountpool.routing.dashboard import (
    AccountRow,
    DashboardTotals,
    ProviderSection,
    UsageDashboard,
)
from accountpool.routing.dispatch import AccountDispatcher, DispatchResult, WorkOutcome
from accountpool.routing.router import AccountRouter, RouterState

__all__ = [
    "AccountDispatcher",
    "AccountRouter",
    "AccountRow",
    "DashboardTotals",
    "DispatchResult",
    "ProviderSection",
    "RouterState",
    "UsageDashboard",
    "WorkOutcome",
    "classify_error",
]
