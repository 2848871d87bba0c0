"""Consumption tracking: ledger, windows, pricing and quota checks."""

from accountpool.usage.ledger import UsageLedger
from accountpool.usage.models import Period, UsageEntry, UsageTotals, period_bounds
from accountpool.usage.pricing import ModelPrice, PricingCatalog
from accountpool.usage.quota import QuotaEvaluator, QuotaStatus

__all__ = [
    "ModelPrice",
    "Period",
    "PricingCatalog",
    "QuotaEvaluator",
    "QuotaStatus",
    "UsageEntry",
    "UsageLedger",
    "UsageTotals",
    "period_bounds",
]
