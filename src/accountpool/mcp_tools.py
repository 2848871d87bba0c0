"""MCP tool implementations for accountpool.

Each function is a standalone implementation that takes the components it
needs and returns a JSON string.  The @mcp.tool() decoration and
registration happens in server.py.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Optional

from accountpool._logging import get_logger
from accountpool.accounts.models import Account
from accountpool.providers.kinds import ProviderKind
from accountpool.routing.classifier import classify_error
from accountpool.usage.models import Period

if TYPE_CHECKING:
    from accountpool.routing.router import AccountRouter
    from accountpool.usage.ledger import UsageLedger
    from accountpool.usage.pricing import PricingCatalog

logger = get_logger("AccountPool.MCPTools")


def _account_info(account: Optional[Account]) -> Optional[dict]:
    if account is None:
        return None
    return {
        "id": account.id,
        "provider": account.provider.value,
        "label": account.label,
        "priority": account.priority,
        "profile_path": account.profile_path,
        "health": account.health.to_dict(),
    }


def _parse_provider(provider: str) -> ProviderKind:
    return ProviderKind.parse(provider.strip())


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

def select_account(router: AccountRouter, provider: str) -> str:
    """Pick the next account of *provider* round-robin."""
    try:
        kind = _parse_provider(provider)
    except ValueError as exc:
        return json.dumps({"error": str(exc)})

    account = router.select_account(kind)
    result: dict = {"provider": kind.value, "account": _account_info(account)}
    if account is None:
        result["availability"] = router.current_availability(kind).to_dict()
    return json.dumps(result)


def next_available_account(router: AccountRouter, provider: str, after_account_id: str) -> str:
    """Fail over from *after_account_id* to the next eligible account."""
    try:
        kind = _parse_provider(provider)
    except ValueError as exc:
        return json.dumps({"error": str(exc)})

    account = router.next_available_account(after_account_id, kind)
    return json.dumps({
        "provider": kind.value,
        "account": _account_info(account),
        "last_failover_reason": router.snapshot(kind).last_failover_reason,
    })


def current_availability(router: AccountRouter, provider: str) -> str:
    try:
        kind = _parse_provider(provider)
    except ValueError as exc:
        return json.dumps({"error": str(exc)})
    return json.dumps(
        {"provider": kind.value, **router.current_availability(kind).to_dict()}
    )


# ---------------------------------------------------------------------------
# Outcome reporting
# ---------------------------------------------------------------------------

def mark_usage(
    router: AccountRouter,
    pricing: PricingCatalog,
    provider: str,
    account_id: str,
    input_tokens: int,
    output_tokens: int,
    estimated_cost: Optional[float] = None,
    model: str = "",
) -> str:
    """Record consumption. The cost is estimated from *model* when not given."""
    try:
        kind = _parse_provider(provider)
    except ValueError as exc:
        return json.dumps({"error": str(exc)})
    if input_tokens < 0 or output_tokens < 0:
        return json.dumps({"error": "Token counts must not be negative."})

    if estimated_cost is None:
        estimated_cost = pricing.estimated_cost(
            input_tokens, output_tokens, model or kind.provider_id
        )

    account = router.mark_usage(
        account_id, kind, input_tokens, output_tokens, estimated_cost
    )
    return json.dumps({
        "recorded": True,
        "estimated_cost_usd": estimated_cost,
        "account": _account_info(account),
    })


def report_error(router: AccountRouter, provider: str, account_id: str, message: str) -> str:
    """Classify a raw provider error and record it against the account."""
    try:
        kind = _parse_provider(provider)
    except ValueError as exc:
        return json.dumps({"error": str(exc)})

    failure = classify_error(kind, message)
    account = router.mark_provider_error(account_id, kind, failure)
    logger.info(f"Reported {failure.normalized_code} for account {account_id}")
    return json.dumps({
        "normalized_code": failure.normalized_code,
        "is_quota_exhaustion": failure.is_quota_exhaustion,
        "is_rate_limited": failure.is_rate_limited,
        "retry_after_seconds": failure.retry_after_seconds,
        "should_failover": failure.should_failover,
        "account": _account_info(account),
    })


# ---------------------------------------------------------------------------
# Read-only views
# ---------------------------------------------------------------------------

def router_state(router: AccountRouter, provider: str = "") -> str:
    """Transient routing state for one provider, or all when empty."""
    if provider:
        try:
            kinds = [_parse_provider(provider)]
        except ValueError as exc:
            return json.dumps({"error": str(exc)})
    else:
        kinds = list(ProviderKind)
    return json.dumps([router.snapshot(k).to_dict() for k in kinds], indent=2)


def usage_totals(ledger: UsageLedger, account_id: str) -> str:
    """Cost and token totals for the current day, week and month."""
    if not account_id:
        return json.dumps({"error": "account_id is required."})
    return json.dumps({
        "account_id": account_id,
        **{p.value: ledger.totals(account_id, p).to_dict() for p in Period},
    })
