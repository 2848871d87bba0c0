from typing import Optional

from mcp.server.fastmcp import FastMCP

from accountpool._logging import get_logger
from accountpool.config import ConfigLoader
from accountpool.context import PoolContext, build_context
from accountpool.mcp_tools import (
    current_availability as _current_availability,
    mark_usage as _mark_usage,
    next_available_account as _next_available_account,
    report_error as _report_error,
    router_state as _router_state,
    select_account as _select_account,
    usage_totals as _usage_totals,
)

logger = get_logger("AccountPool.Server")

# Default enabled state for each MCP tool.
_MCP_TOOL_DEFAULTS: dict[str, bool] = {
    "select_account": True,
    "next_available_account": True,
    "current_availability": True,
    "mark_usage": True,
    "report_error": True,
    "router_state": True,
    "usage_totals": True,
}


def create_mcp_server(config: ConfigLoader, context: Optional[PoolContext] = None) -> FastMCP:
    """Factory that builds a fully-wired FastMCP server instance."""
    mcp = FastMCP("AccountPool")
    ctx = context or build_context(config)
    router = ctx.router

    def _is_enabled(tool_name: str) -> bool:
        default = _MCP_TOOL_DEFAULTS.get(tool_name, True)
        return config.is_mcp_tool_enabled(tool_name, default=default)

    # --- Conditionally register tools ---

    if _is_enabled("select_account"):
        @mcp.tool()
        def select_account(provider: str) -> str:
            """Choose the account that should run the next unit of work for a
            provider CLI (codex, claude or gemini). Rotates round-robin over
            accounts that are enabled, logged in, not cooling down and within
            quota. Returns the account, or its absence with a reason."""
            return _select_account(router, provider)

    if _is_enabled("next_available_account"):
        @mcp.tool()
        def next_available_account(provider: str, after_account_id: str) -> str:
            """Fail over to the next eligible account after the given one,
            wrapping around. Call after report_error says to fail over."""
            return _next_available_account(router, provider, after_account_id)

    if _is_enabled("current_availability"):
        @mcp.tool()
        def current_availability(provider: str) -> str:
            """Report whether any account of the provider is usable right now."""
            return _current_availability(router, provider)

    if _is_enabled("mark_usage"):
        @mcp.tool()
        def mark_usage(
            provider: str,
            account_id: str,
            input_tokens: int,
            output_tokens: int,
            estimated_cost: Optional[float] = None,
            model: str = "",
        ) -> str:
            """Record tokens (and cost) consumed by a successful unit of work.
            Clears the account's failure state and re-checks its quota. If no
            cost is given it is estimated from the model name."""
            return _mark_usage(
                router, ctx.pricing, provider, account_id,
                input_tokens, output_tokens, estimated_cost, model,
            )

    if _is_enabled("report_error"):
        @mcp.tool()
        def report_error(provider: str, account_id: str, message: str) -> str:
            """Classify a provider error message (quota, rate limit, other) and
            record it on the account. Quota errors exhaust the account until
            an administrative reset; rate limits start a cooldown."""
            return _report_error(router, provider, account_id, message)

    if _is_enabled("router_state"):
        @mcp.tool()
        def router_state(provider: str = "") -> str:
            """Show the active account, round-robin cursor, last failover reason
            and last switch time per provider."""
            return _router_state(router, provider)

    if _is_enabled("usage_totals"):
        @mcp.tool()
        def usage_totals(account_id: str) -> str:
            """Cost and token totals of an account for today, this week and
            this month."""
            return _usage_totals(ctx.ledger, account_id)

    logger.info("MCP server ready")
    return mcp
