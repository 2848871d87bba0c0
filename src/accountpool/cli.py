import argparse
import logging
import sys
from pathlib import Path

from accountpool._logging import get_logger
from accountpool.providers.kinds import ProviderKind

logger = get_logger("AccountPool.CLI")

_PROVIDER_CHOICES = [p.value for p in ProviderKind]


def _add_quota_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--daily-usd", type=float, default=None, help="Daily cost limit in USD")
    parser.add_argument("--weekly-usd", type=float, default=None, help="Weekly cost limit in USD")
    parser.add_argument("--monthly-usd", type=float, default=None, help="Monthly cost limit in USD")
    parser.add_argument("--daily-tokens", type=int, default=None, help="Daily token limit")
    parser.add_argument("--weekly-tokens", type=int, default=None, help="Weekly token limit")
    parser.add_argument("--monthly-tokens", type=int, default=None, help="Monthly token limit")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="AccountPool: CLI account router and MCP server")
    parser.add_argument(
        "--config",
        help="Path to accountpool.yaml. Falls back to ACCOUNTPOOL_CONFIG env var, "
        "then ~/.accountpool/accountpool.yaml.",
    )

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init", help="Write a starter configuration file.")

    # --- account management ---
    add = subparsers.add_parser("add", help="Add an account to a provider pool.")
    add.add_argument("--provider", required=True, choices=_PROVIDER_CHOICES)
    add.add_argument("--label", default="", help="Display name (default: '<Provider> <n>')")
    add.add_argument("--api-key", default=None, help="Store an API key for this account")
    _add_quota_arguments(add)

    ls = subparsers.add_parser("list", help="List accounts.")
    ls.add_argument("--provider", choices=_PROVIDER_CHOICES, default=None)

    rm = subparsers.add_parser("remove", help="Delete an account and its stored key.")
    rm.add_argument("account_id")
    rm.add_argument(
        "--purge-profile",
        action="store_true",
        help="Also delete the account's profile directory.",
    )

    en = subparsers.add_parser("enable", help="Enable an account.")
    en.add_argument("account_id")
    dis = subparsers.add_parser("disable", help="Disable an account.")
    dis.add_argument("account_id")

    rh = subparsers.add_parser(
        "reset-health", help="Clear exhaustion and cooldowns for a provider's accounts."
    )
    rh.add_argument("--provider", required=True, choices=_PROVIDER_CHOICES)

    # --- views ---
    st = subparsers.add_parser("status", help="Show the usage and health dashboard.")
    st.add_argument("--provider", choices=_PROVIDER_CHOICES, default=None)

    us = subparsers.add_parser("usage", help="Show day/week/month totals for an account.")
    us.add_argument("account_id")

    # --- login ---
    lg = subparsers.add_parser("login", help="Log an account into its provider CLI.")
    lg.add_argument("account_id")
    lg.add_argument(
        "--method",
        choices=["browser_oauth", "device_code", "api_key"],
        default="browser_oauth",
    )
    lg.add_argument("--api-key", default=None, help="Key to pass to the CLI for --method api_key")
    lg.add_argument(
        "--no-wait",
        action="store_true",
        help="Start the login and return without waiting for it to finish.",
    )

    subparsers.add_parser("serve", help="Run the MCP server (default).")
    return parser


def _load_context(args):
    from accountpool.config import ConfigLoader
    from accountpool.context import build_context

    try:
        config = ConfigLoader(config_path=args.config)
    except FileNotFoundError:
        print(
            "No configuration file found.\n"
            "Run 'accountpool init' to create one."
        )
        sys.exit(1)

    logging.getLogger().setLevel(config.get_log_level())
    return build_context(config)


def _get_account_or_exit(ctx, account_id: str):
    account = ctx.store.get(account_id)
    if account is None:
        print(f"Account not found: {account_id}")
        sys.exit(1)
    return account


def _format_section(section) -> list[str]:
    lines = [f"{section.provider.display_name}"]
    if section.active_account_id:
        lines.append(f"  active: {section.active_account_id}")
    if section.last_failover_reason:
        lines.append(f"  last failover: {section.last_failover_reason}")
    if not section.rows:
        lines.append("  (no accounts)")
    for row in section.rows:
        marker = "*" if row.is_active_now else " "
        enabled = "" if row.is_enabled else " [disabled]"
        lines.append(
            f" {marker} {row.label}{enabled}  {row.auth_status}  {row.health_status}  "
            f"day ${row.day_cost:.4f}/{row.day_tokens} tok  "
            f"week ${row.week_cost:.4f}/{row.week_tokens} tok  "
            f"month ${row.month_cost:.4f}/{row.month_tokens} tok"
        )
        if row.last_error:
            lines.append(f"      last error: {row.last_error}")
    return lines


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    parser = _build_parser()
    args = parser.parse_args()

    # ---- init subcommand (no config needed) ----
    if args.command == "init":
        from accountpool.config import create_config_template

        create_config_template(Path(args.config) if args.config else None)
        return

    from accountpool.accounts.models import QuotaPolicy, utcnow
    from accountpool.providers.commands import LoginMethod
    from accountpool.usage.models import Period

    ctx = _load_context(args)

    # ---- account management ----
    if args.command == "add":
        quota = QuotaPolicy(
            daily_limit_usd=args.daily_usd,
            weekly_limit_usd=args.weekly_usd,
            monthly_limit_usd=args.monthly_usd,
            daily_token_limit=args.daily_tokens,
            weekly_token_limit=args.weekly_tokens,
            monthly_token_limit=args.monthly_tokens,
        )
        account = ctx.store.add_account(
            ProviderKind.parse(args.provider),
            label=args.label,
            api_key=args.api_key,
            quota=quota,
        )
        print(f"Added {account.provider.display_name} account '{account.label}': {account.id}")
        print(f"Profile: {account.profile_path}")
        return

    if args.command == "list":
        if args.provider:
            accounts = ctx.store.accounts(ProviderKind.parse(args.provider))
        else:
            accounts = ctx.store.all_accounts()
        if not accounts:
            print("No accounts configured.")
            print("Add one with:  accountpool add --provider <codex|claude|gemini>")
            return
        for a in accounts:
            state = a.health.state(utcnow()).label
            enabled = "enabled" if a.is_enabled else "disabled"
            print(f"  {a.id}  {a.provider.value:<7} {a.priority:>3}  {a.label}  ({enabled}, {state})")
        print(f"\n{len(accounts)} account(s) total.")
        return

    if args.command == "remove":
        if not ctx.store.delete(args.account_id, remove_profile=args.purge_profile):
            print(f"Account not found: {args.account_id}")
            sys.exit(1)
        ctx.probe.invalidate(args.account_id)
        print(f"Removed: {args.account_id}")
        return

    if args.command in ("enable", "disable"):
        enabled = args.command == "enable"
        if not ctx.store.set_enabled(args.account_id, enabled):
            print(f"Account not found: {args.account_id}")
            sys.exit(1)
        print(f"{'Enabled' if enabled else 'Disabled'}: {args.account_id}")
        return

    if args.command == "reset-health":
        count = ctx.store.reset_health(ProviderKind.parse(args.provider))
        print(f"Reset {count} account(s).")
        return

    # ---- views ----
    if args.command == "status":
        providers = (
            [ProviderKind.parse(args.provider)] if args.provider else list(ProviderKind)
        )
        for provider in providers:
            print("\n".join(_format_section(ctx.dashboard.provider_summary(provider))))
            print()
        totals = ctx.dashboard.total_summary()
        print(
            f"{totals.account_count} account(s), {totals.active_count} active, "
            f"{totals.exhausted_count} exhausted; today ${totals.total_day_cost:.4f}, "
            f"{totals.total_day_tokens} tokens"
        )
        return

    if args.command == "usage":
        account = _get_account_or_exit(ctx, args.account_id)
        print(f"{account.label} ({account.provider.display_name})")
        for period in Period:
            t = ctx.ledger.totals(account.id, period)
            print(f"  {period.value:<6} ${t.cost:.4f}  {t.tokens} tokens")
        return

    # ---- login ----
    if args.command == "login":
        account = _get_account_or_exit(ctx, args.account_id)
        override = ctx.config.get_executable_override(account.provider)
        started = ctx.login.start_login(
            account, LoginMethod(args.method), override, api_key=args.api_key
        )
        if not started:
            print(ctx.login.status(account.id))
            sys.exit(1)
        if args.no_wait:
            print(ctx.login.status(account.id))
            return
        print(ctx.login.status(account.id))
        connected = ctx.login.wait_for_login(account, override, on_status=print)
        print(ctx.login.status(account.id))
        if connected:
            ctx.store.update_auth_status(account.id, ctx.probe.detect(account, override))
        else:
            sys.exit(1)
        return

    # ---- Default: run MCP server ----
    from accountpool.server import create_mcp_server

    mcp = create_mcp_server(ctx.config, ctx)
    mcp.run()
