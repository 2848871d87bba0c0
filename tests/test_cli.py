import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from accountpool.accounts.store import AccountStore
from accountpool.cli import main
from accountpool.providers.kinds import ProviderKind


def _run_cli(*args: str):
    """Invoke main() with the given CLI arguments."""
    with patch.object(sys, "argv", ["accountpool", *args]):
        main()


@pytest.fixture
def config_path(config) -> str:
    return str(config.config_path)


def _store(config) -> AccountStore:
    return AccountStore(
        db_path=config.get_accounts_db_path(),
        profiles_dir=config.get_profiles_dir(),
    )


class TestInit:
    def test_creates_template(self, tmp_path, capsys):
        target = tmp_path / "new" / "accountpool.yaml"
        _run_cli("--config", str(target), "init")
        assert target.is_file()
        assert "Config created at" in capsys.readouterr().out

    def test_skips_existing(self, config_path, capsys):
        before = Path(config_path).read_text()
        _run_cli("--config", config_path, "init")
        assert Path(config_path).read_text() == before
        assert "skipping" in capsys.readouterr().out


class TestMissingConfig:
    def test_friendly_error(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr("pathlib.Path.home", lambda: tmp_path)
        monkeypatch.delenv("ACCOUNTPOOL_CONFIG", raising=False)

        with pytest.raises(SystemExit) as exc_info:
            _run_cli("--config", str(tmp_path / "nope.yaml"), "list")

        assert exc_info.value.code == 1
        out = capsys.readouterr().out
        assert "No configuration file found" in out
        assert "accountpool init" in out


class TestAccountCommands:
    def test_add_and_list(self, config, config_path, capsys):
        _run_cli("--config", config_path, "add", "--provider", "codex", "--label", "work")
        _run_cli("--config", config_path, "add", "--provider", "claude")
        capsys.readouterr()

        _run_cli("--config", config_path, "list")
        out = capsys.readouterr().out
        assert "work" in out
        assert "Claude CLI 1" in out
        assert "2 account(s) total." in out

        _run_cli("--config", config_path, "list", "--provider", "claude")
        out = capsys.readouterr().out
        assert "work" not in out
        assert "1 account(s) total." in out

    def test_add_with_quota_and_key(self, config, config_path):
        _run_cli(
            "--config", config_path, "add", "--provider", "gemini",
            "--api-key", "g-key", "--daily-usd", "2.5", "--monthly-tokens", "1000",
        )
        (account,) = _store(config).accounts(ProviderKind.GEMINI)
        assert account.quota.daily_limit_usd == 2.5
        assert account.quota.monthly_token_limit == 1000
        assert account.quota.weekly_limit_usd is None
        assert _store(config).secret(account.id) == "g-key"
        assert Path(account.profile_path).is_dir()

    def test_list_empty(self, config_path, capsys):
        _run_cli("--config", config_path, "list")
        assert "No accounts configured." in capsys.readouterr().out

    def test_enable_disable_remove(self, config, config_path, capsys):
        account = _store(config).add_account(ProviderKind.CODEX, "one")

        _run_cli("--config", config_path, "disable", account.id)
        assert not _store(config).get(account.id).is_enabled
        _run_cli("--config", config_path, "enable", account.id)
        assert _store(config).get(account.id).is_enabled

        _run_cli("--config", config_path, "remove", account.id, "--purge-profile")
        assert _store(config).get(account.id) is None
        assert not Path(account.profile_path).exists()
        assert f"Removed: {account.id}" in capsys.readouterr().out

    @pytest.mark.parametrize("command", ["remove", "enable", "disable", "usage", "login"])
    def test_unknown_account(self, config_path, command, capsys):
        with pytest.raises(SystemExit) as exc_info:
            _run_cli("--config", config_path, command, "no-such-id")
        assert exc_info.value.code == 1
        assert "Account not found: no-such-id" in capsys.readouterr().out

    def test_reset_health(self, config, config_path, capsys):
        _store(config).add_account(ProviderKind.CLAUDE, "one")
        _run_cli("--config", config_path, "reset-health", "--provider", "claude")
        assert "Reset 1 account(s)." in capsys.readouterr().out

    def test_usage(self, config, config_path, capsys):
        account = _store(config).add_account(ProviderKind.CODEX, "one")
        _run_cli("--config", config_path, "usage", account.id)
        out = capsys.readouterr().out
        assert "one (Codex CLI)" in out
        for period in ("day", "week", "month"):
            assert period in out

    def test_status_without_accounts(self, config_path, capsys):
        _run_cli("--config", config_path, "status")
        out = capsys.readouterr().out
        assert "Codex CLI" in out
        assert "(no accounts)" in out
        assert "0 account(s), 0 active, 0 exhausted" in out

    def test_invalid_provider_rejected(self, config_path):
        with pytest.raises(SystemExit) as exc_info:
            _run_cli("--config", config_path, "add", "--provider", "copilot")
        assert exc_info.value.code == 2


class TestLogin:
    def test_not_installed(self, config, config_path, capsys):
        # codex is pointed at /opt/bin/codex, which does not exist
        account = _store(config).add_account(ProviderKind.CODEX, "one")
        with pytest.raises(SystemExit) as exc_info:
            _run_cli("--config", config_path, "login", account.id)
        assert exc_info.value.code == 1
        assert "not installed" in capsys.readouterr().out.lower()


class TestMcpServer:
    def test_default_runs_mcp(self, config_path):
        mock_mcp = MagicMock()
        with patch("accountpool.server.create_mcp_server", return_value=mock_mcp) as factory:
            _run_cli("--config", config_path)
        factory.assert_called_once()
        mock_mcp.run.assert_called_once()

    def test_serve_subcommand(self, config_path):
        mock_mcp = MagicMock()
        with patch("accountpool.server.create_mcp_server", return_value=mock_mcp):
            _run_cli("--config", config_path, "serve")
        mock_mcp.run.assert_called_once()
