"""Tests for ProviderKind and the per-provider lookup tables."""

import os
import stat
from pathlib import Path

import pytest

from accountpool.providers.commands import LOGIN_ARGS, STATUS_ARGS, LoginMethod, login_args, status_args
from accountpool.providers.executables import EXECUTABLE_NAMES, is_executable, resolve_executable
from accountpool.providers.kinds import ProviderKind
from accountpool.providers.profiles import PROFILE_ENV_VARS, ensure_profile, environment_overrides


class TestProviderKind:
    def test_values_and_ids(self):
        assert ProviderKind.CODEX.value == "codex"
        assert ProviderKind.CLAUDE.provider_id == "claude-cli"
        assert ProviderKind.GEMINI.display_name == "Gemini CLI"

    def test_from_provider_id(self):
        assert ProviderKind.from_provider_id("codex-cli") is ProviderKind.CODEX
        assert ProviderKind.from_provider_id("nope-cli") is None

    @pytest.mark.parametrize("raw", ["claude", "claude-cli", " CLAUDE ", ProviderKind.CLAUDE])
    def test_parse_accepts_value_id_and_member(self, raw):
        assert ProviderKind.parse(raw) is ProviderKind.CLAUDE

    def test_parse_unknown_raises(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            ProviderKind.parse("copilot")


class TestExhaustiveTables:
    """Adding a provider without filling every table must fail here."""

    @pytest.mark.parametrize(
        "table",
        [EXECUTABLE_NAMES, STATUS_ARGS, LOGIN_ARGS, PROFILE_ENV_VARS],
        ids=["executables", "status_args", "login_args", "profile_env"],
    )
    def test_every_provider_present(self, table):
        assert set(table) == set(ProviderKind)

    def test_every_login_method_present(self):
        for provider in ProviderKind:
            assert set(LOGIN_ARGS[provider]) == set(LoginMethod)

    def test_display_names_cover_all(self):
        for provider in ProviderKind:
            assert provider.display_name.endswith("CLI")


class TestCommands:
    def test_status_args(self):
        assert status_args(ProviderKind.CODEX) == ["login", "status"]
        assert status_args(ProviderKind.CLAUDE) == ["auth", "status"]
        assert status_args(ProviderKind.GEMINI) == ["--version"]

    def test_login_args(self):
        assert login_args(ProviderKind.CODEX, LoginMethod.DEVICE_CODE) == ["login", "--device-auth"]
        assert login_args(ProviderKind.GEMINI, LoginMethod.API_KEY) == ["auth", "login", "--api-key"]

    def test_args_are_copies(self):
        args = status_args(ProviderKind.CODEX)
        args.append("--extra")
        assert status_args(ProviderKind.CODEX) == ["login", "status"]

    def test_login_method_titles(self):
        assert LoginMethod.BROWSER_OAUTH.title == "Browser OAuth"
        assert LoginMethod.API_KEY.title == "API key"


class TestProfiles:
    def test_ensure_profile_creates_directory(self, tmp_path):
        path = ensure_profile(tmp_path, ProviderKind.CLAUDE, "acc-1")
        assert Path(path) == tmp_path / "claude" / "acc-1"
        assert Path(path).is_dir()

    def test_environment_overrides_without_secret(self):
        env = environment_overrides(ProviderKind.CODEX, "/profiles/codex/a")
        assert env == {"CODEX_HOME": "/profiles/codex/a"}

    def test_environment_overrides_with_secret(self):
        env = environment_overrides(ProviderKind.GEMINI, "/p", secret="k-123")
        assert env == {"GEMINI_CONFIG_DIR": "/p", "GOOGLE_API_KEY": "k-123"}


class TestExecutables:
    def test_override_returned_as_is(self):
        assert resolve_executable(ProviderKind.CODEX, "/custom/codex") == "/custom/codex"

    def test_found_on_path(self, tmp_path, monkeypatch):
        binary = tmp_path / "claude"
        binary.write_text("#!/bin/sh\nexit 0\n")
        binary.chmod(binary.stat().st_mode | stat.S_IEXEC)
        monkeypatch.setenv("PATH", str(tmp_path))
        assert resolve_executable(ProviderKind.CLAUDE) == str(binary)

    def test_not_found(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PATH", str(tmp_path))
        monkeypatch.setattr(
            "accountpool.providers.executables.search_dirs", lambda provider: []
        )
        assert resolve_executable(ProviderKind.GEMINI) is None

    def test_is_executable(self, tmp_path):
        plain = tmp_path / "plain"
        plain.write_text("x")
        assert is_executable(tmp_path / "missing") is False
        if os.name != "nt":
            assert is_executable(plain) is False
            plain.chmod(0o755)
        assert is_executable(plain) is True
