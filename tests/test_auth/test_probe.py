"""Tests for AuthStatus, CLIAuthProbe and CachedAuthProbe."""

import sys
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from accountpool.accounts.models import Account, AuthMethod
from accountpool.accounts.secrets import SecretsStore
from accountpool.auth.probe import CachedAuthProbe, CLIAuthProbe
from accountpool.auth.status import AuthKind, AuthStatus
from accountpool.providers.kinds import ProviderKind

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses shell scripts")


def _script(tmp_path, body: str, name: str = "fakecli"):
    path = tmp_path / name
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(0o755)
    return str(path)


@pytest.fixture
def secrets(tmp_path):
    return SecretsStore(tmp_path / "secrets.db")


@pytest.fixture
def account(tmp_path):
    profile = tmp_path / "profile"
    profile.mkdir()
    return Account(provider=ProviderKind.CODEX, label="p", profile_path=str(profile))


class TestAuthStatus:
    def test_constructors_and_labels(self):
        assert AuthStatus.not_installed().label() == "Not installed"
        assert AuthStatus.not_logged_in().label() == "Not logged"
        assert AuthStatus.logged_in(AuthMethod.OAUTH).label() == "Logged (oauth)"
        assert AuthStatus.error("x").label() == "Error"

    def test_is_logged_in(self):
        assert AuthStatus.logged_in(AuthMethod.API_KEY).is_logged_in
        assert not AuthStatus.error("x").is_logged_in
        assert AuthStatus.error("x").kind is AuthKind.ERROR


class TestCLIAuthProbe:
    def test_missing_executable(self, secrets, account, tmp_path):
        status = CLIAuthProbe(secrets).detect(account, str(tmp_path / "nope"))
        assert status.kind is AuthKind.NOT_INSTALLED

    @posix_only
    def test_exit_zero_is_oauth(self, secrets, account, tmp_path):
        exe = _script(tmp_path, "exit 0")
        status = CLIAuthProbe(secrets).detect(account, exe)
        assert status == AuthStatus.logged_in(AuthMethod.OAUTH)

    @posix_only
    def test_exit_nonzero_is_not_logged_in(self, secrets, account, tmp_path):
        exe = _script(tmp_path, "exit 1")
        assert CLIAuthProbe(secrets).detect(account, exe).kind is AuthKind.NOT_LOGGED_IN

    @posix_only
    def test_stored_key_counts_as_api_key_login(self, secrets, account, tmp_path):
        secrets.set_secret(account.id, "sk-1")
        exe = _script(tmp_path, "exit 1")
        assert CLIAuthProbe(secrets).detect(account, exe) == AuthStatus.logged_in(AuthMethod.API_KEY)

    @posix_only
    def test_runs_in_account_environment(self, secrets, account, tmp_path):
        # Succeeds only when CODEX_HOME points at the profile and the key is passed.
        exe = _script(
            tmp_path,
            f'[ "$CODEX_HOME" = "{account.profile_path}" ] && [ "$1 $2" = "login status" ] || exit 3\nexit 0',
        )
        assert CLIAuthProbe(secrets).detect(account, exe).is_logged_in

    @posix_only
    def test_timeout_is_error(self, secrets, account, tmp_path):
        exe = _script(tmp_path, "exec sleep 5")
        status = CLIAuthProbe(secrets, timeout=0.2).detect(account, exe)
        assert status.kind is AuthKind.ERROR
        assert "timed out" in status.message


class TestCachedAuthProbe:
    def _inner(self):
        inner = MagicMock()
        inner.detect.return_value = AuthStatus.logged_in(AuthMethod.OAUTH)
        return inner

    def test_caches_within_ttl(self, account, clock):
        inner = self._inner()
        probe = CachedAuthProbe(inner, ttl=30, clock=clock)
        probe.detect(account, None)
        clock.advance(29)
        probe.detect(account, None)
        assert inner.detect.call_count == 1

    def test_expires_after_ttl(self, account, clock):
        inner = self._inner()
        probe = CachedAuthProbe(inner, ttl=30, clock=clock)
        probe.detect(account, None)
        clock.advance(30)
        probe.detect(account, None)
        assert inner.detect.call_count == 2

    def test_keyed_by_override(self, account, clock):
        inner = self._inner()
        probe = CachedAuthProbe(inner, ttl=30, clock=clock)
        probe.detect(account, "/a")
        probe.detect(account, "/b")
        assert inner.detect.call_count == 2

    def test_invalidate(self, account, clock):
        inner = self._inner()
        probe = CachedAuthProbe(inner, ttl=30, clock=clock)
        probe.detect(account, None)
        probe.invalidate(account.id)
        probe.detect(account, None)
        probe.invalidate()
        probe.detect(account, None)
        assert inner.detect.call_count == 3
