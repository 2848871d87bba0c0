"""Auth probes: ask a provider CLI whether an account is logged in."""

from __future__ import annotations

import os
import subprocess
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Optional

from accountpool._logging import get_logger
from accountpool.accounts.models import Account, AuthMethod, utcnow
from accountpool.accounts.secrets import SecretsStore
from accountpool.auth.status import AuthStatus
from accountpool.providers.commands import status_args
from accountpool.providers.executables import is_executable, resolve_executable
from accountpool.providers.profiles import environment_overrides

logger = get_logger("AccountPool.AuthProbe")


class AuthProbe(ABC):
    """Reports login or installation state for an account."""

    @abstractmethod
    def detect(
        self, account: Account, executable_override: Optional[str] = None
    ) -> AuthStatus:
        ...

    def invalidate(self, account_id: Optional[str] = None) -> None:
        """Forget any remembered result. Probes without a cache ignore this."""


def build_environment(account: Account, secret: Optional[str]) -> dict[str, str]:
    """The current process environment with the account's profile applied."""
    env = dict(os.environ)
    env.update(environment_overrides(account.provider, account.profile_path, secret))
    return env


class CLIAuthProbe(AuthProbe):
    """Runs the provider's status command inside the account's profile.

    A stored API key counts as logged in even when the status command
    fails, since the CLI will pick the key up from the environment.
    """

    def __init__(self, secrets: SecretsStore, timeout: float = 10.0) -> None:
        self._secrets = secrets
        self._timeout = timeout

    def detect(
        self, account: Account, executable_override: Optional[str] = None
    ) -> AuthStatus:
        executable = resolve_executable(account.provider, executable_override)
        if executable is None or not is_executable(executable):
            return AuthStatus.not_installed()

        secret = self._secrets.secret(account.id)
        env = build_environment(account, secret)
        cmd = [executable, *status_args(account.provider)]

        try:
            result = subprocess.run(
                cmd,
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning(
                f"Status check for {account.provider.value} account {account.id} "
                f"timed out after {self._timeout}s"
            )
            return AuthStatus.error(f"Status check timed out after {self._timeout}s")
        except OSError as exc:
            logger.warning(f"Status check for account {account.id} failed: {exc}")
            return AuthStatus.error(str(exc))

        if secret:
            return AuthStatus.logged_in(AuthMethod.API_KEY)
        if result.returncode == 0:
            return AuthStatus.logged_in(AuthMethod.OAUTH)
        return AuthStatus.not_logged_in()


class CachedAuthProbe(AuthProbe):
    """TTL cache in front of another probe.

    Entries are keyed by account id and executable override. Concurrent
    misses for the same key may both reach the inner probe; the later
    result wins.
    """

    def __init__(
        self,
        inner: AuthProbe,
        ttl: float = 30.0,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._inner = inner
        self._ttl = timedelta(seconds=ttl)
        self._clock = clock or utcnow
        self._cache: dict[tuple[str, Optional[str]], tuple[datetime, AuthStatus]] = {}
        self._lock = threading.Lock()

    def detect(
        self, account: Account, executable_override: Optional[str] = None
    ) -> AuthStatus:
        key = (account.id, executable_override)
        now = self._clock()
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None and now - cached[0] < self._ttl:
            return cached[1]

        status = self._inner.detect(account, executable_override)
        with self._lock:
            self._cache[key] = (now, status)
        return status

    def invalidate(self, account_id: Optional[str] = None) -> None:
        """Drop cached results for one account, or for all when *account_id* is None."""
        with self._lock:
            if account_id is None:
                self._cache.clear()
                return
            for key in [k for k in self._cache if k[0] == account_id]:
                del self._cache[key]
