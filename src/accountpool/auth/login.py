"""Interactive login and disconnect for provider CLI accounts."""

from __future__ import annotations

import re
import shutil
import subprocess
import sys
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from accountpool._logging import get_logger
from accountpool.accounts.models import Account
from accountpool.accounts.secrets import SecretsStore
from accountpool.auth.probe import AuthProbe, build_environment
from accountpool.providers.commands import LoginMethod, login_args
from accountpool.providers.executables import is_executable, resolve_executable

logger = get_logger("AccountPool.Login")

STATUS_NOT_INSTALLED = "CLI not installed or invalid path"
STATUS_STARTING = "Starting login..."
STATUS_MISSING_KEY = "Missing API key"
STATUS_CONNECTED = "Connected"
STATUS_TIMED_OUT = "Login timed out"
STATUS_CANCELLED = "Login cancelled"
STATUS_DISCONNECTED = "Disconnected"

_URL_RE = re.compile(r"https?://[^\s\"'<>]+")


class LoginCoordinator:
    """Runs provider login commands, one per account at a time.

    Each login runs the provider CLI inside the account's profile directory
    so the credentials it writes stay isolated to that account. Output is
    read on a background thread; the most recent line becomes the account's
    status, and the first URL seen is kept for the caller to open.
    """

    def __init__(self, secrets: SecretsStore, probe: AuthProbe) -> None:
        self._secrets = secrets
        self._probe = probe
        self._processes: dict[str, subprocess.Popen] = {}
        self._status: dict[str, str] = {}
        self._urls: dict[str, str] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_running(self, account_id: str) -> bool:
        with self._lock:
            process = self._processes.get(account_id)
        return process is not None and process.poll() is None

    def status(self, account_id: str) -> Optional[str]:
        with self._lock:
            return self._status.get(account_id)

    def login_url(self, account_id: str) -> Optional[str]:
        with self._lock:
            return self._urls.get(account_id)

    # ------------------------------------------------------------------
    # Login lifecycle
    # ------------------------------------------------------------------

    def start_login(
        self,
        account: Account,
        method: LoginMethod,
        executable_override: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> bool:
        """Spawn the login command. Returns False if it could not be started."""
        executable = resolve_executable(account.provider, executable_override)
        if executable is None or not is_executable(executable):
            self._set_status(account.id, STATUS_NOT_INSTALLED)
            return False
        if method is LoginMethod.API_KEY and not api_key:
            self._set_status(account.id, STATUS_MISSING_KEY)
            return False

        if self.is_running(account.id):
            self.cancel_login(account.id)

        env = build_environment(account, self._secrets.secret(account.id))
        cmd = [executable, *login_args(account.provider, method)]
        Path(account.profile_path).mkdir(parents=True, exist_ok=True)

        kwargs: dict = {
            "stdout": subprocess.PIPE,
            "stderr": subprocess.STDOUT,
            "stdin": subprocess.PIPE if method is LoginMethod.API_KEY else subprocess.DEVNULL,
            "cwd": account.profile_path,
            "env": env,
            "text": True,
        }
        if sys.platform == "win32":
            kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW

        self._set_status(account.id, STATUS_STARTING)
        with self._lock:
            self._urls.pop(account.id, None)

        logger.info(
            f"Starting {method.title} login for {account.provider.value} "
            f"account '{account.label}' ({account.id})"
        )
        try:
            process = subprocess.Popen(cmd, **kwargs)
        except OSError as exc:
            self._set_status(account.id, f"Login error: {exc}")
            logger.warning(f"Could not start login for account {account.id}: {exc}")
            return False

        with self._lock:
            self._processes[account.id] = process

        if method is LoginMethod.API_KEY and process.stdin is not None:
            try:
                process.stdin.write(api_key + "\n")
                process.stdin.close()
            except OSError as exc:
                logger.warning(f"Could not pass API key to login process: {exc}")

        reader = threading.Thread(
            target=self._read_output,
            args=(account.id, process),
            daemon=True,
            name=f"login-{account.id[:8]}",
        )
        reader.start()
        return True

    def wait_for_login(
        self,
        account: Account,
        executable_override: Optional[str] = None,
        attempts: int = 45,
        interval: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
        on_status: Optional[Callable[[str], None]] = None,
    ) -> bool:
        """Poll the probe until the account reports logged in or attempts run out.

        *on_status* is called with the status text whenever it changes while
        waiting, e.g. to show the URL or device code the CLI printed.
        """
        last: Optional[str] = None
        for _ in range(attempts):
            sleep(interval)
            current = self.status(account.id)
            if on_status is not None and current and current != last:
                on_status(current)
                last = current
            self._probe.invalidate(account.id)
            if self._probe.detect(account, executable_override).is_logged_in:
                self._set_status(account.id, STATUS_CONNECTED)
                logger.info(f"Account {account.id} connected")
                return True

        self._finish(account.id)
        with self._lock:
            current = self._status.get(account.id)
            if current is None or current == STATUS_STARTING:
                self._status[account.id] = STATUS_TIMED_OUT
        logger.warning(f"Login for account {account.id} timed out")
        return False

    def cancel_login(self, account_id: str) -> None:
        self._finish(account_id)
        self._set_status(account_id, STATUS_CANCELLED)

    def disconnect(self, account: Account) -> None:
        """Remove everything the CLI stored in the account's profile directory."""
        profile = Path(account.profile_path)
        if profile.is_dir():
            for child in profile.iterdir():
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()
        profile.mkdir(parents=True, exist_ok=True)
        self._probe.invalidate(account.id)
        self._set_status(account.id, STATUS_DISCONNECTED)
        logger.info(f"Disconnected account {account.id}")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _set_status(self, account_id: str, text: str) -> None:
        with self._lock:
            self._status[account_id] = text

    def _finish(self, account_id: str) -> None:
        """Stop a running login process, if any, and forget it."""
        with self._lock:
            process = self._processes.pop(account_id, None)
        if process is None or process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=5.0)
        except subprocess.TimeoutExpired:
            logger.warning(f"Login process for {account_id} did not stop; killing")
            process.kill()
            process.wait(timeout=5.0)

    def _read_output(self, account_id: str, process: subprocess.Popen) -> None:
        if process.stdout is None:
            return
        for raw in process.stdout:
            line = raw.strip()
            if not line:
                continue
            with self._lock:
                if self._processes.get(account_id) is not process:
                    break
                match = _URL_RE.search(line)
                if match and account_id not in self._urls:
                    self._urls[account_id] = match.group(0)
                self._status[account_id] = line
        process.wait()
        with self._lock:
            if self._processes.get(account_id) is process:
                del self._processes[account_id]
