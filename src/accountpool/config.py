import os
import tempfile
from pathlib import Path
from typing import Optional

import yaml

from accountpool._logging import get_logger
from accountpool.providers.kinds import ProviderKind

logger = get_logger("AccountPool.Config")

_ENV_VAR = "ACCOUNTPOOL_CONFIG"

_ROUTER_DEFAULTS: dict = {
    "rate_limit_floor_seconds": 30,
    "default_cooldown_seconds": 120,
    "probe_cache_ttl_seconds": 30,
}

_DEFAULT_PROBE_TIMEOUT = 10.0


def _default_data_dir() -> Path:
    return Path.home() / ".accountpool"


def _default_config_path() -> Path:
    return _default_data_dir() / "accountpool.yaml"


class ConfigLoader:
    """Finds, loads, mutates, and persists accountpool.yaml.

    Read path:
        Searches --config, ACCOUNTPOOL_CONFIG env var, then
        ~/.accountpool/accountpool.yaml.

    Write path:
        ``set_executable_override`` mutates the in-memory config.
        ``save()`` atomically writes it back.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        allow_missing: bool = False,
    ):
        self._config_path: Optional[Path] = None

        if allow_missing:
            self.config: dict = {}
            return

        resolved = self._find_config(config_path)

        if not resolved:
            searched: list[str] = []
            if config_path:
                searched.append(
                    f"  - Command line (--config): {Path(config_path).resolve()}"
                )
            env_path = os.environ.get(_ENV_VAR)
            if env_path:
                searched.append(
                    f"  - Environment variable ({_ENV_VAR}): "
                    f"{Path(env_path).resolve()}"
                )
            searched.append(
                f"  - User home directory: {_default_config_path()}"
            )
            raise FileNotFoundError(
                "Could not find 'accountpool.yaml'. "
                "Searched in the following locations:\n" + "\n".join(searched)
            )

        self._config_path = resolved
        with open(resolved, "r") as f:
            self.config = yaml.safe_load(f) or {}
        logger.info(f"Loaded configuration from: {resolved.resolve()}")

    # ------------------------------------------------------------------
    # Config discovery
    # ------------------------------------------------------------------

    def _find_config(self, config_path: Optional[str]) -> Optional[Path]:
        """Search for accountpool.yaml in priority order."""
        # 1. Explicit --config argument
        if config_path:
            p = Path(config_path)
            logger.info(f"Attempting config from --config: {p.resolve()}")
            if p.is_file():
                return p
            logger.warning(f"Config not found at --config path: {p.resolve()}")

        # 2. ACCOUNTPOOL_CONFIG environment variable
        env = os.environ.get(_ENV_VAR)
        if env:
            p = Path(env)
            logger.info(f"Attempting config from env var: {p.resolve()}")
            if p.is_file():
                return p
            logger.warning(f"Config not found at env var path: {p.resolve()}")

        # 3. User home directory
        home = _default_config_path()
        logger.info(f"Attempting config from home dir: {home.resolve()}")
        if home.is_file():
            return home

        return None

    @property
    def config_path(self) -> Optional[Path]:
        """The resolved path the config was loaded from (or will save to)."""
        return self._config_path

    # ------------------------------------------------------------------
    # Provider accessors
    # ------------------------------------------------------------------

    def get_provider_config(self, provider: ProviderKind) -> dict:
        """Return ``providers.<name>``, or ``{}`` if absent."""
        return (self.config.get("providers") or {}).get(provider.value) or {}

    def get_executable_override(self, provider: ProviderKind) -> Optional[str]:
        """Configured CLI path for *provider*, or None to search the system."""
        path = self.get_provider_config(provider).get("path")
        return str(path) if path else None

    # ------------------------------------------------------------------
    # Storage accessors
    # ------------------------------------------------------------------

    def get_data_dir(self) -> Path:
        raw = (self.config.get("storage") or {}).get("data_dir")
        return Path(raw).expanduser() if raw else _default_data_dir()

    def get_accounts_db_path(self) -> Path:
        return self.get_data_dir() / "accounts.db"

    def get_ledger_db_path(self) -> Path:
        return self.get_data_dir() / "ledger.db"

    def get_profiles_dir(self) -> Path:
        return self.get_data_dir() / "profiles"

    # ------------------------------------------------------------------
    # Router / probe / pricing accessors
    # ------------------------------------------------------------------

    def get_router_config(self) -> dict:
        """Return the ``router`` section merged over the built-in defaults."""
        merged = dict(_ROUTER_DEFAULTS)
        merged.update(self.config.get("router") or {})
        return merged

    def get_probe_timeout(self) -> float:
        """Seconds a CLI status check may run, ``probe.timeout_seconds``."""
        raw = (self.config.get("probe") or {}).get("timeout_seconds")
        return float(raw) if raw is not None else _DEFAULT_PROBE_TIMEOUT

    def get_pricing_overrides(self) -> dict:
        """Return ``pricing_overrides``, or ``{}`` if absent."""
        return self.config.get("pricing_overrides") or {}

    def get_log_level(self) -> str:
        return str((self.config.get("system") or {}).get("log_level", "INFO")).upper()

    def is_mcp_tool_enabled(self, tool_name: str, default: bool = True) -> bool:
        """Return ``mcp.tools.<name>.enabled``, falling back to *default*."""
        tools = (self.config.get("mcp") or {}).get("tools") or {}
        entry = tools.get(tool_name)
        if isinstance(entry, dict):
            return bool(entry.get("enabled", default))
        return default

    # ------------------------------------------------------------------
    # Mutation methods
    # ------------------------------------------------------------------

    def set_executable_override(self, provider: ProviderKind, path: Optional[str]) -> None:
        """Set or clear (``path=None``) the CLI path for *provider*."""
        providers = self.config.setdefault("providers", {})
        entry = providers.setdefault(provider.value, {})
        if path:
            entry["path"] = path
        else:
            entry.pop("path", None)
            if not entry:
                del providers[provider.value]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: Optional[Path] = None) -> Path:
        """Atomically write the current config to YAML.

        Parameters
        ----------
        path:
            Target file.  Defaults to the path the config was originally
            loaded from, or ``~/.accountpool/accountpool.yaml``.

        Returns
        -------
        The path the file was written to.
        """
        target = path or self._config_path or _default_config_path()
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)

        # Atomic write: write to temp file in same directory, then rename
        fd, tmp_path = tempfile.mkstemp(
            dir=str(target.parent), suffix=".yaml.tmp"
        )
        try:
            with os.fdopen(fd, "w") as f:
                yaml.dump(
                    self.config,
                    f,
                    default_flow_style=False,
                    sort_keys=False,
                    allow_unicode=True,
                )
            os.replace(tmp_path, str(target))
        except BaseException:
            # Clean up temp file on failure
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

        self._config_path = target
        logger.info(f"Configuration saved to: {target}")
        return target

    def to_yaml(self) -> str:
        """Return the current config as a YAML string (for preview)."""
        return yaml.dump(
            self.config,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )


_TEMPLATE = """\
# --- SYSTEM SETTINGS ---
system:
  log_level: INFO

# --- STORAGE ---
# accounts.db, ledger.db and per-account profiles/ live here.
storage:
  data_dir: ~/.accountpool

# --- PROVIDER CLIs ---
# Leave 'path' unset to search PATH and the usual install locations.
providers:
  codex: {}
  claude: {}
  gemini: {}
  # codex:
  #   path: /opt/homebrew/bin/codex

# --- ROUTING ---
router:
  rate_limit_floor_seconds: 30   # minimum cooldown after a rate limit
  default_cooldown_seconds: 120  # cooldown when no retry-after is given
  probe_cache_ttl_seconds: 30    # how long a login check stays valid

probe:
  timeout_seconds: 10

# --- PRICING ---
# Exact model names; overrides the built-in price table.
pricing_overrides: {}
  # my-model:
  #   input_per_million: 1.0
  #   output_per_million: 3.0

# --- MCP TOOL SURFACE ---
mcp:
  tools:
    select_account:
      enabled: true
    next_available_account:
      enabled: true
    current_availability:
      enabled: true
    mark_usage:
      enabled: true
    report_error:
      enabled: true
    router_state:
      enabled: true
    usage_totals:
      enabled: true
"""


def create_config_template(target: Optional[Path] = None) -> Path:
    """Write a starter accountpool.yaml if missing. Returns its path."""
    target = Path(target) if target else _default_config_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    if target.exists():
        print(f"   Config already exists at: {target}, skipping.")
    else:
        target.write_text(_TEMPLATE)
        print(f"   Config created at: {target}")
        print("   Edit it to set CLI paths and routing options.")
    return target
