"""Provider kinds and the per-provider lookup tables."""

from accountpool.providers.commands import LoginMethod, login_args, status_args
from accountpool.providers.executables import is_executable, resolve_executable
from accountpool.providers.kinds import ProviderKind
from accountpool.providers.profiles import ensure_profile, environment_overrides

__all__ = [
    "LoginMethod",
    "ProviderKind",
    "ensure_profile",
    "environment_overrides",
    "is_executable",
    "login_args",
    "resolve_executable",
    "status_args",
]
