"""Login detection and interactive login for provider CLI accounts."""

from accountpool.auth.login import LoginCoordinator
from accountpool.auth.probe import AuthProbe, CachedAuthProbe, CLIAuthProbe
from accountpool.auth.status import AuthKind, AuthStatus

__all__ = [
    "AuthKind",
    "AuthProbe",
    "AuthStatus",
    "CachedAuthProbe",
    "CLIAuthProbe",
    "LoginCoordinator",
]
