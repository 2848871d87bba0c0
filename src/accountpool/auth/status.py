"""Result type of an auth probe."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from accountpool.accounts.models import AuthMethod


class AuthKind(Enum):
    NOT_INSTALLED = "not_installed"
    NOT_LOGGED_IN = "not_logged_in"
    LOGGED_IN = "logged_in"
    ERROR = "error"


@dataclass(frozen=True)
class AuthStatus:
    """What a provider CLI reports about one account's login."""

    kind: AuthKind
    method: Optional[AuthMethod] = None
    message: Optional[str] = None

    @classmethod
    def not_installed(cls) -> AuthStatus:
        return cls(AuthKind.NOT_INSTALLED)

    @classmethod
    def not_logged_in(cls) -> AuthStatus:
        return cls(AuthKind.NOT_LOGGED_IN)

    @classmethod
    def logged_in(cls, method: AuthMethod) -> AuthStatus:
        return cls(AuthKind.LOGGED_IN, method=method)

    @classmethod
    def error(cls, message: str) -> AuthStatus:
        return cls(AuthKind.ERROR, message=message)

    @property
    def is_logged_in(self) -> bool:
        return self.kind is AuthKind.LOGGED_IN

    def label(self) -> str:
        if self.kind is AuthKind.NOT_INSTALLED:
            return "Not installed"
        if self.kind is AuthKind.NOT_LOGGED_IN:
            return "Not logged"
        if self.kind is AuthKind.LOGGED_IN:
            return f"Logged ({self.method.value if self.method else 'unknown'})"
        return "Error"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "method": self.method.value if self.method else None,
            "message": self.message,
        }
