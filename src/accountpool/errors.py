"""Exceptions raised by accountpool."""

from __future__ import annotations

from accountpool.providers.kinds import ProviderKind


class AccountPoolError(Exception):
    """Base class for accountpool errors."""


class AllAccountsExhaustedError(AccountPoolError):
    """Every eligible account of a provider failed over without success."""

    def __init__(self, provider: ProviderKind, attempts: list[str], last_error: str = ""):
        self.provider = provider
        self.attempts = list(attempts)
        self.last_error = last_error
        message = (
            f"All {provider.display_name} accounts are exhausted or unavailable "
            f"({len(self.attempts)} tried)"
        )
        if last_error:
            message += f": {last_error}"
        super().__init__(message)
