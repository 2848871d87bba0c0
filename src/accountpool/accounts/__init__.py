"""Account models and durable storage."""

from accountpool.accounts.models import (
    Account,
    AccountHealth,
    AuthMethod,
    Availability,
    ClassifiedFailure,
    ExhaustionSource,
    HealthState,
    QuotaPolicy,
)
from accountpool.accounts.secrets import SecretsStore
from accountpool.accounts.store import AccountStore

__all__ = [
    "Account",
    "AccountHealth",
    "AccountStore",
    "AuthMethod",
    "Availability",
    "ClassifiedFailure",
    "ExhaustionSource",
    "HealthState",
    "QuotaPolicy",
    "SecretsStore",
]
