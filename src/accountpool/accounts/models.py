"""Account, quota policy and health models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from accountpool.providers.kinds import ProviderKind

LOCAL_LIMIT_REACHED = "local_limit_reached"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class AuthMethod(Enum):
    OAUTH = "oauth"
    DEVICE = "device"
    API_KEY = "api_key"
    FILE = "file"


class HealthState(Enum):
    """Derived health of an account at a point in time."""

    ACTIVE = "active"
    COOLDOWN = "cooldown"
    EXHAUSTED = "exhausted"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class ExhaustionSource(Enum):
    """Why an account is exhausted; decides how it may recover."""

    LOCAL_QUOTA = "local_quota"  # cleared by a later usage report within policy
    PROVIDER = "provider"        # cleared only by an administrative reset


@dataclass
class QuotaPolicy:
    """Optional per-window ceilings. ``None`` means unlimited."""

    daily_limit_usd: Optional[float] = None
    weekly_limit_usd: Optional[float] = None
    monthly_limit_usd: Optional[float] = None
    daily_token_limit: Optional[int] = None
    weekly_token_limit: Optional[int] = None
    monthly_token_limit: Optional[int] = None

    @property
    def is_unlimited(self) -> bool:
        return all(v is None for v in asdict(self).values())

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> QuotaPolicy:
        valid = {k: v for k, v in (data or {}).items() if k in cls.__dataclass_fields__}
        return cls(**valid)


@dataclass
class ClassifiedFailure:
    """A provider failure already classified by the caller."""

    is_quota_exhaustion: bool
    is_rate_limited: bool
    normalized_code: str
    retry_after_seconds: Optional[int] = None

    @property
    def should_failover(self) -> bool:
        return self.is_quota_exhaustion or self.is_rate_limited


@dataclass
class AccountHealth:
    """Mutable runtime health of one account.

    Precedence: exhausted > cooldown > active. A cooldown expires on its own
    once ``cooldown_until`` passes; exhaustion never does.
    """

    consecutive_failures: int = 0
    last_error_code: Optional[str] = None
    cooldown_until: Optional[datetime] = None
    is_exhausted_locally: bool = False
    exhaustion_source: Optional[ExhaustionSource] = None

    def state(self, now: datetime) -> HealthState:
        if self.is_exhausted_locally:
            return HealthState.EXHAUSTED
        if self.cooldown_until is not None and self.cooldown_until > now:
            return HealthState.COOLDOWN
        return HealthState.ACTIVE

    def record_success(self) -> None:
        self.consecutive_failures = 0
        self.last_error_code = None
        self.cooldown_until = None

    def record_failure(self, code: str) -> None:
        self.consecutive_failures += 1
        self.last_error_code = code

    def start_cooldown(self, until: datetime) -> None:
        # Overwrites, never extends, an earlier cooldown.
        self.cooldown_until = until

    def mark_exhausted(self, source: ExhaustionSource) -> None:
        self.is_exhausted_locally = True
        # A provider-confirmed exhaustion is never downgraded to a local one.
        if self.exhaustion_source is not ExhaustionSource.PROVIDER:
            self.exhaustion_source = source

    def clear_local_exhaustion(self) -> bool:
        """Lift an exhaustion that local quota tracking set. Returns True if lifted."""
        if self.is_exhausted_locally and self.exhaustion_source is ExhaustionSource.LOCAL_QUOTA:
            self.is_exhausted_locally = False
            self.exhaustion_source = None
            return True
        return False

    def to_dict(self) -> dict:
        return {
            "consecutive_failures": self.consecutive_failures,
            "last_error_code": self.last_error_code,
            "cooldown_until": to_iso(self.cooldown_until),
            "is_exhausted_locally": self.is_exhausted_locally,
            "exhaustion_source": self.exhaustion_source.value if self.exhaustion_source else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> AccountHealth:
        data = data or {}
        source = data.get("exhaustion_source")
        exhausted = bool(data.get("is_exhausted_locally", False))
        return cls(
            consecutive_failures=int(data.get("consecutive_failures", 0)),
            last_error_code=data.get("last_error_code"),
            cooldown_until=from_iso(data.get("cooldown_until")),
            is_exhausted_locally=exhausted,
            exhaustion_source=(
                ExhaustionSource(source)
                if source
                else (ExhaustionSource.PROVIDER if exhausted else None)
            ),
        )


@dataclass
class Account:
    """One credential/profile slot bound to a single provider."""

    provider: ProviderKind
    label: str
    profile_path: str = ""
    priority: int = 0
    is_enabled: bool = True
    quota: QuotaPolicy = field(default_factory=QuotaPolicy)
    health: AccountHealth = field(default_factory=AccountHealth)
    id: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_auth_method: Optional[AuthMethod] = None
    last_auth_check_at: Optional[datetime] = None
    last_auth_error: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            self.id = str(uuid4())
        now = utcnow()
        if self.created_at is None:
            self.created_at = now
        if self.updated_at is None:
            self.updated_at = now

    def sort_key(self) -> tuple:
        return (self.priority, self.created_at)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "provider": self.provider.value,
            "label": self.label,
            "is_enabled": self.is_enabled,
            "priority": self.priority,
            "profile_path": self.profile_path,
            "quota": self.quota.to_dict(),
            "health": self.health.to_dict(),
            "last_auth_method": self.last_auth_method.value if self.last_auth_method else None,
            "last_auth_check_at": to_iso(self.last_auth_check_at),
            "last_auth_error": self.last_auth_error,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Account:
        method = data.get("last_auth_method")
        return cls(
            id=data["id"],
            provider=ProviderKind.parse(data["provider"]),
            label=data.get("label", ""),
            is_enabled=bool(data.get("is_enabled", True)),
            priority=int(data.get("priority", 0)),
            profile_path=data.get("profile_path", ""),
            quota=QuotaPolicy.from_dict(data.get("quota")),
            health=AccountHealth.from_dict(data.get("health")),
            last_auth_method=AuthMethod(method) if method else None,
            last_auth_check_at=from_iso(data.get("last_auth_check_at")),
            last_auth_error=data.get("last_auth_error"),
            created_at=from_iso(data.get("created_at")),
            updated_at=from_iso(data.get("updated_at")),
        )


@dataclass(frozen=True)
class Availability:
    """Whether a provider currently has any eligible account."""

    is_available: bool
    reason: str = ""

    @classmethod
    def available(cls) -> Availability:
        return cls(is_available=True)

    @classmethod
    def all_exhausted(cls, reason: str) -> Availability:
        return cls(is_available=False, reason=reason)

    def to_dict(self) -> dict:
        if self.is_available:
            return {"state": "available"}
        return {"state": "all_exhausted", "reason": self.reason}
