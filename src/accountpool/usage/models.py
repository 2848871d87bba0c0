"""Data models for per-account consumption tracking."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from accountpool.accounts.models import utcnow
from accountpool.providers.kinds import ProviderKind


class Period(Enum):
    """Calendar windows, resolved in the local time zone at query time."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True)
class UsageEntry:
    """Single immutable row in the usage ledger."""

    account_id: str
    provider: ProviderKind
    input_tokens: int
    output_tokens: int
    estimated_cost_usd: float
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class UsageTotals:
    """Summed consumption for one account over one window."""

    cost: float = 0.0
    tokens: int = 0

    def to_dict(self) -> dict:
        return {"cost": self.cost, "tokens": self.tokens}


def period_bounds(period: Period, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Return the ``[start, end)`` UTC bounds of the window containing *now*.

    Boundaries are local midnights: the calendar day, the ISO week starting
    Monday, or the calendar month. Naive local datetimes are converted with
    ``astimezone()`` so each boundary gets its own UTC offset across DST
    changes; naive values are read as local time.
    """
    local = (now or utcnow()).astimezone()
    day_start = datetime(local.year, local.month, local.day)

    if period is Period.DAY:
        start, end = day_start, day_start + timedelta(days=1)
    elif period is Period.WEEK:
        start = day_start - timedelta(days=local.weekday())
        end = start + timedelta(days=7)
    elif period is Period.MONTH:
        start = day_start.replace(day=1)
        if start.month == 12:
            end = start.replace(year=start.year + 1, month=1)
        else:
            end = start.replace(month=start.month + 1)
    else:
        raise ValueError(f"Unsupported period: {period!r}")

    return (
        start.astimezone(timezone.utc),
        end.astimezone(timezone.utc),
    )
