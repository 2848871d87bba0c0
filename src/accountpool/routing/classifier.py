"""Turns a raw provider error message into a ClassifiedFailure."""

from __future__ import annotations

import re

from accountpool.accounts.models import ClassifiedFailure
from accountpool.providers.kinds import ProviderKind

QUOTA_KEYWORDS = ("quota", "insufficient", "credit", "billing")
RATE_LIMIT_KEYWORDS = ("rate limit", "too many requests", "429")

_RETRY_AFTER_RE = re.compile(r"retry[- ]?after[: ]+(\d+)", re.IGNORECASE)


def classify_error(provider: ProviderKind, message: str) -> ClassifiedFailure:
    """Keyword classification of a provider CLI error.

    A message can be both a quota and a rate-limit failure; the code then
    reports quota, which is the stickier of the two.
    """
    lower = (message or "").lower()
    is_quota = any(k in lower for k in QUOTA_KEYWORDS)
    is_rate = any(k in lower for k in RATE_LIMIT_KEYWORDS)

    match = _RETRY_AFTER_RE.search(lower)
    retry_after = int(match.group(1)) if match else None

    if is_quota:
        code = "quota_exhausted"
    elif is_rate:
        code = "rate_limited"
    else:
        code = "generic_error"

    return ClassifiedFailure(
        is_quota_exhaustion=is_quota,
        is_rate_limited=is_rate,
        normalized_code=f"{provider.provider_id}:{code}",
        retry_after_seconds=retry_after,
    )
