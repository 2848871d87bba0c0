"""Pricing catalog used to estimate the USD cost of a unit of work."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ModelPrice:
    """Cost per 1 million tokens for a model family."""

    input_per_million: float
    output_per_million: float


# ── Built-in defaults ────────────────────────────────────────────────
# Matched by substring, first hit wins, so more specific families come first.
_BUILTIN_PRICES: list[tuple[tuple[str, ...], ModelPrice]] = [
    (("gpt-4o-mini",), ModelPrice(0.15, 0.60)),
    (("gpt-4o",), ModelPrice(5.00, 15.00)),
    (("gpt-4-turbo",), ModelPrice(10.00, 30.00)),
    (("gpt-4",), ModelPrice(30.00, 60.00)),
    (("gpt-3.5-turbo",), ModelPrice(0.50, 1.50)),
    (("o1", "o3", "o4"), ModelPrice(15.00, 60.00)),
    (("claude-3-5-sonnet",), ModelPrice(3.00, 15.00)),
    (("claude-3-5-haiku",), ModelPrice(0.80, 4.00)),
    (("claude-3-opus",), ModelPrice(15.00, 75.00)),
    (("claude-3-sonnet",), ModelPrice(3.00, 15.00)),
    (("claude-3-haiku",), ModelPrice(0.25, 1.25)),
    (("claude-sonnet",), ModelPrice(3.00, 15.00)),
]

DEFAULT_PRICE = ModelPrice(1.00, 3.00)


class PricingCatalog:
    """Thread-safe lookup of per-model token prices.

    Resolution order for ``get_price(model)``:
    1. Exact match in user overrides (config ``pricing_overrides``).
    2. First built-in family whose key is a substring of the model name.
    3. ``DEFAULT_PRICE``.
    """

    def __init__(self, overrides: Optional[dict[str, ModelPrice]] = None) -> None:
        self._overrides: dict[str, ModelPrice] = {
            k.lower(): v for k, v in (overrides or {}).items()
        }
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, overrides_raw: dict) -> PricingCatalog:
        """Build from the ``pricing_overrides`` config mapping."""
        overrides = {
            k: ModelPrice(v["input_per_million"], v["output_per_million"])
            for k, v in (overrides_raw or {}).items()
        }
        return cls(overrides=overrides)

    def get_price(self, model: Optional[str]) -> ModelPrice:
        name = (model or "").lower()
        with self._lock:
            override = self._overrides.get(name)
        if override is not None:
            return override
        for keys, price in _BUILTIN_PRICES:
            if any(k in name for k in keys):
                return price
        return DEFAULT_PRICE

    def estimated_cost(
        self, input_tokens: int, output_tokens: int, model: Optional[str]
    ) -> float:
        """Return the dollar cost for a single unit of work."""
        price = self.get_price(model)
        return (
            input_tokens * price.input_per_million
            + output_tokens * price.output_per_million
        ) / 1_000_000

    def set_override(self, model: str, price: ModelPrice) -> None:
        with self._lock:
            self._overrides[model.lower()] = price
