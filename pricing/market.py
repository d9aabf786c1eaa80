# pricing/market.py
"""
Market-adjustment model: rescales the neighbor-weighted base price by
car age and condition, then clamps it into a plausible band and rounds.

The default constants target the local market (Rs). Other markets pass a
MarketConfig or point PRICING_MARKET_CONFIG at a JSON file.
"""
from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import numpy as np

from .domain import normalize_condition

# (max_age_inclusive, multiplier); ages above the last bracket use OLDER_MULTIPLIER
DEFAULT_AGE_BRACKETS: Tuple[Tuple[int, float], ...] = (
    (0, 4.5),
    (3, 3.8),
    (7, 3.2),
)
OLDER_MULTIPLIER = 2.5

DEFAULT_CONDITION_MULTIPLIERS: Dict[str, float] = {
    "new": 1.2,
    "like_new": 1.15,
    "excellent": 1.1,
    "good": 1.0,
    "fair": 0.85,
    "poor": 0.7,
}

DEFAULT_PRICE_BAND: Tuple[float, float] = (2_700_000, 4_700_000)
DEFAULT_CURRENCY_UNIT = "Rs"

CONFIG_KEYS = {"age_brackets", "older_multiplier", "condition_multipliers", "price_band", "currency_unit"}


@dataclass(frozen=True)
class MarketConfig:
    age_brackets: Tuple[Tuple[int, float], ...] = DEFAULT_AGE_BRACKETS
    older_multiplier: float = OLDER_MULTIPLIER
    condition_multipliers: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_CONDITION_MULTIPLIERS))
    price_band: Tuple[float, float] = DEFAULT_PRICE_BAND
    currency_unit: str = DEFAULT_CURRENCY_UNIT

    def __post_init__(self):
        lo, hi = self.price_band
        if not (math.isfinite(lo) and math.isfinite(hi)) or lo > hi:
            raise ValueError(f"price_band must be (min, max) with min <= max, got {self.price_band}")
        ages = [a for a, _ in self.age_brackets]
        if ages != sorted(ages):
            raise ValueError("age_brackets must be sorted by age")
        mults = [m for _, m in self.age_brackets] + [self.older_multiplier]
        mults += list(self.condition_multipliers.values())
        if any(m < 0 for m in mults):
            raise ValueError("multipliers must be non-negative")

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "MarketConfig":
        unknown = set(raw) - CONFIG_KEYS
        if unknown:
            raise ValueError(f"Unknown market config keys: {sorted(unknown)}")
        kw: Dict[str, Any] = {}
        if "age_brackets" in raw:
            kw["age_brackets"] = tuple((int(a), float(m)) for a, m in raw["age_brackets"])
        if "older_multiplier" in raw:
            kw["older_multiplier"] = float(raw["older_multiplier"])
        if "condition_multipliers" in raw:
            kw["condition_multipliers"] = {
                normalize_condition(k): float(v) for k, v in raw["condition_multipliers"].items()
            }
        if "price_band" in raw:
            lo, hi = raw["price_band"]
            kw["price_band"] = (float(lo), float(hi))
        if "currency_unit" in raw:
            kw["currency_unit"] = str(raw["currency_unit"])
        return cls(**kw)


DEFAULT_MARKET = MarketConfig()


def load_market_config(path: str | None = None) -> MarketConfig:
    """Market config from a JSON file (PRICING_MARKET_CONFIG), else defaults."""
    path = path or os.getenv("PRICING_MARKET_CONFIG")
    if not path:
        return DEFAULT_MARKET
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Market config not found: {path}")
    return MarketConfig.from_dict(json.loads(p.read_text(encoding="utf-8")))


# ---------------- Model ----------------
def age_multiplier(car_age: int, market: MarketConfig = DEFAULT_MARKET) -> float:
    for max_age, mult in market.age_brackets:
        if car_age <= max_age:
            return mult
    return market.older_multiplier


def condition_multiplier(condition: Optional[str], market: MarketConfig = DEFAULT_MARKET) -> float:
    return market.condition_multipliers.get(normalize_condition(condition), 1.0)


def round_to_nearest(value: float, step: float) -> float:
    # halves go up, like Math.round
    if step <= 0:
        raise ValueError(f"round_step must be positive, got {step}")
    out = math.floor(value / step + 0.5) * step
    return int(out) if float(out).is_integer() else out


def _round_within_band(value: float, step: float, lo: float, hi: float) -> float:
    out = round_to_nearest(value, step)
    if out > hi:
        out = math.floor(hi / step) * step
    elif out < lo:
        out = math.ceil(lo / step) * step
    return int(out) if float(out).is_integer() else out


def adjust_price(
    base_price: float,
    query_year: int,
    query_condition: Optional[str],
    round_step: float,
    current_year: int,
    market: MarketConfig = DEFAULT_MARKET,
) -> float:
    lo, hi = market.price_band
    car_age = max(0, current_year - query_year)
    adjusted = base_price * age_multiplier(car_age, market) * condition_multiplier(query_condition, market)
    adjusted = max(adjusted, lo)
    adjusted = float(np.clip(adjusted, lo, hi))
    return _round_within_band(adjusted, round_step, lo, hi)


def format_price(value: Optional[float], market: MarketConfig = DEFAULT_MARKET) -> str:
    if value is None:
        return "N/A"
    try:
        return f"{market.currency_unit} {int(round(float(value))):,}"
    except (TypeError, ValueError):
        return "N/A"
