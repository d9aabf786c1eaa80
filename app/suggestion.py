# app/suggestion.py
from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Sequence

from pricing.domain import CarSample, QueryInput
from pricing.knn import suggest_price
from pricing.market import DEFAULT_MARKET, MarketConfig, format_price
from services.http import ProviderError
from services.listings import ComparablesProvider

logger = logging.getLogger(__name__)

INSUFFICIENT_DATA_MSG = "Enter make, model, and year to get a smart price suggestion."


def _env_int(name: str, default: int) -> int:
    try:
        v = int(os.getenv(name, default))
        return v if v > 0 else default
    except (TypeError, ValueError):
        return default


DEFAULT_UI_K = 7
DEFAULT_UI_ROUND_STEP = 1000


def _neighbor_row(n, market: MarketConfig) -> Dict[str, Any]:
    return {
        "year": n.year,
        "make": n.make,
        "model": n.model,
        "condition": n.condition,
        "fuel_type": n.fuel_type,
        "price": format_price(n.price, market),
        "distance": round(n.distance, 3),
    }


def get_price_suggestion(
    values: Dict[str, Any],
    dataset: Sequence[CarSample],
    k: int | None = None,
    round_step: int | None = None,
    market: MarketConfig | None = None,
    current_year: int | None = None,
) -> Dict[str, Any]:
    """
    Runs the engine on form values and returns a UI-ready dict.
    suggested_price is None when there is not enough data.
    """
    market = market or DEFAULT_MARKET
    res = suggest_price(
        QueryInput.from_values(values),
        dataset,
        k=k or _env_int("PRICING_K", DEFAULT_UI_K),
        round_step=round_step or _env_int("PRICING_ROUND_STEP", DEFAULT_UI_ROUND_STEP),
        market=market,
        current_year=current_year,
    )
    if res.suggested_price is None:
        return {
            "suggested_price": None,
            "suggested_price_text": None,
            "confidence": 0.0,
            "confidence_text": None,
            "neighbors": [],
            "message": INSUFFICIENT_DATA_MSG,
        }
    return {
        "suggested_price": res.suggested_price,
        "suggested_price_text": format_price(res.suggested_price, market),
        "confidence": res.confidence,
        "confidence_text": f"confidence {res.confidence * 100:.0f}%",
        "neighbors": [_neighbor_row(n, market) for n in res.neighbors],
        "message": None,
    }


def load_comparables(source: ComparablesProvider) -> Optional[List[CarSample]]:
    """Comparables from the provider, or None when the fetch failed (widget hides itself)."""
    try:
        return source.fetch_comparables()
    except ProviderError as e:
        logger.error("Price suggestion data fetch failed: %s", e)
        return None
