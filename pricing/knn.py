# pricing/knn.py
"""
Weighted k-nearest-neighbors price suggestion for car listings.

query + comparables -> distance-scored candidates -> top-k neighbors
-> inverse-distance weighted base price -> market adjustment.
"""
from __future__ import annotations

import math
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd

from .domain import (
    CONDITION_MAX,
    CarSample,
    KnnResult,
    Neighbor,
    QueryInput,
    condition_score,
)
from .market import DEFAULT_MARKET, MarketConfig, adjust_price
from .text import cosine_sim

DEFAULT_WEIGHTS: Dict[str, float] = {
    "make": 1.2,
    "model": 1.8,
    "fuel": 0.7,
    "year": 2.0,
    "condition": 1.0,
    "description": 0.8,
}

YEAR_RANGE_FALLBACK = 20
EPS = 1e-6
SUGGESTION_CONFIDENCE = 0.85

DEFAULT_K = 5
DEFAULT_ROUND_STEP = 50000

Record = Union[CarSample, Mapping[str, Any]]


# ---------------- Helpers ----------------
def _same(a: Optional[str], b: Optional[str]) -> Optional[bool]:
    """None when either side is missing, else case-insensitive equality."""
    a = (a or "").strip()
    b = (b or "").strip()
    if not a or not b:
        return None
    return a.casefold() == b.casefold()


def year_range(data: Iterable[CarSample]) -> Optional[Tuple[int, int]]:
    years = [d.year for d in data if d.year is not None]
    if not years:
        return None
    return min(years), max(years)


def _year_span(yr: Optional[Tuple[int, int]]) -> float:
    if yr is None:
        return YEAR_RANGE_FALLBACK
    return max(1, yr[1] - yr[0])


def distance(
    a: CarSample,
    b: CarSample,
    yr: Optional[Tuple[int, int]] = None,
    weights: Optional[Dict[str, float]] = None,
) -> float:
    """Weighted distance, smaller is more similar. Missing fields add nothing."""
    w = weights or DEFAULT_WEIGHTS
    d = 0.0

    # categorical mismatches
    if _same(a.make, b.make) is False:
        d += w["make"]
    if _same(a.model, b.model) is False:
        d += w["model"]
    if _same(a.fuel_type, b.fuel_type) is False:
        d += w["fuel"]

    if a.year is not None and b.year is not None:
        d += w["year"] * abs(a.year - b.year) / _year_span(yr)

    d += w["condition"] * abs(condition_score(a.condition) - condition_score(b.condition)) / CONDITION_MAX

    if a.description and b.description:
        d += w["description"] * (1.0 - cosine_sim(a.description, b.description))

    return d


def _as_samples(dataset: Union[Iterable[Record], pd.DataFrame]) -> List[CarSample]:
    if isinstance(dataset, pd.DataFrame):
        rows: Iterable[Record] = dataset.to_dict(orient="records")
    else:
        rows = dataset or []
    return [CarSample.from_record(r) for r in rows]


def select_neighbors(
    q: CarSample,
    candidates: List[CarSample],
    k: int,
    weights: Optional[Dict[str, float]] = None,
) -> List[Neighbor]:
    if not candidates:
        return []
    yr = year_range(candidates)
    scored = [Neighbor.from_sample(c, distance(q, c, yr, weights)) for c in candidates]
    # sorted() is stable: equal distances keep dataset order
    scored = sorted(scored, key=lambda n: n.distance)
    k = max(1, min(int(k), len(scored)))
    return scored[:k]


def weighted_base_price(neighbors: List[Neighbor]) -> Optional[float]:
    """Inverse-distance weighted mean; None when there is nothing to weigh."""
    weights = [1.0 / (EPS + n.distance) for n in neighbors]
    total = math.fsum(weights)
    if total == 0:
        return None
    return math.fsum((w / total) * n.price for w, n in zip(weights, neighbors))


# ---------------- Public API ----------------
def suggest_price(
    query: Union[QueryInput, Mapping[str, Any]],
    dataset: Union[Iterable[Record], pd.DataFrame],
    k: int = DEFAULT_K,
    round_step: float = DEFAULT_ROUND_STEP,
    market: Optional[MarketConfig] = None,
    current_year: Optional[int] = None,
    weights: Optional[Dict[str, float]] = None,
) -> KnnResult:
    if round_step is None or round_step <= 0:
        raise ValueError(f"round_step must be positive, got {round_step}")

    q = QueryInput.from_values(query).to_sample()
    valid = [s for s in _as_samples(dataset) if s.is_valid()]
    if not valid or not q.make or not q.model or q.year is None:
        return KnnResult.empty()

    neighbors = select_neighbors(q, valid, k, weights)
    base = weighted_base_price(neighbors)
    if base is None:
        return KnnResult.empty()

    suggested = adjust_price(
        base,
        query_year=q.year,
        query_condition=q.condition,
        round_step=round_step,
        current_year=current_year if current_year is not None else datetime.now().year,
        market=market or DEFAULT_MARKET,
    )
    return KnnResult(
        suggested_price=suggested,
        neighbors=neighbors,
        confidence=SUGGESTION_CONFIDENCE,
        base_price=base,
    )


# ---------------- Dataset IO ----------------
def load_dataset(path: str | None = None) -> List[CarSample]:
    """Comparables from CSV / parquet / JSON. Rows without a usable price are kept; the engine skips them."""
    path = path or os.getenv("PRICING_DATASET", "data/sample_listings.json")
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Dataset not found: {path}")

    suffix = p.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(p)
    elif suffix == ".parquet":
        df = pd.read_parquet(p)
    elif suffix == ".json":
        df = pd.read_json(p, orient="records")
    else:
        raise ValueError(f"Unsupported dataset format: {suffix}")
    return _as_samples(df)


# ---------------- CLI ----------------
if __name__ == "__main__":
    import argparse

    from dotenv import load_dotenv

    from .market import format_price, load_market_config

    load_dotenv()
    parser = argparse.ArgumentParser(description="Suggest a listing price from comparable cars")
    parser.add_argument("--dataset", type=str, default=os.getenv("PRICING_DATASET", "data/sample_listings.json"))
    parser.add_argument("--make", type=str, required=True)
    parser.add_argument("--model", type=str, required=True)
    parser.add_argument("--year", type=str, required=True)
    parser.add_argument("--condition", type=str, default=None)
    parser.add_argument("--fuel_type", type=str, default=None)
    parser.add_argument("--description", type=str, default=None)
    parser.add_argument("--k", type=int, default=DEFAULT_K)
    parser.add_argument("--round_step", type=float, default=DEFAULT_ROUND_STEP)
    parser.add_argument("--market_config", type=str, default=None)
    args = parser.parse_args()

    market = load_market_config(args.market_config)
    data = load_dataset(args.dataset)
    query = QueryInput(
        make=args.make,
        model=args.model,
        year=args.year,
        condition=args.condition,
        fuel_type=args.fuel_type,
        description=args.description,
    )
    res = suggest_price(query, data, k=args.k, round_step=args.round_step, market=market)

    if res.suggested_price is None:
        print("Not enough data for a suggestion (need make, model, year and priced comparables).")
    else:
        print(f"\nSuggested price: {format_price(res.suggested_price, market)} "
              f"(confidence {res.confidence * 100:.0f}%)")
        print(f"Base price (before market adjustment): {format_price(res.base_price, market)}\n")
        pd.set_option("display.max_colwidth", 60)
        table = pd.DataFrame([n.to_dict() for n in res.neighbors])
        cols = [c for c in ["make", "model", "year", "condition", "fuel_type", "price", "distance"] if c in table.columns]
        print(table[cols].to_string(index=False))
