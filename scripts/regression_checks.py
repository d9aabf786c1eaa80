# scripts/regression_checks.py
# Run from the repo root: python -m scripts.regression_checks
from __future__ import annotations

import sys
from typing import List

from dotenv import load_dotenv

from pricing.domain import Neighbor
from pricing.knn import load_dataset, suggest_price
from pricing.market import DEFAULT_MARKET, format_price

OK = "✅"
BAD = "❌"


def _print(title: str):
    print(f"\n=== {title} ===")


def assert_true(cond: bool, msg_ok: str, msg_bad: str):
    print((OK if cond else BAD), msg_ok if cond else msg_bad)
    if not cond:
        raise SystemExit(2)


def show_neighbors(neighbors: List[Neighbor]):
    for i, n in enumerate(neighbors, 1):
        print(f"{i}. {n.year} {n.make} {n.model} | {n.condition} | "
              f"{format_price(n.price)} | distance={n.distance:.3f}")


def main(dataset_path: str | None = None):
    load_dotenv()
    data = load_dataset(dataset_path)
    lo, hi = DEFAULT_MARKET.price_band
    base = dict(make="Toyota", model="Corolla", year=2022, condition="good")

    # 1) typical query lands in the band and prefers same make/model
    _print("Toyota Corolla 2022 (good)")
    res = suggest_price(base, data, k=5, round_step=1000, current_year=2025)
    print("suggested:", format_price(res.suggested_price), "| base:", format_price(res.base_price))
    show_neighbors(res.neighbors)
    assert_true(res.suggested_price is not None and lo <= res.suggested_price <= hi,
                "Suggestion inside the price band", "Suggestion missing or outside the band")
    assert_true(res.suggested_price % 1000 == 0, "Rounded to 1,000", "Not rounded to the step")
    top = res.neighbors[0]
    assert_true(top.make == "Toyota" and top.model == "Corolla",
                "Closest neighbor is a Corolla", f"Closest neighbor is {top.make} {top.model}")

    # 2) missing model -> no suggestion
    _print("Missing model")
    res_nomodel = suggest_price({**base, "model": None}, data)
    assert_true(res_nomodel.suggested_price is None and not res_nomodel.neighbors
                and res_nomodel.confidence == 0,
                "Empty result without model", "Got a suggestion without model")

    # 3) unparseable year -> no suggestion
    _print("Bad year")
    res_year = suggest_price({**base, "year": "n/a"}, data)
    assert_true(res_year.suggested_price is None, "Empty result for bad year", "Got a suggestion for bad year")

    # 4) k larger than the dataset
    _print("k clamp")
    valid = [s for s in data if s.is_valid()]
    res_k = suggest_price(base, data, k=1000)
    assert_true(len(res_k.neighbors) == len(valid),
                f"Returned {len(valid)} neighbors", f"Returned {len(res_k.neighbors)} neighbors")
    dists = [n.distance for n in res_k.neighbors]
    assert_true(dists == sorted(dists), "Neighbors sorted by distance", "Neighbors out of order")

    # 5) same inputs -> same output
    _print("Determinism")
    assert_true(suggest_price(base, data, current_year=2025) == suggest_price(base, data, current_year=2025),
                "Repeated calls agree", "Repeated calls differ")

    print("\nALL REGRESSION CHECKS PASSED ✅")


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else None)
