import copy
import math

import pandas as pd
import pytest

from pricing.domain import CarSample, KnnResult, QueryInput, condition_score, to_year
from pricing.knn import (
    SUGGESTION_CONFIDENCE,
    distance,
    select_neighbors,
    suggest_price,
    weighted_base_price,
    year_range,
)

LO, HI = 2_700_000, 4_700_000


def _car(make="Toyota", model="Corolla", year=2022, condition="good", price=3_000_000,
         fuel_type=None, description=None):
    return CarSample(make=make, model=model, year=year, condition=condition, price=price,
                     fuel_type=fuel_type, description=description)


def _row(make, model, year, condition, price, **extra):
    return {"make": make, "model": model, "year": year, "condition": condition, "price": price, **extra}


COROLLA_QUERY = {"make": "Toyota", "model": "Corolla", "year": 2022, "condition": "good"}

COROLLA_DATA = [
    _row("Toyota", "Corolla", 2020, "good", 2_800_000),
    _row("Toyota", "Corolla", 2021, "excellent", 3_000_000),
    _row("Honda", "Civic", 2022, "good", 3_600_000),
    _row("Toyota", "Corolla", 2022, "good", 3_200_000),
    _row("BMW", "X5", 2022, "good", 9_000_000),
    _row("Toyota", "Corolla", 2023, "good", 3_500_000),
]


# ---------------- parsing ----------------
def test_to_year():
    assert to_year(2022) == 2022
    assert to_year("2022") == 2022
    assert to_year(" 2021 model") == 2021
    assert to_year(2021.7) == 2021
    assert to_year("abc") is None
    assert to_year("") is None
    assert to_year(float("nan")) is None
    assert to_year(float("inf")) is None
    assert to_year(None) is None


def test_condition_scale():
    assert condition_score("poor") == 0
    assert condition_score("new") == 5
    assert condition_score("Like New") == 4
    assert condition_score("mint") == 2
    assert condition_score(None) == 2


# ---------------- distance ----------------
def test_identical_records_have_zero_distance():
    a = _car(fuel_type="Hybrid", description="Low mileage, reverse camera")
    b = _car(fuel_type="Hybrid", description="Low mileage, reverse camera", price=1)
    assert distance(a, b, (2015, 2023)) == 0.0


def test_categorical_penalties():
    base = _car()
    assert distance(base, _car(make="Honda")) == pytest.approx(1.2)
    assert distance(base, _car(model="Yaris")) == pytest.approx(1.8)
    assert distance(_car(fuel_type="Diesel"), _car(fuel_type="gasoline")) == pytest.approx(0.7)
    # case and surrounding spaces are ignored
    assert distance(base, _car(make=" toyota ", model="COROLLA")) == 0.0


def test_missing_fields_add_nothing():
    assert distance(_car(fuel_type=None), _car(fuel_type="Diesel")) == 0.0
    assert distance(_car(description=None), _car(description="Accident free")) == 0.0
    assert distance(_car(year=None), _car(year=1990)) == 0.0


def test_year_term_uses_dataset_range():
    assert distance(_car(year=2015), _car(year=2020), (2010, 2020)) == pytest.approx(1.0)
    # no range -> 20 years
    assert distance(_car(year=2015), _car(year=2020), None) == pytest.approx(0.5)
    # degenerate range -> 1
    assert distance(_car(year=2020), _car(year=2021), (2020, 2020)) == pytest.approx(2.0)


def test_condition_and_description_terms():
    assert distance(_car(condition="poor"), _car(condition="new")) == pytest.approx(1.0)
    assert distance(_car(condition="unknown"), _car(condition="good")) == 0.0
    assert distance(_car(description="turbo sunroof"), _car(description="diesel manual")) == pytest.approx(0.8)


def test_distance_never_negative():
    data = [CarSample.from_record(r) for r in COROLLA_DATA]
    yr = year_range(data)
    for a in data:
        for b in data:
            assert distance(a, b, yr) >= 0.0


# ---------------- neighbors / base price ----------------
def test_neighbors_sorted_and_clamped():
    data = [CarSample.from_record(r) for r in COROLLA_DATA]
    q = QueryInput.from_values(COROLLA_QUERY).to_sample()
    out = select_neighbors(q, data, k=100)
    assert len(out) == len(data)
    dists = [n.distance for n in out]
    assert dists == sorted(dists)
    assert len(select_neighbors(q, data, k=0)) == 1
    assert len(select_neighbors(q, data, k=-3)) == 1


def test_ties_keep_dataset_order():
    data = [_car(price=1_000_000), _car(price=2_000_000), _car(price=3_000_000)]
    out = select_neighbors(_car(), data, k=3)
    assert [n.price for n in out] == [1_000_000, 2_000_000, 3_000_000]


def test_closer_neighbors_weigh_more():
    data = [CarSample.from_record(r) for r in COROLLA_DATA]
    q = QueryInput.from_values(COROLLA_QUERY).to_sample()
    base = weighted_base_price(select_neighbors(q, data, k=3))
    # the exact 2022 match dominates
    assert base == pytest.approx(3_200_000, rel=1e-3)
    assert weighted_base_price([]) is None


# ---------------- suggest_price ----------------
def test_corolla_scenario():
    res = suggest_price(COROLLA_QUERY, COROLLA_DATA, k=4, round_step=1000, current_year=2025)
    assert res.suggested_price is not None
    assert LO <= res.suggested_price <= HI
    assert res.suggested_price % 1000 == 0
    assert res.confidence == SUGGESTION_CONFIDENCE
    assert all(n.make == "Toyota" and n.model == "Corolla" for n in res.neighbors)
    assert res.neighbors[0].year == 2022 and res.neighbors[0].distance == 0.0


def test_single_identical_record():
    data = [_row("Toyota", "Corolla", 2022, "good", 600_000)]
    res = suggest_price(COROLLA_QUERY, data, k=5, round_step=1000, current_year=2022)
    assert len(res.neighbors) == 1
    assert res.neighbors[0].distance == 0.0
    assert res.base_price == 600_000
    # 600k * 4.5 * 1.0 = 2.7M
    assert res.suggested_price == 2_700_000


def test_market_adjustment_applied():
    data = [_row("Toyota", "Corolla", 2020, "fair", 1_000_000)]
    q = {"make": "Toyota", "model": "Corolla", "year": "2020", "condition": "fair"}
    res = suggest_price(q, data, round_step=1000, current_year=2025)
    assert res.base_price == 1_000_000
    assert res.suggested_price == 2_720_000


@pytest.mark.parametrize("missing", [
    {"model": None},
    {"make": None},
    {"make": "   "},
    {"year": None},
    {"year": "abc"},
    {"year": float("nan")},
])
def test_required_fields(missing):
    res = suggest_price({**COROLLA_QUERY, **missing}, COROLLA_DATA, current_year=2025)
    assert res == KnnResult.empty()
    assert res.suggested_price is None and res.neighbors == [] and res.confidence == 0


def test_no_usable_records():
    bad = [_row("Toyota", "Corolla", 2022, "good", p) for p in (0, -5, None, float("nan"), float("inf"))]
    assert suggest_price(COROLLA_QUERY, bad).suggested_price is None
    assert suggest_price(COROLLA_QUERY, []).suggested_price is None


def test_k_larger_than_dataset():
    data = COROLLA_DATA + [_row("Toyota", "Corolla", 2022, "good", 0)]
    res = suggest_price(COROLLA_QUERY, data, k=50)
    assert len(res.neighbors) == len(COROLLA_DATA)


def test_band_and_step_default():
    res = suggest_price(COROLLA_QUERY, COROLLA_DATA, current_year=2030)
    assert LO <= res.suggested_price <= HI
    assert res.suggested_price % 50000 == 0


def test_invalid_round_step():
    with pytest.raises(ValueError):
        suggest_price(COROLLA_QUERY, COROLLA_DATA, round_step=0)


def test_inputs_not_mutated_and_deterministic():
    data = copy.deepcopy(COROLLA_DATA)
    query = dict(COROLLA_QUERY, description="new tyres")
    data_before = copy.deepcopy(data)
    query_before = dict(query)

    first = suggest_price(query, data, current_year=2025)
    second = suggest_price(query, data, current_year=2025)

    assert data == data_before
    assert query == query_before
    assert first == second


def test_accepts_dataframe_and_camelcase_fuel():
    df = pd.DataFrame(COROLLA_DATA)
    df["fuelType"] = "Gasoline"
    q = dict(COROLLA_QUERY, fuelType="Diesel")
    res = suggest_price(q, df, k=3, current_year=2025)
    assert len(res.neighbors) == 3
    # every candidate pays the fuel mismatch
    assert all(n.distance >= 0.7 for n in res.neighbors)


def test_to_dict_keys():
    d = suggest_price(COROLLA_QUERY, COROLLA_DATA, k=2, current_year=2025).to_dict()
    assert set(d) == {"suggestedPrice", "neighbors", "confidence", "basePrice"}
    assert "distance" in d["neighbors"][0]
    assert not math.isnan(d["basePrice"])


def test_identical_records_with_five_word_description():
    desc = "x1 y2 z3 w4 v5"
    a = _car(description=desc)
    b = _car(description=desc, price=1)
    assert distance(a, b, (2020, 2023)) == 0.0


def test_numeric_model_in_query():
    q = QueryInput.from_values({"make": "Peugeot", "model": 208, "year": 2021})
    assert q.to_sample().model == "208"
    data = [_row("Peugeot", "208", 2021, "good", 2_000_000)]
    res = suggest_price(q, data, current_year=2025)
    assert res.neighbors[0].distance == 0.0
