# pricing/domain.py
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict, List, Mapping, Optional, Union

# Ordinal scale for listing condition (poor .. new)
CONDITION_ORDER: Dict[str, int] = {
    "poor": 0,
    "fair": 1,
    "good": 2,
    "excellent": 3,
    "like_new": 4,
    "new": 5,
}
CONDITION_MAX = max(CONDITION_ORDER.values())
DEFAULT_CONDITION_SCORE = 2  # "good"

_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")


def normalize_condition(c: Any) -> str:
    """'Like New' / 'like-new' / ' LIKE_NEW ' -> 'like_new'."""
    if not isinstance(c, str):
        return ""
    return re.sub(r"[\s\-]+", "_", c.strip().lower())


def condition_score(c: Any) -> int:
    return CONDITION_ORDER.get(normalize_condition(c), DEFAULT_CONDITION_SCORE)


def to_year(v: Any) -> Optional[int]:
    """
    Year as int, or None when it cannot be used.
    Strings are read like parseInt: leading digits only ("2021 model" -> 2021).
    """
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, str):
        m = _INT_PREFIX.match(v)
        return int(m.group(1)) if m else None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f):
        return None
    return int(f)


def to_price(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def _clean_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    if isinstance(v, float) and math.isnan(v):  # pandas NaN
        return None
    s = str(v).strip()
    return s or None


# ---------------- Records ----------------
@dataclass(frozen=True)
class CarSample:
    """A comparable listing with a known price."""
    make: str
    model: str
    year: Optional[int]
    condition: str
    price: float
    fuel_type: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_record(cls, rec: Union["CarSample", Mapping[str, Any]]) -> "CarSample":
        if isinstance(rec, CarSample):
            return rec
        desc = rec.get("description")
        price = to_price(rec.get("price"))
        return cls(
            make=_clean_str(rec.get("make")) or "",
            model=_clean_str(rec.get("model")) or "",
            year=to_year(rec.get("year")),
            condition=_clean_str(rec.get("condition")) or "",
            price=price if price is not None else math.nan,
            fuel_type=_clean_str(rec.get("fuel_type", rec.get("fuelType"))),
            description=desc if isinstance(desc, str) and desc else None,
        )

    def is_valid(self) -> bool:
        return math.isfinite(self.price) and self.price > 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Neighbor(CarSample):
    """A comparable together with its distance to the query."""
    distance: float = 0.0

    @classmethod
    def from_sample(cls, sample: CarSample, distance: float) -> "Neighbor":
        values = {f.name: getattr(sample, f.name) for f in fields(CarSample)}
        return cls(distance=distance, **values)


@dataclass(frozen=True)
class QueryInput:
    """The car being priced. Every field is optional."""
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[Union[int, float, str]] = None
    condition: Optional[str] = None
    fuel_type: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_values(cls, values: Union["QueryInput", Mapping[str, Any], None]) -> "QueryInput":
        if isinstance(values, QueryInput):
            return values
        values = values or {}
        return cls(
            make=values.get("make"),
            model=values.get("model"),
            year=values.get("year"),
            condition=values.get("condition"),
            fuel_type=values.get("fuel_type", values.get("fuelType")),
            description=values.get("description"),
        )

    def to_sample(self) -> CarSample:
        """Normalized view used for scoring; price is unknown (NaN)."""
        desc = self.description if isinstance(self.description, str) else None
        return CarSample(
            make=_clean_str(self.make) or "",
            model=_clean_str(self.model) or "",
            year=to_year(self.year),
            condition=self.condition or "",
            price=math.nan,
            fuel_type=_clean_str(self.fuel_type),
            description=desc or None,
        )


@dataclass(frozen=True)
class KnnResult:
    suggested_price: Optional[float]
    neighbors: List[Neighbor] = field(default_factory=list)
    confidence: float = 0.0
    base_price: Optional[float] = None

    @classmethod
    def empty(cls) -> "KnnResult":
        return cls(suggested_price=None, neighbors=[], confidence=0.0, base_price=None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "suggestedPrice": self.suggested_price,
            "neighbors": [n.to_dict() for n in self.neighbors],
            "confidence": self.confidence,
            "basePrice": self.base_price,
        }
