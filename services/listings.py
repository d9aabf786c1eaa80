# services/listings.py
"""
Comparable listings for the price suggestion.

live: unsold rows of the `cars` table in Supabase (PostgREST).
mock: a local JSON file, so the app runs without credentials.
"""
from __future__ import annotations

import json
import logging
import math
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from pricing.domain import CarSample
from .cache import DiskCache
from .http import Http, ProviderError

logger = logging.getLogger(__name__)

SELECT_COLUMNS = "make,model,year,price,condition,fuel_type,description"
DEFAULT_MOCK_PATH = "data/sample_listings.json"
CACHE_KEY = "listings:unsold"


class ComparablesProvider(Protocol):
    def fetch_comparables(self) -> List[CarSample]: ...


def _finite_number(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool) or v == "":
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def clean_rows(rows: List[Dict[str, Any]]) -> List[CarSample]:
    """Keep rows with make, model and numeric year/price; drop everything else."""
    out: List[CarSample] = []
    for d in rows or []:
        if not isinstance(d, dict) or not d.get("make") or not d.get("model"):
            continue
        year = _finite_number(d.get("year"))
        price = _finite_number(d.get("price"))
        if year is None or price is None:
            continue
        desc = d.get("description")
        out.append(CarSample(
            make=str(d["make"]),
            model=str(d["model"]),
            year=int(year),
            price=price,
            condition=str(d.get("condition") or ""),
            fuel_type=d.get("fuel_type") or None,
            description=desc if isinstance(desc, str) else None,
        ))
    return out


class ListingsSource:
    def __init__(self, mode: str | None = None, url: str | None = None, api_key: str | None = None,
                 http: Http | None = None, cache: DiskCache | None = None,
                 mock_path: str | None = None):
        self.mode = (mode or os.getenv("LISTINGS_MODE", "mock")).lower()  # "mock" | "live"
        self.url = (url or os.getenv("SUPABASE_URL") or "").rstrip("/")
        self.key = api_key or os.getenv("SUPABASE_ANON_KEY")
        self.http = http or Http()
        ttl = float(os.getenv("LISTINGS_CACHE_TTL_MINUTES", "10"))
        self.cache = cache or DiskCache(ttl_minutes=ttl)
        self.mock_path = Path(mock_path or os.getenv("LISTINGS_MOCK_PATH", DEFAULT_MOCK_PATH))

    def _fetch_rows(self) -> List[Dict[str, Any]]:
        if self.mode == "mock":
            if not self.mock_path.exists():
                logger.warning("Mock listings file %s not found; no comparables", self.mock_path)
                return []
            return json.loads(self.mock_path.read_text(encoding="utf-8"))

        if self.mode != "live":
            raise ProviderError(f"Unknown LISTINGS_MODE: {self.mode}")
        if not self.url or not self.key:
            raise ProviderError("SUPABASE_URL and SUPABASE_ANON_KEY are required for live mode")

        cached = self.cache.get(CACHE_KEY)
        if cached is not None:
            return cached

        rows = self.http.get_json(
            f"{self.url}/rest/v1/cars",
            params={"select": SELECT_COLUMNS, "is_sold": "eq.false"},
            headers={"apikey": self.key, "Authorization": f"Bearer {self.key}"},
        )
        if not isinstance(rows, list):
            raise ProviderError(f"Unexpected listings payload: {type(rows).__name__}")
        self.cache.set(CACHE_KEY, rows)
        return rows

    def fetch_comparables(self) -> List[CarSample]:
        rows = self._fetch_rows()
        samples = clean_rows(rows)
        logger.info("Loaded %d comparables (%d rows, mode=%s)", len(samples), len(rows), self.mode)
        return samples

    def refetch(self) -> List[CarSample]:
        self.cache.clear(CACHE_KEY)
        return self.fetch_comparables()
