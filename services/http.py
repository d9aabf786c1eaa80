# services/http.py
import logging
import time
from typing import Any, Dict, Optional

import requests

DEFAULT_TIMEOUT = 10
DEFAULT_MAX_RETRIES = 3
DEFAULT_UA = "CarMarket-Pricing/1.0"

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """Remote data source failed (HTTP error, bad JSON, missing credentials)."""
    pass


class Http:
    """
    requests wrapper with retries and linear back-off.
    4xx answers are not retried; 5xx and connection errors are.
    """
    def __init__(self, user_agent: str = DEFAULT_UA, timeout: int = DEFAULT_TIMEOUT,
                 max_retries: int = DEFAULT_MAX_RETRIES, backoff: float = 0.6):
        self.user_agent = user_agent or DEFAULT_UA
        self.timeout = timeout
        self.max_retries = max(1, max_retries or 1)
        self.backoff = backoff

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None,
                 headers: Optional[Dict[str, str]] = None, timeout: Optional[int] = None) -> Any:
        req_headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        if headers:
            req_headers.update(headers)
        use_timeout = timeout if timeout is not None else self.timeout

        for attempt in range(1, self.max_retries + 1):
            try:
                r = requests.get(url, params=params, headers=req_headers, timeout=use_timeout)
                if 400 <= r.status_code < 500:
                    raise ProviderError(f"{url} -> HTTP {r.status_code}: {r.text[:200]}")
                if r.status_code >= 500:
                    raise requests.RequestException(f"HTTP {r.status_code}")
                return r.json()
            except (requests.RequestException, ValueError) as e:
                logger.warning("GET %s failed (attempt %d/%d): %s", url, attempt, self.max_retries, e)
                if attempt == self.max_retries:
                    raise ProviderError(f"Failed {url}: {e}") from e
                time.sleep(self.backoff * attempt)
