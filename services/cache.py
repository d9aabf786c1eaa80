# services/cache.py
import hashlib
import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class DiskCache:
    """JSON-file cache with a TTL, one file per key."""
    dir: str = ".cache"
    ttl_minutes: float = 10
    enabled: bool = True

    def _path(self, key: str) -> str:
        os.makedirs(self.dir, exist_ok=True)
        h = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return os.path.join(self.dir, f"{h}.json")

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        p = self._path(key)
        if not os.path.exists(p):
            return None
        try:
            with open(p, "r", encoding="utf-8") as f:
                obj = json.load(f)
        except (OSError, ValueError) as e:
            # corrupt entry counts as a miss
            logger.warning("Ignoring unreadable cache entry %s: %s", p, e)
            return None
        if not isinstance(obj, dict):
            logger.warning("Ignoring malformed cache entry %s", p)
            return None
        if time.time() - obj.get("ts", 0) > self.ttl_minutes * 60:
            logger.debug("Cache expired for %s", key)
            return None
        logger.debug("Cache hit for %s", key)
        return obj.get("data")

    def set(self, key: str, data: Any) -> None:
        if not self.enabled:
            return
        p = self._path(key)
        try:
            with open(p, "w", encoding="utf-8") as f:
                json.dump({"ts": time.time(), "data": data}, f, ensure_ascii=False)
        except OSError as e:
            logger.warning("Could not write cache entry %s: %s", p, e)

    def clear(self, key: str) -> None:
        p = self._path(key)
        if os.path.exists(p):
            os.remove(p)
