"""
Usage frequency tracker — drives the "most used" BOQ shortcut list.

The counter map is loaded once, mutated in place, and flushed in full to the
key-value store after every increment.
"""
import json
import logging
from typing import Dict, List, Tuple

from app.services.kv_store import KeyValueStore

logger = logging.getLogger("sitebook-usage")

USAGE_KEY = "boq_usage"


class UsageTracker:

    def __init__(self, store: KeyValueStore, key: str = USAGE_KEY):
        self._store = store
        self._key = key
        self._counts: Dict[str, int] = self._load()

    def _load(self) -> Dict[str, int]:
        raw = self._store.get(self._key)
        if raw is None:
            return {}
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Usage counter payload unreadable, starting empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning("Usage counter payload is not a mapping, starting empty")
            return {}

        counts: Dict[str, int] = {}
        for ref, value in data.items():
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                logger.warning(f"Usage counter payload has invalid count for {ref!r}, starting empty")
                return {}
            counts[str(ref)] = value
        return counts

    def record_usage(self, reference_code: str) -> int:
        """Increment the count for ``reference_code`` and persist the whole map."""
        self._counts[reference_code] = self._counts.get(reference_code, 0) + 1
        if not self._store.set(self._key, json.dumps(self._counts)):
            logger.warning(f"Usage for {reference_code!r} kept in memory only (store write failed)")
        return self._counts[reference_code]

    def top_n(self, n: int = 5) -> List[Tuple[str, int]]:
        """Highest counts first; equal counts keep their insertion order."""
        if n <= 0:
            return []
        ranked = sorted(self._counts.items(), key=lambda kv: kv[1], reverse=True)
        return ranked[:n]

    def count(self, reference_code: str) -> int:
        return self._counts.get(reference_code, 0)

    def as_dict(self) -> Dict[str, int]:
        return dict(self._counts)
