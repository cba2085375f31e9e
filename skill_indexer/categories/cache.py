"""
Category assignment cache keyed by content fingerprint
"""

import hashlib
import threading
from typing import Dict, List, Optional


def fingerprint(name: str, description: Optional[str], topics: Optional[List[str]]) -> str:
    """sha1 over normalized name, the first 300 chars of description and sorted topics."""
    parts = [
        (name or '').strip().lower(),
        (description or '').strip().lower()[:300],
        ','.join(sorted(t.strip().lower() for t in topics or [])),
    ]
    return hashlib.sha1('|'.join(parts).encode('utf-8', errors='ignore')).hexdigest()


class CategoryCache:
    """In-memory fingerprint -> category ids map, shared by one sync run."""

    def __init__(self):
        self._entries: Dict[str, List[str]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[List[str]]:
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self.misses += 1
                return None
            self.hits += 1
            return list(value)

    def set(self, key: str, category_ids: List[str]):
        with self._lock:
            self._entries[key] = list(category_ids)

    def __len__(self) -> int:
        return len(self._entries)
