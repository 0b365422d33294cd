"""
Generation Response Cache

Exact-prompt cache in front of the model. Identical prompts (the same plan
requested twice for one topic and profile, a regenerated step) are answered
without a model call.
"""

import hashlib
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class CachedGeneration:
    """A stored model response."""
    namespace: str
    response: str
    stored_at: float
    hits: int = 0

    def age(self, now: float) -> float:
        return now - self.stored_at


class ResponseCache:
    """
    Bounded TTL cache of model responses keyed by (namespace, prompt).

    Full cache: the least-hit entry goes first, oldest on ties. Responses
    longer than max_response_chars are never stored.
    """

    def __init__(self, max_size: int = 100, ttl_seconds: float = 300, max_response_chars: int = 5000):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self.max_response_chars = max_response_chars
        self.entries: Dict[str, CachedGeneration] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def cache_key(prompt: str, namespace: str = "") -> str:
        return hashlib.sha256(f"{namespace}\x00{prompt.strip()}".encode("utf-8")).hexdigest()

    def _drop_expired(self):
        now = time.monotonic()
        for key in [k for k, entry in self.entries.items() if entry.age(now) > self.ttl_seconds]:
            del self.entries[key]

    def _make_room(self):
        while self.entries and len(self.entries) >= self.max_size:
            victim = min(self.entries, key=lambda k: (self.entries[k].hits, self.entries[k].stored_at))
            del self.entries[victim]

    def get(self, prompt: str, namespace: str = "") -> Optional[str]:
        """
        Look up a fresh response for this exact prompt.

        Args:
            prompt: Prompt text (surrounding whitespace ignored)
            namespace: Keeps responses of different models apart
        """
        self._drop_expired()
        entry = self.entries.get(self.cache_key(prompt, namespace))
        if entry is None:
            self.misses += 1
            return None
        entry.hits += 1
        self.hits += 1
        return entry.response

    def put(self, prompt: str, response: str, namespace: str = "") -> bool:
        """Store a response; returns False when it is empty or too long."""
        if not response or len(response) > self.max_response_chars:
            return False
        self._drop_expired()
        self._make_room()
        self.entries[self.cache_key(prompt, namespace)] = CachedGeneration(
            namespace=namespace,
            response=response,
            stored_at=time.monotonic(),
        )
        return True

    def get_stats(self) -> Dict[str, Any]:
        lookups = self.hits + self.misses
        return {
            "size": len(self.entries),
            "max_size": self.max_size,
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / lookups if lookups else 0.0,
        }

    def clear(self):
        self.entries.clear()
        self.hits = 0
        self.misses = 0
