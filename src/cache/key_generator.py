#!/usr/bin/env python3
"""
Cache Key Generation — Canonical Parameter Hashing

Implements:
- canonical_json(params) → deterministic JSON text
- normalize_params(params) → params as they look after a JSON round trip
- generate_cache_key(params) → hex digest used as the entry file name
- Same params (in any key order) = same key = cache hit
"""

import hashlib
import json
import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)


def canonical_json(params: Dict[str, Any]) -> str:
    """Serialize params so identical inputs always produce identical text."""
    return json.dumps(params, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def normalize_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return params exactly as they will read back from an entry file.

    Stored params are compared against requested params with ==, so tuples,
    non-string keys and the like must be folded into their JSON form first.
    """
    return json.loads(canonical_json(params))


class CacheKeyGenerator:
    """
    Generate deterministic cache keys from request parameters.

    Design:
    - key = HEXDIGEST(canonical_json(params))
    - Key order in params does not matter (keys are sorted)
    - Different params = different key, except on hash collision, which
      the Cache Store catches by comparing the stored params
    """

    def __init__(self, algorithm: str = "md5"):
        """Initialize key generator with a hashlib algorithm name."""
        hashlib.new(algorithm)  # fail fast on unknown names
        self.algorithm = algorithm

    def generate_cache_key(self, params: Dict[str, Any]) -> str:
        """
        Generate deterministic cache key.

        Args:
            params: JSON-serializable request parameters

        Returns:
            Full hex digest of the canonical serialization

        Raises:
            TypeError: params are not JSON-serializable
        """
        digest = hashlib.new(self.algorithm, canonical_json(params).encode("utf-8"))
        key = digest.hexdigest()

        logger.debug(f"Generated key: {key} (params={params})")
        return key


# Test
if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)

    gen = CacheKeyGenerator()

    key1 = gen.generate_cache_key({"url": "https://a", "lang": "en"})
    key2 = gen.generate_cache_key({"lang": "en", "url": "https://a"})
    key3 = gen.generate_cache_key({"url": "https://b", "lang": "en"})

    print(f"\nSame params, any order → same key: {key1 == key2} (both {key1})")
    print(f"Different params → different key: {key1 != key3} ({key1} vs {key3})")
