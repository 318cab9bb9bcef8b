"""Cheap deterministic string hashing for cache keys.

The hash is 32-bit and non-cryptographic, so distinct inputs can collide.
Keys built here also carry the input length, which rules out collisions
between inputs of different sizes; a same-length collision would serve one
caller's cached result to another. Swap ``string_hash`` for a digest from
``hashlib`` if that risk is unacceptable; callers only rely on determinism.
"""

import json
from typing import Any


def string_hash(text: str) -> str:
    """31-multiplier rolling hash folded to 32 bits, as 8 hex chars."""
    value = 0
    for char in text:
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    return f"{value:08x}"


def pipeline_cache_key(content: str, options: dict[str, Any]) -> str:
    options_blob = json.dumps(options, sort_keys=True, separators=(",", ":"))
    return f"pipeline:{len(content)}:{string_hash(content)}:{string_hash(options_blob)}"


def search_cache_key(provider: str, query: str, count: int) -> str:
    return f"search:{provider}:{count}:{query}"


def listing_cache_key(collection_id: str, credential: str) -> str:
    # The credential is hashed so listings never leak across API tokens
    return f"{listing_cache_prefix(collection_id)}{string_hash(credential)}"


def listing_cache_prefix(collection_id: str) -> str:
    return f"listing:{collection_id}:"
