"""
Adapters package for the Decomposer service.

Wraps the two external collaborators:

- the Redis key-value store (rate-limit counters and cached results)
- the generation provider's chat-completion API

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .kv_store import RedisKVStore
from .openai_client import DecompositionClient

__all__ = [
    "RedisKVStore",
    "DecompositionClient",
]
