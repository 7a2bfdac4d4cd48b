"""
Caching package for the Decomposer service.

Contains the normalise-and-cache layer that deduplicates generation calls.
"""

from .response_cache import ResponseCache, normalize

__all__ = ["ResponseCache", "normalize"]
