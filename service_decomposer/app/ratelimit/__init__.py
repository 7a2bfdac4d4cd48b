"""
Rate limiting package for the Decomposer service.

Holds the per-device daily quota that caps free-tier generation calls.
"""

from .daily_quota import DailyQuotaLimiter

__all__ = ["DailyQuotaLimiter"]
