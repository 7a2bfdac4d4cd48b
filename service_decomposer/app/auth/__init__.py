"""
Device authentication for the Decomposer service.

Issues and verifies signed device identity tokens and resolves the caller's
identity from the ``Authorization`` header.
"""

from .tokens import TokenService, generate_device_id
from .middleware import AuthMiddleware

__all__ = ["TokenService", "AuthMiddleware", "generate_device_id"]
