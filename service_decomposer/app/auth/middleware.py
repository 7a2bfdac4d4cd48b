"""
Authentication middleware for the Decomposer service.
"""

from fastapi import Request

from shared.logging import get_logger, set_device_context
from shared.errors import AuthenticationError
from ..domain.models import TokenClaims
from .tokens import TokenService


class AuthMiddleware:
    """Resolves the caller's device identity from the bearer token."""

    def __init__(self, token_service: TokenService):
        self.token_service = token_service
        self.logger = get_logger("decomposer.auth_middleware")

    async def authenticate_request(self, request: Request) -> TokenClaims:
        """Authenticate incoming request with its ``Authorization: Bearer`` token."""
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            self.logger.info("Missing bearer token", path=request.url.path)
            raise AuthenticationError()

        token = auth_header[7:]  # Remove "Bearer " prefix

        claims = self.token_service.verify(token)
        if claims is None:
            raise AuthenticationError()

        set_device_context(claims.device_id)
        try:
            request.state.claims = claims
        except AttributeError:
            pass

        return claims
