"""
Unit tests for AuthMiddleware.
"""

import pytest
from unittest.mock import MagicMock
from fastapi import Request

from service_decomposer.app.auth.middleware import AuthMiddleware
from service_decomposer.app.auth.tokens import TokenService
from shared.errors import AuthenticationError
from shared.logging import clear_context, device_id_var
from shared.test_helpers import TEST_JWT_SECRET, MockTokenGenerator


class TestAuthMiddleware:
    """Test cases for AuthMiddleware."""

    @pytest.fixture
    def auth_middleware(self):
        """Create AuthMiddleware instance."""
        return AuthMiddleware(TokenService(TEST_JWT_SECRET))

    @pytest.fixture
    def mock_request(self):
        """Create mock request."""
        request = MagicMock(spec=Request)
        request.headers = {}
        return request

    @pytest.fixture(autouse=True)
    def reset_log_context(self):
        yield
        clear_context()

    @pytest.mark.asyncio
    async def test_authenticate_request_success(self, auth_middleware, mock_request):
        """Valid bearer token yields its claims."""
        token = MockTokenGenerator().generate_device_token("b" * 32, is_premium=True)
        mock_request.headers = {"Authorization": f"Bearer {token}"}

        claims = await auth_middleware.authenticate_request(mock_request)

        assert claims.device_id == "b" * 32
        assert claims.is_premium is True
        assert mock_request.state.claims == claims
        assert device_id_var.get() == "b" * 32

    @pytest.mark.asyncio
    async def test_authenticate_request_missing_header(self, auth_middleware, mock_request):
        """Missing Authorization header is rejected."""
        with pytest.raises(AuthenticationError) as exc_info:
            await auth_middleware.authenticate_request(mock_request)

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Unauthorized"

    @pytest.mark.asyncio
    async def test_authenticate_request_wrong_scheme(self, auth_middleware, mock_request):
        """Only the Bearer scheme is accepted."""
        token = MockTokenGenerator().generate_device_token()
        mock_request.headers = {"Authorization": f"Basic {token}"}

        with pytest.raises(AuthenticationError):
            await auth_middleware.authenticate_request(mock_request)

    @pytest.mark.asyncio
    async def test_authenticate_request_expired_token(self, auth_middleware, mock_request):
        """Expired tokens are rejected."""
        token = MockTokenGenerator().generate_expired_token()
        mock_request.headers = {"Authorization": f"Bearer {token}"}

        with pytest.raises(AuthenticationError):
            await auth_middleware.authenticate_request(mock_request)

    @pytest.mark.asyncio
    async def test_authenticate_request_foreign_secret(self, auth_middleware, mock_request):
        """Tokens signed elsewhere are rejected."""
        token = MockTokenGenerator(secret="some-other-secret-of-sufficient-length").generate_device_token()
        mock_request.headers = {"Authorization": f"Bearer {token}"}

        with pytest.raises(AuthenticationError) as exc_info:
            await auth_middleware.authenticate_request(mock_request)

        assert exc_info.value.to_response() == {"success": False, "error": "Unauthorized"}
