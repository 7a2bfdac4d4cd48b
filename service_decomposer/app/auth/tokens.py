"""
Device identity tokens for the Decomposer service.

Tokens are compact HS256 JWTs: base64url header and claims, signed with an
HMAC-SHA256 over ``<header>.<claims>``. Claims are never mutated; a change in
status (premium upgrade) issues a brand-new token.
"""

import secrets
import time
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

import jwt
from pydantic import ValidationError as PydanticValidationError

from shared.logging import get_logger
from ..domain.models import TokenClaims

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


TOKEN_ALGORITHM = "HS256"
DEFAULT_VALIDITY_DAYS = 365
SECONDS_PER_DAY = 24 * 60 * 60


def generate_device_id() -> str:
    """Return 16 cryptographically random bytes as 32 lower-case hex characters."""
    return secrets.token_hex(16)


class TokenService:
    """Issues and verifies signed device identity tokens."""

    def __init__(
        self,
        secret: str,
        validity_days: int = DEFAULT_VALIDITY_DAYS,
        *,
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._secret = secret
        self.validity_days = validity_days
        self.metrics = metrics
        self.clock = clock
        self.logger = get_logger("decomposer.tokens")

    def issue(
        self,
        device_id: str,
        is_premium: bool = False,
        user_id: Optional[str] = None,
        validity_days: Optional[int] = None,
    ) -> str:
        """Sign a new token; ``exp`` is always ``iat`` plus the validity window."""
        days = self.validity_days if validity_days is None else validity_days
        now = int(self.clock())

        payload: Dict[str, Any] = {"deviceId": device_id, "isPremium": is_premium}
        if user_id is not None:
            payload["userId"] = user_id
        payload["iat"] = now
        payload["exp"] = now + days * SECONDS_PER_DAY

        token = jwt.encode(payload, self._secret, algorithm=TOKEN_ALGORITHM)
        self.logger.info("Token issued", device_id=device_id, is_premium=is_premium)
        return token

    def verify(self, token: str) -> Optional[TokenClaims]:
        """Return the token's claims, or ``None`` if it is malformed, forged or expired."""
        # Expiry is checked below as exp < now; a future iat is accepted
        try:
            raw_claims = jwt.decode(
                token,
                self._secret,
                algorithms=[TOKEN_ALGORITHM],
                options={"require": ["exp", "iat"], "verify_exp": False, "verify_iat": False},
            )
            claims = TokenClaims.model_validate(raw_claims)
        except (jwt.InvalidTokenError, PydanticValidationError) as e:
            return self._reject(type(e).__name__)

        if claims.expires_at < int(self.clock()):
            return self._reject("expired")

        self._record("valid")
        return claims

    def _reject(self, reason: str) -> None:
        self.logger.info("Token rejected", reason=reason)
        self._record("invalid")
        return None

    def _record(self, status: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("token_verifications_total", status=status)
