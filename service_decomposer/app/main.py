"""
Decomposer service for the TinySteps backend.

Registers device identities, enforces the free-tier daily quota, and proxies
task decomposition requests to the generation provider behind a cache.
"""

from datetime import datetime
from typing import Any, Callable, Optional

from fastapi import Request

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import RateLimitError, ValidationError
from shared.timeutils import utcnow
from .adapters.kv_store import RedisKVStore
from .adapters.openai_client import DecompositionClient
from .auth.middleware import AuthMiddleware
from .auth.tokens import TokenService, generate_device_id
from .caching.response_cache import ResponseCache
from .domain.models import DecomposeRequest, SubStepsRequest
from .ratelimit.daily_quota import DailyQuotaLimiter


class DecomposerService(BaseService):
    """Decomposer service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        kv_store: Optional[RedisKVStore] = None,
        decomposition_client: Optional[DecompositionClient] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__("decomposer", config)

        self.kv_store = kv_store or RedisKVStore(self.config.redis_url)
        self.token_service = TokenService(
            self.config.jwt_secret.get_secret_value(),
            self.config.token_validity_days,
            metrics=self.metrics,
        )
        self.auth_middleware = AuthMiddleware(self.token_service)
        self.rate_limiter = DailyQuotaLimiter(
            self.kv_store,
            self.config.free_daily_limit,
            self.config.rate_limit_ttl_seconds,
            clock=clock,
        )
        self.response_cache = ResponseCache(
            self.kv_store,
            self.config.cache_ttl_seconds,
            metrics=self.metrics,
        )
        self.decomposition_client = decomposition_client or DecompositionClient(
            self.config.openai_api_key.get_secret_value(),
            base_url=self.config.openai_base_url,
            model=self.config.openai_model,
            timeout_seconds=self.config.openai_timeout_seconds,
            metrics=self.metrics,
        )

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.kv_store.close()

        self._setup_decomposer_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.decomposer_service = self

    async def _read_json(self, request: Request) -> Any:
        """Parse the request body, rejecting anything that is not JSON."""
        try:
            return await request.json()
        except ValueError:
            raise ValidationError("Invalid JSON body")

    def _setup_decomposer_routes(self):
        """Set up decomposer-specific routes."""

        @self.app.post("/v1/register")
        async def register():
            """Create a new device identity and its token."""
            device_id = generate_device_id()
            token = self.token_service.issue(device_id, is_premium=False)
            return {
                "success": True,
                "token": token,
                "deviceId": device_id,
            }

        @self.app.post("/v1/decompose")
        async def decompose(request: Request):
            """Break a task into small steps, subject to the daily quota."""
            claims = await self.auth_middleware.authenticate_request(request)
            body = await self._read_json(request)
            decompose_request = DecomposeRequest.from_body(body)
            style = decompose_request.style.value

            quota = await self.rate_limiter.check(claims.device_id, claims.is_premium)
            if not quota.allowed:
                self.metrics.increment_counter("quota_rejections_total", endpoint="/v1/decompose")
                raise RateLimitError(details={
                    "usage": {
                        "used": quota.used,
                        "limit": quota.limit,
                        "resetsAt": quota.resets_at,
                    }
                })

            cached = await self.response_cache.get(decompose_request.task, decompose_request.style)
            if cached is not None:
                # Cache hits still count against the free tier
                if not claims.is_premium:
                    await self.rate_limiter.increment(claims.device_id)
                self.metrics.increment_counter("decompositions_total", outcome="cached", style=style)
                return cached.to_response()

            result = await self.decomposition_client.decompose(decompose_request)

            if result.success:
                await self.response_cache.put(decompose_request.task, decompose_request.style, result)
                if not claims.is_premium:
                    await self.rate_limiter.increment(claims.device_id)
                self.metrics.increment_counter("decompositions_total", outcome="success", style=style)
            else:
                self.metrics.increment_counter("decompositions_total", outcome="failure", style=style)

            return result.to_response()

        @self.app.get("/v1/usage")
        async def usage(request: Request):
            """Today's usage for the calling device."""
            claims = await self.auth_middleware.authenticate_request(request)
            stats = await self.rate_limiter.stats(claims.device_id, claims.is_premium)
            return stats.to_response()

        @self.app.post("/v1/verify-subscription")
        async def verify_subscription(request: Request):
            """Report premium status. Billing-provider verification is not implemented."""
            claims = await self.auth_middleware.authenticate_request(request)
            body = await self._read_json(request)

            revenue_cat_user_id = body.get("revenueCatUserId") if isinstance(body, dict) else None
            # TODO: verify revenue_cat_user_id against the RevenueCat subscribers API
            self.logger.info(
                "Subscription verification requested",
                has_revenue_cat_id=revenue_cat_user_id is not None
            )

            return {
                "success": True,
                "isPremium": claims.is_premium,
                "message": "RevenueCat verification not yet implemented",
            }

        @self.app.post("/v1/webhook/revenuecat")
        async def upgrade_to_premium(request: Request):
            """Reissue the caller's token with premium status.

            Only the bearer token is checked; the billing provider's webhook
            signature is not verified.
            """
            claims = await self.auth_middleware.authenticate_request(request)
            token = self.token_service.issue(
                claims.device_id,
                is_premium=True,
                user_id=claims.user_id,
            )
            self.logger.warning("Premium token issued without billing verification", device_id=claims.device_id)
            return {
                "success": True,
                "token": token,
                "isPremium": True,
            }

        @self.app.post("/v1/substeps")
        async def substeps(request: Request):
            """Break a step the user is stuck on into micro-actions."""
            await self.auth_middleware.authenticate_request(request)
            body = await self._read_json(request)
            substeps_request = SubStepsRequest.from_body(body)

            result = await self.decomposition_client.sub_steps(
                substeps_request.step,
                substeps_request.task_context,
            )
            return result.to_response()


def create_app(config: Optional[ServiceConfig] = None, **overrides: Any):
    """Create FastAPI application."""
    service = DecomposerService(config, **overrides)
    return service.app


if __name__ == "__main__":
    service = DecomposerService()
    service.run()
