"""
Base service class for TinySteps backend services.
"""

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from prometheus_client import CONTENT_TYPE_LATEST
from typing import Dict, Optional
import time

from shared.config import ServiceConfig, get_config
from shared.logging import configure_logging, get_logger, set_request_id, clear_context
from shared.metrics import get_metrics_collector
from shared.errors import ServiceException, NotFoundError
from shared.timeutils import utcnow, format_iso


CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Max-Age": "86400",
}


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, config: Optional[ServiceConfig] = None):
        self.service_name = service_name
        self.config = config or get_config(service_name)
        self.port = self.config.port
        self.logger = get_logger(f"{service_name}.service")
        self.metrics = get_metrics_collector(service_name)

        configure_logging(service_name, self.config.log_level)

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"TinySteps - {self.service_name.title()} Service",
            version="1.0.0",
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url=None,
        )

    def _setup_middleware(self):
        """Set up middleware."""

        @self.app.middleware("http")
        async def envelope_request(request: Request, call_next):
            request_id = set_request_id(request.headers.get("X-Request-ID"))
            start_time = time.time()

            try:
                # CORS preflight never reaches routing or authentication
                if request.method == "OPTIONS":
                    response = Response(status_code=200)
                else:
                    try:
                        response = await call_next(request)
                    except Exception as exc:
                        self.logger.error(
                            "Unhandled exception",
                            method=request.method,
                            path=request.url.path,
                            error=str(exc),
                            exc_info=True
                        )
                        self.metrics.record_error(type(exc).__name__)
                        response = JSONResponse(
                            status_code=500,
                            content={"success": False, "error": "Internal server error"}
                        )

                response.headers.update(CORS_HEADERS)
                response.headers["X-Request-ID"] = request_id

                duration = time.time() - start_time
                self.metrics.record_http_request(
                    method=request.method,
                    endpoint=request.url.path,
                    status_code=response.status_code,
                    duration=duration
                )
                self.logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round(duration * 1000, 2)
                )
                return response
            finally:
                clear_context()

    def _setup_routes(self):
        """Set up common routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            self.metrics.record_health_check("healthy")
            return {
                "status": "healthy",
                "service": self.service_name,
                "timestamp": format_iso(utcnow()),
            }

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(
                content=self.metrics.render(),
                media_type=CONTENT_TYPE_LATEST
            )

        @self.app.exception_handler(ServiceException)
        async def service_exception_handler(request: Request, exc: ServiceException):
            """Render expected failures as the uniform envelope."""
            self.logger.warning(
                "Request rejected",
                code=exc.code,
                message=exc.message,
                status_code=exc.status_code
            )
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_response()
            )

        @self.app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(request: Request, exc: StarletteHTTPException):
            """Collapse routing misses (unknown path or method) into a 404 envelope."""
            if exc.status_code in (404, 405):
                error = NotFoundError()
                return JSONResponse(status_code=error.status_code, content=error.to_response())
            return JSONResponse(
                status_code=exc.status_code,
                content={"success": False, "error": str(exc.detail)}
            )

    def run(self):
        """Run the service."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )
