"""
Shared utilities for the TinySteps backend.

This package aggregates common building blocks consumed by the services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request and device correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and the response envelope
- base_service: FastAPI application scaffolding
- timeutils: UTC clock and timestamp formatting

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
