"""
Generation provider client for the Decomposer service.

Wraps the OpenAI chat-completions API. Every failure (HTTP error, transport
error or timeout, empty content, unparseable content) is logged here and
returned as an unsuccessful result; nothing is raised to the caller and
nothing is retried.
"""

import json
from contextlib import nullcontext
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import httpx
from pydantic import ValidationError as PydanticValidationError

from shared.logging import get_logger
from shared.errors import ExternalServiceError
from ..domain.models import (
    DEFAULT_ENCOURAGEMENT,
    MAX_STEP_LENGTH,
    DecomposeRequest,
    DecomposedTask,
    DecompositionResult,
    Step,
    SubStepsResult,
)
from ..domain.prompts import (
    SUBSTEPS_PROMPT,
    build_substeps_message,
    build_system_prompt,
    build_task_message,
)

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


PROVIDER_UNAVAILABLE = "AI service temporarily unavailable"
EMPTY_RESPONSE = "Empty response from AI"
DECOMPOSE_FAILED = "Failed to process task"
SUBSTEPS_FAILED = "Failed to break down step"

_PARSE_ERRORS = (ValueError, TypeError, KeyError, AttributeError, PydanticValidationError)


class EmptyCompletionError(Exception):
    """The provider answered without any message content."""


class DecompositionClient:
    """Client for the text-generation provider."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self.metrics = metrics
        self.logger = get_logger("decomposer.openai_client")

    async def decompose(self, request: DecomposeRequest) -> DecompositionResult:
        """Break a task into ordered, time-estimated steps."""
        try:
            content = await self._chat_completion(
                system_prompt=build_system_prompt(request.style, request.context),
                user_message=build_task_message(request.task),
                max_tokens=1000,
                operation="decompose",
            )
            task = self._parse_task(content, fallback_title=request.task)
        except ExternalServiceError as e:
            self.logger.error("Decompose provider error", error=e.message, **e.details)
            return DecompositionResult.failure(PROVIDER_UNAVAILABLE)
        except EmptyCompletionError:
            self.logger.error("Decompose provider returned empty content")
            return DecompositionResult.failure(EMPTY_RESPONSE)
        except _PARSE_ERRORS as e:
            self.logger.error("Decompose parse error", error=str(e))
            return DecompositionResult.failure(DECOMPOSE_FAILED)

        self.logger.info(
            "Task decomposed",
            style=request.style.value,
            steps=len(task.steps),
            total_minutes=task.total_estimated_minutes
        )
        return DecompositionResult.ok(task)

    async def sub_steps(self, step: str, task_context: Optional[str] = None) -> SubStepsResult:
        """Break one step the user is stuck on into 3-5 micro-actions."""
        if len(step) > MAX_STEP_LENGTH:
            return SubStepsResult.failure(f"Step text too long (max {MAX_STEP_LENGTH} chars)")

        try:
            content = await self._chat_completion(
                system_prompt=SUBSTEPS_PROMPT,
                user_message=build_substeps_message(step, task_context),
                max_tokens=500,
                operation="substeps",
            )
            substeps, encouragement = self._parse_substeps(content)
        except ExternalServiceError as e:
            self.logger.error("Sub-steps provider error", error=e.message, **e.details)
            return SubStepsResult.failure(PROVIDER_UNAVAILABLE)
        except EmptyCompletionError:
            self.logger.error("Sub-steps provider returned empty content")
            return SubStepsResult.failure(EMPTY_RESPONSE)
        except _PARSE_ERRORS as e:
            self.logger.error("Sub-steps parse error", error=str(e))
            return SubStepsResult.failure(SUBSTEPS_FAILED)

        return SubStepsResult(success=True, substeps=substeps, encouragement=encouragement)

    async def _chat_completion(
        self,
        *,
        system_prompt: str,
        user_message: str,
        max_tokens: int,
        operation: str,
    ) -> str:
        """Send one chat-completion request and return the message content."""
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "temperature": 0.7,
            "max_tokens": max_tokens,
            "response_format": {"type": "json_object"},
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                timer = (
                    self.metrics.time_operation("provider_request_duration_seconds", operation=operation)
                    if self.metrics else nullcontext()
                )
                with timer:
                    response = await client.post(f"{self.base_url}/chat/completions", json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise ExternalServiceError(
                "openai",
                "request failed",
                details={"http_error": f"{type(e).__name__}: {e}"}
            ) from e

        if response.status_code < 200 or response.status_code >= 300:
            raise ExternalServiceError(
                "openai",
                f"HTTP {response.status_code}",
                details={"status_code": response.status_code, "body": response.text[:500]}
            )

        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("provider response is not a JSON object")
        choices = data.get("choices") or []
        content = None
        if choices:
            content = (choices[0].get("message") or {}).get("content")
        if not content:
            raise EmptyCompletionError()
        return content

    def _parse_task(self, content: str, *, fallback_title: str) -> DecomposedTask:
        parsed = _load_object(content)

        raw_steps = parsed.get("steps")
        if not isinstance(raw_steps, list) or not raw_steps:
            raise ValueError("response has no steps")
        steps = [Step.normalize(raw) for raw in raw_steps]

        return DecomposedTask.build(
            title=_text_or(parsed.get("title"), fallback_title),
            steps=steps,
            encouragement=_text_or(parsed.get("encouragement"), DEFAULT_ENCOURAGEMENT),
        )

    def _parse_substeps(self, content: str):
        parsed = _load_object(content)

        raw_substeps = parsed.get("substeps")
        if not isinstance(raw_substeps, list):
            raise ValueError("response has no substeps")
        substeps: List[str] = [item.strip() for item in raw_substeps if isinstance(item, str) and item.strip()]
        if not substeps:
            raise ValueError("response has no substeps")

        return substeps, _text_or(parsed.get("encouragement"), DEFAULT_ENCOURAGEMENT)


def _load_object(content: str) -> Dict[str, Any]:
    parsed = json.loads(content)
    if not isinstance(parsed, dict):
        raise ValueError("response is not a JSON object")
    return parsed


def _text_or(value: Any, default: str) -> str:
    return value.strip() if isinstance(value, str) and value.strip() else default
