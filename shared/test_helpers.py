"""
Test helper functions and factory methods for the TinySteps backend.
"""

import json
import time
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import jwt
import redis.asyncio as redis

from shared.config import ServiceConfig, get_config


TEST_JWT_SECRET = "test-secret-with-at-least-32-characters"


class InMemoryRedis:
    """Async stand-in for ``redis.asyncio.Redis`` covering get/set-with-expiry.

    Behaves like a client created with ``decode_responses=True``. Setting
    ``fail`` makes every command raise a connection error.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self.fail = False
        self.data: Dict[str, str] = {}
        self.expires_at: Dict[str, float] = {}
        self.set_calls: List[Dict[str, Any]] = []
        self.closed = False

    def _check(self):
        if self.fail:
            raise redis.ConnectionError("redis unavailable")

    async def get(self, key: str) -> Optional[str]:
        self._check()
        deadline = self.expires_at.get(key)
        if deadline is not None and self.clock() >= deadline:
            self.data.pop(key, None)
            self.expires_at.pop(key, None)
        return self.data.get(key)

    async def set(self, key: str, value: Union[str, bytes], ex: Optional[int] = None) -> bool:
        self._check()
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        self.data[key] = value
        if ex is not None:
            self.expires_at[key] = self.clock() + ex
        else:
            self.expires_at.pop(key, None)
        self.set_calls.append({"key": key, "value": value, "ex": ex})
        return True

    async def aclose(self) -> None:
        self.closed = True

    def load(self, key: str) -> Any:
        """Decoded JSON document stored under ``key``."""
        return json.loads(self.data[key])


class MockTokenGenerator:
    """Generate device tokens for testing, signed with the test secret."""

    def __init__(self, secret: str = TEST_JWT_SECRET):
        self.secret = secret

    def generate_device_token(
        self,
        device_id: str = "a" * 32,
        is_premium: bool = False,
        user_id: Optional[str] = None,
        expires_in: int = 3600,
        issued_at: Optional[int] = None,
    ) -> str:
        """Generate a device token."""
        now = int(time.time()) if issued_at is None else issued_at
        payload: Dict[str, Any] = {"deviceId": device_id, "isPremium": is_premium}
        if user_id is not None:
            payload["userId"] = user_id
        payload["iat"] = now
        payload["exp"] = now + expires_in
        return jwt.encode(payload, self.secret, algorithm="HS256")

    def generate_expired_token(self, device_id: str = "a" * 32) -> str:
        """Token whose expiry is an hour in the past."""
        return self.generate_device_token(device_id, expires_in=-3600)

    def generate_raw_token(self, payload: Dict[str, Any]) -> str:
        """Sign an arbitrary payload, for malformed-claims cases."""
        return jwt.encode(payload, self.secret, algorithm="HS256")


class TestEnvironment:
    """Test environment configuration."""

    __test__ = False

    @staticmethod
    def make_config(**overrides) -> ServiceConfig:
        """Build a service config with test values; keyword overrides win."""
        values: Dict[str, Any] = {
            "env": "test",
            "log_level": "debug",
            "openai_api_key": "sk-test",
            "openai_base_url": "https://provider.test/v1",
            "jwt_secret": TEST_JWT_SECRET,
        }
        values.update(overrides)
        return get_config("decomposer", **values)


class StubProvider:
    """Scripted chat-completions endpoint served through ``httpx.MockTransport``.

    Queue responses with :meth:`reply`, :meth:`reply_status` or
    :meth:`raise_error`; the last queued response is repeated once the
    queue is exhausted. Every request is recorded in ``requests``.
    """

    def __init__(self):
        self.requests: List[Dict[str, Any]] = []
        self.headers: List[httpx.Headers] = []
        self._queue: List[Callable[[httpx.Request], httpx.Response]] = []
        self.transport = httpx.MockTransport(self._handle)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def reply(self, content: Optional[Union[str, Dict[str, Any]]]) -> "StubProvider":
        """Answer with a completion whose message content is ``content``."""
        if isinstance(content, dict):
            content = json.dumps(content)
        body = chat_completion(content)
        self._queue.append(lambda request: httpx.Response(200, json=body))
        return self

    def reply_json(self, body: Any, status_code: int = 200) -> "StubProvider":
        """Answer with an arbitrary JSON body."""
        self._queue.append(lambda request: httpx.Response(status_code, json=body))
        return self

    def reply_status(self, status_code: int, text: str = "error") -> "StubProvider":
        self._queue.append(lambda request: httpx.Response(status_code, text=text))
        return self

    def raise_error(self, error: Exception) -> "StubProvider":
        def _raise(request: httpx.Request) -> httpx.Response:
            raise error
        self._queue.append(_raise)
        return self

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        self.headers.append(request.headers)
        if not self._queue:
            raise AssertionError("provider called without a scripted response")
        handler = self._queue[0] if len(self._queue) == 1 else self._queue.pop(0)
        return handler(request)


def chat_completion(content: Optional[str]) -> Dict[str, Any]:
    """Chat-completions response body carrying one message."""
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


def decomposition_content(
    title: Optional[str] = "Clean room",
    steps: Optional[List[Any]] = None,
    encouragement: Optional[str] = "Nice work!",
) -> Dict[str, Any]:
    """Model output for a decomposition, in the object step format by default."""
    if steps is None:
        steps = [
            {"action": "Pick up clothes", "estimatedMinutes": 3},
            {"action": "Make the bed", "estimatedMinutes": 2},
        ]
    content: Dict[str, Any] = {"steps": steps}
    if title is not None:
        content["title"] = title
    if encouragement is not None:
        content["encouragement"] = encouragement
    return content

