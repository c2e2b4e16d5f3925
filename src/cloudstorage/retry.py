"""Retry policy and the middleware that applies it."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Mapping, Optional, Union

from .exceptions import RetryExhaustedError, ServiceError, TransportError
from .handler_list import Handler, Middleware

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES: FrozenSet[int] = frozenset({429, 500, 502, 503, 504, 509})

Decider = Callable[[int, Any], bool]
DelayFn = Callable[[int], float]


def default_decider(attempt: int, outcome: Any, status_codes: FrozenSet[int] = RETRYABLE_STATUS_CODES) -> bool:
    if isinstance(outcome, TransportError):
        return outcome.retryable
    if isinstance(outcome, ServiceError):
        return outcome.status in status_codes
    return False


def exponential_delay(base_delay: float = 0.1, max_delay: float = 20.0) -> DelayFn:
    """Full-jitter exponential backoff in seconds."""

    def delay(attempt: int) -> float:
        ceiling = min(max_delay, base_delay * (2 ** (attempt - 1)))
        return random.uniform(0, ceiling)

    return delay


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    decider: Decider = default_decider
    delay: DelayFn = field(default_factory=exponential_delay)
    retry_non_idempotent: bool = False

    @classmethod
    def from_option(cls, value: Union[int, Mapping[str, Any]]) -> "RetryPolicy":
        if isinstance(value, Mapping):
            return cls(
                max_attempts=int(value.get("max_attempts", 3)),
                decider=value.get("decider", default_decider),
                delay=value.get("delay")
                or exponential_delay(
                    base_delay=float(value.get("base_delay", 0.1)),
                    max_delay=float(value.get("max_delay", 20.0)),
                ),
                retry_non_idempotent=bool(value.get("retry_non_idempotent", False)),
            )
        return cls(max_attempts=value)

    @property
    def enabled(self) -> bool:
        return self.max_attempts > 0


def retry_middleware(policy: RetryPolicy, is_idempotent: Optional[Callable[[Any], bool]] = None) -> Middleware:
    """Wraps the signing and transport stages.

    ``max_attempts`` counts every attempt including the first. Errors the
    decider rejects propagate unchanged; once a retryable error exhausts the
    attempts it is raised as :class:`RetryExhaustedError`.
    """

    def middleware(handler: Handler) -> Handler:
        async def retry_handler(command: Any, request: Any) -> Any:
            may_retry = (
                policy.retry_non_idempotent
                or command.options.get("retry_non_idempotent", False)
                or is_idempotent is None
                or is_idempotent(command)
            )
            attempt = 0
            while True:
                attempt += 1
                try:
                    result = await handler(command, request)
                except Exception as exc:
                    if not may_retry or not policy.decider(attempt, exc):
                        raise
                    if attempt >= policy.max_attempts:
                        raise RetryExhaustedError(attempt, exc, command=command) from exc
                    wait = policy.delay(attempt)
                    logger.warning(
                        "Retrying %s attempt=%s delay=%.3fs cause=%s",
                        command.name,
                        attempt,
                        wait,
                        exc,
                    )
                    await asyncio.sleep(wait)
                    continue
                result.metadata["attempts"] = attempt
                return result

        return retry_handler

    return middleware


__all__ = [
    "RETRYABLE_STATUS_CODES",
    "RetryPolicy",
    "default_decider",
    "exponential_delay",
    "retry_middleware",
]
