"""Retry and deadline policy for collaborator calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)

from knowledge_ingestion.config import RetrySettings, get_settings
from knowledge_ingestion.utils.errors import ExternalServiceError
from knowledge_ingestion.utils.logging import get_logger

logger = get_logger("retry")

T = TypeVar("T")


def is_retryable_error(exc: BaseException) -> bool:
    """Transport failures, per-attempt timeouts, throttling and 5xx responses are retried."""
    if isinstance(exc, (httpx.TransportError, asyncio.TimeoutError)):
        return True
    if isinstance(exc, ExternalServiceError):
        return exc.is_retryable
    return False


class RetryPolicy:
    """
    Runs a coroutine factory with jittered exponential backoff and a per-attempt deadline.

    The factory is invoked once per attempt, so request bodies are rebuilt
    for every retry.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        multiplier: float = 1.0,
        max_delay: float = 30.0,
        timeout: Optional[float] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.multiplier = multiplier
        self.max_delay = max_delay
        self.timeout = timeout

    @classmethod
    def from_settings(cls, retry_settings: Optional[RetrySettings] = None) -> "RetryPolicy":
        retry_settings = retry_settings or get_settings().retry
        return cls(
            max_attempts=retry_settings.max_attempts,
            multiplier=retry_settings.backoff_factor,
            max_delay=retry_settings.max_delay,
            timeout=retry_settings.call_timeout,
        )

    async def _attempt(self, func: Callable[[], Awaitable[T]]) -> T:
        if self.timeout is None:
            return await func()
        return await asyncio.wait_for(func(), timeout=self.timeout)

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        """
        Invoke func under the policy.

        Args:
            func: Zero-argument coroutine factory

        Returns:
            The result of the first successful attempt

        Raises:
            The last exception once attempts are exhausted or a
            non-retryable error occurs
        """
        async for attempt in AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_random_exponential(multiplier=self.multiplier, max=self.max_delay),
            retry=retry_if_exception(is_retryable_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        ):
            with attempt:
                return await self._attempt(func)
        # unreachable due to reraise=True
        raise RuntimeError("Retry attempts exhausted")


class NoRetryPolicy(RetryPolicy):
    """Single attempt, no deadline."""

    def __init__(self):
        super().__init__(max_attempts=1, timeout=None)
