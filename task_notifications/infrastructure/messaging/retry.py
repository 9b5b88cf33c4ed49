"""Bounded retry policy for broker connections."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import anyio

logger = logging.getLogger(__name__)


class BrokerConnectionError(ConnectionError):
    """Raised when the broker stays unreachable after every retry."""


@dataclass(frozen=True)
class RetryPolicy:
    """Connect-time retry budget.

    ``retries`` counts the attempts made after the first one. The delay starts
    at ``initial_retry_ms`` and doubles up to ``max_retry_ms``. Each attempt is
    bounded by ``connection_timeout_ms``.
    """

    retries: int
    initial_retry_ms: int
    connection_timeout_ms: int
    max_retry_ms: int | None = None

    def delays(self) -> list[float]:
        delays: list[float] = []
        delay = self.initial_retry_ms
        for _ in range(self.retries):
            if self.max_retry_ms is not None:
                delay = min(delay, self.max_retry_ms)
            delays.append(delay / 1000)
            delay *= 2
        return delays


async def connect_with_retry(
    connect: Callable[[], Awaitable[object]],
    policy: RetryPolicy,
    *,
    description: str = "broker",
) -> None:
    """Await ``connect()`` until it succeeds or the retry budget runs out."""

    delays = policy.delays()
    attempts = len(delays) + 1
    last_error: BaseException | None = None

    for attempt in range(1, attempts + 1):
        try:
            with anyio.fail_after(policy.connection_timeout_ms / 1000):
                await connect()
        except Exception as exc:
            last_error = exc
            logger.warning(
                "Connection to %s failed (attempt %s/%s): %s",
                description,
                attempt,
                attempts,
                exc,
            )
            if attempt < attempts:
                await anyio.sleep(delays[attempt - 1])
            continue
        if attempt > 1:
            logger.info("Connected to %s after %s attempts", description, attempt)
        return

    raise BrokerConnectionError(
        f"Could not connect to {description} after {attempts} attempts"
    ) from last_error


__all__ = ["BrokerConnectionError", "RetryPolicy", "connect_with_retry"]
