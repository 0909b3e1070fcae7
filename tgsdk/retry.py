"""Opt-in retry wrapper around :meth:`BotClient.execute`.

The engine itself never repeats a call.  :func:`execute_with_retry`
replays a descriptor after transport failures or rate limiting, but only
when the descriptor is marked ``idempotent`` (or the caller passes
``force=True``), because replaying e.g. ``sendMessage`` after a timeout
may deliver the message twice.

A rate-limited answer is always waited out for exactly ``retry_after``
seconds before the next attempt; other transient failures follow an
exponential backoff.
"""

from __future__ import annotations

import asyncio
import dataclasses
from typing import Any, Awaitable, Callable

from tgcore.logger import RelayLogger
from tgsdk.exceptions import ApiError, TransportError
from tgsdk.methods import MethodDescriptor

logger = RelayLogger.get_logger()

Sleep = Callable[[float], Awaitable[Any]]


@dataclasses.dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently to replay a call.

    ``attempts`` counts the first try, so ``attempts=1`` never retries.
    """

    attempts: int = 3
    backoff: float = 1.0
    max_backoff: float = 30.0
    retry_transport_errors: bool = True
    retry_rate_limits: bool = True

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number *attempt* (1-based)."""
        return min(self.backoff * (2 ** (attempt - 1)), self.max_backoff)


async def execute_with_retry(
    client: Any,
    descriptor: MethodDescriptor,
    policy: RetryPolicy = RetryPolicy(),
    *,
    force: bool = False,
    sleep: Sleep = asyncio.sleep,
) -> Any:
    """Execute *descriptor*, replaying it under *policy*.

    Non-idempotent descriptors are executed exactly once unless *force*
    is set.  The last error is re-raised once attempts are exhausted.
    """
    attempts = policy.attempts if (descriptor.idempotent or force) else 1
    attempt = 1
    while True:
        try:
            return await client.execute(descriptor)
        except ApiError as exc:
            if not (exc.is_rate_limit and policy.retry_rate_limits) or attempt >= attempts:
                raise
            delay = float(exc.retry_after)
        except TransportError as exc:
            if not policy.retry_transport_errors or attempt >= attempts:
                raise
            delay = policy.delay_for(attempt)
            logger.info("Transport error, retrying", extra={"api_method": descriptor.name, "error": exc.reason})

        logger.info(
            "Retrying call",
            extra={"api_method": descriptor.name, "attempt": attempt + 1, "delay": delay},
        )
        await sleep(delay)
        attempt += 1
