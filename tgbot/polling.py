"""Long-polling update source.

State machine::

    IDLE -> REQUESTING -> DELIVERING -> IDLE -> …
      any state -> STOPPED   (after stop(), at the next safe checkpoint)

Each request asks ``getUpdates`` for ids from ``state.offset`` on, with a
server-side wait.  A batch is delivered in ascending ``update_id`` order and
only then is the offset advanced past the highest delivered id, so a crash
between delivery and the next request redelivers the batch (at-least-once,
never exactly-once; handlers must tolerate repeats).

Transport, protocol and API failures are retried with exponential backoff
capped at ``max_retry_backoff``; a rate-limited answer is waited out for
exactly its ``retry_after``.  None of these errors escape :meth:`run`.
"""

from __future__ import annotations

import asyncio
import dataclasses
import enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from tgcore.config import Settings
from tgcore.logger import RelayLogger
from tgbot.source import Sink, UpdateSource
from tgsdk import methods
from tgsdk.client import BotClient
from tgsdk.exceptions import ApiError, BotError
from tgsdk.methods import MethodDescriptor
from tgsdk.models import Update

logger = RelayLogger.get_logger()

ErrorHook = Callable[[BotError, float], Any]


class PollerStatus(enum.Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    DELIVERING = "delivering"
    STOPPED = "stopped"


@dataclasses.dataclass
class PollerState:
    """Polling position, owned and written only by one :class:`LongPoller`.

    ``offset`` is the next ``update_id`` to request; ``None`` lets the
    platform start from its oldest unconfirmed update.
    """

    offset: Optional[int] = None
    last_delivered_id: Optional[int] = None

    def advance(self, update_id: int) -> None:
        self.last_delivered_id = update_id
        self.offset = update_id + 1


class LongPoller(UpdateSource):
    """Repeatedly calls ``getUpdates`` and feeds every update to a sink.

    Args:
        client: Call engine used for ``getUpdates``.
        poll_timeout: Server-side long-wait in seconds.
        limit: Maximum batch size (1-100).
        allowed_updates: Kinds to receive; ``None`` keeps the platform setting.
        max_retry_backoff: Upper bound of the exponential backoff, seconds.
        initial_backoff: First backoff delay, seconds.
        state: Existing polling position to resume from.
        on_error: Called as ``on_error(exc, delay)`` for every failed request.
    """

    def __init__(
        self,
        client: BotClient,
        poll_timeout: int = 30,
        limit: Optional[int] = 100,
        allowed_updates: Optional[Iterable[str]] = None,
        max_retry_backoff: float = 60.0,
        initial_backoff: float = 1.0,
        state: Optional[PollerState] = None,
        on_error: Optional[ErrorHook] = None,
    ) -> None:
        super().__init__()
        self._client = client
        self.poll_timeout = poll_timeout
        self.limit = limit
        self.allowed_updates = list(allowed_updates) if allowed_updates is not None else None
        self.max_retry_backoff = max_retry_backoff
        self.initial_backoff = initial_backoff
        self.state = state if state is not None else PollerState()
        self._on_error = on_error
        self._failures = 0
        self._status = PollerStatus.IDLE

    @classmethod
    def from_settings(cls, client: BotClient, settings: Settings, **kwargs: Any) -> LongPoller:
        return cls(
            client,
            poll_timeout=settings.poll_timeout,
            limit=settings.poll_limit,
            allowed_updates=settings.allowed_updates or None,
            max_retry_backoff=settings.max_retry_backoff,
            **kwargs,
        )

    @property
    def status(self) -> PollerStatus:
        return self._status

    # ------------------------------------------------------------------
    #  Loop
    # ------------------------------------------------------------------

    async def run(self, sink: Sink) -> None:
        logger.info("Long polling started", extra={"offset": self.state.offset, "poll_timeout": self.poll_timeout})
        try:
            while not self.stopped:
                self._status = PollerStatus.REQUESTING
                try:
                    raw_updates = await self._request()
                except BotError as exc:
                    self._status = PollerStatus.IDLE
                    delay = self._delay_for(exc)
                    self._report(exc, delay)
                    await self._pause(delay)
                    continue

                if raw_updates is None:  # stopped while waiting
                    break
                self._failures = 0

                self._status = PollerStatus.DELIVERING
                await self._deliver(raw_updates, sink)
                self._status = PollerStatus.IDLE
        finally:
            self._status = PollerStatus.STOPPED
            logger.info("Long polling stopped", extra={"offset": self.state.offset})

    def _descriptor(self) -> MethodDescriptor:
        base = methods.get_updates(
            offset=self.state.offset,
            limit=self.limit,
            timeout=self.poll_timeout,
            allowed_updates=self.allowed_updates,
        )
        # Validate per update below, so one odd payload cannot block the queue.
        return dataclasses.replace(base, result_type=List[Dict[str, Any]])

    async def _request(self) -> Optional[List[Dict[str, Any]]]:
        """Fetch one batch, or return ``None`` if stopped while waiting.

        The call races the stop signal; an abandoned request's updates were
        never confirmed, so the platform still holds them.
        """
        request = asyncio.ensure_future(self._client.execute(self._descriptor()))
        stop = asyncio.ensure_future(self._stop_event.wait())
        try:
            done, _ = await asyncio.wait({request, stop}, return_when=asyncio.FIRST_COMPLETED)
            if request in done:
                return request.result()
            return None
        finally:
            for task in (request, stop):
                if not task.done():
                    task.cancel()

    async def _deliver(self, raw_updates: List[Dict[str, Any]], sink: Sink) -> None:
        """Hand the batch to *sink* in id order, then advance the offset."""
        floor = self.state.offset if self.state.offset is not None and self.state.offset > 0 else None
        highest: Optional[int] = None
        batch: List[Update] = []

        for raw in raw_updates:
            try:
                update = Update.model_validate(raw)
            except ValidationError as exc:
                update_id = raw.get("update_id")
                logger.error("Dropping malformed update", extra={"update_id": update_id, "error": str(exc)})
                if isinstance(update_id, int) and (highest is None or update_id > highest):
                    highest = update_id
                continue
            batch.append(update)

        delivered: Optional[int] = None
        for update in sorted(batch, key=lambda u: u.update_id):
            if floor is not None and update.update_id < floor:
                logger.debug("Skipping already confirmed update", extra={"update_id": update.update_id, "offset": floor})
                continue
            if delivered is not None and update.update_id <= delivered:
                continue
            await sink(update)
            delivered = update.update_id

        candidates = [i for i in (highest, delivered) if i is not None]
        if candidates:
            self.state.advance(max(candidates))
            logger.debug(
                "Batch delivered",
                extra={"count": len(batch), "offset": self.state.offset},
            )

    # ------------------------------------------------------------------
    #  Error handling
    # ------------------------------------------------------------------

    def _delay_for(self, exc: BotError) -> float:
        if isinstance(exc, ApiError) and exc.retry_after is not None:
            return float(exc.retry_after)
        self._failures += 1
        return min(self.initial_backoff * (2 ** (self._failures - 1)), self.max_retry_backoff)

    def _report(self, exc: BotError, delay: float) -> None:
        logger.warning(
            "getUpdates failed, backing off",
            extra={"api_method": "getUpdates", "error": str(exc), "error_type": type(exc).__name__, "delay": delay},
        )
        if self._on_error is None:
            return
        try:
            self._on_error(exc, delay)
        except Exception:
            logger.exception("on_error hook raised", extra={"api_method": "getUpdates"})

    async def _pause(self, delay: float) -> None:
        """Sleep for *delay* seconds, returning early when stopped."""
        if delay <= 0:
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
