"""Update sources — the uniform interface behind long polling and webhooks.

A source pushes parsed :class:`~tgsdk.models.Update` values, in delivery
order, into an async *sink*.  :meth:`UpdateSource.stream` wraps that in an
async iterator: each update is handed over to the consumer and the sink
only returns once the consumer asks for the next one, so a source never
confirms an update whose processing has not finished.
"""

from __future__ import annotations

import abc
import asyncio
from typing import AsyncIterator, Awaitable, Callable

from tgsdk.models import Update

Sink = Callable[[Update], Awaitable[None]]

_DONE = object()


class UpdateSource(abc.ABC):
    """Base class for :class:`LongPoller` and :class:`WebhookListener`."""

    def __init__(self) -> None:
        self._stop_event = asyncio.Event()

    @abc.abstractmethod
    async def run(self, sink: Sink) -> None:
        """Deliver updates to *sink* until :meth:`stop` is called."""

    def stop(self) -> None:
        """Ask the source to finish at its next safe checkpoint."""
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    async def stream(self) -> AsyncIterator[Update]:
        """Iterate over updates as they arrive.

        The sink call for an update completes when the loop body that
        received it has finished, i.e. at the next iteration.  Leaving the
        loop early (``break``, an exception, ``aclose()``) stops the source
        without acknowledging the update in hand.  An exception escaping
        :meth:`run` is re-raised here.
        """
        loop = asyncio.get_running_loop()
        handoff: asyncio.Queue = asyncio.Queue(maxsize=1)

        async def deliver(update: Update) -> None:
            processed = loop.create_future()
            await handoff.put((update, processed))
            await processed

        async def pump() -> None:
            cancelled = False
            try:
                await self.run(deliver)
            except asyncio.CancelledError:
                cancelled = True
                raise
            finally:
                # Nobody reads the handoff any more once the consumer cancelled us.
                if not cancelled:
                    await handoff.put((_DONE, None))

        task = asyncio.create_task(pump())
        try:
            while True:
                item, processed = await handoff.get()
                if item is _DONE:
                    break
                yield item
                processed.set_result(None)
            await task
        finally:
            if not task.done():
                self.stop()
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
