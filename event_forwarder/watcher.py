"""InboxWatcher — drive each inbox arrival through the forwarding checks."""

from __future__ import annotations

import asyncio
from collections import Counter

import structlog

from .classifier import DeletionClassifier
from .forwarder import EventForwarder
from .interface import MailboxProvider
from .models import ArrivalOutcome, InboundItem, to_forward_request
from .pause import PauseGate

logger = structlog.get_logger()


class InboxWatcher:
    """Consumes provider arrivals and runs one task per item.

    Each task checks, in order: the pause window, the discarded folder,
    then waits ``quiescence_seconds`` so server-side rules can move the item
    before re-checking the discarded folder and dispatching to the
    :class:`EventForwarder`.  The wait suspends only that item's task.
    """

    def __init__(
        self,
        provider: MailboxProvider,
        pause_gate: PauseGate,
        forwarder: EventForwarder,
        *,
        classifier: DeletionClassifier | None = None,
        quiescence_seconds: float = 1.5,
    ) -> None:
        self._provider = provider
        self._pause_gate = pause_gate
        self._forwarder = forwarder
        self._classifier = classifier or DeletionClassifier(provider)
        self._quiescence_seconds = quiescence_seconds
        self._tasks: set[asyncio.Task[ArrivalOutcome]] = set()
        self._outcomes: Counter[str] = Counter()
        self._arrivals: int = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def stats(self) -> dict[str, int]:
        return {
            "arrivals": self._arrivals,
            "pending": self.pending,
            **{outcome.value: self._outcomes[outcome.value] for outcome in ArrivalOutcome},
        }

    # ------------------------------------------------------------------
    # Subscription loop
    # ------------------------------------------------------------------

    async def watch(self) -> None:
        """Subscribe to arrivals until the provider stops or the task is cancelled."""
        logger.info("inbox_watch_started")
        try:
            async for item in self._provider.arrivals():
                self.submit(item)
        finally:
            await self._cancel_pending()
            logger.info("inbox_watch_stopped")

    def submit(self, item: InboundItem) -> asyncio.Task[ArrivalOutcome]:
        """Start processing *item* in its own task."""
        self._arrivals += 1
        task = asyncio.create_task(self.handle_arrival(item), name=f"arrival-{item.item_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _cancel_pending(self) -> None:
        if not self._tasks:
            return
        logger.warning("pending_arrivals_dropped", count=len(self._tasks))
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Per-arrival protocol
    # ------------------------------------------------------------------

    async def handle_arrival(self, item: InboundItem) -> ArrivalOutcome:
        """Run the arrival checks for *item*.  Never raises (except on cancel)."""
        try:
            outcome = await self._process(item)
        except Exception:
            logger.exception("arrival_processing_failed", item_id=item.item_id)
            outcome = ArrivalOutcome.FAILED

        self._outcomes[outcome.value] += 1
        return outcome

    async def _process(self, item: InboundItem) -> ArrivalOutcome:
        if self._pause_gate.is_suppressed():
            logger.debug("arrival_suppressed", item_id=item.item_id)
            return ArrivalOutcome.SUPPRESSED

        # Cheap pre-filter: skip the wait for items already discarded.
        if await self._classifier.is_discarded(item):
            logger.debug("arrival_discarded", item_id=item.item_id)
            return ArrivalOutcome.DISCARDED

        await asyncio.sleep(self._quiescence_seconds)

        if await self._classifier.is_discarded(item):
            logger.info("arrival_discarded_after_wait", item_id=item.item_id)
            return ArrivalOutcome.DISCARDED_AFTER_WAIT

        await self._forwarder.process(to_forward_request(item))
        return ArrivalOutcome.DISPATCHED
