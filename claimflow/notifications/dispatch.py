"""
Notification Dispatcher

Per-claim delivery lanes in front of a notification transport. Each claim
gets one worker task that publishes its events in the order commits enqueued
them, stamping a per-claim sequence number on every batch.
"""
import asyncio
import logging
from collections import deque
from typing import Iterable

from claimflow.notifications.events import Delivery
from claimflow.notifications.hub import NotificationTransport

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, transport: NotificationTransport):
        self.transport = transport
        self._lanes: dict[int, deque[Delivery]] = {}
        self._workers: dict[int, asyncio.Task] = {}
        self._sequences: dict[int, int] = {}

    def enqueue(self, claim_id: int, deliveries: Iterable[Delivery], final: bool = False) -> int:
        """
        Queue one commit's events on the claim's lane.

        Must be called from the event loop thread. ``final`` marks the claim's
        last commit (a terminal status), after which its sequence is forgotten.
        Returns the sequence number stamped on the events.
        """
        sequence = self._sequences.get(claim_id, 0) + 1
        if final:
            self._sequences.pop(claim_id, None)
        else:
            self._sequences[claim_id] = sequence

        lane = self._lanes.setdefault(claim_id, deque())
        for topic, event in deliveries:
            lane.append((topic, event.model_copy(update={"sequence": sequence})))

        worker = self._workers.get(claim_id)
        if worker is None or worker.done():
            loop = asyncio.get_running_loop()
            self._workers[claim_id] = loop.create_task(self._run_lane(claim_id))
        return sequence

    async def _run_lane(self, claim_id: int) -> None:
        lane = self._lanes[claim_id]
        try:
            while lane:
                topic, event = lane.popleft()
                try:
                    await self.transport.publish(topic, event)
                except Exception:
                    logger.exception(f"Unexpected error publishing {event.kind.value} for claim {claim_id}")
        finally:
            if not lane:
                self._lanes.pop(claim_id, None)
            self._workers.pop(claim_id, None)

    async def drain(self) -> None:
        """Wait until every queued event has been handed to the transport."""
        # Let callbacks scheduled from commit threads reach enqueue first
        await asyncio.sleep(0)
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)

    async def close(self) -> None:
        """Stop all lanes, discarding undelivered events."""
        workers = list(self._workers.values())
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self._lanes.clear()
        self._workers.clear()
        logger.info("Notification dispatcher closed")
