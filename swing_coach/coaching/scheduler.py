"""Priority queue + rate limiter in front of the voice channel.

Many producers (phase-change handler, swing-complete handler, periodic tips)
enqueue messages; a single drain task sends them one at a time, highest
priority first, never closer together than ``min_gap_s`` and never while the
sink is speaking. Recently sent texts are not repeated.
"""

from __future__ import annotations

import asyncio
import bisect
import itertools
import logging
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Tuple

from ..config.coach_config import DEFAULT_CONFIG, SchedulerConfig
from .messages import PrioritizedMessage
from .sink import SpeechSink

logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    CREATED = "created"
    RUNNING = "running"
    CLOSED = "closed"


@dataclass(frozen=True)
class SchedulerStatus:
    state: SchedulerState
    queued: int
    sent_count: int
    dropped_count: int
    last_error: Optional[str]


class CoachMessageScheduler:
    """
    Single-consumer coaching message queue.

    Queue order is ascending priority rank, stable on ties. Mutations happen
    under an asyncio.Lock; only the drain task talks to the sink.
    """

    def __init__(
        self,
        sink: SpeechSink,
        config: SchedulerConfig = DEFAULT_CONFIG.scheduler,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize scheduler.

        Args:
            sink: Voice channel (send + is_speaking)
            config: Gap, recency and queue bounds
            clock: Time source for the rate limiter
            sleep: Awaitable used for rate-limit waits
        """
        self.sink = sink
        self.config = config
        self.clock = clock
        self.sleep = sleep

        self._queue: List[Tuple[int, int, PrioritizedMessage]] = []
        self._seq = itertools.count()
        self._recent: deque = deque(maxlen=config.recent_history)
        self._lock = asyncio.Lock()
        self._idle = asyncio.Event()
        self._drain_task: Optional[asyncio.Task] = None
        self._sending = False
        self._state = SchedulerState.CREATED

        self.last_sent_time: Optional[float] = None
        self.sent_log: List[Tuple[float, str]] = []
        self.dropped_count = 0
        self.last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == SchedulerState.RUNNING

    def start(self) -> bool:
        """Begin accepting messages. Starting twice, or after shutdown, is a no-op."""
        if self._state != SchedulerState.CREATED:
            logger.warning("Scheduler start ignored in state %s", self._state.value)
            return False
        self._state = SchedulerState.RUNNING
        return True

    async def shutdown(self, final_message: Optional[str] = None) -> bool:
        """
        Stop accepting messages, drop the queue and cancel pending waits.

        If ``final_message`` is given it is sent once, bypassing the rate
        limiter, after the sink stops speaking. The idle wait and the send
        are each bounded by ``final_send_timeout_s``. Returns True when the
        final message was delivered.
        """
        if self._state == SchedulerState.CLOSED:
            logger.warning("Scheduler shutdown ignored: already closed")
            return False

        self._state = SchedulerState.CLOSED
        discarded = len(self._queue)
        self._queue.clear()
        if discarded:
            logger.debug("Discarded %d queued messages on shutdown", discarded)

        task = self._drain_task
        if task is not None and not task.done():
            if self._sending:
                # Let the send already in flight finish.
                await asyncio.wait({task}, timeout=self.config.final_send_timeout_s)
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._drain_task = None

        if not final_message:
            return False

        if self.sink.is_speaking:
            # Wait out the line still playing; the min gap does not apply.
            self._idle.clear()
            try:
                await asyncio.wait_for(self._idle.wait(), timeout=self.config.final_send_timeout_s)
            except asyncio.TimeoutError:
                logger.warning("Voice channel still speaking, sending final message anyway")

        try:
            delivered = await asyncio.wait_for(
                self.sink.send(final_message), timeout=self.config.final_send_timeout_s
            )
        except asyncio.TimeoutError:
            logger.warning("Final coaching message timed out")
            self.last_error = "final message timed out"
            return False
        except Exception as exc:
            logger.warning("Final coaching message failed", exc_info=True)
            self.last_error = str(exc)
            return False

        if delivered:
            self._record_sent(self.clock(), final_message)
        return bool(delivered)

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    async def enqueue(self, message: PrioritizedMessage) -> bool:
        """Queue a message. Returns False when it was rejected."""
        if self._state != SchedulerState.RUNNING:
            logger.warning("Message dropped, scheduler %s: %s", self._state.value, message.text)
            return False
        if not message.text.strip():
            return False

        async with self._lock:
            if self._is_duplicate(message.text):
                self.dropped_count += 1
                logger.debug("Duplicate message dropped: %s", message.text)
                return False

            if len(self._queue) >= self.config.max_queue_size:
                worst_rank = self._queue[-1][0]
                if worst_rank > int(message.priority):
                    _, _, evicted = self._queue.pop()
                    self.dropped_count += 1
                    logger.debug("Queue full, evicted: %s", evicted.text)
                else:
                    self.dropped_count += 1
                    logger.debug("Queue full, dropped: %s", message.text)
                    return False

            bisect.insort(self._queue, (int(message.priority), next(self._seq), message))

        self._schedule_drain()
        return True

    def notify_speaking(self, speaking: bool):
        """Edge signal from the voice channel; idle resumes draining."""
        if speaking:
            self._idle.clear()
            return
        self._idle.set()
        self._schedule_drain()

    def clear(self):
        """Drop every queued message without sending."""
        self._queue.clear()

    async def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the current drain pass to finish. True if it did."""
        task = self._drain_task
        if task is None or task.done():
            return True
        done, _ = await asyncio.wait({task}, timeout=timeout)
        return task in done

    def pending(self) -> List[PrioritizedMessage]:
        return [message for _, _, message in self._queue]

    def snapshot(self) -> SchedulerStatus:
        return SchedulerStatus(
            state=self._state,
            queued=len(self._queue),
            sent_count=len(self.sent_log),
            dropped_count=self.dropped_count,
            last_error=self.last_error,
        )

    # ------------------------------------------------------------------
    # Drain
    # ------------------------------------------------------------------

    def _is_duplicate(self, text: str) -> bool:
        queued = (message.text for _, _, message in self._queue)
        for previous in itertools.chain(self._recent, queued):
            if previous in text or text in previous:
                return True
        return False

    def _schedule_drain(self):
        if self._state != SchedulerState.RUNNING:
            return
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.create_task(self._drain())

    def _gap_remaining(self) -> float:
        if self.last_sent_time is None:
            return 0.0
        elapsed = self.clock() - self.last_sent_time
        return max(0.0, self.config.min_gap_s - elapsed)

    async def _wait_for_idle(self) -> bool:
        self._idle.clear()
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=self.config.speaking_timeout_s)
        except asyncio.TimeoutError:
            pass
        if self.sink.is_speaking:
            logger.info("Voice channel still speaking, drain paused")
            return False
        return True

    async def _drain(self):
        while self._state == SchedulerState.RUNNING:
            if not self._queue:
                return

            if self.sink.is_speaking and not await self._wait_for_idle():
                return

            wait = self._gap_remaining()
            if wait > 0:
                await self.sleep(wait)
                continue

            async with self._lock:
                if not self._queue or self._state != SchedulerState.RUNNING:
                    return
                _, _, message = self._queue.pop(0)

            if not await self._send(message):
                return

    async def _send(self, message: PrioritizedMessage) -> bool:
        started = self.clock()
        self._sending = True
        try:
            delivered = await asyncio.wait_for(
                self.sink.send(message.text), timeout=self.config.send_timeout_s
            )
        except asyncio.TimeoutError:
            logger.warning("Coaching message send timed out: %s", message.text)
            self.last_error = "send timed out"
            self.dropped_count += 1
            return False
        except Exception as exc:
            logger.warning("Failed to send coaching message: %s", message.text, exc_info=True)
            self.last_error = str(exc)
            self.dropped_count += 1
            return False
        finally:
            self._sending = False

        if not delivered:
            logger.warning("Voice channel rejected coaching message: %s", message.text)
            self.last_error = "send returned failure"
            self.dropped_count += 1
            return False

        self._record_sent(started, message.text)
        return True

    def _record_sent(self, sent_at: float, text: str):
        self.last_sent_time = sent_at
        self._recent.append(text)
        self.sent_log.append((sent_at, text))
        logger.debug("Sent coaching message: %s", text)
