"""Coaching session glue.

Wires a frame source to the phase machine, the machine's events to the
message composer and scheduler, and owns the session timers (scheduled
COMPLETE -> READY, periodic tips). Everything is explicit: the sink is passed
in, and every timer is a task cancelled on teardown.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Tuple

from .analysis.phase_machine import (
    AnalysisSnapshot,
    PhaseChanged,
    SwingCompleted,
    SwingPhaseStateMachine,
    SwingResult,
)
from .analysis.session_stats import SessionStats
from .coaching.composer import MessageComposer, SessionConfig
from .coaching.messages import MessagePriority, PrioritizedMessage
from .coaching.scheduler import CoachMessageScheduler, SchedulerStatus
from .coaching.sink import SpeechSink
from .config.coach_config import CoachConfig, DEFAULT_CONFIG
from .core.frame import JointFrame

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[AnalysisSnapshot], None]


@dataclass(frozen=True)
class SessionSummary:
    swing_count: int
    average_form: int
    peak_speed_mph: float
    results: Tuple[SwingResult, ...]
    summary_text: Optional[str]
    summary_delivered: bool
    dropped_frames: int


async def _cancel(task: Optional[asyncio.Task]):
    if task is None or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


class SessionOrchestrator:
    """One coaching session at a time over an injected voice channel."""

    def __init__(
        self,
        sink: SpeechSink,
        config: CoachConfig = DEFAULT_CONFIG,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.sink = sink
        self.config = config
        self.clock = clock
        self.sleep = sleep
        self.rng = rng

        self.session: Optional[SessionConfig] = None
        self.machine: Optional[SwingPhaseStateMachine] = None
        self.scheduler: Optional[CoachMessageScheduler] = None
        self.composer: Optional[MessageComposer] = None
        self.stats = SessionStats(config.coaching)
        self.dropped_frames = 0

        self._listeners: List[SnapshotListener] = []
        self._active = False
        self._pending_frame: Optional[JointFrame] = None
        self._frame_ready = asyncio.Event()
        self._frame_task: Optional[asyncio.Task] = None
        self._tip_task: Optional[asyncio.Task] = None
        self._rearm_task: Optional[asyncio.Task] = None

    @property
    def is_active(self) -> bool:
        return self._active

    def add_listener(self, listener: SnapshotListener):
        """Receive every AnalysisSnapshot the session produces."""
        self._listeners.append(listener)

    def state(self) -> Optional[AnalysisSnapshot]:
        return self.machine.state() if self.machine is not None else None

    def scheduler_status(self) -> Optional[SchedulerStatus]:
        return self.scheduler.snapshot() if self.scheduler is not None else None

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    async def start(self, session: SessionConfig = SessionConfig(), announce: bool = True) -> bool:
        """Open a session. Starting while one is active is ignored."""
        if self._active:
            logger.warning("Session start ignored: a session is already active")
            return False

        self.session = session
        self.machine = SwingPhaseStateMachine(self.config, self.clock, swing_type=session.swing_type)
        self.stats = SessionStats(self.config.coaching)
        self.composer = MessageComposer(session, self.config.coaching, self.rng)
        self.scheduler = CoachMessageScheduler(
            self.sink, self.config.scheduler, clock=self.clock, sleep=self.sleep
        )
        self.scheduler.start()
        self.dropped_frames = 0
        self._pending_frame = None
        self._frame_ready.clear()
        self._active = True

        self._frame_task = asyncio.create_task(self._frame_loop())
        self._tip_task = asyncio.create_task(self._tip_loop())

        logger.info(
            "Session started: %s for %s, target %d swings",
            session.session_title, session.player_name, session.target_swings,
        )
        if announce:
            await self.scheduler.enqueue(
                PrioritizedMessage(self.composer.opening_message(), MessagePriority.INFO)
            )
        return True

    def reset(self) -> Optional[AnalysisSnapshot]:
        """Abandon the swing in progress and drop pending coaching messages."""
        if not self._active:
            logger.warning("Session reset ignored: no active session")
            return None
        if self._rearm_task is not None:
            self._rearm_task.cancel()
            self._rearm_task = None
        self.machine.reset()
        self.scheduler.clear()
        return self.machine.state()

    async def end_session(self) -> Optional[SessionSummary]:
        """Stop frames and timers, flush the queue, send the closing summary."""
        if not self._active:
            logger.warning("Session end ignored: no active session")
            return None

        self._active = False
        self._pending_frame = None
        await _cancel(self._frame_task)
        await _cancel(self._tip_task)
        await _cancel(self._rearm_task)
        self._frame_task = self._tip_task = self._rearm_task = None

        summary_text = self.composer.session_summary(self.stats)
        delivered = await self.scheduler.shutdown(final_message=summary_text)

        summary = SessionSummary(
            swing_count=self.stats.swing_count,
            average_form=self.stats.overall_average,
            peak_speed_mph=self.stats.peak_speed_mph,
            results=tuple(self.machine.history),
            summary_text=summary_text,
            summary_delivered=delivered,
            dropped_frames=self.dropped_frames,
        )
        logger.info(
            "Session ended: %d swings, average form %d, %d frames dropped",
            summary.swing_count, summary.average_form, summary.dropped_frames,
        )
        return summary

    def notify_speaking(self, speaking: bool):
        """Forward the voice channel's speaking edge to the scheduler."""
        if self.scheduler is not None:
            self.scheduler.notify_speaking(speaking)

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    async def process_frame(self, frame: JointFrame) -> Optional[AnalysisSnapshot]:
        """Analyze one frame now and route its events."""
        if not self._active:
            return None
        rearmed = self._rearm_if_due(frame)
        if rearmed is not None:
            await self._route(rearmed)
        snapshot = self.machine.analyze(frame)
        await self._route(snapshot)
        return snapshot

    def submit_frame(self, frame: JointFrame) -> bool:
        """
        Hand a frame to the background analysis task without waiting.

        Only the newest frame is kept: one that has not been picked up yet is
        replaced and counted as dropped.
        """
        if not self._active:
            return False
        if self._pending_frame is not None:
            self.dropped_frames += 1
        self._pending_frame = frame
        self._frame_ready.set()
        return True

    async def _frame_loop(self):
        while self._active:
            await self._frame_ready.wait()
            self._frame_ready.clear()
            frame, self._pending_frame = self._pending_frame, None
            if frame is not None:
                await self.process_frame(frame)

    async def _route(self, snapshot: AnalysisSnapshot):
        for event in snapshot.events:
            if isinstance(event, PhaseChanged):
                message = self.composer.on_phase_change(event)
                if message is not None:
                    await self.scheduler.enqueue(message)
            elif isinstance(event, SwingCompleted):
                self.stats.record(event.result)
                for message in self.composer.on_swing_complete(event.result, self.stats):
                    await self.scheduler.enqueue(message)
                self._schedule_rearm()

        for listener in self._listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener %r failed", listener)

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _rearm_if_due(self, frame: JointFrame) -> Optional[AnalysisSnapshot]:
        """
        COMPLETE -> READY on the frame timeline.

        Frames replayed faster than real time reach the end of the hold
        before the wall-clock timer fires; the first such frame rearms the
        machine and the timer is dropped.
        """
        completed_at = self.machine.completed_at
        if completed_at is None or frame.timestamp is None:
            return None
        due = completed_at + self.config.phases.complete_hold_s
        if frame.timestamp < due:
            return None
        if self._rearm_task is not None:
            self._rearm_task.cancel()
            self._rearm_task = None
        return self.machine.rearm(now=due)

    def _schedule_rearm(self):
        if self._rearm_task is not None:
            self._rearm_task.cancel()
        self._rearm_task = asyncio.create_task(self._rearm_after(self.config.phases.complete_hold_s))

    async def _rearm_after(self, delay: float):
        await self.sleep(delay)
        if not self._active or self.machine.completed_at is None:
            return
        snapshot = self.machine.rearm(now=self.machine.completed_at + delay)
        await self._route(snapshot)

    async def _tip_loop(self):
        interval = self.config.coaching.analysis_tick_s
        while self._active:
            await self.sleep(interval)
            tip = self.composer.periodic_tip(self.stats, self.clock(), self.sink.is_speaking)
            if tip is not None:
                await self.scheduler.enqueue(tip)
