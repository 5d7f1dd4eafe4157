"""Speech output contract and two simple implementations.

The scheduler only needs ``send(text)`` and an ``is_speaking`` flag; the real
voice transport (TTS engine, conversational agent) lives outside this package.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class SpeechTransportError(RuntimeError):
    """The voice transport could not deliver a message."""


class SpeechSink(Protocol):
    """Narrow interface to the external voice channel."""

    @property
    def is_speaking(self) -> bool:
        ...

    async def send(self, text: str) -> bool:
        """Deliver text; return False (or raise) on transport failure."""
        ...


class ConsoleSpeechSink:
    """Prints messages instead of speaking them. Never reports speaking."""

    def __init__(self, prefix: str = "Coach: "):
        self.prefix = prefix

    @property
    def is_speaking(self) -> bool:
        return False

    async def send(self, text: str) -> bool:
        print(f"{self.prefix}{text}")
        logger.info("Spoke: %s", text)
        return True


class RecordingSpeechSink:
    """
    In-memory sink that records what was sent and when.

    Optionally simulates speech duration: after each send the sink reports
    speaking for ``speak_duration`` seconds, then calls ``on_idle`` so a
    scheduler can resume draining.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        speak_duration: float = 0.0,
        fail_texts: Tuple[str, ...] = (),
    ):
        self.clock = clock
        self.speak_duration = speak_duration
        self.fail_texts = fail_texts
        self.sent: List[Tuple[float, str]] = []
        self.on_idle: Optional[Callable[[], None]] = None
        self._speaking = False
        self._idle_task: Optional[asyncio.Task] = None

    @property
    def is_speaking(self) -> bool:
        return self._speaking

    @property
    def texts(self) -> List[str]:
        return [text for _, text in self.sent]

    def set_speaking(self, speaking: bool):
        was_speaking = self._speaking
        self._speaking = speaking
        if was_speaking and not speaking and self.on_idle is not None:
            self.on_idle()

    async def send(self, text: str) -> bool:
        if text in self.fail_texts:
            raise SpeechTransportError(f"transport rejected: {text!r}")
        self.sent.append((self.clock(), text))
        if self.speak_duration > 0:
            self._speaking = True
            self._idle_task = asyncio.create_task(self._finish_speaking())
        return True

    async def _finish_speaking(self):
        await asyncio.sleep(self.speak_duration)
        self.set_speaking(False)
