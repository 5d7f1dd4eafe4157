"""Coaching message stream: composition, scheduling and speech output."""

from .composer import MessageComposer, SessionConfig
from .messages import CoachingStyle, MessagePriority, PrioritizedMessage
from .scheduler import CoachMessageScheduler, SchedulerState, SchedulerStatus
from .sink import ConsoleSpeechSink, RecordingSpeechSink, SpeechSink, SpeechTransportError
