"""Temporal processing modules (debounce buffering, timers)."""

from relay_bot.temporal.message_buffer import MessageBuffer, BufferedMessage, join_messages
from relay_bot.temporal.timers import AsyncioTimerScheduler, TimerScheduler

__all__ = [
    "MessageBuffer",
    "BufferedMessage",
    "join_messages",
    "AsyncioTimerScheduler",
    "TimerScheduler",
]
