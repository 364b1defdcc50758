"""Shared fakes for relay tests."""
import asyncio
from typing import Optional

import pytest

from relay_bot.core.errors import TransportError
from relay_bot.providers.base import ReplyGenerator


class FakeTransport:
    """Records typing indicators and sends; can fail selected sends."""

    def __init__(self, fail_texts: Optional[set[str]] = None, fail_typing: bool = False):
        self.sent: list[tuple[str, str]] = []
        self.typing: list[tuple[str, str]] = []
        self.fail_texts = fail_texts or set()
        self.fail_typing = fail_typing

    async def start_typing(self, chat_id: str) -> None:
        self.typing.append(("start", chat_id))
        if self.fail_typing:
            raise TransportError("typing unavailable")

    async def stop_typing(self, chat_id: str) -> None:
        self.typing.append(("stop", chat_id))
        if self.fail_typing:
            raise TransportError("typing unavailable")

    async def send_message(self, target: str, text: str) -> None:
        if text in self.fail_texts:
            raise TransportError(f"send failed: {text}")
        self.sent.append((target, text))


class ScriptedGenerator(ReplyGenerator):
    """Returns (or raises) scripted outcomes in order; defaults to echoing."""

    name = "scripted"

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.calls: list[tuple[str, str]] = []
        self.sessions: list[str] = []

    async def ensure_session(self, conversation_id: str) -> None:
        self.sessions.append(conversation_id)

    async def generate_reply(self, conversation_id: str, text: str) -> str:
        self.calls.append((conversation_id, text))
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        return f"echo: {text}"


class ManualTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False


class ManualScheduler:
    """TimerScheduler whose timers only fire when the test says so."""

    def __init__(self):
        self.timers: list[ManualTimer] = []

    def schedule(self, delay, callback):
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    def cancel(self, handle):
        if not handle.fired:
            handle.cancelled = True

    def live(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    async def fire_all(self) -> None:
        """Fire every live timer, each in its own task, and wait for them."""
        tasks = []
        for timer in self.live():
            timer.fired = True
            tasks.append(asyncio.create_task(timer.callback()))
        await asyncio.gather(*tasks)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def scheduler():
    return ManualScheduler()
