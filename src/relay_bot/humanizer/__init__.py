"""Human-like behavior modules for natural communication."""

from relay_bot.humanizer.sender import PacedSender, SendReport
from relay_bot.humanizer.splitter import split_messages
from relay_bot.humanizer.timing import NaturalTiming, NoDelayTiming

__all__ = [
    "PacedSender",
    "SendReport",
    "split_messages",
    "NaturalTiming",
    "NoDelayTiming",
]
