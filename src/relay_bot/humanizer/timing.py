"""
Natural timing distribution for human-like reply pacing.

Chunks of a reply are sent one after another with a pause that models the
time a person would need to type each one. Human typing speed varies, so the
delay is drawn from a log-normal distribution around a length-based estimate
rather than being a fixed interval.
"""
import math
import random
from typing import Optional

# Typing speed range (characters per second)
MIN_CHARS_PER_SECOND = 20.0
MAX_CHARS_PER_SECOND = 40.0

DEFAULT_MIN_DELAY = 1.0
DEFAULT_MAX_DELAY = 8.0


def calculate_typing_delay(
    text: str,
    mode: str = "natural",
    min_delay: float = DEFAULT_MIN_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
) -> float:
    """
    Calculate how long a human would take to type a message.

    Args:
        text: The message about to be sent
        mode: "uniform" (simple chars-per-second estimate) or "natural"
              (log-normal variation around that estimate)
        min_delay: Lower clamp in seconds
        max_delay: Upper clamp in seconds

    Returns:
        Delay in seconds within [min_delay, max_delay]
    """
    length = len(text) if text else 0
    chars_per_second = random.uniform(MIN_CHARS_PER_SECOND, MAX_CHARS_PER_SECOND)
    estimate = length / chars_per_second

    # Thinking pause for longer messages
    if length > 100:
        estimate += random.uniform(0.5, 2.0)

    if mode == "natural" and estimate > 0:
        # Most values cluster around the estimate, with occasional longer pauses
        estimate = random.lognormvariate(math.log(estimate), 0.3)

    return max(min_delay, min(estimate, max_delay))


class NaturalTiming:
    """
    Service for pacing consecutive reply chunks.

    Avoids repeating near-identical delays, which reads as robotic.
    """

    def __init__(
        self,
        mode: str = "natural",
        min_delay: float = DEFAULT_MIN_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
    ):
        """
        Initialize timing service.

        Args:
            mode: Timing mode - "uniform" or "natural"
            min_delay: Shortest pause between chunks in seconds
            max_delay: Longest pause between chunks in seconds
        """
        if min_delay < 0 or max_delay < min_delay:
            raise ValueError("Require 0 <= min_delay <= max_delay")
        self.mode = mode
        self.min_delay = min_delay
        self.max_delay = max_delay
        self._last_delay: Optional[float] = None

    def get_chunk_delay(self, chunk: str) -> float:
        """
        Get the pause before sending a chunk.

        Args:
            chunk: The chunk about to be sent

        Returns:
            Delay in seconds
        """
        if self.max_delay == 0:
            return 0.0

        delay = calculate_typing_delay(chunk, self.mode, self.min_delay, self.max_delay)

        if self._last_delay is not None and abs(delay - self._last_delay) < 0.5:
            delay += random.uniform(-1, 1)

        delay = max(self.min_delay, min(delay, self.max_delay))
        self._last_delay = delay
        return delay


class NoDelayTiming(NaturalTiming):
    """Timing that never waits (tests, dry runs)."""

    def __init__(self):
        super().__init__(mode="uniform", min_delay=0.0, max_delay=0.0)
