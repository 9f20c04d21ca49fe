"""Randomized delays that make outgoing activity look typed by a person.

All values are milliseconds.
"""

import random
from dataclasses import dataclass

BASE_TYPING_MS = 1000
WORDS_PER_MINUTE = 40
TYPING_VARIATION = 0.3
MIN_TYPING_MS = 1000
MAX_TYPING_MS = 8000


@dataclass(frozen=True)
class HumanTimings:
    seen_delay: int
    typing_delay: int
    send_delay: int


def random_delay(min_ms: int = 1000, max_ms: int = 3000) -> int:
    """Uniform integer delay in [min_ms, max_ms]."""
    return random.randint(min_ms, max_ms)


def calculate_typing_time(message: str) -> int:
    words = len(message.split(" "))
    typing_ms = words / WORDS_PER_MINUTE * 60 * 1000
    variation = typing_ms * TYPING_VARIATION * (random.random() - 0.5)
    total = BASE_TYPING_MS + typing_ms + variation
    return int(max(MIN_TYPING_MS, min(MAX_TYPING_MS, total)))


def get_human_timings(message: str) -> HumanTimings:
    return HumanTimings(
        seen_delay=random_delay(500, 1500),
        typing_delay=calculate_typing_time(message),
        send_delay=random_delay(200, 800),
    )


def read_delay() -> int:
    """Pause before acknowledging an inbound message."""
    return random_delay(1000, 3000)
