"""Clock dependency so "now" can be pinned in tests and per request"""

from datetime import datetime
from typing import Callable

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now()


def get_clock() -> Clock:
    """FastAPI dependency returning the clock services should use"""
    return system_clock
