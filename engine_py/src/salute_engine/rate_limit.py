"""
Fixed-window rate limiting for room creation and joins.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .constants import ACTION_CREATE_ROOM, ACTION_JOIN_ROOM


@dataclass(frozen=True)
class RateLimitRule:
    max_requests: int
    window_seconds: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_ms: int = 0


def default_rules(create_room_per_hour: int = 5, join_room_per_minute: int = 10) -> Dict[str, RateLimitRule]:
    return {
        ACTION_CREATE_ROOM: RateLimitRule(max_requests=create_room_per_hour, window_seconds=60 * 60),
        ACTION_JOIN_ROOM: RateLimitRule(max_requests=join_room_per_minute, window_seconds=60),
    }


class FixedWindowRateLimiter:
    """
    Counts requests per (ip, action) in fixed windows.

    A window opens on the first request and lasts window_seconds; once it
    holds max_requests, further requests are refused until it closes.
    Actions without a rule are always allowed.
    """

    def __init__(self, rules: Optional[Dict[str, RateLimitRule]] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.rules = rules if rules is not None else default_rules()
        self.clock = clock
        self.windows: Dict[Tuple[str, str], Tuple[float, int]] = {}

    def check_rate_limit(self, ip: str, action: str) -> RateLimitDecision:
        rule = self.rules.get(action)
        if rule is None:
            return RateLimitDecision(allowed=True)

        now = self.clock()
        key = (ip, action)
        window = self.windows.get(key)

        if window is None or now - window[0] >= rule.window_seconds:
            self.windows[key] = (now, 1)
            return RateLimitDecision(allowed=True)

        started, count = window
        if count >= rule.max_requests:
            retry_after_ms = int((started + rule.window_seconds - now) * 1000)
            return RateLimitDecision(allowed=False, retry_after_ms=max(retry_after_ms, 0))

        self.windows[key] = (started, count + 1)
        return RateLimitDecision(allowed=True)

    def cleanup(self):
        """Drop windows that have closed."""
        now = self.clock()
        for key, (started, _) in list(self.windows.items()):
            rule = self.rules.get(key[1])
            if rule is None or now - started >= rule.window_seconds:
                del self.windows[key]
