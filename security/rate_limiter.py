import time
from collections import deque


class RateLimiter:
    """Sliding-window limiter: at most `max_calls` hits per `period` seconds."""

    def __init__(self, max_calls: int, period: float, clock=time.monotonic):
        self.max_calls = max_calls
        self.period = period
        self.clock = clock
        self.calls = deque()

    def check(self) -> bool:
        now = self.clock()
        # Drop hits that left the window
        while self.calls and now - self.calls[0] >= self.period:
            self.calls.popleft()

        if len(self.calls) >= self.max_calls:
            return False

        self.calls.append(now)
        return True

    def reset(self):
        self.calls.clear()
