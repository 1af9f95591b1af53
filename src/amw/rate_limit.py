import time, threading

class TokenBucket:
    """Request budget shared by all price fetch workers."""
    def __init__(self, rate_per_min, capacity=None):
        self.rate_per_sec = rate_per_min / 60.0
        self.capacity = capacity or max(1, rate_per_min // 10)
        self.tokens = float(self.capacity)
        self.last = time.perf_counter()
        self.lock = threading.Lock()
    def _refill(self, now):
        self.tokens = min(self.capacity, self.tokens + (now - self.last) * self.rate_per_sec)
        self.last = now
    def take(self, tokens=1, timeout=None):
        # False when the budget could not be reserved within timeout seconds
        deadline = None if timeout is None else time.perf_counter() + timeout
        while True:
            with self.lock:
                now = time.perf_counter()
                self._refill(now)
                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return True
                wait = (tokens - self.tokens) / self.rate_per_sec
            if deadline is not None and now + wait > deadline:
                return False
            time.sleep(min(wait, 0.05))
