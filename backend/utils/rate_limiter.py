"""Rate limiting for generation and login attempts"""
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

logger = logging.getLogger(__name__)

SWEEP_INTERVAL = timedelta(minutes=5)


class RateLimiter:
    def __init__(self):
        # In-memory sliding window per key (single process)
        self.attempts = {}
        self.longest_window = timedelta(0)
        self.last_sweep = datetime.now(timezone.utc)

    async def check_rate_limit(
        self,
        key: str,
        max_attempts: int,
        window_minutes: int
    ) -> tuple[bool, Optional[str]]:
        """
        Record an attempt for key unless the window is full.

        Returns:
            (allowed: bool, error_message: Optional[str])
        """
        now = datetime.now(timezone.utc)
        window = timedelta(minutes=window_minutes)
        self.longest_window = max(self.longest_window, window)
        if now - self.last_sweep >= SWEEP_INTERVAL:
            self.sweep(now)

        recent = [ts for ts in self.attempts.get(key, []) if now - ts < window]
        self.attempts[key] = recent

        if len(recent) >= max_attempts:
            wait_seconds = int((min(recent) + window - now).total_seconds())
            logger.warning(f"Rate limit hit for {key}")
            return False, f"Rate limit exceeded. Try again in {wait_seconds} seconds"

        recent.append(now)
        return True, None

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Drop keys with no attempt inside the longest window seen. Returns how many were dropped."""
        now = now or datetime.now(timezone.utc)
        idle = [
            key for key, stamps in self.attempts.items()
            if not stamps or now - stamps[-1] >= self.longest_window
        ]
        for key in idle:
            del self.attempts[key]
        self.last_sweep = now
        if idle:
            logger.debug(f"Rate limiter dropped {len(idle)} idle keys")
        return len(idle)

    def reset(self, key: Optional[str] = None):
        if key is None:
            self.attempts.clear()
        else:
            self.attempts.pop(key, None)

rate_limiter = RateLimiter()
