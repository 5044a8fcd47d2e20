"""Per-account sliding-window limit on routes that spend credits and call the webhook."""

import logging
import time
from collections import defaultdict
from typing import Optional

from fastapi import Depends, HTTPException, status

from backend.auth import require_auth
from seoimg.config import get_settings

logger = logging.getLogger(__name__)


class SlidingWindowLimiter:
    """At most ``max_requests`` hits per key in any ``window`` seconds."""

    def __init__(self, max_requests: int, window: float):
        self.max_requests = max_requests
        self.window = window
        self._hits: dict[str, list[float]] = defaultdict(list)

    def _prune(self, now: float) -> None:
        for key in list(self._hits):
            recent = [t for t in self._hits[key] if now - t < self.window]
            if recent:
                self._hits[key] = recent
            else:
                del self._hits[key]

    def hit(self, key: str, now: Optional[float] = None) -> bool:
        """Record a request for ``key``; False when it is over the limit."""
        now = time.monotonic() if now is None else now
        self._prune(now)
        if len(self._hits.get(key, ())) >= self.max_requests:
            return False
        self._hits[key].append(now)
        return True

    def retry_after(self, key: str, now: Optional[float] = None) -> int:
        now = time.monotonic() if now is None else now
        hits = self._hits.get(key)
        if not hits:
            return 0
        return max(1, int(self.window - (now - hits[0])) + 1)

    @property
    def tracked_keys(self) -> int:
        return len(self._hits)


_limiter: Optional[SlidingWindowLimiter] = None


def get_limiter() -> SlidingWindowLimiter:
    global _limiter
    if _limiter is None:
        settings = get_settings()
        _limiter = SlidingWindowLimiter(settings.seoimg_rate_limit_max, settings.seoimg_rate_limit_window)
    return _limiter


def reset_limiter() -> None:
    global _limiter
    _limiter = None


async def limit_generation(session: dict = Depends(require_auth)) -> dict:
    """FastAPI dependency: authenticated session, or 429 once the account exceeds its window."""
    limiter = get_limiter()
    account_id = session["account_id"]
    if not limiter.hit(account_id):
        logger.info("Rate limit hit for %s", account_id)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Try again later.",
            headers={"Retry-After": str(limiter.retry_after(account_id))},
        )
    return session
