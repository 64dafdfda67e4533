"""
Simple memory-based rate limiter for the payment start endpoint.
Per-process only; replicas each keep their own window.
"""
import time
from fastapi import Request, HTTPException
from typing import Dict, Tuple

from ryls_api.config import get_settings

# In-memory storage: {(scope, ip): (window_start, count)}
_rate_limit_store: Dict[Tuple[str, str], Tuple[float, int]] = {}


def reset_rate_limits():
    _rate_limit_store.clear()


def rate_limit(scope: str, requests: int | None = None, window: int | None = None):
    """
    Dependency for rate limiting. Limits default to the payment settings.
    Example: Depends(rate_limit("payments"))
    """
    def limiter(request: Request):
        settings = get_settings()
        max_requests = requests or settings.PAYMENT_RATE_LIMIT_REQUESTS
        window_seconds = window or settings.PAYMENT_RATE_LIMIT_WINDOW

        ip = request.client.host if request.client else "unknown"
        key = (scope, ip)
        now = time.time()

        if key not in _rate_limit_store:
            _rate_limit_store[key] = (now, 1)
            return True

        last_ts, count = _rate_limit_store[key]

        # Reset window if expired
        if now - last_ts > window_seconds:
            _rate_limit_store[key] = (now, 1)
            return True

        if count >= max_requests:
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded. Try again in {int(window_seconds - (now - last_ts))} seconds."
            )

        _rate_limit_store[key] = (last_ts, count + 1)
        return True

    return limiter
