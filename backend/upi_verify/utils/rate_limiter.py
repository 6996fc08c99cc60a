"""
In-memory rate limiter for the screenshot upload endpoints.
Keeps the OCR pipeline from being hammered by one customer; a multi-process
deployment would need a shared store instead.
"""
import threading
import time
from typing import Dict, Tuple

from fastapi import Request, HTTPException

# {(client, path): (window_start, count)}
_rate_limit_store: Dict[Tuple[str, str], Tuple[float, int]] = {}
_store_lock = threading.Lock()


def _client_key(request: Request) -> str:
    user_id = request.headers.get("user-id")
    if user_id:
        return f"user:{user_id}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


def rate_limit(requests: int, window: int):
    """
    Dependency factory for rate limiting.
    Example: Depends(rate_limit(requests=5, window=60))
    """
    def limiter(request: Request):
        key = (_client_key(request), request.url.path)
        now = time.time()

        with _store_lock:
            last_ts, count = _rate_limit_store.get(key, (now, 0))

            # Reset window if expired
            if now - last_ts > window:
                last_ts, count = now, 0

            if count >= requests:
                raise HTTPException(
                    status_code=429,
                    detail=f"Too many uploads. Try again in {int(window - (now - last_ts))} seconds.",
                )

            _rate_limit_store[key] = (last_ts, count + 1)
        return True

    return limiter


def reset_rate_limits() -> None:
    with _store_lock:
        _rate_limit_store.clear()
