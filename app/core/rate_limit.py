"""
Simple in-memory rate limiting for API endpoints
"""
import logging
from functools import wraps
from fastapi import HTTPException, status, Request
from typing import Callable, Optional
from datetime import datetime, timedelta
from collections import defaultdict
import threading

logger = logging.getLogger(__name__)

# In-memory store for rate limiting
# Format: {identifier: [timestamp, ...]}
_rate_limit_store = defaultdict(list)
_rate_limit_lock = threading.Lock()

# Cleanup old entries every 5 minutes
_last_cleanup = datetime.utcnow()
_cleanup_interval = timedelta(minutes=5)


def _cleanup_old_entries():
    """Remove entries older than the time window"""
    global _last_cleanup

    now = datetime.utcnow()
    if now - _last_cleanup < _cleanup_interval:
        return

    with _rate_limit_lock:
        _last_cleanup = now
        cutoff_time = now - timedelta(hours=1)  # Keep last hour of data

        for key in list(_rate_limit_store.keys()):
            _rate_limit_store[key] = [ts for ts in _rate_limit_store[key] if ts > cutoff_time]
            if not _rate_limit_store[key]:
                del _rate_limit_store[key]


def reset_rate_limits():
    """Forget all recorded requests"""
    with _rate_limit_lock:
        _rate_limit_store.clear()


def rate_limit(max_requests: int = 5, window_seconds: int = 300, identifier_func: Optional[Callable] = None):
    """
    Rate limiting decorator for FastAPI endpoints.

    Args:
        max_requests: Maximum number of requests allowed
        window_seconds: Time window in seconds (default: 5 minutes)
        identifier_func: Function to extract identifier from request (default: uses user id)

    Usage:
        @router.post("/endpoint")
        @rate_limit(max_requests=5, window_seconds=300)
        def my_endpoint(request: Request, current_user: User = Depends(get_current_user)):
            ...
    """
    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            request = None
            user = None

            for arg in args:
                if isinstance(arg, Request):
                    request = arg
                    break

            for key, value in kwargs.items():
                if isinstance(value, Request):
                    request = value
                elif hasattr(value, 'id') and hasattr(value, 'is_admin'):  # User object
                    user = value

            if identifier_func:
                identifier = identifier_func(request, user)
            elif user:
                identifier = f"user_{user.id}"
            elif request:
                # Fallback to IP address
                identifier = request.client.host if request.client else "unknown"
            else:
                identifier = "unknown"
            identifier = f"{func.__name__}:{identifier}"

            _cleanup_old_entries()

            now = datetime.utcnow()
            window_start = now - timedelta(seconds=window_seconds)

            with _rate_limit_lock:
                recent_requests = [ts for ts in _rate_limit_store[identifier] if ts > window_start]
                exceeded = len(recent_requests) >= max_requests
                if not exceeded:
                    _rate_limit_store[identifier].append(now)

            if exceeded:
                logger.warning(f"[RATE_LIMIT] {identifier} exceeded {max_requests} requests per {window_seconds}s")
                db = kwargs.get('db')
                if db is not None and user is not None:
                    from app.core.audit import log_security_event
                    from app.models.audit_log import AuditEventType
                    log_security_event(
                        db=db,
                        event_type=AuditEventType.RATE_LIMIT_EXCEEDED,
                        user_id=user.id,
                        resource_type="api_endpoint",
                        resource_id=func.__name__,
                        request=request,
                        details={
                            "endpoint": func.__name__,
                            "max_requests": max_requests,
                            "window_seconds": window_seconds,
                            "recent_requests": len(recent_requests)
                        }
                    )
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail=f"Rate limit exceeded: {max_requests} requests per {window_seconds} seconds. Please try again later."
                )

            return func(*args, **kwargs)

        return wrapper
    return decorator
