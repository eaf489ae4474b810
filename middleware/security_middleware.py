"""
Security middleware for rate limiting, response headers and request ids.
"""
import os
import re
import threading
import time
from collections import defaultdict
from typing import Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

from utils.screener_logger import get_screener_logger

logger = get_screener_logger()


class RateLimiter:
    """
    Simple in-memory rate limiter using sliding window algorithm.
    For multi-instance deployments, back it with a shared store instead.
    """

    def __init__(self, clock=time.time):
        self.requests: Dict[str, list] = defaultdict(list)
        self.lock = threading.Lock()
        self._clock = clock

    def is_allowed(
        self,
        identifier: str,
        max_requests: int,
        window_seconds: int
    ) -> tuple[bool, Optional[int]]:
        """
        Check if request is allowed based on rate limit.

        Args:
            identifier: Unique identifier (client IP plus limit bucket)
            max_requests: Maximum requests allowed in window
            window_seconds: Time window in seconds

        Returns:
            Tuple of (is_allowed, retry_after_seconds)
        """
        with self.lock:
            current_time = self._clock()
            window_start = current_time - window_seconds

            self.requests[identifier] = [
                req_time for req_time in self.requests[identifier]
                if req_time > window_start
            ]

            if len(self.requests[identifier]) >= max_requests:
                oldest_request = min(self.requests[identifier])
                retry_after = int(oldest_request + window_seconds - current_time) + 1
                return False, retry_after

            self.requests[identifier].append(current_time)
            return True, None

    def reset(self):
        with self.lock:
            self.requests.clear()


# Global rate limiter instance
rate_limiter = RateLimiter()


# Rate limit configurations
RATE_LIMITS = {
    "default": {"requests": 120, "window": 60},     # 120 req/minute
    "upload": {"requests": 20, "window": 3600},     # 20 uploads/hour (storage + Vision cost)
    "ai": {"requests": 30, "window": 60},           # 30 req/minute (OpenAI calls)
    "report": {"requests": 10, "window": 600},      # 10 reports/10 minutes (Docs/Drive quota)
}

AI_PATHS = ("/classify-item", "/generate-analysis", "/enhance-analysis")


def limit_bucket_for(path: str) -> str:
    """Select the rate limit bucket for a request path."""
    if path.startswith("/upload-image"):
        return "upload"
    if path.startswith(AI_PATHS):
        return "ai"
    if path.startswith("/generate-pdf"):
        return "report"
    return "default"


async def rate_limit_middleware(request: Request, call_next):
    """
    Middleware to enforce rate limiting on all endpoints.
    """
    client_ip = request.client.host if request.client else "unknown"
    bucket = limit_bucket_for(request.url.path)
    limit_config = RATE_LIMITS[bucket]

    is_allowed, retry_after = rate_limiter.is_allowed(
        f"{bucket}:{client_ip}",
        limit_config["requests"],
        limit_config["window"]
    )

    if not is_allowed:
        logger.log_warning("ratelimit", f"Rate limit '{bucket}' exceeded for {client_ip}")
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "success": False,
                "message": f"Too many requests. Please try again in {retry_after} seconds.",
                "retry_after": retry_after
            },
            headers={"Retry-After": str(retry_after)}
        )

    response = await call_next(request)
    response.headers["X-RateLimit-Limit"] = str(limit_config["requests"])
    response.headers["X-RateLimit-Window"] = str(limit_config["window"])

    return response


async def security_headers_middleware(request: Request, call_next):
    """
    Add security headers to all responses.
    """
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    return response


async def request_id_middleware(request: Request, call_next):
    """Tag the request with an id and echo it back in X-Request-ID."""
    ctx = logger.create_request_context(request_id=request.headers.get("X-Request-ID"))
    request.state.request_context = ctx

    response = await call_next(request)
    response.headers["X-Request-ID"] = ctx.request_id
    logger.log_debug(
        "http",
        f"{request.method} {request.url.path} -> {response.status_code} in {ctx.elapsed_ms():.0f}ms",
        request_id=ctx.request_id
    )
    return response


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent directory traversal attacks.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename (may be empty)
    """
    filename = os.path.basename((filename or "").replace("\\", "/"))
    filename = re.sub(r'[^\w\-\.]', '_', filename).lstrip(".")

    if len(filename) > 255:
        name, ext = os.path.splitext(filename)
        filename = name[:250] + ext

    return filename
