"""Tests for rate limiting, security headers and filename sanitising."""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from middleware import security_middleware
from middleware.security_middleware import (
    RateLimiter,
    limit_bucket_for,
    rate_limit_middleware,
    sanitize_filename,
)


class StepClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_rate_limiter_sliding_window():
    clock = StepClock()
    limiter = RateLimiter(clock=clock)

    assert limiter.is_allowed("ip", 2, 60) == (True, None)
    clock.now = 10
    assert limiter.is_allowed("ip", 2, 60) == (True, None)
    clock.now = 20
    allowed, retry_after = limiter.is_allowed("ip", 2, 60)
    assert allowed is False
    assert retry_after == 41

    clock.now = 61
    assert limiter.is_allowed("ip", 2, 60) == (True, None)


def test_rate_limiter_tracks_identifiers_separately():
    limiter = RateLimiter(clock=StepClock())
    assert limiter.is_allowed("a", 1, 60)[0] is True
    assert limiter.is_allowed("b", 1, 60)[0] is True
    assert limiter.is_allowed("a", 1, 60)[0] is False


@pytest.mark.parametrize("path, bucket", [
    ("/upload-image", "upload"),
    ("/classify-item", "ai"),
    ("/generate-analysis", "ai"),
    ("/enhance-analysis", "ai"),
    ("/generate-pdf", "report"),
    ("/image/abc", "default"),
    ("/", "default"),
])
def test_limit_bucket_for(path, bucket):
    assert limit_bucket_for(path) == bucket


def test_rate_limit_middleware_returns_429(monkeypatch):
    monkeypatch.setitem(security_middleware.RATE_LIMITS, "ai", {"requests": 1, "window": 60})

    app = FastAPI()
    app.middleware("http")(rate_limit_middleware)

    @app.post("/classify-item")
    async def classify():
        return {"success": True}

    client = TestClient(app)
    assert client.post("/classify-item").status_code == 200

    response = client.post("/classify-item")
    assert response.status_code == 429
    assert int(response.headers["Retry-After"]) > 0
    body = response.json()
    assert body["success"] is False
    assert body["retry_after"] > 0


@pytest.mark.parametrize("raw, expected", [
    ("photo.jpg", "photo.jpg"),
    ("../../etc/passwd", "passwd"),
    ("C:\\Users\\me\\My Vase.png", "My_Vase.png"),
    (".hidden.png", "hidden.png"),
    ("", ""),
    (None, ""),
])
def test_sanitize_filename(raw, expected):
    assert sanitize_filename(raw) == expected


def test_sanitize_filename_truncates_long_names():
    name = sanitize_filename("a" * 300 + ".jpg")
    assert len(name) == 254
    assert name.endswith(".jpg")
