"""
Pytest Configuration and Shared Fixtures

This file provides:
1. Test environment (memory storage, no rate limiting, dummy keys)
2. Fakes for Vision, OpenAI and the report pipeline
3. FastAPI test client wired to the fakes
"""
import os
import sys
from pathlib import Path

# Configuration is read at import time, so the environment comes first
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["SECRET_SOURCE"] = "env"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ["DOCS_SETTLE_SECONDS"] = "0"

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from fastapi.testclient import TestClient

from database.session_store import SessionStore
from services.openai_service import EnhancedAnalysis
from services.vision_service import WebDetectionResult
from utils.exceptions import ClassificationError
from utils.image_storage import MemoryImageStorage

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


# ══════════════════════════════════════════════════════════════════════════════
# FAKES
# ══════════════════════════════════════════════════════════════════════════════

class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeVisionService:
    def __init__(self, urls=None, error=None):
        self.urls = urls if urls is not None else [
            "https://example.com/similar1.jpg",
            "https://example.com/similar2.jpg",
        ]
        self.error = error
        self.calls = []

    def find_similar_images(self, image_bytes, max_results=None):
        self.calls.append(image_bytes)
        if self.error:
            raise self.error
        return WebDetectionResult(
            similar_image_urls=list(self.urls),
            best_guess_labels=["oil painting"],
            web_entities=["Landscape painting"],
        )


class FakeOpenAIService:
    def __init__(self, classification="Art"):
        self.classification = classification
        self.classify_error = None
        self.analysis_error = None
        self.classify_calls = []
        self.analysis_calls = []
        self.enhance_calls = []

    def classify_item(self, image_url):
        self.classify_calls.append(image_url)
        if self.classify_error:
            raise self.classify_error
        return self.classification

    def generate_analysis(self, image_url, similar_image_urls, item_type=None, web_context=None):
        self.analysis_calls.append((image_url, list(similar_image_urls), item_type, web_context))
        if self.analysis_error:
            raise self.analysis_error
        return f"Preliminary analysis of a {item_type} item."

    def enhance_analysis(self, analysis_text, item_type=None):
        self.enhance_calls.append((analysis_text, item_type))
        return EnhancedAnalysis(
            enhanced_analysis=f"Enhanced: {analysis_text}",
            offer_text="Order a full appraisal today.",
        )


class FakeReportService:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def generate(self, post_id, session_id=None, ctx=None):
        self.calls.append((post_id, session_id))
        if self.error:
            raise self.error
        return {
            "pdfLink": "https://drive.google.com/file/d/pdf123/view",
            "docLink": "https://docs.google.com/document/d/doc123/edit",
        }


# ══════════════════════════════════════════════════════════════════════════════
# SERVICE FIXTURES
# ══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session_store(clock):
    return SessionStore(ttl_seconds=3600, max_sessions=100, clock=clock)


@pytest.fixture
def image_storage():
    return MemoryImageStorage(base_url="http://testserver")


@pytest.fixture
def fake_vision():
    return FakeVisionService()


@pytest.fixture
def fake_openai():
    return FakeOpenAIService()


@pytest.fixture
def fake_report():
    return FakeReportService()


@pytest.fixture
def screening_service(image_storage, session_store, fake_vision, fake_openai):
    from services.screening_service import ScreeningService
    return ScreeningService(
        storage=image_storage,
        sessions=session_store,
        vision=fake_vision,
        openai_service=fake_openai,
    )


@pytest.fixture
def png_bytes():
    return PNG_BYTES


# ══════════════════════════════════════════════════════════════════════════════
# FASTAPI TEST CLIENT FIXTURES
# ══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def app(screening_service, fake_report):
    """Create test FastAPI application with fake backends."""
    from app import create_app
    from services.report_service import get_report_service
    from services.screening_service import get_screening_service

    application = create_app(validate_config=False)
    application.dependency_overrides[get_screening_service] = lambda: screening_service
    application.dependency_overrides[get_report_service] = lambda: fake_report
    return application


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def uploaded_session(client, png_bytes):
    """Upload an image and return the response body."""
    response = client.post("/upload-image", files={"image": ("vase.png", png_bytes, "image/png")})
    assert response.status_code == 200
    return response.json()


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    from middleware.security_middleware import rate_limiter
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def classification_failure():
    return ClassificationError("Invalid classification response")
