"""Tests for Google Vision web detection parsing."""
from types import SimpleNamespace

import pytest

from services.vision_service import VisionService, parse_web_detection
from utils.exceptions import VisionError


def images(*urls):
    return [SimpleNamespace(url=url) for url in urls]


def web_detection(similar=(), partial=(), full=(), labels=(), entities=()):
    return SimpleNamespace(
        visually_similar_images=images(*similar),
        partial_matching_images=images(*partial),
        full_matching_images=images(*full),
        best_guess_labels=[SimpleNamespace(label=label) for label in labels],
        web_entities=[SimpleNamespace(description=d) for d in entities],
    )


class FakeAnnotator:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def web_detection(self, image, max_results):
        self.requests.append((image, max_results))
        if self.error:
            raise self.error
        return self.response


def test_parse_orders_and_dedupes():
    detection = web_detection(
        similar=["https://a", "https://b"],
        partial=["https://b", "https://c"],
        full=["https://d"],
        labels=["porcelain vase"],
        entities=["Ming dynasty", "Vase", ""],
    )
    result = parse_web_detection(detection, max_results=10)

    assert result.similar_image_urls == ["https://a", "https://b", "https://c", "https://d"]
    assert result.best_guess_labels == ["porcelain vase"]
    assert result.web_entities == ["Ming dynasty", "Vase"]


def test_parse_respects_max_results():
    detection = web_detection(similar=[f"https://img/{i}" for i in range(20)])
    assert len(parse_web_detection(detection, max_results=5).similar_image_urls) == 5


def test_parse_none():
    result = parse_web_detection(None, max_results=10)
    assert result.similar_image_urls == []
    assert result.context() == {"best_guess_labels": [], "web_entities": []}


def test_find_similar_images():
    response = SimpleNamespace(error=None, web_detection=web_detection(similar=["https://a"]))
    annotator = FakeAnnotator(response=response)

    result = VisionService(client=annotator).find_similar_images(b"bytes", max_results=4)

    assert result.similar_image_urls == ["https://a"]
    image, max_results = annotator.requests[0]
    assert image.content == b"bytes"
    assert max_results == 8


def test_find_similar_images_api_error_status():
    response = SimpleNamespace(error=SimpleNamespace(message="Bad image data"), web_detection=None)
    with pytest.raises(VisionError) as exc_info:
        VisionService(client=FakeAnnotator(response=response)).find_similar_images(b"bytes")
    assert exc_info.value.detail == "Bad image data"


def test_find_similar_images_request_failure():
    annotator = FakeAnnotator(error=RuntimeError("deadline exceeded"))
    with pytest.raises(VisionError):
        VisionService(client=annotator).find_similar_images(b"bytes")
