"""Tests for the OpenAI service with a fake chat completions client."""
import json
from types import SimpleNamespace

import pytest

from services.openai_service import OpenAIService, build_data_url, normalize_classification
from utils.exceptions import ClassificationError, ScreenerError
from utils.llm_error_handler import LLMServiceException


class FakeCompletions:
    def __init__(self, content="Art", error=None):
        self.content = content
        self.error = error
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(
            model=kwargs["model"],
            usage=SimpleNamespace(prompt_tokens=100, completion_tokens=5, total_tokens=105),
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))],
        )


def fake_client(content="Art", error=None):
    completions = FakeCompletions(content, error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


@pytest.mark.parametrize("raw, expected", [
    ("Art", "Art"),
    ("antique.", "Antique"),
    ("  ART\n", "Art"),
    ('"Antique"', "Antique"),
])
def test_normalize_classification(raw, expected):
    assert normalize_classification(raw) == expected


@pytest.mark.parametrize("raw", ["Furniture", "Art or Antique", "", None])
def test_normalize_classification_rejects_other_replies(raw):
    with pytest.raises(ClassificationError, match="Invalid classification response"):
        normalize_classification(raw)


def test_build_data_url():
    assert build_data_url(b"abc", "image/png") == "data:image/png;base64,YWJj"


def test_classify_item_request_shape():
    client, completions = fake_client("Antique")
    assert OpenAIService(client=client).classify_item("https://x/chair.jpg") == "Antique"

    request = completions.requests[0]
    assert request["max_tokens"] == 5
    assert request["temperature"] == 0.1
    image_part = request["messages"][1]["content"][0]
    assert image_part == {"type": "image_url", "image_url": {"url": "https://x/chair.jpg"}}


def test_generate_analysis_includes_reference_images():
    client, completions = fake_client("  A fine landscape.  ")
    similar = [f"https://similar/{i}.jpg" for i in range(5)]

    analysis = OpenAIService(client=client).generate_analysis(
        "https://x/painting.jpg",
        similar,
        item_type="Art",
        web_context={"best_guess_labels": ["landscape"], "web_entities": ["Hudson River School"]},
    )

    assert analysis == "A fine landscape."
    parts = completions.requests[0]["messages"][1]["content"]
    urls = [p["image_url"]["url"] for p in parts if p["type"] == "image_url"]
    assert urls == ["https://x/painting.jpg"] + similar[:3]
    assert "Hudson River School" in parts[0]["text"]


def test_generate_analysis_empty_reply():
    client, _ = fake_client("   ")
    with pytest.raises(ScreenerError):
        OpenAIService(client=client).generate_analysis("https://x/a.jpg", [])


def test_enhance_analysis_parses_json():
    payload = {"enhancedAnalysis": "Longer text.", "offerText": "Book an appraisal."}
    client, completions = fake_client(json.dumps(payload))

    result = OpenAIService(client=client).enhance_analysis("Short text.", item_type="Antique")

    assert result.enhanced_analysis == "Longer text."
    assert result.offer_text == "Book an appraisal."
    assert completions.requests[0]["response_format"] == {"type": "json_object"}


@pytest.mark.parametrize("content", ["not json", "[1, 2]", '{"enhancedAnalysis": "only one"}'])
def test_enhance_analysis_rejects_bad_payloads(content):
    client, _ = fake_client(content)
    with pytest.raises(ScreenerError):
        OpenAIService(client=client).enhance_analysis("Short text.")


def test_client_errors_are_classified():
    client, _ = fake_client(error=RuntimeError("Rate limit reached. Please try again in 7s."))
    with pytest.raises(LLMServiceException) as exc_info:
        OpenAIService(client=client).classify_item("https://x/a.jpg")

    assert exc_info.value.status_code == 429
    assert exc_info.value.llm_error.retry_after == 7
