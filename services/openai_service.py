"""OpenAI API service for item classification and appraisal analysis."""
import base64
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from openai import OpenAI

from config import Config
from utils.exceptions import ClassificationError, ScreenerError
from utils.llm_error_handler import LLMServiceException, handle_llm_error
from utils.screener_logger import get_screener_logger
from utils.secrets import get_secret
from utils.token_tracker import log_token_usage

logger = get_screener_logger()

VALID_CLASSIFICATIONS = ("Art", "Antique")

CLASSIFICATION_SYSTEM_PROMPT = """You are an expert art and antiques classifier. Your task is to determine if an item is Art or Antique.
IMPORTANT: You must ONLY respond with either "Art" or "Antique".

Classification guidelines:
- Art: Paintings, sculptures, prints, photographs, digital art, and other artistic creations
- Antique: Vintage furniture, collectibles, decorative items, historical artifacts, and items over 50 years old

DO NOT provide any explanation or additional text. ONLY respond with "Art" or "Antique"."""

CLASSIFICATION_USER_PROMPT = 'Classify this item as either Art or Antique. Only respond with one word: "Art" or "Antique".'

ANALYSIS_SYSTEM_PROMPT = """You are a senior appraiser of fine art and antiques writing a preliminary screening note for a prospective client.
You receive the client's photo first, followed by visually similar images found on the web.

Write a concise analysis (250-400 words) in plain prose with these parts:
1. Description: what the item appears to be, medium/materials, subject, style.
2. Period and origin: likely era, school or region, with the visual evidence.
3. Comparables: what the similar images suggest about attribution or type.
4. Condition notes visible in the photo.
5. What a full appraisal would need to confirm (signature, marks, provenance, dimensions).

Be careful and hedged: this is a screening from a single photo, never a certified valuation. Do not state a monetary value."""

ENHANCE_SYSTEM_PROMPT = """You are a senior appraiser and client advisor. You will receive a preliminary screening analysis of an item.

Return a JSON object with exactly two string fields:
- "enhancedAnalysis": a polished, expanded version of the analysis (350-550 words) that keeps every factual observation, adds relevant art-historical or market context for this kind of item, and explains why a professional appraisal matters for it.
- "offerText": a short, friendly paragraph (60-110 words) inviting the client to order a full professional appraisal, referring to the specific item.

Do not invent facts that contradict the analysis and do not state a monetary value."""


@dataclass
class EnhancedAnalysis:
    enhanced_analysis: str
    offer_text: str


def build_data_url(image_bytes: bytes, content_type: str) -> str:
    """Inline an image as a data URL for models that cannot fetch our URLs."""
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


def normalize_classification(raw: Optional[str]) -> str:
    """
    Map a model reply onto "Art" or "Antique".

    Raises:
        ClassificationError: If the reply is neither
    """
    cleaned = re.sub(r'[^A-Za-z]', '', raw or "").lower()
    for label in VALID_CLASSIFICATIONS:
        if cleaned == label.lower():
            return label
    raise ClassificationError("Invalid classification response", detail=f"model replied {raw!r}")


def _image_part(url: str) -> Dict[str, Any]:
    return {"type": "image_url", "image_url": {"url": url}}


class OpenAIService:
    def __init__(self, client: Optional[OpenAI] = None):
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            api_key = get_secret("OPENAI_API_KEY")
            if not api_key:
                raise ScreenerError("OpenAI API key is not configured")
            self._client = OpenAI(api_key=api_key, base_url=Config.OPENAI_API_BASE or None)
        return self._client

    def _complete(self, operation: str, **kwargs):
        try:
            response = self.client.chat.completions.create(**kwargs)
        except ScreenerError:
            raise
        except Exception as e:
            raise LLMServiceException(handle_llm_error(e, context=operation))

        log_token_usage(operation, response, kwargs.get("model", ""))
        if not response.choices:
            raise ScreenerError(f"Empty response from AI service during {operation}")
        return response.choices[0].message.content or ""

    def classify_item(self, image_url: str) -> str:
        """Classify the pictured item as "Art" or "Antique"."""
        content = self._complete(
            "classification",
            model=Config.OPENAI_VISION_MODEL,
            messages=[
                {"role": "system", "content": CLASSIFICATION_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        _image_part(image_url),
                        {"type": "text", "text": CLASSIFICATION_USER_PROMPT},
                    ],
                },
            ],
            max_tokens=Config.CLASSIFICATION_MAX_TOKENS,
            temperature=Config.CLASSIFICATION_TEMPERATURE,
        )

        classification = normalize_classification(content)
        logger.log_info("openai", f"Item classified as {classification}")
        return classification

    def generate_analysis(
        self,
        image_url: str,
        similar_image_urls: List[str],
        item_type: Optional[str] = None,
        web_context: Optional[Dict[str, Any]] = None
    ) -> str:
        """Write a preliminary analysis from the customer photo and comparables."""
        references = list(similar_image_urls or [])[:Config.MAX_ANALYSIS_REFERENCE_IMAGES]
        web_context = web_context or {}

        lines = [f"Item category: {item_type or 'unknown'}."]
        if web_context.get("best_guess_labels"):
            lines.append(f"Web best-guess labels: {', '.join(web_context['best_guess_labels'])}.")
        if web_context.get("web_entities"):
            lines.append(f"Related web entities: {', '.join(web_context['web_entities'])}.")
        lines.append(
            f"The first image is the client's photo; the next {len(references)} are similar images from the web."
        )

        parts = [{"type": "text", "text": "\n".join(lines)}, _image_part(image_url)]
        parts.extend(_image_part(url) for url in references)

        analysis = self._complete(
            "analysis",
            model=Config.OPENAI_VISION_MODEL,
            messages=[
                {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
                {"role": "user", "content": parts},
            ],
            max_tokens=Config.ANALYSIS_MAX_TOKENS,
            temperature=Config.ANALYSIS_TEMPERATURE,
        ).strip()

        if not analysis:
            raise ScreenerError("The AI service returned an empty analysis")
        return analysis

    def enhance_analysis(self, analysis_text: str, item_type: Optional[str] = None) -> EnhancedAnalysis:
        """Expand an analysis and write the matching appraisal offer."""
        content = self._complete(
            "enhancement",
            model=Config.OPENAI_TEXT_MODEL,
            messages=[
                {"role": "system", "content": ENHANCE_SYSTEM_PROMPT},
                {"role": "user", "content": f"Item category: {item_type or 'unknown'}\n\nAnalysis:\n{analysis_text}"},
            ],
            max_tokens=Config.ENHANCE_MAX_TOKENS,
            temperature=Config.ANALYSIS_TEMPERATURE,
            response_format={"type": "json_object"},
        )

        try:
            payload = json.loads(content)
        except json.JSONDecodeError as e:
            raise ScreenerError("The AI service returned a malformed enhancement", detail=str(e))
        if not isinstance(payload, dict):
            raise ScreenerError("The AI service returned a malformed enhancement")

        enhanced = str(payload.get("enhancedAnalysis") or "").strip()
        offer = str(payload.get("offerText") or "").strip()
        if not enhanced or not offer:
            raise ScreenerError("The AI service returned an incomplete enhancement", detail=f"keys={list(payload)}")

        return EnhancedAnalysis(enhanced_analysis=enhanced, offer_text=offer)


# Singleton instance
_openai_service = None

def get_openai_service() -> OpenAIService:
    global _openai_service
    if _openai_service is None:
        _openai_service = OpenAIService()
    return _openai_service
