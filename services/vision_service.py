"""Google Vision web detection - finds images similar to the customer's photo."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from config import Config
from utils.exceptions import VisionError
from utils.screener_logger import get_screener_logger

logger = get_screener_logger()


@dataclass
class WebDetectionResult:
    similar_image_urls: List[str] = field(default_factory=list)
    best_guess_labels: List[str] = field(default_factory=list)
    web_entities: List[str] = field(default_factory=list)

    def context(self) -> Dict[str, Any]:
        """Labels and entities passed on to the analysis prompt."""
        return {
            "best_guess_labels": self.best_guess_labels,
            "web_entities": self.web_entities,
        }


def _unique_urls(groups, limit: int) -> List[str]:
    seen = set()
    urls = []
    for group in groups:
        for image in group or []:
            url = getattr(image, "url", None)
            if not url or url in seen:
                continue
            seen.add(url)
            urls.append(url)
            if len(urls) >= limit:
                return urls
    return urls


def parse_web_detection(web_detection, max_results: int) -> WebDetectionResult:
    """
    Flatten a Vision WebDetection message.

    Visually similar images come first, then partial and full matches.
    """
    if web_detection is None:
        return WebDetectionResult()

    urls = _unique_urls(
        (
            web_detection.visually_similar_images,
            web_detection.partial_matching_images,
            web_detection.full_matching_images,
        ),
        max_results
    )
    labels = [l.label for l in web_detection.best_guess_labels if getattr(l, "label", None)]
    entities = [e.description for e in web_detection.web_entities if getattr(e, "description", None)]

    return WebDetectionResult(similar_image_urls=urls, best_guess_labels=labels, web_entities=entities[:10])


class VisionService:
    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            from google.cloud import vision
            self._client = vision.ImageAnnotatorClient()
        return self._client

    def find_similar_images(self, image_bytes: bytes, max_results: Optional[int] = None) -> WebDetectionResult:
        """
        Run web detection on the raw image bytes.

        Raises:
            VisionError: If the API call fails or returns an error status
        """
        from google.cloud import vision

        max_results = max_results or Config.MAX_SIMILAR_IMAGES
        image = vision.Image(content=image_bytes)

        try:
            response = self.client.web_detection(image=image, max_results=max_results * 2)
        except Exception as e:
            logger.log_error("vision", f"Web detection request failed: {e}")
            raise VisionError("Error searching for similar images", detail=str(e))

        if response.error and response.error.message:
            logger.log_error("vision", f"Web detection returned an error: {response.error.message}")
            raise VisionError("Error searching for similar images", detail=response.error.message)

        result = parse_web_detection(response.web_detection, max_results)
        logger.log_info(
            "vision",
            f"Found {len(result.similar_image_urls)} similar images, labels={result.best_guess_labels}"
        )
        return result


# Singleton instance
_vision_service = None

def get_vision_service() -> VisionService:
    global _vision_service
    if _vision_service is None:
        _vision_service = VisionService()
    return _vision_service
