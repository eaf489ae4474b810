"""Screening service - orchestrates upload, similarity search, classification and analysis."""
import uuid
from typing import Dict, Any, Optional, Tuple

from config import Config
from database.session_store import SessionStore, ScreeningSession, get_session_store
from services.openai_service import OpenAIService, build_data_url, get_openai_service
from services.vision_service import VisionService, get_vision_service
from utils.exceptions import InvalidImageError, InvalidRequestError, ScreenerError
from utils.image_storage import ImageStorage, get_image_storage
from utils.screener_logger import RequestContext, get_screener_logger

logger = get_screener_logger()


def validate_image(data: bytes, content_type: Optional[str]):
    """
    Check an uploaded image before anything is stored.

    Raises:
        InvalidImageError: Empty file (400), unsupported type (400) or too large (413)
    """
    if not data:
        raise InvalidImageError("No image file provided")
    if content_type not in Config.ALLOWED_IMAGE_TYPES:
        allowed = ", ".join(sorted(Config.ALLOWED_IMAGE_TYPES))
        raise InvalidImageError(f"Unsupported image type '{content_type}'. Allowed types: {allowed}")
    if len(data) > Config.max_upload_bytes():
        raise InvalidImageError(
            f"Image exceeds maximum allowed size of {Config.MAX_UPLOAD_SIZE_MB}MB",
            status_code=413
        )


class ScreeningService:
    def __init__(
        self,
        storage: ImageStorage,
        sessions: SessionStore,
        vision: VisionService,
        openai_service: OpenAIService
    ):
        self.storage = storage
        self.sessions = sessions
        self.vision = vision
        self.openai = openai_service
        self.sessions.add_eviction_listener(self._discard_session_image)

    def _discard_image(self, key: str):
        try:
            self.storage.delete_image(key)
        except ScreenerError as e:
            logger.log_warning("storage", f"Could not delete image {key}: {e.message}")

    def _discard_session_image(self, session: ScreeningSession):
        self._discard_image(session.image_key)

    def _model_image_url(self, session: ScreeningSession) -> str:
        """URL the OpenAI models can read: public URL or an inline data URL."""
        if self.storage.is_public:
            return session.customer_image_url
        data, content_type = self.storage.load_image(session.image_key)
        return build_data_url(data, content_type)

    def upload(
        self,
        image_bytes: bytes,
        content_type: str,
        filename: str = "",
        ctx: Optional[RequestContext] = None
    ) -> Dict[str, Any]:
        """
        Store a new image, find similar images and classify the item.

        Classification here is best effort: on failure the session is still
        created with itemType None and the client can call /classify-item.
        Any other failure after the image is stored deletes the image again.
        """
        validate_image(image_bytes, content_type)

        session_id = str(uuid.uuid4())
        ctx = ctx or logger.create_request_context()
        ctx.session_id = session_id

        with logger.stage(ctx, "store_image", component="upload"):
            stored = self.storage.save_image(session_id, image_bytes, content_type, filename)

        try:
            with logger.stage(ctx, "web_detection", component="upload"):
                detection = self.vision.find_similar_images(image_bytes)

            model_url = stored.public_url if self.storage.is_public else build_data_url(image_bytes, content_type)
            item_type = None
            try:
                with logger.stage(ctx, "classification", component="upload"):
                    item_type = self.openai.classify_item(model_url)
            except ScreenerError as e:
                logger.log_warning("upload", f"Classification skipped for {session_id}: {e.message}", request_id=ctx.request_id)

            self.sessions.create(
                session_id,
                image_key=stored.key,
                content_type=stored.content_type,
                customer_image_url=stored.public_url,
                original_filename=filename or "",
                similar_image_urls=detection.similar_image_urls,
                web_context=detection.context(),
                item_type=item_type,
            )
        except Exception:
            self._discard_image(stored.key)
            raise

        return {
            "sessionId": session_id,
            "customerImageUrl": stored.public_url,
            "similarImageUrls": detection.similar_image_urls,
            "itemType": item_type,
        }

    def classify(self, image_url: Optional[str] = None, session_id: Optional[str] = None) -> str:
        """Classify an image URL, or the image of an existing session."""
        if session_id:
            session = self.sessions.get(session_id)
            classification = self.openai.classify_item(image_url or self._model_image_url(session))
            self.sessions.update(session_id, item_type=classification)
            return classification

        if not image_url:
            raise InvalidRequestError("Image URL or session ID is required")
        return self.openai.classify_item(image_url)

    def generate_analysis(self, session_id: str) -> str:
        session = self.sessions.get(session_id)
        analysis = self.openai.generate_analysis(
            self._model_image_url(session),
            session.similar_image_urls,
            item_type=session.item_type,
            web_context=session.web_context,
        )
        # A new analysis invalidates any earlier enhancement
        self.sessions.update(session_id, analysis=analysis, enhanced_analysis=None, offer_text=None)
        return analysis

    def enhance_analysis(self, session_id: str, analysis_text: Optional[str] = None) -> Dict[str, str]:
        session = self.sessions.get(session_id)
        text = (analysis_text or "").strip() or (session.analysis or "")
        if not text:
            raise InvalidRequestError("Analysis text is required")

        result = self.openai.enhance_analysis(text, item_type=session.item_type)
        self.sessions.update(
            session_id,
            analysis=text,
            enhanced_analysis=result.enhanced_analysis,
            offer_text=result.offer_text,
        )
        return {"enhancedAnalysis": result.enhanced_analysis, "offerText": result.offer_text}

    def get_image(self, session_id: str) -> Tuple[bytes, str]:
        session = self.sessions.get(session_id)
        return self.storage.load_image(session.image_key)


# Singleton instance
_screening_service = None

def get_screening_service() -> ScreeningService:
    """Get or create the screening service with the configured backends."""
    global _screening_service
    if _screening_service is None:
        _screening_service = ScreeningService(
            storage=get_image_storage(),
            sessions=get_session_store(),
            vision=get_vision_service(),
            openai_service=get_openai_service(),
        )
    return _screening_service
