# api/screening_routes.py
from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import Config
from services.screening_service import ScreeningService, get_screening_service
from utils.screener_logger import get_screener_logger

screening_router = APIRouter(tags=['screening'])
logger = get_screener_logger()

MAX_SESSION_ID_LENGTH = 100
MAX_ANALYSIS_LENGTH = 20000


# Request models with validation
class ClassifyItemRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: Optional[str] = Field(None, alias="imageUrl", max_length=2048)
    session_id: Optional[str] = Field(None, alias="sessionId", max_length=MAX_SESSION_ID_LENGTH)


class SessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId", min_length=1, max_length=MAX_SESSION_ID_LENGTH)

    @field_validator('session_id')
    @classmethod
    def validate_session_id(cls, v):
        if not v.strip():
            raise ValueError("Session ID cannot be empty")
        return v.strip()


class EnhanceAnalysisRequest(SessionRequest):
    analysis_text: Optional[str] = Field(None, alias="analysisText", max_length=MAX_ANALYSIS_LENGTH)


def _request_context(request: Request, session_id: Optional[str] = None):
    ctx = getattr(request.state, "request_context", None) or logger.create_request_context()
    if session_id:
        ctx.session_id = session_id
    return ctx


async def read_upload(image: Optional[UploadFile], limit: int) -> bytes:
    """Read at most limit bytes; anything longer is rejected as too large later."""
    if image is None:
        return b""
    return await image.read(limit)


@screening_router.post('/upload-image')
async def upload_image(
    request: Request,
    image: Optional[UploadFile] = File(None),
    service: ScreeningService = Depends(get_screening_service)
):
    """Store the customer's photo, search similar images and classify it."""
    # One byte past the limit is enough to detect an oversized upload
    data = await read_upload(image, Config.max_upload_bytes() + 1)
    content_type = image.content_type if image is not None else None
    filename = image.filename if image is not None else ""

    ctx = _request_context(request)
    logger.log_info("upload", f"Received '{filename}' ({content_type}, {len(data)} bytes)", request_id=ctx.request_id)

    result = await run_in_threadpool(service.upload, data, content_type, filename or "", ctx)
    return {"success": True, **result}


@screening_router.post('/classify-item')
async def classify_item(
    body: ClassifyItemRequest,
    service: ScreeningService = Depends(get_screening_service)
):
    """Classify an image URL or a session's image as Art or Antique."""
    classification = await run_in_threadpool(service.classify, body.image_url, body.session_id)
    return {"success": True, "classification": classification}


@screening_router.post('/generate-analysis')
async def generate_analysis(
    body: SessionRequest,
    service: ScreeningService = Depends(get_screening_service)
):
    analysis = await run_in_threadpool(service.generate_analysis, body.session_id)
    return {"success": True, "analysis": analysis}


@screening_router.post('/enhance-analysis')
async def enhance_analysis(
    body: EnhanceAnalysisRequest,
    service: ScreeningService = Depends(get_screening_service)
):
    result = await run_in_threadpool(service.enhance_analysis, body.session_id, body.analysis_text)
    return {"success": True, **result}


@screening_router.get('/image/{session_id}')
async def get_image(
    session_id: str,
    service: ScreeningService = Depends(get_screening_service)
):
    """Serve the stored customer image for a session."""
    data, content_type = await run_in_threadpool(service.get_image, session_id)
    return Response(content=data, media_type=content_type, headers={"Cache-Control": "private, max-age=3600"})
