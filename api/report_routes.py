# api/report_routes.py
from typing import Optional, Union

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field

from services.report_service import ReportService, get_report_service
from utils.exceptions import InvalidRequestError
from utils.screener_logger import get_screener_logger

report_router = APIRouter(tags=['report'])
logger = get_screener_logger()


class GeneratePdfRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    post_id: Optional[Union[int, str]] = Field(None, alias="postId")
    session_id: Optional[str] = Field(None, alias="session_ID", max_length=100)


@report_router.post('/generate-pdf')
async def generate_pdf(
    request: Request,
    body: GeneratePdfRequest,
    service: ReportService = Depends(get_report_service)
):
    """Build the appraisal report for a WordPress post and link it back to the post."""
    post_id = body.post_id
    if post_id is None or (isinstance(post_id, str) and not post_id.strip()):
        raise InvalidRequestError("postId is required.")

    ctx = getattr(request.state, "request_context", None) or logger.create_request_context()
    ctx.session_id = body.session_id

    links = await run_in_threadpool(service.generate, post_id, body.session_id, ctx)
    return {
        "success": True,
        "message": "PDF generated successfully.",
        "pdfLink": links["pdfLink"],
        "docLink": links["docLink"],
    }
