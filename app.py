"""
FastAPI application entry point for the art and antique screening service.
This file initializes the FastAPI app and registers all routes.
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import register_routes
from config import Config
from middleware.security_middleware import (
    rate_limit_middleware,
    request_id_middleware,
    security_headers_middleware
)
from utils.exceptions import ScreenerError
from utils.llm_error_handler import LLMServiceException
from utils.screener_logger import configure_logging, get_screener_logger

logger = get_screener_logger()


def error_response(status_code: int, message: str, detail=None, headers=None, **extra) -> JSONResponse:
    """Build the {success: false, message, error?} body used by every failure."""
    content = {"success": False, "message": message, **extra}
    # Internal error details are only exposed in development
    if detail and Config.is_development():
        content["error"] = detail
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _request_id(request: Request):
    ctx = getattr(request.state, "request_context", None)
    return ctx.request_id if ctx else None


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(LLMServiceException)
    async def llm_error_handler(request: Request, exc: LLMServiceException):
        extra = {"error_type": exc.llm_error.error_type.value}
        headers = None
        if exc.llm_error.retry_after:
            extra["retry_after"] = exc.llm_error.retry_after
            headers = {"Retry-After": str(exc.llm_error.retry_after)}
        return error_response(exc.status_code, exc.message, exc.detail, headers=headers, **extra)

    @app.exception_handler(ScreenerError)
    async def screener_error_handler(request: Request, exc: ScreenerError):
        if exc.status_code >= 500:
            logger.log_error("http", f"{request.url.path} failed: {exc.message} ({exc.detail})", request_id=_request_id(request))
        else:
            logger.log_warning("http", f"{request.url.path} rejected: {exc.message}", request_id=_request_id(request))
        return error_response(exc.status_code, exc.message, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid request: {field} {first.get('msg', '')}".strip() if field else "Invalid request"
        return error_response(status.HTTP_400_BAD_REQUEST, message, str(errors))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.log_error("http", f"Unhandled error on {request.url.path}: {exc}", request_id=_request_id(request), exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", str(exc))


def create_app(validate_config: bool = True):
    """Create and configure the FastAPI application"""
    configure_logging(Config.LOG_LEVEL)

    # Validate configuration at startup
    if validate_config:
        Config.validate()

    # Initialize FastAPI
    app = FastAPI(
        title="Art & Antique Screener API",
        description="Image upload, similarity search, AI classification and analysis, and appraisal report generation",
        version="1.0.0",
    )

    # Security Middleware (Applied in order - only if rate limiting enabled)
    # 1. Security headers
    app.middleware("http")(security_headers_middleware)

    # 2. Rate limiting
    if Config.RATE_LIMIT_ENABLED:
        app.middleware("http")(rate_limit_middleware)
        logger.log_info("app", f"Rate limiting enabled (Environment: {Config.ENVIRONMENT})")
    else:
        logger.log_warning("app", "Rate limiting disabled")

    # 3. Request ids (outermost, so rejected requests are tagged too)
    app.middleware("http")(request_id_middleware)

    allowed_origins = Config.ALLOWED_ORIGINS if Config.ENVIRONMENT == "production" else ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        # Browsers reject credentials with a wildcard origin
        allow_credentials=allowed_origins != ["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )

    logger.log_info("app", f"CORS configured for origins: {allowed_origins}")

    register_exception_handlers(app)
    register_routes(app)

    return app


# Create app instance
app = create_app()

if __name__ == '__main__':
    import uvicorn

    logger.log_info("app", "=" * 70)
    logger.log_info("app", "Starting FastAPI Server...")
    logger.log_info("app", f"Environment: {Config.ENVIRONMENT}")
    logger.log_info("app", f"Debug Mode: {Config.DEBUG}")
    logger.log_info("app", f"Port: {Config.PORT}")
    logger.log_info("app", f"Storage: {Config.STORAGE_BACKEND}, secrets: {Config.SECRET_SOURCE}")
    logger.log_info("app", "=" * 70)

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=Config.PORT,
        reload=Config.DEBUG
    )
