"""API routes for the application."""
from fastapi import FastAPI
from api.screening_routes import screening_router
from api.report_routes import report_router
from utils.screener_logger import get_screener_logger

logger = get_screener_logger()


def register_routes(app: FastAPI):
    """Register all route routers with the FastAPI app."""

    # Register routers
    app.include_router(screening_router)
    app.include_router(report_router)

    # Health check endpoint
    @app.get('/', tags=['health'])
    async def health_check():
        return {"status": "ok", "message": "Screener API is running"}

    logger.log_info("app", "All routes registered successfully")
