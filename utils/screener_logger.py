"""
Screener Logger - Structured Logging with Request Tracking

Provides logging utilities for the screening service:
- Per-request context (request id, session id, stage order)
- Timed pipeline stages (upload, web detection, classification, report steps)
- Component-tagged system events
"""

import logging
import time
import uuid
from contextlib import contextmanager
from typing import Optional

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO"):
    """Configure the root logger once for the whole service."""
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=_LOG_FORMAT)


class RequestContext:
    """Context for tracking a single API request through its stages."""

    def __init__(self, session_id: Optional[str] = None, request_id: Optional[str] = None):
        self.request_id = request_id or f"req-{uuid.uuid4().hex[:12]}"
        self.session_id = session_id
        self.stage_order = 0
        self.start_time = time.time()

    def next_stage(self) -> int:
        """Get the next stage order number."""
        self.stage_order += 1
        return self.stage_order

    def elapsed_ms(self) -> float:
        return (time.time() - self.start_time) * 1000


class ScreenerLogger:
    """Logger for screening and report operations."""

    def __init__(self, name: str = "screener"):
        self._logger = logging.getLogger(name)

    @staticmethod
    def _format(component: str, message: str, request_id: Optional[str]) -> str:
        if request_id:
            return f"[{component}] ({request_id}) {message}"
        return f"[{component}] {message}"

    # =========================================================================
    # Request Logging
    # =========================================================================

    def create_request_context(
        self,
        session_id: Optional[str] = None,
        request_id: Optional[str] = None
    ) -> RequestContext:
        """Create a new request context."""
        return RequestContext(session_id=session_id, request_id=request_id)

    @contextmanager
    def stage(self, ctx: RequestContext, stage: str, component: str = "pipeline"):
        """Context manager for timing and logging a pipeline stage."""
        order = ctx.next_stage()
        start_time = time.time()
        result = {"success": True, "error": None}

        try:
            yield result
        except Exception as e:
            result["success"] = False
            result["error"] = str(e)
            raise
        finally:
            duration_ms = (time.time() - start_time) * 1000
            session = f" session={ctx.session_id}" if ctx.session_id else ""
            if result["success"]:
                self.log_info(
                    component,
                    f"stage {order} '{stage}' completed in {duration_ms:.0f}ms{session}",
                    request_id=ctx.request_id
                )
            else:
                self.log_error(
                    component,
                    f"stage {order} '{stage}' failed after {duration_ms:.0f}ms{session}: {result['error']}",
                    request_id=ctx.request_id
                )

    # =========================================================================
    # System Logging
    # =========================================================================

    def log_debug(self, component: str, message: str, request_id: Optional[str] = None):
        self._logger.debug(self._format(component, message, request_id))

    def log_info(self, component: str, message: str, request_id: Optional[str] = None):
        """Log an info message."""
        self._logger.info(self._format(component, message, request_id))

    def log_warning(self, component: str, message: str, request_id: Optional[str] = None):
        """Log a warning message."""
        self._logger.warning(self._format(component, message, request_id))

    def log_error(
        self,
        component: str,
        message: str,
        request_id: Optional[str] = None,
        exc_info: bool = False
    ):
        """Log an error message, optionally with the active traceback."""
        self._logger.error(self._format(component, message, request_id), exc_info=exc_info)


# Singleton instance
_screener_logger = None

def get_screener_logger() -> ScreenerLogger:
    """Get or create the screener logger instance."""
    global _screener_logger
    if _screener_logger is None:
        _screener_logger = ScreenerLogger()
    return _screener_logger
