"""
Request-level error handling for the Matchmaker API

Service exceptions that escape a route are turned into a JSON envelope:

    {"success": false, "request_id": ..., "status_code": ..., "message": ..., "error": {...}}

Every response carries an ``X-Request-ID`` header so API errors can be
matched with the log lines of the same request.
"""
import time
import uuid
from datetime import datetime
from typing import Any, Dict

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from matchmaker.utils.exceptions import MatchmakerBaseException, map_to_http_exception
from matchmaker.utils.logging_config import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def error_response(request_id: str, status_code: int, detail: Any) -> JSONResponse:
    """Standard error envelope"""
    if not isinstance(detail, dict):
        detail = {"message": str(detail)}
    body: Dict[str, Any] = {
        "success": False,
        "timestamp": datetime.utcnow().isoformat(),
        "request_id": request_id,
        "status_code": status_code,
        **detail,
    }
    return JSONResponse(status_code=status_code, content=body, headers={REQUEST_ID_HEADER: request_id})


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Assigns request ids and converts uncaught exceptions to error envelopes"""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        where = f"{request.method} {request.url.path}"
        context = {"request_id": request_id, "method": request.method, "path": request.url.path}

        logger.debug(f"Request started: {where}", extra=context)
        try:
            response = await call_next(request)
        except MatchmakerBaseException as exc:
            logger.error(
                f"{exc.__class__.__name__} in {where}: {exc.message}",
                extra={**context, "error_code": exc.error_code, "details": exc.details},
            )
            http_exc = map_to_http_exception(exc)
            return error_response(request_id, http_exc.status_code, http_exc.detail)
        except PydanticValidationError as exc:
            logger.error(f"Document validation failed in {where}: {exc}", extra=context)
            return error_response(request_id, 400, {
                "message": "Invalid data format or values",
                "validation_errors": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()
                ],
            })
        except Exception as exc:
            logger.error(f"Unhandled exception in {where}: {exc}", extra=context, exc_info=True)
            # Internal details stay in the log
            return error_response(request_id, 500, {
                "message": "An unexpected error occurred. Please try again later.",
            })

        logger.info(f"{where} - {response.status_code}", extra={**context, "status_code": response.status_code})
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Adds X-Processing-Time and warns about slow requests"""

    def __init__(self, app, slow_request_threshold: float = 2.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        elapsed = time.time() - start_time

        if elapsed > self.slow_request_threshold:
            logger.warning(
                f"Slow request: {request.method} {request.url.path} took {elapsed:.3f}s",
                extra={"request_id": getattr(request.state, "request_id", None), "processing_time": elapsed},
            )
        response.headers["X-Processing-Time"] = f"{elapsed:.3f}"
        return response
